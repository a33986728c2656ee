"""Shamir (t-of-n) secret sharing over GF(2^8), byte by byte.

API
---
split(secret, shares, threshold)  -> list of shares (bytes)
combine(shares)                   -> secret (bytes)

Every secret byte gets its own random polynomial of degree t-1 whose
constant term is that byte.  A share is the evaluation of all L
polynomials at the share's identifier, followed by the identifier::

    [f_0(id), f_1(id), ..., f_{L-1}(id), id]

Identifiers are assigned 1..n in output order.

Nothing here authenticates shares.  Combining too few shares, or shares
from different splits, silently yields a wrong secret of the right
length.
"""

from __future__ import annotations

import logging
import secrets
from typing import Callable, List, Optional, Sequence, Union

from quorumshare.config import MAX_SHARES, MAX_THRESHOLD, MIN_SHARES, MIN_THRESHOLD
from quorumshare.crypto import gf256

logger = logging.getLogger(__name__)

BytesLike = Union[bytes, bytearray, memoryview]
RandomSource = Callable[[int], bytes]

_BYTES_TYPES = (bytes, bytearray, memoryview)


# -----------------------------------------------------------------------
# Validation
# -----------------------------------------------------------------------

def _check_int(name: str, value: object, lo: int, hi: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be an int, got {type(value).__name__}")
    if not lo <= value <= hi:
        raise ValueError(f"{name} must be between {lo} and {hi}, got {value}")


def _check_split_args(secret: object, shares: object, threshold: object) -> None:
    if not isinstance(secret, _BYTES_TYPES):
        raise TypeError(
            f"secret must be a bytes-like object, got {type(secret).__name__}"
        )
    _check_int("shares", shares, MIN_SHARES, MAX_SHARES)
    _check_int("threshold", threshold, MIN_THRESHOLD, MAX_THRESHOLD)
    if threshold > shares:  # type: ignore[operator]
        raise ValueError(
            f"threshold ({threshold}) cannot exceed number of shares ({shares})"
        )
    if len(secret) == 0:
        raise ValueError("secret must not be empty")


def _check_combine_args(shares: object) -> List[bytes]:
    if not isinstance(shares, (list, tuple)):
        raise TypeError(f"shares must be a list of bytes, got {type(shares).__name__}")
    if not MIN_SHARES <= len(shares) <= MAX_SHARES:
        raise ValueError(
            f"need between {MIN_SHARES} and {MAX_SHARES} shares, got {len(shares)}"
        )

    out: List[bytes] = []
    for i, s in enumerate(shares):
        if not isinstance(s, _BYTES_TYPES):
            raise TypeError(f"share {i} must be bytes-like, got {type(s).__name__}")
        out.append(bytes(s))

    length = len(out[0])
    for i, s in enumerate(out):
        if len(s) < 2:
            raise ValueError(f"share {i} is too short ({len(s)} bytes, need >= 2)")
        if len(s) != length:
            raise ValueError(
                f"shares must all have the same length ({len(s)} != {length})"
            )

    seen = set()
    for s in out:
        if s[-1] in seen:
            raise ValueError(f"duplicate share identifier: {s[-1]}")
        seen.add(s[-1])
    return out


# -----------------------------------------------------------------------
# Split
# -----------------------------------------------------------------------

def split(
    secret: BytesLike,
    shares: int,
    threshold: int,
    random_bytes: Optional[RandomSource] = None,
) -> List[bytes]:
    """Split *secret* into *shares* shares, any *threshold* of which recover it.

    *random_bytes* is called once with ``len(secret) * (threshold - 1)``
    and must return that many uniformly random bytes.  It defaults to
    :func:`secrets.token_bytes`; tests inject a fixed stream to pin the
    polynomial coefficients.
    """
    _check_split_args(secret, shares, threshold)
    if random_bytes is None:
        random_bytes = secrets.token_bytes

    secret = bytes(secret)
    length = len(secret)
    degree = threshold - 1

    needed = length * degree
    rand = random_bytes(needed)
    if len(rand) != needed:
        raise ValueError(
            f"random source returned {len(rand)} bytes, expected {needed}"
        )

    # Coefficients for byte i: [secret[i], rand[i*d], ..., rand[i*d + d-1]]
    polys = [
        [secret[i]] + list(rand[i * degree:(i + 1) * degree])
        for i in range(length)
    ]

    out: List[bytes] = []
    for x in range(1, shares + 1):
        share = bytearray(gf256.eval_poly(coeffs, x) for coeffs in polys)
        share.append(x)
        out.append(bytes(share))

    logger.debug(
        "split %d-byte secret into %d shares (threshold %d)", length, shares, threshold
    )
    return out


# -----------------------------------------------------------------------
# Combine
# -----------------------------------------------------------------------

def combine(shares: Sequence[BytesLike]) -> bytes:
    """Recover the secret from *shares* using Lagrange interpolation at x=0.

    Returns ``len(share) - 1`` bytes.  The result is only the original
    secret if at least ``threshold`` shares of one split were supplied.
    """
    points = _check_combine_args(shares)

    xs = [s[-1] for s in points]
    # The basis weights depend only on the identifiers, not the byte position.
    weights = gf256.lagrange_weights_at_zero(xs)

    length = len(points[0]) - 1
    secret = bytearray(length)
    for i in range(length):
        acc = 0
        for w, s in zip(weights, points):
            acc = gf256.add(acc, gf256.mul(s[i], w))
        secret[i] = acc

    logger.debug("combined %d shares into %d-byte secret (ids=%s)", len(xs), length, xs)
    return bytes(secret)

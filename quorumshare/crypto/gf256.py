"""Arithmetic in GF(2^8).

Elements are Python ints in [0, 255].  Addition is XOR; multiplication
and division go through log / antilog tables that are built once, at
import time, and stored as tuples.

``mul`` and ``div`` do not branch on operand values: the zero case is
folded in with a bit mask so the same table lookups happen for every
input.
"""

from __future__ import annotations

from typing import List, Sequence, Tuple

from quorumshare.config import GF_GENERATOR, GF_REDUCTION_POLY

ORDER = 255  # size of the multiplicative group


def _xtime_mul(a: int, b: int, poly: int) -> int:
    """Shift-and-add multiplication, only used to build the tables."""
    result = 0
    while b:
        if b & 1:
            result ^= a
        a <<= 1
        if a & 0x100:
            a ^= poly
        b >>= 1
    return result


def build_tables(poly: int, generator: int) -> Tuple[Tuple[int, ...], Tuple[int, ...]]:
    """Return ``(exp, log)`` tables for the field defined by *poly*.

    ``exp[i] = generator**i`` for i in 0..254 and ``log[exp[i]] = i``.
    ``log[0]`` is 0; callers mask out zero operands themselves.
    """
    exp = [0] * ORDER
    log = [0] * 256
    x = 1
    for i in range(ORDER):
        exp[i] = x
        log[x] = i
        x = _xtime_mul(x, generator, poly)
    if x != 1 or len(set(exp)) != ORDER:
        raise ValueError(
            f"0x{generator:02x} does not generate GF(2^8)* modulo 0x{poly:03x}"
        )
    return tuple(exp), tuple(log)


EXP, LOG = build_tables(GF_REDUCTION_POLY, GF_GENERATOR)


def add(a: int, b: int) -> int:
    """Field addition (XOR)."""
    return a ^ b


# Characteristic 2: subtraction is addition.
sub = add


def mul(a: int, b: int) -> int:
    """Field multiplication."""
    mask = -((a != 0) & (b != 0))  # 0 or -1 (all ones)
    return EXP[(LOG[a] + LOG[b]) % ORDER] & mask


def div(a: int, b: int) -> int:
    """Field division ``a / b``; *b* must be nonzero."""
    if b == 0:
        raise ZeroDivisionError("Division by zero in GF(2^8)")
    mask = -(a != 0)
    return EXP[(LOG[a] - LOG[b] + ORDER) % ORDER] & mask


def inv(a: int) -> int:
    """Multiplicative inverse."""
    if a == 0:
        raise ZeroDivisionError("Cannot invert zero in GF(2^8)")
    return EXP[(ORDER - LOG[a]) % ORDER]


def pow_(a: int, e: int) -> int:
    """Raise *a* to a non-negative integer power."""
    if e == 0:
        return 1
    mask = -(a != 0)
    return EXP[(LOG[a] * e) % ORDER] & mask


def eval_poly(coeffs: Sequence[int], x: int) -> int:
    """Evaluate polynomial (constant term first) at *x* with Horner's method."""
    result = 0
    for c in reversed(coeffs):
        result = add(mul(result, x), c)
    return result


def lagrange_weights_at_zero(xs: Sequence[int]) -> List[int]:
    """Lagrange basis values L_j(0) for distinct abscissae *xs*.

    L_j(0) = prod_{k != j} x_k / (x_k - x_j), with subtraction being XOR.
    """
    weights: List[int] = []
    for j, xj in enumerate(xs):
        w = 1
        for k, xk in enumerate(xs):
            if k == j:
                continue
            w = mul(w, div(xk, add(xk, xj)))
        weights.append(w)
    return weights

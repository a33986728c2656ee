#!/usr/bin/env python3
"""quorumshare end-to-end demo.

Usage:
    python -m quorumshare.demo.run_demo              # in-process library calls
    python -m quorumshare.demo.run_demo --url URL    # against a running service
        (e.g. after ``uvicorn quorumshare.service.app:app``)

The script:
1. Splits a text secret into 5 shares with threshold 3.
2. Recombines every 3-subset and checks the result.
3. Shows that 2 shares yield garbage, not an error.
4. Triggers a validation error.
5. Dumps the audit log (service mode only).
"""

from __future__ import annotations

import argparse
import itertools
import logging
from typing import Callable, List, Optional, Sequence

import httpx

from quorumshare.client import ShareServiceClient
from quorumshare.config import LOG_LEVEL, SERVICE_URL
from quorumshare.crypto import shamir

SECRET = "correct horse battery staple".encode("utf-8")
N, K = 5, 3


def banner(msg: str) -> None:
    print(f"\n{'='*60}")
    print(f"  {msg}")
    print(f"{'='*60}")


def run(
    split: Callable[[bytes, int, int], List[bytes]],
    combine: Callable[[Sequence[bytes]], bytes],
) -> bool:
    banner(f"1) Split {len(SECRET)}-byte secret into {N} shares (threshold {K})")
    shares = split(SECRET, N, K)
    for s in shares:
        print(f"   id={s[-1]:3d}  {s[:-1].hex()[:32]}…")

    banner(f"2) Recombine every {K}-subset")
    ok = True
    for subset in itertools.combinations(shares, K):
        match = combine(list(subset)) == SECRET
        ok = ok and match
        ids = ",".join(str(s[-1]) for s in subset)
        print(f"   ids {{{ids}}}: {'✓' if match else '✗'}")

    banner(f"3) Only {K - 1} shares (below threshold)")
    partial = combine(shares[: K - 1])
    print(f"   recovered: {partial!r}")
    print(f"   equals secret: {partial == SECRET}")

    banner("4) Validation error (duplicate share)")
    try:
        combine([shares[0], shares[0]])
    except (ValueError, httpx.HTTPStatusError) as exc:
        print(f"   rejected: {exc}")
    return ok


def _log_level(name: str) -> int:
    level = logging.getLevelName(name.upper())
    if not isinstance(level, int):
        raise ValueError(f"unknown log level: {name!r}")
    return level


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="quorumshare demo")
    parser.add_argument("--url", help=f"share service URL (e.g. {SERVICE_URL})")
    args = parser.parse_args(argv)

    logging.basicConfig(level=_log_level(LOG_LEVEL))

    if not args.url:
        ok = run(shamir.split, shamir.combine)
    else:
        with ShareServiceClient(args.url, client_id="demo") as svc:
            ok = run(svc.split, svc.combine)

            banner("5) Audit log")
            audit = svc.audit()
            print(f"   Entries: {len(audit['entries'])}")
            print(f"   Chain valid: {audit['chain_valid']}")
            for e in audit["entries"][-5:]:
                print(f"     #{e['seq']} [{e['event']}] {e['digest'][:12]}…")

    banner("DEMO COMPLETE" if ok else "DEMO FAILED")
    return 0 if ok else 1


if __name__ == "__main__":
    raise SystemExit(main())

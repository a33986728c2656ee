"""Share service: FastAPI front end for split / combine.

Endpoints:
- POST /split    – split a hex-encoded secret into hex-encoded shares
- POST /combine  – recover a secret from hex-encoded shares
- GET  /audit    – hash-chained audit trail + chain validity
- GET  /health   – liveness check

Split and combine are CPU-bound, so their handlers are plain ``def``
and run in FastAPI's threadpool rather than on the event loop.  Each
request is priced in field operations before any work happens and
refused with 413 above ``MAX_WORK_PER_REQUEST``.

Requests are rate limited per peer address.  ``X-Client-Id`` is only a
label for the audit trail, which records shapes and share identifiers.
"""

from __future__ import annotations

import logging
from typing import Annotated, Any, Dict, List, Optional

from fastapi import FastAPI, Header, HTTPException, Request
from pydantic import BaseModel, Field

from quorumshare.config import (
    DEFAULT_CLIENT_ID,
    MAX_SECRET_BYTES,
    MAX_SHARES,
    MAX_WORK_PER_REQUEST,
)
from quorumshare.crypto import shamir
from quorumshare.service.audit import AuditLog, CombineEvent, RefusedEvent, SplitEvent
from quorumshare.service.ratelimit import RateLimiter

logger = logging.getLogger(__name__)

# Whole bytes of plain hex digits; bytes.fromhex alone would accept spaces.
HexStr = Annotated[str, Field(pattern=r"^(?:[0-9a-fA-F]{2})*$")]

# ---------------------------------------------------------------------------
# Request / response models
# ---------------------------------------------------------------------------


class SplitRequest(BaseModel):
    secret_hex: HexStr
    shares: int
    threshold: int


class SplitResponse(BaseModel):
    shares: List[str]
    threshold: int
    share_ids: List[int]


class CombineRequest(BaseModel):
    shares: List[HexStr]


class CombineResponse(BaseModel):
    secret_hex: str


class AuditResponse(BaseModel):
    entries: List[Dict[str, Any]]
    chain_valid: bool


# ---------------------------------------------------------------------------
# Cost model
# ---------------------------------------------------------------------------


def split_work(secret_length: int, shares: int, threshold: int) -> int:
    """Field operations for a split: one Horner step per coefficient per share."""
    return secret_length * shares * threshold


def combine_work(share_length: int, share_count: int) -> int:
    """Field operations for a combine: Lagrange weights plus one pass per byte."""
    return share_count * share_count + (share_length - 1) * share_count


def _peer(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def create_app(
    audit: Optional[AuditLog] = None,
    limiter: Optional[RateLimiter] = None,
) -> FastAPI:
    """Factory that creates a share-service app.

    *audit* and *limiter* default to fresh instances; tests pass their
    own to inspect or tune them.
    """
    if audit is None:
        audit = AuditLog()
    if limiter is None:
        limiter = RateLimiter()

    app = FastAPI(title="quorumshare")
    app.state.audit = audit
    app.state.limiter = limiter

    def _refuse(
        operation: str, outcome: str, client_id: str, peer: str, status: int, reason: str
    ) -> HTTPException:
        logger.warning("%s %s for %s (%s): %s", outcome, operation, client_id, peer, reason)
        audit.record(RefusedEvent(operation, outcome, client_id, peer, status, reason))
        return HTTPException(status, reason)

    def _admit(operation: str, client_id: str, peer: str) -> None:
        denial = limiter.check(peer)
        if denial is not None:
            raise _refuse(operation, "denied", client_id, peer, 429, denial)

    @app.post("/split", response_model=SplitResponse)
    def split(
        req: SplitRequest,
        request: Request,
        x_client_id: str = Header(DEFAULT_CLIENT_ID),
    ):
        peer = _peer(request)
        _admit("split", x_client_id, peer)

        length = len(req.secret_hex) // 2
        if length > MAX_SECRET_BYTES:
            raise _refuse(
                "split", "rejected", x_client_id, peer, 413,
                f"secret is {length} bytes, limit is {MAX_SECRET_BYTES}",
            )
        work = split_work(length, req.shares, req.threshold)
        if work > MAX_WORK_PER_REQUEST:
            raise _refuse(
                "split", "rejected", x_client_id, peer, 413,
                f"request needs {work} field operations, limit is {MAX_WORK_PER_REQUEST}",
            )

        try:
            shares = shamir.split(bytes.fromhex(req.secret_hex), req.shares, req.threshold)
        except (TypeError, ValueError) as exc:
            raise _refuse("split", "rejected", x_client_id, peer, 400, str(exc)) from None

        share_ids = tuple(s[-1] for s in shares)
        audit.record(
            SplitEvent(
                client_id=x_client_id,
                peer=peer,
                secret_length=length,
                share_count=req.shares,
                threshold=req.threshold,
                share_ids=share_ids,
            )
        )
        return {
            "shares": [s.hex() for s in shares],
            "threshold": req.threshold,
            "share_ids": list(share_ids),
        }

    @app.post("/combine", response_model=CombineResponse)
    def combine(
        req: CombineRequest,
        request: Request,
        x_client_id: str = Header(DEFAULT_CLIENT_ID),
    ):
        peer = _peer(request)
        _admit("combine", x_client_id, peer)

        count = len(req.shares)
        if count > MAX_SHARES:
            raise _refuse(
                "combine", "rejected", x_client_id, peer, 400,
                f"need between 2 and {MAX_SHARES} shares, got {count}",
            )
        longest = max((len(s) // 2 for s in req.shares), default=0)
        if longest - 1 > MAX_SECRET_BYTES:
            raise _refuse(
                "combine", "rejected", x_client_id, peer, 413,
                f"shares are {longest} bytes, limit is {MAX_SECRET_BYTES + 1}",
            )
        work = combine_work(longest, count)
        if work > MAX_WORK_PER_REQUEST:
            raise _refuse(
                "combine", "rejected", x_client_id, peer, 413,
                f"request needs {work} field operations, limit is {MAX_WORK_PER_REQUEST}",
            )

        raw = [bytes.fromhex(s) for s in req.shares]
        try:
            secret = shamir.combine(raw)
        except (TypeError, ValueError) as exc:
            raise _refuse("combine", "rejected", x_client_id, peer, 400, str(exc)) from None

        audit.record(
            CombineEvent(
                client_id=x_client_id,
                peer=peer,
                share_count=count,
                share_length=len(raw[0]),
                share_ids=tuple(s[-1] for s in raw),
            )
        )
        return {"secret_hex": secret.hex()}

    @app.get("/audit", response_model=AuditResponse)
    async def get_audit():
        return {"entries": audit.entries(), "chain_valid": audit.verify_chain()}

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


app = create_app()

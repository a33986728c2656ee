"""httpx client for the share service.

Usage::

    with ShareServiceClient("http://localhost:8000") as svc:
        shares = svc.split(b"hi", shares=3, threshold=2)
        assert svc.combine(shares[:2]) == b"hi"

Non-2xx responses raise :class:`httpx.HTTPStatusError`.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

import httpx

from quorumshare.config import SERVICE_URL


class ShareServiceClient:
    """Thin synchronous wrapper around the service's JSON API.

    Pass *http* to reuse an existing client (for example FastAPI's
    ``TestClient``); it is then left open on :meth:`close`.
    """

    def __init__(
        self,
        base_url: str = SERVICE_URL,
        *,
        client_id: Optional[str] = None,
        http: Optional[httpx.Client] = None,
        timeout: float = 10.0,
    ) -> None:
        headers = {"X-Client-Id": client_id} if client_id else {}
        self._headers = headers
        self._owns_http = http is None
        self._http = http if http is not None else httpx.Client(base_url=base_url, timeout=timeout)

    def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        resp = self._http.post(path, json=payload, headers=self._headers)
        resp.raise_for_status()
        return resp.json()

    def _get(self, path: str) -> Dict[str, Any]:
        resp = self._http.get(path, headers=self._headers)
        resp.raise_for_status()
        return resp.json()

    def split(self, secret: bytes, shares: int, threshold: int) -> List[bytes]:
        body = self._post(
            "/split",
            {"secret_hex": bytes(secret).hex(), "shares": shares, "threshold": threshold},
        )
        return [bytes.fromhex(s) for s in body["shares"]]

    def combine(self, shares: Sequence[bytes]) -> bytes:
        body = self._post("/combine", {"shares": [bytes(s).hex() for s in shares]})
        return bytes.fromhex(body["secret_hex"])

    def audit(self) -> Dict[str, Any]:
        return self._get("/audit")

    def health(self) -> Dict[str, Any]:
        return self._get("/health")

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

    def __enter__(self) -> "ShareServiceClient":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

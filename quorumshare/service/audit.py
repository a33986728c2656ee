"""Audit trail of share-service operations.

Events are typed records (:class:`SplitEvent`, :class:`CombineEvent`,
:class:`RefusedEvent`) that carry sizes, counts and share identifiers.
Before anything is stored, :meth:`AuditLog.record` checks the record for
secret material and refuses it: byte values anywhere, or a field named
like secret or share payload.

Each stored line is canonical JSON with a sequence number.  Its digest
is ``sha256(prev_digest || line)``, so rewriting, reordering or dropping
a line breaks :meth:`AuditLog.verify_chain`.
"""

from __future__ import annotations

import hashlib
import json
import threading
import time
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Tuple, Union

GENESIS_DIGEST = bytes(32)

# Field names that must never reach the trail.
SECRET_FIELDS = frozenset({"secret", "secret_hex", "share", "shares", "share_hex", "coefficients"})


# ---------------------------------------------------------------------------
# Event records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SplitEvent:
    client_id: str
    peer: str
    secret_length: int
    share_count: int
    threshold: int
    share_ids: Tuple[int, ...]

    @property
    def kind(self) -> str:
        return "split"


@dataclass(frozen=True)
class CombineEvent:
    client_id: str
    peer: str
    share_count: int
    share_length: int
    share_ids: Tuple[int, ...]

    @property
    def kind(self) -> str:
        return "combine"


@dataclass(frozen=True)
class RefusedEvent:
    """A split or combine turned away before or during validation."""

    operation: str  # "split" | "combine"
    outcome: str    # "denied" (rate limit) | "rejected" (bad request)
    client_id: str
    peer: str
    status: int
    reason: str

    @property
    def kind(self) -> str:
        return f"{self.operation}_{self.outcome}"


AuditEvent = Union[SplitEvent, CombineEvent, RefusedEvent]


def _check_redacted(value: Any, path: str = "") -> None:
    if isinstance(value, (bytes, bytearray, memoryview)):
        raise ValueError(f"refusing to audit byte data at {path or 'top level'}")
    if isinstance(value, dict):
        for k, v in value.items():
            if k in SECRET_FIELDS:
                raise ValueError(f"refusing to audit secret-bearing field {k!r}")
            _check_redacted(v, f"{path}.{k}" if path else k)
    elif isinstance(value, (list, tuple)):
        for i, v in enumerate(value):
            _check_redacted(v, f"{path}[{i}]")


# ---------------------------------------------------------------------------
# Log
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AuditEntry:
    seq: int
    line: str     # canonical JSON: {"data", "event", "seq", "ts"}
    digest: str   # hex sha256(prev digest || line)

    def to_dict(self) -> Dict[str, Any]:
        out = json.loads(self.line)
        out["digest"] = self.digest
        return out


def _chain(prev_digest: bytes, line: str) -> bytes:
    return hashlib.sha256(prev_digest + line.encode()).digest()


class AuditLog:
    """Append-only, in-memory, thread-safe audit trail."""

    def __init__(self) -> None:
        self._entries: List[AuditEntry] = []
        self._head = GENESIS_DIGEST
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def record(self, event: AuditEvent) -> AuditEntry:
        """Validate *event* and append it to the chain."""
        data = asdict(event)
        _check_redacted(data)
        with self._lock:
            seq = len(self._entries)
            line = json.dumps(
                {"seq": seq, "ts": time.time(), "event": event.kind, "data": data},
                sort_keys=True,
                separators=(",", ":"),
            )
            head = _chain(self._head, line)
            entry = AuditEntry(seq=seq, line=line, digest=head.hex())
            self._entries.append(entry)
            self._head = head
        return entry

    def entries(self) -> List[Dict[str, Any]]:
        with self._lock:
            snapshot = list(self._entries)
        return [e.to_dict() for e in snapshot]

    def verify_chain(self) -> bool:
        with self._lock:
            snapshot = list(self._entries)
        head = GENESIS_DIGEST
        for i, e in enumerate(snapshot):
            if e.seq != i or json.loads(e.line).get("seq") != i:
                return False
            head = _chain(head, e.line)
            if e.digest != head.hex():
                return False
        return True

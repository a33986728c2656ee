"""Share service tests using the in-process ASGI TestClient."""

from __future__ import annotations

import inspect
import itertools

import pytest
from fastapi.testclient import TestClient

from quorumshare.config import MAX_SECRET_BYTES
from quorumshare.service.app import combine_work, create_app, split_work
from quorumshare.service.audit import AuditLog
from quorumshare.service.ratelimit import RateLimiter


@pytest.fixture()
def setup():
    """Fresh app with its own audit log and a generous limiter."""
    audit = AuditLog()
    app = create_app(audit=audit, limiter=RateLimiter(max_per_minute=10_000))
    return TestClient(app), audit


def _split(client, secret: bytes, shares: int, threshold: int, **kw):
    return client.post(
        "/split",
        json={"secret_hex": secret.hex(), "shares": shares, "threshold": threshold},
        **kw,
    )


def test_health(setup):
    client, _ = setup
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_split_and_combine(setup):
    client, _ = setup
    resp = _split(client, b"hi", 3, 2)
    assert resp.status_code == 200
    body = resp.json()
    assert body["threshold"] == 2
    assert body["share_ids"] == [1, 2, 3]
    assert len(body["shares"]) == 3
    assert all(len(bytes.fromhex(s)) == 3 for s in body["shares"])

    for pair in itertools.combinations(body["shares"], 2):
        resp = client.post("/combine", json={"shares": list(pair)})
        assert resp.status_code == 200
        assert bytes.fromhex(resp.json()["secret_hex"]) == b"hi"


def test_split_validation_error(setup):
    client, audit = setup
    resp = _split(client, b"hi", 3, 4)
    assert resp.status_code == 400
    assert "threshold" in resp.json()["detail"]
    assert audit.entries()[-1]["event"] == "split_rejected"


def test_split_empty_secret(setup):
    client, _ = setup
    resp = _split(client, b"", 3, 2)
    assert resp.status_code == 400


def test_split_bad_hex(setup):
    client, _ = setup
    resp = client.post("/split", json={"secret_hex": "zz", "shares": 3, "threshold": 2})
    assert resp.status_code == 422


def test_split_oversized_secret(setup):
    client, audit = setup
    resp = _split(client, b"\x00" * (MAX_SECRET_BYTES + 1), 2, 2)
    assert resp.status_code == 413
    assert audit.entries()[-1]["event"] == "split_rejected"


def test_combine_duplicate_ids(setup):
    client, _ = setup
    shares = _split(client, b"abc", 3, 2).json()["shares"]
    resp = client.post("/combine", json={"shares": [shares[0], shares[0]]})
    assert resp.status_code == 400
    assert "duplicate" in resp.json()["detail"]


def test_combine_single_share(setup):
    client, _ = setup
    shares = _split(client, b"abc", 3, 2).json()["shares"]
    resp = client.post("/combine", json={"shares": shares[:1]})
    assert resp.status_code == 400


def test_combine_bad_hex(setup):
    client, _ = setup
    resp = client.post("/combine", json={"shares": ["0101", "xyz"]})
    assert resp.status_code == 422


def test_audit_records_shapes_not_secrets(setup):
    client, _ = setup
    secret = b"top secret value"
    shares = _split(client, secret, 4, 3, headers={"X-Client-Id": "alice"}).json()["shares"]
    client.post("/combine", json={"shares": shares[:3]}, headers={"X-Client-Id": "alice"})

    resp = client.get("/audit")
    assert resp.status_code == 200
    body = resp.json()
    assert body["chain_valid"] is True
    events = [e["event"] for e in body["entries"]]
    assert events == ["split", "combine"]

    split_entry = body["entries"][0]["data"]
    assert split_entry == {
        "client_id": "alice",
        "peer": "testclient",
        "secret_length": len(secret),
        "share_count": 4,
        "threshold": 3,
        "share_ids": [1, 2, 3, 4],
    }
    combine_entry = body["entries"][1]["data"]
    assert combine_entry["share_ids"] == [1, 2, 3]

    dump = resp.text
    assert secret.hex() not in dump
    for s in shares:
        assert s not in dump


def test_rate_limit():
    audit = AuditLog()
    client = TestClient(create_app(audit=audit, limiter=RateLimiter(max_per_minute=2)))
    assert _split(client, b"a", 2, 2, headers={"X-Client-Id": "bob"}).status_code == 200
    assert _split(client, b"a", 2, 2, headers={"X-Client-Id": "bob"}).status_code == 200
    resp = _split(client, b"a", 2, 2, headers={"X-Client-Id": "bob"})
    assert resp.status_code == 429
    assert audit.entries()[-1]["event"] == "split_denied"


def test_rate_limit_ignores_client_id_header():
    limiter = RateLimiter(max_per_minute=1)
    client = TestClient(create_app(limiter=limiter))
    codes = [
        _split(client, b"a", 2, 2, headers={"X-Client-Id": f"rotating-{i}"}).status_code
        for i in range(20)
    ]
    assert codes[0] == 200
    assert set(codes[1:]) == {429}
    assert list(limiter._buckets) == ["testclient"]


def test_split_over_work_budget(setup):
    client, audit = setup
    resp = _split(client, b"\x00" * 1000, 255, 255)
    assert resp.status_code == 413
    assert "field operations" in resp.json()["detail"]
    assert audit.entries()[-1]["event"] == "split_rejected"


def test_combine_over_work_budget(setup, monkeypatch):
    client, _ = setup
    shares = _split(client, b"\x00" * 50, 3, 2).json()["shares"]
    monkeypatch.setattr("quorumshare.service.app.MAX_WORK_PER_REQUEST", 100)
    resp = client.post("/combine", json={"shares": shares})
    assert resp.status_code == 413
    assert "field operations" in resp.json()["detail"]


def test_work_cost_model():
    assert split_work(256, 255, 255) == 256 * 255 * 255
    assert combine_work(3, 2) == 4 + 2 * 2


def test_combine_too_many_shares(setup):
    client, _ = setup
    resp = client.post("/combine", json={"shares": ["0001"] * 256})
    assert resp.status_code == 400


@pytest.mark.parametrize("bad", ["68 69", "686", " 6869", "0x6869", "gg"])
def test_split_rejects_loose_hex(setup, bad):
    client, _ = setup
    resp = client.post("/split", json={"secret_hex": bad, "shares": 3, "threshold": 2})
    assert resp.status_code == 422


def test_cpu_bound_handlers_run_off_the_event_loop():
    app = create_app()
    endpoints = {route.path: route.endpoint for route in app.routes if hasattr(route, "endpoint")}
    assert not inspect.iscoroutinefunction(endpoints["/split"])
    assert not inspect.iscoroutinefunction(endpoints["/combine"])

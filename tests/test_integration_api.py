import asyncio
import json
import uuid

from fastapi.testclient import TestClient

from pulse.auth import authenticate
from pulse.config import get_settings
from pulse.main import app, engine, history
from pulse.stream import event_stream
from pulse.subscribers import Subscriber

client = TestClient(app)

ADMIN = {"x-admin-secret": "test-admin-secret"}

def mint(merchant_id: str) -> str:
    r = client.get("/mint", params={"merchantId": merchant_id}, headers=ADMIN)
    assert r.status_code == 200
    return r.json()["token"]

def new_merchant() -> str:
    return f"m-{uuid.uuid4().hex[:8]}"

def test_liveness():
    r = client.get("/")
    assert r.status_code == 200
    assert r.text == "Pulse API OK"

def test_mint_requires_admin_secret():
    assert client.get("/mint").status_code == 403
    r = client.get("/mint", headers={"x-admin-secret": "wrong"})
    assert r.status_code == 403
    assert r.json() == {"error": "forbidden"}

def test_mint_defaults_merchant():
    r = client.get("/mint", headers=ADMIN)
    assert authenticate(r.json()["token"]) == "default-merchant"

def test_ingest_then_stats():
    merchant = new_merchant()
    token = mint(merchant)

    r = client.post("/ingest/tx", json={"amount": 10, "method": "card"},
                    headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 200
    assert r.json() == {"ok": True}

    ev = history.snapshot(merchant)[0]
    assert (ev.currency, ev.item, ev.meta) == ("EUR", None, {})

    r = client.get("/stats/today", params={"token": token})
    assert r.json() == {"ok": True, "ca": 10, "tx": 1, "aov": 10}

def test_ingest_missing_amount():
    merchant = new_merchant()
    token = mint(merchant)
    r = client.post("/ingest/tx", json={"method": "card"},
                    headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 400
    assert r.json() == {"error": "missing_fields"}
    assert history.snapshot(merchant) == []

def test_ingest_non_json_body():
    token = mint(new_merchant())
    r = client.post("/ingest/tx", content=b"amount=10",
                    headers={"Authorization": f"Bearer {token}", "Content-Type": "text/plain"})
    assert r.status_code == 400

def test_ingest_unauthorized():
    r = client.post("/ingest/tx", json={"amount": 1, "method": "card"})
    assert r.status_code == 401
    assert r.json() == {"error": "unauthorized"}
    r = client.post("/ingest/tx", json={"amount": 1, "method": "card"},
                    headers={"Authorization": "Bearer garbage"})
    assert r.status_code == 401

def test_stats_and_events_reject_bad_token():
    for path in ("/stats/today", "/events"):
        r = client.get(path, params={"token": "garbage"})
        assert r.status_code == 401
        assert r.json() == {"error": "invalid_token"}

def test_stats_empty_merchant():
    r = client.get("/stats/today", params={"token": mint(new_merchant())})
    assert r.json() == {"ok": True, "ca": 0, "tx": 0, "aov": 0}

def test_minted_token_bootstraps_own_history_only():
    mine, theirs = new_merchant(), new_merchant()
    my_token, their_token = mint(mine), mint(theirs)
    for amount in (5, 7):
        client.post("/ingest/tx", json={"amount": amount, "method": "cash"},
                    headers={"Authorization": f"Bearer {my_token}"})
    client.post("/ingest/tx", json={"amount": 99, "method": "card"},
                headers={"Authorization": f"Bearer {their_token}"})

    async def first_frame():
        merchant = authenticate(my_token)
        stream = event_stream(engine, merchant, Subscriber(merchant))
        try:
            return await stream.__anext__()
        finally:
            await stream.aclose()

    frame = asyncio.run(first_frame())
    assert frame.startswith("event: bootstrap\n")
    data = json.loads(frame.split("data: ", 1)[1])
    assert [e["amount"] for e in data["recent"]] == [5, 7]
    assert engine.subscribers.count(mine) == 0

def test_metrics():
    r = client.get("/metrics")
    assert r.status_code == 200
    assert "transactions_ingested_total" in r.text

def test_metrics_reports_history_tenants():
    token = mint(new_merchant())
    client.post("/ingest/tx", json={"amount": 1, "method": "card"},
                headers={"Authorization": f"Bearer {token}"})
    assert "history_tenants" in client.get("/metrics").text

def test_ingest_rejects_amount_beyond_float_range():
    merchant = new_merchant()
    r = client.post("/ingest/tx", content=b'{"amount": 1' + b"0" * 400 + b', "method": "card"}',
                    headers={"Authorization": f"Bearer {mint(merchant)}", "Content-Type": "application/json"})
    assert r.status_code == 400
    assert r.json() == {"error": "missing_fields"}
    assert history.snapshot(merchant) == []

def test_ingest_rejects_nan_in_meta():
    merchant = new_merchant()
    r = client.post("/ingest/tx", content=b'{"amount": 1, "method": "card", "meta": {"x": NaN}}',
                    headers={"Authorization": f"Bearer {mint(merchant)}", "Content-Type": "application/json"})
    assert r.status_code == 400
    assert r.json() == {"error": "invalid_fields"}
    assert history.snapshot(merchant) == []

def test_mint_without_jwt_secret_is_json_500(monkeypatch):
    monkeypatch.setenv("JWT_SECRET", "")
    get_settings.cache_clear()
    try:
        r = client.get("/mint", headers=ADMIN)
    finally:
        monkeypatch.undo()
        get_settings.cache_clear()
    assert r.status_code == 500
    assert r.json() == {"error": "server_misconfigured"}

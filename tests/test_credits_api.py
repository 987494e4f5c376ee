"""HTTP surface of the ledger: spend, balance, verify-session, webhook, checkout."""

import pytest

from conftest import checkout_event, stripe_signature

pytestmark = pytest.mark.asyncio

H = {"X-User-Id": "acct-1"}


async def test_balance(client, store):
    await store.open_account("acct-1", 4)
    r = await client.get("/v1/account/balance", headers=H)
    assert r.status_code == 200
    assert r.json()["balance"] == 4


async def test_missing_identity_is_unauthorized(client):
    r = await client.post("/v1/credits/spend", json={"reason": "tailor"})
    assert r.status_code == 401
    assert r.json()["error"]["code"] == "UNAUTHORIZED"


async def test_unknown_account_is_unauthorized(client):
    r = await client.get("/v1/account/balance", headers={"X-User-Id": "ghost"})
    assert r.status_code == 401


async def test_spend_debits_one_credit(client, store):
    await store.open_account("acct-1", 2)
    r = await client.post("/v1/credits/spend", json={"reason": "export"}, headers=H)
    assert r.status_code == 200
    assert r.json()["balance"] == 1
    assert await store.get_balance("acct-1") == 1


async def test_spend_with_no_credits_is_402(client, store):
    await store.open_account("acct-1", 0)
    r = await client.post("/v1/credits/spend", json={"reason": "tailor"}, headers=H)
    assert r.status_code == 402
    body = r.json()
    assert body["error"]["code"] == "INSUFFICIENT_FUNDS"
    assert body["error"]["details"]["upsell"] == "pricing"
    assert "request_id" in body
    assert await store.get_balance("acct-1") == 0


async def test_spend_unknown_reason_is_400(client, store):
    await store.open_account("acct-1", 5)
    r = await client.post("/v1/credits/spend", json={"reason": "free_lunch"}, headers=H)
    assert r.status_code == 400
    assert await store.get_balance("acct-1") == 5


async def test_verify_session_endpoint(client, store, provider):
    await store.open_account("acct-1", 1)
    provider.add_session("cs_1", "acct-1", 10)
    r = await client.post("/v1/credits/verify-session", json={"sessionId": "cs_1"}, headers=H)
    assert r.status_code == 200
    assert r.json() == {"credited": True, "balance": 11}
    r = await client.post("/v1/credits/verify-session", json={"sessionId": "cs_1"}, headers=H)
    assert r.json() == {"credited": False, "balance": 11}


async def test_verify_session_provider_failure_is_502(client, store):
    await store.open_account("acct-1", 1)
    r = await client.post("/v1/credits/verify-session", json={"sessionId": "cs_unknown"}, headers=H)
    assert r.status_code == 502
    assert r.json()["error"]["code"] == "PROVIDER_UNVERIFIABLE"


async def test_webhook_retry_credits_once(client, store, notifier):
    await store.open_account("acct-1", 0)
    payload = checkout_event("sess_1", "acct-1", 10)
    for _ in range(2):
        r = await client.post(
            "/v1/payments/webhook",
            content=payload,
            headers={"Stripe-Signature": stripe_signature(payload), "Content-Type": "application/json"},
        )
        assert r.status_code == 200
        assert r.json() == {"status": "ok"}
    assert await store.get_balance("acct-1") == 10
    assert len(notifier.payments) == 1


async def test_webhook_bad_signature_is_400(client, store):
    await store.open_account("acct-1", 0)
    payload = checkout_event("sess_1", "acct-1", 10)
    r = await client.post("/v1/payments/webhook", content=payload, headers={"Stripe-Signature": "t=1,v1=deadbeef"})
    assert r.status_code == 400
    assert await store.get_balance("acct-1") == 0


async def test_checkout_endpoint(client, store, provider):
    await store.open_account("acct-1", 0)
    r = await client.post("/v1/payments/checkout", json={"priceId": "price_large"}, headers=H)
    assert r.status_code == 200
    assert r.json()["credits"] == 50
    assert provider.created == [("price_large", 50, "acct-1")]


async def test_ledger_lists_movements(client, store):
    await store.open_account("acct-1", 2)
    await client.post("/v1/credits/spend", json={"reason": "tailor"}, headers=H)
    r = await client.get("/v1/credits/ledger", headers=H)
    assert r.status_code == 200
    entries = r.json()["entries"]
    assert [(e["reason"], e["amount"]) for e in entries] == [("tailor", -1), ("starter_grant", 2)]


async def test_pricing(client):
    r = await client.get("/v1/credits/pricing")
    assert r.status_code == 200
    body = r.json()
    assert body["actions"] == {"tailor": 1, "export": 1}
    assert {"price_id": "price_small", "credits": 10} in body["packs"]


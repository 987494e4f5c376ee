"""Entitlement gate: debit before work, refund when work fails."""

import pytest

from cvpro.core.exceptions import AIUnavailableError, InsufficientFundsError
from cvpro.services.credits import PaidAction
from cvpro.services.entitlement import EntitlementGate

pytestmark = pytest.mark.asyncio

TAILOR = PaidAction(reason="tailor", cost=1)


async def test_successful_work_keeps_debit(store):
    await store.open_account("acct-1", 3)
    gate = EntitlementGate(store)

    async def work():
        return "done"

    assert await gate.perform("acct-1", TAILOR, work) == "done"
    assert await store.get_balance("acct-1") == 2


async def test_failed_work_is_refunded_and_error_propagates(store):
    await store.open_account("acct-1", 1)
    gate = EntitlementGate(store)

    async def work():
        raise AIUnavailableError()

    with pytest.raises(AIUnavailableError) as exc:
        await gate.perform("acct-1", TAILOR, work)
    assert not isinstance(exc.value, InsufficientFundsError)
    assert exc.value.details["refunded"] is True
    assert await store.get_balance("acct-1") == 1
    reasons = [e.reason for e in await store.history("acct-1")]
    assert reasons[:2] == ["refund:tailor", "tailor"]


async def test_plain_exceptions_are_refunded_too(store):
    await store.open_account("acct-1", 2)
    gate = EntitlementGate(store)

    async def work():
        raise ValueError("boom")

    with pytest.raises(ValueError, match="boom"):
        await gate.perform("acct-1", TAILOR, work)
    assert await store.get_balance("acct-1") == 2


async def test_insufficient_funds_skips_work(store):
    await store.open_account("acct-1", 0)
    gate = EntitlementGate(store)
    calls = []

    async def work():
        calls.append(1)

    with pytest.raises(InsufficientFundsError):
        await gate.perform("acct-1", TAILOR, work)
    assert calls == []
    assert await store.get_balance("acct-1") == 0


async def test_refund_failure_does_not_mask_work_error(store, monkeypatch):
    await store.open_account("acct-1", 1)
    gate = EntitlementGate(store)

    async def broken_refund(*args, **kwargs):
        raise RuntimeError("ledger down")

    monkeypatch.setattr(store, "refund", broken_refund)

    async def work():
        raise AIUnavailableError()

    with pytest.raises(AIUnavailableError) as exc:
        await gate.perform("acct-1", TAILOR, work)
    assert exc.value.details["refunded"] is False
    assert await store.get_balance("acct-1") == 0

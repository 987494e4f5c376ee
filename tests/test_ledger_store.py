"""Ledger backends: conditional debit, idempotent credit, refund, journal.

Every test runs against the memory store and against MongoDB (skipped when no
server answers at MONGODB_URI).
"""

import asyncio

import pytest
import pytest_asyncio
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo.errors import PyMongoError

from cvpro.core.config import get_settings
from cvpro.core.exceptions import BadRequestError, InsufficientFundsError, NotFoundError
from cvpro.ledger.memory import MemoryLedgerStore
from cvpro.ledger.mongo import MongoLedgerStore

pytestmark = pytest.mark.asyncio


async def fresh_mongo_store() -> MongoLedgerStore:
    from cvpro.db.init import init_db

    settings = get_settings()
    client = AsyncIOMotorClient(settings.mongodb_uri, serverSelectionTimeoutMS=1500)
    try:
        await client.admin.command("ping")
    except PyMongoError:
        client.close()
        pytest.skip(f"MongoDB not reachable at {settings.mongodb_uri}")
    db = client[settings.mongodb_db_name]
    await db.drop_collection("ledger_accounts")
    await db.drop_collection("credit_ledger")
    client.close()
    await init_db()
    return MongoLedgerStore()


@pytest_asyncio.fixture(params=["memory", "mongo"])
async def ledger(request):
    if request.param == "mongo":
        return await fresh_mongo_store()
    return MemoryLedgerStore()


async def test_open_account_applies_starter_grant_once(ledger):
    assert await ledger.open_account("acct-1", 1) == 1
    assert await ledger.open_account("acct-1", 1) == 1
    assert await ledger.get_balance("acct-1") == 1
    entries = await ledger.history("acct-1")
    assert [e.reason for e in entries] == ["starter_grant"]


async def test_concurrent_first_logins_grant_once(ledger):
    balances = await asyncio.gather(*[ledger.open_account("acct-1", 1) for _ in range(5)])
    assert balances == [1] * 5
    entries = await ledger.history("acct-1")
    assert [e.reason for e in entries] == ["starter_grant"]


async def test_get_balance_unknown_account_is_none(ledger):
    assert await ledger.get_balance("nobody") is None


async def test_debit_decrements(ledger):
    await ledger.open_account("acct-1", 5)
    assert await ledger.try_debit("acct-1", 2, "tailor") == 3
    assert await ledger.get_balance("acct-1") == 3


async def test_debit_with_zero_balance_is_rejected(ledger):
    await ledger.open_account("acct-1", 0)
    with pytest.raises(InsufficientFundsError) as exc:
        await ledger.try_debit("acct-1", 1, "tailor")
    assert exc.value.balance == 0
    assert exc.value.required == 1
    assert exc.value.status_code == 402
    assert await ledger.get_balance("acct-1") == 0


async def test_concurrent_debits_never_overspend(ledger):
    await ledger.open_account("acct-1", 3)
    results = await asyncio.gather(
        *[ledger.try_debit("acct-1", 1, "export") for _ in range(10)],
        return_exceptions=True,
    )
    succeeded = [r for r in results if isinstance(r, int)]
    rejected = [r for r in results if isinstance(r, InsufficientFundsError)]
    assert len(succeeded) == 3
    assert len(rejected) == 7
    assert sorted(succeeded) == [0, 1, 2]
    assert await ledger.get_balance("acct-1") == 0


async def test_final_balance_matches_successful_debits(ledger):
    await ledger.open_account("acct-1", 10)
    amounts = [4, 3, 5, 2, 1]
    results = await asyncio.gather(
        *[ledger.try_debit("acct-1", a, "export") for a in amounts],
        return_exceptions=True,
    )
    spent = sum(a for a, r in zip(amounts, results) if isinstance(r, int))
    assert await ledger.get_balance("acct-1") == 10 - spent
    assert await ledger.get_balance("acct-1") >= 0


async def test_credit_is_applied_once_per_session(ledger):
    await ledger.open_account("acct-1", 0)
    first = await ledger.try_credit("acct-1", "sess_1", 10)
    second = await ledger.try_credit("acct-1", "sess_1", 10)
    assert first.applied is True and first.balance == 10
    assert second.applied is False and second.balance == 10
    assert await ledger.get_balance("acct-1") == 10


async def test_concurrent_credits_same_session_apply_once(ledger):
    await ledger.open_account("acct-1", 2)
    outcomes = await asyncio.gather(*[ledger.try_credit("acct-1", "sess_race", 10) for _ in range(5)])
    assert sum(1 for o in outcomes if o.applied) == 1
    assert await ledger.get_balance("acct-1") == 12


async def test_distinct_sessions_both_credit(ledger):
    await ledger.open_account("acct-1", 0)
    await ledger.try_credit("acct-1", "sess_a", 10)
    await ledger.try_credit("acct-1", "sess_b", 25)
    assert await ledger.get_balance("acct-1") == 35


async def test_refund_increments(ledger):
    await ledger.open_account("acct-1", 1)
    await ledger.try_debit("acct-1", 1, "tailor")
    assert await ledger.refund("acct-1", 1, "refund:tailor") == 1


@pytest.mark.parametrize("amount", [0, -1, True, 1.5])
async def test_non_positive_amounts_rejected(ledger, amount):
    await ledger.open_account("acct-1", 5)
    with pytest.raises(BadRequestError):
        await ledger.try_debit("acct-1", amount, "tailor")
    assert await ledger.get_balance("acct-1") == 5


async def test_mutations_on_unknown_account(ledger):
    with pytest.raises(NotFoundError):
        await ledger.try_debit("ghost", 1, "tailor")
    with pytest.raises(NotFoundError):
        await ledger.try_credit("ghost", "sess_1", 1)
    with pytest.raises(NotFoundError):
        await ledger.refund("ghost", 1, "refund:tailor")


async def test_history_newest_first_with_paging(ledger):
    await ledger.open_account("acct-1", 3)
    await ledger.try_debit("acct-1", 1, "tailor", reference_id="r1")
    await ledger.try_credit("acct-1", "sess_1", 10)
    await ledger.open_account("acct-2", 1)
    entries = await ledger.history("acct-1")
    assert [(e.reason, e.amount, e.balance_after) for e in entries] == [
        ("purchase", 10, 12),
        ("tailor", -1, 2),
        ("starter_grant", 3, 3),
    ]
    page = await ledger.history("acct-1", limit=1, offset=1)
    assert [e.reference_id for e in page] == ["r1"]

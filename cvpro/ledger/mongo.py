"""MongoDB ledger: every mutation is one find_one_and_update with the guard in the filter."""

from datetime import datetime

from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from cvpro.core.exceptions import InsufficientFundsError, NotFoundError
from cvpro.core.logging import get_logger
from cvpro.ledger.base import CreditOutcome, LedgerEntry, LedgerStore, require_positive
from cvpro.models.credit_ledger import CreditLedgerEntry
from cvpro.models.ledger_account import LedgerAccount

log = get_logger(__name__)


class MongoLedgerStore(LedgerStore):
    def _collection(self):
        return LedgerAccount.get_motor_collection()

    async def _journal(self, account_id: str, amount: int, balance_after: int, reason: str, reference_id: str | None) -> None:
        # Journal is append-only audit; the balance document stays the source of truth.
        try:
            await CreditLedgerEntry(
                account_id=account_id,
                amount=amount,
                balance_after=balance_after,
                reason=reason,
                reference_id=reference_id,
            ).insert()
        except Exception:
            log.exception("ledger_journal_write_failed", account_id=account_id, amount=amount, reason=reason)

    async def open_account(self, account_id: str, starting_balance: int = 0) -> int:
        now = datetime.utcnow()
        starting_balance = max(0, starting_balance)
        try:
            result = await self._collection().update_one(
                {"account_id": account_id},
                {
                    "$setOnInsert": {
                        "account_id": account_id,
                        "balance": starting_balance,
                        "processed_session_ids": [],
                        "created_at": now,
                        "updated_at": now,
                    }
                },
                upsert=True,
            )
        except DuplicateKeyError:
            # Concurrent first login created it
            result = None
        if result is not None and result.upserted_id is not None and starting_balance:
            await self._journal(account_id, starting_balance, starting_balance, "starter_grant", None)
        balance = await self.get_balance(account_id)
        return balance if balance is not None else starting_balance

    async def get_balance(self, account_id: str) -> int | None:
        doc = await self._collection().find_one({"account_id": account_id}, projection={"balance": 1})
        return int(doc["balance"]) if doc else None

    async def try_debit(self, account_id: str, amount: int, reason: str, reference_id: str | None = None) -> int:
        require_positive(amount)
        doc = await self._collection().find_one_and_update(
            {"account_id": account_id, "balance": {"$gte": amount}},
            {"$inc": {"balance": -amount}, "$set": {"updated_at": datetime.utcnow()}},
            projection={"balance": 1},
            return_document=ReturnDocument.AFTER,
        )
        if doc is None:
            current = await self.get_balance(account_id)
            if current is None:
                raise NotFoundError("Account not found")
            raise InsufficientFundsError(balance=current, required=amount)
        balance = int(doc["balance"])
        await self._journal(account_id, -amount, balance, reason, reference_id)
        return balance

    async def try_credit(self, account_id: str, session_id: str, amount: int) -> CreditOutcome:
        require_positive(amount)
        doc = await self._collection().find_one_and_update(
            {"account_id": account_id, "processed_session_ids": {"$ne": session_id}},
            {
                "$inc": {"balance": amount},
                "$push": {"processed_session_ids": session_id},
                "$set": {"updated_at": datetime.utcnow()},
            },
            projection={"balance": 1},
            return_document=ReturnDocument.AFTER,
        )
        if doc is None:
            current = await self.get_balance(account_id)
            if current is None:
                raise NotFoundError("Account not found")
            return CreditOutcome(applied=False, balance=current)
        balance = int(doc["balance"])
        await self._journal(account_id, amount, balance, "purchase", session_id)
        return CreditOutcome(applied=True, balance=balance)

    async def refund(self, account_id: str, amount: int, reason: str, reference_id: str | None = None) -> int:
        require_positive(amount)
        doc = await self._collection().find_one_and_update(
            {"account_id": account_id},
            {"$inc": {"balance": amount}, "$set": {"updated_at": datetime.utcnow()}},
            projection={"balance": 1},
            return_document=ReturnDocument.AFTER,
        )
        if doc is None:
            raise NotFoundError("Account not found")
        balance = int(doc["balance"])
        await self._journal(account_id, amount, balance, reason, reference_id)
        return balance

    async def history(self, account_id: str, limit: int = 50, offset: int = 0) -> list[LedgerEntry]:
        docs = (
            await CreditLedgerEntry.find(CreditLedgerEntry.account_id == account_id)
            .sort([("created_at", DESCENDING), ("_id", DESCENDING)])
            .skip(offset)
            .limit(limit)
            .to_list()
        )
        return [
            LedgerEntry(
                account_id=d.account_id,
                amount=d.amount,
                balance_after=d.balance_after,
                reason=d.reason,
                reference_id=d.reference_id,
                created_at=d.created_at,
            )
            for d in docs
        ]

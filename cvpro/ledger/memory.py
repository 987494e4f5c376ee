import asyncio
from dataclasses import dataclass, field
from datetime import datetime

from cvpro.core.exceptions import InsufficientFundsError, NotFoundError
from cvpro.ledger.base import CreditOutcome, LedgerEntry, LedgerStore, require_positive


@dataclass
class _Record:
    balance: int = 0
    processed_session_ids: set[str] = field(default_factory=set)


class MemoryLedgerStore(LedgerStore):
    """Process-local ledger for development and tests. One lock serialises all mutations."""

    def __init__(self) -> None:
        self._records: dict[str, _Record] = {}
        self._journal: list[LedgerEntry] = []
        self._lock = asyncio.Lock()

    def _record(self, account_id: str) -> _Record:
        rec = self._records.get(account_id)
        if rec is None:
            raise NotFoundError("Account not found")
        return rec

    def _journal_entry(self, account_id: str, amount: int, balance_after: int, reason: str, reference_id: str | None) -> None:
        self._journal.append(
            LedgerEntry(
                account_id=account_id,
                amount=amount,
                balance_after=balance_after,
                reason=reason,
                reference_id=reference_id,
                created_at=datetime.utcnow(),
            )
        )

    async def open_account(self, account_id: str, starting_balance: int = 0) -> int:
        async with self._lock:
            rec = self._records.get(account_id)
            if rec is not None:
                return rec.balance
            rec = _Record(balance=max(0, starting_balance))
            self._records[account_id] = rec
            if rec.balance:
                self._journal_entry(account_id, rec.balance, rec.balance, "starter_grant", None)
            return rec.balance

    async def get_balance(self, account_id: str) -> int | None:
        rec = self._records.get(account_id)
        return rec.balance if rec else None

    async def try_debit(self, account_id: str, amount: int, reason: str, reference_id: str | None = None) -> int:
        require_positive(amount)
        async with self._lock:
            rec = self._record(account_id)
            if rec.balance < amount:
                raise InsufficientFundsError(balance=rec.balance, required=amount)
            rec.balance -= amount
            self._journal_entry(account_id, -amount, rec.balance, reason, reference_id)
            return rec.balance

    async def try_credit(self, account_id: str, session_id: str, amount: int) -> CreditOutcome:
        require_positive(amount)
        async with self._lock:
            rec = self._record(account_id)
            if session_id in rec.processed_session_ids:
                return CreditOutcome(applied=False, balance=rec.balance)
            rec.balance += amount
            rec.processed_session_ids.add(session_id)
            self._journal_entry(account_id, amount, rec.balance, "purchase", session_id)
            return CreditOutcome(applied=True, balance=rec.balance)

    async def refund(self, account_id: str, amount: int, reason: str, reference_id: str | None = None) -> int:
        require_positive(amount)
        async with self._lock:
            rec = self._record(account_id)
            rec.balance += amount
            self._journal_entry(account_id, amount, rec.balance, reason, reference_id)
            return rec.balance

    async def history(self, account_id: str, limit: int = 50, offset: int = 0) -> list[LedgerEntry]:
        entries = [e for e in reversed(self._journal) if e.account_id == account_id]
        return entries[offset:offset + limit]

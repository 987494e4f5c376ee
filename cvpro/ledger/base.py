"""Ledger store contract: per-account credit balance with atomic conditional updates."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from functools import lru_cache

from cvpro.core.config import get_settings
from cvpro.core.exceptions import BadRequestError


@dataclass(frozen=True)
class CreditOutcome:
    """Result of try_credit. applied is False when the session was already credited."""
    applied: bool
    balance: int


@dataclass(frozen=True)
class LedgerEntry:
    account_id: str
    amount: int
    balance_after: int
    reason: str
    reference_id: str | None
    created_at: datetime


def require_positive(amount: int) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise BadRequestError("Amount must be a positive integer", details={"amount": amount})
    return amount


class LedgerStore(ABC):
    """
    Every mutating operation is a single atomic step per account: the check and
    the write can never be split by a concurrent caller. Implementations persist
    before returning.
    """

    @abstractmethod
    async def open_account(self, account_id: str, starting_balance: int = 0) -> int:
        """Create the account if missing (starter grant applied once); return balance."""
        ...

    @abstractmethod
    async def get_balance(self, account_id: str) -> int | None:
        """Current balance, or None if the account does not exist."""
        ...

    @abstractmethod
    async def try_debit(self, account_id: str, amount: int, reason: str, reference_id: str | None = None) -> int:
        """Decrement iff balance >= amount; return new balance or raise InsufficientFundsError."""
        ...

    @abstractmethod
    async def try_credit(self, account_id: str, session_id: str, amount: int) -> CreditOutcome:
        """Increment and record session_id iff session_id has not been credited before."""
        ...

    @abstractmethod
    async def refund(self, account_id: str, amount: int, reason: str, reference_id: str | None = None) -> int:
        """Unconditional increment undoing a debit whose paid-for work failed."""
        ...

    @abstractmethod
    async def history(self, account_id: str, limit: int = 50, offset: int = 0) -> list[LedgerEntry]:
        """Journal entries, newest first."""
        ...


@lru_cache
def get_ledger_store() -> LedgerStore:
    settings = get_settings()
    if settings.ledger_backend == "memory":
        from cvpro.ledger.memory import MemoryLedgerStore
        return MemoryLedgerStore()
    from cvpro.ledger.mongo import MongoLedgerStore
    return MongoLedgerStore()

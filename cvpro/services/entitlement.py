"""Debit-before-work, refund-on-failure wrapper around paid actions."""

from typing import Awaitable, Callable, TypeVar

import sentry_sdk

from cvpro.core.exceptions import AppError, InsufficientFundsError
from cvpro.core.logging import get_logger
from cvpro.ledger.base import LedgerStore
from cvpro.services.credits import PaidAction

log = get_logger(__name__)

T = TypeVar("T")


class EntitlementGate:
    """
    perform() charges action.cost, runs the work, and gives the credit back if
    the work raises. The work's own exception always reaches the caller; a
    failed refund is logged and reported but never replaces it.

    Not covered: a crash or cancellation between the debit and the refund
    leaves the debit in place.
    """

    def __init__(self, store: LedgerStore):
        self.store = store

    async def perform(
        self,
        account_id: str,
        action: PaidAction,
        work: Callable[[], Awaitable[T]],
        reference_id: str | None = None,
    ) -> T:
        try:
            balance = await self.store.try_debit(account_id, action.cost, action.reason, reference_id)
        except InsufficientFundsError as e:
            log.info("debit_rejected", account_id=account_id, reason=action.reason, balance=e.balance, cost=action.cost)
            raise
        log.info("debit_applied", account_id=account_id, reason=action.reason, cost=action.cost, balance=balance)

        try:
            return await work()
        except Exception as work_error:
            refunded = await self._refund(account_id, action, reference_id, work_error)
            if isinstance(work_error, AppError):
                work_error.details.setdefault("refunded", refunded)
            raise

    async def _refund(self, account_id: str, action: PaidAction, reference_id: str | None, work_error: Exception) -> bool:
        try:
            balance = await self.store.refund(account_id, action.cost, f"refund:{action.reason}", reference_id)
        except Exception as refund_error:
            # Credit drift: the user paid for work that failed and did not get the credit back.
            log.error(
                "refund_failed",
                account_id=account_id,
                reason=action.reason,
                cost=action.cost,
                reference_id=reference_id,
                work_error=repr(work_error),
                exc_info=refund_error,
            )
            sentry_sdk.capture_exception(refund_error)
            return False
        log.warning(
            "work_failed_refunded",
            account_id=account_id,
            reason=action.reason,
            cost=action.cost,
            balance=balance,
            work_error=type(work_error).__name__,
        )
        return True

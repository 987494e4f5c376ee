"""Paid actions, pricing and direct credit spend."""

from dataclasses import dataclass

from cvpro.core.config import get_settings
from cvpro.core.exceptions import BadRequestError
from cvpro.core.logging import get_logger
from cvpro.ledger.base import LedgerStore

log = get_logger(__name__)


@dataclass(frozen=True)
class PaidAction:
    """A unit of work that costs credits; reason is written to the ledger journal."""
    reason: str
    cost: int


def paid_actions() -> dict[str, PaidAction]:
    s = get_settings()
    return {
        "tailor": PaidAction(reason="tailor", cost=s.credits_per_tailor),
        "export": PaidAction(reason="export", cost=s.credits_per_export),
    }


def get_paid_action(reason: str) -> PaidAction:
    action = paid_actions().get(reason)
    if action is None:
        raise BadRequestError(f"Unknown paid action: {reason}", details={"allowed": sorted(paid_actions())})
    return action


async def spend(store: LedgerStore, account_id: str, reason: str, reference_id: str | None = None) -> int:
    """Debit the cost of one paid action; raises InsufficientFundsError when the balance is short."""
    action = get_paid_action(reason)
    balance = await store.try_debit(account_id, action.cost, action.reason, reference_id)
    log.info("credits_spent", account_id=account_id, reason=action.reason, cost=action.cost, balance=balance)
    return balance


def get_pricing() -> dict:
    s = get_settings()
    return {
        "actions": {name: a.cost for name, a in paid_actions().items()},
        "packs": [{"price_id": pid, "credits": credits} for pid, credits in s.credit_packs.items()],
        "starter_credits": s.starter_credits,
    }

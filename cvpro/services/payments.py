"""Stripe checkout, webhook crediting and session verification. Both credit paths go through try_credit."""

from typing import Any

from cvpro.core.config import get_settings
from cvpro.core.exceptions import BadRequestError, ForbiddenError, NotFoundError, ProviderUnverifiableError
from cvpro.core.logging import get_logger
from cvpro.core.retry import RetryPolicy, linear_backoff, retry_async
from cvpro.ledger.base import CreditOutcome, LedgerStore
from cvpro.services.notifications import Notifier
from cvpro.services.payment_provider import (
    PaymentProvider,
    PaymentProviderError,
    PaymentSession,
    PaymentStatus,
    session_from_object,
)

log = get_logger(__name__)

CREDITING_EVENTS = ("checkout.session.completed", "checkout.session.async_payment_succeeded")


def lookup_policy() -> RetryPolicy:
    s = get_settings()
    return RetryPolicy(
        max_attempts=s.payment_lookup_max_attempts,
        backoff=linear_backoff(s.payment_lookup_backoff_seconds),
    )


async def create_checkout(provider: PaymentProvider, account_id: str, price_id: str) -> dict:
    """Start a checkout for a configured credit pack; the credit amount never comes from the client."""
    packs = get_settings().credit_packs
    credit_amount = packs.get(price_id)
    if not credit_amount:
        raise BadRequestError("Unknown credit pack", details={"price_id": price_id})
    try:
        session = await provider.create_checkout_session(price_id, credit_amount, account_id)
    except PaymentProviderError as e:
        log.error("checkout_create_failed", account_id=account_id, price_id=price_id, error=str(e))
        raise ProviderUnverifiableError("Could not start checkout, please try again") from e
    log.info("checkout_created", account_id=account_id, session_id=session.id, credits=credit_amount)
    return {"session_id": session.id, "url": session.url, "credits": credit_amount}


async def _apply_credit(
    store: LedgerStore,
    notifier: Notifier,
    session: PaymentSession,
    source: str,
) -> CreditOutcome:
    outcome = await store.try_credit(session.account_id, session.id, session.credit_amount)
    if outcome.applied:
        log.info(
            "credit_applied",
            source=source,
            account_id=session.account_id,
            session_id=session.id,
            credits=session.credit_amount,
            balance=outcome.balance,
        )
        await notifier.payment_confirmed(session.account_id, session.credit_amount, outcome.balance)
    else:
        log.info("credit_already_processed", source=source, account_id=session.account_id, session_id=session.id)
    return outcome


async def handle_webhook(
    store: LedgerStore,
    provider: PaymentProvider,
    notifier: Notifier,
    payload: bytes,
    signature: str | None,
) -> None:
    """Verify signature first (fail closed), then credit once per session. Anything verified is acknowledged."""
    event: dict[str, Any] = provider.parse_webhook(payload, signature)
    event_type = event.get("type")
    if event_type not in CREDITING_EVENTS:
        log.debug("webhook_ignored", event_type=event_type, event_id=event.get("id"))
        return
    obj = (event.get("data") or {}).get("object") or {}
    session = session_from_object(obj)
    if session.status != PaymentStatus.PAID:
        log.info("webhook_session_not_paid", session_id=session.id, event_type=event_type)
        return
    if not session.id or not session.account_id or session.credit_amount <= 0:
        log.error("webhook_bad_metadata", session_id=session.id, event_id=event.get("id"))
        return
    try:
        await _apply_credit(store, notifier, session, source="webhook")
    except NotFoundError:
        log.error("webhook_unknown_account", account_id=session.account_id, session_id=session.id)


async def verify_session(
    store: LedgerStore,
    provider: PaymentProvider,
    notifier: Notifier,
    account_id: str,
    session_id: str,
) -> dict:
    """Ask the provider for the live session state and credit it if paid. Safe to race the webhook."""

    async def _lookup() -> PaymentSession:
        return await provider.retrieve_session(session_id)

    try:
        session = await retry_async(
            _lookup,
            lookup_policy(),
            should_retry=lambda e: isinstance(e, PaymentProviderError) and e.transient,
            label="payment_lookup",
        )
    except PaymentProviderError as e:
        log.warning("verify_session_lookup_failed", account_id=account_id, session_id=session_id, error=str(e))
        if e.transient:
            message = "Could not reach the payment provider to verify this payment, please try again"
        else:
            message = "Could not verify this payment. Please contact support if you were charged."
        raise ProviderUnverifiableError(message, retryable=e.transient) from e

    if session.account_id and session.account_id != account_id:
        log.warning("verify_session_account_mismatch", account_id=account_id, session_id=session_id)
        raise ForbiddenError("Payment session belongs to another account")

    if session.status == PaymentStatus.PAID and session.credit_amount > 0:
        outcome = await _apply_credit(
            store,
            notifier,
            PaymentSession(session.id or session_id, session.status, account_id, session.credit_amount),
            source="verify",
        )
        return {"credited": outcome.applied, "balance": outcome.balance}

    balance = await store.get_balance(account_id)
    return {"credited": False, "balance": balance or 0, "status": session.status.value}

"""Payment provider seam: Stripe Checkout sessions and signed webhooks."""

import asyncio
import enum
from abc import ABC, abstractmethod
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

import orjson
import stripe

from cvpro.core.config import get_settings
from cvpro.core.exceptions import BadRequestError, WebhookSignatureError


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class PaymentSession:
    id: str
    status: PaymentStatus
    account_id: str | None
    credit_amount: int


@dataclass(frozen=True)
class CheckoutSession:
    id: str
    url: str | None


class PaymentProviderError(Exception):
    """Lookup or session creation failed at the provider."""

    def __init__(self, message: str, transient: bool = False):
        self.transient = transient
        super().__init__(message)


def _credit_amount(metadata: dict[str, Any] | None) -> int:
    raw = (metadata or {}).get("credit_amount") or "0"
    try:
        return max(0, int(raw))
    except (TypeError, ValueError):
        return 0


def session_from_object(obj: dict[str, Any]) -> PaymentSession:
    """Map a Stripe checkout.session object (dict form) to PaymentSession."""
    metadata = obj.get("metadata") or {}
    payment_status = obj.get("payment_status")
    if payment_status == "paid":
        status = PaymentStatus.PAID
    elif payment_status == "unpaid" and obj.get("status") == "open":
        status = PaymentStatus.PENDING
    elif payment_status == "unpaid" and obj.get("status") == "complete":
        # Async payment methods: completed checkout, funds not captured yet
        status = PaymentStatus.PENDING
    else:
        status = PaymentStatus.UNKNOWN
    return PaymentSession(
        id=obj.get("id", ""),
        status=status,
        account_id=metadata.get("account_id") or obj.get("client_reference_id"),
        credit_amount=_credit_amount(metadata),
    )


class PaymentProvider(ABC):
    @abstractmethod
    async def create_checkout_session(self, price_id: str, credit_amount: int, account_id: str) -> CheckoutSession:
        ...

    @abstractmethod
    async def retrieve_session(self, session_id: str) -> PaymentSession:
        ...

    @abstractmethod
    def parse_webhook(self, payload: bytes, signature: str | None) -> dict[str, Any]:
        """Verify the signature, then decode the event. Raises WebhookSignatureError."""
        ...


class StripeProvider(PaymentProvider):
    def __init__(self) -> None:
        settings = get_settings()
        self.api_key = settings.stripe_secret_key
        self.webhook_secret = settings.stripe_webhook_secret
        self.tolerance = settings.stripe_webhook_tolerance
        self.client_url = settings.client_url.rstrip("/")

    def _require_key(self) -> None:
        if not self.api_key:
            raise BadRequestError("Payments not configured")

    async def create_checkout_session(self, price_id: str, credit_amount: int, account_id: str) -> CheckoutSession:
        self._require_key()
        try:
            session = await asyncio.to_thread(
                stripe.checkout.Session.create,
                api_key=self.api_key,
                mode="payment",
                payment_method_types=["card"],
                line_items=[{"price": price_id, "quantity": 1}],
                success_url=f"{self.client_url}/?success=true&session_id={{CHECKOUT_SESSION_ID}}",
                cancel_url=f"{self.client_url}/?canceled=true",
                client_reference_id=account_id,
                metadata={"account_id": account_id, "credit_amount": str(credit_amount)},
            )
        except stripe.StripeError as e:
            raise PaymentProviderError(str(e), transient=_is_transient(e)) from e
        return CheckoutSession(id=session["id"], url=session.get("url"))

    async def retrieve_session(self, session_id: str) -> PaymentSession:
        self._require_key()
        try:
            session = await asyncio.to_thread(stripe.checkout.Session.retrieve, session_id, api_key=self.api_key)
        except stripe.StripeError as e:
            raise PaymentProviderError(str(e), transient=_is_transient(e)) from e
        return session_from_object(_as_dict(session))

    def parse_webhook(self, payload: bytes, signature: str | None) -> dict[str, Any]:
        if not self.webhook_secret:
            raise BadRequestError("Webhook secret not configured")
        if not signature:
            raise WebhookSignatureError("Missing Stripe-Signature header")
        try:
            stripe.WebhookSignature.verify_header(
                payload.decode("utf-8"), signature, self.webhook_secret, tolerance=self.tolerance
            )
        except (stripe.SignatureVerificationError, UnicodeDecodeError) as e:
            raise WebhookSignatureError() from e
        try:
            return orjson.loads(payload)
        except orjson.JSONDecodeError as e:
            raise WebhookSignatureError("Malformed webhook payload") from e


def _is_transient(e: Exception) -> bool:
    return isinstance(e, (stripe.APIConnectionError, stripe.RateLimitError, stripe.APIError))


def _as_dict(obj: Any) -> dict[str, Any]:
    # StripeObject exposes to_dict on current releases, to_dict_recursive on older ones
    to_dict = getattr(obj, "to_dict", None) or getattr(obj, "to_dict_recursive")
    return to_dict()


@lru_cache
def get_payment_provider() -> PaymentProvider:
    return StripeProvider()

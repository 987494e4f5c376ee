import hashlib
import hmac
import json
import os
import time
from typing import Any, AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

os.environ.setdefault("MONGODB_URI", "mongodb://localhost:27017")
os.environ.setdefault("MONGODB_DB_NAME", "cvpro_test")
os.environ.setdefault("SECRET_KEY", "test-secret-key-min-32-characters-long")
os.environ.setdefault("LEDGER_BACKEND", "memory")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_dummy")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_secret")
os.environ.setdefault("CREDIT_PACKS", "price_small:10,price_large:50")
os.environ.setdefault("OPENAI_API_KEY", "sk-test")

WEBHOOK_SECRET = os.environ["STRIPE_WEBHOOK_SECRET"]


def stripe_signature(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    """Stripe-Signature header value computed the way Stripe signs deliveries."""
    ts = timestamp or int(time.time())
    signed = f"{ts}.{payload.decode()}".encode()
    sig = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={ts},v1={sig}"


def checkout_event(
    session_id: str = "sess_1",
    account_id: str = "acct-1",
    credit_amount: int = 10,
    payment_status: str = "paid",
    event_type: str = "checkout.session.completed",
) -> bytes:
    return json.dumps(
        {
            "id": f"evt_{session_id}",
            "type": event_type,
            "data": {
                "object": {
                    "id": session_id,
                    "object": "checkout.session",
                    "status": "complete",
                    "payment_status": payment_status,
                    "client_reference_id": account_id,
                    "metadata": {"account_id": account_id, "credit_amount": str(credit_amount)},
                }
            },
        }
    ).encode()


class FakeNotifier:
    def __init__(self) -> None:
        self.payments: list[tuple[str, int, int]] = []
        self.verifications: list[str] = []

    async def payment_confirmed(self, account_id: str, credit_amount: int, balance: int) -> None:
        self.payments.append((account_id, credit_amount, balance))

    async def verification_requested(self, user_id: str) -> None:
        self.verifications.append(user_id)


class FakeProvider:
    """Payment provider double: sessions are registered by the test; webhooks use real Stripe signing."""

    def __init__(self) -> None:
        from cvpro.services.payment_provider import StripeProvider

        self.sessions: dict[str, Any] = {}
        self.failures: list[Exception] = []
        self.lookups = 0
        self.created: list[tuple[str, int, str]] = []
        self._stripe = StripeProvider()

    def add_session(self, session_id: str, account_id: str, credit_amount: int, status: str = "paid") -> None:
        from cvpro.services.payment_provider import PaymentSession, PaymentStatus

        self.sessions[session_id] = PaymentSession(
            id=session_id,
            status=PaymentStatus(status),
            account_id=account_id,
            credit_amount=credit_amount,
        )

    async def create_checkout_session(self, price_id: str, credit_amount: int, account_id: str):
        from cvpro.services.payment_provider import CheckoutSession

        self.created.append((price_id, credit_amount, account_id))
        return CheckoutSession(id=f"cs_{len(self.created)}", url="https://checkout.stripe.test/pay")

    async def retrieve_session(self, session_id: str):
        from cvpro.services.payment_provider import PaymentProviderError

        self.lookups += 1
        if self.failures:
            raise self.failures.pop(0)
        if session_id not in self.sessions:
            raise PaymentProviderError("No such checkout.session")
        return self.sessions[session_id]

    def parse_webhook(self, payload: bytes, signature: str | None):
        return self._stripe.parse_webhook(payload, signature)


@pytest.fixture
def store():
    from cvpro.ledger.memory import MemoryLedgerStore
    return MemoryLedgerStore()


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest_asyncio.fixture
async def client(store, notifier, provider) -> AsyncGenerator[AsyncClient, None]:
    from cvpro.ledger.base import get_ledger_store
    from cvpro.main import app
    from cvpro.services.notifications import get_notifier
    from cvpro.services.payment_provider import get_payment_provider

    app.dependency_overrides[get_ledger_store] = lambda: store
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_payment_provider] = lambda: provider
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    app.dependency_overrides.clear()

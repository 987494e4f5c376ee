from fastapi import APIRouter, Depends, Header, Request
from pydantic import BaseModel, Field

from cvpro.deps import get_account_id
from cvpro.ledger.base import LedgerStore, get_ledger_store
from cvpro.services import payments as payments_service
from cvpro.services.notifications import Notifier, get_notifier
from cvpro.services.payment_provider import PaymentProvider, get_payment_provider

router = APIRouter()


class CheckoutRequest(BaseModel):
    price_id: str = Field(..., min_length=1, alias="priceId")

    model_config = {"populate_by_name": True}


@router.post("/checkout")
async def create_checkout(
    body: CheckoutRequest,
    account_id: str = Depends(get_account_id),
    provider: PaymentProvider = Depends(get_payment_provider),
):
    """Create a Stripe Checkout session for a configured credit pack."""
    return await payments_service.create_checkout(provider, account_id, body.price_id)


@router.post("/webhook")
async def stripe_webhook(
    request: Request,
    stripe_signature: str | None = Header(None, alias="Stripe-Signature"),
    store: LedgerStore = Depends(get_ledger_store),
    provider: PaymentProvider = Depends(get_payment_provider),
    notifier: Notifier = Depends(get_notifier),
):
    """Stripe webhook: checkout.session.completed -> credit once per session."""
    body = await request.body()
    await payments_service.handle_webhook(store, provider, notifier, body, stripe_signature)
    return {"status": "ok"}

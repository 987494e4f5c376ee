from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from cvpro.deps import get_account_id
from cvpro.ledger.base import LedgerStore, get_ledger_store
from cvpro.services import credits as credits_service
from cvpro.services import payments as payments_service
from cvpro.services.notifications import Notifier, get_notifier
from cvpro.services.payment_provider import PaymentProvider, get_payment_provider

router = APIRouter()


class SpendRequest(BaseModel):
    reason: str = Field(..., min_length=1)
    reference_id: str | None = None


class VerifySessionRequest(BaseModel):
    session_id: str = Field(..., min_length=1, alias="sessionId")

    model_config = {"populate_by_name": True}


@router.post("/spend")
async def credits_spend(
    body: SpendRequest,
    account_id: str = Depends(get_account_id),
    store: LedgerStore = Depends(get_ledger_store),
):
    """Debit one paid action. 402 when the balance is short."""
    balance = await credits_service.spend(store, account_id, body.reason, body.reference_id)
    return {"balance": balance, "credits": balance}


@router.post("/verify-session")
async def credits_verify_session(
    body: VerifySessionRequest,
    account_id: str = Depends(get_account_id),
    store: LedgerStore = Depends(get_ledger_store),
    provider: PaymentProvider = Depends(get_payment_provider),
    notifier: Notifier = Depends(get_notifier),
):
    """Check a checkout session with the provider and credit it if paid (idempotent with the webhook)."""
    return await payments_service.verify_session(store, provider, notifier, account_id, body.session_id)


@router.get("/ledger")
async def credits_ledger(
    account_id: str = Depends(get_account_id),
    store: LedgerStore = Depends(get_ledger_store),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    """Return ledger entries for current account (newest first)."""
    entries = await store.history(account_id, limit=limit, offset=offset)
    out = [
        {
            "amount": e.amount,
            "balance_after": e.balance_after,
            "reason": e.reason,
            "reference_id": e.reference_id,
            "created_at": e.created_at.isoformat(),
        }
        for e in entries
    ]
    return {"entries": out, "limit": limit, "offset": offset}


@router.get("/pricing")
async def credits_pricing():
    return credits_service.get_pricing()

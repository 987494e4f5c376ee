from fastapi import APIRouter, Depends

from cvpro.deps import get_account_id
from cvpro.ledger.base import LedgerStore, get_ledger_store

router = APIRouter()


@router.get("/balance")
async def account_balance(
    account_id: str = Depends(get_account_id),
    store: LedgerStore = Depends(get_ledger_store),
):
    """Return current credit balance."""
    balance = await store.get_balance(account_id)
    return {"balance": balance, "credits": balance}

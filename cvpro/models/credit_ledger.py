from datetime import datetime

from beanie import Document
from pydantic import Field


class CreditLedgerEntry(Document):
    account_id: str
    amount: int  # positive = credit/refund, negative = debit
    balance_after: int
    reason: str  # starter_grant, purchase, tailor, export, refund:<action>
    reference_id: str | None = None  # payment session id, resume id, etc.
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "credit_ledger"
        indexes = [
            [("account_id", 1), ("created_at", -1)],
        ]

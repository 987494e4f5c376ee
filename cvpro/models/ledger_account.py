from datetime import datetime

from beanie import Document, Indexed
from pydantic import Field


class LedgerAccount(Document):
    """Credit balance per account. Mutated only through conditional updates in MongoLedgerStore."""
    account_id: Indexed(str, unique=True)
    balance: int = 0
    # Payment sessions already credited; grows monotonically
    processed_session_ids: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "ledger_accounts"

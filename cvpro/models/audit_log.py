from datetime import datetime
from typing import Any

from beanie import Document
from pydantic import Field


class AuditLog(Document):
    """Account lifecycle event. Balance movements live in the credit ledger, not here."""

    account_id: str
    event: str  # user_created, user_login, user_logout, email_verified
    method: str | None = None  # google | password
    request_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "account_audit"
        indexes = [[("account_id", 1), ("created_at", -1)]]

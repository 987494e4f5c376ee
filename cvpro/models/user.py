from datetime import datetime

from beanie import Document, Indexed
from pydantic import Field


class User(Document):
    email: Indexed(str, unique=True)
    name: str = ""
    avatar: str | None = None
    # Google sign-in
    google_sub: str | None = None
    # Email + password sign-up
    password_hash: str | None = None
    is_verified: bool = False
    verification_token: str | None = None
    session_version: int = 0
    last_login_at: datetime | None = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def account_id(self) -> str:
        """Ledger account key for this user."""
        return str(self.id)

    class Settings:
        name = "users"
        indexes = [[("verification_token", 1)], [("google_sub", 1)]]

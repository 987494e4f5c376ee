from functools import lru_cache
from typing import Any, List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_DEFAULT_CORS = ["http://localhost:3000", "http://localhost:5173"]


def _parse_cors_origins(v: Any) -> List[str]:
    try:
        if v is None or v == "":
            return _DEFAULT_CORS.copy()
        if isinstance(v, list):
            return [x for x in v if isinstance(x, str) and x.strip()]
        s = str(v).strip()
        if not s:
            return _DEFAULT_CORS.copy()
        if s.startswith("["):
            import json
            out = json.loads(s)
            return [x for x in out if isinstance(x, str) and x.strip()] or _DEFAULT_CORS.copy()
        return [x.strip() for x in s.split(",") if x.strip()] or _DEFAULT_CORS.copy()
    except Exception:
        return _DEFAULT_CORS.copy()


def _parse_credit_packs(v: str | None) -> dict[str, int]:
    """Parse "price_abc:10,price_def:25" into {price_id: credits}; bad entries are skipped."""
    packs: dict[str, int] = {}
    for item in (v or "").split(","):
        price_id, _, credits = item.strip().partition(":")
        if not price_id or not credits.strip().isdigit():
            continue
        amount = int(credits)
        if amount > 0:
            packs[price_id.strip()] = amount
    return packs


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # App
    env: str = Field(default="development", description="ENV")
    debug: bool = Field(default=False, description="DEBUG")
    secret_key: str = Field(default="change-me-in-production-min-32-chars")
    client_url: str = Field(default="http://localhost:3000", alias="CLIENT_URL")

    # MongoDB
    mongodb_uri: str = Field(default="mongodb://localhost:27017", alias="MONGODB_URI")
    mongodb_db_name: str = Field(default="cvpro", alias="MONGODB_DB_NAME")

    # Redis (ARQ)
    redis_url: str = Field(default="redis://localhost:6379/0", alias="REDIS_URL")

    # Ledger: "mongo" or "memory"
    ledger_backend: str = Field(default="mongo", alias="LEDGER_BACKEND")

    # Google sign-in
    google_client_id: str = Field(default="", alias="GOOGLE_CLIENT_ID")

    # Stripe
    stripe_secret_key: str = Field(default="", alias="STRIPE_SECRET_KEY")
    stripe_webhook_secret: str = Field(default="", alias="STRIPE_WEBHOOK_SECRET")
    stripe_webhook_tolerance: int = Field(default=300, alias="STRIPE_WEBHOOK_TOLERANCE")
    credit_packs_raw: str = Field(
        default="",
        alias="CREDIT_PACKS",
        description="Comma-separated price_id:credits",
    )

    @property
    def credit_packs(self) -> dict[str, int]:
        return _parse_credit_packs(self.credit_packs_raw)

    # Payment provider lookups (verify-session)
    payment_lookup_max_attempts: int = Field(default=3, alias="PAYMENT_LOOKUP_MAX_ATTEMPTS")
    payment_lookup_backoff_seconds: float = Field(default=0.5, alias="PAYMENT_LOOKUP_BACKOFF_SECONDS")

    # OpenAI
    openai_api_key: str = Field(default="", alias="OPENAI_API_KEY")
    openai_model: str = Field(default="gpt-4o-mini", alias="OPENAI_MODEL")
    openai_timeout: float = Field(default=60.0, alias="OPENAI_TIMEOUT")
    llm_max_concurrency: int = Field(default=5, alias="LLM_MAX_CONCURRENCY")
    llm_max_attempts: int = Field(default=3, alias="LLM_MAX_ATTEMPTS")
    llm_backoff_seconds: float = Field(default=1.0, alias="LLM_BACKOFF_SECONDS")

    # Reconciliation poller defaults (client side)
    poll_interval_seconds: float = Field(default=1.0, alias="POLL_INTERVAL_SECONDS")
    poll_max_attempts: int = Field(default=10, alias="POLL_MAX_ATTEMPTS")

    # SMTP
    smtp_host: str = Field(default="smtp.gmail.com", alias="SMTP_HOST")
    smtp_port: int = Field(default=587, alias="SMTP_PORT")
    smtp_username: str = Field(default="", alias="SMTP_USERNAME")
    smtp_password: str = Field(default="", alias="SMTP_PASSWORD")
    mail_from: str = Field(default="noreply@oneclickcv.com", alias="MAIL_FROM")

    # Sentry
    sentry_dsn: str | None = Field(default=None, alias="SENTRY_DSN")

    # CORS: env as string, exposed as list
    cors_origins_raw: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        alias="CORS_ORIGINS",
        description="Comma-separated or JSON list",
    )

    @property
    def cors_origins(self) -> List[str]:
        return _parse_cors_origins(getattr(self, "cors_origins_raw", None))

    # Pricing (credits)
    starter_credits: int = Field(default=1, ge=0, alias="STARTER_CREDITS")
    credits_per_tailor: int = Field(default=1, ge=1, alias="CREDITS_PER_TAILOR")
    credits_per_export: int = Field(default=1, ge=1, alias="CREDITS_PER_EXPORT")


@lru_cache
def get_settings() -> Settings:
    return Settings()

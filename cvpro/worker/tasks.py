"""ARQ job definitions: notification delivery."""

import uuid
from typing import Any
from urllib.parse import urlparse

from arq.connections import RedisSettings

from cvpro.core.config import get_settings
from cvpro.core.logging import get_logger

log = get_logger(__name__)


async def _run_with_dlq(job_name: str, job_id: str | None, args: list[Any], coro) -> None:
    """Run coroutine; on exception persist to FailedJob then re-raise."""
    try:
        await coro
    except Exception as e:
        from cvpro.models.failed_job import FailedJob
        fid = job_id or str(uuid.uuid4())
        await FailedJob(job_name=job_name, job_id=fid, args=args, reason=str(e)[:2000]).insert()
        log.exception("job_failed", job=job_name, job_id=fid, reason=str(e))
        raise


def _job_id(ctx: dict[str, Any]) -> str | None:
    return ctx.get("job_id") if isinstance(ctx.get("job_id"), str) else None


async def send_payment_confirmation(ctx: dict[str, Any], account_id: str, credit_amount: int, balance: int) -> None:
    """Email the account owner that a purchase was credited."""

    async def _run() -> None:
        from beanie import PydanticObjectId
        from cvpro.models.user import User
        from cvpro.services import mailer

        user = await User.get(PydanticObjectId(account_id))
        if not user:
            log.warning("payment_confirmation_no_user", account_id=account_id)
            return
        subject, html, text = mailer.payment_confirmation(user.name, credit_amount, balance)
        await mailer.send_email(user.email, subject, html, text)

    await _run_with_dlq(
        "send_payment_confirmation", _job_id(ctx), [account_id, credit_amount, balance], _run()
    )


async def send_verification_email(ctx: dict[str, Any], user_id: str) -> None:
    """Email the sign-up verification link."""

    async def _run() -> None:
        from beanie import PydanticObjectId
        from cvpro.models.user import User
        from cvpro.services import mailer

        user = await User.get(PydanticObjectId(user_id))
        if not user or user.is_verified or not user.verification_token:
            return
        url = f"{get_settings().client_url.rstrip('/')}/verify?token={user.verification_token}"
        subject, html, text = mailer.verification(url)
        await mailer.send_email(user.email, subject, html, text)

    await _run_with_dlq("send_verification_email", _job_id(ctx), [user_id], _run())


async def startup(ctx: dict) -> None:
    from cvpro.core.logging import configure_logging
    from cvpro.db.init import init_db
    configure_logging(debug=get_settings().debug)
    await init_db()


async def shutdown(ctx: dict) -> None:
    pass


def get_redis_settings() -> RedisSettings:
    s = get_settings()
    u = urlparse(s.redis_url)
    return RedisSettings(
        host=u.hostname or "localhost",
        port=u.port or 6379,
        password=u.password,
        database=int(u.path.lstrip("/")) if u.path.lstrip("/") else 0,
    )

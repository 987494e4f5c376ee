"""Fire-and-forget notifications: enqueue an ARQ job, log (never raise) on failure."""

from abc import ABC, abstractmethod
from functools import lru_cache

from arq import create_pool

from cvpro.core.logging import get_logger
from cvpro.worker.tasks import get_redis_settings

log = get_logger(__name__)


class Notifier(ABC):
    @abstractmethod
    async def payment_confirmed(self, account_id: str, credit_amount: int, balance: int) -> None:
        ...

    @abstractmethod
    async def verification_requested(self, user_id: str) -> None:
        ...


class ArqNotifier(Notifier):
    async def _enqueue(self, job_name: str, *args) -> None:
        try:
            redis = await create_pool(get_redis_settings())
            try:
                await redis.enqueue_job(job_name, *args)
            finally:
                await redis.close()
        except Exception:
            log.exception("notification_enqueue_failed", job=job_name)
            return
        log.info("notification_enqueued", job=job_name)

    async def payment_confirmed(self, account_id: str, credit_amount: int, balance: int) -> None:
        await self._enqueue("send_payment_confirmation", account_id, credit_amount, balance)

    async def verification_requested(self, user_id: str) -> None:
        await self._enqueue("send_verification_email", user_id)


@lru_cache
def get_notifier() -> Notifier:
    return ArqNotifier()

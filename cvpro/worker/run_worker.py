"""Run ARQ worker. Usage: python -m cvpro.worker.run_worker"""

from arq import run_worker

from cvpro.worker.tasks import get_redis_settings, send_payment_confirmation, send_verification_email, shutdown, startup


class WorkerSettings:
    functions = [send_payment_confirmation, send_verification_email]
    on_startup = startup
    on_shutdown = shutdown
    redis_settings = get_redis_settings()
    max_tries = 3


def main() -> None:
    run_worker(WorkerSettings)


if __name__ == "__main__":
    main()

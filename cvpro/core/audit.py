"""Audit trail for account lifecycle events (sign-up, login, verification)."""

from typing import Any

import structlog

from cvpro.core.logging import get_logger
from cvpro.models.audit_log import AuditLog

log = get_logger(__name__)


async def log_event(
    account_id: str,
    event: str,
    method: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> None:
    request_id = structlog.contextvars.get_contextvars().get("request_id")
    await AuditLog(
        account_id=account_id,
        event=event,
        method=method,
        request_id=request_id,
        metadata=metadata or {},
    ).insert()
    log.info(event, account_id=account_id, method=method)

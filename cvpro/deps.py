"""Shared FastAPI dependencies."""

from beanie import PydanticObjectId
from bson.errors import InvalidId
from fastapi import Depends, Request

from cvpro.core.exceptions import UnauthorizedError
from cvpro.core.logging import bind_account_id
from cvpro.core.security import load_session_cookie
from cvpro.ledger.base import LedgerStore, get_ledger_store
from cvpro.models.user import User
from cvpro.services.entitlement import EntitlementGate

SESSION_COOKIE_NAME = "cvpro_session"
ACCOUNT_HEADER = "X-User-Id"


def _identity(request: Request) -> tuple[str, dict | None]:
    """Account id from the X-User-Id header, else from the signed session cookie."""
    header = (request.headers.get(ACCOUNT_HEADER) or "").strip()
    if header:
        return header, None
    cookie = request.cookies.get(SESSION_COOKIE_NAME)
    if not cookie:
        raise UnauthorizedError("Not authenticated")
    payload = load_session_cookie(cookie)
    if not payload or not payload.get("user_id"):
        raise UnauthorizedError("Invalid or expired session")
    return payload["user_id"], payload


async def _get_user(account_id: str) -> User | None:
    try:
        return await User.get(PydanticObjectId(account_id))
    except InvalidId:
        return None


async def _session_user(account_id: str, payload: dict) -> User:
    """User behind a session cookie; cookies issued before the last logout are rejected."""
    user = await _get_user(account_id)
    if not user:
        raise UnauthorizedError("User not found")
    if payload.get("session_version") != user.session_version:
        raise UnauthorizedError("Session invalidated")
    return user


async def get_account_id(request: Request, store: LedgerStore = Depends(get_ledger_store)) -> str:
    """Dependency: identity of a ledger-touching request; the account must exist."""
    account_id, payload = _identity(request)
    if payload is not None:
        await _session_user(account_id, payload)
    if await store.get_balance(account_id) is None:
        raise UnauthorizedError("Unknown account")
    bind_account_id(account_id)
    return account_id


async def get_current_user(request: Request) -> User:
    """Dependency: full user record for profile and resume routes."""
    account_id, payload = _identity(request)
    if payload is not None:
        user = await _session_user(account_id, payload)
    else:
        user = await _get_user(account_id)
        if not user:
            raise UnauthorizedError("User not found")
    bind_account_id(account_id)
    return user


def get_entitlement_gate(store: LedgerStore = Depends(get_ledger_store)) -> EntitlementGate:
    return EntitlementGate(store)

from datetime import datetime

from google.auth.transport import requests as google_requests
from google.oauth2 import id_token
from pymongo.errors import DuplicateKeyError

from cvpro.core.audit import log_event
from cvpro.core.config import get_settings
from cvpro.core.exceptions import BadRequestError, ConflictError, UnauthorizedError
from cvpro.core.security import generate_verification_token, hash_password, verify_password
from cvpro.ledger.base import LedgerStore
from cvpro.models.user import User
from cvpro.services.notifications import Notifier


def verify_google_id_token(token: str) -> dict:
    """Verify Google ID token; return decoded claims (sub, email, name, picture, etc.)."""
    settings = get_settings()
    try:
        return id_token.verify_oauth2_token(token, google_requests.Request(), settings.google_client_id)
    except ValueError as e:
        raise UnauthorizedError(f"Invalid Google token: {e}") from e


async def open_ledger_account(store: LedgerStore, user: User) -> int:
    """Account exists from first sign-in on; the starter grant is applied only once."""
    return await store.open_account(user.account_id, get_settings().starter_credits)


async def upsert_user_from_google(store: LedgerStore, claims: dict) -> tuple[User, int]:
    google_sub = claims.get("sub")
    email = (claims.get("email") or "").lower()
    if not google_sub or not email:
        raise BadRequestError("Missing sub or email in token")
    now = datetime.utcnow()
    user = await User.find_one(User.email == email)
    if user:
        user.google_sub = google_sub
        user.name = claims.get("name") or user.name
        user.avatar = claims.get("picture") or user.avatar
        user.is_verified = True
        user.last_login_at = now
        user.updated_at = now
        await user.save()
        await log_event(user.account_id, "user_login", "google")
    else:
        user = User(
            email=email,
            google_sub=google_sub,
            name=claims.get("name") or "",
            avatar=claims.get("picture"),
            is_verified=True,
            last_login_at=now,
        )
        await user.insert()
        await log_event(user.account_id, "user_created", "google")
    balance = await open_ledger_account(store, user)
    return user, balance


async def register(store: LedgerStore, notifier: Notifier, email: str, password: str, name: str = "") -> User:
    email = email.strip().lower()
    if await User.find_one(User.email == email):
        raise ConflictError("Email already used")
    user = User(
        email=email,
        name=name,
        password_hash=hash_password(password),
        verification_token=generate_verification_token(),
        is_verified=False,
    )
    try:
        await user.insert()
    except DuplicateKeyError as e:
        raise ConflictError("Email already used") from e
    await open_ledger_account(store, user)
    await log_event(user.account_id, "user_created", "password")
    await notifier.verification_requested(str(user.id))
    return user


async def verify_email(token: str) -> User:
    if not token:
        raise BadRequestError("Invalid token")
    user = await User.find_one(User.verification_token == token)
    if not user:
        raise BadRequestError("Invalid token")
    user.is_verified = True
    user.verification_token = None
    user.updated_at = datetime.utcnow()
    await user.save()
    await log_event(user.account_id, "email_verified")
    return user


async def login(store: LedgerStore, email: str, password: str) -> tuple[User, int]:
    user = await User.find_one(User.email == email.strip().lower())
    if not user or not verify_password(password, user.password_hash):
        raise UnauthorizedError("Incorrect email or password")
    if not user.is_verified:
        raise UnauthorizedError("Email not verified")
    user.last_login_at = datetime.utcnow()
    await user.save()
    await log_event(user.account_id, "user_login", "password")
    balance = await open_ledger_account(store, user)
    return user, balance


async def logout(user: User) -> None:
    """Invalidate every session cookie issued to this user so far."""
    user.session_version += 1
    user.updated_at = datetime.utcnow()
    await user.save()
    await log_event(user.account_id, "user_logout")


def session_payload_for_user(user: User) -> dict:
    return {"user_id": str(user.id), "session_version": user.session_version}


def public_user(user: User, balance: int) -> dict:
    return {
        "id": str(user.id),
        "email": user.email,
        "name": user.name,
        "avatar": user.avatar,
        "credits": balance,
    }

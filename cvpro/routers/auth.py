from fastapi import APIRouter, Depends, Query, Response
from fastapi.responses import RedirectResponse
from pydantic import BaseModel, EmailStr, Field

from cvpro.core.config import get_settings
from cvpro.core.security import SESSION_MAX_AGE, create_session_cookie
from cvpro.deps import SESSION_COOKIE_NAME, get_current_user
from cvpro.ledger.base import LedgerStore, get_ledger_store
from cvpro.models.user import User
from cvpro.services import users as user_service
from cvpro.services.notifications import Notifier, get_notifier

router = APIRouter()


class GoogleAuthRequest(BaseModel):
    id_token: str = Field(..., alias="token")

    model_config = {"populate_by_name": True}


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=72)
    name: str = ""


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


def _set_session(response: Response, user: User) -> None:
    settings = get_settings()
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=create_session_cookie(user_service.session_payload_for_user(user)),
        max_age=SESSION_MAX_AGE,
        httponly=True,
        secure=settings.env == "production",
        samesite="lax",
        path="/",
    )


@router.post("/google")
async def auth_google(body: GoogleAuthRequest, response: Response, store: LedgerStore = Depends(get_ledger_store)):
    """Exchange Google ID token for session; set httpOnly cookie."""
    claims = user_service.verify_google_id_token(body.id_token)
    user, balance = await user_service.upsert_user_from_google(store, claims)
    _set_session(response, user)
    return user_service.public_user(user, balance)


@router.post("/register")
async def auth_register(
    body: RegisterRequest,
    store: LedgerStore = Depends(get_ledger_store),
    notifier: Notifier = Depends(get_notifier),
):
    await user_service.register(store, notifier, body.email, body.password, body.name)
    return {"message": "Verification email sent"}


@router.get("/verify")
async def auth_verify(token: str = Query("")):
    """Email verification link target; redirects back to the web client."""
    await user_service.verify_email(token)
    return RedirectResponse(f"{get_settings().client_url.rstrip('/')}/verified", status_code=303)


@router.post("/login")
async def auth_login(body: LoginRequest, response: Response, store: LedgerStore = Depends(get_ledger_store)):
    user, balance = await user_service.login(store, body.email, body.password)
    _set_session(response, user)
    return user_service.public_user(user, balance)


@router.get("/me")
async def auth_me(user: User = Depends(get_current_user), store: LedgerStore = Depends(get_ledger_store)):
    """Return current user with live balance."""
    balance = await store.get_balance(user.account_id)
    return user_service.public_user(user, balance or 0)


@router.post("/logout")
async def auth_logout(response: Response, user: User = Depends(get_current_user)):
    """Sign out everywhere: bump the session version and clear the cookie."""
    await user_service.logout(user)
    response.delete_cookie(SESSION_COOKIE_NAME, path="/")
    return {"status": "logged_out"}

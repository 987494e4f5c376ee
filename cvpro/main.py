import time
import uuid

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from cvpro.core.config import get_settings
from cvpro.core.exceptions import (
    AppError,
    app_exception_handler,
    generic_exception_handler,
    validation_exception_handler,
)
from cvpro.core.logging import bind_request_id, configure_logging, get_logger
from cvpro.db.init import init_db
from cvpro.routers import account, ai, auth, credits, payments, resumes

settings = get_settings()
configure_logging(debug=settings.debug)
log = get_logger(__name__)

QUIET_PATHS = ("/health",)

app = FastAPI(title="OneClickCV Pro API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)


@app.middleware("http")
async def request_context(request: Request, call_next):
    """Request id on every log line and response; one access log line per request."""
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    request.state.request_id = request_id
    bind_request_id(request_id)
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
    emit = log.debug if request.url.path in QUIET_PATHS else log.info
    emit(
        "request",
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=elapsed_ms,
    )
    response.headers["X-Request-ID"] = request_id
    return response


app.add_exception_handler(AppError, app_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)

for router, prefix in (
    (auth.router, "auth"),
    (account.router, "account"),
    (credits.router, "credits"),
    (payments.router, "payments"),
    (resumes.router, "resumes"),
    (ai.router, "ai"),
):
    app.include_router(router, prefix=f"/v1/{prefix}", tags=[prefix])


@app.on_event("startup")
async def startup():
    if settings.sentry_dsn:
        import sentry_sdk

        sentry_sdk.init(dsn=settings.sentry_dsn, environment=settings.env, traces_sample_rate=0.1)
    log.info(
        "startup",
        env=settings.env,
        ledger_backend=settings.ledger_backend,
        sentry=bool(settings.sentry_dsn),
        credit_packs=len(settings.credit_packs),
    )
    if settings.ledger_backend == "memory":
        log.warning("memory_ledger", msg="balances are lost on restart")
    await init_db()


@app.get("/health")
async def health():
    return {"status": "ok"}

from typing import Any

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import ORJSONResponse


class AppError(Exception):
    """Base application error with consistent schema."""

    def __init__(
        self,
        message: str,
        code: str = "ERROR",
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class UnauthorizedError(AppError):
    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message, code="UNAUTHORIZED", status_code=status.HTTP_401_UNAUTHORIZED)


class ForbiddenError(AppError):
    def __init__(self, message: str = "Forbidden"):
        super().__init__(message, code="FORBIDDEN", status_code=status.HTTP_403_FORBIDDEN)


class NotFoundError(AppError):
    def __init__(self, message: str = "Not found"):
        super().__init__(message, code="NOT_FOUND", status_code=status.HTTP_404_NOT_FOUND)


class ConflictError(AppError):
    def __init__(self, message: str = "Conflict", details: dict[str, Any] | None = None):
        super().__init__(message, code="CONFLICT", status_code=status.HTTP_409_CONFLICT, details=details)


class BadRequestError(AppError):
    def __init__(self, message: str = "Bad request", details: dict[str, Any] | None = None):
        super().__init__(message, code="BAD_REQUEST", status_code=status.HTTP_400_BAD_REQUEST, details=details)


class InsufficientFundsError(AppError):
    """Debit rejected: balance below cost. Callers should route the user to a top-up."""

    def __init__(self, balance: int, required: int):
        self.balance = balance
        self.required = required
        super().__init__(
            "Not enough credits",
            code="INSUFFICIENT_FUNDS",
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            details={"balance": balance, "required": required, "upsell": "pricing"},
        )


class WebhookSignatureError(AppError):
    def __init__(self, message: str = "Invalid webhook signature"):
        super().__init__(message, code="INVALID_SIGNATURE", status_code=status.HTTP_400_BAD_REQUEST)


class ProviderUnverifiableError(AppError):
    """Payment provider could not confirm a session; nothing was credited."""

    def __init__(self, message: str = "Payment provider unavailable", retryable: bool = True):
        super().__init__(
            message,
            code="PROVIDER_UNVERIFIABLE",
            status_code=status.HTTP_502_BAD_GATEWAY,
            details={"retryable": retryable},
        )


class WorkFailedError(AppError):
    """Failure of a unit of paid work (the debit is refunded by the entitlement gate)."""


class AIUnavailableError(WorkFailedError):
    def __init__(self, message: str = "AI service is busy, please try again"):
        super().__init__(message, code="AI_UNAVAILABLE", status_code=status.HTTP_503_SERVICE_UNAVAILABLE)


class AIQuotaExceededError(WorkFailedError):
    def __init__(self, message: str = "AI quota reached. Please try again tomorrow or contact support."):
        super().__init__(message, code="AI_QUOTA_EXCEEDED", status_code=status.HTTP_503_SERVICE_UNAVAILABLE)


class AIResponseError(WorkFailedError):
    def __init__(self, message: str = "AI returned an unusable response, please try again"):
        super().__init__(message, code="AI_BAD_RESPONSE", status_code=status.HTTP_502_BAD_GATEWAY)


def _error_body(request: Request, message: str, code: str, details: dict[str, Any]) -> dict[str, Any]:
    body: dict[str, Any] = {"error": {"message": message, "code": code, "details": details}}
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        body["request_id"] = request_id
    return body


def error_response(request: Request, exc: AppError) -> ORJSONResponse:
    headers = None
    if exc.status_code == status.HTTP_503_SERVICE_UNAVAILABLE and not isinstance(exc, AIQuotaExceededError):
        headers = {"Retry-After": "5"}
    return ORJSONResponse(
        status_code=exc.status_code,
        content=_error_body(request, exc.message, exc.code, exc.details),
        headers=headers,
    )


async def app_exception_handler(request: Request, exc: AppError) -> ORJSONResponse:
    return error_response(request, exc)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> ORJSONResponse:
    return ORJSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=_error_body(request, "Validation error", "VALIDATION_ERROR", {"errors": exc.errors()}),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> ORJSONResponse:
    import sentry_sdk

    from cvpro.core.logging import get_logger

    get_logger(__name__).exception("unhandled_exception", path=request.url.path, exc_info=exc)
    sentry_sdk.capture_exception(exc)
    return ORJSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body(request, "Internal server error", "INTERNAL_ERROR", {}),
    )

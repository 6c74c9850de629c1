# app/core/errors.py
"""
Domain error taxonomy and the FastAPI handlers that render it.

Every error carries a stable machine-readable ``code`` and is rendered as:

    {"success": false, "error": {"code": "...", "message": "..."}}
"""
import logging
import re

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Base class for every error surfaced to API clients."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    default_code: str = "BAD_REQUEST"

    def __init__(
        self,
        message: str,
        code: str | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        if status_code is not None:
            self.status_code = status_code


class ValidationError(StoreError):
    """Malformed or missing input."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "VALIDATION_ERROR"


class NotFoundError(StoreError):
    status_code = status.HTTP_404_NOT_FOUND
    default_code = "NOT_FOUND"


class ConflictError(StoreError):
    """The request is well-formed but conflicts with current stock/catalog state."""

    status_code = status.HTTP_409_CONFLICT
    default_code = "CONFLICT"


class StateError(StoreError):
    """Illegal status value or transition."""

    status_code = status.HTTP_409_CONFLICT
    default_code = "STATE_ERROR"


class AuthError(StoreError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_code = "AUTH_REQUIRED"


# Request-body / path fields whose validation failures have a dedicated code.
FIELD_ERROR_CODES: dict[str, str] = {
    "quantity": "INVALID_QUANTITY",
    "productId": "MISSING_PRODUCT_ID",
    "product_id": "INVALID_PRODUCT_ID",
    "order_id": "INVALID_ORDER_ID",
    "guestSessionId": "MISSING_SESSION_ID",
    "status": "INVALID_STATUS",
    "paymentStatus": "INVALID_PAYMENT_STATUS",
    "trackingNumber": "MISSING_TRACKING_NUMBER",
}

# Top-level body fields of the checkout payload
ORDER_BODY_FIELDS = {"shippingAddress", "paymentMethod", "items"}

# Request path -> code when the whole JSON body is missing
MISSING_BODY_CODES: list[tuple[re.Pattern, str]] = [
    (re.compile(r"/cart/items$"), "MISSING_PRODUCT_ID"),
    (re.compile(r"/cart/items/[^/]+$"), "INVALID_QUANTITY"),
    (re.compile(r"/cart/merge$"), "MISSING_SESSION_ID"),
    (re.compile(r"/orders$"), "INVALID_ORDER_DATA"),
    (re.compile(r"/orders/[^/]+/status$"), "INVALID_STATUS"),
    (re.compile(r"/orders/[^/]+/payment-status$"), "INVALID_PAYMENT_STATUS"),
    (re.compile(r"/orders/[^/]+/tracking$"), "MISSING_TRACKING_NUMBER"),
]


def error_body(code: str, message: str) -> dict:
    return {"success": False, "error": {"code": code, "message": message}}


def code_for_validation_error(
    exc: RequestValidationError,
    path: str = "",
) -> tuple[str, str]:
    """
    Pick a stable (code, message) pair for a pydantic request validation failure.

    Only the first reported error is considered. A missing body is
    resolved by request path.
    """
    errors = exc.errors()
    if not errors:
        return "VALIDATION_ERROR", "Invalid request"

    first = errors[0]
    loc = [str(part) for part in first.get("loc", ())]
    message = first.get("msg", "Invalid request")

    if loc == ["body"]:
        for pattern, code in MISSING_BODY_CODES:
            if pattern.search(path.rstrip("/")):
                return code, "Request body is required"

    if len(loc) >= 2 and loc[0] == "body" and loc[1] in ORDER_BODY_FIELDS:
        return "INVALID_ORDER_DATA", f"Invalid order data at {'.'.join(loc[1:])}: {message}"

    field = loc[-1] if loc else ""
    code = FIELD_ERROR_CODES.get(field, "VALIDATION_ERROR")
    return code, message


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the error-envelope handlers to the application."""

    @app.exception_handler(StoreError)
    async def handle_store_error(request: Request, exc: StoreError):
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(exc.code, exc.message),
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        code, message = code_for_validation_error(exc, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=error_body(code, message),
        )

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        code = "NOT_FOUND" if exc.status_code == 404 else "HTTP_ERROR"
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(code, str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_body("INTERNAL_ERROR", "Internal server error"),
        )

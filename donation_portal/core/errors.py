"""
Typed application errors and the single cross-cutting handler that maps them
to the response envelope:

    {"error": {"message": ..., "code": ..., "timestamp": ...[, "fields": [...]]}}
"""
from datetime import datetime, timezone
from typing import Dict, List, Optional
import json

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException
import structlog

from donation_portal.core.config import get_settings

logger = structlog.get_logger(__name__)


class AppError(Exception):
    """Base class for errors that carry their own HTTP status and code"""

    status_code = 500
    code = "INTERNAL_ERROR"
    default_message = "An unexpected error occurred"

    def __init__(self, message: Optional[str] = None, fields: Optional[List[Dict[str, str]]] = None):
        self.message = message or self.default_message
        self.fields = fields
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    code = "VALIDATION_ERROR"
    default_message = "Validation failed"


class InvalidIdentifierError(ValidationError):
    code = "INVALID_ID"
    default_message = "Invalid ID format"


class AuthenticationError(AppError):
    status_code = 401
    code = "AUTHENTICATION_ERROR"
    default_message = "Authentication failed"


class AuthorizationError(AppError):
    status_code = 403
    code = "AUTHORIZATION_ERROR"
    default_message = "You do not have permission to access this resource"


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, resource: str = "Resource"):
        super().__init__(f"{resource} not found")


class ConflictError(AppError):
    status_code = 409
    code = "CONFLICT_ERROR"
    default_message = "Resource already exists"


class PaymentError(AppError):
    status_code = 400
    code = "PAYMENT_ERROR"
    default_message = "Payment processing failed"


class BadGatewayError(AppError):
    status_code = 502
    code = "BAD_GATEWAY"
    default_message = "Upstream service returned an invalid response"


class ServiceUnavailableError(AppError):
    status_code = 503
    code = "SERVICE_UNAVAILABLE"
    default_message = "Service temporarily unavailable"


def error_body(message: str, code: str, fields: Optional[List[Dict[str, str]]] = None) -> Dict:
    """Build the error envelope"""
    error = {
        "message": message,
        "code": code,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if fields:
        error["fields"] = fields
    return {"error": error}


async def remember_request_body(request: Request):
    """App-wide dependency: keep the parsed JSON body on request.state for error logs"""
    raw = await request.body()
    if not raw:
        return
    try:
        request.state.body = json.loads(raw)
    except ValueError:
        request.state.body = None


async def _log_error(request: Request, exc: Exception, status_code: int):
    """Log the failing request with enough context to reproduce it"""
    body = getattr(request.state, "body", None)
    if body is None and isinstance(exc, RequestValidationError):
        body = exc.body

    if isinstance(body, dict):
        body = {k: ("***" if "password" in k.lower() else v) for k, v in body.items()}

    user = getattr(request.state, "user", None)
    log = logger.error if status_code >= 500 else logger.warning
    log(
        "Request failed",
        error=str(exc),
        error_type=type(exc).__name__,
        status_code=status_code,
        path=request.url.path,
        method=request.method,
        user_id=user.get("userId") if user else "anonymous",
        timestamp=datetime.now(timezone.utc).isoformat(),
        body=body,
    )


def register_exception_handlers(app: FastAPI):
    """Install one handler per error family"""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        await _log_error(request, exc, exc.status_code)
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(exc.message, exc.code, exc.fields),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        fields = []
        for err in exc.errors():
            location = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
            fields.append({"field": ".".join(location) or "body", "message": err.get("msg", "Invalid value")})
        await _log_error(request, exc, 400)
        return JSONResponse(
            status_code=400,
            content=error_body("Validation failed", ValidationError.code, fields),
        )

    @app.exception_handler(IntegrityError)
    async def integrity_error_handler(request: Request, exc: IntegrityError):
        await _log_error(request, exc, 409)
        return JSONResponse(
            status_code=409,
            content=error_body("A record with this information already exists", "DUPLICATE_ERROR"),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        await _log_error(request, exc, exc.status_code)
        code = "ROUTE_NOT_FOUND" if exc.status_code == 404 else "HTTP_ERROR"
        message = f"Route {request.url.path} not found" if exc.status_code == 404 else str(exc.detail)
        return JSONResponse(status_code=exc.status_code, content=error_body(message, code))

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Global exception handler"""
        await _log_error(request, exc, 500)
        settings = get_settings()
        message = str(exc) if settings.is_development else AppError.default_message
        return JSONResponse(status_code=500, content=error_body(message, AppError.code))

from typing import Any, Dict

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException

from space_together.core.logging import logger


SCHOOL_TOKEN_REQUIRED_MESSAGE = "Invalid or missing school token 😣"


class BaseAPIError(Exception):
    """Base exception class for API errors"""
    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: str = "INTERNAL_ERROR"
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        super().__init__(message)


class ConfigMissing(BaseAPIError):
    """Raised when a required setting is absent"""
    def __init__(self, message: str = "Configuration missing"):
        super().__init__(
            message=message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error_code="CONFIG_MISSING"
        )


class UpstreamUnavailable(BaseAPIError):
    """Raised when the database client cannot be constructed or reached"""
    def __init__(self, message: str = "Database unavailable"):
        super().__init__(
            message=message,
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            error_code="UPSTREAM_UNAVAILABLE"
        )


class AuthenticationError(BaseAPIError):
    """Base class for authentication-related errors"""
    def __init__(
        self,
        message: str = "Authentication failed",
        error_code: str = "AUTH_ERROR"
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_401_UNAUTHORIZED,
            error_code=error_code
        )


class InvalidCredential(AuthenticationError):
    """Token malformed, wrongly signed or expired"""
    def __init__(self, message: str = "Invalid token", error_code: str = "INVALID_CREDENTIAL"):
        super().__init__(message=message, error_code=error_code)


class MalformedToken(InvalidCredential):
    def __init__(self, message: str = "Malformed token"):
        super().__init__(message=message, error_code="MALFORMED_TOKEN")


class InvalidSignature(InvalidCredential):
    def __init__(self, message: str = "Invalid token signature"):
        super().__init__(message=message, error_code="INVALID_SIGNATURE")


class TokenExpired(InvalidCredential):
    def __init__(self, message: str = "Token has expired"):
        super().__init__(message=message, error_code="TOKEN_EXPIRED")


class InvalidCredentialsException(AuthenticationError):
    """Raised when user credentials are invalid"""
    def __init__(self, message: str = "Invalid email or password"):
        super().__init__(message=message, error_code="INVALID_CREDENTIALS")


class MissingCredential(AuthenticationError):
    """Raised when a route requires a credential that is absent"""
    def __init__(self, message: str = "Unauthorized", error_code: str = "MISSING_CREDENTIAL"):
        super().__init__(message=message, error_code=error_code)


class SchoolTokenRequired(MissingCredential):
    def __init__(self, message: str = SCHOOL_TOKEN_REQUIRED_MESSAGE):
        super().__init__(message=message, error_code="SCHOOL_TOKEN_REQUIRED")


class PermissionDenied(BaseAPIError):
    """Raised when user doesn't have required permissions"""
    def __init__(self, message: str = "Permission denied"):
        super().__init__(
            message=message,
            status_code=status.HTTP_403_FORBIDDEN,
            error_code="PERMISSION_DENIED"
        )


class TenantRequired(BaseAPIError):
    """Raised when a school-scoped route is reached without a tenant"""
    def __init__(self, message: str = "School context required"):
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code="TENANT_REQUIRED"
        )


class ValidationError(BaseAPIError):
    """Raised when input validation fails"""
    def __init__(self, message: str = "Validation error"):
        super().__init__(
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            error_code="VALIDATION_ERROR"
        )


class BadRequestError(BaseAPIError):
    def __init__(self, message: str = "Bad request"):
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code="BAD_REQUEST"
        )


class NotFoundError(BaseAPIError):
    """Raised when a requested resource is not found"""
    def __init__(self, message: str = "Resource not found"):
        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            error_code="NOT_FOUND"
        )


class ConflictError(BaseAPIError):
    """Raised when attempting to create a duplicate resource"""
    def __init__(self, message: str = "Resource already exists"):
        super().__init__(
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            error_code="CONFLICT"
        )


def get_error_message(error: Exception, default_message: str = "An unexpected error occurred") -> Dict[str, Any]:
    """Render an exception as the ``{"message": ...}`` body every error response uses."""
    if isinstance(error, BaseAPIError):
        return {"message": error.message}
    if isinstance(error, StarletteHTTPException):
        detail = error.detail
        if isinstance(detail, dict) and "message" in detail:
            return {"message": str(detail["message"])}
        return {"message": str(detail)}
    if isinstance(error, RequestValidationError):
        errors = error.errors()
        if errors:
            first = errors[0]
            location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
            text = first.get("msg", "Validation error")
            return {"message": f"{location}: {text}" if location else text}
        return {"message": "Validation error"}
    return {"message": default_message}


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(BaseAPIError)
    async def api_error_handler(request: Request, exc: BaseAPIError):
        if exc.status_code >= 500:
            logger.error(f"{exc.error_code} on {request.url.path}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=get_error_message(exc))

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content=get_error_message(exc),
            headers=getattr(exc, "headers", None)
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=get_error_message(exc)
        )

    @app.exception_handler(PyMongoError)
    async def database_error_handler(request: Request, exc: PyMongoError):
        logger.error(f"Database error on {request.url.path}: {str(exc)}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"message": "Database error occurred"}
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.url.path}: {str(exc)}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=get_error_message(exc)
        )

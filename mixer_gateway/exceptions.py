"""Gateway exception and RFC 9457 problem+json handlers.

Every error leaving the API uses the application/problem+json content type.
"""

from dataclasses import dataclass

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .error_codes import ErrorCategory, get_error_mapping
from .models import ErrorResponse

# RFC 9457 content type
PROBLEM_JSON_MEDIA_TYPE = "application/problem+json"

_HTTP_TITLES = {
    400: "Bad Request",
    404: "Not Found",
    405: "Method Not Allowed",
    500: "Internal Server Error",
}


@dataclass
class GatewayError(Exception):
    """Application error carrying an ``ErrorCode`` value.

    Attributes:
        error_code: Application error code (e.g., "METER_TARGET_NOT_FOUND")
        message: Human-readable error message
    """

    error_code: str
    message: str

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"


def _error_code_to_type(error_code: str) -> str:
    """METER_TARGET_NOT_FOUND -> /errors/meter-target-not-found"""
    return "/errors/" + error_code.lower().replace("_", "-")


def _problem(
    status: int,
    detail: str,
    error_code: str,
    title: str,
    category: ErrorCategory | None = None,
) -> JSONResponse:
    body = ErrorResponse(
        type=_error_code_to_type(error_code),
        title=title,
        status=status,
        detail=detail,
        error_code=error_code,
        category=category.value if category is not None else None,
    )
    return JSONResponse(
        status_code=status,
        content=body.model_dump(exclude_none=True),
        media_type=PROBLEM_JSON_MEDIA_TYPE,
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register problem+json exception handlers on the FastAPI app."""

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
        mapping = get_error_mapping(exc.error_code)
        return _problem(
            mapping.http_status,
            exc.message,
            exc.error_code,
            mapping.title,
            mapping.category,
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        """Routing errors (unknown path, wrong method) from Starlette."""
        title = _HTTP_TITLES.get(exc.status_code, f"HTTP {exc.status_code}")
        return _problem(
            exc.status_code,
            str(exc.detail),
            f"HTTP_{exc.status_code}",
            title,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = [
            ".".join(str(x) for x in error["loc"]) + f": {error['msg']}"
            for error in exc.errors()
        ]
        return _problem(
            422,
            "; ".join(errors),
            "VALIDATION_ERROR",
            "Validation Error",
            ErrorCategory.VALIDATION,
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        return _problem(
            500,
            "Internal server error",
            "INTERNAL_ERROR",
            "Internal Server Error",
            ErrorCategory.INTERNAL,
        )

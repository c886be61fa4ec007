"""FastAPI exception handlers for converting DonationError to HTTP responses.

Domain errors become a JSON body matching ToolError
(``success``, ``error_code``, ``message``, ``recovery``, ``details``) with a
status code chosen per ErrorCode:

- 400 Bad Request: invalid donation input
- 401 Unauthorized: admin token failures
- 404 Not Found: unknown team
- 500/502: Square configuration or upstream failures
- 503 Service Unavailable: totals storage unavailable

Usage:
    from donations_api.exceptions import register_exception_handlers
    register_exception_handlers(app)
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_401_UNAUTHORIZED,
    HTTP_404_NOT_FOUND,
    HTTP_500_INTERNAL_SERVER_ERROR,
    HTTP_502_BAD_GATEWAY,
    HTTP_503_SERVICE_UNAVAILABLE,
)

from donations.models.errors import DonationError, ErrorCode
from donations.utils.logging import get_logger
from donations_api.models.common import format_validation_errors

logger = get_logger(__name__)

# Map ErrorCode to HTTP status codes
ERROR_CODE_TO_HTTP_STATUS: dict[ErrorCode, int] = {
    # Donation input errors -> 400 Bad Request
    ErrorCode.INVALID_AMOUNT: HTTP_400_BAD_REQUEST,
    ErrorCode.UNSUPPORTED_CURRENCY: HTTP_400_BAD_REQUEST,
    # Admin token errors -> 401 Unauthorized
    ErrorCode.ADMIN_UNAUTHORIZED: HTTP_401_UNAUTHORIZED,
    # Not found errors -> 404 Not Found
    ErrorCode.TEAM_NOT_FOUND: HTTP_404_NOT_FOUND,
    # Square errors
    ErrorCode.SQUARE_API_ERROR: HTTP_502_BAD_GATEWAY,
    ErrorCode.SQUARE_AUTH_ERROR: HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorCode.SQUARE_NOT_CONFIGURED: HTTP_500_INTERNAL_SERVER_ERROR,
    # Storage errors -> 503 Service Unavailable
    ErrorCode.TOTALS_ERROR: HTTP_503_SERVICE_UNAVAILABLE,
}


def get_http_status_for_error(code: ErrorCode) -> int:
    """Get HTTP status code for an ErrorCode, defaulting to 400."""
    return ERROR_CODE_TO_HTTP_STATUS.get(code, HTTP_400_BAD_REQUEST)


async def donation_error_handler(request: Request, exc: DonationError) -> JSONResponse:
    """Convert a DonationError into a ToolError JSON response.

    An explicit ``status_code`` on the exception (e.g. the status Square
    answered with) takes precedence over the per-code default.

    Args:
        request: The incoming request (unused but required by FastAPI)
        exc: The DonationError exception

    Returns:
        JSONResponse with error details and appropriate status code.
    """
    status_code = exc.status_code or get_http_status_for_error(exc.code)
    tool_error = exc.to_tool_error()

    return JSONResponse(
        status_code=status_code,
        content=tool_error.model_dump(mode="json"),
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Wrap request validation failures in the standard error structure."""
    return JSONResponse(
        status_code=422,
        content=format_validation_errors(list(exc.errors())).model_dump(mode="json"),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions without exposing internal details."""
    logger.exception("Unhandled exception: %s", exc)

    error_response = {
        "success": False,
        "error_code": "ERR_INTERNAL",
        "message": "An unexpected error occurred",
        "recovery": "Please try again later or contact support",
        "details": None,
    }

    return JSONResponse(
        status_code=HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_response,
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI app.

    Args:
        app: The FastAPI application instance.
    """
    app.add_exception_handler(DonationError, donation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, generic_exception_handler)

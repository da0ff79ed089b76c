"""OpenAI-style error models and the reply-error status mapping."""

from pydantic import BaseModel

from chatcore.lib.errors import (
    CATEGORY_AUTHENTICATION,
    CATEGORY_RATE_LIMIT,
    CATEGORY_TIMEOUT,
    CATEGORY_UPSTREAM,
    CATEGORY_VALIDATION,
    ReplyError,
)


class APIError(BaseModel):
    """Error object.

    See: https://platform.openai.com/docs/guides/error-codes
    """

    message: str
    type: str
    param: str | None = None
    code: str | None = None


class ErrorResponse(BaseModel):
    """Error response wrapper."""

    error: APIError


# ============================================================================
# Error Type Constants
# ============================================================================

ERROR_TYPE_INVALID_REQUEST = "invalid_request_error"
ERROR_TYPE_AUTHENTICATION = "authentication_error"
ERROR_TYPE_RATE_LIMIT = "rate_limit_error"
ERROR_TYPE_API_ERROR = "api_error"
ERROR_TYPE_TIMEOUT = "timeout_error"
ERROR_TYPE_SERVER = "server_error"

# Provider auth failures are gateway errors (502), not client errors
REPLY_ERROR_MAPPING = {
    CATEGORY_VALIDATION: (400, ERROR_TYPE_INVALID_REQUEST),
    CATEGORY_TIMEOUT: (504, ERROR_TYPE_TIMEOUT),
    CATEGORY_RATE_LIMIT: (429, ERROR_TYPE_RATE_LIMIT),
    CATEGORY_AUTHENTICATION: (502, ERROR_TYPE_AUTHENTICATION),
    CATEGORY_UPSTREAM: (502, ERROR_TYPE_API_ERROR),
}


# ============================================================================
# Error Factory Functions
# ============================================================================


def create_error_response(
    message: str,
    error_type: str = ERROR_TYPE_API_ERROR,
    param: str | None = None,
    code: str | None = None,
) -> ErrorResponse:
    """Create an error response.

    Args:
        message: Human-readable error message
        error_type: Type of error (see ERROR_TYPE_* constants)
        param: Parameter that caused the error (optional)
        code: Error code (optional)

    Returns:
        ErrorResponse object
    """
    return ErrorResponse(error=APIError(message=message, type=error_type, param=param, code=code))


def invalid_request_error(message: str, param: str | None = None) -> ErrorResponse:
    """Create invalid request error."""
    return create_error_response(message, ERROR_TYPE_INVALID_REQUEST, param=param)


def server_error(message: str = "Internal server error") -> ErrorResponse:
    """Create server error."""
    return create_error_response(message, ERROR_TYPE_SERVER)


def reply_error_response(error: ReplyError) -> tuple[int, ErrorResponse]:
    """HTTP status and body for a classified pipeline error.

    ``code`` carries the error category so adapters can pick an apology.
    """
    status, error_type = REPLY_ERROR_MAPPING.get(error.category, (502, ERROR_TYPE_API_ERROR))
    return status, create_error_response(error.message, error_type, code=error.category)

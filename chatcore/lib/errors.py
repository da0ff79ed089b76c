"""Error taxonomy for the reply pipeline.

Platform adapters pick a user-facing apology from ``category``; the pipeline
itself never produces localized error text.
"""

# Error categories (machine-readable)
CATEGORY_VALIDATION = "validation_error"
CATEGORY_TIMEOUT = "timeout_error"
CATEGORY_RATE_LIMIT = "rate_limit_error"
CATEGORY_AUTHENTICATION = "authentication_error"
CATEGORY_UPSTREAM = "upstream_error"
CATEGORY_MARKET_DATA = "market_data_unavailable"


class ReplyError(Exception):
    """Base class for classified pipeline failures."""

    category = CATEGORY_UPSTREAM
    retryable = False

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.message = message
        self.status = status

    def to_dict(self) -> dict:
        return {"category": self.category, "message": self.message, "retryable": self.retryable}


class ValidationError(ReplyError):
    """Missing profile or empty message; raised before any network call."""

    category = CATEGORY_VALIDATION


class UpstreamTimeout(ReplyError):
    """Both the primary and the fallback generation attempts failed to finish in time."""

    category = CATEGORY_TIMEOUT
    retryable = True


class RateLimited(ReplyError):
    """The language-model provider reported quota exhaustion (HTTP 429)."""

    category = CATEGORY_RATE_LIMIT
    retryable = True


class AuthFailure(ReplyError):
    """The language-model provider rejected the credentials (HTTP 401/403)."""

    category = CATEGORY_AUTHENTICATION


class UnknownUpstreamError(ReplyError):
    """Any other generation provider failure."""

    category = CATEGORY_UPSTREAM


class MarketDataUnavailable(ReplyError):
    """Market data could not be fetched. Never surfaced to callers."""

    category = CATEGORY_MARKET_DATA


def classify_status(status: int | None, message: str) -> ReplyError:
    """Map a provider-reported HTTP status to a classified error.

    Args:
        status: HTTP status reported by the provider, if any
        message: Error description

    Returns:
        RateLimited, AuthFailure or UnknownUpstreamError
    """
    if status == 429:
        return RateLimited(message, status=status)
    if status in (401, 403):
        return AuthFailure(message, status=status)
    return UnknownUpstreamError(message, status=status)

"""Domain exceptions."""

from typing import Any


class DomainException(Exception):
    """Base exception for all domain exceptions."""

    # Hey future me, message is stored as an attribute so code can inspect it without
    # parsing str(exception). Don't raise this directly - use a specific subclass so
    # callers can catch precisely.
    def __init__(self, message: str, *args: Any) -> None:
        super().__init__(message, *args)
        self.message = message


class ConfigurationError(DomainException):
    """Application misconfiguration.

    Raised when required configuration is missing or invalid.

    Example:
        raise ConfigurationError("Spotify credentials not configured")
    """

    pass


class ExternalServiceError(DomainException):
    """External service (Spotify, a radio stream) returned an error.

    Example:
        raise ExternalServiceError("Spotify API error: 503 Service Unavailable")
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RateLimitExceededError(ExternalServiceError):
    """External service rate limit was exceeded after all retries.

    Example:
        raise RateLimitExceededError("Spotify rate limit exceeded - retry after 30s")
    """

    def __init__(self, message: str, retry_after: int | None = None) -> None:
        super().__init__(message, status_code=429)
        self.retry_after = retry_after


class TokenRefreshException(DomainException):
    """Raised when token refresh fails and re-authentication is required.

    Hey future me - Spotify answers 400 invalid_grant when the refresh token was revoked
    (user removed app access, credentials rotated). Nothing retries its way out of this;
    a new refresh token has to be configured.
    """

    def __init__(
        self,
        message: str = "Token refresh failed. Please re-authenticate with Spotify.",
        error_code: str | None = None,
        http_status: int | None = None,
    ) -> None:
        super().__init__(message)
        self.error_code = error_code  # e.g., "invalid_grant"
        self.http_status = http_status  # e.g., 400, 401

    @property
    def requires_reauth(self) -> bool:
        """Check if error requires user re-authentication."""
        return self.error_code == "invalid_grant" or self.http_status in (400, 401, 403)


class StreamConnectionError(DomainException, ConnectionError):
    """A feed connection attempt failed (non-200 response, timeout, transport error).

    Subclasses the builtin ConnectionError so generic network handlers catch it too.
    """

    def __init__(
        self, feed: str, message: str, status_code: int | None = None
    ) -> None:
        super().__init__(message)
        self.feed = feed
        self.status_code = status_code


__all__ = [
    "ConfigurationError",
    "DomainException",
    "ExternalServiceError",
    "RateLimitExceededError",
    "StreamConnectionError",
    "TokenRefreshException",
]

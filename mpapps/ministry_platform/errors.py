from __future__ import annotations


class MinistryPlatformError(Exception):
    """Raised when MinistryPlatform answers with a non-success status."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        method: str | None = None,
        endpoint: str | None = None,
        body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.method = method
        self.endpoint = endpoint
        self.body = body


class MinistryPlatformConfigError(MinistryPlatformError):
    """Raised when client credentials or base URLs are missing."""


class MinistryPlatformAuthError(MinistryPlatformError):
    """Raised when the OAuth server rejects a token request."""


class EnvelopeError(ValueError):
    """Raised when a stored procedure envelope holds malformed JSON."""

"""Custom exception hierarchy for the Laserkongen proxy."""


class ProxyError(Exception):
    """Base exception for all proxy errors."""


class ConfigurationError(ProxyError):
    """Raised when configuration is missing or invalid."""


class BackendError(ProxyError):
    """Raised when the backend service cannot produce a usable reply.

    Attributes:
        message: Error message
        status_code: HTTP status code from the backend (optional)
        path: Backend path the request was sent to (optional)
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        path: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.path = path


class BackendUnreachableError(BackendError):
    """Raised when no parsable reply came back from the backend."""


class BackendTimeoutError(BackendUnreachableError):
    """Raised when a backend request times out."""

    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__(message, status_code=None, path=path)


class BackendConnectionError(BackendUnreachableError):
    """Raised when unable to connect to the backend."""

    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__(message, status_code=None, path=path)


class InvalidBackendResponse(BackendUnreachableError):
    """Backend replied, but the body is not valid JSON."""


class RequestTooLarge(ProxyError):
    """Request body exceeds size limit."""


class InvalidJSON(ProxyError):
    """Request body is not valid JSON."""

"""Header construction for backend requests."""

from typing import Any


def extract_bearer_token(authorization: str | None) -> str | None:
    """Return the token from an Authorization header value.

    Accepts ``Bearer <token>`` and a bare token without a scheme.
    Any other scheme yields None.
    """
    if not authorization:
        return None
    parts = authorization.strip().split()
    if len(parts) == 1:
        return None if parts[0].lower() == "bearer" else parts[0]
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1]
    return None


class HeaderBuilder:
    """Build backend headers from inbound request headers."""

    def build_backend_headers(self, headers: dict[str, Any]) -> dict[str, str]:
        """JSON content type plus a verbatim Authorization passthrough."""
        backend: dict[str, str] = {"Content-Type": "application/json"}
        for key, value in headers.items():
            if key.lower() == "authorization" and value:
                backend["Authorization"] = str(value)
        return backend

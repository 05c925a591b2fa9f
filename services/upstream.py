"""HTTP client for backend requests."""

from json import JSONDecodeError

import httpx

from core.exceptions import BackendConnectionError, BackendTimeoutError, InvalidBackendResponse
from core.request_types import BackendReply, ForwardedRequest


class BackendClient:
    """Send one request to the backend and parse its JSON reply."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def send(self, forwarded: ForwardedRequest) -> BackendReply:
        """Issue exactly one backend call. No retries."""
        timeout = forwarded.timeout if forwarded.timeout is not None else httpx.USE_CLIENT_DEFAULT
        try:
            response = await self._client.request(
                forwarded.method,
                forwarded.path,
                json=forwarded.body,
                headers=forwarded.headers,
                params=forwarded.params or None,
                timeout=timeout,
            )
        except httpx.TimeoutException as e:
            raise BackendTimeoutError(f"Backend timeout: {e}", path=forwarded.path) from e
        except httpx.RequestError as e:
            raise BackendConnectionError(f"Backend connection error: {e}", path=forwarded.path) from e

        return BackendReply(response.status_code, self._parse_body(response, forwarded.path))

    @staticmethod
    def _parse_body(response: httpx.Response, path: str) -> object:
        """Parse the reply as JSON; an empty body parses to None."""
        if not response.content:
            return None
        try:
            return response.json()
        except (JSONDecodeError, UnicodeDecodeError) as e:
            raise InvalidBackendResponse(
                f"Invalid JSON from backend: {e}",
                status_code=response.status_code,
                path=path,
            ) from e

"""Shared request data types."""

from dataclasses import dataclass, field
from typing import Any, Literal

Outcome = Literal[
    "method_rejected",
    "auth_rejected",
    "validation_rejected",
    "relayed",
    "unreachable",
]


@dataclass(frozen=True)
class InboundRequest:
    """Request as received from the browser client."""

    method: str
    path: str
    headers: dict[str, str] = field(default_factory=dict)
    body: Any = None
    path_params: dict[str, str] = field(default_factory=dict)
    query: dict[str, str] = field(default_factory=dict)

    def header(self, name: str) -> str | None:
        """Case-insensitive header lookup."""
        name = name.lower()
        for key, value in self.headers.items():
            if key.lower() == name:
                return value
        return None


@dataclass(frozen=True)
class ForwardedRequest:
    """Prepared data for a single backend request."""

    route_name: str
    method: str
    path: str
    headers: dict[str, str]
    body: Any = None
    params: dict[str, str] = field(default_factory=dict)
    timeout: float | None = None


@dataclass(frozen=True)
class BackendReply:
    """Parsed reply from the backend."""

    status_code: int
    body: Any

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


@dataclass(frozen=True)
class ProxyResponse:
    """Response relayed back to the browser client."""

    status_code: int
    body: Any
    outcome: Outcome
    headers: dict[str, str] = field(default_factory=dict)

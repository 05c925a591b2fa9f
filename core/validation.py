"""Declarative inbound request validators.

Each validator inspects an ``InboundRequest`` and returns the JSON body of
a 400 response when the request is rejected, or None when it passes.
Presence checks treat empty strings, empty lists and null the same as a
missing key.
"""

from dataclasses import dataclass
from typing import Any, Protocol

from core.request_types import InboundRequest


class Validator(Protocol):
    def check(self, request: InboundRequest) -> dict[str, Any] | None: ...


def _body_field(request: InboundRequest, name: str) -> Any:
    if not isinstance(request.body, dict):
        return None
    return request.body.get(name)


@dataclass(frozen=True)
class RequiredFields:
    """All listed body fields must be present and non-empty."""

    fields: tuple[str, ...]
    message: str

    def check(self, request: InboundRequest) -> dict[str, Any] | None:
        if all(_body_field(request, name) for name in self.fields):
            return None
        return {"message": self.message}


@dataclass(frozen=True)
class MinLength:
    """A string body field must be at least ``length`` characters."""

    field: str
    length: int
    message: str

    def check(self, request: InboundRequest) -> dict[str, Any] | None:
        value = _body_field(request, self.field)
        if isinstance(value, str) and len(value) < self.length:
            return {"message": self.message}
        return None


@dataclass(frozen=True)
class NonEmptyList:
    field: str
    message: str

    def check(self, request: InboundRequest) -> dict[str, Any] | None:
        value = _body_field(request, self.field)
        if isinstance(value, list) and value:
            return None
        return {"message": self.message}


@dataclass(frozen=True)
class EmailList:
    """Comma-separated addresses; at least one must contain ``@``."""

    field: str
    missing_message: str
    invalid_message: str

    def check(self, request: InboundRequest) -> dict[str, Any] | None:
        value = _body_field(request, self.field)
        if not isinstance(value, str) or not value.strip():
            return {"message": self.missing_message}
        if not any("@" in address.strip() for address in value.split(",")):
            return {"message": self.invalid_message}
        return None


@dataclass(frozen=True)
class RequiredQuery:
    param: str
    message: str

    def check(self, request: InboundRequest) -> dict[str, Any] | None:
        if request.query.get(self.param):
            return None
        return {"message": self.message}


def run_validators(
    validators: tuple[Validator, ...],
    request: InboundRequest,
) -> dict[str, Any] | None:
    """Return the first rejection body, or None if every validator passes."""
    for validator in validators:
        rejection = validator.check(request)
        if rejection is not None:
            return rejection
    return None

"""Response transform rules applied after the backend call.

A route carries an ordered tuple of ``ResponseRule``. After dispatch the
forwarding service builds a ``RelayContext`` and evaluates the rules in
order; the first rule whose predicate matches produces the response. When
no rule matches the backend reply is relayed verbatim, or a generic 500 is
returned if the backend could not be reached.
"""

import base64
import binascii
import json
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from core.exceptions import BackendUnreachableError
from core.request_types import BackendReply, ForwardedRequest


@dataclass(frozen=True)
class RelayContext:
    """Everything a rule may look at after the backend call."""

    forwarded: ForwardedRequest
    token: str | None = None
    reply: BackendReply | None = None
    error: BackendUnreachableError | None = None

    @property
    def unreachable(self) -> bool:
        return self.reply is None


@dataclass(frozen=True)
class ResponseRule:
    name: str
    matches: Callable[[RelayContext], bool]
    transform: Callable[[RelayContext], tuple[int, Any]]


def _reply_field(ctx: RelayContext, key: str) -> Any:
    if ctx.reply is None or not isinstance(ctx.reply.body, dict):
        return None
    return ctx.reply.body.get(key)


def token_expired() -> ResponseRule:
    """Backend 401 after a token was presented means the session expired."""
    return ResponseRule(
        name="token_expired",
        matches=lambda ctx: ctx.reply is not None and ctx.reply.status_code == 401,
        transform=lambda ctx: (401, {"message": "Authentication expired", "tokenExpired": True}),
    )


def success_envelope(body: dict[str, Any], status_code: int = 200) -> ResponseRule:
    """Replace any 2xx backend body with a fixed one."""
    return ResponseRule(
        name="success_envelope",
        matches=lambda ctx: ctx.reply is not None and ctx.reply.ok,
        transform=lambda ctx: (status_code, dict(body)),
    )


def always(status_code: int, body: dict[str, Any]) -> ResponseRule:
    """Fixed response whatever the backend did, reachable or not."""
    return ResponseRule(
        name="always",
        matches=lambda ctx: True,
        transform=lambda ctx: (status_code, dict(body)),
    )


def on_unreachable(status_code: int, body: dict[str, Any]) -> ResponseRule:
    """Graceful degradation when the backend cannot be reached."""
    return ResponseRule(
        name="on_unreachable",
        matches=lambda ctx: ctx.unreachable,
        transform=lambda ctx: (status_code, dict(body)),
    )


def repackage_error(default_message: str) -> ResponseRule:
    """Reshape a backend error body into ``{message, error}``."""

    def transform(ctx: RelayContext) -> tuple[int, Any]:
        assert ctx.reply is not None
        return ctx.reply.status_code, {
            "message": _reply_field(ctx, "message") or default_message,
            "error": _reply_field(ctx, "error") or None,
        }

    return ResponseRule(
        name="repackage_error",
        matches=lambda ctx: ctx.reply is not None and not ctx.reply.ok,
        transform=transform,
    )


def require_token(message: str) -> ResponseRule:
    """A successful auth reply must carry a token."""
    return ResponseRule(
        name="require_token",
        matches=lambda ctx: ctx.reply is not None and ctx.reply.ok and not _reply_field(ctx, "token"),
        transform=lambda ctx: (500, {"message": message}),
    )


def decode_token_payload(token: str) -> dict[str, Any] | None:
    """Decode the payload segment of a JWT without verifying it."""
    segments = token.split(".")
    if len(segments) != 3:
        return None
    segment = segments[1]
    try:
        raw = base64.urlsafe_b64decode(segment + "=" * (-len(segment) % 4))
        payload = json.loads(raw)
    except (binascii.Error, ValueError):
        return None
    return payload if isinstance(payload, dict) else None


def session_validation() -> tuple[ResponseRule, ...]:
    """Rules for the session check that backs the client's auth context.

    A valid session echoes the user data plus the token. An invalid one is
    flagged ``tokenExpired``. When the backend is down the client is not
    logged out: the unverified token payload is returned instead.
    """

    def echo_token(ctx: RelayContext) -> tuple[int, Any]:
        assert ctx.reply is not None
        body = ctx.reply.body if isinstance(ctx.reply.body, dict) else {}
        return 200, {**body, "token": ctx.token}

    def expired(ctx: RelayContext) -> tuple[int, Any]:
        assert ctx.reply is not None
        return ctx.reply.status_code, {
            "message": _reply_field(ctx, "message") or "Session invalid or expired",
            "tokenExpired": True,
        }

    def fallback(ctx: RelayContext) -> tuple[int, Any]:
        payload = decode_token_payload(ctx.token or "")
        if payload is None:
            return 401, {"message": "Invalid token format", "tokenExpired": True}
        return 200, {**payload, "token": ctx.token}

    return (
        ResponseRule(
            name="session_valid",
            matches=lambda ctx: ctx.reply is not None and ctx.reply.ok,
            transform=echo_token,
        ),
        ResponseRule(
            name="session_expired",
            matches=lambda ctx: ctx.reply is not None and not ctx.reply.ok,
            transform=expired,
        ),
        ResponseRule(
            name="session_fallback",
            matches=lambda ctx: ctx.unreachable,
            transform=fallback,
        ),
    )


def apply_rules(
    rules: tuple[ResponseRule, ...],
    ctx: RelayContext,
) -> tuple[str, int, Any] | None:
    """Return ``(rule_name, status, body)`` for the first matching rule."""
    for rule in rules:
        if rule.matches(ctx):
            status_code, body = rule.transform(ctx)
            return rule.name, status_code, body
    return None

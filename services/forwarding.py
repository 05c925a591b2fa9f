"""Forwarding orchestration for proxied routes."""

import time
from typing import Any

from core.config import Config
from core.exceptions import BackendUnreachableError
from core.headers import HeaderBuilder, extract_bearer_token
from core.protocols import RequestLogger
from core.request_types import ForwardedRequest, InboundRequest, ProxyResponse
from core.routes import RouteConfig
from core.transform import RelayContext, apply_rules
from core.validation import run_validators
from services.upstream import BackendClient

METHOD_NOT_ALLOWED = {"message": "Method not allowed"}
NO_TOKEN = {"message": "Not authorized, no token"}


class ForwardingService:
    """Run the method/auth/validation gates, forward, and relay the reply."""

    def __init__(
        self,
        config: Config,
        logger: RequestLogger,
        backend: BackendClient,
        header_builder: HeaderBuilder | None = None,
    ) -> None:
        self._config = config
        self._logger = logger
        self._backend = backend
        self._headers = header_builder or HeaderBuilder()

    async def handle(self, route: RouteConfig, inbound: InboundRequest) -> ProxyResponse:
        """Handle one inbound request for ``route``."""
        method = inbound.method.upper()

        if method not in route.allowed_methods:
            self._logger.log_rejection(route.name, 405, f"{method} not allowed")
            return ProxyResponse(405, dict(METHOD_NOT_ALLOWED), "method_rejected")

        token = extract_bearer_token(inbound.header("authorization"))
        if route.requires_auth and not token:
            self._logger.log_rejection(route.name, 401, NO_TOKEN["message"])
            return ProxyResponse(401, dict(NO_TOKEN), "auth_rejected")

        rejection = run_validators(route.validators, inbound)
        if rejection is not None:
            self._logger.log_rejection(route.name, 400, str(rejection.get("message", "")))
            return ProxyResponse(400, rejection, "validation_rejected")

        forwarded = self.build_forwarded(route, inbound)
        return await self._dispatch(route, forwarded, token)

    def build_forwarded(self, route: RouteConfig, inbound: InboundRequest) -> ForwardedRequest:
        """Construct the single backend request for this invocation."""
        method = route.backend_method or inbound.method.upper()
        body = None if method == "GET" else route.build_body(inbound.body)
        return ForwardedRequest(
            route_name=route.name,
            method=method,
            path=route.resolve_path(inbound.path_params),
            headers=self._headers.build_backend_headers(inbound.headers),
            body=body,
            params=route.build_params(inbound.query),
            timeout=route.timeout,
        )

    async def _dispatch(
        self,
        route: RouteConfig,
        forwarded: ForwardedRequest,
        token: str | None,
    ) -> ProxyResponse:
        started = time.perf_counter()
        try:
            reply = await self._backend.send(forwarded)
        except BackendUnreachableError as e:
            ctx = RelayContext(forwarded=forwarded, token=token, error=e)
            response = self._unreachable_response(route, ctx, e)
        else:
            ctx = RelayContext(forwarded=forwarded, token=token, reply=reply)
            if not reply.ok:
                self._logger.log_error(route.name, reply.status_code, _describe(reply.body))
            response = self._relay_response(route, ctx)

        self._logger.log_forward(
            route.name,
            forwarded.method,
            forwarded.path,
            response.status_code,
            outcome=response.outcome,
            elapsed_ms=(time.perf_counter() - started) * 1000,
        )
        return response

    def _relay_response(self, route: RouteConfig, ctx: RelayContext) -> ProxyResponse:
        assert ctx.reply is not None
        matched = apply_rules(route.rules, ctx)
        if matched is not None:
            _, status_code, body = matched
        else:
            status_code, body = ctx.reply.status_code, ctx.reply.body
        return ProxyResponse(status_code, body, "relayed", dict(route.response_headers))

    def _unreachable_response(
        self,
        route: RouteConfig,
        ctx: RelayContext,
        error: BackendUnreachableError,
    ) -> ProxyResponse:
        self._logger.log_error(route.name, 500, str(error))
        matched = apply_rules(route.rules, ctx)
        if matched is not None:
            _, status_code, body = matched
            return ProxyResponse(status_code, body, "unreachable")

        body: dict[str, Any] = {**route.unreachable_extra, "message": route.unreachable_message}
        if self._config.proxy.debug:
            body["error"] = str(error)
        return ProxyResponse(500, body, "unreachable")


def _describe(body: Any) -> str:
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return str(body)

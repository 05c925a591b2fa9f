"""Unit tests for ForwardingService and BackendClient."""

import httpx
import pytest

from core.config import Config
from core.exceptions import BackendConnectionError, BackendTimeoutError, InvalidBackendResponse
from core.request_types import ForwardedRequest, InboundRequest
from core.routes import RouteTable
from services.forwarding import ForwardingService
from services.upstream import BackendClient

ROUTES = RouteTable()


def _service(config, logger, backend) -> ForwardingService:
    client = httpx.AsyncClient(base_url="http://backend.test", transport=backend.transport)
    return ForwardingService(config, logger, BackendClient(client))


def _forwarded(**kwargs) -> ForwardedRequest:
    defaults = {
        "route_name": "test",
        "method": "GET",
        "path": "/api/products",
        "headers": {"Content-Type": "application/json"},
    }
    defaults.update(kwargs)
    return ForwardedRequest(**defaults)


# ============================================================================
# ForwardingService
# ============================================================================

@pytest.mark.asyncio
async def test_outcomes_are_reported(config, logger, backend):
    service = _service(config, logger, backend)
    route = ROUTES.resolve("/api/contact", "POST")

    rejected = await service.handle(route, InboundRequest("GET", "/api/contact"))
    invalid = await service.handle(route, InboundRequest("POST", "/api/contact", body={}))
    backend.reply(201, {"id": 1})
    relayed = await service.handle(
        route,
        InboundRequest("POST", "/api/contact", body={"name": "A", "email": "a@b.co", "message": "x"}),
    )

    assert rejected.outcome == "method_rejected"
    assert invalid.outcome == "validation_rejected"
    assert relayed.outcome == "relayed"
    assert [r[1] for r in logger.rejections] == [405, 400]
    assert logger.forwards[-1]["status"] == 201


@pytest.mark.asyncio
async def test_auth_rejection_outcome(config, logger, backend):
    service = _service(config, logger, backend)
    route = ROUTES.resolve("/api/users", "GET")

    result = await service.handle(route, InboundRequest("GET", "/api/users"))

    assert result.status_code == 401
    assert result.outcome == "auth_rejected"
    assert backend.calls == []


@pytest.mark.asyncio
async def test_raw_token_header_is_accepted(config, logger, backend):
    service = _service(config, logger, backend)
    route = ROUTES.resolve("/api/orders/stats", "GET")
    backend.reply(200, {"total": 3})

    result = await service.handle(
        route,
        InboundRequest("GET", "/api/orders/stats", headers={"authorization": "raw-token"}),
    )

    assert result.status_code == 200
    assert backend.last.headers["authorization"] == "raw-token"


@pytest.mark.asyncio
async def test_debug_mode_adds_error_detail(logger, backend):
    config = Config()
    config.proxy.debug = True
    service = _service(config, logger, backend)
    backend.fail()

    result = await service.handle(
        ROUTES.resolve("/api/products", "GET"),
        InboundRequest("GET", "/api/products"),
    )

    assert result.status_code == 500
    assert result.outcome == "unreachable"
    assert "backend down" in result.body["error"]
    assert logger.errors


@pytest.mark.asyncio
async def test_session_fallback_decodes_token_payload(config, logger, backend):
    # {"id": 7, "role": "admin"}
    token = "eyJhbGciOiJIUzI1NiJ9.eyJpZCI6IDcsICJyb2xlIjogImFkbWluIn0.sig"
    service = _service(config, logger, backend)
    backend.fail(httpx.ConnectTimeout)

    result = await service.handle(
        ROUTES.resolve("/api/users/validate-session", "GET"),
        InboundRequest(
            "GET",
            "/api/users/validate-session",
            headers={"authorization": f"Bearer {token}"},
        ),
    )

    assert result.status_code == 200
    assert result.body == {"id": 7, "role": "admin", "token": token}


def test_build_forwarded_drops_body_for_get(config, logger, backend):
    service = _service(config, logger, backend)
    route = ROUTES.resolve("/api/products", "GET")

    forwarded = service.build_forwarded(
        route,
        InboundRequest("GET", "/api/products", body={"ignored": True}),
    )

    assert forwarded.body is None
    assert forwarded.path == "/api/products"
    assert forwarded.headers == {"Content-Type": "application/json"}


def test_build_forwarded_quotes_path_params(config, logger, backend):
    service = _service(config, logger, backend)
    route = ROUTES.resolve("/api/password-reset/verify/{token}", "GET")

    forwarded = service.build_forwarded(
        route,
        InboundRequest("GET", "/x", path_params={"token": "a/b c"}),
    )

    assert forwarded.path == "/api/password-reset/verify/a%2Fb%20c"


# ============================================================================
# BackendClient
# ============================================================================

@pytest.mark.asyncio
async def test_backend_client_maps_timeouts(backend):
    backend.fail(httpx.ReadTimeout)
    client = BackendClient(httpx.AsyncClient(base_url="http://backend.test", transport=backend.transport))

    with pytest.raises(BackendTimeoutError):
        await client.send(_forwarded())


@pytest.mark.asyncio
async def test_backend_client_maps_connection_errors(backend):
    backend.fail(httpx.ConnectError)
    client = BackendClient(httpx.AsyncClient(base_url="http://backend.test", transport=backend.transport))

    with pytest.raises(BackendConnectionError):
        await client.send(_forwarded())


@pytest.mark.asyncio
async def test_backend_client_rejects_non_json(backend):
    backend.reply(502, raw=b"Bad Gateway")
    client = BackendClient(httpx.AsyncClient(base_url="http://backend.test", transport=backend.transport))

    with pytest.raises(InvalidBackendResponse) as excinfo:
        await client.send(_forwarded())

    assert excinfo.value.status_code == 502


@pytest.mark.asyncio
async def test_backend_client_sends_body_and_params(backend):
    backend.reply(200, {"ok": True})
    client = BackendClient(httpx.AsyncClient(base_url="http://backend.test", transport=backend.transport))

    reply = await client.send(
        _forwarded(method="POST", body={"a": 1}, params={"page": "2"}, timeout=5.0)
    )

    assert reply.ok
    assert reply.body == {"ok": True}
    assert backend.last_json() == {"a": 1}
    assert backend.last.url.params["page"] == "2"

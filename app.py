"""FastAPI application factory."""

from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request

from api.handlers import handle_proxy
from core.config import Config
from core.headers import HeaderBuilder
from core.protocols import RequestLogger
from core.routes import RouteTable
from services.forwarding import ForwardingService
from services.upstream import BackendClient

# Every route accepts these so the method gate, not the framework, answers 405.
PROXIED_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]


def create_app(
    config: Config,
    logger: RequestLogger,
    routes: RouteTable | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    routes = routes or RouteTable()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        limits = httpx.Limits(
            max_connections=config.limits.max_connections,
            max_keepalive_connections=config.limits.max_keepalive_connections,
        )
        backend_client = httpx.AsyncClient(
            base_url=config.backend.base_url,
            timeout=config.backend.timeout,
            limits=limits,
            transport=transport,
        )
        app.state.forwarding_service = ForwardingService(
            config=config,
            logger=logger,
            backend=BackendClient(backend_client),
            header_builder=HeaderBuilder(),
        )
        try:
            yield
        finally:
            await backend_client.aclose()

    app = FastAPI(title="Laserkongen Proxy", version="0.1.0", lifespan=lifespan)

    for path in routes.paths():
        app.add_api_route(
            path,
            _make_endpoint(path, routes, config, logger),
            methods=PROXIED_METHODS,
            name=path,
        )

    return app


def _make_endpoint(path: str, routes: RouteTable, config: Config, logger: RequestLogger):
    async def proxy_endpoint(request: Request):
        return await handle_proxy(request, path, routes, config, logger)

    return proxy_endpoint

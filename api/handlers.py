"""FastAPI route handlers."""

import json
from json import JSONDecodeError
from typing import Any

from fastapi import Request, Response
from fastapi.responses import JSONResponse

from core.config import Config
from core.exceptions import InvalidJSON, RequestTooLarge
from core.protocols import RequestLogger
from core.request_types import InboundRequest
from core.routes import RouteTable

NO_BODY_STATUSES = (204, 304)


async def _parse_json_body(request: Request, max_body_size: int) -> Any:
    """Parse the request body as JSON; an empty body parses to None."""
    raw_body = await request.body()
    if len(raw_body) > max_body_size:
        raise RequestTooLarge(f"Request body exceeds {max_body_size} bytes")
    if not raw_body.strip():
        return None
    try:
        return json.loads(raw_body.decode("utf-8"))
    except (JSONDecodeError, UnicodeDecodeError) as e:
        raise InvalidJSON(str(e)) from e


async def build_inbound(request: Request, config: Config) -> InboundRequest:
    """Snapshot the parts of a Starlette request the proxy uses."""
    body = await _parse_json_body(request, config.limits.max_body_size)
    return InboundRequest(
        method=request.method,
        path=request.url.path,
        headers=dict(request.headers),
        body=body,
        path_params={key: str(value) for key, value in request.path_params.items()},
        query=dict(request.query_params),
    )


async def handle_proxy(
    request: Request,
    path: str,
    routes: RouteTable,
    config: Config,
    logger: RequestLogger,
) -> Response:
    """Forward one inbound request according to the route table."""
    route = routes.resolve(path, request.method)
    if request.method.upper() in route.allowed_methods:
        try:
            inbound = await build_inbound(request, config)
        except RequestTooLarge:
            logger.log_rejection(route.name, 413, "Request body too large")
            return JSONResponse({"message": "Request body too large"}, status_code=413)
        except InvalidJSON as e:
            logger.log_rejection(route.name, 400, f"Invalid JSON: {e}")
            return JSONResponse({"message": "Invalid JSON body"}, status_code=400)
        logger.log_incoming(inbound.method, inbound.path, inbound.headers, inbound.body)
    else:
        # Rejected by the method gate; the body is never read.
        inbound = InboundRequest(
            method=request.method,
            path=request.url.path,
            headers=dict(request.headers),
        )

    forwarding = request.app.state.forwarding_service
    result = await forwarding.handle(route, inbound)
    if result.status_code in NO_BODY_STATUSES:
        return Response(status_code=result.status_code, headers=result.headers or None)
    return JSONResponse(result.body, status_code=result.status_code, headers=result.headers or None)

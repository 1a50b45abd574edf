"""ASGI application wiring the resolution engine to HTTP responses."""

from __future__ import annotations

from urllib.parse import quote

import structlog
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import HTMLResponse, PlainTextResponse, Response
from starlette.routing import Route

from .auth import CHALLENGE
from .engine import ResolutionEngine
from .files import stream_file
from .models import (
    RequestContext,
    ResolutionOutcome,
    ServeFile,
    ServeListing,
    ServeMock,
    ServeMockFailure,
    ServeNotFound,
    ServeRedirect,
    ServerConfig,
    ServeSpaRoot,
    ServeUnauthorized,
)

LOGGER = structlog.get_logger("static_server")

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Origin, X-Requested-With, Content-Type, Accept, Range",
}

METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def request_context(request: Request) -> RequestContext:
    """Build the engine's view of a request, keeping the path percent-encoded."""

    raw_path = request.scope.get("raw_path")
    if raw_path:
        path = raw_path.decode("latin-1").split("?", 1)[0]
    else:
        path = quote(request.url.path)
    query = request.scope.get("query_string", b"").decode("latin-1")
    raw_url = f"{path}?{query}" if query else path
    server = request.scope.get("server")
    return RequestContext.from_url(
        raw_url,
        method=request.method,
        headers={key.lower(): value for key, value in request.headers.items()},
        local_port=server[1] if server else None,
    )


async def render_outcome(outcome: ResolutionOutcome, request: Request) -> Response:
    if isinstance(outcome, (ServeFile, ServeSpaRoot)):
        return await stream_file(
            outcome.path,
            cache_options=outcome.cache_options,
            media_type="text/html" if isinstance(outcome, ServeSpaRoot) else outcome.media_type,
            default_media_type=getattr(outcome, "default_media_type", "text/plain"),
            headers=outcome.headers,
            request_headers=request.headers,
        )
    if isinstance(outcome, ServeMock):
        return Response(outcome.body, status_code=outcome.status, media_type=outcome.media_type)
    if isinstance(outcome, ServeMockFailure):
        return PlainTextResponse("Bad Gateway: mock provider failed", status_code=outcome.status)
    if isinstance(outcome, ServeListing):
        return HTMLResponse(outcome.html, headers=outcome.headers)
    if isinstance(outcome, ServeRedirect):
        headers = dict(outcome.headers)
        headers["Location"] = outcome.location
        return Response(status_code=outcome.status, headers=headers)
    if isinstance(outcome, ServeNotFound):
        return Response(outcome.body, status_code=outcome.status, media_type=outcome.media_type)
    if isinstance(outcome, ServeUnauthorized):
        return PlainTextResponse(
            outcome.body,
            status_code=outcome.status,
            headers={"WWW-Authenticate": CHALLENGE},
        )
    raise TypeError(f"Unsupported resolution outcome: {outcome!r}")


def build_app(config: ServerConfig, *, engine: ResolutionEngine | None = None) -> Starlette:
    """Create the ASGI app serving ``config.root_dir``."""

    engine = engine or ResolutionEngine(config)
    server_logger = LOGGER.bind(root=str(config.root_dir))

    async def handle(request: Request) -> Response:
        context = request_context(request)
        logger = server_logger.bind(method=context.method, path=context.pathname)
        logger.debug("request_received", url=context.raw_url)
        outcome_name = "error"
        try:
            outcome = await engine.handle(context)
            outcome_name = type(outcome).__name__
            response = await render_outcome(outcome, request)
        except Exception:
            logger.exception("request_failed")
            response = PlainTextResponse("Internal Server Error", status_code=500)

        if config.cors_enabled:
            response.headers.update(CORS_HEADERS)
        logger.info("request_resolved", outcome=outcome_name, status=response.status_code)
        return response

    app = Starlette(routes=[Route("/{path:path}", handle, methods=METHODS)])
    app.state.config = config
    app.state.engine = engine
    return app

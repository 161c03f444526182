"""FastAPI application factory for gwgraph.

Usage::

    from gwgraph.api.app import create_app

    app = create_app(store=store, config=config)

The factory is used by both the production bootstrap (``gwgraph.app``)
and unit tests.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.exceptions import HTTPException as StarletteHTTPException

from gwgraph.api.routes import GraphUnavailableError, router
from gwgraph.api.schemas import ErrorResponse
from gwgraph.models.issues import ContextRequiredError, GraphError, NodeNotFoundError

_log = structlog.get_logger(component="api.app")

_API_PREFIX = "/api/v1"


def _error(status_code: int, error: str, detail: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, detail=detail).model_dump(),
    )


def create_app(store: Any, config: Any = None) -> FastAPI:
    """Create and configure the gwgraph FastAPI application.

    Args:
        store:  GraphStore holding the published graph.
        config: GwGraphConfig. Only used for metadata.

    Returns:
        Configured FastAPI application, ready to be served by uvicorn.
    """
    from gwgraph import __version__

    app = FastAPI(
        title="gwgraph",
        summary="Gateway API resource graph and effective policy queries",
        version=__version__,
        docs_url="/api/v1/docs",
        redoc_url="/api/v1/redoc",
        openapi_url="/api/v1/openapi.json",
    )

    app.state.store = store
    app.state.config = config

    app.include_router(router, prefix=_API_PREFIX)

    @app.get("/metrics", include_in_schema=False)
    async def metrics() -> Response:
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # -----------------------------------------------------------------------
    # Exception handlers
    # -----------------------------------------------------------------------

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        _request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        errors = exc.errors()
        first_msg = str(errors[0].get("msg", "")) if errors else ""
        return _error(400, "INVALID_REQUEST", first_msg)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
        code = "NOT_FOUND" if exc.status_code == 404 else "HTTP_ERROR"
        return _error(exc.status_code, code, str(exc.detail))

    @app.exception_handler(NodeNotFoundError)
    async def not_found_handler(_request: Request, exc: NodeNotFoundError) -> JSONResponse:
        return _error(404, "RESOURCE_NOT_FOUND", str(exc))

    @app.exception_handler(ContextRequiredError)
    async def context_required_handler(_request: Request, exc: ContextRequiredError) -> JSONResponse:
        return _error(409, "GATEWAY_CONTEXT_REQUIRED", str(exc))

    @app.exception_handler(GraphUnavailableError)
    async def unavailable_handler(_request: Request, exc: GraphUnavailableError) -> JSONResponse:
        return _error(503, "GRAPH_UNAVAILABLE", str(exc))

    @app.exception_handler(GraphError)
    async def graph_error_handler(_request: Request, exc: GraphError) -> JSONResponse:
        return _error(400, "INVALID_QUERY", str(exc))

    @app.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        """Catch-all for unhandled exceptions; never expose stack traces."""
        _log.error(
            "unhandled_exception",
            path=str(request.url.path),
            method=request.method,
            error=str(exc),
        )
        return _error(500, "INTERNAL_ERROR", "An unexpected error occurred.")

    return app

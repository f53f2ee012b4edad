"""ASGI application: routers, middleware and the engine lifespan."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from xmr_pos import __version__
from xmr_pos.api.callbacks import router as callbacks_router
from xmr_pos.api.pos import router as pos_router
from xmr_pos.config.settings import AppConfig
from xmr_pos.engine.client import POSEngine
from xmr_pos.errors.pos_errors import POSError
from xmr_pos.metrics.collector import EngineMetrics
from xmr_pos.metrics.middleware import PrometheusMiddleware

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    engine = POSEngine(app.state.config, metrics=app.state.metrics)
    try:
        await engine.initialize()
        app.state.engine = engine
        yield
    finally:
        app.state.engine = None
        await engine.close()


async def _handle_pos_error(_request: Request, exc: POSError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("Request failed: %r", exc)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def _health(request: Request) -> dict[str, str]:
    """Liveness plus component status once the engine is up."""
    engine: POSEngine | None = getattr(request.app.state, "engine", None)
    components = await engine.health_check() if engine is not None else {}
    return {"status": "ok", **components}


async def _metrics(request: Request) -> Response:
    metrics: EngineMetrics | None = request.app.state.metrics
    body = generate_latest(metrics.registry) if metrics is not None else generate_latest()
    return Response(content=body, media_type=CONTENT_TYPE_LATEST)


def create_app(*, config: AppConfig | None = None) -> FastAPI:
    """Application factory (``uvicorn --factory xmr_pos.api.app:create_app``).

    Args:
        config: Settings to run with; read from the environment when omitted.
    """
    config = config or AppConfig()
    metrics = EngineMetrics() if config.metrics.enabled else None

    app = FastAPI(
        title="xmr-pos",
        description="Monero point-of-sale settlement backend",
        version=__version__,
        lifespan=_lifespan,
    )
    app.state.config = config
    app.state.metrics = metrics
    app.state.engine = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.cors_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )
    if metrics is not None:
        app.add_middleware(PrometheusMiddleware, metrics=metrics)

    app.add_exception_handler(POSError, _handle_pos_error)
    app.add_api_route("/health", _health, methods=["GET"], tags=["base"])
    app.add_api_route("/metrics", _metrics, methods=["GET"], tags=["base"], include_in_schema=False)
    app.include_router(callbacks_router)
    app.include_router(pos_router)
    return app

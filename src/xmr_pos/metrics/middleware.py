"""HTTP request metrics middleware.

Requests are labelled by route template (``/callback/lws/{token}``) rather
than by raw path, so callback credentials never end up in label values.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from starlette.middleware.base import BaseHTTPMiddleware

if TYPE_CHECKING:
    from collections.abc import Callable

    from starlette.requests import Request
    from starlette.responses import Response

    from xmr_pos.metrics.collector import EngineMetrics


def _route_path(request: Request) -> str:
    route = request.scope.get("route")
    return getattr(route, "path", "<unmatched>")


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Record count and duration of every HTTP request into *metrics*."""

    def __init__(self, app: object, *, metrics: EngineMetrics) -> None:
        super().__init__(app)  # type: ignore[arg-type]
        self._metrics = metrics

    async def dispatch(self, request: Request, call_next: Callable) -> Response:  # type: ignore[type-arg]
        start = time.monotonic()
        response: Response = await call_next(request)
        self._metrics.observe_request(
            method=request.method,
            path=_route_path(request),
            status_code=response.status_code,
            duration=time.monotonic() - start,
        )
        return response

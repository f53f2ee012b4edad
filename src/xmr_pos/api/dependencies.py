"""FastAPI dependency injection helpers.

Usage in a route::

    @router.post("/callback/receive/{token}")
    async def receive(
        token: str,
        engine: POSEngine = Depends(get_engine),
    ) -> ...:
        ...
"""

from __future__ import annotations

from starlette.requests import HTTPConnection

from xmr_pos.engine.client import POSEngine  # noqa: TC001
from xmr_pos.errors.definitions import ErrInternal


def get_engine(conn: HTTPConnection) -> POSEngine:
    """Retrieve the engine from ``app.state``.

    The engine is stored on ``app.state.engine`` during lifespan startup. Works for
    both HTTP and WebSocket routes.

    Raises:
        ErrInternal: If the engine is not initialized (should never happen
        after startup).
    """
    engine: POSEngine | None = getattr(conn.app.state, "engine", None)
    if engine is None:
        raise ErrInternal
    return engine

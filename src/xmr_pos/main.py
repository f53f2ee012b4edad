"""Application entry point for the xmr-pos server."""

from __future__ import annotations

import os

import uvicorn

from xmr_pos.config.settings import AppConfig


def main() -> None:
    """Start the xmr-pos server on the configured host and port."""
    config = AppConfig()
    reload = os.getenv("XMRPOS_RELOAD", "false").lower() in ("1", "true", "yes")
    uvicorn.run(
        "xmr_pos.api.app:create_app",
        factory=True,
        host=config.server.host,
        port=config.server.port,
        reload=reload,
        log_level="debug" if config.debug else "info",
    )


if __name__ == "__main__":
    main()

"""API server: runs uvicorn inside the existing asyncio event loop."""

from __future__ import annotations

import uvicorn
from loguru import logger

from config.settings import settings


async def run_api_server() -> None:
    """Start uvicorn serving the FastAPI app.

    Designed to run as an asyncio task alongside the token service.
    Uses ``uvicorn.Server.serve()`` which is fully async.
    """
    from src.api.app import create_app

    app = create_app()
    config = uvicorn.Config(
        app=app,
        host=settings.api_host,
        port=settings.api_port,
        log_level="warning",
        log_config=None,  # keep the loguru intercept installed by setup_logger
        loop="none",  # use the existing event loop
    )
    server = uvicorn.Server(config)
    logger.info(f"[API] Starting on http://{settings.api_host}:{settings.api_port}")
    await server.serve()

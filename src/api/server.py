"""Uvicorn runner for the analytics API, sharing the caller's event loop."""

from __future__ import annotations

import uvicorn
from fastapi import FastAPI
from loguru import logger

from config.settings import settings
from src.api.app import VERSION, create_app


def build_server(
    app: FastAPI | None = None,
    *,
    host: str | None = None,
    port: int | None = None,
) -> uvicorn.Server:
    """Server for ``app`` (a settings-wired app by default).

    Access logs are only on in debug mode; request failures are already
    logged by the app's error handlers.
    """
    config = uvicorn.Config(
        app=app if app is not None else create_app(),
        host=host or settings.api_host,
        port=port or settings.api_port,
        log_level="debug" if settings.api_debug else "warning",
        access_log=settings.api_debug,
        lifespan="on",
        loop="none",
    )
    return uvicorn.Server(config)


async def run_api_server() -> None:
    server = build_server()
    logger.info(
        f"[API] wallet analytics v{VERSION} on http://{server.config.host}:{server.config.port}"
    )
    await server.serve()

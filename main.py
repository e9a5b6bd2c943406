"""
tripcache main entry point
Runs the cache layer with its maintenance jobs and the debug panel server
"""

import sys
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from loguru import logger

from tripcache.app import CacheApplication
from tripcache.settings import global_settings


def configure_logging() -> None:
    """Route loguru output at the configured level."""
    logger.remove()
    level = "DEBUG" if global_settings.debug else global_settings.log_level.upper()
    logger.add(sys.stderr, level=level)


def create_app() -> FastAPI:
    """Build the application and its debug server."""
    application = CacheApplication(global_settings)
    app = application.create_debug_app()

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        logger.info("Starting tripcache...")
        await application.start()
        try:
            yield
        finally:
            logger.info("Shutting down tripcache...")
            await application.close()

    app.router.lifespan_context = lifespan
    app.state.cache = application
    return app


configure_logging()
app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        app,
        host=global_settings.debug_server_host,
        port=global_settings.debug_server_port,
        log_level=global_settings.log_level.lower(),
    )

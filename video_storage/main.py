"""
FastAPI application entry point.

This module creates and configures the FastAPI application and runs it.
Using an application factory (create_app) that takes the context and the
storage client explicitly because:
- Tests can build the app around an in-memory storage double
- Configuration is resolved exactly once, before anything is served
- Nothing in the request path reads the environment

For local development:
    STORAGE_MOCK_MODE=true BUCKET_NAME=videos ENDPOINT=http://localhost \\
    AUTHENTICATION_TYPE=hmac REGION=local ACCESS_KEY_ID=x SECRET_ACCESS_KEY=y \\
    python -m video_storage
"""

import sys
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .api.responses import not_found_response
from .api.routes import health, video
from .config.settings import ConfigurationError, build_configuration, get_settings
from .core.context import AppContext
from .core.observability import get_request_logger, setup_logging
from .infrastructure.storage.client import StorageClient, create_storage_client

CORRELATION_HEADER = "x-correlation-id"


def _request_url(request: Request) -> str:
    url = request.url.path
    if request.url.query:
        url = f"{url}?{request.url.query}"
    return url


def create_app(context: AppContext, storage: StorageClient) -> FastAPI:
    """
    Application factory.

    Wires the routes, the 404 fallback and the per-request exception
    boundary around an already-resolved context and storage client.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        log = context.logger()
        log.info(
            "Video storage proxy starting",
            extra={
                "version": __version__,
                "bucket": storage.bucket_name,
                "authentication": context.configuration.authentication_mode.value,
            }
        )
        yield
        log.info("Video storage proxy shutting down")

    app = FastAPI(
        title="Video Storage",
        version=__version__,
        description="Streams videos to and from an S3-compatible object storage bucket.",
        lifespan=lifespan,
    )
    app.state.context = context
    app.state.storage = storage

    app.include_router(health.router, tags=["Health"])
    app.include_router(video.router, tags=["Video"])

    # Unmatched routes (and known paths with the wrong method) answer 404
    @app.exception_handler(StarletteHTTPException)
    async def not_found_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code not in (404, 405):
            return await http_exception_handler(request, exc)

        url = _request_url(request)
        context.logger(request.headers.get(CORRELATION_HEADER)).error(
            f"Unable to find the requested resource ({url})!"
        )
        return not_found_response(url)

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """
        Catch-all exception handler.

        One failing request must not take the process down; the error is
        logged with its traceback and the caller gets a bare 500.
        """
        context.logger(request.headers.get(CORRELATION_HEADER)).error(
            "Uncaught exception.",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error": str(exc),
            },
            exc_info=exc,
        )
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal Server Error"},
        )

    return app


class ProxyServer(uvicorn.Server):
    """
    uvicorn server that flips the readiness flag once it is listening.

    uvicorn binds its sockets in startup(); if that fails it exits the
    process, and if the lifespan fails it sets should_exit. Only a clean
    startup marks the context ready.
    """

    def __init__(self, config: uvicorn.Config, context: AppContext) -> None:
        super().__init__(config)
        self.context = context

    async def startup(self, sockets: Optional[list] = None) -> None:
        await super().startup(sockets=sockets)
        if self.should_exit:
            return
        self.context.mark_ready()
        self.context.logger().info(
            f"Microservice is listening on port {self.config.port}!"
        )


def run() -> None:
    """
    Resolve configuration, build the app and serve it.

    Configuration errors are fatal: they are logged and the process exits
    before the listener is bound.
    """
    # Untagged until settings are read, so a bad variable is still logged as JSON
    setup_logging()
    startup_log = get_request_logger("", "")

    try:
        settings = get_settings()
        setup_logging(settings.log_level)
        startup_log = get_request_logger(settings.app_name_ver, settings.svc_name)
        configuration = build_configuration(settings)
        context = AppContext(configuration)
        storage = create_storage_client(configuration)
    except ConfigurationError as e:
        startup_log.error("Microservice failed to start.", extra={"error": str(e)})
        sys.exit(1)

    app = create_app(context, storage)
    config = uvicorn.Config(
        app,
        host="0.0.0.0",
        port=configuration.port,
        log_level=configuration.log_level.lower(),
        log_config=None,
    )
    server = ProxyServer(config, context)

    try:
        server.run()
    except Exception:
        startup_log.error("Microservice stopped unexpectedly.", exc_info=True)
        raise


# For debugging/development
if __name__ == "__main__":
    run()

"""
FastAPI dependency injection.

The application context and the storage client are created once at
startup and attached to `app.state`; these dependencies hand them to the
route handlers. Tests build the app with doubles instead of touching the
real object store.
"""

from typing import Annotated, Optional

from fastapi import Depends, Header, Request

from ..core.context import AppContext
from ..core.observability import RequestLoggerAdapter
from ..infrastructure.storage.client import StorageClient


def get_context(request: Request) -> AppContext:
    """Provide the process-wide application context."""
    return request.app.state.context


def get_storage_client(request: Request) -> StorageClient:
    """Provide the storage client shared by all requests."""
    return request.app.state.storage


def get_request_logger(
    context: Annotated[AppContext, Depends(get_context)],
    x_correlation_id: Annotated[Optional[str], Header()] = None,
) -> RequestLoggerAdapter:
    """
    Provide a logger tagged with the request's correlation id.

    The id comes from the x-correlation-id header set by the gateway or
    the calling service; requests without it log a placeholder id.
    """
    return context.logger(x_correlation_id)


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

# These type aliases make route signatures cleaner
ContextDep = Annotated[AppContext, Depends(get_context)]
StorageClientDep = Annotated[StorageClient, Depends(get_storage_client)]
RequestLoggerDep = Annotated[RequestLoggerAdapter, Depends(get_request_logger)]

"""
Process-wide application context.

Holds the resolved configuration and the readiness flag. The context is
built once at startup and handed to the HTTP surface; nothing else in
the process keeps global state.
"""

import threading
from typing import Optional

from ..config.settings import Configuration
from .observability import RequestLoggerAdapter, get_request_logger


class AppContext:
    """
    Configuration plus readiness state for one running proxy.

    The readiness flag flips from False to True once the HTTP listener is
    bound and never goes back. Writes happen on the server task and reads
    on request handlers, so access goes through a lock.
    """

    def __init__(self, configuration: Configuration) -> None:
        self.configuration = configuration
        self._ready = False
        self._lock = threading.Lock()

    @property
    def ready(self) -> bool:
        with self._lock:
            return self._ready

    def mark_ready(self) -> None:
        with self._lock:
            self._ready = True

    def logger(self, request_id: Optional[str] = None) -> RequestLoggerAdapter:
        """Logger tagged with this service's name and the given request id."""
        return get_request_logger(
            app=self.configuration.app_name_version,
            service=self.configuration.service_name,
            request_id=request_id,
        )

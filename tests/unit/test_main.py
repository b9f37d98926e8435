"""
Tests for process startup: readiness on bind and fatal configuration errors.
"""

import logging

import pytest
import uvicorn

from video_storage import main
from video_storage.config.settings import InvalidConfiguration, Settings
from video_storage.main import ProxyServer, create_app


class TestProxyServer:
    """Tests for the readiness hook on the uvicorn server."""

    @pytest.mark.asyncio
    async def test_marks_ready_after_startup(self, context, storage, monkeypatch):
        async def fake_startup(self, sockets=None):
            pass

        monkeypatch.setattr(uvicorn.Server, "startup", fake_startup)
        server = ProxyServer(uvicorn.Config(create_app(context, storage)), context)

        assert not context.ready
        await server.startup()

        assert context.ready

    @pytest.mark.asyncio
    async def test_stays_unready_when_startup_fails(self, context, storage, monkeypatch):
        async def failed_startup(self, sockets=None):
            self.should_exit = True

        monkeypatch.setattr(uvicorn.Server, "startup", failed_startup)
        server = ProxyServer(uvicorn.Config(create_app(context, storage)), context)

        await server.startup()

        assert not context.ready

    @pytest.mark.asyncio
    async def test_logs_listening_port(self, context, storage, monkeypatch, service_records):
        async def fake_startup(self, sockets=None):
            pass

        monkeypatch.setattr(uvicorn.Server, "startup", fake_startup)
        server = ProxyServer(uvicorn.Config(create_app(context, storage), port=4321), context)

        await server.startup()

        messages = [r.getMessage() for r in service_records("-1")]
        assert "Microservice is listening on port 4321!" in messages


class TestRun:
    """Tests for the process entry point."""

    def test_configuration_error_exits_before_serving(self, monkeypatch, service_records):
        served = []
        monkeypatch.setattr(main, "get_settings", lambda: Settings.from_environ({"BUCKET_NAME": "videos"}))
        monkeypatch.setattr(main, "setup_logging", lambda level="INFO": None)
        monkeypatch.setattr(ProxyServer, "run", lambda self: served.append(self))

        with pytest.raises(SystemExit) as excinfo:
            main.run()

        assert excinfo.value.code == 1
        assert served == []
        errors = [r for r in service_records() if r.levelno == logging.ERROR]
        assert "ENDPOINT" in errors[0].error

    def test_unreadable_settings_exit_before_serving(self, monkeypatch, service_records):
        """A variable pydantic rejects is reported like any other bad configuration."""
        served = []

        def bad_settings():
            raise InvalidConfiguration("STREAM_CHUNK_SIZE", "Input should be greater than 0")

        monkeypatch.setattr(main, "get_settings", bad_settings)
        monkeypatch.setattr(main, "setup_logging", lambda level="INFO": None)
        monkeypatch.setattr(ProxyServer, "run", lambda self: served.append(self))

        with pytest.raises(SystemExit) as excinfo:
            main.run()

        assert excinfo.value.code == 1
        assert served == []
        errors = [r for r in service_records() if r.levelno == logging.ERROR]
        assert errors[0].getMessage() == "Microservice failed to start."
        assert "STREAM_CHUNK_SIZE" in errors[0].error

    def test_valid_configuration_serves_on_port(self, monkeypatch, hmac_environ):
        served = []
        environ = {**hmac_environ, "PORT": "8081", "STORAGE_MOCK_MODE": "true"}
        monkeypatch.setattr(main, "get_settings", lambda: Settings.from_environ(environ))
        monkeypatch.setattr(main, "setup_logging", lambda level="INFO": None)
        monkeypatch.setattr(ProxyServer, "run", lambda self: served.append(self))

        main.run()

        assert len(served) == 1
        assert served[0].config.port == 8081
        assert not served[0].context.ready

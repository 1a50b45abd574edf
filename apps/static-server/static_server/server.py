"""Server runtime running the static server app under uvicorn."""

from __future__ import annotations

import threading
import time

import structlog
import uvicorn

from .app import build_app
from .models import ServerConfig

LOGGER = structlog.get_logger("static_server")


def _console_summary(config: ServerConfig, port: int) -> list[str]:
    host = "localhost" if config.host in {"0.0.0.0", "::", ""} else config.host
    mode = "single page application" if config.single_page_mode else "static files"
    lines = [
        f"[static-server] http://{host}:{port} -> {config.root_dir}",
        f"    mode: {mode}",
    ]
    if config.single_page_mode and config.basename:
        lines.append(f"    basename: {config.basename}")
    flags = [
        name
        for name, enabled in (("cors", config.cors_enabled), ("auth", config.auth_enabled))
        if enabled
    ]
    if flags:
        lines.append(f"    enabled: {', '.join(flags)}")
    if config.cache_max_age is not None:
        lines.append(f"    cache: {config.cache_max_age}ms")
    if config.mock_rules:
        lines.append(f"    mocks ({config.mock_match_mode} match wins, dir {config.mock_dir}):")
        lines.extend(
            f"      - {rule.source} -> {rule.target_template}"
            + (f" [{rule.status_override}]" if rule.status_override else "")
            for rule in config.mock_rules
        )
    return lines


class StaticServerRunner:
    """Runs one uvicorn server for a ``ServerConfig`` in a background thread."""

    def __init__(self, config: ServerConfig, *, announce: bool = True) -> None:
        self._config = config
        self._announce = announce
        self._server: uvicorn.Server | None = None
        self._thread: threading.Thread | None = None
        self._ready = threading.Event()
        self._logger = LOGGER.bind(root=str(config.root_dir))
        self.port: int | None = None

    def start(self) -> None:
        self._logger.info("server_starting", host=self._config.host, port=self._config.port)
        uvicorn_config = uvicorn.Config(
            build_app(self._config),
            host=self._config.host,
            port=self._config.port,
            log_config=None,
            access_log=False,
            lifespan="off",
        )
        server = uvicorn.Server(uvicorn_config)
        self._server = server
        self._thread = threading.Thread(target=server.run, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        if not self._server:
            return
        self._logger.info("server_stopping")
        self._server.should_exit = True
        try:
            if self._thread:
                self._thread.join(timeout=5)
        finally:
            self._server = None
            self._thread = None
            self._ready.clear()
        self._logger.info("server_stopped")

    def wait_until_ready(self, timeout: float = 5.0) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            server = self._server
            if server is not None and server.started:
                self._on_ready(server)
                return True
            if self._thread is not None and not self._thread.is_alive():
                return False
            time.sleep(0.02)
        return False

    def serve_forever(self) -> None:
        """Block until the server exits (Ctrl-C or ``stop``)."""

        if self._thread is None:
            self.start()
        self.wait_until_ready()
        try:
            while self._thread is not None and self._thread.is_alive():
                self._thread.join(timeout=0.5)
        except KeyboardInterrupt:
            pass
        finally:
            self.stop()

    def _on_ready(self, server: uvicorn.Server) -> None:
        if self._ready.is_set():
            return
        sockets = [sock for listener in server.servers for sock in listener.sockets]
        self.port = sockets[0].getsockname()[1] if sockets else self._config.port
        self._ready.set()
        self._logger = self._logger.bind(host=self._config.host, port=self.port)
        self._logger.info("server_started")
        if self._announce:
            for line in _console_summary(self._config, self.port):
                print(line)

    @property
    def url(self) -> str:
        host = "127.0.0.1" if self._config.host in {"0.0.0.0", "::", ""} else self._config.host
        return f"http://{host}:{self.port or self._config.port}"

    def __enter__(self) -> "StaticServerRunner":
        self.start()
        self.wait_until_ready()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # pragma: no cover - context helper
        self.stop()

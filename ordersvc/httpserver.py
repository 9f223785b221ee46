"""Threaded WSGI server that runs in the background."""

from __future__ import annotations

import threading
from collections.abc import Callable
from datetime import timedelta
from typing import Any

from werkzeug.serving import BaseWSGIServer, WSGIRequestHandler, make_server

_DEFAULT_PORT = "80"
_DEFAULT_TIMEOUT = 5.0
_HOST = "0.0.0.0"


def _seconds(value: timedelta | float) -> float:
    return value.total_seconds() if isinstance(value, timedelta) else float(value)


class HTTPServer:
    """Serves a WSGI application on a port; serving errors are reported by wait_error()."""

    def __init__(
        self,
        app: Callable[..., Any],
        port: str = _DEFAULT_PORT,
        read_timeout: timedelta | float = _DEFAULT_TIMEOUT,
        write_timeout: timedelta | float = _DEFAULT_TIMEOUT,
        shutdown_timeout: timedelta | float = _DEFAULT_TIMEOUT,
    ) -> None:
        self.app = app
        self.port = str(port)
        self.read_timeout = _seconds(read_timeout)
        self.write_timeout = _seconds(write_timeout)
        self.shutdown_timeout = _seconds(shutdown_timeout)
        self._server: BaseWSGIServer | None = None
        self._started = False
        self._done = threading.Event()
        self._error: BaseException | None = None

    @property
    def server_port(self) -> int | None:
        """The port actually bound, or None when not serving."""
        return self._server.server_port if self._server is not None else None

    def start(self) -> None:
        """Begin serving in a background thread."""
        if self._started:
            raise RuntimeError("server already started")
        self._started = True
        timeout = max(self.read_timeout, self.write_timeout)

        class _Handler(WSGIRequestHandler):
            pass

        _Handler.timeout = timeout
        try:
            server = make_server(_HOST, int(self.port), self.app, threaded=True, request_handler=_Handler)
        except (OSError, ValueError, OverflowError) as exc:
            self._finish(exc)
            return
        self._server = server
        threading.Thread(target=self._serve, args=(server,), name="http-server", daemon=True).start()

    def _serve(self, server: BaseWSGIServer) -> None:
        try:
            server.serve_forever()
        except Exception as exc:
            self._finish(exc)
            return
        self._finish(None)

    def _finish(self, error: BaseException | None) -> None:
        self._error = error
        self._done.set()

    def wait_error(self, timeout: float | None = None) -> BaseException | None:
        """Wait until serving stops and return its error, or None after a clean shutdown.

        Raises TimeoutError if the server is still serving after ``timeout`` seconds.
        """
        if not self._done.wait(timeout):
            raise TimeoutError("server is still running")
        return self._error

    def shutdown(self) -> None:
        """Stop serving; raises TimeoutError if that takes longer than the shutdown timeout."""
        server = self._server
        if server is None:
            return
        stopper = threading.Thread(target=server.shutdown, name="http-shutdown", daemon=True)
        stopper.start()
        stopper.join(self.shutdown_timeout)
        if stopper.is_alive():
            raise TimeoutError(f"server did not stop within {self.shutdown_timeout:g}s")
        server.server_close()
        self._server = None
"""Run a command and stop it when ``/kill`` is requested over HTTP."""

from __future__ import annotations

import logging
import subprocess
import sys
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Sequence

log = logging.getLogger(__name__)

PORT = 8090
"""Port the control server listens on, on every interface."""
READ_HEADER_TIMEOUT = 5.0
"""Seconds a client may take to send its request."""


class _KillHandler(BaseHTTPRequestHandler):
    timeout = READ_HEADER_TIMEOUT
    server: _WatcherServer

    def _handle(self) -> None:
        if self.path.split("?", 1)[0] != "/kill":
            self.send_error(404, "page not found")
            return
        try:
            self.server.process.kill()
        except OSError as exc:
            print("error killing process", exc)
        body = b"OK"
        try:
            self.send_response(200)
            self.send_header("Content-Type", "text/plain; charset=utf-8")
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)
        except OSError as exc:
            print("error shuting down", exc)
        self.server.shutdown()

    do_GET = do_POST = do_PUT = do_DELETE = do_PATCH = _handle

    def log_message(self, format: str, *args: object) -> None:
        log.debug(format, *args)


class _WatcherServer(ThreadingHTTPServer):
    daemon_threads = True
    allow_reuse_address = True

    def __init__(self, address: tuple[str, int], process: subprocess.Popen) -> None:
        super().__init__(address, _KillHandler)
        self.process = process


def _stop(process: subprocess.Popen) -> None:
    process.kill()
    try:
        process.wait(timeout=READ_HEADER_TIMEOUT)
    except subprocess.TimeoutExpired:
        log.error("process %d did not exit", process.pid)


def main(argv: Sequence[str] | None = None) -> int:
    """Start the command in ``argv`` and serve ``/kill`` until it is called."""
    logging.basicConfig(level=logging.INFO)
    args = list(sys.argv[1:] if argv is None else argv)
    if len(args) < 2:
        log.error("missing arguments")
        return 1

    try:
        process = subprocess.Popen(args)
    except OSError as exc:
        log.error("%s", exc)
        return 1

    try:
        server = _WatcherServer(("", PORT), process)
    except OSError as exc:
        log.error("%s", exc)
    else:
        with server:
            server.serve_forever()
        log.info("server closed")

    try:
        _stop(process)
    except OSError as exc:
        log.error("%s", exc)
    # The server only stops on an error or a shutdown, both of which end with failure.
    return 1
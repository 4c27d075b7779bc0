import socket
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest

from gateway.context import GatewayContext
from gateway.host_map import HostMap


class CapturingHandler(BaseHTTPRequestHandler):
    """Backend stub that records every request and answers with a canned body."""

    protocol_version = "HTTP/1.1"

    def _handle(self):
        length = int(self.headers.get("Content-Length") or 0)
        body = self.rfile.read(length) if length else b""
        self.server.captured.append(
            {
                "method": self.command,
                "path": self.path,
                "headers": self.headers,
                "body": body,
            }
        )
        if self.server.delay:
            time.sleep(self.server.delay)
        payload = self.server.response_body
        self.send_response(self.server.response_status)
        self.send_header("Content-Type", self.server.response_content_type)
        self.send_header("Content-Length", str(len(payload)))
        self.end_headers()
        if self.command != "HEAD":
            self.wfile.write(payload)

    do_GET = _handle
    do_POST = _handle
    do_PUT = _handle
    do_PATCH = _handle
    do_DELETE = _handle
    do_HEAD = _handle
    do_OPTIONS = _handle
    do_TRACE = _handle
    do_PURGE = _handle
    do_PROPFIND = _handle

    def log_message(self, *_):
        pass


class CapturingServer(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(self):
        super().__init__(("127.0.0.1", 0), CapturingHandler)
        self.captured = []
        self.delay = 0.0
        self.response_status = 200
        self.response_body = b'{"ok": true}'
        self.response_content_type = "application/json"

    @property
    def address(self) -> str:
        return f"127.0.0.1:{self.server_address[1]}"

    @property
    def last(self) -> dict:
        return self.captured[-1]

    def handle_error(self, request, client_address):
        # The gateway may hang up on slow responses; that is expected here.
        pass


@pytest.fixture
def backend():
    server = CapturingServer()
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield server
    server.shutdown()
    server.server_close()


@pytest.fixture
def closed_port():
    """A local port with nothing listening on it."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.fixture
def make_context():
    def _make(entries=None, **kwargs):
        kwargs.setdefault("hostname", "gateway-test-host")
        return GatewayContext(host_map=HostMap(entries or {}), **kwargs)

    return _make

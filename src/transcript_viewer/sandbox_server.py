"""Loopback HTTP engine hosting the isolated preview document.

The document is served with a ``Content-Security-Policy: sandbox`` header so
the browser gives it an opaque origin. Console notifications come back as
beacons to ``/console/<render_key>`` and are handed to ``deliver`` from the
server thread; the caller is responsible for marshalling onto its own loop.
"""

from __future__ import annotations

from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
import json
import logging
import threading
from typing import Any, Callable, Optional, Protocol

from transcript_viewer.sandbox import SandboxDocument

logger = logging.getLogger(__name__)

Deliver = Callable[[int, Any], None]

MAX_BEACON_BYTES = 64 * 1024


class SandboxEngine(Protocol):
    def load(self, document: SandboxDocument) -> None: ...

    def beacon_url(self, render_key: int) -> Optional[str]: ...

    def document_url(self) -> Optional[str]: ...

    def close(self) -> None: ...


def _parse_key(path: str, prefix: str) -> Optional[int]:
    if not path.startswith(prefix):
        return None
    raw = path[len(prefix) :].split("?", 1)[0].strip("/")
    if not raw.isdigit():
        return None
    return int(raw)


class _PreviewHTTPServer(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(self, address: tuple[str, int], owner: "PreviewServer") -> None:
        super().__init__(address, _PreviewRequestHandler)
        self.owner = owner


class _PreviewRequestHandler(BaseHTTPRequestHandler):
    server: _PreviewHTTPServer

    def do_GET(self) -> None:
        key = _parse_key(self.path, "/doc/")
        document = self.server.owner.current_document
        if key is None or document is None:
            self.send_error(HTTPStatus.NOT_FOUND)
            return
        if key != document.render_key:
            self.send_error(HTTPStatus.GONE, "Superseded preview document")
            return
        body = document.html.encode("utf-8")
        self.send_response(HTTPStatus.OK)
        self.send_header("Content-Type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.send_header("Content-Security-Policy", document.csp_header)
        self.send_header("Cache-Control", "no-store")
        self.end_headers()
        self.wfile.write(body)

    def do_POST(self) -> None:
        key = _parse_key(self.path, "/console/")
        if key is None:
            self.send_error(HTTPStatus.NOT_FOUND)
            return
        try:
            length = int(self.headers.get("Content-Length") or 0)
        except ValueError:
            length = 0
        if length <= 0 or length > MAX_BEACON_BYTES:
            self.send_error(HTTPStatus.BAD_REQUEST)
            return
        raw = self.rfile.read(length)
        try:
            payload = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            logger.debug("Ignoring undecodable console beacon for key=%s", key)
            self.send_error(HTTPStatus.BAD_REQUEST)
            return
        self.server.owner.deliver(key, payload)
        self.send_response(HTTPStatus.NO_CONTENT)
        self.send_header("Access-Control-Allow-Origin", "*")
        self.end_headers()

    def log_message(self, format: str, *args: Any) -> None:
        logger.debug("preview-server %s - %s", self.address_string(), format % args)


class PreviewServer:
    """Serves one live document at a time on the loopback interface."""

    def __init__(self, deliver: Deliver, *, host: str = "127.0.0.1", port: int = 0):
        self._deliver = deliver
        self._host = host
        self._port = port
        self._lock = threading.Lock()
        self._document: Optional[SandboxDocument] = None
        self._server: Optional[_PreviewHTTPServer] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def current_document(self) -> Optional[SandboxDocument]:
        with self._lock:
            return self._document

    @property
    def address(self) -> Optional[tuple[str, int]]:
        if self._server is None:
            return None
        host, port = self._server.server_address[:2]
        return str(host), int(port)

    def start(self) -> "PreviewServer":
        if self._server is not None:
            return self
        self._server = _PreviewHTTPServer((self._host, self._port), self)
        self._thread = threading.Thread(
            target=self._server.serve_forever, name="PreviewServer", daemon=True
        )
        self._thread.start()
        logger.info("Preview server listening on %s", self._base_url())
        return self

    def deliver(self, render_key: int, payload: Any) -> None:
        try:
            self._deliver(render_key, payload)
        except Exception:
            logger.exception("Console delivery failed for key=%s", render_key)

    def load(self, document: SandboxDocument) -> None:
        with self._lock:
            self._document = document

    def _base_url(self) -> Optional[str]:
        address = self.address
        if address is None:
            return None
        return f"http://{address[0]}:{address[1]}"

    def beacon_url(self, render_key: int) -> Optional[str]:
        base = self._base_url()
        return f"{base}/console/{render_key}" if base else None

    def document_url(self) -> Optional[str]:
        base = self._base_url()
        document = self.current_document
        if base is None or document is None:
            return None
        return f"{base}/doc/{document.render_key}"

    def close(self) -> None:
        server, self._server = self._server, None
        thread, self._thread = self._thread, None
        with self._lock:
            self._document = None
        if server is None:
            return
        server.shutdown()
        server.server_close()
        if thread is not None:
            thread.join(timeout=2.0)
        logger.info("Preview server stopped")


def start_preview_server(deliver: Deliver) -> PreviewServer:
    return PreviewServer(deliver).start()

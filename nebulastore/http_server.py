"""A small threaded HTTP server with exact routes and an optional S3 fallback."""

from __future__ import annotations

import argparse
import json
import logging
import threading
from dataclasses import dataclass, field
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Callable, Optional

from nebulastore.s3_handler import S3Handler
from nebulastore.s3_types import S3Request

_log = logging.getLogger(__name__)

HttpHandler = Callable[[str, str, str], str]


@dataclass
class HttpResponse:
    """What a request resolved to, before it is written to the wire."""

    status: int = 200
    content_type: str = "application/json"
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""


class _RequestHandler(BaseHTTPRequestHandler):
    protocol_version = "HTTP/1.1"
    server_version = "nebulastore"

    def _serve(self) -> None:
        try:
            length = int(self.headers.get("Content-Length") or 0)
        except ValueError:
            self.send_error(400, "Invalid Content-Length")
            return
        body = self.rfile.read(length) if length > 0 else b""
        response = self.server.app.dispatch(  # type: ignore[attr-defined]
            self.command, self.path, body, dict(self.headers.items())
        )
        headers = {"Content-Type": response.content_type, **response.headers}
        declared_length = headers.pop("Content-Length", None)
        self.send_response(response.status)
        for name, value in headers.items():
            self.send_header(name, value)
        if self.command == "HEAD":
            self.send_header("Content-Length", declared_length or str(len(response.body)))
            self.end_headers()
            return
        self.send_header("Content-Length", str(len(response.body)))
        self.end_headers()
        self.wfile.write(response.body)

    do_GET = do_PUT = do_POST = do_DELETE = do_HEAD = _serve

    def log_message(self, format: str, *args: object) -> None:
        _log.debug("%s - %s", self.address_string(), format % args)


class _Server(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(self, address: tuple[str, int], app: "HttpServer") -> None:
        self.app = app
        super().__init__(address, _RequestHandler)


class HttpServer:
    """Serves registered routes first, then S3 requests if S3 is enabled."""

    def __init__(self, address: str, port: int) -> None:
        self.address = address
        self._port = port
        self._routes: dict[tuple[str, str], HttpHandler] = {}
        self._s3: Optional[S3Handler] = None
        self._httpd: Optional[_Server] = None
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    @property
    def port(self) -> int:
        """The bound port while running, else the configured one."""
        if self._httpd is not None:
            return self._httpd.server_address[1]
        return self._port

    def is_running(self) -> bool:
        return self._httpd is not None

    def start(self) -> bool:
        """Bind and serve in a background thread; ``False`` if binding fails."""
        with self._lock:
            if self._httpd is not None:
                _log.warning("HTTP server is already running")
                return True
            listen = f"{self.address}:{self._port}"
            try:
                httpd = _Server((self.address, self._port), self)
            except OSError as exc:
                _log.error("HTTP server failed to listen on %s: %s", listen, exc)
                return False
            self._httpd = httpd
            self._thread = threading.Thread(
                target=httpd.serve_forever, kwargs={"poll_interval": 0.5},
                name="http-server", daemon=True,
            )
            self._thread.start()
            _log.info("HTTP server listening on %s:%d", self.address, self.port)
            return True

    def stop(self) -> None:
        with self._lock:
            if self._httpd is None:
                return
            _log.info("Shutting down HTTP server...")
            self._httpd.shutdown()
            self._httpd.server_close()
            if self._thread is not None:
                self._thread.join()
            self._httpd = None
            self._thread = None
            _log.info("HTTP server stopped")

    def __enter__(self) -> "HttpServer":
        if not self.start():
            raise OSError(f"cannot listen on {self.address}:{self._port}")
        return self

    def __exit__(self, *args: object) -> None:
        self.stop()

    def register_handler(self, method: str, path: str, handler: HttpHandler) -> None:
        """Serve exactly ``method path`` with ``handler(method, path, body) -> str``."""
        self._routes[(method, path)] = handler
        _log.debug("Registered route: %s %s", method, path)

    def enable_s3(self, data_dir: str) -> None:
        """Answer unrouted requests as S3 calls, storing data under ``data_dir``."""
        self._s3 = S3Handler(data_dir)
        _log.info("S3 API enabled, data directory: %s", data_dir)

    def dispatch(
        self, method: str, path: str, body: bytes, headers: Optional[dict[str, str]] = None
    ) -> HttpResponse:
        """Resolve one request to a response without touching the network."""
        route_path = path.partition("?")[0]
        _log.debug("HTTP request: %s %s", method, route_path)

        handler = self._routes.get((method, route_path))
        if handler is not None:
            text = handler(method, route_path, body.decode("utf-8", "surrogateescape"))
            return HttpResponse(body=text.encode("utf-8", "surrogateescape"))

        if self._s3 is not None:
            request = S3Request(method=method, uri=path, body=body, headers=dict(headers or {}))
            s3_response = self._s3.handle(request)
            return HttpResponse(
                status=s3_response.status_code,
                content_type=s3_response.content_type,
                headers=dict(s3_response.headers),
                body=s3_response.body,
            )

        payload = json.dumps({"error": "Not Found", "path": route_path})
        return HttpResponse(status=404, body=payload.encode("utf-8"))


def main(argv: Optional[list[str]] = None) -> int:
    """Run an S3-compatible HTTP server until interrupted."""
    parser = argparse.ArgumentParser(prog="nebulastore", description="S3-compatible object server")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8080)
    parser.add_argument("--data-dir", default="./data")
    parser.add_argument("--log-level", default="INFO")
    args = parser.parse_args(argv)

    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    server = HttpServer(args.host, args.port)
    server.enable_s3(args.data_dir)
    if not server.start():
        return 1
    try:
        threading.Event().wait()
    except KeyboardInterrupt:
        pass
    finally:
        server.stop()
    return 0
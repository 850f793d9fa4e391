"""HTTP server for dynamic certificate configuration using stdlib http.server.

Routes:
    POST   /configuration/servers   store hostname to PEM cert+key entries
    GET    /configuration/certs     fetch the PEM bundle for ?hostname=
    GET    /configuration/general   read the general configuration blob
    POST   /configuration/general   replace the general configuration blob
    GET    /configuration/backends  read the backends configuration blob
    POST   /configuration/backends  replace the backends configuration blob

Usage:
    python -m certsync.server.app --port 10246
    python -m certsync.server.app --host 127.0.0.1 --port 9000
"""
from __future__ import annotations

import argparse
import logging
import urllib.parse
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

from certsync.server import routes

logger = logging.getLogger(__name__)

DEFAULT_PORT = 10246


class ConfigurationHandler(BaseHTTPRequestHandler):
    """HTTP request handler for the configuration server.

    Every method is passed to :func:`routes.dispatch`, which decides whether
    the method is allowed on the path. Responses are plain text.
    """

    def log_message(self, format: str, *args: object) -> None:
        """Override to route access logs through the Python logging system."""
        logger.debug(format, *args)

    def do_GET(self) -> None:
        self._dispatch("GET")

    def do_POST(self) -> None:
        self._dispatch("POST")

    def do_PUT(self) -> None:
        self._dispatch("PUT")

    def do_DELETE(self) -> None:
        self._dispatch("DELETE")

    def do_PATCH(self) -> None:
        self._dispatch("PATCH")

    # ── Helpers ───────────────────────────────────────────────────────────────

    def _dispatch(self, method: str) -> None:
        parsed = urllib.parse.urlparse(self.path)
        path = parsed.path.rstrip("/")
        query = urllib.parse.parse_qs(parsed.query)
        body = self._read_body()
        status, text = routes.dispatch(method, path, query, body)
        self._send_text(status, text)

    def _read_body(self) -> bytes:
        content_length = int(self.headers.get("Content-Length", 0) or 0)
        if content_length <= 0:
            return b""
        return self.rfile.read(content_length)

    def _send_text(self, status: int, text: str) -> None:
        """Send *text* as the response body with *status*."""
        body = text.encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "text/plain; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)


def create_server(host: str = "127.0.0.1", port: int = DEFAULT_PORT) -> ThreadingHTTPServer:
    """Create (but do not start) the configuration HTTP server.

    Parameters
    ----------
    host:
        Bind address (default ``"127.0.0.1"``).
    port:
        TCP port to listen on. Pass 0 to pick a free port.

    Returns
    -------
    ThreadingHTTPServer
        A configured server instance ready to call ``serve_forever()`` on.
    """
    server = ThreadingHTTPServer((host, port), ConfigurationHandler)
    logger.info(
        "configuration server created at http://%s:%d", host, server.server_address[1]
    )
    return server


def run_server(host: str = "127.0.0.1", port: int = DEFAULT_PORT) -> None:
    """Create and run the configuration HTTP server (blocking).

    Parameters
    ----------
    host:
        Bind address.
    port:
        TCP port.
    """
    server = create_server(host=host, port=port)
    logger.info("Serving configuration on http://%s:%d, press Ctrl-C to stop", host, port)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Shutting down configuration server.")
    finally:
        server.server_close()


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="certsync dynamic configuration server",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--host", default="127.0.0.1", help="Bind address")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT, help="TCP port")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )
    return parser


if __name__ == "__main__":
    args = _build_arg_parser().parse_args()
    logging.basicConfig(level=getattr(logging, args.log_level))
    run_server(host=args.host, port=args.port)

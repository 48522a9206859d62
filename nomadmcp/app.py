"""Command-line entry point: an MCP server for a Nomad cluster over stdio or SSE."""

from __future__ import annotations

import argparse
import json
import logging
import os
import queue
import sys
import threading
import uuid
from collections.abc import Mapping
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any
from urllib.parse import parse_qs, urlsplit

from .client import connect
from .jobtools import register_job_tools
from .mcpserver import McpServer
from .namespacetools import register_namespace_tools, register_variable_tools
from .nodetools import register_cluster_tools, register_node_tools
from .transport import NomadAPIError
from .workloadtools import (
    register_allocation_tools,
    register_deployment_tools,
    register_log_tools,
)

log = logging.getLogger("nomadmcp")

SERVER_NAME = "Nomad MCP"
SERVER_VERSION = "0.1.4"
DEFAULT_NOMAD_ADDR = "http://localhost:4646"
AUTH_KEY = "auth"
_KEEPALIVE_SECONDS = 15.0


def _header(headers: Mapping[str, str], name: str) -> str:
    value = headers.get(name)
    if value is None:
        lowered = name.lower()
        value = next((v for k, v in headers.items() if k.lower() == lowered), None)
    return value or ""


def auth_from_request(context: Mapping[str, Any], headers: Mapping[str, str]) -> dict:
    """Return the context with the request's Authorization header, if any."""
    result = dict(context)
    token = _header(headers, "Authorization")
    if token:
        result[AUTH_KEY] = token
    return result


def auth_from_env(context: Mapping[str, Any], environ: Mapping[str, str] | None = None) -> dict:
    """Return the context with NOMAD_TOKEN from the environment, if set."""
    environ = os.environ if environ is None else environ
    result = dict(context)
    token = environ.get("NOMAD_TOKEN", "")
    if token:
        result[AUTH_KEY] = token
    return result


def validate_origin(headers: Mapping[str, str], environ: Mapping[str, str] | None = None) -> bool:
    """Allow requests with no Origin, or one starting with a local or the Nomad address."""
    environ = os.environ if environ is None else environ
    origin = _header(headers, "Origin")
    if not origin:
        return True
    allowed = ("http://localhost", "http://127.0.0.1", environ.get("NOMAD_ADDR", ""))
    return any(origin.startswith(prefix) for prefix in allowed)


def register_tools(server: McpServer, client) -> None:
    """Register every tool of the package on the server."""
    register_job_tools(server, client)
    register_deployment_tools(server, client)
    register_namespace_tools(server, client)
    register_node_tools(server, client)
    register_allocation_tools(server, client)
    register_variable_tools(server, client)
    register_log_tools(server, client)
    register_cluster_tools(server, client)


class SSEServer:
    """Serves an MCP server over HTTP with Server-Sent Events."""

    def __init__(self, mcp: McpServer, base_url: str):
        self.mcp = mcp
        self.base_url = base_url.rstrip("/")
        self.ready = threading.Event()
        self.address: tuple[str, int] | None = None
        self._sessions: dict[str, queue.Queue] = {}
        self._lock = threading.Lock()
        self._httpd: ThreadingHTTPServer | None = None

    def serve(self, host: str, port: int | str) -> None:
        """Listen on host:port and serve requests until shut down."""
        httpd = ThreadingHTTPServer((host, int(port)), self._handler_class())
        httpd.daemon_threads = True
        self._httpd = httpd
        self.address = httpd.server_address[:2]
        self.ready.set()
        try:
            httpd.serve_forever()
        finally:
            httpd.server_close()

    def shutdown(self) -> None:
        """Stop a running serve() call."""
        if self._httpd is not None:
            self._httpd.shutdown()

    def _open_session(self) -> tuple[str, queue.Queue]:
        session_id = str(uuid.uuid4())
        outbox: queue.Queue = queue.Queue()
        with self._lock:
            self._sessions[session_id] = outbox
        return session_id, outbox

    def _close_session(self, session_id: str) -> None:
        with self._lock:
            self._sessions.pop(session_id, None)

    def _session(self, session_id: str) -> queue.Queue | None:
        with self._lock:
            return self._sessions.get(session_id)

    def _handler_class(self) -> type[BaseHTTPRequestHandler]:
        owner = self

        class Handler(BaseHTTPRequestHandler):
            def log_message(self, format: str, *args: Any) -> None:
                log.debug("%s - %s", self.address_string(), format % args)

            def _plain(self, status: int, text: str) -> None:
                data = (text + "\n").encode("utf-8")
                self.send_response(status)
                self.send_header("Content-Type", "text/plain; charset=utf-8")
                self.send_header("Content-Length", str(len(data)))
                self.end_headers()
                self.wfile.write(data)

            def _allowed(self) -> bool:
                if validate_origin(self.headers):
                    return True
                self._plain(403, "Invalid origin")
                return False

            def do_GET(self) -> None:
                if not self._allowed():
                    return
                if urlsplit(self.path).path != "/sse":
                    self._plain(404, "Not found")
                    return
                session_id, outbox = owner._open_session()
                try:
                    self.send_response(200)
                    self.send_header("Content-Type", "text/event-stream")
                    self.send_header("Cache-Control", "no-cache")
                    self.send_header("Connection", "keep-alive")
                    self.end_headers()
                    endpoint = f"{owner.base_url}/message?sessionId={session_id}"
                    self._event("endpoint", endpoint)
                    while True:
                        try:
                            message = outbox.get(timeout=_KEEPALIVE_SECONDS)
                        except queue.Empty:
                            self.wfile.write(b": ping\n\n")
                            self.wfile.flush()
                            continue
                        self._event("message", message)
                except (BrokenPipeError, ConnectionResetError, OSError):
                    pass
                finally:
                    owner._close_session(session_id)

            def _event(self, name: str, data: str) -> None:
                self.wfile.write(f"event: {name}\ndata: {data}\n\n".encode("utf-8"))
                self.wfile.flush()

            def do_POST(self) -> None:
                if not self._allowed():
                    return
                parts = urlsplit(self.path)
                if parts.path != "/message":
                    self._plain(404, "Not found")
                    return
                session_id = parse_qs(parts.query).get("sessionId", [""])[0]
                outbox = owner._session(session_id)
                if outbox is None:
                    self._plain(400, "Invalid session ID")
                    return
                length = int(self.headers.get("Content-Length") or 0)
                try:
                    message = json.loads(self.rfile.read(length))
                except ValueError:
                    self._plain(400, "Invalid message")
                    return
                context = auth_from_request({}, self.headers)
                response = owner.mcp.handle_message(message, context)
                if response is not None:
                    outbox.put(json.dumps(response, separators=(",", ":")))
                self._plain(202, "Accepted")

        return Handler


def main(argv: list[str] | None = None) -> int:
    """Run the Nomad MCP server; returns the process exit status."""
    parser = argparse.ArgumentParser(prog="nomadmcp", description="MCP server for Nomad")
    parser.add_argument(
        "-transport", "--transport", default="stdio", help="Transport type (stdio or sse)"
    )
    parser.add_argument("-port", "--port", default="8080", help="Port for SSE server")
    args = parser.parse_args(argv)

    logging.basicConfig(
        stream=sys.stderr,
        format="[NomadMCP] %(asctime)s %(message)s",
        datefmt="%Y/%m/%d %H:%M:%S",
        level=logging.INFO,
    )

    nomad_addr = os.environ.get("NOMAD_ADDR") or DEFAULT_NOMAD_ADDR
    token = os.environ.get("NOMAD_TOKEN", "")

    server = McpServer(SERVER_NAME, SERVER_VERSION)

    try:
        client = connect(nomad_addr, token)
    except (NomadAPIError, ValueError) as exc:
        log.error("Failed to create Nomad client: %s", exc)
        return 1

    register_tools(server, client)
    log.info("Starting Nomad MCP server...")

    if args.transport == "stdio":
        log.info("Server started on stdio")
        try:
            server.serve_stdio(sys.stdin, sys.stdout, auth_from_env({}, os.environ))
        except Exception as exc:  # noqa: BLE001 - fatal server error
            log.error("Server error: %s", exc)
            return 1
        return 0

    if args.transport == "sse":
        try:
            hostname = urlsplit(nomad_addr).hostname or ""
        except ValueError as exc:
            log.error("Invalid nomad-addr: %s", exc)
            return 1
        log.info("Nomad URL: %s", hostname)
        sse = SSEServer(server, f"http://{hostname}:{args.port}")
        log.info("SSE server listening on %s:%s", hostname, args.port)
        try:
            sse.serve(hostname, args.port)
        except (OSError, ValueError) as exc:
            log.error("Server error: %s", exc)
            return 1
        return 0

    log.error("Invalid transport type: %s. Must be 'stdio' or 'sse'", args.transport)
    return 1


if __name__ == "__main__":
    sys.exit(main())
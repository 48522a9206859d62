"""A small Model Context Protocol server: tool registry and JSON-RPC dispatch."""

from __future__ import annotations

import contextvars
import json
import logging
import sys
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from .models import to_plain

LATEST_PROTOCOL_VERSION = "2025-03-26"
SUPPORTED_PROTOCOL_VERSIONS = ("2025-03-26", "2024-11-05")

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603

LOG_LEVELS = ("debug", "info", "notice", "warning", "error", "critical", "alert", "emergency")

_HTML_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}

_REQUEST_CONTEXT: contextvars.ContextVar[Mapping[str, Any]] = contextvars.ContextVar(
    "request_context", default={}
)

log = logging.getLogger("nomadmcp")


def json_text(value: Any, indent: str = "  ") -> str:
    """Render a value as indented JSON text with HTML-sensitive characters escaped."""
    text = json.dumps(to_plain(value), indent=indent, ensure_ascii=False)
    for char, escaped in _HTML_ESCAPES.items():
        text = text.replace(char, escaped)
    return text


@dataclass(frozen=True)
class Param:
    """One input parameter of a tool."""

    name: str
    type: str = "string"
    description: str = ""
    required: bool = False
    enum: tuple = ()

    def schema(self) -> dict:
        schema: dict[str, Any] = {"type": self.type}
        if self.description:
            schema["description"] = self.description
        if self.enum:
            schema["enum"] = list(self.enum)
        return schema


@dataclass(frozen=True)
class Tool:
    """A tool exposed to clients."""

    name: str
    description: str = ""
    params: tuple = ()

    def input_schema(self) -> dict:
        schema: dict[str, Any] = {
            "type": "object",
            "properties": {param.name: param.schema() for param in self.params},
        }
        required = [param.name for param in self.params if param.required]
        if required:
            schema["required"] = required
        return schema

    def describe(self) -> dict:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema(),
        }


@dataclass(frozen=True)
class ToolResult:
    """The text outcome of a tool call."""

    text: str
    is_error: bool = False

    def to_dict(self) -> dict:
        result: dict[str, Any] = {"content": [{"type": "text", "text": self.text}]}
        if self.is_error:
            result["isError"] = True
        return result


def text_result(text: str) -> ToolResult:
    return ToolResult(text)


def error_result(message: str) -> ToolResult:
    return ToolResult(message, is_error=True)


def error_from_exception(message: str, error: BaseException | None) -> ToolResult:
    if error is None:
        return error_result(message)
    return error_result(f"{message}: {error}")


class _RpcError(Exception):
    def __init__(self, code: int, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


def _error_response(msg_id: Any, code: int, message: str) -> dict:
    return {"jsonrpc": "2.0", "id": msg_id, "error": {"code": code, "message": message}}


Handler = Callable[[dict], ToolResult]


class McpServer:
    """Registry of tools answering MCP JSON-RPC messages."""

    def __init__(self, name: str, version: str):
        self.name = name
        self.version = version
        self.log_level = "info"
        self._tools: dict[str, tuple[Tool, Handler]] = {}

    def add_tool(self, tool: Tool, handler: Handler) -> None:
        self._tools[tool.name] = (tool, handler)

    @property
    def tools(self) -> list[Tool]:
        return [tool for tool, _ in sorted(self._tools.values(), key=lambda entry: entry[0].name)]

    def call_tool(self, name: str, arguments: Mapping[str, Any] | None = None) -> ToolResult:
        try:
            _, handler = self._tools[name]
        except KeyError:
            raise LookupError(f"tool '{name}' not found") from None
        result = handler(dict(arguments or {}))
        if not isinstance(result, ToolResult):
            raise TypeError(f"tool '{name}' returned {type(result).__name__}")
        return result

    def handle_message(self, message: Any, context: Mapping[str, Any] | None = None) -> dict | None:
        """Answer one JSON-RPC message; notifications yield None."""
        token = _REQUEST_CONTEXT.set(dict(context or {}))
        try:
            return self._dispatch(message)
        finally:
            _REQUEST_CONTEXT.reset(token)

    def serve_stdio(self, stdin=None, stdout=None, context: Mapping[str, Any] | None = None) -> None:
        """Serve newline-delimited JSON-RPC until the input ends."""
        stdin = stdin if stdin is not None else sys.stdin
        stdout = stdout if stdout is not None else sys.stdout
        for line in stdin:
            line = line.strip()
            if not line:
                continue
            try:
                message = json.loads(line)
            except json.JSONDecodeError:
                response = _error_response(None, PARSE_ERROR, "Parse error")
            else:
                response = self.handle_message(message, context)
            if response is not None:
                stdout.write(json.dumps(response, ensure_ascii=False) + "\n")
                stdout.flush()

    def _dispatch(self, message: Any) -> dict | None:
        if not isinstance(message, Mapping):
            return _error_response(None, INVALID_REQUEST, "Invalid Request")
        msg_id = message.get("id")
        method = message.get("method")
        if message.get("jsonrpc") != "2.0" or not isinstance(method, str):
            return _error_response(msg_id, INVALID_REQUEST, "Invalid Request")
        if "id" not in message:
            log.debug("notification %s", method)
            return None
        params = message.get("params") or {}
        try:
            if not isinstance(params, Mapping):
                raise _RpcError(INVALID_PARAMS, "params must be an object")
            result = self._run_method(method, params)
        except _RpcError as exc:
            return _error_response(msg_id, exc.code, exc.message)
        return {"jsonrpc": "2.0", "id": msg_id, "result": result}

    def _run_method(self, method: str, params: Mapping[str, Any]) -> dict:
        if method == "initialize":
            requested = params.get("protocolVersion")
            version = (
                requested if requested in SUPPORTED_PROTOCOL_VERSIONS else LATEST_PROTOCOL_VERSION
            )
            return {
                "protocolVersion": version,
                "capabilities": {
                    "tools": {"listChanged": True},
                    "resources": {"subscribe": True, "listChanged": True},
                    "logging": {},
                },
                "serverInfo": {"name": self.name, "version": self.version},
            }
        if method == "ping":
            return {}
        if method == "tools/list":
            return {"tools": [tool.describe() for tool in self.tools]}
        if method == "tools/call":
            return self._call(params)
        if method == "resources/list":
            return {"resources": []}
        if method == "resources/templates/list":
            return {"resourceTemplates": []}
        if method == "logging/setLevel":
            level = params.get("level")
            if level not in LOG_LEVELS:
                raise _RpcError(INVALID_PARAMS, f"invalid logging level: {level}")
            self.log_level = level
            return {}
        raise _RpcError(METHOD_NOT_FOUND, f"Method {method} not found")

    def _call(self, params: Mapping[str, Any]) -> dict:
        name = params.get("name")
        arguments = params.get("arguments")
        if not isinstance(name, str):
            raise _RpcError(INVALID_PARAMS, "tool name is required")
        if arguments is not None and not isinstance(arguments, Mapping):
            raise _RpcError(INVALID_PARAMS, "arguments must be an object")
        if name not in self._tools:
            raise _RpcError(INVALID_PARAMS, f"tool '{name}' not found")
        try:
            result = self.call_tool(name, arguments)
        except Exception as exc:  # recover from any handler failure
            log.exception("tool %s failed", name)
            raise _RpcError(
                INTERNAL_ERROR, f"panic recovered in {name} tool handler: {exc}"
            ) from exc
        return result.to_dict()
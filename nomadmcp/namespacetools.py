"""MCP tools for Nomad namespaces and variables."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from functools import partial
from typing import Any

from .mcpserver import (
    McpServer,
    Param,
    Tool,
    ToolResult,
    error_from_exception,
    error_result,
    json_text,
    text_result,
)
from .models import Namespace, Variable
from .transport import NomadAPIError

log = logging.getLogger("nomadmcp")

DEFAULT_NAMESPACE = "default"
_CLIENT_ERRORS = (NomadAPIError, ValueError)


def _string_arg(arguments: Mapping[str, Any], key: str) -> str:
    value = arguments.get(key)
    return value if isinstance(value, str) else ""


def _int_arg(arguments: Mapping[str, Any], key: str) -> int:
    value = arguments.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return int(value)


def _namespace(arguments: Mapping[str, Any]) -> str:
    return _string_arg(arguments, "namespace") or DEFAULT_NAMESPACE


def _formatted(value: Any, failure: str) -> ToolResult:
    try:
        return text_result(json_text(value))
    except (TypeError, ValueError) as exc:
        return error_from_exception(failure, exc)


# Namespaces


def list_namespaces(client, arguments: Mapping[str, Any]) -> ToolResult:
    """List every namespace."""
    try:
        namespaces = client.list_namespaces()
    except _CLIENT_ERRORS as exc:
        log.error("Error listing namespaces: %s", exc)
        return error_from_exception("Failed to list namespaces", exc)
    return _formatted(namespaces, "Failed to format namespaces")


def create_namespace(client, arguments: Mapping[str, Any]) -> ToolResult:
    """Create a namespace."""
    name = _string_arg(arguments, "name")
    if not name:
        return error_result("name is required")
    namespace = Namespace(name=name, description=_string_arg(arguments, "description"))
    try:
        client.create_namespace(namespace)
    except _CLIENT_ERRORS as exc:
        log.error("Error creating namespace: %s", exc)
        return error_from_exception("Failed to create namespace", exc)
    return _formatted(
        {"message": f"Successfully created namespace {name}"}, "Failed to format result"
    )


def delete_namespace(client, arguments: Mapping[str, Any]) -> ToolResult:
    """Delete a namespace."""
    name = _string_arg(arguments, "name")
    if not name:
        return error_result("name is required")
    try:
        client.delete_namespace(name)
    except _CLIENT_ERRORS as exc:
        log.error("Error deleting namespace: %s", exc)
        return error_from_exception("Failed to delete namespace", exc)
    return _formatted(
        {"message": f"Successfully deleted namespace {name}"}, "Failed to format result"
    )


def register_namespace_tools(server: McpServer, client) -> None:
    """Register every namespace tool on the server."""
    tools = [
        (Tool("list_namespaces", "List all namespaces in Nomad"), list_namespaces),
        (
            Tool(
                "create_namespace",
                "Create a new namespace",
                (
                    Param(
                        "name", description="The name of the namespace to create", required=True
                    ),
                    Param("description", description="Description of the namespace"),
                ),
            ),
            create_namespace,
        ),
        (
            Tool(
                "delete_namespace",
                "Delete a namespace",
                (
                    Param(
                        "name", description="The name of the namespace to delete", required=True
                    ),
                ),
            ),
            delete_namespace,
        ),
    ]
    for tool, handler in tools:
        server.add_tool(tool, partial(handler, client))


# Variables


def list_variables(client, arguments: Mapping[str, Any]) -> ToolResult:
    """List variables, with optional prefix, paging and filter."""
    try:
        variables = client.list_variables(
            _namespace(arguments),
            _string_arg(arguments, "prefix"),
            _string_arg(arguments, "next_token"),
            _int_arg(arguments, "per_page"),
            _string_arg(arguments, "filter"),
        )
    except _CLIENT_ERRORS as exc:
        log.error("Error listing variables: %s", exc)
        return error_from_exception("Failed to list variables", exc)
    return _formatted(variables, "Failed to format variables")


def get_variable(client, arguments: Mapping[str, Any]) -> ToolResult:
    """Return the variable stored at a path."""
    path = _string_arg(arguments, "path")
    if not path:
        return error_result("path is required")
    try:
        variable = client.get_variable(path, _namespace(arguments))
    except _CLIENT_ERRORS as exc:
        log.error("Error getting variable: %s", exc)
        return error_from_exception("Failed to get variable", exc)
    return _formatted(variable, "Failed to format variable")


def create_variable(client, arguments: Mapping[str, Any]) -> ToolResult:
    """Create or update a variable holding one key-value pair."""
    path = _string_arg(arguments, "path")
    if not path:
        return error_result("path is required")
    key = _string_arg(arguments, "key")
    if not key:
        return error_result("key is required")
    value = _string_arg(arguments, "value")
    if not value:
        return error_result("value is required")

    namespace = _namespace(arguments)
    cas = max(_int_arg(arguments, "cas"), 0)
    lock_operation = _string_arg(arguments, "lock_operation")

    body: dict[str, Any] = {"Items": {key: value}}
    if cas > 0:
        body["CAS"] = cas
    if lock_operation:
        body["LockOperation"] = lock_operation

    try:
        encoded = json.dumps(body, sort_keys=True, separators=(",", ":"))
    except (TypeError, ValueError) as exc:
        log.error("Error marshaling variable value: %s", exc)
        return error_from_exception("Failed to format variable value", exc)

    variable = Variable(path=path, value=encoded)
    try:
        client.create_variable(variable, namespace, cas, lock_operation)
    except _CLIENT_ERRORS as exc:
        log.error("Error creating variable: %s", exc)
        return error_from_exception("Failed to create variable", exc)

    return _formatted(
        {"message": f"Variable created at path: {path} with key: {key}"},
        "Failed to format result",
    )


def delete_variable(client, arguments: Mapping[str, Any]) -> ToolResult:
    """Delete the variable stored at a path."""
    path = _string_arg(arguments, "path")
    if not path:
        return error_result("path is required")
    cas = max(_int_arg(arguments, "cas"), 0)
    try:
        client.delete_variable(path, _namespace(arguments), cas)
    except _CLIENT_ERRORS as exc:
        log.error("Error deleting variable: %s", exc)
        return error_from_exception("Failed to delete variable", exc)
    return _formatted({"message": f"Variable deleted at path: {path}"}, "Failed to format result")


def register_variable_tools(server: McpServer, client) -> None:
    """Register every variable tool on the server."""
    namespace_param = Param(
        "namespace", description="The namespace of the variable (default: default)"
    )
    cas_param = Param(
        "cas",
        type="number",
        description="Check-and-set value for optimistic concurrency control",
    )
    tools = [
        (
            Tool(
                "list_variables",
                "List all variables in Nomad",
                (
                    Param(
                        "namespace",
                        description="The namespace to list variables from (default: default)",
                    ),
                    Param("prefix", description="Optional prefix to filter variables"),
                    Param("next_token", description="Token for pagination"),
                    Param("per_page", type="number", description="Number of variables per page"),
                    Param("filter", description="Expression to filter results"),
                ),
            ),
            list_variables,
        ),
        (
            Tool(
                "get_variable",
                "Get variable details by path",
                (
                    Param(
                        "path", description="The path of the variable to retrieve", required=True
                    ),
                    namespace_param,
                ),
            ),
            get_variable,
        ),
        (
            Tool(
                "create_variable",
                "Create or update a variable",
                (
                    Param(
                        "path",
                        description="The path where to create the variable",
                        required=True,
                    ),
                    Param("key", description="The key for the variable", required=True),
                    Param("value", description="The value for the variable", required=True),
                    namespace_param,
                    cas_param,
                    Param(
                        "lock_operation",
                        description="Lock operation to perform (acquire, release)",
                        enum=("acquire", "release"),
                    ),
                ),
            ),
            create_variable,
        ),
        (
            Tool(
                "delete_variable",
                "Delete a variable",
                (
                    Param(
                        "path", description="The path of the variable to delete", required=True
                    ),
                    namespace_param,
                    cas_param,
                ),
            ),
            delete_variable,
        ),
    ]
    for tool, handler in tools:
        server.add_tool(tool, partial(handler, client))
"""MCP tools for allocations, deployments and task logs."""

from __future__ import annotations

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


def _formatted(value: Any, failure: str) -> ToolResult:
    try:
        return text_result(json_text(value))
    except (TypeError, ValueError) as exc:
        return error_from_exception(failure, exc)


# Allocations


def list_allocations(client, arguments: Mapping[str, Any]) -> ToolResult:
    """List every allocation in the cluster."""
    try:
        allocations = client.list_allocations()
    except _CLIENT_ERRORS as exc:
        log.error("Error listing allocations: %s", exc)
        return error_from_exception("Failed to list allocations", exc)
    return _formatted(allocations, "Failed to format allocations")


def get_allocation(client, arguments: Mapping[str, Any]) -> ToolResult:
    """Return one allocation's details."""
    alloc_id = _string_arg(arguments, "allocation_id")
    if not alloc_id:
        return error_result("allocation_id is required")
    try:
        allocation = client.get_allocation(alloc_id)
    except _CLIENT_ERRORS as exc:
        log.error("Error getting allocation: %s", exc)
        return error_from_exception("Failed to get allocation", exc)
    return _formatted(allocation, "Failed to format allocation")


def stop_allocation(client, arguments: Mapping[str, Any]) -> ToolResult:
    """Stop a running allocation."""
    alloc_id = _string_arg(arguments, "allocation_id")
    if not alloc_id:
        return error_result("allocation_id is required")
    try:
        client.make_request("POST", f"allocation/{alloc_id}/stop")
    except _CLIENT_ERRORS as exc:
        log.error("Error stopping allocation: %s", exc)
        return error_from_exception("Failed to stop allocation", exc)
    return text_result(f"Allocation {alloc_id} stopped successfully")


def register_allocation_tools(server: McpServer, client) -> None:
    """Register every allocation tool on the server."""
    tools = [
        (
            Tool(
                "list_allocations",
                "List all allocations in Nomad",
                (
                    Param(
                        "namespace",
                        description="The namespace to list allocations from (default: default)",
                    ),
                    Param("job_id", description="Filter allocations by job ID"),
                ),
            ),
            list_allocations,
        ),
        (
            Tool(
                "get_allocation",
                "Get allocation details by ID",
                (
                    Param(
                        "allocation_id",
                        description="The ID of the allocation to retrieve",
                        required=True,
                    ),
                ),
            ),
            get_allocation,
        ),
        (
            Tool(
                "stop_allocation",
                "Stop a running allocation",
                (
                    Param(
                        "allocation_id",
                        description="The ID of the allocation to stop",
                        required=True,
                    ),
                ),
            ),
            stop_allocation,
        ),
    ]
    for tool, handler in tools:
        server.add_tool(tool, partial(handler, client))


# Deployments


def list_deployments(client, arguments: Mapping[str, Any]) -> ToolResult:
    """List the deployments of a namespace."""
    namespace = _string_arg(arguments, "namespace") or DEFAULT_NAMESPACE
    try:
        deployments = client.list_deployments(namespace)
    except _CLIENT_ERRORS as exc:
        log.error("Error listing deployments: %s", exc)
        return error_from_exception("Failed to list deployments", exc)
    return _formatted(deployments, "Failed to format deployments")


def get_deployment(client, arguments: Mapping[str, Any]) -> ToolResult:
    """Return one deployment's details."""
    deployment_id = _string_arg(arguments, "deployment_id")
    if not deployment_id:
        return error_result("deployment_id is required")
    try:
        deployment = client.get_deployment(deployment_id)
    except _CLIENT_ERRORS as exc:
        log.error("Error getting deployment: %s", exc)
        return error_from_exception("Failed to get deployment", exc)
    return _formatted(deployment, "Failed to format deployment")


def register_deployment_tools(server: McpServer, client) -> None:
    """Register every deployment tool on the server."""
    tools = [
        (
            Tool(
                "list_deployments",
                "List all deployments",
                (
                    Param(
                        "namespace",
                        description="The namespace to list deployments from (default: default)",
                    ),
                ),
            ),
            list_deployments,
        ),
        (
            Tool(
                "get_deployment",
                "Get deployment details by ID",
                (
                    Param(
                        "deployment_id",
                        description="The ID of the deployment to retrieve",
                        required=True,
                    ),
                ),
            ),
            get_deployment,
        ),
    ]
    for tool, handler in tools:
        server.add_tool(tool, partial(handler, client))


# Logs


def get_allocation_logs(client, arguments: Mapping[str, Any]) -> ToolResult:
    """Return the logs of a task in an allocation."""
    alloc_id = _string_arg(arguments, "allocation_id")
    if not alloc_id:
        return error_result("allocation_id is required")
    task = _string_arg(arguments, "task")
    if not task:
        return error_result("task is required")
    log_type = _string_arg(arguments, "type") or "stdout"
    follow = arguments.get("follow")
    follow = follow if isinstance(follow, bool) else False

    try:
        logs = client.get_allocation_logs(
            alloc_id,
            task,
            log_type,
            follow,
            _int_arg(arguments, "tail"),
            _int_arg(arguments, "offset"),
        )
    except _CLIENT_ERRORS as exc:
        log.error("Error getting allocation logs: %s", exc)
        return error_from_exception("Failed to get allocation logs", exc)
    return _formatted({"logs": logs}, "Failed to format logs")


def register_log_tools(server: McpServer, client) -> None:
    """Register the log tool on the server."""
    tool = Tool(
        "get_allocation_logs",
        "Get logs from a specific task in an allocation",
        (
            Param("allocation_id", description="The ID of the allocation", required=True),
            Param("task", description="The name of the task", required=True),
            Param(
                "type",
                description="The type of logs to retrieve (stdout or stderr, default: stdout)",
                enum=("stdout", "stderr"),
            ),
            Param(
                "follow",
                type="boolean",
                description="Whether to follow/tail the logs (default: false)",
            ),
            Param(
                "tail",
                type="number",
                description=(
                    "Number of lines to show from the end (default: 100, 0 means use default)"
                ),
            ),
            Param(
                "offset",
                type="number",
                description="The offset to start reading from (ignored if tail is specified)",
            ),
        ),
    )
    server.add_tool(tool, partial(get_allocation_logs, client))
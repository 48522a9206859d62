"""MCP tools for Nomad nodes and cluster membership."""

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
from .models import RaftOperator
from .transport import NomadAPIError

log = logging.getLogger("nomadmcp")

_CLIENT_ERRORS = (NomadAPIError, ValueError)
_RAFT_CONFIGURATION = "operator/raft/configuration"


def _string_arg(arguments: Mapping[str, Any], key: str) -> str:
    value = arguments.get(key)
    return value if isinstance(value, str) else ""


def _number_arg(arguments: Mapping[str, Any], key: str) -> float | None:
    value = arguments.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value


def _formatted(value: Any, failure: str, indent: str = "  ") -> ToolResult:
    try:
        return text_result(json_text(value, indent))
    except (TypeError, ValueError) as exc:
        return error_from_exception(failure, exc)


def _parse_configuration(body: bytes) -> dict:
    """Decode a raft configuration document into a mapping."""
    config = json.loads(body)
    if config is None:
        return {}
    if not isinstance(config, dict):
        raise ValueError(f"expected an object, got {type(config).__name__}")
    return config


# Nodes


def list_nodes(client, arguments: Mapping[str, Any]) -> ToolResult:
    """List the nodes of the cluster, optionally by status."""
    try:
        nodes = client.list_nodes(_string_arg(arguments, "status"))
    except _CLIENT_ERRORS as exc:
        log.error("Error listing nodes: %s", exc)
        return error_from_exception("Failed to list nodes", exc)
    return _formatted(nodes, "Failed to format nodes")


def get_node(client, arguments: Mapping[str, Any]) -> ToolResult:
    """Return one node's details."""
    node_id = _string_arg(arguments, "node_id")
    if not node_id:
        return error_result("node_id is required")
    try:
        node = client.get_node(node_id)
    except _CLIENT_ERRORS as exc:
        log.error("Error getting node: %s", exc)
        return error_from_exception("Failed to get node", exc)
    return _formatted(node, "Failed to format node")


def drain_node(client, arguments: Mapping[str, Any]) -> ToolResult:
    """Enable or disable drain mode on a node."""
    node_id = _string_arg(arguments, "node_id")
    if not node_id:
        return error_result("node_id is required")
    enable = arguments.get("enable")
    if not isinstance(enable, bool):
        enable = True
    deadline = _number_arg(arguments, "deadline")
    deadline = int(deadline) if deadline is not None else 0

    try:
        message = client.drain_node(node_id, enable, deadline)
    except _CLIENT_ERRORS as exc:
        log.error("Error draining node: %s", exc)
        return error_from_exception("Failed to drain node", exc)
    return _formatted({"message": message}, "Failed to format response")


def eligibility_node(client, arguments: Mapping[str, Any]) -> ToolResult:
    """Mark a node eligible or ineligible for scheduling."""
    node_id = _string_arg(arguments, "node_id")
    if not node_id:
        return error_result("node_id is required")
    eligible = _string_arg(arguments, "eligible")
    if not eligible:
        return error_result("eligible is required")
    try:
        node = client.eligibility_node(node_id, eligible)
    except _CLIENT_ERRORS as exc:
        log.error("Error setting node eligibility: %s", exc)
        return error_from_exception("Failed to set node eligibility", exc)
    return _formatted(node, "Failed to format node")


def register_node_tools(server: McpServer, client) -> None:
    """Register every node tool on the server."""
    tools = [
        (
            Tool(
                "list_nodes",
                "List all nodes in the Nomad cluster",
                (
                    Param(
                        "status",
                        description="Filter nodes by status",
                        enum=("ready", "down", ""),
                    ),
                ),
            ),
            list_nodes,
        ),
        (
            Tool(
                "get_node",
                "Get details for a specific node",
                (Param("node_id", description="The ID of the node to retrieve", required=True),),
            ),
            get_node,
        ),
        (
            Tool(
                "drain_node",
                "Enable or disable drain mode for a node",
                (
                    Param("node_id", description="The ID of the node to drain", required=True),
                    Param(
                        "enable",
                        type="boolean",
                        description="Enable or disable drain mode",
                        required=True,
                    ),
                    Param(
                        "deadline",
                        type="number",
                        description=(
                            "Deadline in seconds for the drain operation "
                            "(default: -1, no deadline)"
                        ),
                    ),
                ),
            ),
            drain_node,
        ),
        (
            Tool(
                "eligibility_node",
                "Set eligibility for a node",
                (
                    Param(
                        "node_id",
                        description="The ID of the node to set eligibility for",
                        required=True,
                    ),
                    Param(
                        "eligible",
                        description="The eligibility status to set (eligible or ineligible)",
                        required=True,
                    ),
                ),
            ),
            eligibility_node,
        ),
    ]
    for tool, handler in tools:
        server.add_tool(tool, partial(handler, client))


# Cluster


def _typed(mapping: Mapping[str, Any], key: str, kind: type, default: Any) -> Any:
    value = mapping.get(key)
    if kind is not bool and isinstance(value, bool):
        return default
    return value if isinstance(value, kind) else default


def get_cluster_leader(client, arguments: Mapping[str, Any]) -> ToolResult:
    """Describe the raft servers of the cluster, including the leader."""
    try:
        body = client.make_request("GET", _RAFT_CONFIGURATION)
    except _CLIENT_ERRORS as exc:
        log.error("Error getting cluster configuration: %s", exc)
        return error_from_exception("Failed to get cluster configuration", exc)

    try:
        config = _parse_configuration(body)
    except ValueError as exc:
        log.error("Error parsing cluster configuration: %s", exc)
        return error_from_exception("Failed to parse cluster configuration", exc)

    if "Servers" not in config:
        return error_result("Could not find servers in configuration")
    raw_servers = config["Servers"]
    if not isinstance(raw_servers, list):
        return error_result("Servers is not an array")

    servers = []
    for raw in raw_servers:
        if not isinstance(raw, dict):
            log.warning("Server is not a map: %r", raw)
            continue
        servers.append(
            RaftOperator(
                address=_typed(raw, "Address", str, ""),
                id=_typed(raw, "ID", str, ""),
                leader=_typed(raw, "Leader", bool, False),
                node=_typed(raw, "Node", str, ""),
                raft_protocol=_typed(raw, "RaftProtocol", str, ""),
                voter=_typed(raw, "Voter", bool, False),
            )
        )
    return _formatted(servers or None, "Failed to format servers list", indent=" ")


def list_cluster_peers(client, arguments: Mapping[str, Any]) -> ToolResult:
    """List the addresses of the raft peers."""
    try:
        body = client.list_cluster_peers()
    except _CLIENT_ERRORS as exc:
        log.error("Error getting cluster configuration: %s", exc)
        return error_from_exception("Failed to get cluster configuration", exc)

    try:
        config = _parse_configuration(body)
    except ValueError as exc:
        log.error("Error parsing cluster configuration: %s", exc)
        return error_from_exception("Failed to parse cluster configuration", exc)

    servers = config.get("Servers")
    if not isinstance(servers, list):
        return error_result("Could not find servers in configuration")

    peers = [
        server["Address"]
        for server in servers
        if isinstance(server, dict) and isinstance(server.get("Address"), str)
    ]
    return _formatted(peers or None, "Failed to format peer list")


def list_regions(client, arguments: Mapping[str, Any]) -> ToolResult:
    """Return the regions known to the cluster as the agent reports them."""
    try:
        body = client.make_request("GET", "regions")
    except _CLIENT_ERRORS as exc:
        log.error("Error listing regions: %s", exc)
        return error_from_exception("Failed to list regions", exc)
    return text_result(body.decode("utf-8", errors="replace"))


def register_cluster_tools(server: McpServer, client) -> None:
    """Register every cluster tool on the server."""
    tools = [
        (
            Tool(
                "get_cluster_leader",
                "Get the current leader and the information relative the Nomad peers",
            ),
            get_cluster_leader,
        ),
        (Tool("list_cluster_peers", "List the IP peers in the Nomad cluster"), list_cluster_peers),
        (Tool("list_regions", "List all available regions in the Nomad cluster"), list_regions),
    ]
    for tool, handler in tools:
        server.add_tool(tool, partial(handler, client))
"""MCP tools for working with Nomad jobs."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
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

_NAMESPACE_PARAM = Param(
    "namespace", description="The namespace of the job (default: default)"
)


def _string_arg(arguments: Mapping[str, Any], key: str) -> str:
    value = arguments.get(key)
    return value if isinstance(value, str) else ""


def _bool_arg(arguments: Mapping[str, Any], key: str) -> bool:
    value = arguments.get(key)
    return value if isinstance(value, bool) else False


def _number_arg(arguments: Mapping[str, Any], key: str) -> float | None:
    value = arguments.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value


def _namespace(arguments: Mapping[str, Any]) -> str:
    return _string_arg(arguments, "namespace") or DEFAULT_NAMESPACE


def _formatted(value: Any, failure: str) -> ToolResult:
    try:
        return text_result(json_text(value))
    except (TypeError, ValueError) as exc:
        return error_from_exception(failure, exc)


def list_jobs(client, arguments: Mapping[str, Any]) -> ToolResult:
    """List jobs with their details and summaries."""
    namespace = _namespace(arguments)
    status = _string_arg(arguments, "status")

    try:
        stubs = client.list_jobs(namespace, status)
    except _CLIENT_ERRORS as exc:
        log.error("Error listing initial jobs: %s", exc)
        return error_from_exception("Failed to list jobs", exc)

    detailed = []
    for stub in stubs:
        job_id = stub.get("ID", "")
        try:
            job = client.get_job(job_id, namespace)
        except _CLIENT_ERRORS as exc:
            log.error(
                "Error getting full details for job %s in namespace %s: %s. Skipping this job.",
                job_id,
                namespace,
                exc,
            )
            continue

        item = {
            "ID": job.get("ID", ""),
            "ParentID": job.get("ParentID", ""),
            "Name": job.get("Name", ""),
            "Type": job.get("Type", ""),
            "Priority": job.get("Priority", 0),
            "Status": job.get("Status", ""),
            "StatusDescription": "",
            "JobSummary": None,
            "CreateIndex": job.get("CreateIndex", 0),
            "ModifyIndex": job.get("ModifyIndex", 0),
            "JobModifyIndex": job.get("JobModifyIndex", 0),
        }

        try:
            summary = client.get_job_summary(job_id, namespace)
        except _CLIENT_ERRORS as exc:
            log.error(
                "Error getting summary for job %s in namespace %s: %s. JobSummary will be null.",
                job_id,
                namespace,
                exc,
            )
        else:
            item["JobSummary"] = {
                "JobID": item["ID"],
                "Namespace": namespace,
                "Summary": summary.get("Summary"),
                "Children": summary.get("Children"),
                "CreateIndex": summary.get("CreateIndex", 0),
                "ModifyIndex": summary.get("ModifyIndex", 0),
            }

        detailed.append(item)

    return _formatted(detailed or None, "Failed to format detailed job list")


def get_job(client, arguments: Mapping[str, Any]) -> ToolResult:
    """Return one job's details."""
    job_id = _string_arg(arguments, "job_id")
    if not job_id:
        return error_result("job_id is required")
    try:
        job = client.get_job(job_id, _namespace(arguments))
    except _CLIENT_ERRORS as exc:
        log.error("Error getting job: %s", exc)
        return error_from_exception("Failed to get job", exc)
    return _formatted(job, "Failed to format job")


def run_job(client, arguments: Mapping[str, Any]) -> ToolResult:
    """Submit a job specification."""
    job_spec = _string_arg(arguments, "job_spec")
    if not job_spec:
        return error_result("job_spec is required")
    try:
        result = client.run_job(job_spec, _bool_arg(arguments, "detach"))
    except _CLIENT_ERRORS as exc:
        log.error("Error running job: %s", exc)
        return error_from_exception("Failed to run job", exc)
    return _formatted(result, "Failed to format result")


def stop_job(client, arguments: Mapping[str, Any]) -> ToolResult:
    """Stop, and optionally purge, a job."""
    job_id = _string_arg(arguments, "job_id")
    if not job_id:
        return error_result("job_id is required")
    try:
        result = client.stop_job(job_id, _namespace(arguments), _bool_arg(arguments, "purge"))
    except _CLIENT_ERRORS as exc:
        log.error("Error stopping job: %s", exc)
        return error_from_exception("Failed to stop job", exc)
    return _formatted(result, "Failed to format result")


def scale_job(client, arguments: Mapping[str, Any]) -> ToolResult:
    """Set the count of a job's task group."""
    job_id = _string_arg(arguments, "job_id")
    if not job_id:
        return error_result("job_id is required")
    group = _string_arg(arguments, "group")
    if not group:
        return error_result("group is required")
    count = _number_arg(arguments, "count")
    if count is None:
        return error_result("count is required")
    count = int(count)

    try:
        client.scale_task_group(job_id, group, count, _namespace(arguments))
    except _CLIENT_ERRORS as exc:
        log.error("Error scaling job: %s", exc)
        return error_from_exception("Failed to scale job", exc)

    message = f"Successfully scaled job {job_id} task group {group} to {count}"
    return _formatted({"message": message}, "Failed to format result")


def _job_listing(
    fetch: Callable[[Any], Callable[[str, str], Any]],
    what: str,
    format_failure: str,
) -> Callable[[Any, Mapping[str, Any]], ToolResult]:
    def handler(client, arguments: Mapping[str, Any]) -> ToolResult:
        job_id = _string_arg(arguments, "job_id")
        if not job_id:
            return error_result("job_id is required")
        try:
            value = fetch(client)(job_id, _namespace(arguments))
        except _CLIENT_ERRORS as exc:
            log.error("Error getting %s: %s", what, exc)
            return error_from_exception(f"Failed to get {what}", exc)
        return _formatted(value, format_failure)

    return handler


_allocations = _job_listing(
    lambda client: client.list_job_allocations, "job allocations", "Failed to format allocations"
)
_evaluations = _job_listing(
    lambda client: client.list_job_evaluations, "job evaluations", "Failed to format evaluations"
)
_deployments = _job_listing(
    lambda client: client.list_job_deployments, "job deployments", "Failed to format deployments"
)
_summary = _job_listing(
    lambda client: client.get_job_summary, "job summary", "Failed to format job summary"
)
_services = _job_listing(
    lambda client: client.list_job_services, "job services", "Failed to format job services"
)


def get_job_allocations(client, arguments: Mapping[str, Any]) -> ToolResult:
    """Return the allocations of a job."""
    return _allocations(client, arguments)


def get_job_evaluations(client, arguments: Mapping[str, Any]) -> ToolResult:
    """Return the evaluations of a job."""
    return _evaluations(client, arguments)


def get_job_deployments(client, arguments: Mapping[str, Any]) -> ToolResult:
    """Return the deployments of a job."""
    return _deployments(client, arguments)


def get_job_summary(client, arguments: Mapping[str, Any]) -> ToolResult:
    """Return the summary of a job."""
    return _summary(client, arguments)


def get_job_services(client, arguments: Mapping[str, Any]) -> ToolResult:
    """Return the services of a job."""
    return _services(client, arguments)


def _job_id_param(purpose: str) -> Param:
    return Param("job_id", description=f"The ID of the job {purpose}", required=True)


def register_job_tools(server: McpServer, client) -> None:
    """Register every job tool on the server."""
    tools = [
        (
            Tool(
                "list_jobs",
                "List all jobs in Nomad",
                (
                    Param(
                        "namespace",
                        description="The namespace to list jobs from (default: default)",
                    ),
                    Param(
                        "status",
                        description="Filter jobs by status (pending, running, dead)",
                        enum=("pending", "running", "dead", ""),
                    ),
                ),
            ),
            list_jobs,
        ),
        (
            Tool("get_job", "Get job details by ID", (_job_id_param("to retrieve"), _NAMESPACE_PARAM)),
            get_job,
        ),
        (
            Tool(
                "run_job",
                "Run a new job or update an existing job",
                (
                    Param(
                        "job_spec",
                        description="The job specification in HCL or JSON format",
                        required=True,
                    ),
                    Param(
                        "detach",
                        type="boolean",
                        description="Return immediately instead of monitoring deployment",
                    ),
                ),
            ),
            run_job,
        ),
        (
            Tool(
                "stop_job",
                "Stop a running job",
                (
                    _job_id_param("to stop"),
                    _NAMESPACE_PARAM,
                    Param(
                        "purge",
                        type="boolean",
                        description="Purge the job from Nomad instead of just stopping it",
                    ),
                ),
            ),
            stop_job,
        ),
        (
            Tool(
                "scale_job",
                "Scale a job's task group",
                (
                    _job_id_param("to scale"),
                    Param("group", description="The task group to scale", required=True),
                    Param(
                        "count",
                        type="number",
                        description="The new count for the task group",
                        required=True,
                    ),
                    _NAMESPACE_PARAM,
                ),
            ),
            scale_job,
        ),
        (
            Tool(
                "get_job_allocations",
                "Get allocations for a job",
                (_job_id_param("to get allocations for"), _NAMESPACE_PARAM),
            ),
            get_job_allocations,
        ),
        (
            Tool(
                "get_job_evaluations",
                "Get evaluations for a job",
                (_job_id_param("to get evaluations for"), _NAMESPACE_PARAM),
            ),
            get_job_evaluations,
        ),
        (
            Tool(
                "get_job_deployments",
                "Get deployments for a job",
                (_job_id_param("to get deployments for"), _NAMESPACE_PARAM),
            ),
            get_job_deployments,
        ),
        (
            Tool(
                "get_job_summary",
                "Get summary for a job",
                (_job_id_param("to get summary for"), _NAMESPACE_PARAM),
            ),
            get_job_summary,
        ),
        (
            Tool(
                "get_job_services",
                "Get services for a job",
                (_job_id_param("to get services for"), _NAMESPACE_PARAM),
            ),
            get_job_services,
        ),
    ]
    for tool, handler in tools:
        server.add_tool(tool, partial(handler, client))
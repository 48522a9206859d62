"""Client for the Nomad HTTP API."""

from __future__ import annotations

import json
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from typing import Any
from urllib.parse import urlencode

import requests

from .jobs_api import JobsAPI
from .models import (
    ACLPolicy,
    ACLRole,
    ACLToken,
    Allocation,
    Deployment,
    DeploymentSummary,
    Model,
    Namespace,
    Node,
    NodeSummary,
    SentinelPolicy,
    Variable,
    Volume,
    VolumeClaim,
)
from .transport import DEFAULT_TIMEOUT, NomadAPIError

DEFAULT_TAIL_LINES = 100
_BYTES_PER_LOG_LINE = 200


def _one(model: type[Model], data: Any) -> Any:
    try:
        return model.from_dict(data)
    except TypeError as exc:
        raise NomadAPIError(f"error unmarshaling response: {exc}") from exc


def _many(model: type[Model], data: Any) -> list:
    if data is None:
        return []
    if not isinstance(data, list):
        raise NomadAPIError(
            f"error unmarshaling response: expected an array, got {type(data).__name__}"
        )
    return [_one(model, item) for item in data]


def _namespaced(path: str, namespace: str) -> str:
    if namespace and namespace != "default":
        return f"namespace/{namespace}/{path}"
    return path


def _encode_query(query: Mapping[str, str]) -> str:
    return urlencode(sorted(query.items()))


@contextmanager
def _wrap_errors(prefix: str) -> Iterator[None]:
    try:
        yield
    except NomadAPIError as exc:
        raise NomadAPIError(f"{prefix}: {exc}", exc.status, exc.body) from exc


class NomadClient(JobsAPI):
    """Operations on a Nomad cluster: jobs, nodes, ACLs, variables, volumes and more."""

    def __init__(
        self,
        address: str,
        token: str = "",
        *,
        timeout: float = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
        default_tail_lines: int = DEFAULT_TAIL_LINES,
    ):
        super().__init__(address, token, timeout=timeout, session=session)
        self.default_tail_lines = default_tail_lines

    @property
    def default_tail_lines(self) -> int:
        """Number of lines shown by default when tailing logs."""
        return self._default_tail_lines

    @default_tail_lines.setter
    def default_tail_lines(self, lines: int) -> None:
        if lines <= 0:
            raise ValueError("number of lines must be positive")
        self._default_tail_lines = lines

    # Deployments

    def list_deployments(self, namespace: str = "default") -> list[DeploymentSummary]:
        return _many(DeploymentSummary, self.get_json(_namespaced("deployments", namespace)))

    def get_deployment(self, deployment_id: str) -> Deployment:
        return _one(Deployment, self.get_json(f"deployment/{deployment_id}"))

    # Namespaces

    def list_namespaces(self) -> list[Namespace]:
        return _many(Namespace, self.get_json("namespaces"))

    def create_namespace(self, namespace: Namespace) -> None:
        self.make_request("POST", "namespace", body=namespace)

    def delete_namespace(self, name: str) -> None:
        self.make_request("DELETE", f"namespace/{name}")

    # Nodes

    def list_nodes(self, status: str = "") -> list[NodeSummary]:
        query = {"status": status} if status else {}
        return _many(NodeSummary, self.request_json("GET", "nodes", query))

    def get_node(self, node_id: str) -> Node:
        return _one(Node, self.get_json(f"node/{node_id}"))

    def drain_node(self, node_id: str, enable: bool, deadline: int = 0) -> str:
        """Enable or disable drain mode and describe what was done."""
        if enable:
            spec: dict[str, Any] = {
                "DrainSpec": {"Deadline": deadline, "IgnoreSystemJobs": False},
                "Meta": {"reason": "Initiated via API"},
            }
        else:
            spec = {"DrainSpec": None, "Meta": {"reason": "Drain disabled via API"}}

        result = self.request_json("POST", f"node/{node_id}/drain", body=spec)
        if result is not None and not isinstance(result, Mapping):
            raise NomadAPIError(
                f"error unmarshaling response: expected an object, got {type(result).__name__}"
            )

        if enable:
            if deadline > 0:
                return f"Node drain enabled with deadline {deadline} seconds"
            return "Node drain enabled with no deadline"
        return "Node drain disabled"

    def eligibility_node(self, node_id: str, eligible: str) -> NodeSummary:
        data = self.request_json(
            "POST", f"node/{node_id}/eligibility", body={"Eligibility": eligible}
        )
        return _one(NodeSummary, data)

    # Volumes

    def list_volumes(
        self,
        node_id: str = "",
        plugin_id: str = "",
        next_token: str = "",
        per_page: int = 0,
        filter: str = "",
    ) -> list[Volume]:
        query = {}
        if node_id:
            query["node_id"] = node_id
        if plugin_id:
            query["plugin_id"] = plugin_id
        if next_token:
            query["next_token"] = next_token
        if per_page > 0:
            query["per_page"] = str(per_page)
        if filter:
            query["filter"] = filter
        with _wrap_errors("error listing volumes"):
            return _many(Volume, self.get_json(f"volumes?{_encode_query(query)}"))

    def get_volume(self, volume_id: str) -> Volume:
        with _wrap_errors("error getting volume"):
            return _one(Volume, self.get_json(f"/v1/volume/host/{volume_id}"))

    def delete_volume(self, volume_id: str) -> None:
        with _wrap_errors("error deleting volume"):
            self.delete(f"/v1/volume/host/{volume_id}/delete")

    def list_volume_claims(
        self,
        namespace: str,
        claim_id: str = "",
        job_id: str = "",
        task_group: str = "",
        volume_name: str = "",
        next_token: str = "",
        per_page: int = 0,
    ) -> list[VolumeClaim]:
        query = {"namespace": namespace}
        if claim_id:
            query["claim_id"] = claim_id
        if job_id:
            query["job_id"] = job_id
        if task_group:
            query["task_group"] = task_group
        if volume_name:
            query["volume_name"] = volume_name
        if next_token:
            query["next_token"] = next_token
        if per_page > 0:
            query["per_page"] = str(per_page)
        with _wrap_errors("error listing volume claims"):
            return _many(VolumeClaim, self.get_json(f"volumes/?{_encode_query(query)}"))

    def delete_volume_claim(self, claim_id: str) -> None:
        with _wrap_errors("error deleting volume claim"):
            self.delete(f"/v1/volumes/claim/{claim_id}")

    # ACL tokens

    def list_acl_tokens(self) -> list[ACLToken]:
        return _many(ACLToken, self.get_json("acl/tokens"))

    def get_acl_token(self, accessor_id: str) -> ACLToken:
        return _one(ACLToken, self.get_json(f"acl/token/{accessor_id}"))

    def create_acl_token(self, token: ACLToken) -> ACLToken:
        return _one(ACLToken, self.request_json("POST", "acl/token", body=token))

    def delete_acl_token(self, accessor_id: str) -> None:
        self.make_request("DELETE", f"acl/token/{accessor_id}")

    def bootstrap_acl_token(self) -> ACLToken:
        return _one(ACLToken, self.request_json("POST", "acl/bootstrap"))

    # ACL policies

    def list_acl_policies(self) -> list[ACLPolicy]:
        return _many(ACLPolicy, self.get_json("acl/policies"))

    def get_acl_policy(self, name: str) -> ACLPolicy:
        return _one(ACLPolicy, self.get_json(f"acl/policy/{name}"))

    def create_acl_policy(self, policy: ACLPolicy) -> None:
        self.make_request("POST", f"acl/policy/{policy.name}", body=policy)

    def delete_acl_policy(self, name: str) -> None:
        self.make_request("DELETE", f"acl/policy/{name}")

    # ACL roles

    def list_acl_roles(self) -> list[ACLRole]:
        return _many(ACLRole, self.get_json("acl/roles"))

    def get_acl_role(self, role_id: str) -> ACLRole:
        return _one(ACLRole, self.get_json(f"acl/role/{role_id}"))

    def create_acl_role(self, role: ACLRole) -> ACLRole:
        return _one(ACLRole, self.request_json("POST", "acl/role", body=role))

    def delete_acl_role(self, role_id: str) -> None:
        self.make_request("DELETE", f"acl/role/{role_id}")

    # Allocations and logs

    def get_allocation_logs(
        self,
        alloc_id: str,
        task: str,
        log_type: str = "stdout",
        follow: bool = False,
        tail: int = 0,
        offset: int = 0,
    ) -> str:
        """Read a task's logs; with ``tail`` only the last lines are kept."""
        if not alloc_id:
            raise ValueError("allocation ID is required")
        if not task:
            raise ValueError("task name is required")

        query = {
            "task": task,
            "type": log_type or "stdout",
            "follow": "true" if follow else "false",
            "plain": "true",
        }
        if tail > 0:
            query["origin"] = "end"
            query["offset"] = str(tail * _BYTES_PER_LOG_LINE)
        elif offset > 0:
            query["offset"] = str(offset)

        with _wrap_errors("failed to get allocation logs"):
            content = self.make_request("GET", f"client/fs/logs/{alloc_id}", query)
        text = content.decode("utf-8", errors="replace")

        if tail > 0:
            lines = text.split("\n")
            return "\n".join(lines[-tail:])
        return text

    def get_allocation(self, alloc_id: str) -> Allocation:
        return _one(Allocation, self.get_json(f"allocation/{alloc_id}"))

    def list_allocations(self) -> list[Allocation]:
        return _many(Allocation, self.get_json("allocations"))

    # Cluster

    def get_cluster_leader(self) -> bytes:
        return self.make_request("GET", "operator/raft/configuration")

    def list_cluster_peers(self) -> bytes:
        return self.make_request("GET", "operator/raft/configuration")

    def list_regions(self) -> bytes:
        return self.make_request("GET", "regions")

    # Sentinel

    def list_sentinel_policies(self) -> list[SentinelPolicy]:
        return _many(SentinelPolicy, self.get_json("sentinel/policies"))

    def get_sentinel_policy(self, name: str) -> SentinelPolicy:
        return _one(SentinelPolicy, self.get_json(f"sentinel/policy/{name}"))

    def create_sentinel_policy(self, policy: SentinelPolicy) -> None:
        self.make_request("POST", f"sentinel/policy/{policy.name}", body=policy)

    def delete_sentinel_policy(self, name: str) -> None:
        self.make_request("DELETE", f"sentinel/policy/{name}")

    # Variables

    def list_variables(
        self,
        namespace: str = "default",
        prefix: str = "",
        next_token: str = "",
        per_page: int = 0,
        filter: str = "",
    ) -> list[Variable]:
        query = {}
        if prefix:
            query["prefix"] = prefix
        if next_token:
            query["next_token"] = next_token
        if per_page > 0:
            query["per_page"] = str(per_page)
        if filter:
            query["filter"] = filter
        data = self.request_json("GET", _namespaced("vars", namespace), query)
        return _many(Variable, data)

    def get_variable(self, path: str, namespace: str = "default") -> Variable:
        return _one(Variable, self.get_json(_namespaced(f"var/{path}", namespace)))

    def create_variable(
        self,
        variable: Variable,
        namespace: str = "default",
        cas: int = 0,
        lock_operation: str = "",
    ) -> None:
        """Store a variable whose value holds the JSON request body."""
        try:
            body = json.loads(variable.value)
        except ValueError as exc:
            raise ValueError(f"failed to parse variable value: {exc}") from exc
        if not isinstance(body, dict):
            raise ValueError(
                f"failed to parse variable value: expected an object, got {type(body).__name__}"
            )
        if cas > 0:
            body["CAS"] = cas
        if lock_operation:
            body["LockOperation"] = lock_operation

        query = {"namespace": namespace} if namespace and namespace != "default" else {}
        self.make_request("PUT", f"var/{variable.path}", query, body)

    def delete_variable(self, path: str, namespace: str = "default", cas: int = 0) -> None:
        query = {"cas": str(cas)} if cas > 0 else {}
        self.make_request("DELETE", _namespaced(f"var/{path}", namespace), query)


def connect(address: str, token: str = "") -> NomadClient:
    """Create a client and check that the Nomad agent answers."""
    client = NomadClient(address, token)
    try:
        client.make_request("GET", "status/leader")
    except NomadAPIError as exc:
        raise NomadAPIError(
            f"failed to connect to Nomad server: {exc}", exc.status, exc.body
        ) from exc
    return client
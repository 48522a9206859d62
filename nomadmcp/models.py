"""Data models for Nomad API objects and their JSON representation."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from typing import Any

ZERO_TIME = "0001-01-01T00:00:00Z"


def _field(key, default=None, *, model=None, many=None, omitempty=False, factory=None):
    """Declare a model field stored under the JSON key ``key``."""
    metadata = {"json": key, "model": model, "many": many, "omitempty": omitempty}
    if factory is not None:
        return field(default_factory=factory, metadata=metadata)
    return field(default=default, metadata=metadata)


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (str, list, tuple, dict)):
        return not value
    if isinstance(value, (bool, int, float)):
        return value == 0
    return False


def to_plain(value: Any) -> Any:
    """Convert models and containers into plain JSON-ready values; mapping keys are sorted."""
    if isinstance(value, Model):
        return value.to_dict()
    if isinstance(value, Mapping):
        return {str(key): to_plain(value[key]) for key in sorted(value, key=str)}
    if isinstance(value, (list, tuple)):
        return [to_plain(item) for item in value]
    return value


def _decode(raw: Any, meta: Mapping[str, Any]) -> Any:
    model = meta["model"]
    if model is None:
        return raw
    many = meta["many"]
    if many == "list":
        if not isinstance(raw, list):
            raise TypeError(f"field {meta['json']}: expected a list, got {type(raw).__name__}")
        return [model.from_dict(item) for item in raw]
    if many == "dict":
        if not isinstance(raw, Mapping):
            raise TypeError(f"field {meta['json']}: expected an object, got {type(raw).__name__}")
        return {key: model.from_dict(item) for key, item in raw.items()}
    return model.from_dict(raw)


class Model:
    """Base for API models; keys are matched case-insensitively when decoding."""

    @classmethod
    def from_dict(cls, data):
        if data is None:
            return cls()
        if not isinstance(data, Mapping):
            raise TypeError(f"cannot decode {type(data).__name__} into {cls.__name__}")
        folded = {str(key).lower(): value for key, value in data.items()}
        kwargs = {}
        for spec in fields(cls):
            key = spec.metadata["json"]
            if key in data:
                raw = data[key]
            elif key.lower() in folded:
                raw = folded[key.lower()]
            else:
                continue
            if raw is None:
                continue
            kwargs[spec.name] = _decode(raw, spec.metadata)
        return cls(**kwargs)

    def to_dict(self):
        result = {}
        for spec in fields(self):
            value = getattr(self, spec.name)
            if spec.metadata["omitempty"] and _is_empty(value):
                continue
            result[spec.metadata["json"]] = to_plain(value)
        return result


# ACL


@dataclass
class ACLToken(Model):
    accessor_id: str = _field("AccessorID", "")
    secret_id: str = _field("SecretID", "")
    name: str = _field("Name", "")
    type: str = _field("Type", "")
    policies: list | None = _field("Policies")
    global_: bool = _field("Global", False)
    create_index: int = _field("CreateIndex", 0)
    modify_index: int = _field("ModifyIndex", 0)


@dataclass
class ACLPolicy(Model):
    name: str = _field("name", "")
    description: str = _field("description", "")
    rules: str = _field("rules", "")
    create_index: int = _field("create_index", 0)
    modify_index: int = _field("modify_index", 0)


@dataclass
class ACLPolicyLink(Model):
    name: str = _field("Name", "")


@dataclass
class ACLRole(Model):
    id: str = _field("id", "")
    name: str = _field("name", "")
    description: str = _field("description", "")
    policies: list | None = _field("policies")
    create_index: int = _field("create_index", 0)
    modify_index: int = _field("modify_index", 0)


@dataclass
class ACLTokenList(Model):
    tokens: list | None = _field("tokens", model=ACLToken, many="list")


@dataclass
class ACLPolicyList(Model):
    policies: list | None = _field("policies", model=ACLPolicy, many="list")


@dataclass
class ACLRoleList(Model):
    roles: list | None = _field("roles", model=ACLRole, many="list")


# Tasks


@dataclass
class TaskEvent(Model):
    type: str = _field("Type", "")
    time: int = _field("Time", 0)
    fails_task: bool = _field("FailsTask", False)
    restart_reason: str = _field("RestartReason", "")
    setup_error: str = _field("SetupError", "")
    driver_error: str = _field("DriverError", "")
    exit_code: int = _field("ExitCode", 0)
    signal: int = _field("Signal", 0)
    message: str = _field("Message", "")
    kill_reason: str = _field("KillReason", "")
    kill_timeout: int = _field("KillTimeout", 0)
    kill_error: str = _field("KillError", "")
    start_delay: int = _field("StartDelay", 0)
    download_error: str = _field("DownloadError", "")
    validation_error: str = _field("ValidationError", "")
    disk_limit: int = _field("DiskLimit", 0)
    failed_sibling: str = _field("FailedSibling", "")
    vault_error: str = _field("VaultError", "")
    task_signal_reason: str = _field("TaskSignalReason", "")
    task_signal: str = _field("TaskSignal", "")
    driver_message: str = _field("DriverMessage", "")
    generic_source: str = _field("GenericSource", "")


@dataclass
class TaskState(Model):
    state: str = _field("State", "")
    failed: bool = _field("Failed", False)
    started_at: str = _field("StartedAt", ZERO_TIME)
    finished_at: str = _field("FinishedAt", ZERO_TIME)
    events: list | None = _field("Events", model=TaskEvent, many="list")


# Allocations


@dataclass
class AllocDeploymentStatus(Model):
    healthy: bool = _field("Healthy", False)
    timestamp: str = _field("Timestamp", ZERO_TIME)
    canary: bool = _field("Canary", False)
    modify_index: int = _field("ModifyIndex", 0)


@dataclass
class RescheduleEvent(Model):
    reschedule_time: str = _field("RescheduleTime", ZERO_TIME)
    prev_alloc_id: str = _field("PrevAllocID", "")
    prev_node_id: str = _field("PrevNodeID", "")


@dataclass
class RescheduleTracker(Model):
    events: list | None = _field("Events", model=RescheduleEvent, many="list")


@dataclass
class Allocation(Model):
    id: str = _field("ID", "")
    eval_id: str = _field("EvalID", "")
    name: str = _field("Name", "")
    node_id: str = _field("NodeID", "")
    job_id: str = _field("JobID", "")
    task_group: str = _field("TaskGroup", "")
    desired_status: str = _field("DesiredStatus", "")
    desired_description: str = _field("DesiredDescription", "")
    client_status: str = _field("ClientStatus", "")
    client_description: str = _field("ClientDescription", "")
    task_states: dict | None = _field("TaskStates", model=TaskState, many="dict")
    deployment_id: str = _field("DeploymentID", "")
    deployment_status: AllocDeploymentStatus | None = _field(
        "DeploymentStatus", model=AllocDeploymentStatus
    )
    followup_eval_id: str = _field("FollowupEvalID", "")
    reschedule_tracker: RescheduleTracker | None = _field(
        "RescheduleTracker", model=RescheduleTracker
    )
    next_allocation: str = _field("NextAllocation", "")
    create_index: int = _field("CreateIndex", 0)
    modify_index: int = _field("ModifyIndex", 0)
    create_time: int = _field("CreateTime", 0)
    modify_time: int = _field("ModifyTime", 0)


# Cluster


@dataclass
class RaftOperator(Model):
    address: str = _field("Address", "")
    id: str = _field("ID", "")
    leader: bool = _field("Leader", False)
    node: str = _field("Node", "")
    raft_protocol: str = _field("RaftProtocol", "")
    voter: bool = _field("Voter", False)


# Deployments


@dataclass
class DeploymentSummary(Model):
    id: str = _field("id", "")
    job_id: str = _field("job_id", "")
    namespace: str = _field("namespace", "")
    status: str = _field("status", "")


@dataclass
class DeploymentTaskGroup(Model):
    desired_total: int = _field("desired_total", 0)
    placed_allocs: int = _field("placed_allocs", 0)
    healthy_allocs: int = _field("healthy_allocs", 0)
    unhealthy_allocs: int = _field("unhealthy_allocs", 0)


@dataclass
class Deployment(Model):
    id: str = _field("id", "")
    job_id: str = _field("job_id", "")
    namespace: str = _field("namespace", "")
    status: str = _field("status", "")
    task_groups: dict | None = _field("task_groups", model=DeploymentTaskGroup, many="dict")


# Namespaces


@dataclass
class Namespace(Model):
    name: str = _field("name", "")
    description: str = _field("description", "")


# Nodes


@dataclass
class NodeSummary(Model):
    id: str = _field("id", "")
    name: str = _field("name", "")
    status: str = _field("status", "")
    datacenter: str = _field("datacenter", "")
    node_class: str = _field("node_class", "")


@dataclass
class NodeResources(Model):
    cpu: int = _field("cpu", 0)
    memory_mb: int = _field("memory_mb", 0)
    disk_mb: int = _field("disk_mb", 0)


@dataclass
class Node(Model):
    id: str = _field("id", "")
    name: str = _field("name", "")
    status: str = _field("status", "")
    datacenter: str = _field("datacenter", "")
    drain: bool = _field("drain", False)
    drivers: dict | None = _field("drivers")
    resources: NodeResources = _field("resources", model=NodeResources, factory=NodeResources)
    reserved: NodeResources = _field("reserved", model=NodeResources, factory=NodeResources)
    node_class: str = _field("node_class", "")
    meta: dict | None = _field("meta")


# Sentinel


@dataclass
class SentinelPolicy(Model):
    name: str = _field("Name", "")
    description: str = _field("Description", "")
    scope: str = _field("Scope", "")
    enforcement_level: str = _field("EnforcementLevel", "")
    policy: str = _field("Policy", "")
    hash: str = _field("Hash", "", omitempty=True)
    create_index: int = _field("CreateIndex", 0, omitempty=True)
    modify_index: int = _field("ModifyIndex", 0, omitempty=True)


# Variables


@dataclass
class Variable(Model):
    path: str = _field("Path", "")
    value: str = _field("Value", "")
    namespace: str = _field("Namespace", "")


# Volumes


@dataclass
class VolumeTopology(Model):
    segments: dict | None = _field("Segments")


@dataclass
class MountOptions(Model):
    fs_type: str = _field("FSType", "", omitempty=True)
    mount_flags: list | None = _field("MountFlags", omitempty=True)


@dataclass
class VolumeCapability(Model):
    access_mode: str = _field("AccessMode", "")
    attachment_mode: str = _field("AttachmentMode", "")


@dataclass
class Volume(Model):
    name: str = _field("Name", "")
    namespace: str = _field("Namespace", "")
    external_id: str = _field("ExternalID", "")
    topologies: list | None = _field("Topologies", model=VolumeTopology, many="list")
    access_mode: str = _field("AccessMode", "")
    attachment_mode: str = _field("AttachmentMode", "")
    mount_options: MountOptions | None = _field("MountOptions", model=MountOptions, omitempty=True)
    secrets: dict | None = _field("Secrets", omitempty=True)
    requested_capabilities: list | None = _field(
        "RequestedCapabilities", model=VolumeCapability, many="list", omitempty=True
    )
    create_index: int = _field("CreateIndex", 0)
    modify_index: int = _field("ModifyIndex", 0)


@dataclass
class VolumeList(Model):
    volumes: list | None = _field("volumes", model=Volume, many="list")


@dataclass
class VolumeClaim(Model):
    alloc_id: str = _field("AllocID", "")
    create_index: int = _field("CreateIndex", 0)
    id: str = _field("ID", "")
    job_id: str = _field("JobID", "")
    modify_index: int = _field("ModifyIndex", 0)
    namespace: str = _field("Namespace", "")
    task_group_name: str = _field("TaskGroupName", "")
    volume_id: str = _field("VolumeID", "")
    volume_name: str = _field("VolumeName", "")
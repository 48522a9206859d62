"""Built-in Nomad job templates."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any

_TEMPLATE_URI = re.compile(r"nomad://templates/(.+)")


@dataclass(frozen=True)
class _Block:
    """One HCL block: a kind, its labels, attributes and nested blocks."""

    kind: str
    labels: tuple[str, ...] = ()
    attributes: dict[str, Any] = field(default_factory=dict)
    blocks: tuple["_Block", ...] = ()
    align: bool = False

    def render(self, depth: int = 0) -> list[str]:
        pad = "  " * depth
        inner = "  " * (depth + 1)
        header = " ".join([self.kind, *(json.dumps(label) for label in self.labels)])
        lines = [f"{pad}{header} {{"]
        width = max(map(len, self.attributes), default=0) if self.align else 0
        lines.extend(
            f"{inner}{key.ljust(width)} = {json.dumps(value)}"
            for key, value in self.attributes.items()
        )
        for position, child in enumerate(self.blocks):
            if self.attributes or position:
                lines.append("")
            lines.extend(child.render(depth + 1))
        lines.append(f"{pad}}}")
        return lines


def _resources() -> _Block:
    return _Block("resources", attributes={"cpu": 500, "memory": 256}, align=True)


def _docker_task(name: str, config: dict[str, Any]) -> _Block:
    return _Block(
        "task",
        (name,),
        {"driver": "docker"},
        (_Block("config", attributes=config), _resources()),
    )


def _job(name: str, job_type: str, group: _Block) -> _Block:
    return _Block(
        "job",
        (name,),
        {"datacenters": ["dc1"], "type": job_type},
        (group,),
    )


_JOBS: dict[str, tuple[str, _Block]] = {
    "service": (
        "Basic service job template",
        _job(
            "example-service",
            "service",
            _Block(
                "group",
                ("web",),
                {"count": 2},
                (
                    _Block(
                        "network",
                        blocks=(_Block("port", ("http",), {"to": 8080}),),
                    ),
                    _docker_task("server", {"image": "nginx:latest", "ports": ["http"]}),
                ),
            ),
        ),
    ),
    "batch": (
        "Basic batch job template",
        _job(
            "example-batch",
            "batch",
            _Block(
                "group",
                ("batch-group",),
                {"count": 1},
                (
                    _docker_task(
                        "batch-task",
                        {
                            "image": "alpine:latest",
                            "command": "/bin/sh",
                            "args": ["-c", "echo 'Processing data' && sleep 5"],
                        },
                    ),
                ),
            ),
        ),
    ),
    "system": (
        "Basic system job template",
        _job(
            "example-system",
            "system",
            _Block(
                "group",
                ("system-group",),
                blocks=(_docker_task("system-task", {"image": "consul:latest"}),),
            ),
        ),
    ),
}


class TemplateNotFoundError(LookupError):
    """Raised when no template has the requested name."""


def get_job_templates() -> str:
    """Return the available job templates as a JSON document."""
    listing = {
        "templates": [
            {"name": name, "description": description}
            for name, (description, _) in _JOBS.items()
        ]
    }
    return json.dumps(listing, indent="\t")


def get_job_template(name: str) -> str:
    """Return the HCL text of the named job template."""
    try:
        _, job = _JOBS[name]
    except KeyError:
        raise TemplateNotFoundError(f"template not found: {name}") from None
    return "\n".join(job.render())


def extract_template_name_from_uri(uri: str) -> str:
    """Return the template name from a ``nomad://templates/<name>`` URI, or ''."""
    match = _TEMPLATE_URI.fullmatch(uri)
    return match.group(1) if match else ""
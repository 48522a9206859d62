"""Job endpoints of the Nomad API."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from .models import Allocation
from .transport import NomadAPIError, NomadTransport


def _job_path(job_id: str, namespace: str, suffix: str = "") -> str:
    path = f"job/{job_id}{suffix}"
    if namespace and namespace != "default":
        path = f"namespace/{namespace}/{path}"
    return path


def _expect_object(data: Any) -> dict:
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise NomadAPIError(
            f"error unmarshaling response: expected an object, got {type(data).__name__}"
        )
    return dict(data)


def _expect_list(data: Any) -> list:
    if data is None:
        return []
    if not isinstance(data, list):
        raise NomadAPIError(
            f"error unmarshaling response: expected an array, got {type(data).__name__}"
        )
    return data


def _summary(data: Any) -> dict:
    raw = _expect_object(data)
    return {
        "ID": raw.get("ID", ""),
        "Summary": raw.get("Summary"),
        "Children": raw.get("Children"),
        "CreateIndex": raw.get("CreateIndex", 0),
        "ModifyIndex": raw.get("ModifyIndex", 0),
    }


class JobsAPI(NomadTransport):
    """Operations on Nomad jobs."""

    def list_jobs(self, namespace: str = "default", status: str = "") -> list[dict]:
        path = "jobs"
        if namespace and namespace != "default":
            path = f"jobs?namespace={namespace}"
        query = {"status": status} if status else {}
        data = self.request_json("GET", path, query)
        return [_summary(item) for item in _expect_list(data)]

    def get_job(self, job_id: str, namespace: str = "default") -> dict:
        return _expect_object(self.get_json(_job_path(job_id, namespace)))

    def run_job(self, job_spec: str, detach: bool = False) -> dict:
        """Submit a job given as JSON, or as HCL parsed by the agent first."""
        try:
            import json

            job_data = json.loads(job_spec)
        except ValueError:
            try:
                parsed = self.request_json("POST", "jobs/parse", body={"JobHCL": job_spec})
            except NomadAPIError as exc:
                if str(exc).startswith("error unmarshaling response"):
                    raise NomadAPIError(
                        f"error unmarshaling parsed job spec: {exc}", exc.status, exc.body
                    ) from exc
                raise NomadAPIError(
                    f"error parsing HCL job spec: {exc}", exc.status, exc.body
                ) from exc
            if parsed is not None and not isinstance(parsed, Mapping):
                raise NomadAPIError(
                    "error unmarshaling parsed job spec: expected an object, "
                    f"got {type(parsed).__name__}"
                )
            job_data = parsed

        query = {"detach": "true"} if detach else {}
        data = self.request_json("POST", "jobs", query, {"Job": job_data})
        return _expect_object(data)

    def stop_job(self, job_id: str, namespace: str = "default", purge: bool = False) -> dict:
        query = {"purge": "true"} if purge else {}
        data = self.request_json("DELETE", _job_path(job_id, namespace), query)
        return _expect_object(data)

    def get_job_submission(self, job_id: str, namespace: str = "default") -> str:
        content = self.make_request("GET", _job_path(job_id, namespace, "/submission"))
        return content.decode("utf-8", errors="replace")

    def get_job_versions(self, job_id: str, namespace: str = "default") -> list:
        path = f"/v1/job/{job_id}/versions"
        if namespace:
            path = f"{path}?namespace={namespace}"
        return _expect_list(self.get_json(path))

    def list_job_versions(self, job_id: str, namespace: str = "default") -> list:
        return _expect_list(self.get_json(_job_path(job_id, namespace, "/versions")))

    def list_job_allocations(self, job_id: str, namespace: str = "default") -> list[Allocation]:
        data = self.get_json(_job_path(job_id, namespace, "/allocations"))
        try:
            return [Allocation.from_dict(item) for item in _expect_list(data)]
        except TypeError as exc:
            raise NomadAPIError(f"error unmarshaling response: {exc}") from exc

    def list_job_evaluations(self, job_id: str, namespace: str = "default") -> list:
        return _expect_list(self.get_json(_job_path(job_id, namespace, "/evaluations")))

    def list_job_deployments(self, job_id: str, namespace: str = "default") -> list:
        return _expect_list(self.get_json(_job_path(job_id, namespace, "/deployments")))

    def get_job_deployment(self, job_id: str, namespace: str = "default") -> dict:
        return _expect_object(self.get_json(_job_path(job_id, namespace, "/deployment")))

    def get_job_summary(self, job_id: str, namespace: str = "default") -> dict:
        return _summary(self.get_json(_job_path(job_id, namespace, "/summary")))

    def update_job(self, job: Any, enforce_index: bool = False) -> None:
        path = "jobs?enforce_index=true" if enforce_index else "jobs"
        self.make_request("POST", path, body=job)

    def dispatch_job(
        self,
        job_id: str,
        payload: Mapping[str, Any] | None = None,
        meta: Mapping[str, str] | None = None,
    ) -> str:
        request = {"Payload": payload, "Meta": meta}
        data = self.request_json("POST", f"job/{job_id}/dispatch", body=request)
        return _expect_object(data).get("DispatchedJobID", "")

    def revert_job(self, job_id: str, version: int, enforce_index: bool = False) -> None:
        path = f"job/{job_id}/revert"
        if enforce_index:
            path = f"{path}?enforce_index=true"
        self.make_request("POST", path, body={"JobVersion": version})

    def set_job_stability(self, job_id: str, version: int, stable: bool) -> None:
        self.make_request(
            "POST", f"job/{job_id}/stability", body={"JobVersion": version, "Stable": stable}
        )

    def create_job_evaluation(self, job_id: str) -> str:
        data = self.request_json("POST", f"job/{job_id}/evaluate")
        return _expect_object(data).get("EvalID", "")

    def create_job_plan(self, job: Any) -> dict:
        return _expect_object(self.request_json("POST", "job/plan", body=job))

    def force_new_periodic_instance(self, job_id: str) -> None:
        self.make_request("POST", f"job/{job_id}/periodic/force")

    def get_job_scale_status(self, job_id: str, namespace: str = "default") -> dict:
        return _expect_object(self.get_json(_job_path(job_id, namespace, "/scale")))

    def scale_task_group(
        self, job_id: str, group: str, count: int, namespace: str = "default"
    ) -> None:
        request = {"Count": count, "Target": {"Group": group}}
        self.make_request("POST", _job_path(job_id, namespace, "/scale"), body=request)

    def list_job_services(self, job_id: str, namespace: str = "default") -> list:
        return _expect_list(self.get_json(_job_path(job_id, namespace, "/services")))
import json
import re

import pytest
import responses

from nomadmcp.jobs_api import JobsAPI
from nomadmcp.models import Allocation
from nomadmcp.transport import NomadAPIError

ADDRESS = "http://nomad.test"
ANY = re.compile(r"http://nomad\.test/.*")


@pytest.fixture
def mock():
    with responses.RequestsMock(assert_all_requests_are_fired=False) as rsps:
        yield rsps


@pytest.fixture
def api():
    return JobsAPI(ADDRESS)


def sent(mock, index=0):
    return mock.calls[index].request


def test_list_jobs_default_namespace(mock, api):
    mock.add(responses.GET, ANY, json=[{"ID": "web", "Status": "running", "CreateIndex": 5}])
    jobs = api.list_jobs()
    assert sent(mock).url == ADDRESS + "/v1/jobs"
    assert [job["ID"] for job in jobs] == ["web"]
    assert jobs[0]["CreateIndex"] == 5
    assert "Status" not in jobs[0]


def test_list_jobs_status_filter(mock, api):
    mock.add(responses.GET, ANY, json=[])
    assert api.list_jobs("default", "running") == []
    assert sent(mock).url == ADDRESS + "/v1/jobs?status=running"


def test_list_jobs_other_namespace(mock, api):
    mock.add(responses.GET, ANY, json=[])
    assert api.list_jobs("prod") == []
    assert sent(mock).url == ADDRESS + "/v1/jobs?namespace=prod"


def test_list_jobs_rejects_object(mock, api):
    mock.add(responses.GET, ANY, json={"ID": "web"})
    with pytest.raises(NomadAPIError, match="error unmarshaling response"):
        api.list_jobs()


def test_get_job_paths(mock, api):
    mock.add(responses.GET, ANY, json={"ID": "web", "Priority": 50})
    assert api.get_job("web")["Priority"] == 50
    assert api.get_job("web", "prod")["ID"] == "web"
    assert sent(mock, 0).url == ADDRESS + "/v1/job/web"
    assert sent(mock, 1).url == ADDRESS + "/v1/namespace/prod/job/web"


def test_run_job_with_json_spec(mock, api):
    mock.add(responses.POST, ANY, json={"EvalID": "e1"})
    spec = {"ID": "web", "Type": "service"}
    result = api.run_job(json.dumps(spec), detach=True)
    assert result == {"EvalID": "e1"}
    assert len(mock.calls) == 1
    assert sent(mock).url == ADDRESS + "/v1/jobs?detach=true"
    assert json.loads(sent(mock).body) == {"Job": spec}


def test_run_job_with_hcl_spec_parses_first(mock, api):
    parsed = {"ID": "example-batch", "Type": "batch"}
    mock.add(responses.POST, re.compile(r".*/v1/jobs/parse$"), json=parsed)
    mock.add(responses.POST, re.compile(r".*/v1/jobs$"), json={"EvalID": "e2"})
    hcl = 'job "example-batch" {\n  type = "batch"\n}'
    result = api.run_job(hcl)
    assert result == {"EvalID": "e2"}
    assert json.loads(sent(mock, 0).body) == {"JobHCL": hcl}
    assert json.loads(sent(mock, 1).body) == {"Job": parsed}


def test_run_job_hcl_parse_failure(mock, api):
    mock.add(responses.POST, ANY, body="bad hcl", status=400)
    with pytest.raises(NomadAPIError, match="error parsing HCL job spec") as info:
        api.run_job("job {")
    assert info.value.status == 400


def test_stop_job_with_purge(mock, api):
    mock.add(responses.DELETE, ANY, json={"EvalID": "e3"})
    assert api.stop_job("web", "prod", purge=True) == {"EvalID": "e3"}
    request = sent(mock)
    assert request.method == "DELETE"
    assert request.url == ADDRESS + "/v1/namespace/prod/job/web?purge=true"


def test_get_job_submission_returns_text(mock, api):
    mock.add(responses.GET, ANY, body='{"Source":"job {}"}')
    assert api.get_job_submission("web") == '{"Source":"job {}"}'
    assert sent(mock).url.endswith("/v1/job/web/submission")


def test_get_job_versions_path(mock, api):
    mock.add(responses.GET, ANY, json=[{"Version": 0}, {"Version": 1}])
    versions = api.get_job_versions("web", "default")
    assert [v["Version"] for v in versions] == [0, 1]
    assert sent(mock).url == ADDRESS + "/v1//v1/job/web/versions?namespace=default"


def test_list_job_versions_namespaced(mock, api):
    mock.add(responses.GET, ANY, json=[])
    assert api.list_job_versions("web", "prod") == []
    assert sent(mock).url == ADDRESS + "/v1/namespace/prod/job/web/versions"


def test_list_job_allocations_returns_models(mock, api):
    mock.add(
        responses.GET,
        ANY,
        json=[{"ID": "a1", "JobID": "web", "TaskStates": {"server": {"State": "running"}}}],
    )
    allocations = api.list_job_allocations("web")
    assert allocations == [Allocation.from_dict(allocations[0].to_dict())]
    assert allocations[0].id == "a1"
    assert allocations[0].task_states["server"].state == "running"


def test_evaluations_and_deployments(mock, api):
    mock.add(responses.GET, ANY, json=[{"ID": "x"}])
    assert api.list_job_evaluations("web") == [{"ID": "x"}]
    assert api.list_job_deployments("web") == [{"ID": "x"}]
    assert sent(mock, 0).url.endswith("/v1/job/web/evaluations")
    assert sent(mock, 1).url.endswith("/v1/job/web/deployments")


def test_get_job_deployment(mock, api):
    mock.add(responses.GET, ANY, json={"ID": "d1", "Status": "running"})
    assert api.get_job_deployment("web")["ID"] == "d1"
    assert sent(mock).url.endswith("/v1/job/web/deployment")


def test_get_job_summary_drops_namespace(mock, api):
    mock.add(
        responses.GET,
        ANY,
        json={"ID": "web", "Namespace": "prod", "Summary": {"g": {"Running": 2}}},
    )
    summary = api.get_job_summary("web", "prod")
    assert "Namespace" not in summary
    assert summary["ID"] == "web"
    assert summary["Summary"] == {"g": {"Running": 2}}
    assert summary["Children"] is None
    assert sent(mock).url.endswith("/v1/namespace/prod/job/web/summary")


def test_update_job_enforce_index(mock, api):
    mock.add(responses.POST, ANY, json={})
    assert api.update_job({"ID": "web"}, enforce_index=True) is None
    assert sent(mock).url == ADDRESS + "/v1/jobs?enforce_index=true"
    assert json.loads(sent(mock).body) == {"ID": "web"}


def test_dispatch_job(mock, api):
    mock.add(responses.POST, ANY, json={"DispatchedJobID": "web/dispatch-1"})
    result = api.dispatch_job("web", {"k": "v"}, {"m": "n"})
    assert result == "web/dispatch-1"
    assert json.loads(sent(mock).body) == {"Payload": {"k": "v"}, "Meta": {"m": "n"}}


def test_revert_and_stability(mock, api):
    mock.add(responses.POST, ANY, json={})
    assert api.revert_job("web", 2, enforce_index=True) is None
    assert api.set_job_stability("web", 2, True) is None
    assert sent(mock, 0).url == ADDRESS + "/v1/job/web/revert?enforce_index=true"
    assert json.loads(sent(mock, 0).body) == {"JobVersion": 2}
    assert json.loads(sent(mock, 1).body) == {"JobVersion": 2, "Stable": True}


def test_create_job_evaluation(mock, api):
    mock.add(responses.POST, ANY, json={"EvalID": "ev-1"})
    assert api.create_job_evaluation("web") == "ev-1"
    assert sent(mock).url.endswith("/v1/job/web/evaluate")


def test_create_job_plan(mock, api):
    mock.add(responses.POST, ANY, json={"JobModifyIndex": 7})
    assert api.create_job_plan({"ID": "web"}) == {"JobModifyIndex": 7}
    assert sent(mock).url.endswith("/v1/job/plan")


def test_force_periodic(mock, api):
    mock.add(responses.POST, ANY, body="")
    assert api.force_new_periodic_instance("cron") is None
    assert sent(mock).url.endswith("/v1/job/cron/periodic/force")


def test_scale_task_group(mock, api):
    mock.add(responses.POST, ANY, json={})
    assert api.scale_task_group("web", "frontend", 4, "prod") is None
    request = sent(mock)
    assert request.url.endswith("/v1/namespace/prod/job/web/scale")
    assert json.loads(request.body) == {"Count": 4, "Target": {"Group": "frontend"}}


def test_scale_status_and_services(mock, api):
    mock.add(responses.GET, ANY, json={"JobID": "web"})
    assert api.get_job_scale_status("web") == {"JobID": "web"}
    mock.replace(responses.GET, ANY, json=[{"Name": "http"}])
    assert api.list_job_services("web") == [{"Name": "http"}]
    assert sent(mock, 1).url.endswith("/v1/job/web/services")


def test_api_error_propagates(mock, api):
    mock.add(responses.GET, ANY, body="job not found", status=404)
    with pytest.raises(NomadAPIError) as info:
        api.get_job("missing")
    assert info.value.status == 404
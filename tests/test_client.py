import json
import re
from urllib.parse import parse_qs, urlsplit

import pytest
import responses

from nomadmcp.client import NomadClient, connect
from nomadmcp.models import (
    ACLPolicy,
    ACLToken,
    Namespace,
    SentinelPolicy,
    Variable,
)
from nomadmcp.transport import NomadAPIError

ADDR = "http://nomad.test:4646"


@pytest.fixture
def rsps():
    with responses.RequestsMock(assert_all_requests_are_fired=False) as mock:
        yield mock


@pytest.fixture
def client():
    return NomadClient(ADDR, "")


def _query(call):
    return {k: v[0] for k, v in parse_qs(urlsplit(call.request.url).query).items()}


def _path(call):
    return urlsplit(call.request.url).path


def _body(call):
    return json.loads(call.request.body)


def test_connect_checks_leader_and_sends_token(rsps):
    rsps.get(f"{ADDR}/v1/status/leader", json="10.0.0.1:4647")
    nomad = connect(ADDR, "token")
    assert nomad.address == ADDR
    assert _path(rsps.calls[0]) == "/v1/status/leader"
    assert rsps.calls[0].request.headers["X-Nomad-Token"] == "token"


def test_connect_failure_is_reported(rsps):
    rsps.get(f"{ADDR}/v1/status/leader", status=500, body="down")
    with pytest.raises(NomadAPIError, match="failed to connect to Nomad server") as info:
        connect(ADDR, "")
    assert info.value.status == 500


def test_connect_requires_address():
    with pytest.raises(ValueError, match="nomad address is required"):
        connect("", "")


def test_default_tail_lines(client):
    assert client.default_tail_lines == 100
    client.default_tail_lines = 50
    assert client.default_tail_lines == 50
    with pytest.raises(ValueError, match="must be positive"):
        client.default_tail_lines = 0


def test_list_deployments_paths(rsps, client):
    rsps.get(f"{ADDR}/v1/namespace/prod/deployments", json=[{"id": "d1", "status": "running"}])
    rsps.get(f"{ADDR}/v1/deployments", json=[])
    result = client.list_deployments("prod")
    assert [d.id for d in result] == ["d1"]
    assert result[0].status == "running"
    assert client.list_deployments("default") == []
    assert _path(rsps.calls[1]) == "/v1/deployments"


def test_get_deployment_decodes_task_groups(rsps, client):
    rsps.get(
        f"{ADDR}/v1/deployment/d1",
        json={"id": "d1", "task_groups": {"web": {"desired_total": 3}}},
    )
    deployment = client.get_deployment("d1")
    assert deployment.task_groups["web"].desired_total == 3


def test_create_namespace_body(rsps, client):
    rsps.post(f"{ADDR}/v1/namespace", body="")
    result = client.create_namespace(Namespace(name="team", description="team space"))
    assert result is None
    assert _body(rsps.calls[0]) == {"name": "team", "description": "team space"}


def test_list_nodes_status_query(rsps, client):
    rsps.get(f"{ADDR}/v1/nodes", json=[{"id": "n1", "status": "ready"}])
    nodes = client.list_nodes("ready")
    assert nodes[0].id == "n1"
    assert _query(rsps.calls[0]) == {"status": "ready"}


def test_get_node_error_keeps_status(rsps, client):
    rsps.get(f"{ADDR}/v1/node/missing", status=404, body="node not found")
    with pytest.raises(NomadAPIError) as info:
        client.get_node("missing")
    assert info.value.status == 404
    assert "node not found" in str(info.value)


def test_drain_node_enable_with_deadline(rsps, client):
    rsps.post(f"{ADDR}/v1/node/n1/drain", json={"EvalIDs": []})
    message = client.drain_node("n1", True, 60)
    assert message == "Node drain enabled with deadline 60 seconds"
    body = _body(rsps.calls[0])
    assert body["DrainSpec"]["Deadline"] == 60
    assert body["Meta"]["reason"] == "Initiated via API"


def test_drain_node_enable_without_deadline(rsps, client):
    rsps.post(f"{ADDR}/v1/node/n1/drain", json={})
    assert client.drain_node("n1", True, -1) == "Node drain enabled with no deadline"


def test_drain_node_disable(rsps, client):
    rsps.post(f"{ADDR}/v1/node/n1/drain", json={})
    assert client.drain_node("n1", False) == "Node drain disabled"
    body = _body(rsps.calls[0])
    assert body["DrainSpec"] is None
    assert body["Meta"]["reason"] == "Drain disabled via API"


def test_drain_node_rejects_non_json(rsps, client):
    rsps.post(f"{ADDR}/v1/node/n1/drain", body="not json")
    with pytest.raises(NomadAPIError, match="error unmarshaling response"):
        client.drain_node("n1", True)


def test_eligibility_node(rsps, client):
    rsps.post(f"{ADDR}/v1/node/n1/eligibility", json={"id": "n1", "status": "ready"})
    node = client.eligibility_node("n1", "ineligible")
    assert node.id == "n1"
    assert _body(rsps.calls[0]) == {"Eligibility": "ineligible"}


def test_list_volumes_query(rsps, client):
    rsps.get(f"{ADDR}/v1/volumes", json=[{"Name": "data"}])
    volumes = client.list_volumes(node_id="ab", per_page=5, filter="x")
    assert volumes[0].name == "data"
    assert _query(rsps.calls[0]) == {"node_id": "ab", "per_page": "5", "filter": "x"}


def test_list_volumes_error_is_wrapped(rsps, client):
    rsps.get(f"{ADDR}/v1/volumes", status=500, body="boom")
    with pytest.raises(NomadAPIError, match="^error listing volumes: API error") as info:
        client.list_volumes()
    assert info.value.status == 500


def test_get_volume(rsps, client):
    rsps.get(re.compile(r".*/volume/host/vol1$"), json={"Name": "vol1", "Namespace": "default"})
    volume = client.get_volume("vol1")
    assert volume.name == "vol1"
    assert _path(rsps.calls[0]).endswith("/volume/host/vol1")


def test_delete_volume_error_is_wrapped(rsps, client):
    rsps.delete(re.compile(r".*/volume/host/vol1/delete$"), status=403, body="denied")
    with pytest.raises(NomadAPIError, match="^error deleting volume") as info:
        client.delete_volume("vol1")
    assert info.value.status == 403


def test_list_volume_claims_query(rsps, client):
    rsps.get(f"{ADDR}/v1/volumes/", json=[{"ID": "c1", "VolumeName": "data"}])
    claims = client.list_volume_claims("prod", job_id="web")
    assert claims[0].id == "c1"
    assert claims[0].volume_name == "data"
    assert _query(rsps.calls[0]) == {"namespace": "prod", "job_id": "web"}


def test_create_acl_token(rsps, client):
    rsps.post(f"{ADDR}/v1/acl/token", json={"AccessorID": "acc", "Name": "ci"})
    created = client.create_acl_token(ACLToken(name="ci", type="client", policies=["read"]))
    assert created.accessor_id == "acc"
    body = _body(rsps.calls[0])
    assert body["Name"] == "ci"
    assert body["Type"] == "client"
    assert body["Policies"] == ["read"]


def test_list_acl_tokens_rejects_object(rsps, client):
    rsps.get(f"{ADDR}/v1/acl/tokens", json={"AccessorID": "acc"})
    with pytest.raises(NomadAPIError, match="error unmarshaling response"):
        client.list_acl_tokens()


def test_bootstrap_acl_token(rsps, client):
    rsps.post(f"{ADDR}/v1/acl/bootstrap", json={"SecretID": "secret", "Type": "management"})
    token = client.bootstrap_acl_token()
    assert token.secret_id == "secret"
    assert token.type == "management"


def test_create_acl_policy_path(rsps, client):
    rsps.post(f"{ADDR}/v1/acl/policy/readonly", body="")
    result = client.create_acl_policy(ACLPolicy(name="readonly", rules="rules"))
    assert result is None
    assert _path(rsps.calls[0]) == "/v1/acl/policy/readonly"
    assert _body(rsps.calls[0])["rules"] == "rules"


def test_get_acl_role(rsps, client):
    rsps.get(f"{ADDR}/v1/acl/role/r1", json={"id": "r1", "policies": [{"Name": "p"}]})
    role = client.get_acl_role("r1")
    assert role.id == "r1"
    assert role.policies == [{"Name": "p"}]


def test_allocation_logs_tail(rsps, client):
    rsps.get(f"{ADDR}/v1/client/fs/logs/a1", body="a\nb\nc\nd")
    logs = client.get_allocation_logs("a1", "web", tail=2)
    assert logs == "c\nd"
    query = _query(rsps.calls[0])
    assert query["origin"] == "end"
    assert query["plain"] == "true"
    assert query["follow"] == "false"
    assert query["type"] == "stdout"
    assert query["task"] == "web"


def test_allocation_logs_offset(rsps, client):
    rsps.get(f"{ADDR}/v1/client/fs/logs/a1", body="hello")
    assert client.get_allocation_logs("a1", "web", "stderr", offset=7) == "hello"
    query = _query(rsps.calls[0])
    assert query["offset"] == "7"
    assert query["type"] == "stderr"
    assert "origin" not in query


def test_allocation_logs_validation(client):
    with pytest.raises(ValueError, match="allocation ID is required"):
        client.get_allocation_logs("", "web")
    with pytest.raises(ValueError, match="task name is required"):
        client.get_allocation_logs("a1", "")


def test_list_regions_returns_raw_body(rsps, client):
    rsps.get(f"{ADDR}/v1/regions", body='["global"]')
    assert client.list_regions() == b'["global"]'


def test_get_allocation_task_states(rsps, client):
    rsps.get(
        f"{ADDR}/v1/allocation/a1",
        json={"ID": "a1", "TaskStates": {"web": {"State": "running"}}},
    )
    alloc = client.get_allocation("a1")
    assert alloc.id == "a1"
    assert alloc.task_states["web"].state == "running"


def test_create_sentinel_policy_omits_empty(rsps, client):
    rsps.post(f"{ADDR}/v1/sentinel/policy/limits", body="")
    result = client.create_sentinel_policy(SentinelPolicy(name="limits", scope="submit-job"))
    assert result is None
    assert _path(rsps.calls[0]) == "/v1/sentinel/policy/limits"
    body = _body(rsps.calls[0])
    assert body["Scope"] == "submit-job"
    assert "Hash" not in body
    assert "CreateIndex" not in body


def test_list_variables_namespace_and_query(rsps, client):
    rsps.get(f"{ADDR}/v1/namespace/prod/vars", json=[{"Path": "app/db"}])
    variables = client.list_variables("prod", prefix="app", per_page=10)
    assert variables[0].path == "app/db"
    assert _query(rsps.calls[0]) == {"prefix": "app", "per_page": "10"}


def test_create_variable_body(rsps, client):
    rsps.put(f"{ADDR}/v1/var/app/db", body="")
    variable = Variable(path="app/db", value=json.dumps({"Items": {"user": "admin"}}))
    result = client.create_variable(variable, "prod", cas=3, lock_operation="acquire")
    assert result is None
    body = _body(rsps.calls[0])
    assert body == {"Items": {"user": "admin"}, "CAS": 3, "LockOperation": "acquire"}
    assert _query(rsps.calls[0]) == {"namespace": "prod"}


def test_create_variable_bad_value(client):
    with pytest.raises(ValueError, match="failed to parse variable value"):
        client.create_variable(Variable(path="x", value="not json"))


def test_delete_variable_cas(rsps, client):
    rsps.delete(f"{ADDR}/v1/var/app/db", body="")
    result = client.delete_variable("app/db", "default", cas=4)
    assert result is None
    assert _path(rsps.calls[0]) == "/v1/var/app/db"
    assert _query(rsps.calls[0]) == {"cas": "4"}
import json
import re

import pytest
import requests
import responses

from nomadmcp.models import Namespace
from nomadmcp.transport import NomadAPIError, NomadTransport

ADDRESS = "http://nomad.test"
ANY = re.compile(r"http://nomad\.test/.*")


@pytest.fixture
def mock():
    with responses.RequestsMock(assert_all_requests_are_fired=False) as rsps:
        yield rsps


def test_empty_address_rejected():
    with pytest.raises(ValueError, match="nomad address is required"):
        NomadTransport("")


def test_request_url_and_token_header(mock):
    mock.add(responses.GET, ANY, body="ok")
    transport = NomadTransport(ADDRESS, "token")
    assert transport.make_request("GET", "status/leader") == b"ok"
    request = mock.calls[0].request
    assert request.url == ADDRESS + "/v1/status/leader"
    assert request.headers["X-Nomad-Token"] == "token"
    assert request.headers["Content-Type"] == "application/json"
    assert request.body is None


def test_no_token_header_when_empty(mock):
    mock.add(responses.GET, ANY, body="ok")
    result = NomadTransport(ADDRESS).make_request("GET", "status/leader")
    assert result == b"ok"
    assert "X-Nomad-Token" not in mock.calls[0].request.headers


def test_token_can_be_replaced(mock):
    mock.add(responses.GET, ANY, body="ok")
    transport = NomadTransport(ADDRESS)
    transport.token = "secret"
    result = transport.make_request("GET", "status/leader")
    assert result == b"ok"
    assert mock.calls[0].request.headers["X-Nomad-Token"] == "secret"


def test_query_is_sorted_and_encoded(mock):
    mock.add(responses.GET, ANY, body="[]")
    result = NomadTransport(ADDRESS).make_request(
        "GET", "nodes", {"status": "ready", "filter": "a b"}
    )
    assert result == b"[]"
    assert mock.calls[0].request.url == ADDRESS + "/v1/nodes?filter=a+b&status=ready"


def test_empty_query_adds_nothing(mock):
    mock.add(responses.GET, ANY, body="[]")
    result = NomadTransport(ADDRESS).make_request("GET", "nodes", {})
    assert result == b"[]"
    assert mock.calls[0].request.url == ADDRESS + "/v1/nodes"


def test_body_is_json(mock):
    mock.add(responses.POST, ANY, body="{}")
    payload = {"Count": 3, "Target": {"Group": "web"}}
    result = NomadTransport(ADDRESS).make_request("POST", "job/x/scale", body=payload)
    assert result == b"{}"
    assert json.loads(mock.calls[0].request.body) == payload


def test_model_body_uses_json_keys(mock):
    mock.add(responses.POST, ANY, body="")
    result = NomadTransport(ADDRESS).make_request("POST", "namespace", body=Namespace(name="dev"))
    assert result == b""
    sent = json.loads(mock.calls[0].request.body)
    assert sent == Namespace(name="dev").to_dict()
    assert Namespace.from_dict(sent) == Namespace(name="dev")


def test_error_status_raises(mock):
    mock.add(responses.GET, ANY, body="not found", status=404)
    with pytest.raises(NomadAPIError) as info:
        NomadTransport(ADDRESS).make_request("GET", "job/missing")
    assert info.value.status == 404
    assert info.value.body == "not found"
    assert str(info.value) == "API error (status 404): not found"


def test_connection_failure_raises(mock):
    mock.add(responses.GET, ANY, body=requests.ConnectionError("refused"))
    with pytest.raises(NomadAPIError, match="error making request") as info:
        NomadTransport(ADDRESS).make_request("GET", "status/leader")
    assert info.value.status is None


def test_get_json_decodes(mock):
    mock.add(responses.GET, ANY, json={"Leader": True, "Peers": ["a", "b"]})
    assert NomadTransport(ADDRESS).get_json("agent/self") == {"Leader": True, "Peers": ["a", "b"]}


def test_get_json_rejects_invalid_json(mock):
    mock.add(responses.GET, ANY, body="<html>")
    with pytest.raises(NomadAPIError, match="error unmarshaling response"):
        NomadTransport(ADDRESS).get_json("agent/self")


def test_request_json_sends_method_and_body(mock):
    mock.add(responses.PUT, ANY, json={"ok": True})
    result = NomadTransport(ADDRESS).request_json("PUT", "var/a", {"cas": "2"}, {"Items": {}})
    request = mock.calls[0].request
    assert result == {"ok": True}
    assert request.method == "PUT"
    assert request.url.endswith("/v1/var/a?cas=2")
    assert json.loads(request.body) == {"Items": {}}


def test_delete_sends_delete(mock):
    mock.add(responses.DELETE, ANY, body="")
    assert NomadTransport(ADDRESS).delete("acl/token/abc") is None
    request = mock.calls[0].request
    assert request.method == "DELETE"
    assert request.url == ADDRESS + "/v1/acl/token/abc"
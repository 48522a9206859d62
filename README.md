# nomadmcp

A Model Context Protocol (MCP) server for HashiCorp Nomad. An MCP client,
such as an assistant or an editor integration, can use it to manage a Nomad
cluster through tools. The tools cover jobs, deployments, namespaces, nodes,
allocations, task logs, variables and cluster membership. The package also
contains a Python client for the Nomad HTTP API.

## Installation

```
pip install .
```

To install the test dependencies and run the tests:

```
pip install ".[test]"
pytest
```

## Configuration

The server reads two environment variables:

- `NOMAD_ADDR`: the address of the Nomad HTTP API. The default is
  `http://localhost:4646`.
- `NOMAD_TOKEN`: an ACL token. The client sends it as the `X-Nomad-Token`
  header. Leave it unset if ACLs are disabled.

At startup the server asks Nomad for the current leader (`status/leader`). If
that request fails, it logs the error and exits with status 1.

## Running

With the default stdio transport, the server reads newline-delimited JSON-RPC
messages from standard input and writes its responses to standard output:

```
nomadmcp
```

With the Server-Sent Events transport on a chosen port (the default is 8080):

```
nomadmcp --transport sse --port 8080
```

The options may also be written with one dash (`-transport`, `-port`). Any
transport other than `stdio` or `sse` is an error.

The SSE server listens on the host name taken from `NOMAD_ADDR`. It serves two
endpoints:

- `GET /sse` opens an event stream. The first event is `endpoint`, which gives
  the URL to post messages to.
- `POST /message?sessionId=...` carries one JSON-RPC message. The server
  answers `202 Accepted` and sends the reply as a `message` event on the
  stream.

Requests are accepted if they have no `Origin` header, or if their origin
starts with `http://localhost`, `http://127.0.0.1` or the value of
`NOMAD_ADDR`. Any other origin gets `403 Invalid origin`. If a request has an
`Authorization` header, its value is put into the request context. Calls to
Nomad always use the token from `NOMAD_TOKEN`.

The server handles the JSON-RPC methods `initialize`, `ping`, `tools/list`,
`tools/call`, `resources/list`, `resources/templates/list` and
`logging/setLevel`.

## Tools

- Jobs: `list_jobs`, `get_job`, `run_job`, `stop_job`, `scale_job`,
  `get_job_allocations`, `get_job_evaluations`, `get_job_deployments`,
  `get_job_summary`, `get_job_services`
- Nodes: `list_nodes`, `get_node`, `drain_node`, `eligibility_node`
- Cluster: `get_cluster_leader`, `list_cluster_peers`, `list_regions`
- Allocations: `list_allocations`, `get_allocation`, `stop_allocation`
- Deployments: `list_deployments`, `get_deployment`
- Logs: `get_allocation_logs`
- Namespaces: `list_namespaces`, `create_namespace`, `delete_namespace`
- Variables: `list_variables`, `get_variable`, `create_variable`,
  `delete_variable`

Most tools return indented JSON text. If an argument is missing or Nomad
reports an error, the tool returns a result with `isError` set and a message
that describes the failure.

## What the server does not provide

- No MCP tools for ACL tokens, policies or roles, for Sentinel policies, or
  for volumes. `NomadClient` has methods for these, but the server does not
  offer them as tools.
- No MCP resources or resource templates. `resources/list` and
  `resources/templates/list` return empty lists.
- No MCP prompts.

## Using the client from Python

```python
from nomadmcp.client import connect

client = connect("http://localhost:4646", "token")
for node in client.list_nodes(""):
    print(node.name, node.status)
```

`connect` checks that Nomad answers before it returns the client. Failed
requests raise `nomadmcp.transport.NomadAPIError`, which holds the HTTP status
and the response body. The classes in `nomadmcp.models` are dataclasses for
the Nomad API objects. Use `from_dict` and `to_dict` to convert them to and
from JSON data.

## Job templates

The `nomadmcp.templates` module has three sample HCL job specifications:
`service`, `batch` and `system`.

- `get_job_templates()` returns a JSON listing of the templates.
- `get_job_template(name)` returns the HCL text of one template. An unknown
  name raises `TemplateNotFoundError`.
- `extract_template_name_from_uri("nomad://templates/<name>")` returns the
  template name from a URI of that form.
"""HTTP transport for the Nomad API."""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any
from urllib.parse import urlencode

import requests

from .models import to_plain

DEFAULT_TIMEOUT = 30.0


class NomadAPIError(Exception):
    """A request to the Nomad API failed or its answer could not be read."""

    def __init__(self, message: str, status: int | None = None, body: str = ""):
        super().__init__(message)
        self.status = status
        self.body = body


class NomadTransport:
    """Sends JSON requests to a Nomad agent under ``<address>/v1/``."""

    def __init__(
        self,
        address: str,
        token: str = "",
        *,
        timeout: float = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ):
        if not address:
            raise ValueError("nomad address is required")
        self.address = address
        self.token = token
        self.timeout = timeout
        self.session = session if session is not None else requests.Session()

    def make_request(
        self,
        method: str,
        path: str,
        query: Mapping[str, Any] | None = None,
        body: Any = None,
    ) -> bytes:
        """Send a request and return the raw response body."""
        url = f"{self.address}/v1/{path}"
        if query:
            url = f"{url}?{urlencode(sorted((str(k), str(v)) for k, v in query.items()))}"

        data = None
        if body is not None:
            try:
                data = json.dumps(to_plain(body), separators=(",", ":")).encode("utf-8")
            except (TypeError, ValueError) as exc:
                raise NomadAPIError(f"error marshaling request body: {exc}") from exc

        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["X-Nomad-Token"] = self.token

        try:
            response = self.session.request(
                method, url, data=data, headers=headers, timeout=self.timeout
            )
        except requests.RequestException as exc:
            raise NomadAPIError(f"error making request: {exc}") from exc

        content = response.content
        if response.status_code >= 400:
            text = content.decode("utf-8", errors="replace")
            raise NomadAPIError(
                f"API error (status {response.status_code}): {text}",
                status=response.status_code,
                body=text,
            )
        return content

    def request_json(
        self,
        method: str,
        path: str,
        query: Mapping[str, Any] | None = None,
        body: Any = None,
    ) -> Any:
        """Send a request and decode its JSON answer."""
        content = self.make_request(method, path, query, body)
        try:
            return json.loads(content)
        except ValueError as exc:
            raise NomadAPIError(f"error unmarshaling response: {exc}") from exc

    def get_json(self, path: str) -> Any:
        """GET a path and decode its JSON answer."""
        return self.request_json("GET", path)

    def delete(self, path: str) -> None:
        """Send a DELETE request to a path."""
        self.make_request("DELETE", path)
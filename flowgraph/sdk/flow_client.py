"""Flow client SDK for loading and saving flow definitions.

so that an editor session can round-trip a flow in two lines of code
session = EditorSession.open(client, flow_id)
session.save(client)
"""

from __future__ import annotations

import os

import httpx

from flowgraph.models.flow_definition import FlowRecord, FlowSummary

DEFAULT_BASE_URL = os.getenv("FLOWGRAPH_BASE_URL", "http://localhost:8000")


class FlowClientError(Exception):
    """Exception raised when a flow request fails."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class FlowConflictError(FlowClientError):
    """The stored flow changed since it was loaded (stale version)."""
    pass


def _detail(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text
    if isinstance(payload, dict) and "detail" in payload:
        return str(payload["detail"])
    return response.text


class FlowClient:
    """Talk to the flow storage API.

    No retries and no queueing: every call is a single request and failures
    are raised to the caller.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """
        Args:
            base_url: Base URL of the flow server
            timeout: HTTP request timeout in seconds
            transport: Optional httpx transport (tests pass a MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _request(self, method: str, path: str, json: dict | None = None) -> httpx.Response:
        url = f"{self.base_url}/api{path}"
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.request(method, url, json=json)
        except httpx.RequestError as e:
            raise FlowClientError(
                f"Failed to connect to server at {self.base_url}: {e}"
            ) from e

        if response.status_code == 409:
            raise FlowConflictError(_detail(response), status_code=409)
        if response.status_code >= 400:
            raise FlowClientError(_detail(response), status_code=response.status_code)
        return response

    def list_flows(self) -> list[FlowSummary]:
        response = self._request("GET", "/flows")
        return [FlowSummary.model_validate(item) for item in response.json()]

    def get_flow(self, flow_id: str) -> FlowRecord:
        """Fetch the full flow record."""
        response = self._request("GET", f"/flows/{flow_id}")
        return FlowRecord.model_validate(response.json())

    def create_flow(self, name: str, slug: str, description: str = "") -> FlowRecord:
        """Create a flow with the server's starter definition."""
        response = self._request("POST", "/flows", json={
            "name": name,
            "slug": slug,
            "description": description,
        })
        return FlowRecord.model_validate(response.json())

    def save_flow(
        self,
        flow: FlowRecord,
        field_renames: dict[str, str] | None = None,
    ) -> FlowRecord:
        """Replace the stored definition.

        ``flow.version`` must be the version that was loaded; the server
        answers a stale one with 409, raised here as FlowConflictError.

        Args:
            flow: Snapshot of the working copy
            field_renames: Optional old -> new field slug audit for migration

        Returns:
            The stored record with its new version
        """
        body = flow.to_wire()
        if field_renames:
            body["fieldRenames"] = dict(field_renames)
        response = self._request("PUT", f"/flows/{flow.id}", json=body)
        return FlowRecord.model_validate(response.json())

    def delete_flow(self, flow_id: str) -> None:
        self._request("DELETE", f"/flows/{flow_id}")

    def get_field_renames(self, flow_id: str) -> list[dict]:
        """Rename audit entries stored with previous saves, oldest first."""
        response = self._request("GET", f"/flows/{flow_id}/field-renames")
        return response.json()

    def __repr__(self) -> str:
        return f"FlowClient(base_url={self.base_url!r})"

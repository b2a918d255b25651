"""Tests for the flow client SDK against a mocked transport."""

import json

import httpx
import pytest

from flowgraph.models.flow_definition import FlowRecord
from flowgraph.sdk.flow_client import FlowClient, FlowClientError, FlowConflictError


FLOW_WIRE = {
    "id": "flow-1",
    "name": "Sample",
    "slug": "sample",
    "description": "",
    "version": 2,
    "definition": {
        "stages": {"intro": {"description": "Intro", "fieldsToCollect": []}},
        "fields": {},
        "config": {"initialStage": "intro"},
    },
}


def make_client(handler) -> FlowClient:
    return FlowClient(base_url="http://flows.test/", transport=httpx.MockTransport(handler))


class TestRequests:
    """Test request shapes and response parsing."""

    def test_get_flow(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append((request.method, str(request.url)))
            return httpx.Response(200, json=FLOW_WIRE)

        flow = make_client(handler).get_flow("flow-1")
        assert seen == [("GET", "http://flows.test/api/flows/flow-1")]
        assert flow.version == 2
        assert flow.definition.config.initial_stage == "intro"

    def test_list_flows(self):
        def handler(request):
            return httpx.Response(200, json=[
                {"id": "f1", "name": "One", "slug": "one", "version": 1},
                {"id": "f2", "name": "Two", "slug": "two", "version": 4},
            ])

        flows = make_client(handler).list_flows()
        assert [f.slug for f in flows] == ["one", "two"]
        assert flows[1].version == 4

    def test_save_sends_wire_body_with_renames(self):
        captured = {}

        def handler(request):
            captured["method"] = request.method
            captured["path"] = request.url.path
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={**FLOW_WIRE, "version": 3})

        flow = FlowRecord.model_validate(FLOW_WIRE)
        saved = make_client(handler).save_flow(flow, field_renames={"email": "mail"})

        assert captured["method"] == "PUT"
        assert captured["path"] == "/api/flows/flow-1"
        body = captured["body"]
        assert body["version"] == 2
        assert body["fieldRenames"] == {"email": "mail"}
        assert body["definition"]["config"] == {"initialStage": "intro"}
        assert "fieldsToCollect" in body["definition"]["stages"]["intro"]
        assert saved.version == 3

    def test_save_without_renames_omits_key(self):
        captured = {}

        def handler(request):
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json=FLOW_WIRE)

        make_client(handler).save_flow(FlowRecord.model_validate(FLOW_WIRE), field_renames={})
        assert "fieldRenames" not in captured["body"]

    def test_create_flow(self):
        captured = {}

        def handler(request):
            captured["body"] = json.loads(request.content)
            return httpx.Response(201, json={**FLOW_WIRE, "version": 1})

        flow = make_client(handler).create_flow("Sample", "sample")
        assert captured["body"] == {"name": "Sample", "slug": "sample", "description": ""}
        assert flow.version == 1


class TestErrors:
    """Test mapping of failures to client exceptions."""

    def test_conflict(self):
        def handler(request):
            return httpx.Response(409, json={"detail": "Flow was modified"})

        with pytest.raises(FlowConflictError) as exc_info:
            make_client(handler).save_flow(FlowRecord.model_validate(FLOW_WIRE))
        assert exc_info.value.status_code == 409
        assert str(exc_info.value) == "Flow was modified"

    def test_conflict_is_a_client_error(self):
        assert issubclass(FlowConflictError, FlowClientError)

    def test_not_found(self):
        def handler(request):
            return httpx.Response(404, json={"detail": "Flow not found: nope"})

        with pytest.raises(FlowClientError) as exc_info:
            make_client(handler).get_flow("nope")
        assert not isinstance(exc_info.value, FlowConflictError)
        assert exc_info.value.status_code == 404
        assert "nope" in str(exc_info.value)

    def test_non_json_error_body(self):
        def handler(request):
            return httpx.Response(500, text="boom")

        with pytest.raises(FlowClientError) as exc_info:
            make_client(handler).list_flows()
        assert str(exc_info.value) == "boom"

    def test_connection_failure(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(FlowClientError) as exc_info:
            make_client(handler).get_flow("flow-1")
        assert exc_info.value.status_code is None
        assert "http://flows.test" in str(exc_info.value)

"""Unit tests for WebhookHandler payload parsing."""

import pytest
from pydantic import ValidationError

from src.copilot.routing.router import LabelRouter
from src.copilot.webhook.handler import WebhookHandler
from src.copilot.webhook.models import IssueLabel, LinearIssueEvent, WebhookHeaders


def _payload(**data_overrides) -> dict:
    data = {
        "id": "issue-123",
        "title": "Login button does nothing",
        "description": "Clicking login has no effect on Safari.",
        "labels": {"nodes": [{"name": "Bug"}, {"name": "Frontend"}]},
    }
    data.update(data_overrides)
    return {
        "type": "Issue",
        "action": "create",
        "data": data,
        "webhookTimestamp": 1_700_000_000_000,
    }


@pytest.fixture
def handler() -> WebhookHandler:
    return WebhookHandler()


def test_parses_all_fields(handler):
    headers = WebhookHeaders(delivery_id="d-1", event_type="Issue", signature="abc")
    event = handler.parse_issue_event(_payload(), headers)

    assert event.delivery_id == "d-1"
    assert event.event_type == "Issue"
    assert event.action == "create"
    assert event.issue_id == "issue-123"
    assert event.title == "Login button does nothing"
    assert event.description == "Clicking login has no effect on Safari."
    assert event.labels == (IssueLabel(name="Bug"), IssueLabel(name="Frontend"))
    assert event.timestamp == 1_700_000_000_000


def test_first_label_preserves_payload_order(handler):
    event = handler.parse_issue_event(_payload())
    assert event.first_label == "Bug"
    assert event.label_names == ["Bug", "Frontend"]


def test_null_description_becomes_empty(handler):
    event = handler.parse_issue_event(_payload(description=None))
    assert event.description == ""


def test_missing_labels_gives_empty_first_label(handler):
    payload = _payload()
    del payload["data"]["labels"]
    event = handler.parse_issue_event(payload)
    assert event.labels == ()
    assert event.first_label == ""


def test_label_nodes_keep_position_and_raw_names(handler):
    labels = {"nodes": [None, {"name": ""}, {"color": "red"}, {"name": " feature "}]}
    event = handler.parse_issue_event(_payload(labels=labels))
    assert event.label_names == ["", "", "", " feature "]
    assert event.first_label == ""


@pytest.mark.parametrize(
    "nodes",
    [
        [{"name": ""}, {"name": "Bug"}],
        [{"color": "red"}, {"name": "Bug"}],
        [{"name": " bug "}],
    ],
)
def test_first_node_decides_routing(handler, nodes):
    event = handler.parse_issue_event(_payload(labels={"nodes": nodes}))
    assert not LabelRouter().route(event.first_label).is_routed


def test_non_string_id_becomes_empty(handler):
    event = handler.parse_issue_event(_payload(id=42))
    assert event.issue_id == ""


@pytest.mark.parametrize("timestamp", [True, "1700000000000", float("nan"), None])
def test_invalid_timestamp_is_dropped(handler, timestamp):
    payload = _payload()
    payload["webhookTimestamp"] = timestamp
    assert handler.parse_issue_event(payload).timestamp is None


def test_event_type_falls_back_to_header(handler):
    payload = _payload()
    del payload["type"]
    headers = WebhookHeaders(event_type="Issue")
    assert handler.parse_issue_event(payload, headers).event_type == "Issue"


@pytest.mark.parametrize("payload", [None, [], "text"])
def test_non_object_payload_returns_none(handler, payload):
    assert handler.parse_issue_event(payload) is None


def test_event_is_immutable(handler):
    event = handler.parse_issue_event(_payload())
    with pytest.raises(ValidationError):
        event.title = "changed"


def test_headers_from_mapping_is_case_insensitive():
    headers = WebhookHeaders.from_mapping(
        {"Linear-Delivery": "d-9", "LINEAR-EVENT": "Issue", "linear-signature": "sig"}
    )
    assert headers.delivery_id == "d-9"
    assert headers.event_type == "Issue"
    assert headers.signature == "sig"


def test_headers_from_mapping_defaults_missing_to_empty():
    headers = WebhookHeaders.from_mapping({})
    assert headers == WebhookHeaders()
    assert isinstance(LinearIssueEvent(event_type="Issue", action="create").labels, tuple)

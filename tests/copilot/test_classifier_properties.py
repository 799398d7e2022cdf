"""Property-based tests for webhook event classification.

Only issue creation events and issue updates that touch labels are
actionable; everything else is ignored with "Event type not supported".
"""

import pytest
from hypothesis import given, settings, strategies as st

from src.copilot.webhook.classifier import (
    UNSUPPORTED_EVENT_REASON,
    classify,
    is_issue_creation_event,
    is_issue_label_update_event,
)


identifier = st.text(
    alphabet=st.sampled_from("abcdefghijklmnopqrstuvwxyz0123456789-"),
    min_size=1,
    max_size=36,
)
title_text = st.text(min_size=1, max_size=200)
label_names = st.lists(st.sampled_from(["Bug", "feature", "Improvement", "urgent"]), max_size=4)


@st.composite
def issue_create_payload(draw: st.DrawFn) -> dict:
    return {
        "type": "Issue",
        "action": "create",
        "data": {
            "id": draw(identifier),
            "title": draw(title_text),
            "description": draw(st.one_of(st.none(), st.text(max_size=200))),
            "labels": {"nodes": [{"name": n} for n in draw(label_names)]},
        },
        "webhookTimestamp": draw(st.integers(min_value=0)),
    }


@st.composite
def label_update_payload(draw: st.DrawFn) -> dict:
    use_updated_from = draw(st.booleans())
    payload = {
        "type": "Issue",
        "action": "update",
        "data": {"id": draw(identifier), "title": draw(title_text)},
    }
    if use_updated_from:
        payload["updatedFrom"] = {"labelIds": draw(st.lists(identifier, max_size=3))}
    else:
        payload["data"]["labels"] = {"nodes": [{"name": n} for n in draw(label_names)]}
    return payload


class TestAcceptedEvents:
    @given(payload=issue_create_payload())
    @settings(max_examples=100)
    def test_issue_create_is_accepted(self, payload: dict) -> None:
        outcome = classify(payload)
        assert outcome.accepted
        assert outcome.payload == payload
        assert is_issue_creation_event(payload)

    @given(payload=label_update_payload())
    @settings(max_examples=100)
    def test_label_update_is_accepted(self, payload: dict) -> None:
        outcome = classify(payload)
        assert outcome.accepted
        assert is_issue_label_update_event(payload)

    def test_update_with_empty_label_ids_is_accepted(self) -> None:
        payload = {
            "type": "Issue",
            "action": "update",
            "data": {"id": "issue-1"},
            "updatedFrom": {"labelIds": []},
        }
        assert classify(payload).accepted


class TestIgnoredEvents:
    @given(
        event_type=st.sampled_from(["Comment", "Project", "Cycle", "IssueLabel", "issue"]),
        payload=issue_create_payload(),
    )
    @settings(max_examples=100)
    def test_non_issue_types_are_ignored(self, event_type: str, payload: dict) -> None:
        payload["type"] = event_type
        outcome = classify(payload)
        assert not outcome.accepted
        assert outcome.reason == UNSUPPORTED_EVENT_REASON

    @given(payload=issue_create_payload())
    @settings(max_examples=100)
    def test_remove_action_is_ignored(self, payload: dict) -> None:
        payload["action"] = "remove"
        assert not classify(payload).accepted

    def test_update_without_label_change_is_ignored(self) -> None:
        payload = {
            "type": "Issue",
            "action": "update",
            "data": {"id": "issue-1", "title": "Renamed"},
            "updatedFrom": {"title": "Old name"},
        }
        assert not classify(payload).accepted

    @pytest.mark.parametrize("field", ["id", "title"])
    def test_create_missing_required_field_is_ignored(self, field: str) -> None:
        payload = {
            "type": "Issue",
            "action": "create",
            "data": {"id": "issue-1", "title": "Crash"},
        }
        del payload["data"][field]
        assert not classify(payload).accepted

    def test_create_with_empty_title_is_ignored(self) -> None:
        payload = {"type": "Issue", "action": "create", "data": {"id": "i", "title": ""}}
        assert not classify(payload).accepted

    @pytest.mark.parametrize("action", ["create", "update"])
    def test_numeric_issue_id_is_ignored(self, action: str) -> None:
        payload = {
            "type": "Issue",
            "action": action,
            "data": {"id": 42, "title": "Crash", "labels": {"nodes": []}},
        }
        assert not classify(payload).accepted

    @pytest.mark.parametrize("payload", [None, [], "Issue", 42, {}])
    def test_non_object_or_empty_payload_is_ignored(self, payload) -> None:
        outcome = classify(payload)
        assert not outcome.accepted
        assert outcome.reason == UNSUPPORTED_EVENT_REASON

"""Classification of Linear webhook payloads.

Decides whether a parsed payload is an actionable issue event:

- Issue created: type "Issue", action "create", with an id and a title
- Issue labels updated: type "Issue", action "update", with an id and
  either an updatedFrom.labelIds field or a labels collection

Anything else is ignored. Ignoring is a successful outcome; the webhook
is acknowledged and nothing is dispatched.
"""

import logging
from typing import Any, Dict

from src.copilot.webhook.models import ClassificationOutcome, IssueAction


logger = logging.getLogger(__name__)


ISSUE_EVENT_TYPE = "Issue"

UNSUPPORTED_EVENT_REASON = "Event type not supported"


def _data(payload: Dict[str, Any]) -> Dict[str, Any]:
    data = payload.get("data")
    return data if isinstance(data, dict) else {}


def _non_empty(value: Any) -> bool:
    # Linear ids and titles are strings; a numeric id is not accepted
    return isinstance(value, str) and bool(value)


def is_issue_creation_event(payload: Any) -> bool:
    """Check whether a payload describes a newly created issue."""
    if not isinstance(payload, dict):
        return False
    data = _data(payload)
    return (
        payload.get("type") == ISSUE_EVENT_TYPE
        and payload.get("action") == IssueAction.CREATE.value
        and _non_empty(data.get("id"))
        and _non_empty(data.get("title"))
    )


def is_issue_label_update_event(payload: Any) -> bool:
    """Check whether a payload describes an update touching issue labels.

    The update qualifies when Linear reports the previous label ids
    (``updatedFrom.labelIds``) or includes the current labels collection
    (``data.labels.nodes``).
    """
    if not isinstance(payload, dict):
        return False
    data = _data(payload)

    updated_from = payload.get("updatedFrom")
    has_label_ids = isinstance(updated_from, dict) and "labelIds" in updated_from

    labels = data.get("labels")
    has_labels = isinstance(labels, dict) and "nodes" in labels

    return (
        payload.get("type") == ISSUE_EVENT_TYPE
        and payload.get("action") == IssueAction.UPDATE.value
        and _non_empty(data.get("id"))
        and (has_label_ids or has_labels)
    )


def classify(payload: Any) -> ClassificationOutcome:
    """Classify a webhook payload as accepted or ignored.

    Args:
        payload: The decoded JSON body of the webhook.

    Returns:
        ClassificationOutcome.accept(payload) for issue creation and
        label update events, ClassificationOutcome.ignore(reason)
        otherwise.
    """
    if is_issue_creation_event(payload) or is_issue_label_update_event(payload):
        return ClassificationOutcome.accept(payload)

    if isinstance(payload, dict):
        logger.debug(
            "Ignoring unsupported event: type=%s, action=%s",
            payload.get("type"),
            payload.get("action"),
        )
    else:
        logger.debug("Ignoring non-object payload: %s", type(payload))

    return ClassificationOutcome.ignore(UNSUPPORTED_EVENT_REASON)

"""Linear webhook payload parsing for the triage copilot.

This module provides the WebhookHandler class for turning an accepted
Linear webhook payload into an immutable LinearIssueEvent. Authentication
and classification happen before parsing (see auth.py and classifier.py).

Linear Webhook Payload Structure (Issue event):
{
  "action": "create",
  "type": "Issue",
  "data": {
    "id": "9f1c...",
    "title": "Issue title",
    "description": "Issue description",
    "labels": {"nodes": [{"name": "Bug"}]}
  },
  "updatedFrom": {"labelIds": ["..."]},
  "webhookTimestamp": 1700000000000
}
"""

import logging
import math
from typing import Any, Dict, List, Optional

from src.copilot.webhook.models import IssueLabel, LinearIssueEvent, WebhookHeaders

logger = logging.getLogger(__name__)


class WebhookHandler:
    """Parser for Linear issue webhook payloads.

    The handler is tolerant of missing optional fields: a null
    description becomes an empty string and a label node without a
    name becomes an empty label. Only a payload that is not a JSON object
    is rejected.
    """

    def parse_issue_event(
        self,
        payload: Dict[str, Any],
        headers: Optional[WebhookHeaders] = None,
    ) -> Optional[LinearIssueEvent]:
        """Parse a Linear issue event from a webhook payload.

        Args:
            payload: The decoded webhook body.
            headers: The linear-* headers of the delivery, if available.

        Returns:
            LinearIssueEvent if parsing succeeds, None for payloads that
            are not JSON objects.
        """
        if not isinstance(payload, dict):
            logger.warning("Invalid payload: expected dict, got %s", type(payload))
            return None

        headers = headers or WebhookHeaders()

        data = payload.get("data")
        if not isinstance(data, dict):
            logger.warning(
                "Missing or invalid 'data' field in payload: %s",
                type(data),
            )
            data = {}

        issue_id = data.get("id")
        if not isinstance(issue_id, str):
            issue_id = ""

        title = data.get("title")
        if not isinstance(title, str):
            title = ""

        # Description can be None or missing
        description = data.get("description")
        if not isinstance(description, str):
            description = ""

        timestamp = payload.get("webhookTimestamp")
        if (
            isinstance(timestamp, bool)
            or not isinstance(timestamp, (int, float))
            or not math.isfinite(timestamp)
        ):
            timestamp = None
        else:
            timestamp = int(timestamp)

        event = LinearIssueEvent(
            delivery_id=headers.delivery_id,
            event_type=str(payload.get("type") or headers.event_type),
            action=str(payload.get("action") or ""),
            issue_id=issue_id,
            title=title,
            description=description,
            labels=tuple(self._extract_labels(data.get("labels"))),
            timestamp=timestamp,
        )

        logger.info(
            "Parsed issue event: action=%s, issue=%s",
            event.action,
            event.issue_id,
        )

        return event

    def _extract_labels(self, labels_data: Any) -> List[IssueLabel]:
        """Extract labels from the labels connection.

        Linear sends labels as a connection object:
        {"nodes": [{"name": "Bug"}, {"name": "Frontend"}]}

        Args:
            labels_data: The labels connection from the issue data.

        Returns:
            One label per node in payload order, names unchanged. A node
            without a string name yields an empty name.
        """
        if not isinstance(labels_data, dict):
            return []

        nodes = labels_data.get("nodes")
        if not isinstance(nodes, list):
            logger.debug("Label nodes is not a list: %s", type(nodes))
            return []

        labels = []
        for node in nodes:
            name = node.get("name") if isinstance(node, dict) else None
            # Unnamed nodes keep their slot so the first label stays nodes[0]
            labels.append(IssueLabel(name=name if isinstance(name, str) else ""))

        return labels

"""Linear webhook handling for the triage copilot.

This module authenticates, classifies and parses Linear webhook
deliveries, specifically:
- Issue create - A new issue was filed
- Issue update - An issue's labels changed
"""

from src.copilot.webhook.auth import (
    LINEAR_WEBHOOK_IPS,
    TIMESTAMP_TOLERANCE_MS,
    WebhookAuthenticator,
    compute_signature,
    verify_signature,
    verify_timestamp,
)
from src.copilot.webhook.classifier import (
    classify,
    is_issue_creation_event,
    is_issue_label_update_event,
)
from src.copilot.webhook.handler import WebhookHandler
from src.copilot.webhook.models import (
    ClassificationOutcome,
    IssueAction,
    IssueLabel,
    LinearIssueEvent,
    ValidationResult,
    WebhookHeaders,
)

__all__ = [
    "ClassificationOutcome",
    "IssueAction",
    "IssueLabel",
    "LINEAR_WEBHOOK_IPS",
    "LinearIssueEvent",
    "TIMESTAMP_TOLERANCE_MS",
    "ValidationResult",
    "WebhookAuthenticator",
    "WebhookHandler",
    "WebhookHeaders",
    "classify",
    "compute_signature",
    "is_issue_creation_event",
    "is_issue_label_update_event",
    "verify_signature",
    "verify_timestamp",
]

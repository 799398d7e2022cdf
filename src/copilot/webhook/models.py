"""Linear webhook event models for the triage copilot.

This module defines the data models for Linear webhook deliveries that
trigger the triage pipeline: the signed headers, the parsed issue event,
and the tagged outcomes produced by authentication and classification.

The models use Pydantic for validation, consistent with the copilot's
configuration approach in config.py.
"""

from enum import Enum
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


DELIVERY_HEADER = "linear-delivery"
EVENT_HEADER = "linear-event"
SIGNATURE_HEADER = "linear-signature"


class IssueAction(str, Enum):
    """Linear issue event action types.

    Attributes:
        CREATE: A new issue was created. Triggers initial triage.
        UPDATE: An existing issue was modified. Processed when the update
                touched the issue's labels.
    """

    CREATE = "create"
    UPDATE = "update"


class WebhookHeaders(BaseModel):
    """Headers Linear attaches to every webhook delivery.

    Attributes:
        delivery_id: Unique id of this delivery attempt.
        event_type: Entity type of the event (e.g. "Issue").
        signature: Lowercase hex HMAC-SHA256 of the raw body.
    """

    model_config = ConfigDict(frozen=True)

    delivery_id: str = ""
    event_type: str = ""
    signature: str = ""

    @classmethod
    def from_mapping(cls, headers: Any) -> "WebhookHeaders":
        """Build headers from any case-insensitive or plain mapping.

        Missing headers become empty strings, which never pass signature
        verification.
        """
        lowered = {str(k).lower(): v for k, v in dict(headers or {}).items()}

        def _get(name: str) -> str:
            value = lowered.get(name)
            return value if isinstance(value, str) else ""

        return cls(
            delivery_id=_get(DELIVERY_HEADER),
            event_type=_get(EVENT_HEADER),
            signature=_get(SIGNATURE_HEADER),
        )


class IssueLabel(BaseModel):
    """A label attached to a Linear issue."""

    model_config = ConfigDict(frozen=True)

    name: str


class LinearIssueEvent(BaseModel):
    """Parsed Linear issue webhook event.

    This model represents the essential data extracted from a Linear
    issue webhook payload. It is immutable once parsed and lives only for
    the request that produced it.

    The issue id is allowed to be empty here; the pipeline re-checks it
    before dispatch and fails with a PayloadError if it is missing.

    Attributes:
        delivery_id: The linear-delivery header of the request.
        event_type: The entity type ("Issue").
        action: The raw action string ("create", "update").
        issue_id: The Linear issue id.
        title: The issue title.
        description: The issue description. May be empty.
        labels: Labels attached to the issue, in payload order.
        timestamp: The webhookTimestamp in milliseconds since epoch.
    """

    model_config = ConfigDict(frozen=True)

    delivery_id: str = Field(
        default="",
        description="Unique id of the webhook delivery",
    )

    event_type: str = Field(
        ...,
        description="The entity type of the event",
    )

    action: str = Field(
        ...,
        description="The action that triggered the webhook",
    )

    issue_id: str = Field(
        default="",
        description="The Linear issue id",
    )

    title: str = Field(
        default="",
        description="The issue title text",
    )

    description: str = Field(
        default="",
        description="The issue description text (may be empty)",
    )

    labels: Tuple[IssueLabel, ...] = Field(
        default=(),
        description="Labels attached to the issue, in payload order",
    )

    timestamp: Optional[int] = Field(
        default=None,
        description="The webhookTimestamp in milliseconds since epoch",
    )

    @property
    def first_label(self) -> str:
        """Name of the first label on the issue, or an empty string."""
        return self.labels[0].name if self.labels else ""

    @property
    def label_names(self) -> list[str]:
        return [label.name for label in self.labels]


class ValidationResult(BaseModel):
    """Outcome of webhook authentication.

    Attributes:
        valid: True when IP, signature and timestamp checks all passed.
        reason: Why validation failed. None when valid.
    """

    model_config = ConfigDict(frozen=True)

    valid: bool
    reason: Optional[str] = None

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls(valid=True)

    @classmethod
    def invalid(cls, reason: str) -> "ValidationResult":
        return cls(valid=False, reason=reason)


class ClassificationOutcome(BaseModel):
    """Outcome of event classification.

    Exactly one of ``payload`` (accepted) or ``reason`` (ignored) is set.

    Attributes:
        accepted: True when the payload is an actionable issue event.
        payload: The raw payload of an accepted event.
        reason: Why the event was ignored.
    """

    model_config = ConfigDict(frozen=True)

    accepted: bool
    payload: Optional[Dict[str, Any]] = None
    reason: Optional[str] = None

    @classmethod
    def accept(cls, payload: Dict[str, Any]) -> "ClassificationOutcome":
        return cls(accepted=True, payload=payload)

    @classmethod
    def ignore(cls, reason: str) -> "ClassificationOutcome":
        return cls(accepted=False, reason=reason)

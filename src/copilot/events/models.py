"""Event records emitted while a webhook delivery moves through the pipeline.

Each event names the delivery and (once parsed) the issue it concerns,
the stage the run was in, and a free-form ``details`` dict:

- state_transition: from_stage, to_stage, plus stage context such as
  category/label on routing or reason on rejection
- completion: category, label, duration_seconds
- error: error_message, error_type, and for dispatch failures
  category, label and duration_seconds
- rejected: reason (unauthorized, unsupported event, duplicate delivery)
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict

from pydantic import BaseModel, Field


class EventType(str, Enum):
    STATE_TRANSITION = "state_transition"
    ERROR = "error"
    COMPLETION = "completion"
    REJECTED = "rejected"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PipelineEvent(BaseModel):
    """One observable step of a webhook delivery.

    Attributes:
        event_type: What kind of step this is.
        delivery_id: The linear-delivery header, "" when absent.
        issue_id: The Linear issue, "" until the payload is parsed.
        stage: PipelineStage value at emission time.
        timestamp: Emission time in UTC.
        details: Event-type specific context.
    """

    event_type: EventType
    delivery_id: str = ""
    issue_id: str = ""
    stage: str = Field(..., min_length=1)
    timestamp: datetime = Field(default_factory=_utcnow)
    details: Dict[str, Any] = Field(default_factory=dict)

    def to_log_dict(self) -> Dict[str, Any]:
        """Flatten the event into logging extras.

        Example:
            >>> PipelineEvent(
            ...     event_type=EventType.REJECTED,
            ...     stage="unauthorized",
            ...     details={"reason": "invalid signature"},
            ... ).to_log_dict()["reason"]
            'invalid signature'
        """
        record = {
            "event_type": self.event_type.value,
            "delivery_id": self.delivery_id,
            "issue_id": self.issue_id,
            "stage": self.stage,
            "timestamp": self.timestamp.isoformat(),
        }
        record.update(self.details)
        return record

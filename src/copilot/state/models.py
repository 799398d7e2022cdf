"""Pipeline state models for one webhook delivery.

This module defines:
- PipelineStage: Enum of all stages a delivery passes through
- StateTransition: Record of a single stage change
- VALID_TRANSITIONS: Map defining allowed stage transitions

State is request-scoped: a run lives for one HTTP request and is never
persisted.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field


class PipelineStage(str, Enum):
    """Stages of a webhook delivery.

    Attributes:
        RECEIVED: Request accepted by the HTTP layer.
        VALIDATED: Source IP, signature and timestamp checks passed.
        UNAUTHORIZED: Authentication failed (terminal, 401).
        CLASSIFIED: Event recognised as issue creation or label change.
        IGNORED: Unsupported event or duplicate delivery (terminal, 200).
        PAYLOAD_INVALID: Accepted event is missing its issue ID (terminal, 500).
        ROUTED: First label matched a category.
        REJECTED: First label matched no category.
        DISPATCHED: Agent team is running.
        SUCCEEDED: Agent team finished (terminal, 200).
        FAILED: Agent team raised (terminal, 500).
    """

    RECEIVED = "received"
    VALIDATED = "validated"
    UNAUTHORIZED = "unauthorized"
    CLASSIFIED = "classified"
    IGNORED = "ignored"
    PAYLOAD_INVALID = "payload_invalid"
    ROUTED = "routed"
    REJECTED = "rejected"
    DISPATCHED = "dispatched"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class StateTransition(BaseModel):
    """Record of a single stage change.

    Attributes:
        from_stage: The stage before the transition.
        to_stage: The stage after the transition.
        timestamp: When the transition occurred (UTC).
        details: Context for the transition (reason, category, error).
    """

    model_config = ConfigDict(frozen=True)

    from_stage: PipelineStage
    to_stage: PipelineStage
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
    details: Dict[str, Any] = Field(default_factory=dict)


# Valid state transitions
#
# RECEIVED -> VALIDATED -> CLASSIFIED -> ROUTED | REJECTED -> DISPATCHED
#          -> SUCCEEDED | FAILED
#
# Side exits:
# - RECEIVED -> UNAUTHORIZED when authentication fails
# - VALIDATED -> IGNORED for a duplicate delivery
# - CLASSIFIED -> IGNORED for an unsupported event
# - CLASSIFIED -> PAYLOAD_INVALID when the issue ID is missing
VALID_TRANSITIONS: Dict[PipelineStage, List[PipelineStage]] = {
    PipelineStage.RECEIVED: [
        PipelineStage.VALIDATED,
        PipelineStage.UNAUTHORIZED,
    ],
    PipelineStage.VALIDATED: [
        PipelineStage.CLASSIFIED,
        PipelineStage.IGNORED,
    ],
    PipelineStage.CLASSIFIED: [
        PipelineStage.IGNORED,
        PipelineStage.PAYLOAD_INVALID,
        PipelineStage.ROUTED,
        PipelineStage.REJECTED,
    ],
    PipelineStage.ROUTED: [
        PipelineStage.DISPATCHED,
    ],
    PipelineStage.REJECTED: [
        PipelineStage.DISPATCHED,
    ],
    PipelineStage.DISPATCHED: [
        PipelineStage.SUCCEEDED,
        PipelineStage.FAILED,
    ],
    PipelineStage.UNAUTHORIZED: [],
    PipelineStage.IGNORED: [],
    PipelineStage.PAYLOAD_INVALID: [],
    PipelineStage.SUCCEEDED: [],
    PipelineStage.FAILED: [],
}


def is_valid_transition(from_stage: PipelineStage, to_stage: PipelineStage) -> bool:
    """Check if a stage transition is allowed.

    Example:
        >>> is_valid_transition(PipelineStage.RECEIVED, PipelineStage.VALIDATED)
        True
        >>> is_valid_transition(PipelineStage.RECEIVED, PipelineStage.ROUTED)
        False
    """
    return to_stage in VALID_TRANSITIONS.get(from_stage, [])


def is_terminal_stage(stage: PipelineStage) -> bool:
    """Check if a stage has no outgoing transitions."""
    return len(VALID_TRANSITIONS.get(stage, [])) == 0

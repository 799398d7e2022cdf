"""Request-scoped pipeline run.

A PipelineRun tracks one webhook delivery through its stages, validating
each transition against VALID_TRANSITIONS and recording it with a
timestamp. It has no persistence: the run is discarded with the request.
"""

import logging
import time
from typing import Any, Dict, List, Optional

from src.copilot.state.models import (
    PipelineStage,
    StateTransition,
    is_terminal_stage,
    is_valid_transition,
)


logger = logging.getLogger(__name__)


class InvalidTransitionError(Exception):
    """Raised when an invalid state transition is attempted.

    Attributes:
        from_stage: The current stage.
        to_stage: The attempted target stage.
        message: Human-readable error message.
    """

    def __init__(
        self,
        from_stage: PipelineStage,
        to_stage: PipelineStage,
        message: Optional[str] = None,
    ):
        self.from_stage = from_stage
        self.to_stage = to_stage
        self.message = message or (
            f"Invalid transition from {from_stage.value} to {to_stage.value}"
        )
        super().__init__(self.message)


class PipelineRun:
    """Stage tracker for a single webhook delivery.

    Attributes:
        delivery_id: Value of the linear-delivery header, "" if absent.
        issue_id: Linear issue ID once the payload has been parsed.
        stage: Current stage.
        history: Every transition taken, in order.

    Example:
        >>> run = PipelineRun(delivery_id="abc")
        >>> run.transition(PipelineStage.VALIDATED)
        >>> run.stage
        <PipelineStage.VALIDATED: 'validated'>
        >>> run.transition(PipelineStage.SUCCEEDED)
        Traceback (most recent call last):
        ...
        InvalidTransitionError: Invalid transition from validated to succeeded
    """

    def __init__(self, delivery_id: str = ""):
        self.delivery_id = delivery_id
        self.issue_id = ""
        self.stage = PipelineStage.RECEIVED
        self.history: List[StateTransition] = []
        self._started = time.monotonic()

    @property
    def is_terminal(self) -> bool:
        return is_terminal_stage(self.stage)

    @property
    def elapsed_seconds(self) -> float:
        return time.monotonic() - self._started

    def transition(
        self,
        to_stage: PipelineStage,
        details: Optional[Dict[str, Any]] = None,
    ) -> StateTransition:
        """Move the run to a new stage.

        Args:
            to_stage: The target stage.
            details: Optional context recorded with the transition.

        Returns:
            The recorded StateTransition.

        Raises:
            InvalidTransitionError: If the transition is not allowed.
        """
        if not is_valid_transition(self.stage, to_stage):
            logger.error(
                "Invalid pipeline transition",
                extra={
                    "delivery_id": self.delivery_id,
                    "from_stage": self.stage.value,
                    "to_stage": to_stage.value,
                },
            )
            raise InvalidTransitionError(self.stage, to_stage)

        record = StateTransition(
            from_stage=self.stage,
            to_stage=to_stage,
            details=details or {},
        )
        self.history.append(record)
        self.stage = to_stage
        return record

    def stages(self) -> List[PipelineStage]:
        """All stages visited, starting with RECEIVED."""
        return [PipelineStage.RECEIVED] + [t.to_stage for t in self.history]

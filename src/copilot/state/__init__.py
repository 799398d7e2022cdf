"""Request-scoped pipeline state and delivery tracking."""

from src.copilot.state.delivery import DeliveryStore, InMemoryDeliveryStore
from src.copilot.state.machine import InvalidTransitionError, PipelineRun
from src.copilot.state.models import (
    VALID_TRANSITIONS,
    PipelineStage,
    StateTransition,
    is_terminal_stage,
    is_valid_transition,
)

__all__ = [
    "DeliveryStore",
    "InMemoryDeliveryStore",
    "InvalidTransitionError",
    "PipelineRun",
    "PipelineStage",
    "StateTransition",
    "VALID_TRANSITIONS",
    "is_terminal_stage",
    "is_valid_transition",
]

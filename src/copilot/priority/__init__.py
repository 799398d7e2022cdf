"""Deterministic priority scoring for routed issues.

Each category scores priority from two categorical inputs:
- Bug: impact x urgency
- Feature: business value x implementation effort
- Improvement: technical impact x implementation risk
"""

from src.copilot.priority.engine import PriorityAssessment, PriorityEngine, normalize_level
from src.copilot.priority.formatting import DIMENSION_LABELS, format_priority_note
from src.copilot.priority.matrices import (
    BUG_MATRIX,
    DEFAULT_MATRICES,
    DEFAULT_PRIORITY,
    FEATURE_MATRIX,
    IMPROVEMENT_MATRIX,
    PriorityMatrix,
)

__all__ = [
    "BUG_MATRIX",
    "DEFAULT_MATRICES",
    "DEFAULT_PRIORITY",
    "DIMENSION_LABELS",
    "FEATURE_MATRIX",
    "IMPROVEMENT_MATRIX",
    "PriorityAssessment",
    "PriorityEngine",
    "PriorityMatrix",
    "format_priority_note",
    "normalize_level",
]

"""Deterministic priority scoring.

The PriorityEngine is a pure function over its injected matrices: it
never raises for unknown levels and never touches Linear. Persisting the
score and explaining it on the issue is the job of the agent tools.

Source:
- src/copilot/priority/matrices.py (PriorityMatrix, DEFAULT_MATRICES)
- src/copilot/routing/models.py (IssueCategory)
"""

import logging
from typing import Any, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from src.copilot.priority.matrices import (
    DEFAULT_MATRICES,
    MAX_PRIORITY,
    MIN_PRIORITY,
    PriorityMatrix,
)
from src.copilot.routing.models import IssueCategory


logger = logging.getLogger(__name__)


class PriorityAssessment(BaseModel):
    """A scored priority for an issue.

    Attributes:
        category: The category whose matrix produced the score.
        inputs: The two normalised input levels (row, column).
        priority: Linear priority, 1 (urgent) to 4 (low).
    """

    model_config = ConfigDict(frozen=True)

    category: IssueCategory
    inputs: Tuple[str, str]
    priority: int = Field(..., ge=MIN_PRIORITY, le=MAX_PRIORITY)


def normalize_level(value: Any) -> str:
    """Lower-case a level name. Non-strings become ""."""
    if not isinstance(value, str):
        return ""
    return value.lower()


class PriorityEngine:
    """Scores priorities from one matrix per IssueCategory.

    Attributes:
        matrices: Read-only mapping of category to matrix.
    """

    def __init__(
        self,
        matrices: Optional[Mapping[IssueCategory, PriorityMatrix]] = None,
    ):
        """Initialize the engine.

        Args:
            matrices: Matrix per category. Defaults to the standard Bug,
                Feature and Improvement matrices.

        Raises:
            ValueError: If a category has no matrix.
        """
        matrices = dict(matrices if matrices is not None else DEFAULT_MATRICES)
        missing = [c.value for c in IssueCategory if c not in matrices]
        if missing:
            raise ValueError(f"No priority matrix for: {', '.join(missing)}")
        self.matrices = matrices

    def score(self, category: IssueCategory, dim1: Any, dim2: Any) -> int:
        """Look up the priority for a pair of levels.

        Args:
            category: The category whose matrix to use.
            dim1: Row level (impact, business value, technical impact).
            dim2: Column level (urgency, effort, risk).

        Returns:
            Priority 1-4. Pairs outside the matrix score the matrix default.
        """
        return self.assess(category, dim1, dim2).priority

    def assess(
        self,
        category: IssueCategory,
        dim1: Any,
        dim2: Any,
    ) -> PriorityAssessment:
        """Score a pair of levels and return the full assessment.

        Raises:
            ValueError: If category is not an IssueCategory value.
        """
        category = IssueCategory(category)
        row, column = normalize_level(dim1), normalize_level(dim2)
        matrix = self.matrices[category]

        priority = matrix.lookup(row, column)
        if (row, column) not in matrix:
            logger.info(
                "Priority inputs outside matrix, using default",
                extra={
                    "category": category.value,
                    "inputs": [row, column],
                    "priority": priority,
                },
            )

        return PriorityAssessment(
            category=category,
            inputs=(row, column),
            priority=priority,
        )

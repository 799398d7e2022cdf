"""Priority decision matrices.

Each handling category scores priority from two categorical inputs via a
fixed lookup table. Priority 1 is the most urgent, 4 the least. A pair
outside a table's declared levels scores DEFAULT_PRIORITY.
"""

from types import MappingProxyType
from typing import Mapping, Tuple

from src.copilot.routing.models import IssueCategory


DEFAULT_PRIORITY = 3

MIN_PRIORITY = 1
MAX_PRIORITY = 4

SEVERITY_LEVELS = ("critical", "high", "medium", "low")
EFFORT_LEVELS = ("small", "medium", "large", "xlarge")
RISK_LEVELS = ("low", "medium", "high")


class PriorityMatrix:
    """An immutable priority lookup table.

    Attributes:
        row_dimension: Name of the row input (e.g. "impact").
        column_dimension: Name of the column input (e.g. "urgency").
        row_levels: Declared row levels, most severe first.
        column_levels: Declared column levels.
        default: Priority for any pair outside the declared levels.
    """

    def __init__(
        self,
        row_dimension: str,
        column_dimension: str,
        row_levels: Tuple[str, ...],
        column_levels: Tuple[str, ...],
        rows: Tuple[Tuple[int, ...], ...],
        default: int = DEFAULT_PRIORITY,
    ):
        """Build a matrix from a row-major grid of priorities.

        Raises:
            ValueError: If the grid shape does not match the levels or a
                cell is outside 1..4.
        """
        if len(rows) != len(row_levels):
            raise ValueError(
                f"Expected {len(row_levels)} rows, got {len(rows)}"
            )
        if not MIN_PRIORITY <= default <= MAX_PRIORITY:
            raise ValueError(f"Default priority out of range: {default}")

        table = {}
        for row_level, row in zip(row_levels, rows):
            if len(row) != len(column_levels):
                raise ValueError(
                    f"Row {row_level!r} has {len(row)} cells, "
                    f"expected {len(column_levels)}"
                )
            for column_level, priority in zip(column_levels, row):
                if not MIN_PRIORITY <= priority <= MAX_PRIORITY:
                    raise ValueError(
                        f"Priority out of range at ({row_level}, {column_level}): "
                        f"{priority}"
                    )
                table[(row_level, column_level)] = priority

        self.row_dimension = row_dimension
        self.column_dimension = column_dimension
        self.row_levels = tuple(row_levels)
        self.column_levels = tuple(column_levels)
        self.default = default
        self._table: Mapping[Tuple[str, str], int] = MappingProxyType(table)

    def lookup(self, row_level: str, column_level: str) -> int:
        """Return the priority for a pair of levels, or the default."""
        return self._table.get((row_level, column_level), self.default)

    def __contains__(self, pair: object) -> bool:
        return pair in self._table

    def __repr__(self) -> str:
        return (
            f"PriorityMatrix({self.row_dimension!r} x {self.column_dimension!r}, "
            f"{len(self.row_levels)}x{len(self.column_levels)})"
        )


BUG_MATRIX = PriorityMatrix(
    row_dimension="impact",
    column_dimension="urgency",
    row_levels=SEVERITY_LEVELS,
    column_levels=SEVERITY_LEVELS,
    rows=(
        (1, 1, 2, 2),
        (1, 2, 2, 3),
        (2, 2, 3, 3),
        (2, 3, 3, 4),
    ),
)

FEATURE_MATRIX = PriorityMatrix(
    row_dimension="business_value",
    column_dimension="implementation_effort",
    row_levels=SEVERITY_LEVELS,
    column_levels=EFFORT_LEVELS,
    rows=(
        (1, 1, 2, 2),
        (1, 2, 2, 3),
        (2, 2, 3, 3),
        (3, 3, 4, 4),
    ),
)

IMPROVEMENT_MATRIX = PriorityMatrix(
    row_dimension="technical_impact",
    column_dimension="implementation_risk",
    row_levels=SEVERITY_LEVELS,
    column_levels=RISK_LEVELS,
    rows=(
        (1, 1, 2),
        (1, 2, 3),
        (2, 3, 3),
        (3, 3, 4),
    ),
)

DEFAULT_MATRICES: Mapping[IssueCategory, PriorityMatrix] = MappingProxyType(
    {
        IssueCategory.BUG: BUG_MATRIX,
        IssueCategory.FEATURE: FEATURE_MATRIX,
        IssueCategory.IMPROVEMENT: IMPROVEMENT_MATRIX,
    }
)

"""Property-based tests for deterministic priority scoring."""

import itertools

import pytest
from hypothesis import given, settings, strategies as st

from src.copilot.priority.engine import PriorityEngine
from src.copilot.priority.formatting import format_priority_note
from src.copilot.priority.matrices import (
    BUG_MATRIX,
    DEFAULT_MATRICES,
    DEFAULT_PRIORITY,
    EFFORT_LEVELS,
    FEATURE_MATRIX,
    IMPROVEMENT_MATRIX,
    RISK_LEVELS,
    SEVERITY_LEVELS,
    PriorityMatrix,
)
from src.copilot.routing.models import IssueCategory


BUG_TABLE = {
    "critical": {"critical": 1, "high": 1, "medium": 2, "low": 2},
    "high": {"critical": 1, "high": 2, "medium": 2, "low": 3},
    "medium": {"critical": 2, "high": 2, "medium": 3, "low": 3},
    "low": {"critical": 2, "high": 3, "medium": 3, "low": 4},
}

FEATURE_TABLE = {
    "critical": {"small": 1, "medium": 1, "large": 2, "xlarge": 2},
    "high": {"small": 1, "medium": 2, "large": 2, "xlarge": 3},
    "medium": {"small": 2, "medium": 2, "large": 3, "xlarge": 3},
    "low": {"small": 3, "medium": 3, "large": 4, "xlarge": 4},
}

IMPROVEMENT_TABLE = {
    "critical": {"low": 1, "medium": 1, "high": 2},
    "high": {"low": 1, "medium": 2, "high": 3},
    "medium": {"low": 2, "medium": 3, "high": 3},
    "low": {"low": 3, "medium": 3, "high": 4},
}

TABLES = {
    IssueCategory.BUG: BUG_TABLE,
    IssueCategory.FEATURE: FEATURE_TABLE,
    IssueCategory.IMPROVEMENT: IMPROVEMENT_TABLE,
}


class TestTables:
    @pytest.mark.parametrize("category", list(IssueCategory))
    def test_tables_are_exact(self, category) -> None:
        engine = PriorityEngine()
        for row, columns in TABLES[category].items():
            for column, expected in columns.items():
                assert engine.score(category, row, column) == expected

    def test_tables_are_total_over_declared_levels(self) -> None:
        for matrix in (BUG_MATRIX, FEATURE_MATRIX, IMPROVEMENT_MATRIX):
            for pair in itertools.product(matrix.row_levels, matrix.column_levels):
                assert pair in matrix

    def test_declared_levels(self) -> None:
        assert BUG_MATRIX.column_levels == SEVERITY_LEVELS
        assert FEATURE_MATRIX.column_levels == EFFORT_LEVELS
        assert IMPROVEMENT_MATRIX.column_levels == RISK_LEVELS

    def test_bug_high_critical_is_p1(self) -> None:
        assert PriorityEngine().score(IssueCategory.BUG, "high", "critical") == 1

    def test_feature_critical_xlarge_is_p2(self) -> None:
        assert PriorityEngine().score(IssueCategory.FEATURE, "critical", "xlarge") == 2


class TestDefaults:
    @given(
        category=st.sampled_from(list(IssueCategory)),
        dim1=st.text(max_size=20),
        dim2=st.text(max_size=20),
    )
    @settings(max_examples=100)
    def test_score_always_in_range(self, category, dim1: str, dim2: str) -> None:
        assert 1 <= PriorityEngine().score(category, dim1, dim2) <= 4

    @given(
        category=st.sampled_from(list(IssueCategory)),
        dim1=st.text(max_size=20).filter(lambda s: s.lower() not in SEVERITY_LEVELS),
        dim2=st.text(max_size=20),
    )
    @settings(max_examples=100)
    def test_unknown_row_scores_default(self, category, dim1: str, dim2: str) -> None:
        assert PriorityEngine().score(category, dim1, dim2) == DEFAULT_PRIORITY

    @pytest.mark.parametrize("dim1, dim2", [(None, "high"), ("high", 3), ("", ""), ("severe", "now")])
    def test_out_of_domain_inputs_score_three(self, dim1, dim2) -> None:
        assert PriorityEngine().score(IssueCategory.BUG, dim1, dim2) == 3

    def test_levels_are_lower_cased(self) -> None:
        engine = PriorityEngine()
        assessment = engine.assess(IssueCategory.BUG, "HIGH", "Critical")
        assert assessment.inputs == ("high", "critical")
        assert assessment.priority == 1

    def test_padded_levels_score_default(self) -> None:
        assert PriorityEngine().score(IssueCategory.BUG, " high ", "critical") == DEFAULT_PRIORITY

    def test_category_accepts_plain_value(self) -> None:
        assert PriorityEngine().score("improvement", "critical", "low") == 1

    def test_unknown_category_raises(self) -> None:
        with pytest.raises(ValueError):
            PriorityEngine().score("manager", "high", "high")


class TestMatrixConstruction:
    def test_engine_requires_every_category(self) -> None:
        partial = {IssueCategory.BUG: BUG_MATRIX}
        with pytest.raises(ValueError):
            PriorityEngine(matrices=partial)

    def test_injected_matrix_is_used(self) -> None:
        flat = PriorityMatrix("a", "b", ("x",), ("y",), ((4,),), default=2)
        engine = PriorityEngine(matrices={**DEFAULT_MATRICES, IssueCategory.BUG: flat})
        assert engine.score(IssueCategory.BUG, "x", "y") == 4
        assert engine.score(IssueCategory.BUG, "high", "high") == 2

    @pytest.mark.parametrize(
        "rows",
        [((1, 2),), ((1,), (2,)), ((0,),), ((5,),)],
    )
    def test_invalid_grid_rejected(self, rows) -> None:
        with pytest.raises(ValueError):
            PriorityMatrix("a", "b", ("x",), ("y",), rows)


class TestPriorityNote:
    def test_bug_note(self) -> None:
        assessment = PriorityEngine().assess(IssueCategory.BUG, "high", "critical")
        note = format_priority_note(assessment, "Checkout fails\nfor every customer")
        assert note == (
            "Priority updated to P1\n"
            "Impact: high\n"
            "Urgency: critical\n"
            "Reason: Checkout fails for every customer"
        )

    def test_feature_note_labels(self) -> None:
        assessment = PriorityEngine().assess(IssueCategory.FEATURE, "low", "small")
        note = format_priority_note(assessment, "")
        assert "Business Value: low" in note
        assert "Implementation Effort: small" in note
        assert note.endswith("Reason: (no reason given)")

    def test_improvement_note_labels(self) -> None:
        assessment = PriorityEngine().assess(IssueCategory.IMPROVEMENT, "medium", "high")
        note = format_priority_note(assessment, "Refactor is risky")
        assert note.startswith("Priority updated to P3\n")
        assert "Technical Impact: medium" in note
        assert "Implementation Risk: high" in note

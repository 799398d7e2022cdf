"""Priority note formatting for Linear comments.

Renders the explanatory note posted after a priority change, e.g.:

    Priority updated to P1
    Impact: high
    Urgency: critical
    Reason: Checkout fails for every customer

Source:
- src/copilot/priority/engine.py (PriorityAssessment)
"""

from src.copilot.priority.engine import PriorityAssessment
from src.copilot.routing.models import IssueCategory


# Display names for each category's (row, column) inputs
DIMENSION_LABELS = {
    IssueCategory.BUG: ("Impact", "Urgency"),
    IssueCategory.FEATURE: ("Business Value", "Implementation Effort"),
    IssueCategory.IMPROVEMENT: ("Technical Impact", "Implementation Risk"),
}


def format_priority_note(assessment: PriorityAssessment, reason: str) -> str:
    """Format the note explaining a priority change.

    Args:
        assessment: The scored priority.
        reason: Free-text justification supplied by the agent.

    Returns:
        A multi-line plain-text note.
    """
    row_label, column_label = DIMENSION_LABELS[assessment.category]
    row_level, column_level = assessment.inputs

    lines = [
        f"Priority updated to P{assessment.priority}",
        f"{row_label}: {row_level}",
        f"{column_label}: {column_level}",
        f"Reason: {_sanitize_reason(reason)}",
    ]
    return "\n".join(lines)


def _sanitize_reason(reason: str) -> str:
    """Collapse a reason onto a single line."""
    if not reason:
        return "(no reason given)"

    sanitized = reason.strip().replace("\r", " ").replace("\n", " ")

    while "  " in sanitized:
        sanitized = sanitized.replace("  ", " ")

    return sanitized or "(no reason given)"

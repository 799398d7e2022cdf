"""Label-based routing of Linear issues.

The first label on an issue decides which specialist handles it. Label
names are compared case-insensitively against the category names; a
label that matches no category is rejected. Rejection is not an error:
the coordinating agent asks the reporter for a valid label instead.
"""

import logging
from typing import Optional

from src.copilot.routing.models import IssueCategory, RoutingDecision


logger = logging.getLogger(__name__)


INVALID_LABEL_REASON = "invalid label"


def normalize_label(label: Optional[str]) -> str:
    """Lower-case a label name for comparison. None becomes ""."""
    if not isinstance(label, str):
        return ""
    return label.lower()


class LabelRouter:
    """Routes a label name to exactly one IssueCategory.

    Example:
        >>> router = LabelRouter()
        >>> router.route("BUG").category
        <IssueCategory.BUG: 'bug'>
        >>> router.route("urgent").reason
        'invalid label'
    """

    def __init__(self) -> None:
        self._categories = {category.value: category for category in IssueCategory}

    def route(self, label: Optional[str]) -> RoutingDecision:
        """Route a raw label name.

        Args:
            label: Name of the first label on the issue, or "" if none.

        Returns:
            RoutingDecision.routed_to(category) on a match, otherwise
            RoutingDecision.rejected("invalid label").
        """
        normalized = normalize_label(label)
        category = self._categories.get(normalized)

        if category is None:
            logger.info(
                "Label rejected for routing",
                extra={"label": normalized},
            )
            return RoutingDecision.rejected(INVALID_LABEL_REASON, label=normalized)

        logger.info(
            "Issue routed",
            extra={"label": normalized, "category": category.value},
        )
        return RoutingDecision.routed_to(category, label=normalized)

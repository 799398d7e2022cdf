"""Label routing for Linear issues."""

from src.copilot.routing.models import AgentRole, IssueCategory, RoutingDecision
from src.copilot.routing.router import INVALID_LABEL_REASON, LabelRouter, normalize_label

__all__ = [
    "AgentRole",
    "INVALID_LABEL_REASON",
    "IssueCategory",
    "LabelRouter",
    "RoutingDecision",
    "normalize_label",
]

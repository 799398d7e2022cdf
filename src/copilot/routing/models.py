"""Routing models for the triage copilot.

This module defines the closed set of handling categories, the agent
roles that take part in a triage run, and the routing decision produced
by the LabelRouter.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, model_validator


class IssueCategory(str, Enum):
    """Handling categories an issue can be routed to.

    The set is closed: every category has exactly one specialist agent,
    one priority matrix and one toolkit.

    Attributes:
        BUG: Incorrect or unexpected behaviour.
        FEATURE: A request for new functionality.
        IMPROVEMENT: Optimisation, technical debt or quality work.
    """

    BUG = "bug"
    FEATURE = "feature"
    IMPROVEMENT = "improvement"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()


class AgentRole(str, Enum):
    """Roles in the agent team.

    MANAGER coordinates every run and is never a routing destination.
    The remaining roles mirror IssueCategory one to one.
    """

    MANAGER = "manager"
    BUG = "bug"
    FEATURE = "feature"
    IMPROVEMENT = "improvement"

    @classmethod
    def for_category(cls, category: IssueCategory) -> "AgentRole":
        return cls(category.value)

    @property
    def bot_name(self) -> str:
        """Name used to sign comments posted by this role."""
        return f"{self.value.capitalize()} Bot"


class RoutingDecision(BaseModel):
    """Result of routing an issue label.

    A decision is either routed to a category or rejected with a reason,
    never both.

    Attributes:
        category: The category the issue was routed to.
        reason: Why the label was rejected.
        label: The normalised label the decision was made on.
    """

    model_config = ConfigDict(frozen=True)

    category: Optional[IssueCategory] = None
    reason: Optional[str] = None
    label: str = ""

    @model_validator(mode="after")
    def check_exclusive(self) -> "RoutingDecision":
        if (self.category is None) == (self.reason is None):
            raise ValueError(
                "RoutingDecision needs exactly one of category or reason"
            )
        return self

    @classmethod
    def routed_to(cls, category: IssueCategory, label: str = "") -> "RoutingDecision":
        return cls(category=category, label=label)

    @classmethod
    def rejected(cls, reason: str, label: str = "") -> "RoutingDecision":
        return cls(reason=reason, label=label)

    @property
    def is_routed(self) -> bool:
        return self.category is not None

    @property
    def agent_role(self) -> Optional[AgentRole]:
        """The specialist role for a routed decision, None when rejected."""
        if self.category is None:
            return None
        return AgentRole.for_category(self.category)

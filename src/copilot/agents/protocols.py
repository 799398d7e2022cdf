"""Capability interfaces consumed by the pipeline and the agent tools.

The pipeline never talks to Linear, an LLM or a search engine directly.
It depends on these narrow capabilities so that tests can swap in
AsyncMock collaborators and so that each agent role can hold its own
Linear credentials.

Concrete implementations:
- LinearClient (src/copilot/linear/client.py): CommentPoster, PrioritySetter,
  LabelApplier, IssueAssigner
- LangChainTaskRunner (src/copilot/agents/runner.py): TaskRunner
- DuckDuckGoSearchProvider, StackExchangeSearchProvider
  (src/copilot/agents/tools.py): SearchProvider
"""

from typing import List, Optional, Protocol, Sequence, runtime_checkable

from langchain_core.tools import BaseTool
from pydantic import BaseModel, ConfigDict, Field


class AgentResult(BaseModel):
    """Final output of one agent run.

    Attributes:
        text: The agent's final answer.
        steps: Number of model turns the run took.
        tool_calls: Names of the tools invoked, in call order.
    """

    model_config = ConfigDict(frozen=True)

    text: str = Field(default="", description="Final answer text")
    steps: int = Field(default=0, ge=0, description="Model turns taken")
    tool_calls: tuple[str, ...] = Field(
        default=(),
        description="Tool names invoked, in order",
    )


@runtime_checkable
class CommentPoster(Protocol):
    async def post_comment(self, issue_id: str, body: str) -> None:
        """Post a comment on the issue. Raises on failure."""
        ...


@runtime_checkable
class PrioritySetter(Protocol):
    async def set_priority(self, issue_id: str, priority: int) -> None:
        """Persist a 1-4 priority on the issue. Raises on failure."""
        ...


@runtime_checkable
class LabelApplier(Protocol):
    async def add_labels(self, issue_id: str, names: Sequence[str]) -> List[str]:
        """Add the named workspace labels to the issue.

        Names with no matching workspace label are skipped. Returns the
        names that were applied. Raises on failure.
        """
        ...


@runtime_checkable
class IssueAssigner(Protocol):
    async def assign_to_member(self, issue_id: str, name_fragment: str) -> Optional[str]:
        """Assign the issue to the first team member whose name contains
        ``name_fragment``.

        Returns the member's name, or None when no member matches.
        Raises on failure.
        """
        ...


@runtime_checkable
class TaskRunner(Protocol):
    async def run(
        self,
        prompt: str,
        tools: Sequence[BaseTool],
        step_limit: int,
        background: str,
    ) -> AgentResult:
        """Run an agent with the given tools until it answers.

        Args:
            prompt: The task for the agent.
            tools: Tools the agent may call.
            step_limit: Maximum number of model turns.
            background: System instructions describing the agent's role.

        Raises:
            Exception: Any failure of the underlying model or a tool.
        """
        ...


@runtime_checkable
class SearchProvider(Protocol):
    async def query(self, text: str) -> str:
        """Run a web search and return the results as plain text."""
        ...

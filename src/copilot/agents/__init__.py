"""Agent team: capability protocols, toolkits, runner and dispatcher."""

from src.copilot.agents.dispatcher import IssueDispatcher
from src.copilot.agents.protocols import (
    AgentResult,
    CommentPoster,
    IssueAssigner,
    LabelApplier,
    PrioritySetter,
    SearchProvider,
    TaskRunner,
)
from src.copilot.agents.runner import LangChainTaskRunner
from src.copilot.agents.tools import (
    DuckDuckGoSearchProvider,
    IssueToolkit,
    StackExchangeSearchProvider,
    format_comment,
)

__all__ = [
    "AgentResult",
    "CommentPoster",
    "DuckDuckGoSearchProvider",
    "IssueAssigner",
    "IssueDispatcher",
    "IssueToolkit",
    "LabelApplier",
    "LangChainTaskRunner",
    "PrioritySetter",
    "SearchProvider",
    "StackExchangeSearchProvider",
    "TaskRunner",
    "format_comment",
]

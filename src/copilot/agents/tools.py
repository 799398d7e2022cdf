"""LangChain tools for the agent team.

Each agent role gets its own toolkit, bound to a single issue and to
that role's Linear client:

- Manager: comment, set_initial_priority(impact, urgency), assign_task,
  request_valid_label, search
- Bug: comment, analyze_bug, update_priority(impact, urgency),
  search_similar, stack_overflow, search
- Feature: comment, analyze_feature, update_priority(business_value,
  implementation_effort), research_similar, search
- Improvement: comment, analyze_improvement, update_priority(
  technical_impact, implementation_risk), analyze_performance, search

The analyze_* tools run the keyword analyses in analysis.py on the
issue text and tag the issue with the matching workspace labels.

Tools never swallow errors: a failing Linear call or search propagates
out of the agent run and fails the dispatch.

Source:
- src/copilot/agents/protocols.py (CommentPoster, PrioritySetter,
  LabelApplier, IssueAssigner, SearchProvider)
- src/copilot/agents/analysis.py (analyze_bug, analyze_feature,
  analyze_improvement, analyze_performance)
- src/copilot/priority/engine.py (PriorityEngine)
"""

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional

from langchain_core.tools import BaseTool, StructuredTool
from pydantic import BaseModel, Field

from src.copilot.agents.analysis import (
    IssueAnalysis,
    analyze_bug,
    analyze_feature,
    analyze_improvement,
    analyze_performance,
)
from src.copilot.agents.prompts import VALID_LABEL_REQUEST
from src.copilot.agents.protocols import (
    CommentPoster,
    IssueAssigner,
    LabelApplier,
    PrioritySetter,
    SearchProvider,
)
from src.copilot.priority.engine import PriorityEngine
from src.copilot.priority.formatting import format_priority_note
from src.copilot.routing.models import AgentRole, IssueCategory


logger = logging.getLogger(__name__)


def format_comment(role: AgentRole, content: str) -> str:
    """Sign a comment body with the role's bot name."""
    return f"[{role.bot_name}] {content}"


class DuckDuckGoSearchProvider:
    """SearchProvider backed by the LangChain DuckDuckGo tool.

    The underlying tool is built on first use so that importing this
    module does not require the search backend to be installed.
    """

    def __init__(self, max_chars: int = 4000):
        self.max_chars = max_chars
        self._tool: Optional[BaseTool] = None

    @property
    def tool(self) -> BaseTool:
        if self._tool is None:
            from langchain_community.tools import DuckDuckGoSearchRun

            self._tool = DuckDuckGoSearchRun()
        return self._tool

    async def query(self, text: str) -> str:
        logger.debug("Running web search", extra={"query": text[:200]})
        result = await self.tool.ainvoke(text)
        return str(result)[: self.max_chars]


class StackExchangeSearchProvider(DuckDuckGoSearchProvider):
    """SearchProvider that queries Stack Overflow questions and answers."""

    def __init__(self, max_results: int = 3, max_chars: int = 4000):
        super().__init__(max_chars=max_chars)
        self.max_results = max_results

    @property
    def tool(self) -> BaseTool:
        if self._tool is None:
            from langchain_community.tools import StackExchangeTool
            from langchain_community.utilities import StackExchangeAPIWrapper

            self._tool = StackExchangeTool(
                api_wrapper=StackExchangeAPIWrapper(
                    max_results=self.max_results,
                    query_type="all",
                    result_separator="\n\n",
                )
            )
        return self._tool


class CommentInput(BaseModel):
    content: str = Field(..., description="Comment text in markdown")


class SearchInput(BaseModel):
    query: str = Field(..., description="Web search query")


class RequestLabelInput(BaseModel):
    note: str = Field(
        default="",
        description="Optional extra context for the reporter",
    )


class AssignTaskInput(BaseModel):
    category: IssueCategory = Field(
        ...,
        description="bug, feature or improvement; picks the matching team member",
    )


class BugPriorityInput(BaseModel):
    impact: str = Field(..., description="critical, high, medium or low")
    urgency: str = Field(..., description="critical, high, medium or low")
    reason: str = Field(..., description="Why this impact and urgency")


class FeaturePriorityInput(BaseModel):
    business_value: str = Field(..., description="critical, high, medium or low")
    implementation_effort: str = Field(..., description="small, medium, large or xlarge")
    reason: str = Field(..., description="Why this value and effort")


class ImprovementPriorityInput(BaseModel):
    technical_impact: str = Field(..., description="critical, high, medium or low")
    implementation_risk: str = Field(..., description="low, medium or high")
    reason: str = Field(..., description="Why this impact and risk")


class BugAnalysisInput(BaseModel):
    stack_trace: Optional[str] = Field(default=None, description="Stack trace from the report")
    environment: Optional[str] = Field(default=None, description="OS, browser or version details")


class FeatureAnalysisInput(BaseModel):
    user_story: Optional[str] = Field(default=None, description="User story, if stated")
    acceptance_criteria: Optional[List[str]] = Field(
        default=None,
        description="Acceptance criteria, if stated",
    )


class ImprovementAnalysisInput(BaseModel):
    current_metrics: Optional[Dict[str, float]] = Field(
        default=None,
        description="Current measurements by metric name",
    )
    target_metrics: Optional[Dict[str, float]] = Field(
        default=None,
        description="Target measurements by metric name",
    )


class PerformanceInput(BaseModel):
    metrics: Dict[str, float] = Field(..., description="Measured value by metric name")
    thresholds: Dict[str, float] = Field(..., description="Threshold by metric name")
    context: str = Field(
        default="",
        description="Where the system runs, e.g. user-facing production or mobile",
    )


class SimilarBugsInput(BaseModel):
    query: str = Field(..., description="Short description of the bug")
    error_message: Optional[str] = Field(
        default=None,
        description="Exact error message, if the report has one",
    )


class SimilarFeaturesInput(BaseModel):
    query: str = Field(..., description="Short description of the feature")
    market: Optional[str] = Field(
        default=None,
        description="Product category or market segment",
    )


class IssueToolkit:
    """Builds the LangChain tools for one issue.

    Attributes:
        issue_id: The Linear issue every tool acts on.
        comments: Poster used for the role's comments.
        priorities: Setter used to persist scored priorities.
        labels: Applier used by the analyze_* tools.
        assignments: Assigner used by the manager's assign_task.
        search: Web search backend.
        qa_search: Question-and-answer search backend (Stack Overflow).
            Defaults to ``search``.
        issue_text: Title and description the analyses run on.
        engine: Priority scoring engine.
    """

    def __init__(
        self,
        issue_id: str,
        comments: CommentPoster,
        priorities: PrioritySetter,
        labels: LabelApplier,
        assignments: IssueAssigner,
        search: SearchProvider,
        qa_search: Optional[SearchProvider] = None,
        issue_text: str = "",
        engine: Optional[PriorityEngine] = None,
    ):
        self.issue_id = issue_id
        self.comments = comments
        self.priorities = priorities
        self.labels = labels
        self.assignments = assignments
        self.search = search
        self.qa_search = qa_search or search
        self.issue_text = issue_text
        self.engine = engine or PriorityEngine()

    def for_role(self, role: AgentRole) -> List[BaseTool]:
        """Return the tools available to a role."""
        builders: Dict[AgentRole, Callable[[], List[BaseTool]]] = {
            AgentRole.MANAGER: self._manager_tools,
            AgentRole.BUG: self._bug_tools,
            AgentRole.FEATURE: self._feature_tools,
            AgentRole.IMPROVEMENT: self._improvement_tools,
        }
        return builders[AgentRole(role)]()

    async def _post(self, role: AgentRole, content: str) -> str:
        await self.comments.post_comment(self.issue_id, format_comment(role, content))
        return f"Comment posted on issue {self.issue_id}"

    async def _apply_priority(
        self,
        role: AgentRole,
        category: IssueCategory,
        dim1: Any,
        dim2: Any,
        reason: str,
    ) -> str:
        """Score, persist, then explain a priority on the issue."""
        assessment = self.engine.assess(category, dim1, dim2)
        await self.priorities.set_priority(self.issue_id, assessment.priority)
        await self._post(role, format_priority_note(assessment, reason))

        logger.info(
            "Issue priority updated",
            extra={
                "issue_id": self.issue_id,
                "category": category.value,
                "inputs": list(assessment.inputs),
                "priority": assessment.priority,
            },
        )
        return f"Priority set to P{assessment.priority}"

    async def _tag(self, analysis: IssueAnalysis) -> str:
        """Apply an analysis' labels and return its report."""
        applied = await self.labels.add_labels(self.issue_id, analysis.label_names)
        logger.info(
            "Issue analysed",
            extra={
                "issue_id": self.issue_id,
                "category": analysis.category.value,
                "labels": applied,
            },
        )
        return analysis.to_report(applied)

    def _comment_tool(self, role: AgentRole) -> BaseTool:
        async def comment(content: str) -> str:
            return await self._post(role, content)

        return StructuredTool.from_function(
            coroutine=comment,
            name="comment",
            description=f"Post a comment on the issue, signed as {role.bot_name}",
            args_schema=CommentInput,
        )

    def _search_tool(self) -> BaseTool:
        async def search(query: str) -> str:
            return await self.search.query(query)

        return StructuredTool.from_function(
            coroutine=search,
            name="search",
            description="Search the web and return result snippets",
            args_schema=SearchInput,
        )

    def _manager_tools(self) -> List[BaseTool]:
        async def set_initial_priority(impact: str, urgency: str, reason: str) -> str:
            return await self._apply_priority(
                AgentRole.MANAGER, IssueCategory.BUG, impact, urgency, reason
            )

        async def assign_task(category: IssueCategory) -> str:
            category = IssueCategory(category)
            assignee = await self.assignments.assign_to_member(
                self.issue_id, category.display_name
            )
            if assignee is None:
                return f"No team member matches {category.display_name}; issue left unassigned"
            return f"Issue {self.issue_id} assigned to {assignee}"

        async def request_valid_label(note: str = "") -> str:
            content = VALID_LABEL_REQUEST
            if note.strip():
                content = f"{content}\n\n{note.strip()}"
            return await self._post(AgentRole.MANAGER, content)

        return [
            self._comment_tool(AgentRole.MANAGER),
            StructuredTool.from_function(
                coroutine=set_initial_priority,
                name="set_initial_priority",
                description="Set an initial priority from impact and urgency",
                args_schema=BugPriorityInput,
            ),
            StructuredTool.from_function(
                coroutine=assign_task,
                name="assign_task",
                description="Assign the issue to the team member handling its category",
                args_schema=AssignTaskInput,
            ),
            StructuredTool.from_function(
                coroutine=request_valid_label,
                name="request_valid_label",
                description="Ask the reporter to add a bug, feature or improvement label",
                args_schema=RequestLabelInput,
            ),
            self._search_tool(),
        ]

    def _bug_tools(self) -> List[BaseTool]:
        async def analyze(
            stack_trace: Optional[str] = None,
            environment: Optional[str] = None,
        ) -> str:
            return await self._tag(analyze_bug(self.issue_text, stack_trace, environment))

        async def update_priority(impact: str, urgency: str, reason: str) -> str:
            return await self._apply_priority(
                AgentRole.BUG, IssueCategory.BUG, impact, urgency, reason
            )

        async def search_similar(query: str, error_message: Optional[str] = None) -> str:
            terms = query
            if error_message:
                terms = f'{terms} "{error_message}"'
            answers, issues = await asyncio.gather(
                self.qa_search.query(terms),
                self.search.query(f"site:github.com {terms} label:bug"),
            )
            return f"Stack Overflow:\n{answers}\n\nGitHub issues:\n{issues}"

        async def stack_overflow(query: str) -> str:
            return await self.qa_search.query(query)

        return [
            self._comment_tool(AgentRole.BUG),
            StructuredTool.from_function(
                coroutine=analyze,
                name="analyze_bug",
                description="Classify the bug by type and severity and label the issue",
                args_schema=BugAnalysisInput,
            ),
            StructuredTool.from_function(
                coroutine=update_priority,
                name="update_priority",
                description="Set the issue priority from bug impact and urgency",
                args_schema=BugPriorityInput,
            ),
            StructuredTool.from_function(
                coroutine=search_similar,
                name="search_similar",
                description="Search Stack Overflow and GitHub for similar reported bugs",
                args_schema=SimilarBugsInput,
            ),
            StructuredTool.from_function(
                coroutine=stack_overflow,
                name="stack_overflow",
                description="Search Stack Overflow questions and answers",
                args_schema=SearchInput,
            ),
            self._search_tool(),
        ]

    def _feature_tools(self) -> List[BaseTool]:
        async def analyze(
            user_story: Optional[str] = None,
            acceptance_criteria: Optional[List[str]] = None,
        ) -> str:
            return await self._tag(
                analyze_feature(self.issue_text, user_story, acceptance_criteria)
            )

        async def update_priority(
            business_value: str,
            implementation_effort: str,
            reason: str,
        ) -> str:
            return await self._apply_priority(
                AgentRole.FEATURE,
                IssueCategory.FEATURE,
                business_value,
                implementation_effort,
                reason,
            )

        async def research_similar(query: str, market: Optional[str] = None) -> str:
            scope = f"{query} {market}" if market else query
            products, analysis = await asyncio.gather(
                self.search.query(f"site:producthunt.com {scope}"),
                self.search.query(f"{scope} market analysis comparison"),
            )
            return f"Similar products:\n{products}\n\nMarket analysis:\n{analysis}"

        return [
            self._comment_tool(AgentRole.FEATURE),
            StructuredTool.from_function(
                coroutine=analyze,
                name="analyze_feature",
                description="Classify the feature by type and scope and label the issue",
                args_schema=FeatureAnalysisInput,
            ),
            StructuredTool.from_function(
                coroutine=update_priority,
                name="update_priority",
                description="Set the issue priority from business value and effort",
                args_schema=FeaturePriorityInput,
            ),
            StructuredTool.from_function(
                coroutine=research_similar,
                name="research_similar",
                description="Research similar products and the market for a feature",
                args_schema=SimilarFeaturesInput,
            ),
            self._search_tool(),
        ]

    def _improvement_tools(self) -> List[BaseTool]:
        async def analyze(
            current_metrics: Optional[Dict[str, float]] = None,
            target_metrics: Optional[Dict[str, float]] = None,
        ) -> str:
            return await self._tag(
                analyze_improvement(self.issue_text, current_metrics, target_metrics)
            )

        async def update_priority(
            technical_impact: str,
            implementation_risk: str,
            reason: str,
        ) -> str:
            return await self._apply_priority(
                AgentRole.IMPROVEMENT,
                IssueCategory.IMPROVEMENT,
                technical_impact,
                implementation_risk,
                reason,
            )

        async def performance(
            metrics: Dict[str, float],
            thresholds: Dict[str, float],
            context: str = "",
        ) -> str:
            return analyze_performance(metrics, thresholds, context).to_report()

        return [
            self._comment_tool(AgentRole.IMPROVEMENT),
            StructuredTool.from_function(
                coroutine=analyze,
                name="analyze_improvement",
                description="Classify the improvement by type and scope and label the issue",
                args_schema=ImprovementAnalysisInput,
            ),
            StructuredTool.from_function(
                coroutine=update_priority,
                name="update_priority",
                description="Set the issue priority from technical impact and risk",
                args_schema=ImprovementPriorityInput,
            ),
            StructuredTool.from_function(
                coroutine=performance,
                name="analyze_performance",
                description="Compare performance metrics with thresholds",
                args_schema=PerformanceInput,
            ),
            self._search_tool(),
        ]

"""Dispatch of a routed issue to the agent team.

The manager agent always runs first: it acknowledges the issue and, for
a rejected label, asks the reporter for a valid one. When the issue was
routed, the matching specialist runs next with its own toolkit and its
own Linear credentials. The text of both runs is combined into one
task result.
"""

import logging
from typing import Mapping, Optional

from src.copilot.agents.prompts import build_role_background, build_task_prompt
from src.copilot.agents.protocols import AgentResult, SearchProvider, TaskRunner
from src.copilot.agents.tools import IssueToolkit
from src.copilot.linear.client import LinearClient
from src.copilot.priority.engine import PriorityEngine
from src.copilot.routing.models import AgentRole, RoutingDecision
from src.copilot.webhook.models import LinearIssueEvent


logger = logging.getLogger(__name__)


DEFAULT_STEP_LIMIT = 5


class IssueDispatcher:
    """Runs the manager and the routed specialist for one issue.

    Attributes:
        runner: TaskRunner that executes each agent.
        clients: Linear client per agent role.
        search: Search backend shared by all toolkits.
        qa_search: Stack Overflow backend for the bug toolkit. Defaults
            to ``search``.
        engine: Priority engine used by the update_priority tools.
        step_limit: Maximum model turns per agent run.
    """

    def __init__(
        self,
        runner: TaskRunner,
        clients: Mapping[AgentRole, LinearClient],
        search: SearchProvider,
        qa_search: Optional[SearchProvider] = None,
        engine: Optional[PriorityEngine] = None,
        step_limit: int = DEFAULT_STEP_LIMIT,
    ):
        """Initialize the dispatcher.

        Raises:
            ValueError: If a role has no Linear client or step_limit < 1.
        """
        missing = [role.value for role in AgentRole if role not in clients]
        if missing:
            raise ValueError(f"No Linear client for roles: {', '.join(missing)}")
        if step_limit < 1:
            raise ValueError(f"step_limit must be positive, got {step_limit}")

        self.runner = runner
        self.clients = dict(clients)
        self.search = search
        self.qa_search = qa_search
        self.engine = engine or PriorityEngine()
        self.step_limit = step_limit

    def toolkit_for(self, role: AgentRole, event: LinearIssueEvent) -> IssueToolkit:
        client = self.clients[role]
        return IssueToolkit(
            issue_id=event.issue_id,
            comments=client,
            priorities=client,
            labels=client,
            assignments=client,
            search=self.search,
            qa_search=self.qa_search,
            issue_text=f"{event.title}\n\n{event.description}".strip(),
            engine=self.engine,
        )

    async def _run_role(
        self,
        role: AgentRole,
        prompt: str,
        event: LinearIssueEvent,
    ) -> AgentResult:
        logger.info(
            "Running agent",
            extra={"role": role.value, "issue_id": event.issue_id},
        )
        tools = self.toolkit_for(role, event).for_role(role)
        return await self.runner.run(
            prompt=prompt,
            tools=tools,
            step_limit=self.step_limit,
            background=build_role_background(role),
        )

    async def dispatch(
        self,
        event: LinearIssueEvent,
        decision: RoutingDecision,
    ) -> AgentResult:
        """Run the agent team for an issue.

        Args:
            event: The parsed issue event.
            decision: Routing decision for the issue's first label.

        Returns:
            AgentResult whose text joins the manager's and the
            specialist's answers.

        Raises:
            Exception: Any failure of an agent run propagates unchanged.
        """
        prompt = build_task_prompt(
            issue_id=event.issue_id,
            title=event.title,
            description=event.description,
            decision=decision,
        )

        results = [await self._run_role(AgentRole.MANAGER, prompt, event)]

        specialist = decision.agent_role
        if specialist is not None:
            results.append(await self._run_role(specialist, prompt, event))

        text = "\n\n".join(r.text for r in results if r.text)
        tool_calls = tuple(name for r in results for name in r.tool_calls)

        logger.info(
            "Dispatch completed",
            extra={
                "issue_id": event.issue_id,
                "specialist": specialist.value if specialist else None,
                "tool_calls": list(tool_calls),
            },
        )
        return AgentResult(
            text=text,
            steps=sum(r.steps for r in results),
            tool_calls=tool_calls,
        )

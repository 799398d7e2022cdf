"""LangChain tool-calling runner for the agent team.

Runs a chat model with a set of bound tools in a bounded loop: each turn
the model either answers (the run ends) or requests tool calls, whose
results are fed back as ToolMessages. The loop stops after ``step_limit``
model turns.

The model is reached through LangChain's ChatOpenAI client, so any
OpenAI-compatible endpoint (OpenAI, vLLM, a local gateway) works.

Source:
- src/copilot/agents/protocols.py (TaskRunner, AgentResult)
- src/copilot/config.py (llm_url, llm_model, llm_api_key)
"""

import logging
from typing import Any, List, Optional, Sequence

from langchain_core.messages import (
    BaseMessage,
    HumanMessage,
    SystemMessage,
    ToolMessage,
)
from langchain_core.tools import BaseTool
from langchain_openai import ChatOpenAI

from src.copilot.agents.protocols import AgentResult


logger = logging.getLogger(__name__)


def _message_text(message: BaseMessage) -> str:
    """Extract plain text from a message whose content may be a list of parts."""
    content = message.content
    if isinstance(content, str):
        return content

    parts = []
    for part in content:
        if isinstance(part, str):
            parts.append(part)
        elif isinstance(part, dict) and part.get("type") == "text":
            parts.append(str(part.get("text", "")))
    return "".join(parts)


class LangChainTaskRunner:
    """TaskRunner backed by a LangChain chat model.

    Attributes:
        llm_url: Base URL of the OpenAI-compatible endpoint.
        model_name: Model to use for inference.
        api_key: API key for the endpoint.
        timeout: Request timeout in seconds.
        temperature: Sampling temperature.

    Example:
        >>> runner = LangChainTaskRunner(
        ...     llm_url="https://api.openai.com/v1",
        ...     model_name="gpt-4",
        ...     api_key="sk-xxx",
        ... )
        >>> result = await runner.run(prompt, tools, step_limit=5, background=bg)
        >>> print(result.text)
    """

    def __init__(
        self,
        llm_url: str,
        model_name: str,
        api_key: Optional[str] = None,
        timeout: float = 60.0,
        temperature: float = 0.2,
        llm: Optional[Any] = None,
    ):
        """Initialize the runner.

        Args:
            llm_url: URL of the OpenAI-compatible endpoint.
            model_name: Name of the model to use.
            api_key: API key; endpoints that need none accept any value.
            timeout: Request timeout in seconds.
            temperature: Sampling temperature (lower = more deterministic).
            llm: Pre-built chat model, used by tests.
        """
        self.llm_url = llm_url
        self.model_name = model_name
        self.api_key = api_key
        self.timeout = timeout
        self.temperature = temperature
        self._llm = llm

    @property
    def llm(self) -> Any:
        """Get the chat model, creating it if necessary."""
        if self._llm is None:
            self._llm = ChatOpenAI(
                base_url=self.llm_url,
                model=self.model_name,
                temperature=self.temperature,
                timeout=self.timeout,
                api_key=self.api_key or "not-needed",
            )
        return self._llm

    async def run(
        self,
        prompt: str,
        tools: Sequence[BaseTool],
        step_limit: int,
        background: str,
    ) -> AgentResult:
        """Run the tool-calling loop until the model answers.

        Args:
            prompt: The task for the agent.
            tools: Tools the model may call.
            step_limit: Maximum number of model turns.
            background: System prompt for the agent's role.

        Returns:
            AgentResult with the final answer. If the step limit is hit
            first, the text of the last model turn is returned.

        Raises:
            ValueError: If step_limit is not positive.
            Exception: Errors from the model or from a tool propagate.
        """
        if step_limit < 1:
            raise ValueError(f"step_limit must be positive, got {step_limit}")

        tool_map = {tool.name: tool for tool in tools}
        model = self.llm.bind_tools(list(tools)) if tools else self.llm

        messages: List[BaseMessage] = [
            SystemMessage(content=background),
            HumanMessage(content=prompt),
        ]
        called: List[str] = []
        last_text = ""

        for step in range(1, step_limit + 1):
            response = await model.ainvoke(messages)
            messages.append(response)
            last_text = _message_text(response)

            tool_calls = getattr(response, "tool_calls", None) or []
            if not tool_calls:
                logger.info(
                    "Agent run completed",
                    extra={"steps": step, "tool_calls": called},
                )
                return AgentResult(text=last_text, steps=step, tool_calls=tuple(called))

            for call in tool_calls:
                messages.append(await self._invoke_tool(tool_map, call))
                called.append(call["name"])

        logger.warning(
            "Agent run hit step limit",
            extra={"step_limit": step_limit, "tool_calls": called},
        )
        return AgentResult(text=last_text, steps=step_limit, tool_calls=tuple(called))

    async def _invoke_tool(self, tool_map: dict, call: dict) -> ToolMessage:
        """Run one requested tool call and wrap its output."""
        name = call["name"]
        tool = tool_map.get(name)

        if tool is None:
            logger.warning("Model requested unknown tool", extra={"tool": name})
            return ToolMessage(
                content=f"Unknown tool: {name}",
                tool_call_id=call["id"],
            )

        logger.info("Invoking agent tool", extra={"tool": name})
        output = await tool.ainvoke(call.get("args") or {})
        return ToolMessage(content=str(output), tool_call_id=call["id"])


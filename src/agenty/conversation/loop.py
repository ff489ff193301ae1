"""
Agent: the tool-calling conversation driver.

One ``Agent`` owns one ``ConversationContext`` and advances it one
request/response round trip at a time with ``run_once``. Each response is
classified into exactly one of three branches (tool calls, refusal, message),
recorded into the context as an assistant message, and handed to the
matching continuation, which returns an ``AgentAction``:

- ``Continue()``: loop again.
- ``Unexpected(text)``: stop; the response was not what this mode wants.
- ``Out(value)``: stop with a result.

Two drivers are built on top of ``run_once``:

- ``run_until_tool`` stops when the model calls a target tool and returns its
  validated arguments without running it.
- ``run_until_text`` stops when the model answers with text (a refusal counts
  as text here).
"""

from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, TypeVar, Union

from agenty.config import DEFAULT_SYSTEM_PROMPT, LLMSettings
from agenty.conversation.errors import (
    RECOVERABLE_ERRORS,
    MaxIterationsExceeded,
    NoSuchTool,
    UnexpectedResponse,
    UnexpectedResponseShape,
)
from agenty.conversation.messages import AssistantMessage, ConversationContext, ToolCall
from agenty.conversation.providers import Choice, FinishReason, LLMProvider
from agenty.conversation.tools.base import Tool
from agenty.conversation.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Step outcomes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Continue:
    """Run another step."""


@dataclass(frozen=True)
class Unexpected:
    """Terminal: the model produced *text* where this mode did not expect it."""

    text: str


@dataclass(frozen=True)
class Out(Generic[T]):
    """Terminal: the loop produced *value*."""

    value: T


AgentAction = Union[Continue, Unexpected, Out[T]]

ToolCallsHandler = Callable[["Agent", list[ToolCall]], Awaitable[AgentAction[T]]]
TextHandler = Callable[["Agent", str], Awaitable[AgentAction[T]]]


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


class ResponseKind(enum.Enum):
    TOOL_CALLS = "tool_calls"
    REFUSAL = "refusal"
    MESSAGE = "message"


def classify_choice(choice: Choice) -> ResponseKind:
    """Decide which branch a completion choice belongs to.

    Checked in order, first match wins:

    1. tool calls: finish reason ``tool_calls`` or any tool call present;
    2. refusal: finish reason ``content_filter`` or refusal text present;
    3. message: finish reason ``stop``/``length`` or content present.

    Raises:
        UnexpectedResponseShape: If none of the above match.
    """
    if choice.finish_reason == FinishReason.TOOL_CALLS or choice.tool_calls:
        return ResponseKind.TOOL_CALLS
    if choice.finish_reason == FinishReason.CONTENT_FILTER or choice.refusal is not None:
        return ResponseKind.REFUSAL
    if (
        choice.finish_reason in (FinishReason.STOP, FinishReason.LENGTH)
        or choice.content is not None
    ):
        return ResponseKind.MESSAGE
    raise UnexpectedResponseShape(choice)


# ---------------------------------------------------------------------------
# Agent
# ---------------------------------------------------------------------------


class Agent:
    """Drives one linear conversation with an LLM and a set of tools.

    Typical usage::

        agent = Agent(tools=registry, user="Which file defines main()?")
        answer = await agent.run_until_text(provider)

    Attributes:
        tools: Registry advertised to and dispatched for the model. May be
            shared with other agents.
        context: This agent's conversation log. Nothing else should mutate it
            while a step is in flight.
        max_iterations: Step budget for each ``run_until_*`` call, or
            ``None`` for no limit.
    """

    def __init__(
        self,
        tools: ToolRegistry,
        user: str,
        system: str | None = None,
        max_iterations: int | None = None,
    ) -> None:
        self.tools = tools
        self.context = ConversationContext(system=system or DEFAULT_SYSTEM_PROMPT, user=user)
        self.max_iterations = max_iterations

    # ------------------------------------------------------------------
    # Single step
    # ------------------------------------------------------------------

    async def run_once(
        self,
        provider: LLMProvider,
        on_tool_calls: ToolCallsHandler[T],
        on_message: TextHandler[T],
        on_refusal: TextHandler[T],
        *,
        prefix: str | None = None,
        settings: LLMSettings | None = None,
    ) -> AgentAction[T]:
        """Run one request/response round trip.

        The response's first choice is classified, recorded into the context
        as an assistant message, and passed to exactly one continuation whose
        ``AgentAction`` is returned.

        Raises:
            UnexpectedResponseShape: If the response has no choices or the
                first choice matches no branch. No continuation runs.
            LLMError: Transport failures from *provider*, unchanged.
        """
        response = await provider.complete(
            self.context.full_context(),
            self.tools.get_definitions(),
            settings=settings or provider.default_settings,
            prefix=prefix,
        )
        if not response.choices:
            raise UnexpectedResponseShape(response)
        choice = response.choices[0]

        kind = classify_choice(choice)
        logger.debug("Response classified as %s (finish_reason=%s)", kind.value, choice.finish_reason)

        if kind is ResponseKind.TOOL_CALLS:
            self.context.append_message(AssistantMessage(tool_calls=tuple(choice.tool_calls)))
            return await on_tool_calls(self, list(choice.tool_calls))
        if kind is ResponseKind.REFUSAL:
            refusal = choice.refusal or ""
            self.context.append_message(AssistantMessage(refusal=refusal))
            return await on_refusal(self, refusal)
        content = choice.content or ""
        self.context.append_message(AssistantMessage(content=content))
        return await on_message(self, content)

    # ------------------------------------------------------------------
    # Tool execution
    # ------------------------------------------------------------------

    async def handle_tool_calls(self, tool_calls: list[ToolCall]) -> list[str]:
        """Execute *tool_calls* one after another, in the order given.

        Stops at the first failure; calls after it are never started.

        Returns:
            Each call's result text, in order.

        Raises:
            NoSuchTool: If a call names an unregistered tool.
            IncorrectToolCall: If a call's arguments fail validation.
            Exception: Whatever a tool raises from ``invoke``.
        """
        results: list[str] = []
        for call in tool_calls:
            result = await self.tools.invoke(call.name, call.arguments)
            if result is None:
                logger.warning("No such tool: %s, will try again", call.name)
                raise NoSuchTool(call.name)
            results.append(result)
        return results

    async def _resolve_tool_calls(self, tool_calls: list[ToolCall]) -> Continue:
        """Run *tool_calls* and feed the outcome back as a user message.

        Recoverable errors become a retry prompt; anything else propagates.
        """
        try:
            results = await self.handle_tool_calls(tool_calls)
        except RECOVERABLE_ERRORS as exc:
            self._report_tool_error(exc)
            return Continue()
        self.context.append_user("\n".join(results))
        return Continue()

    def _report_tool_error(self, exc: Exception) -> None:
        logger.warning("Error %s during tool call, retry...", exc)
        self.context.append_user(
            f"Your tool call failed: {exc}. Please correct the call and try again."
        )

    # ------------------------------------------------------------------
    # Loop drivers
    # ------------------------------------------------------------------

    async def _drive(self, step: Callable[[], Awaitable[AgentAction[T]]]) -> AgentAction[T]:
        started = time.monotonic()
        iteration = 0
        while True:
            if self.max_iterations is not None and iteration >= self.max_iterations:
                raise MaxIterationsExceeded(self.max_iterations)
            iteration += 1
            logger.debug("Agent step %d", iteration)
            action = await step()
            logger.debug("Agent action: %r", action)
            if not isinstance(action, Continue):
                logger.info(
                    "Agent finished after %d step(s) in %.3fs",
                    iteration,
                    time.monotonic() - started,
                )
                return action

    async def run_until_tool(
        self,
        provider: LLMProvider,
        target: type[Tool] | Tool,
        *,
        prefix: str | None = None,
        settings: LLMSettings | None = None,
    ) -> Any:
        """Loop until the model calls *target*, then return its arguments.

        The target call's raw arguments are validated into
        ``target.ARGUMENTS`` and returned; no tool in that batch is executed.
        Other tool calls are executed and their results fed back. Register
        *target* in ``self.tools`` so the model is told it exists.

        Args:
            provider: Completion backend.
            target: Tool class (or instance) whose call ends the loop.
            prefix: Log label passed to the provider.
            settings: Per-call override of the provider's default settings.

        Returns:
            An instance of ``target.ARGUMENTS``.

        Raises:
            UnexpectedResponse: If the model answers with text or a refusal.
            IncorrectToolCall: If the target call's arguments fail validation.
            MaxIterationsExceeded: If ``max_iterations`` steps pass first.
        """

        async def on_tool_calls(agent: Agent, tool_calls: list[ToolCall]) -> AgentAction[Any]:
            call = next((tc for tc in tool_calls if tc.name == target.NAME), None)
            if call is None:
                return await agent._resolve_tool_calls(tool_calls)
            return Out(target.parse_arguments(call.arguments))

        async def on_text(agent: Agent, text: str) -> AgentAction[Any]:
            return Unexpected(text)

        action = await self._drive(
            lambda: self.run_once(
                provider,
                on_tool_calls,
                on_text,
                on_text,
                prefix=prefix,
                settings=settings,
            )
        )
        if isinstance(action, Unexpected):
            raise UnexpectedResponse(action.text)
        return action.value

    async def run_until_text(
        self,
        provider: LLMProvider,
        *,
        prefix: str | None = None,
        settings: LLMSettings | None = None,
    ) -> str:
        """Loop, executing tool calls, until the model answers with text.

        A refusal also ends the loop and its text is returned as the result.

        Raises:
            MaxIterationsExceeded: If ``max_iterations`` steps pass first.
        """

        async def on_tool_calls(agent: Agent, tool_calls: list[ToolCall]) -> AgentAction[str]:
            return await agent._resolve_tool_calls(tool_calls)

        async def on_message(agent: Agent, text: str) -> AgentAction[str]:
            return Out(text)

        async def on_refusal(agent: Agent, text: str) -> AgentAction[str]:
            return Unexpected(text)

        action = await self._drive(
            lambda: self.run_once(
                provider,
                on_tool_calls,
                on_message,
                on_refusal,
                prefix=prefix,
                settings=settings,
            )
        )
        if isinstance(action, Unexpected):
            return action.text
        return action.value

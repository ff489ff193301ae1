"""
LLM provider abstractions for the agenty conversation package.

Defines the `LLMProvider` Protocol so the `Agent` can work with any
OpenAI-compatible backend (Ollama, OpenAI, LiteLLM proxy, etc.) without being
tied to a specific vendor or SDK.

The concrete implementation, `OpenAICompatibleProvider`, uses
`openai.AsyncOpenAI` and owns the per-request timeout and retry policy.

Also provides:
- The transport exception hierarchy (rooted at ``AgentyError``).
- ``UsageStats`` for token accounting of each round trip.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol, Sequence, runtime_checkable

from openai import (
    APIConnectionError,
    APIStatusError,
    APITimeoutError,
    AsyncOpenAI,
    RateLimitError,
)

from agenty.config import LLMSettings, Settings
from agenty.conversation.errors import AgentyError
from agenty.conversation.messages import Message, ToolCall

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Transport exception hierarchy
# ---------------------------------------------------------------------------


class LLMError(AgentyError):
    """Base exception for all LLM provider errors."""


class LLMRateLimitError(LLMError):
    """Raised when the LLM API returns a rate-limit (429) response."""


class LLMConnectionError(LLMError):
    """Raised when the LLM API endpoint cannot be reached."""


class LLMTimeoutError(LLMError):
    """Raised when a round trip exceeds ``llm_prompt_timeout``."""


class LLMAPIError(LLMError):
    """Raised for other LLM API errors (e.g., 5xx, authentication failures).

    Attributes:
        status_code: HTTP status code from the API, or ``None`` if unavailable.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def _is_retryable(exc: LLMError) -> bool:
    if isinstance(exc, (LLMRateLimitError, LLMConnectionError, LLMTimeoutError)):
        return True
    return isinstance(exc, LLMAPIError) and (exc.status_code or 0) >= 500


# ---------------------------------------------------------------------------
# Core data types
# ---------------------------------------------------------------------------


class FinishReason(str, enum.Enum):
    """Why the model stopped generating a choice."""

    STOP = "stop"
    LENGTH = "length"
    TOOL_CALLS = "tool_calls"
    CONTENT_FILTER = "content_filter"
    OTHER = "other"

    @classmethod
    def parse(cls, value: str | None) -> FinishReason | None:
        """Map a wire value to a member; unknown values become ``OTHER``."""
        if value is None:
            return None
        try:
            return cls(value)
        except ValueError:
            return cls.OTHER


@dataclass(frozen=True)
class UsageStats:
    """Token usage recorded for a single LLM completion call."""

    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


@dataclass(frozen=True)
class ToolDefinition:
    """Describes a callable tool available to the LLM.

    This mirrors the OpenAI function-calling tool definition format.

    Attributes:
        name: The tool's unique name (used by the LLM to invoke it).
        description: Human-readable description shown in the LLM's tool prompt.
        parameters: JSON Schema dict describing the tool's input parameters.
        strict: Ask the endpoint to enforce schema-conforming generation.
    """

    name: str
    description: str
    parameters: dict[str, Any] = field(default_factory=dict)
    strict: bool = False

    def to_openai_format(self) -> dict[str, Any]:
        """Serialise to OpenAI tool definition format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
                "strict": self.strict,
            },
        }


@dataclass
class Choice:
    """One completion choice, reduced to the signals the classifier reads.

    Attributes:
        finish_reason: Parsed finish reason, ``None`` if the endpoint sent none.
        content: Free text, if any.
        refusal: Refusal text, if any.
        tool_calls: Requested tool invocations (may be empty).
    """

    finish_reason: FinishReason | None = None
    content: str | None = None
    refusal: str | None = None
    tool_calls: list[ToolCall] = field(default_factory=list)


@dataclass
class CompletionResponse:
    """Result of a single LLM completion call.

    Attributes:
        choices: All choices returned; the agent only reads the first.
        usage: Token usage for this call, or ``None`` if unavailable.
    """

    choices: list[Choice]
    usage: UsageStats | None = None


# ---------------------------------------------------------------------------
# LLMProvider Protocol
# ---------------------------------------------------------------------------


@runtime_checkable
class LLMProvider(Protocol):
    """Protocol for LLM backends used by ``Agent``.

    Attributes:
        model: Model identifier sent with every request.
        default_settings: Settings used when a call supplies none.
    """

    model: str
    default_settings: LLMSettings

    async def complete(
        self,
        messages: Sequence[Message],
        tools: Sequence[ToolDefinition],
        *,
        settings: LLMSettings | None = None,
        prefix: str | None = None,
    ) -> CompletionResponse:
        """Send a completion request to the LLM.

        Args:
            messages: The full conversation context.
            tools: The tool definitions advertised for this turn.
            settings: Per-call override of ``default_settings``.
            prefix: Label attached to log lines for this request.

        Raises:
            LLMRateLimitError: If the API keeps returning 429 after retries.
            LLMConnectionError: If the API endpoint cannot be reached.
            LLMTimeoutError: If every attempt timed out.
            LLMAPIError: For other API-level failures.
        """
        ...


# ---------------------------------------------------------------------------
# Concrete provider implementation
# ---------------------------------------------------------------------------


class OpenAICompatibleProvider:
    """LLM provider backed by any OpenAI-compatible endpoint.

    Works with:
    - Ollama (``http://localhost:11434/v1``)
    - OpenAI (``https://api.openai.com/v1``)
    - Any model behind a LiteLLM proxy

    Retries are handled here rather than by the SDK, so the SDK client is
    created with ``max_retries=0``.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:11434/v1",
        model: str = "llama3.1:8b",
        api_key: str = "ollama",
        default_settings: LLMSettings | None = None,
    ) -> None:
        self.base_url = base_url
        self.model = model
        self.default_settings = default_settings or LLMSettings()
        self._client = AsyncOpenAI(base_url=base_url, api_key=api_key, max_retries=0)

    @classmethod
    def from_settings(cls, settings: Settings) -> OpenAICompatibleProvider:
        return cls(
            base_url=settings.base_url,
            model=settings.model,
            api_key=settings.api_key,
            default_settings=settings.llm,
        )

    def build_request(
        self,
        messages: Sequence[Message],
        tools: Sequence[ToolDefinition],
        settings: LLMSettings,
    ) -> dict[str, Any]:
        """Build the keyword arguments for ``chat.completions.create``."""
        kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": [message.to_openai() for message in messages],
            "temperature": settings.llm_temperature,
            "presence_penalty": settings.llm_presence_penalty,
            "max_completion_tokens": settings.llm_max_completion_tokens,
        }
        if tools:
            kwargs["tools"] = [t.to_openai_format() for t in tools]
            kwargs["tool_choice"] = settings.llm_tool_choice
        return kwargs

    async def complete(
        self,
        messages: Sequence[Message],
        tools: Sequence[ToolDefinition],
        *,
        settings: LLMSettings | None = None,
        prefix: str | None = None,
    ) -> CompletionResponse:
        """Call the LLM, retrying transient failures, and parse the response."""
        settings = settings or self.default_settings
        kwargs = self.build_request(messages, tools, settings)
        tag = prefix or self.model
        total_attempts = settings.llm_retry + 1

        logger.debug(
            "[%s] LLM request: messages=%d, tools=%d",
            tag,
            len(kwargs["messages"]),
            len(tools),
        )

        for attempt in range(1, total_attempts + 1):
            try:
                response = await self._create(kwargs, settings.llm_prompt_timeout)
                break
            except LLMError as exc:
                if not _is_retryable(exc) or attempt >= total_attempts:
                    raise
                delay = settings.llm_retry_backoff * attempt
                logger.warning(
                    "[%s] LLM attempt %d/%d failed (%s: %s); retrying in %.1fs",
                    tag,
                    attempt,
                    total_attempts,
                    type(exc).__name__,
                    exc,
                    delay,
                )
                await asyncio.sleep(delay)
        else:  # pragma: no cover
            raise RuntimeError("complete: retry loop exited unexpectedly")

        parsed = self._parse_response(response)
        logger.debug(
            "[%s] LLM response: choices=%d, finish_reason=%s, tokens=%s",
            tag,
            len(parsed.choices),
            parsed.choices[0].finish_reason if parsed.choices else None,
            parsed.usage.total_tokens if parsed.usage else "n/a",
        )
        return parsed

    async def _create(self, kwargs: dict[str, Any], timeout: float) -> Any:
        try:
            return await asyncio.wait_for(
                self._client.chat.completions.create(**kwargs), timeout=timeout
            )
        except (asyncio.TimeoutError, APITimeoutError) as exc:
            logger.error("LLM request timed out after %.1fs", timeout)
            raise LLMTimeoutError(f"LLM request timed out after {timeout}s") from exc
        except RateLimitError as exc:
            logger.warning("LLM rate limit exceeded: %s", exc)
            raise LLMRateLimitError(f"Rate limit exceeded: {exc}") from exc
        except APIConnectionError as exc:
            logger.error("LLM connection failed: %s", exc)
            raise LLMConnectionError(f"Could not connect to LLM endpoint: {exc}") from exc
        except APIStatusError as exc:
            logger.error("LLM API error %d: %s", exc.status_code, exc)
            raise LLMAPIError(
                f"LLM API returned status {exc.status_code}: {exc}",
                status_code=exc.status_code,
            ) from exc

    @staticmethod
    def _parse_response(response: Any) -> CompletionResponse:
        choices: list[Choice] = []
        for raw_choice in response.choices or []:
            message = raw_choice.message
            tool_calls: list[ToolCall] = []
            for tc in message.tool_calls or []:
                function = getattr(tc, "function", None)
                if function is None:
                    logger.warning("Ignoring non-function tool call %r", tc)
                    continue
                tool_calls.append(
                    ToolCall(id=tc.id, name=function.name, arguments=function.arguments)
                )
            choices.append(
                Choice(
                    finish_reason=FinishReason.parse(raw_choice.finish_reason),
                    content=message.content,
                    refusal=getattr(message, "refusal", None),
                    tool_calls=tool_calls,
                )
            )

        usage: UsageStats | None = None
        if response.usage is not None:
            usage = UsageStats(
                prompt_tokens=response.usage.prompt_tokens,
                completion_tokens=response.usage.completion_tokens,
                total_tokens=response.usage.total_tokens,
            )
        return CompletionResponse(choices=choices, usage=usage)

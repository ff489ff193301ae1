"""Unit tests for agenty.conversation.providers."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from openai import APIConnectionError as OpenAIConnectionError
from openai import APIStatusError
from openai import RateLimitError as OpenAIRateLimitError

from agenty.config import LLMSettings, Settings
from agenty.conversation.errors import AgentyError
from agenty.conversation.messages import SystemMessage, ToolCall, UserMessage
from agenty.conversation.providers import (
    FinishReason,
    LLMAPIError,
    LLMConnectionError,
    LLMError,
    LLMProvider,
    LLMRateLimitError,
    LLMTimeoutError,
    OpenAICompatibleProvider,
    ToolDefinition,
)

_MESSAGES = [SystemMessage("sys"), UserMessage("Hi")]

_WEATHER = ToolDefinition(
    name="get_weather",
    description="Retrieve current weather conditions.",
    parameters={
        "type": "object",
        "properties": {"location": {"type": "string"}},
        "required": ["location"],
    },
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _settings(**overrides) -> LLMSettings:
    """Settings with retries that do not sleep."""
    return LLMSettings(**{"llm_retry_backoff": 0.0, **overrides})


def _raw_choice(
    finish_reason: str | None = "stop",
    content: str | None = "Hi there",
    refusal: str | None = None,
    tool_calls: list | None = None,
) -> MagicMock:
    choice = MagicMock()
    choice.finish_reason = finish_reason
    choice.message.content = content
    choice.message.refusal = refusal
    choice.message.tool_calls = tool_calls
    return choice


def _raw_tool_call(id_: str, name: str, arguments: str) -> MagicMock:
    tc = MagicMock()
    tc.id = id_
    tc.function.name = name
    tc.function.arguments = arguments
    return tc


def _raw_response(*choices: MagicMock, usage: MagicMock | None = None) -> MagicMock:
    response = MagicMock()
    response.choices = list(choices)
    response.usage = usage
    return response


def _provider_with(create: AsyncMock, **kwargs) -> OpenAICompatibleProvider:
    with patch("agenty.conversation.providers.AsyncOpenAI") as mock_cls:
        mock_client = MagicMock()
        mock_client.chat.completions.create = create
        mock_cls.return_value = mock_client
        return OpenAICompatibleProvider(**kwargs)


def _status_error(status: int) -> APIStatusError:
    response = MagicMock()
    response.status_code = status
    return APIStatusError("error", response=response, body={})


# ---------------------------------------------------------------------------
# Data types
# ---------------------------------------------------------------------------


def test_tool_definition_to_openai_format() -> None:
    fmt = _WEATHER.to_openai_format()

    assert fmt["type"] == "function"
    assert fmt["function"]["name"] == "get_weather"
    assert fmt["function"]["description"] == "Retrieve current weather conditions."
    assert fmt["function"]["parameters"]["properties"]["location"]["type"] == "string"
    assert fmt["function"]["strict"] is False


def test_tool_definition_strict_flag() -> None:
    tool = ToolDefinition(name="get_time", description="Get current time.", strict=True)
    fmt = tool.to_openai_format()
    assert fmt["function"]["strict"] is True
    assert fmt["function"]["parameters"] == {}


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("stop", FinishReason.STOP),
        ("length", FinishReason.LENGTH),
        ("tool_calls", FinishReason.TOOL_CALLS),
        ("content_filter", FinishReason.CONTENT_FILTER),
        ("function_call", FinishReason.OTHER),
        (None, None),
    ],
)
def test_finish_reason_parse(raw: str | None, expected: FinishReason | None) -> None:
    assert FinishReason.parse(raw) is expected


def test_error_hierarchy() -> None:
    for cls in (LLMRateLimitError, LLMConnectionError, LLMTimeoutError, LLMAPIError):
        assert issubclass(cls, LLMError)
    assert issubclass(LLMError, AgentyError)
    assert LLMAPIError("unknown error").status_code is None


# ---------------------------------------------------------------------------
# OpenAICompatibleProvider: construction and request building
# ---------------------------------------------------------------------------


def test_provider_implements_protocol() -> None:
    provider = _provider_with(AsyncMock())
    assert isinstance(provider, LLMProvider)


def test_provider_disables_sdk_retries() -> None:
    with patch("agenty.conversation.providers.AsyncOpenAI") as mock_cls:
        provider = OpenAICompatibleProvider(
            base_url="http://localhost:11434/v1", model="llama3.1:8b", api_key="ollama"
        )

    assert provider.model == "llama3.1:8b"
    mock_cls.assert_called_once_with(
        base_url="http://localhost:11434/v1", api_key="ollama", max_retries=0
    )


def test_from_settings() -> None:
    settings = Settings(base_url="http://llm:8000/v1", model="gpt-4o-mini", api_key="sk-test")
    with patch("agenty.conversation.providers.AsyncOpenAI"):
        provider = OpenAICompatibleProvider.from_settings(settings)
    assert provider.base_url == "http://llm:8000/v1"
    assert provider.model == "gpt-4o-mini"
    assert provider.default_settings == settings.llm


def test_build_request_includes_generation_settings() -> None:
    provider = _provider_with(AsyncMock(), model="gpt-4o")
    settings = LLMSettings(
        llm_temperature=0.2,
        llm_presence_penalty=0.5,
        llm_max_completion_tokens=256,
        llm_tool_choice="required",
    )

    request = provider.build_request(_MESSAGES, [_WEATHER], settings)

    assert request["model"] == "gpt-4o"
    assert request["messages"] == [
        {"role": "system", "content": "sys"},
        {"role": "user", "content": "Hi"},
    ]
    assert request["temperature"] == 0.2
    assert request["presence_penalty"] == 0.5
    assert request["max_completion_tokens"] == 256
    assert request["tool_choice"] == "required"
    assert request["tools"] == [_WEATHER.to_openai_format()]


def test_build_request_omits_tools_when_none() -> None:
    provider = _provider_with(AsyncMock())
    request = provider.build_request(_MESSAGES, [], LLMSettings())
    assert "tools" not in request
    assert "tool_choice" not in request


# ---------------------------------------------------------------------------
# OpenAICompatibleProvider: response parsing
# ---------------------------------------------------------------------------


@pytest.mark.anyio
async def test_parses_text_choice_and_usage() -> None:
    usage = MagicMock(prompt_tokens=80, completion_tokens=20, total_tokens=100)
    create = AsyncMock(return_value=_raw_response(_raw_choice(content="42"), usage=usage))
    provider = _provider_with(create)

    result = await provider.complete(_MESSAGES, [])

    choice = result.choices[0]
    assert choice.finish_reason is FinishReason.STOP
    assert choice.content == "42"
    assert choice.refusal is None
    assert choice.tool_calls == []
    assert result.usage is not None
    assert result.usage.total_tokens == 100


@pytest.mark.anyio
async def test_keeps_raw_tool_call_arguments() -> None:
    raw = _raw_choice(
        finish_reason="tool_calls",
        content=None,
        tool_calls=[_raw_tool_call("call_1", "get_weather", '{"location": "Kansas"')],
    )
    provider = _provider_with(AsyncMock(return_value=_raw_response(raw)))

    result = await provider.complete(_MESSAGES, [_WEATHER])

    assert result.choices[0].tool_calls == [
        ToolCall(id="call_1", name="get_weather", arguments='{"location": "Kansas"')
    ]
    assert result.usage is None


@pytest.mark.anyio
async def test_missing_finish_reason_is_not_defaulted() -> None:
    raw = _raw_choice(finish_reason=None, content=None, refusal="no")
    provider = _provider_with(AsyncMock(return_value=_raw_response(raw)))

    result = await provider.complete(_MESSAGES, [])

    assert result.choices[0].finish_reason is None
    assert result.choices[0].refusal == "no"


@pytest.mark.anyio
async def test_per_call_settings_override_defaults() -> None:
    create = AsyncMock(return_value=_raw_response(_raw_choice()))
    provider = _provider_with(create, default_settings=LLMSettings(llm_temperature=0.9))

    await provider.complete(_MESSAGES, [], settings=_settings(llm_temperature=0.1))

    assert create.call_args.kwargs["temperature"] == 0.1


# ---------------------------------------------------------------------------
# OpenAICompatibleProvider: error handling and retry
# ---------------------------------------------------------------------------


@pytest.mark.anyio
async def test_rate_limit_retried_then_raised() -> None:
    create = AsyncMock(
        side_effect=OpenAIRateLimitError(
            "rate limit", response=MagicMock(status_code=429), body={}
        )
    )
    provider = _provider_with(create)

    with pytest.raises(LLMRateLimitError):
        await provider.complete(_MESSAGES, [], settings=_settings(llm_retry=2))

    assert create.await_count == 3


@pytest.mark.anyio
async def test_connection_error_recovers_on_retry() -> None:
    create = AsyncMock(
        side_effect=[
            OpenAIConnectionError(request=MagicMock()),
            _raw_response(_raw_choice(content="back online")),
        ]
    )
    provider = _provider_with(create)

    result = await provider.complete(_MESSAGES, [], settings=_settings(llm_retry=1))

    assert result.choices[0].content == "back online"
    assert create.await_count == 2


@pytest.mark.anyio
async def test_zero_retries_is_single_attempt() -> None:
    create = AsyncMock(side_effect=OpenAIConnectionError(request=MagicMock()))
    provider = _provider_with(create)

    with pytest.raises(LLMConnectionError):
        await provider.complete(_MESSAGES, [], settings=_settings(llm_retry=0))

    assert create.await_count == 1


@pytest.mark.anyio
async def test_client_error_not_retried() -> None:
    create = AsyncMock(side_effect=_status_error(400))
    provider = _provider_with(create)

    with pytest.raises(LLMAPIError) as exc_info:
        await provider.complete(_MESSAGES, [], settings=_settings(llm_retry=3))

    assert exc_info.value.status_code == 400
    assert create.await_count == 1


@pytest.mark.anyio
async def test_server_error_retried() -> None:
    create = AsyncMock(side_effect=_status_error(503))
    provider = _provider_with(create)

    with pytest.raises(LLMAPIError) as exc_info:
        await provider.complete(_MESSAGES, [], settings=_settings(llm_retry=1))

    assert exc_info.value.status_code == 503
    assert create.await_count == 2


@pytest.mark.anyio
async def test_timeout_raises_llm_timeout_error() -> None:
    async def _hang(**kwargs):
        await asyncio.sleep(999)

    provider = _provider_with(AsyncMock(side_effect=_hang))

    with pytest.raises(LLMTimeoutError):
        await provider.complete(
            _MESSAGES, [], settings=_settings(llm_prompt_timeout=0.01, llm_retry=0)
        )

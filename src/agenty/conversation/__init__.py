"""
agenty conversation package.

Implements the tool-calling conversation driver: the conversation context,
the tool registry, the response classifier and the two loop drivers
(``Agent.run_until_tool`` and ``Agent.run_until_text``), talking to any
OpenAI-compatible endpoint through ``openai.AsyncOpenAI``.
"""

from agenty.conversation.errors import (
    AgentyError,
    IncorrectToolCall,
    MaxIterationsExceeded,
    NoSuchTool,
    UnexpectedResponse,
    UnexpectedResponseShape,
)
from agenty.conversation.loop import (
    Agent,
    AgentAction,
    Continue,
    Out,
    ResponseKind,
    Unexpected,
    classify_choice,
)
from agenty.conversation.messages import (
    AssistantMessage,
    ConversationContext,
    Message,
    SystemMessage,
    ToolCall,
    ToolMessage,
    UserMessage,
)
from agenty.conversation.providers import (
    Choice,
    CompletionResponse,
    FinishReason,
    LLMAPIError,
    LLMConnectionError,
    LLMError,
    LLMProvider,
    LLMRateLimitError,
    LLMTimeoutError,
    OpenAICompatibleProvider,
    ToolDefinition,
    UsageStats,
)

__all__ = [
    "Agent",
    "AgentAction",
    "AgentyError",
    "AssistantMessage",
    "Choice",
    "CompletionResponse",
    "Continue",
    "ConversationContext",
    "FinishReason",
    "IncorrectToolCall",
    "LLMAPIError",
    "LLMConnectionError",
    "LLMError",
    "LLMProvider",
    "LLMRateLimitError",
    "LLMTimeoutError",
    "MaxIterationsExceeded",
    "Message",
    "NoSuchTool",
    "OpenAICompatibleProvider",
    "Out",
    "ResponseKind",
    "SystemMessage",
    "ToolCall",
    "ToolDefinition",
    "ToolMessage",
    "Unexpected",
    "UnexpectedResponse",
    "UnexpectedResponseShape",
    "UsageStats",
    "UserMessage",
    "classify_choice",
]

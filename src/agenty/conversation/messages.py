"""
Message model and conversation context for the agenty driver.

A ``ConversationContext`` is owned by exactly one ``Agent``. It holds a fixed
preamble (system prompt + initial user prompt) and an ordered list of the
messages appended since. The preamble is rebuilt on every
``full_context()`` call and can never be popped by ``revert_last()``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Union

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolCall:
    """A tool invocation requested by the LLM.

    Attributes:
        id: Unique call ID returned by the LLM (used to correlate the result).
        name: Name of the tool to invoke.
        arguments: Raw JSON argument text, exactly as the model produced it.
            Validation happens at dispatch time against the tool's schema.
    """

    id: str
    name: str
    arguments: str

    def to_openai(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }


@dataclass(frozen=True)
class SystemMessage:
    content: str

    def to_openai(self) -> dict[str, Any]:
        return {"role": "system", "content": self.content}


@dataclass(frozen=True)
class UserMessage:
    content: str

    def to_openai(self) -> dict[str, Any]:
        return {"role": "user", "content": self.content}


@dataclass(frozen=True)
class AssistantMessage:
    """An assistant turn recorded into the context.

    Exactly one of the payload fields is meaningful, depending on which
    classification branch produced the message.

    Attributes:
        content: Free text reply.
        tool_calls: Tool calls requested by the model.
        refusal: Refusal text.
    """

    content: str | None = None
    tool_calls: tuple[ToolCall, ...] = ()
    refusal: str | None = None

    def to_openai(self) -> dict[str, Any]:
        message: dict[str, Any] = {"role": "assistant"}
        if self.content is not None:
            message["content"] = self.content
        if self.tool_calls:
            message["tool_calls"] = [tc.to_openai() for tc in self.tool_calls]
        if self.refusal is not None:
            message["refusal"] = self.refusal
        return message


@dataclass(frozen=True)
class ToolMessage:
    """The result of one tool call, correlated by ``tool_call_id``."""

    content: str
    tool_call_id: str

    def to_openai(self) -> dict[str, Any]:
        return {
            "role": "tool",
            "tool_call_id": self.tool_call_id,
            "content": self.content,
        }


Message = Union[SystemMessage, UserMessage, AssistantMessage, ToolMessage]


@dataclass
class ConversationContext:
    """Fixed system/user preamble followed by an append-only message log.

    Attributes:
        system: System prompt text, sent first on every turn.
        user: Initial user prompt text, sent second on every turn.
        messages: Messages appended after the preamble, oldest first.
    """

    system: str
    user: str
    messages: list[Message] = field(default_factory=list)

    def full_context(self) -> list[Message]:
        """Return ``[system, user, *messages]`` as a new list."""
        return [SystemMessage(self.system), UserMessage(self.user), *self.messages]

    def append_user(self, text: str) -> None:
        self.append_message(UserMessage(text))

    def append_message(self, message: Message) -> None:
        self.messages.append(message)

    def revert_last(self) -> Message | None:
        """Remove and return the most recently appended message.

        Returns ``None`` without touching anything when only the preamble is
        present.
        """
        if not self.messages:
            logger.debug("revert_last called on an empty context; nothing to remove")
            return None
        return self.messages.pop()

    def to_openai(self) -> list[dict[str, Any]]:
        """Serialise the full context to OpenAI chat message dicts."""
        return [message.to_openai() for message in self.full_context()]

    def __len__(self) -> int:
        return len(self.messages)

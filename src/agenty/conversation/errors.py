"""
Error taxonomy for the agenty conversation package.

Two groups matter to the loop drivers:

- *Conversation-recoverable* errors (``NoSuchTool``, ``IncorrectToolCall``)
  are caught by ``Agent.run_until_tool`` / ``Agent.run_until_text``, reported
  back to the model as a user message, and the loop continues.
- Everything else (``UnexpectedResponseShape``, transport errors from
  ``agenty.conversation.providers``, a tool's own exceptions) aborts the
  loop and reaches the caller unchanged.
"""

from __future__ import annotations

import json
from typing import Any


class AgentyError(Exception):
    """Base exception for all agenty errors."""


class IncorrectToolCall(AgentyError):
    """Raised when a tool call's raw arguments fail schema validation.

    Attributes:
        schema: JSON Schema of the tool's argument model.
        arguments: The raw argument text produced by the model.
    """

    def __init__(self, schema: dict[str, Any], arguments: str) -> None:
        self.schema = schema
        self.arguments = arguments
        super().__init__(
            f"incorrect tool call, schema: {json.dumps(schema)}, args: {arguments}"
        )


class NoSuchTool(AgentyError):
    """Raised when the model requests a tool name that is not registered."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"No such tool: {name!r}")


class UnexpectedResponseShape(AgentyError):
    """Raised when a completion choice matches no classification branch.

    Attributes:
        choice: The offending choice, kept for diagnostics.
    """

    def __init__(self, choice: Any) -> None:
        self.choice = choice
        super().__init__(f"Not supported choice: {choice!r}")


class UnexpectedResponse(AgentyError):
    """Raised by ``run_until_tool`` when the model answers with text instead.

    Attributes:
        text: The message or refusal text the model produced.
    """

    def __init__(self, text: str) -> None:
        self.text = text
        super().__init__(f"unexpected llm response: {text}")


class MaxIterationsExceeded(AgentyError):
    """Raised when a loop driver runs out of its step budget."""

    def __init__(self, max_iterations: int) -> None:
        self.max_iterations = max_iterations
        super().__init__(
            f"Agent exceeded max_iterations={max_iterations} "
            "without reaching a terminal response."
        )


# Errors the loop drivers turn into a retry prompt instead of aborting.
RECOVERABLE_ERRORS: tuple[type[AgentyError], ...] = (NoSuchTool, IncorrectToolCall)

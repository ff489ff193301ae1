"""
The ``Tool`` contract shared by every capability the agent can call.

A tool pairs an argument model (a pydantic ``BaseModel`` subclass) with an
async ``invoke`` coroutine. The registry only ever sees the uniform surface
(``NAME``, ``definition()``, ``call(raw_json)``), so tools with unrelated
argument shapes live side by side in one ``ToolRegistry``.

Tools should report expected problems (a missing file, a bad pattern) by
returning descriptive text from ``invoke`` rather than raising; the model
then sees the problem as conversation content and can correct itself.
Exceptions raised from ``invoke`` abort the agent loop.

Example::

    class EchoArgs(BaseModel):
        msg: str

    class EchoTool(Tool):
        NAME = "echo"
        DESCRIPTION = "Echo the message back."
        ARGUMENTS = EchoArgs

        async def invoke(self, arguments: EchoArgs) -> str:
            return arguments.msg
"""

from __future__ import annotations

import abc
import logging
from typing import Any, ClassVar

from pydantic import BaseModel, ValidationError

from agenty.conversation.errors import IncorrectToolCall
from agenty.conversation.providers import ToolDefinition

logger = logging.getLogger(__name__)


class Tool(abc.ABC):
    """Base class for tools callable by the LLM.

    Attributes:
        NAME: Name unique within a registry.
        DESCRIPTION: Human-readable description advertised to the model.
        ARGUMENTS: Pydantic model describing (and validating) the arguments.
        STRICT: Whether the endpoint should enforce schema-conforming output.
    """

    NAME: ClassVar[str]
    DESCRIPTION: ClassVar[str | None] = None
    ARGUMENTS: ClassVar[type[BaseModel]]
    STRICT: ClassVar[bool] = False

    @classmethod
    def schema(cls) -> dict[str, Any]:
        """JSON Schema of ``ARGUMENTS``."""
        return cls.ARGUMENTS.model_json_schema()

    @classmethod
    def parse_arguments(cls, arguments: str) -> BaseModel:
        """Validate raw JSON text into an ``ARGUMENTS`` instance.

        Raises:
            IncorrectToolCall: If the text is not valid JSON or does not fit
                the schema.
        """
        try:
            return cls.ARGUMENTS.model_validate_json(arguments)
        except ValidationError as exc:
            logger.debug("Tool %r rejected arguments %r: %s", cls.NAME, arguments, exc)
            raise IncorrectToolCall(cls.schema(), arguments) from exc

    @classmethod
    def definition(cls) -> ToolDefinition:
        return ToolDefinition(
            name=cls.NAME,
            description=cls.DESCRIPTION or "",
            parameters=cls.schema(),
            strict=cls.STRICT,
        )

    async def call(self, arguments: str) -> str:
        """Validate *arguments* and run the tool."""
        return await self.invoke(self.parse_arguments(arguments))

    @abc.abstractmethod
    async def invoke(self, arguments: Any) -> str:
        """Execute the tool with validated arguments and return result text."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.NAME!r})"

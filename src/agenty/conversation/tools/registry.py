"""
Tool registry for the agenty driver.

Provides ``ToolRegistry``, a ``name -> Tool`` mapping that advertises every
registered tool's definition and dispatches raw JSON arguments by name.

Typical usage::

    from pathlib import Path

    from agenty.conversation.tools import ReadFileTool, ToolRegistry

    registry = ToolRegistry()
    registry.register(ReadFileTool(Path("/srv/project")))

    agent = Agent(tools=registry, user="Summarise README.md")
    summary = await agent.run_until_text(provider=provider)

Registries hold no per-conversation state, so one instance may be shared by
any number of agents.
"""

from __future__ import annotations

import logging

from agenty.conversation.providers import ToolDefinition
from agenty.conversation.tools.base import Tool

logger = logging.getLogger(__name__)


class ToolRegistry:
    """Registry mapping tool names to ``Tool`` instances.

    Use ``get_definitions()`` to obtain the ``ToolDefinition`` list advertised
    on every turn, and ``invoke()`` to execute a call by name.
    """

    def __init__(self, tools: list[Tool] | None = None) -> None:
        self._tools: dict[str, Tool] = {}
        for tool in tools or []:
            self.register(tool)

    def register(self, tool: Tool) -> None:
        """Register *tool* under ``tool.NAME``.

        A later registration with the same name replaces the earlier one.
        """
        if tool.NAME in self._tools:
            logger.warning(
                "Tool %r is already registered; replacing %r with %r",
                tool.NAME,
                self._tools[tool.NAME],
                tool,
            )
        self._tools[tool.NAME] = tool
        logger.debug("Registered tool: %r", tool.NAME)

    def get_definitions(self) -> list[ToolDefinition]:
        """Return all registered ``ToolDefinition`` objects (insertion order)."""
        return [tool.definition() for tool in self._tools.values()]

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    async def invoke(self, name: str, arguments: str) -> str | None:
        """Dispatch a tool call by name.

        Args:
            name: Tool name requested by the model.
            arguments: Raw JSON argument text.

        Returns:
            The tool's result text, or ``None`` if *name* is not registered.

        Raises:
            IncorrectToolCall: If *arguments* do not fit the tool's schema.
            Exception: Whatever the tool itself raises.
        """
        tool = self._tools.get(name)
        if tool is None:
            return None
        logger.debug("Invoking tool %s with arguments %s", name, arguments)
        return await tool.call(arguments)

    def __len__(self) -> int:
        """Return the number of registered tools."""
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        """Return True if *name* is a registered tool."""
        return name in self._tools

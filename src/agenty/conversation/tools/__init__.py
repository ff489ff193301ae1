"""
Tools for the agenty driver.

Each tool subclasses ``Tool``: a name, a description, a pydantic argument
model and an async ``invoke``. The ``ToolRegistry`` advertises and dispatches
them by name.

Quick-start example::

    from pathlib import Path

    from agenty.conversation.tools import GrepTool, ReadFileTool, ToolRegistry

    root = Path("/srv/project")
    registry = ToolRegistry([ReadFileTool(root), GrepTool(root)])
"""

from agenty.conversation.tools.base import Tool
from agenty.conversation.tools.file import FindFileTool, ListDirectoryTool, ReadFileTool
from agenty.conversation.tools.grep import GrepTool
from agenty.conversation.tools.registry import ToolRegistry

__all__ = [
    "FindFileTool",
    "GrepTool",
    "ListDirectoryTool",
    "ReadFileTool",
    "Tool",
    "ToolRegistry",
]

#!/usr/bin/env python3
"""
Example: Using the agenty Agent Directly

Points an agent at a directory with the built-in file tools, asks a question,
and prints the answer. A second agent then uses ``run_until_tool`` to collect
a structured verdict instead of free text.

Prerequisites:
    - An OpenAI-compatible endpoint (Ollama by default, see ``AGENTY_*``
      environment variables in ``agenty.config``)

Usage:
    python demos/direct_agent.py [directory]
"""

import asyncio
import logging
import sys
from pathlib import Path

from pydantic import BaseModel, Field

from agenty.config import configure_logging, get_settings
from agenty.conversation import Agent, OpenAICompatibleProvider
from agenty.conversation.tools import (
    FindFileTool,
    GrepTool,
    ListDirectoryTool,
    ReadFileTool,
    Tool,
    ToolRegistry,
)

logger = logging.getLogger(__name__)


class VerdictArgs(BaseModel):
    has_tests: bool = Field(description="Whether the project contains automated tests.")
    reason: str = Field(description="One sentence explaining the verdict.")


class VerdictTool(Tool):
    NAME = "submit_verdict"
    DESCRIPTION = "Submit the final verdict once you are confident."
    ARGUMENTS = VerdictArgs

    async def invoke(self, arguments: VerdictArgs) -> str:
        return "Verdict recorded."


async def main(root: Path) -> None:
    """Demonstrate both loop drivers against one shared registry."""
    settings = get_settings()
    configure_logging(settings.log_level)

    provider = OpenAICompatibleProvider.from_settings(settings)
    registry = ToolRegistry(
        [ReadFileTool(root), ListDirectoryTool(root), FindFileTool(root), GrepTool(root)]
    )
    max_iterations = settings.max_iterations or None

    print("\n" + "=" * 60)
    agent = Agent(
        tools=registry,
        user="What does this project do? Answer in two sentences.",
        system=settings.system_prompt,
        max_iterations=max_iterations,
    )
    answer = await agent.run_until_text(provider, prefix="summary")
    print(f"Agent: {answer}")
    print("-" * 60)

    registry.register(VerdictTool())
    judge = Agent(
        tools=registry,
        user="Does this project have automated tests? Call submit_verdict when done.",
        system=settings.system_prompt,
        max_iterations=max_iterations,
    )
    verdict = await judge.run_until_tool(provider, VerdictTool, prefix="verdict")
    print(f"has_tests={verdict.has_tests}: {verdict.reason}")
    logger.debug("Judge context holds %d message(s)", len(judge.context))


if __name__ == "__main__":
    asyncio.run(main(Path(sys.argv[1] if len(sys.argv) > 1 else ".")))

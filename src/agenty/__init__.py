"""agenty: drive an LLM through tool calls until it calls a target tool or answers."""

from agenty.config import LLMSettings, Settings, get_settings
from agenty.conversation import Agent, OpenAICompatibleProvider
from agenty.conversation.tools import ToolRegistry

__all__ = [
    "Agent",
    "LLMSettings",
    "OpenAICompatibleProvider",
    "Settings",
    "ToolRegistry",
    "get_settings",
]

"""
Configuration management for agenty.

Both settings classes load from ``AGENTY_``-prefixed environment variables
(and an optional ``.env`` file), so a driver can be retargeted at another
endpoint or model without code changes.
"""

import logging
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SYSTEM_PROMPT = "You are an expert agent that calls tool to complete your task."


class LLMSettings(BaseSettings):
    """Generation settings applied to one completion call.

    A provider holds one instance as its default; callers may pass another
    instance to override it for a single ``run_*`` call. Instances are
    frozen so a call never observes a settings change half-way through.
    """

    llm_temperature: float = 0.7
    llm_presence_penalty: float = 0.0
    llm_max_completion_tokens: int = 4096
    llm_tool_choice: Literal["auto", "none", "required"] = "auto"

    # Seconds allowed for one round trip to the completion endpoint.
    llm_prompt_timeout: float = 120.0
    # Additional attempts after a transient transport failure.
    llm_retry: int = Field(default=3, ge=0)
    llm_retry_backoff: float = Field(default=1.0, ge=0.0)

    model_config = SettingsConfigDict(
        env_prefix="AGENTY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Completion endpoint
    base_url: str = "http://localhost:11434/v1"
    model: str = "llama3.1:8b"
    api_key: str = "ollama"

    # Agent
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    max_iterations: int = 0  # 0 = unbounded

    # Logging
    log_level: str = "INFO"

    llm: LLMSettings = Field(default_factory=LLMSettings)

    model_config = SettingsConfigDict(
        env_prefix="AGENTY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


def get_settings() -> Settings:
    """Get the application settings instance."""
    return Settings()


def configure_logging(level: str | int = "INFO") -> None:
    """Configure root logging with the project's standard format."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

"""
Sandloop Model Client Base

Abstract interface for the language-model provider consumed by the
agent controller. Providers translate the shared conversation model
and tool schemas into their wire format and parse tool calls back.

Key design decisions:
- Async-first (all providers are async)
- Retry with exponential backoff built into the base class
- Provider-agnostic response model (ModelResponse)
- Exhausted retries surface as ModelClientError
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any

from pydantic import BaseModel, Field

from sandloop.core.models import ConversationMessage, ToolCallRequest, ToolSchema
from sandloop.exceptions import ModelClientError
from sandloop.logging import get_logger

logger = get_logger("sandloop.providers")


class ModelResponse(BaseModel):
    """Unified response from any provider: optional text plus tool calls."""

    content: str | None = None
    tool_calls: list[ToolCallRequest] = Field(default_factory=list)
    model: str = ""
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)


class ProviderConfig(BaseModel):
    """Configuration for a model provider."""

    api_key: str | None = None
    model: str = ""
    base_url: str | None = None
    max_retries: int = Field(default=3, ge=1, le=10)
    timeout_seconds: float = 60.0
    retry_base_delay: float = 1.0  # exponential backoff base (1s, 2s, 4s)
    max_tokens: int = 4096
    temperature: float | None = 0.1


class ModelClient(ABC):
    """Abstract base class for model clients.

    Subclasses implement _create_message_impl(). The base class wraps
    it with retry logic and converts final failures to ModelClientError.
    """

    def __init__(self, config: ProviderConfig | None = None):
        self._config = config or ProviderConfig()

    @property
    def name(self) -> str:
        """Human-readable provider name."""
        return self.__class__.__name__

    @property
    def model(self) -> str:
        return self._config.model

    @abstractmethod
    async def _create_message_impl(
        self,
        messages: Sequence[ConversationMessage],
        tools: Sequence[ToolSchema],
        tool_choice: str,
    ) -> ModelResponse:
        """Provider-specific request. Raise on any provider failure."""
        ...

    async def create_message(
        self,
        messages: Sequence[ConversationMessage],
        tools: Sequence[ToolSchema] = (),
        tool_choice: str = "auto",
    ) -> ModelResponse:
        """Send the full history and tool offer, retrying with backoff.

        Raises:
            ModelClientError: after max_retries failed attempts.
        """
        last_error: Exception | None = None
        for attempt in range(self._config.max_retries):
            try:
                return await self._create_message_impl(messages, tools, tool_choice)
            except Exception as e:
                last_error = e
                logger.warning(
                    f"{self.name} attempt {attempt + 1}/{self._config.max_retries} failed: {type(e).__name__}: {e}"
                )
                if attempt < self._config.max_retries - 1:
                    delay = self._config.retry_base_delay * (2 ** attempt)
                    await asyncio.sleep(delay)

        raise ModelClientError(
            self.name,
            f"failed after {self._config.max_retries} attempts: {last_error}",
            details={"attempts": self._config.max_retries},
        ) from last_error


def summarize_arguments(arguments: dict[str, Any]) -> str:
    """Create a brief summary of tool arguments for logging/display."""
    if not arguments:
        return ""
    parts = []
    for k, v in list(arguments.items())[:3]:
        val_str = str(v)
        if len(val_str) > 50:
            val_str = val_str[:47] + "..."
        parts.append(f"{k}={val_str}")
    suffix = ", ..." if len(arguments) > 3 else ""
    return ", ".join(parts) + suffix

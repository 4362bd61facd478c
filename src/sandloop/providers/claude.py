"""
Sandloop Claude Client

Wraps the Anthropic SDK (anthropic.AsyncAnthropic) behind the
ModelClient interface.

Conversation mapping:
- system messages → the top-level `system` parameter
- assistant tool calls → `tool_use` content blocks
- tool messages → `tool_result` blocks inside a user message
  (consecutive results are merged into one message)
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any

import anthropic

from sandloop.core.models import (
    AssistantMessage,
    ConversationMessage,
    SystemMessage,
    ToolCallRequest,
    ToolMessage,
    ToolSchema,
    UserMessage,
)
from sandloop.providers.base import ModelClient, ModelResponse, ProviderConfig


class ClaudeModelClient(ModelClient):
    """Anthropic Claude client via the official SDK.

    Falls back to the ANTHROPIC_API_KEY env var if no key is provided.
    """

    DEFAULT_MODEL = "claude-sonnet-4-6"

    def __init__(
        self,
        config: ProviderConfig | None = None,
        client: anthropic.AsyncAnthropic | None = None,
    ):
        super().__init__(config or ProviderConfig(model=self.DEFAULT_MODEL))
        if not self._config.model:
            self._config = self._config.model_copy(update={"model": self.DEFAULT_MODEL})
        self._client = client or anthropic.AsyncAnthropic(
            api_key=self._config.api_key or None,
            base_url=self._config.base_url or None,
            timeout=self._config.timeout_seconds,
            max_retries=0,
        )

    @property
    def client(self) -> anthropic.AsyncAnthropic:
        return self._client

    async def _create_message_impl(
        self,
        messages: Sequence[ConversationMessage],
        tools: Sequence[ToolSchema],
        tool_choice: str,
    ) -> ModelResponse:
        system, wire_messages = self.to_wire_messages(messages)
        kwargs: dict[str, Any] = {
            "model": self._config.model,
            "max_tokens": self._config.max_tokens,
            "messages": wire_messages,
        }
        if system:
            kwargs["system"] = system
        if tools:
            kwargs["tools"] = [
                {
                    "name": t.name,
                    "description": t.description,
                    "input_schema": t.to_wire()["parameters"],
                }
                for t in tools
            ]
            kwargs["tool_choice"] = {"type": tool_choice}
        if self._config.temperature is not None:
            kwargs["temperature"] = self._config.temperature

        response = await self._client.messages.create(**kwargs)
        return self._to_response(response)

    @staticmethod
    def to_wire_messages(messages: Sequence[ConversationMessage]) -> tuple[str, list[dict[str, Any]]]:
        """Split out the system prompt and convert the rest to Anthropic messages."""
        system_parts: list[str] = []
        wire: list[dict[str, Any]] = []

        def append(role: str, blocks: list[dict[str, Any]]) -> None:
            if wire and wire[-1]["role"] == role:
                wire[-1]["content"].extend(blocks)
            else:
                wire.append({"role": role, "content": blocks})

        for message in messages:
            if isinstance(message, SystemMessage):
                system_parts.append(message.content)
            elif isinstance(message, UserMessage):
                append("user", [{"type": "text", "text": message.content}])
            elif isinstance(message, AssistantMessage):
                blocks: list[dict[str, Any]] = []
                if message.content:
                    blocks.append({"type": "text", "text": message.content})
                for call in message.tool_calls:
                    blocks.append({
                        "type": "tool_use",
                        "id": call.id,
                        "name": call.tool_name,
                        "input": call.arguments,
                    })
                if blocks:
                    append("assistant", blocks)
            elif isinstance(message, ToolMessage):
                append("user", [{
                    "type": "tool_result",
                    "tool_use_id": message.tool_call_id,
                    "content": message.content,
                    "is_error": _is_failed_result(message.content),
                }])

        return "\n\n".join(system_parts), wire

    @staticmethod
    def _to_response(response: Any) -> ModelResponse:
        """Convert an Anthropic API response to ModelResponse."""
        texts: list[str] = []
        calls: list[ToolCallRequest] = []
        for block in response.content:
            if block.type == "text":
                texts.append(block.text)
            elif block.type == "tool_use":
                if isinstance(block.input, dict):
                    calls.append(ToolCallRequest(id=block.id, tool_name=block.name, arguments=block.input))
                else:
                    calls.append(ToolCallRequest(
                        id=block.id,
                        tool_name=block.name,
                        argument_error=f"tool input must be an object, got {type(block.input).__name__}",
                    ))

        usage = getattr(response, "usage", None)
        return ModelResponse(
            content="".join(texts) if texts else None,
            tool_calls=calls,
            model=getattr(response, "model", "") or "",
            input_tokens=getattr(usage, "input_tokens", 0) or 0,
            output_tokens=getattr(usage, "output_tokens", 0) or 0,
        )

    @classmethod
    def from_client(cls, client: anthropic.AsyncAnthropic, model: str | None = None) -> ClaudeModelClient:
        """Create a ClaudeModelClient from an existing Anthropic client."""
        config = ProviderConfig(model=model or cls.DEFAULT_MODEL)
        return cls(config=config, client=client)


def _is_failed_result(content: str) -> bool:
    try:
        payload = json.loads(content)
    except (json.JSONDecodeError, TypeError):
        return False
    return isinstance(payload, dict) and payload.get("success") is False

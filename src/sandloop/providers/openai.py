"""
Sandloop OpenAI Client

Wraps the OpenAI chat completions API (and OpenAI-compatible APIs via
base_url) behind the ModelClient interface.

Requires: `pip install sandloop[openai]`
Set OPENAI_API_KEY environment variable.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any

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


class OpenAIModelClient(ModelClient):
    """OpenAI and OpenAI-compatible client.

    Uses the official openai Python SDK, imported lazily so the package
    stays optional.
    """

    DEFAULT_MODEL = "gpt-4o"

    def __init__(self, config: ProviderConfig | None = None, client: Any | None = None):
        super().__init__(config or ProviderConfig(model=self.DEFAULT_MODEL))
        if not self._config.model:
            self._config = self._config.model_copy(update={"model": self.DEFAULT_MODEL})
        self._client = client or self._create_client()

    def _create_client(self) -> Any:
        """Create the OpenAI async client. Imports openai lazily."""
        try:
            from openai import AsyncOpenAI
        except ImportError as e:
            raise ImportError(
                "OpenAI client requires the 'openai' package. Install with: pip install sandloop[openai]"
            ) from e

        kwargs: dict[str, Any] = {"timeout": self._config.timeout_seconds, "max_retries": 0}
        if self._config.api_key:
            kwargs["api_key"] = self._config.api_key
        if self._config.base_url:
            kwargs["base_url"] = self._config.base_url
        return AsyncOpenAI(**kwargs)

    async def _create_message_impl(
        self,
        messages: Sequence[ConversationMessage],
        tools: Sequence[ToolSchema],
        tool_choice: str,
    ) -> ModelResponse:
        kwargs: dict[str, Any] = {
            "model": self._config.model,
            "max_tokens": self._config.max_tokens,
            "messages": self.to_wire_messages(messages),
        }
        if tools:
            kwargs["tools"] = [{"type": "function", "function": t.to_wire()} for t in tools]
            kwargs["tool_choice"] = tool_choice
        if self._config.temperature is not None:
            kwargs["temperature"] = self._config.temperature

        response = await self._client.chat.completions.create(**kwargs)
        return self._to_response(response)

    @staticmethod
    def to_wire_messages(messages: Sequence[ConversationMessage]) -> list[dict[str, Any]]:
        """Convert the conversation to chat-completions messages."""
        wire: list[dict[str, Any]] = []
        for message in messages:
            if isinstance(message, (SystemMessage, UserMessage)):
                wire.append({"role": message.role, "content": message.content})
            elif isinstance(message, AssistantMessage):
                entry: dict[str, Any] = {"role": "assistant", "content": message.content or ""}
                if message.tool_calls:
                    entry["tool_calls"] = [
                        {
                            "id": call.id,
                            "type": "function",
                            "function": {
                                "name": call.tool_name,
                                "arguments": json.dumps(call.arguments, ensure_ascii=False),
                            },
                        }
                        for call in message.tool_calls
                    ]
                wire.append(entry)
            elif isinstance(message, ToolMessage):
                wire.append({
                    "role": "tool",
                    "tool_call_id": message.tool_call_id,
                    "name": message.name,
                    "content": message.content,
                })
        return wire

    @staticmethod
    def _to_response(response: Any) -> ModelResponse:
        """Convert an OpenAI chat completion to ModelResponse."""
        if not response.choices:
            raise ValueError("Model returned no choices")
        message = response.choices[0].message

        calls: list[ToolCallRequest] = []
        for tc in message.tool_calls or []:
            raw = tc.function.arguments or "{}"
            try:
                parsed = json.loads(raw)
            except json.JSONDecodeError as e:
                calls.append(ToolCallRequest(
                    id=tc.id, tool_name=tc.function.name, argument_error=f"arguments are not valid JSON: {e}",
                ))
                continue
            if not isinstance(parsed, dict):
                calls.append(ToolCallRequest(
                    id=tc.id,
                    tool_name=tc.function.name,
                    argument_error=f"arguments must be a JSON object, got {type(parsed).__name__}",
                ))
                continue
            calls.append(ToolCallRequest(id=tc.id, tool_name=tc.function.name, arguments=parsed))

        usage = getattr(response, "usage", None)
        return ModelResponse(
            content=message.content or None,
            tool_calls=calls,
            model=getattr(response, "model", "") or "",
            input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
            output_tokens=getattr(usage, "completion_tokens", 0) or 0,
        )

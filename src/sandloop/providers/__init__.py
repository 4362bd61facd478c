"""
Sandloop Model Clients

Providers wrap different LLM APIs (Anthropic, OpenAI) behind the
common ModelClient interface consumed by the agent controller.

Usage:
    from sandloop.providers import create_client

    client = create_client("claude")
    response = await client.create_message(messages=[...], tools=[...])
"""

from sandloop.providers.base import ModelClient, ModelResponse, ProviderConfig
from sandloop.providers.claude import ClaudeModelClient

__all__ = [
    "ClaudeModelClient",
    "ModelClient",
    "ModelResponse",
    "ProviderConfig",
    "create_client",
]


def create_client(
    name: str = "claude",
    *,
    api_key: str | None = None,
    model: str | None = None,
    config: ProviderConfig | None = None,
) -> ModelClient:
    """Factory function to create a model client by name.

    Args:
        name: Provider name ("claude", "openai").
        api_key: Optional API key override.
        model: Optional model name override.
        config: Full config; api_key and model are applied on top of it.
    """
    name_lower = name.lower()
    base = config or ProviderConfig()
    updates = {k: v for k, v in (("api_key", api_key), ("model", model)) if v}

    if name_lower in ("claude", "anthropic"):
        cfg = base.model_copy(update={"model": base.model or ClaudeModelClient.DEFAULT_MODEL, **updates})
        return ClaudeModelClient(cfg)
    elif name_lower == "openai":
        from sandloop.providers.openai import OpenAIModelClient

        cfg = base.model_copy(update={"model": base.model or OpenAIModelClient.DEFAULT_MODEL, **updates})
        return OpenAIModelClient(cfg)
    else:
        raise ValueError(f"Unknown provider: {name}. Supported: claude, openai")

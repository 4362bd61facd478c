"""Shared test fixtures for the sandloop test suite."""

from __future__ import annotations

from collections.abc import Sequence

import pytest

from sandloop.backends.local import LocalExecutionBackend
from sandloop.core.models import ConversationMessage, ToolCallRequest, ToolSchema
from sandloop.providers.base import ModelClient, ModelResponse, ProviderConfig
from sandloop.security.policy import build_policy

PROJECT_ROOT = "/workspace/proj"
WORKSPACE_ID = "ws-test"


class ScriptedModelClient(ModelClient):
    """Model client that replays a fixed list of responses.

    Each entry is a ModelResponse or an exception to raise. Every call
    records a snapshot of the messages and tools it was given.
    """

    def __init__(self, responses: Sequence[ModelResponse | Exception]):
        super().__init__(ProviderConfig(model="scripted", max_retries=1, retry_base_delay=0.0))
        self._responses = list(responses)
        self.calls: list[dict] = []

    async def _create_message_impl(
        self,
        messages: Sequence[ConversationMessage],
        tools: Sequence[ToolSchema],
        tool_choice: str,
    ) -> ModelResponse:
        self.calls.append({
            "messages": list(messages),
            "tools": [t.name for t in tools],
            "tool_choice": tool_choice,
        })
        if not self._responses:
            raise AssertionError("ScriptedModelClient ran out of responses")
        nxt = self._responses.pop(0)
        if isinstance(nxt, Exception):
            raise nxt
        return nxt


def tool_call(tool_name: str, call_id: str | None = None, **arguments) -> ToolCallRequest:
    if call_id is None:
        return ToolCallRequest(tool_name=tool_name, arguments=arguments)
    return ToolCallRequest(id=call_id, tool_name=tool_name, arguments=arguments)


def calls_response(*calls: ToolCallRequest, content: str | None = None) -> ModelResponse:
    return ModelResponse(content=content, tool_calls=list(calls))


def final_response(content: str) -> ModelResponse:
    return ModelResponse(content=content)


@pytest.fixture
def policy():
    return build_policy(PROJECT_ROOT, WORKSPACE_ID)


@pytest.fixture
def workspace(tmp_path):
    """A small project tree on disk."""
    root = tmp_path / "proj"
    (root / "src" / "app").mkdir(parents=True)
    (root / "src" / "app" / "page.tsx").write_text("export default function Page() {}\n")
    (root / "README.md").write_text("# proj\n")
    (root / "package.json").write_text('{"name": "proj", "version": "1.2.3"}')
    (root / ".env").write_text("SECRET=1\n")
    return root


@pytest.fixture
def local_policy(workspace):
    return build_policy(str(workspace), WORKSPACE_ID)


@pytest.fixture
def local_backend(workspace):
    return LocalExecutionBackend({WORKSPACE_ID: workspace})

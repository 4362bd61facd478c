"""
Sandloop Agent Session

One conversation's mutable state. Each session owns its history and
counters; the only object it shares with other sessions is the frozen
SandboxPolicy, so concurrent sessions need no locking.
"""

from __future__ import annotations

import uuid

from pydantic import BaseModel, Field

from sandloop.config import AgentConfig
from sandloop.core.models import AgentState, ConversationMessage, SandboxPolicy, TraceEvent


class AgentSession(BaseModel):
    """Per-conversation state, mutated only by the AgentController.

    tool_call_count and consecutive_failures are per user turn and reset
    at the start of every run. history persists across turns.
    """

    id: str = Field(default_factory=lambda: f"sess-{uuid.uuid4().hex[:8]}")
    policy: SandboxPolicy
    workspace_id: str
    history: list[ConversationMessage] = Field(default_factory=list)
    tool_call_count: int = 0
    consecutive_failures: int = 0
    config: AgentConfig = Field(default_factory=AgentConfig)
    state: AgentState = AgentState.AWAITING_MODEL
    traces: list[TraceEvent] = Field(default_factory=list)

    @classmethod
    def create(
        cls,
        policy: SandboxPolicy,
        config: AgentConfig | None = None,
        workspace_id: str | None = None,
    ) -> AgentSession:
        """Create a session bound to policy.

        workspace_id is the workspace the caller claims to operate on;
        it defaults to the policy's authorized workspace.
        """
        return cls(
            policy=policy,
            workspace_id=workspace_id if workspace_id is not None else policy.authorized_workspace_id,
            config=config or AgentConfig(),
        )

    @property
    def is_terminal(self) -> bool:
        return self.state in (AgentState.DONE, AgentState.FAILED)

    def record(self, event_type: str, description: str, **details) -> TraceEvent:
        """Append a trace event for this session."""
        event = TraceEvent(
            session_id=self.id,
            event_type=event_type,
            description=description,
            details=details,
        )
        self.traces.append(event)
        return event

"""
Sandloop Core Models

Pydantic models shared by the security validator, the tool registry
and the agent controller. These are the contracts exchanged across
component boundaries: nothing here performs I/O.
"""

from __future__ import annotations

import json
import posixpath
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from sandloop.exceptions import PolicyError, ToolTimeoutError


# ─── Sandbox Policy ─────────────────────────────────────────


class SandboxPolicy(BaseModel):
    """The single security context a session is bound to.

    Immutable once constructed. sandbox_root is always an absolute,
    canonical posix path without a trailing separator.
    """

    model_config = ConfigDict(frozen=True)

    sandbox_root: str
    authorized_workspace_id: str
    path_denylist_patterns: tuple[str, ...] = ()
    command_denylist_patterns: tuple[str, ...] = ()

    @field_validator("sandbox_root")
    @classmethod
    def _canonical_root(cls, value: str) -> str:
        if not value or not value.startswith("/"):
            raise PolicyError(f"Sandbox root must be an absolute path, got {value!r}")
        if ".." in value.split("/") or "~" in value:
            raise PolicyError(f"Sandbox root must not contain traversal tokens: {value!r}")
        canonical = posixpath.normpath(value)
        # normpath keeps a leading "//" (implementation-defined in POSIX)
        if canonical.startswith("//"):
            canonical = "/" + canonical.lstrip("/")
        if canonical == "/":
            raise PolicyError("Sandbox root cannot be the filesystem root")
        return canonical

    @field_validator("authorized_workspace_id")
    @classmethod
    def _non_empty_workspace(cls, value: str) -> str:
        if not value.strip():
            raise PolicyError("authorized_workspace_id must not be empty")
        return value


class ValidationResult(BaseModel):
    """Outcome of a single security check. Produced fresh per call."""

    model_config = ConfigDict(frozen=True)

    is_valid: bool
    reason: str | None = None
    suggested_path: str | None = None
    resolved_path: str | None = None
    relative_path: str | None = None

    @classmethod
    def ok(cls, resolved_path: str | None = None, relative_path: str | None = None) -> ValidationResult:
        return cls(is_valid=True, resolved_path=resolved_path, relative_path=relative_path)

    @classmethod
    def reject(cls, reason: str, suggested_path: str | None = None) -> ValidationResult:
        return cls(is_valid=False, reason=reason, suggested_path=suggested_path)


# ─── Tool Contracts ─────────────────────────────────────────


class ToolParameters(BaseModel):
    """JSON-schema object describing a tool's arguments."""

    type: Literal["object"] = "object"
    properties: dict[str, dict[str, Any]] = Field(default_factory=dict)
    required: list[str] = Field(default_factory=list)


class ToolSchema(BaseModel):
    """Declarative description of a callable tool, offered to the model."""

    name: str = Field(min_length=1, max_length=64, pattern=r"^[a-zA-Z0-9_-]+$")
    description: str
    parameters: ToolParameters = Field(default_factory=ToolParameters)

    def to_wire(self) -> dict[str, Any]:
        """Stable wire format: {name, description, parameters: {type, properties, required}}."""
        return {
            "name": self.name,
            "description": self.description,
            "parameters": {
                "type": self.parameters.type,
                "properties": self.parameters.properties,
                "required": list(self.parameters.required),
            },
        }


class ToolCallRequest(BaseModel):
    """A model-issued request to invoke one tool.

    Created by a provider's response parser; consumed exactly once by
    the controller. argument_error is set when the provider could not
    decode the model's arguments into an object.
    """

    id: str = Field(default_factory=lambda: f"call-{uuid.uuid4().hex[:8]}")
    tool_name: str
    arguments: dict[str, Any] = Field(default_factory=dict)
    argument_error: str | None = None


class ToolErrorCode(str, Enum):
    """Machine-readable failure categories carried in ToolResult.error."""

    UNKNOWN_TOOL = "unknown_tool"
    INVALID_ARGUMENTS = "invalid_arguments"
    VALIDATION_ERROR = "validation_error"
    EXECUTION_ERROR = "execution_error"
    TIMEOUT = "timeout"
    NOT_EXECUTED = "not_executed"


class ToolResult(BaseModel):
    """Terminal value of a tool invocation. Never raised across the registry."""

    success: bool
    data: Any = None
    error: str | None = None
    message: str | None = None

    @classmethod
    def ok(cls, data: Any = None, message: str | None = None) -> ToolResult:
        return cls(success=True, data=data, message=message)

    @classmethod
    def fail(cls, error: ToolErrorCode | str, message: str, data: Any = None) -> ToolResult:
        code = error.value if isinstance(error, ToolErrorCode) else error
        return cls(success=False, error=code, message=message, data=data)

    @classmethod
    def timeout(cls, tool_name: str, seconds: float) -> ToolResult:
        return cls.fail(ToolErrorCode.TIMEOUT, str(ToolTimeoutError(tool_name, seconds)))

    def to_content(self) -> str:
        """Serialize for a tool message. None fields are dropped."""
        return json.dumps(self.model_dump(mode="json", exclude_none=True), ensure_ascii=False, default=str)


# ─── Conversation ───────────────────────────────────────────


class SystemMessage(BaseModel):
    role: Literal["system"] = "system"
    content: str


class UserMessage(BaseModel):
    role: Literal["user"] = "user"
    content: str


class AssistantMessage(BaseModel):
    role: Literal["assistant"] = "assistant"
    content: str | None = None
    tool_calls: list[ToolCallRequest] = Field(default_factory=list)


class ToolMessage(BaseModel):
    role: Literal["tool"] = "tool"
    tool_call_id: str
    name: str
    content: str


ConversationMessage = Annotated[
    Union[SystemMessage, UserMessage, AssistantMessage, ToolMessage],
    Field(discriminator="role"),
]


# ─── Agent Run ──────────────────────────────────────────────


class AgentState(str, Enum):
    """Controller state machine: AWAITING_MODEL ⇄ EXECUTING_TOOLS → DONE | FAILED."""

    AWAITING_MODEL = "AWAITING_MODEL"
    EXECUTING_TOOLS = "EXECUTING_TOOLS"
    DONE = "DONE"
    FAILED = "FAILED"


class FailureReason(str, Enum):
    """Why a run ended in FAILED."""

    BUDGET_EXCEEDED = "BUDGET_EXCEEDED"
    ITERATION_LIMIT = "ITERATION_LIMIT"
    TIME_LIMIT = "TIME_LIMIT"
    RETRIES_EXHAUSTED = "RETRIES_EXHAUSTED"
    MODEL_ERROR = "MODEL_ERROR"
    CANCELLED = "CANCELLED"
    WORKSPACE_MISMATCH = "WORKSPACE_MISMATCH"


class AgentRunResult(BaseModel):
    """What run_agent hands back to the chat/HTTP layer."""

    success: bool
    message: str
    tool_calls_executed: int = 0
    failure_reason: FailureReason | None = None
    state: AgentState = AgentState.DONE
    session_id: str = ""


class TraceEvent(BaseModel):
    """Audit record of one step of a session's loop."""

    id: str = Field(default_factory=lambda: f"ev-{uuid.uuid4().hex[:8]}")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    session_id: str = ""
    event_type: str
    description: str = ""
    details: dict[str, Any] = Field(default_factory=dict)

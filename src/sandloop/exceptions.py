"""
Sandloop Custom Exceptions

Structured exception hierarchy for the sandboxed agent loop.
All sandloop-specific exceptions inherit from SandloopError.

Exception hierarchy:
    SandloopError
    +-- PolicyError                   (Invalid sandbox policy at construction time)
    +-- ValidationError               (Path / command / workspace binding rejected)
    +-- ExecutionError                (Backend I/O or command failure)
    |   +-- ToolTimeoutError          (Per-call deadline exceeded)
    +-- BudgetExceededError           (Tool-call, iteration or time budget reached)
    +-- ModelClientError              (LLM provider failure after retries)
    +-- ToolRegistrationError         (Registry refused a tool)
        +-- DuplicateToolError        (Name already registered)
        +-- StrictRegistryError       (Registry is closed to new tools)

Inside the agent loop these are converted into ToolResult values or a
failed AgentRunResult. Only registration and policy errors escape, and
only at construction time.
"""

from __future__ import annotations


class SandloopError(Exception):
    """Base exception for all sandloop errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class PolicyError(SandloopError):
    """Raised when a SandboxPolicy cannot be constructed (e.g. relative root)."""

    pass


class ValidationError(SandloopError):
    """Raised when a path, command or workspace binding is rejected.

    Never retried by the controller. Carries the human-readable reason and,
    when one could be derived, a corrected path inside the sandbox.
    """

    def __init__(self, reason: str, suggested_path: str | None = None, details: dict | None = None):
        super().__init__(
            reason,
            details={"reason": reason, "suggested_path": suggested_path, **(details or {})},
        )
        self.reason = reason
        self.suggested_path = suggested_path


class ExecutionError(SandloopError):
    """Raised when the execution backend reports a failure.

    Includes the tool name for debugging.
    """

    def __init__(self, tool_name: str, message: str, details: dict | None = None):
        super().__init__(
            f"Tool '{tool_name}' execution failed: {message}",
            details={"tool_name": tool_name, **(details or {})},
        )
        self.tool_name = tool_name


class ToolTimeoutError(ExecutionError):
    """Raised when a tool call exceeds its per-call deadline."""

    def __init__(self, tool_name: str, timeout_seconds: float):
        super().__init__(
            tool_name,
            f"timed out after {timeout_seconds}s",
            details={"timeout_seconds": timeout_seconds},
        )
        self.timeout_seconds = timeout_seconds


class BudgetExceededError(SandloopError):
    """Raised when a session runs out of tool calls, iterations or time."""

    def __init__(self, budget: str, limit: float, used: float, details: dict | None = None):
        super().__init__(
            f"{budget} budget exceeded: used {used} of {limit}",
            details={"budget": budget, "limit": limit, "used": used, **(details or {})},
        )
        self.budget = budget
        self.limit = limit
        self.used = used


class ModelClientError(SandloopError):
    """Raised when the language-model provider fails after all retries."""

    def __init__(self, provider_name: str, message: str, details: dict | None = None):
        super().__init__(
            f"Provider '{provider_name}' error: {message}",
            details={"provider_name": provider_name, **(details or {})},
        )
        self.provider_name = provider_name


class ToolRegistrationError(SandloopError):
    """Base class for registry refusals."""

    def __init__(self, tool_name: str, message: str):
        super().__init__(message, details={"tool_name": tool_name})
        self.tool_name = tool_name


class DuplicateToolError(ToolRegistrationError):
    """Raised when a tool name is registered twice in one registry."""

    def __init__(self, tool_name: str):
        super().__init__(tool_name, f"Tool '{tool_name}' is already registered")


class StrictRegistryError(ToolRegistrationError):
    """Raised on any registration attempt against a strict registry."""

    def __init__(self, tool_name: str):
        super().__init__(
            tool_name,
            f"Cannot register '{tool_name}': strict registries only expose the built-in sandbox tools",
        )

"""
Sandloop Tool Registry

Holds tool schemas and handler bindings, validates every call and
converts handler faults into ToolResult values. Nothing raised by a
handler crosses the registry boundary.

Two operating modes, fixed at construction:
- OPEN: tools can be registered at runtime.
- STRICT: built once from the fixed table of sandbox-aware tools;
  register() always fails.

Path and command arguments are declared per tool and validated
against the bound SandboxPolicy before the handler runs, so a
handler can never reach the execution backend with an unchecked path.
"""

from __future__ import annotations

import asyncio
import inspect
import time
from collections.abc import Awaitable, Callable, Iterable
from enum import Enum
from typing import TYPE_CHECKING, Any

from sandloop.core.models import (
    SandboxPolicy,
    ToolErrorCode,
    ToolResult,
    ToolSchema,
)
from sandloop.exceptions import DuplicateToolError, StrictRegistryError, ValidationError
from sandloop.logging import get_logger
from sandloop.security.validator import validate_command, validate_path
from sandloop.tools.schema import validate_arguments

if TYPE_CHECKING:
    from sandloop.backends.base import ExecutionBackend

logger = get_logger("sandloop.tools")

MAX_ERROR_MESSAGE_CHARS = 500


class RegistryMode(str, Enum):
    """Registry variant. STRICT registries are closed to registration."""

    OPEN = "OPEN"
    STRICT = "STRICT"


class RegisteredTool:
    """A tool schema bound to its handler.

    path_arguments and command_arguments name the arguments the registry
    must validate with the sandbox policy before invoking the handler.
    Validated path arguments are passed on relative to the sandbox root.
    """

    def __init__(
        self,
        schema: ToolSchema,
        handler: Callable[..., Any] | Callable[..., Awaitable[Any]],
        path_arguments: Iterable[str] = (),
        command_arguments: Iterable[str] = (),
    ):
        self.schema = schema
        self.handler = handler
        self.path_arguments = tuple(path_arguments)
        self.command_arguments = tuple(command_arguments)

        declared = set(schema.parameters.properties)
        undeclared = (set(self.path_arguments) | set(self.command_arguments)) - declared
        if undeclared:
            raise ValueError(
                f"Tool '{schema.name}' marks undeclared arguments for validation: {sorted(undeclared)}"
            )

    @property
    def name(self) -> str:
        return self.schema.name

    @property
    def touches_sandbox(self) -> bool:
        return bool(self.path_arguments or self.command_arguments)


class ToolRegistry:
    """Registry of tools available to one sandboxed session.

    Bound to a single SandboxPolicy; every path or command argument is
    checked against it. The mode is set once in the constructor.
    """

    def __init__(
        self,
        policy: SandboxPolicy,
        mode: RegistryMode = RegistryMode.OPEN,
        tools: Iterable[RegisteredTool] = (),
    ) -> None:
        self._policy = policy
        self._mode = RegistryMode(mode)
        self._tools: dict[str, RegisteredTool] = {}
        for tool in tools:
            self._add(tool)

    @classmethod
    def open(cls, policy: SandboxPolicy, tools: Iterable[RegisteredTool] = ()) -> ToolRegistry:
        """Registry that accepts further registrations at runtime."""
        return cls(policy, RegistryMode.OPEN, tools)

    @classmethod
    def strict(cls, policy: SandboxPolicy, backend: ExecutionBackend) -> ToolRegistry:
        """Closed registry exposing only the built-in sandbox tools."""
        from sandloop.tools.builtin import build_sandbox_tools

        registry = cls(policy, RegistryMode.STRICT, build_sandbox_tools(policy, backend))
        logger.info(
            f"Strict registry ready with {len(registry)} tools, locked to {policy.sandbox_root}",
            extra={"workspace_id": policy.authorized_workspace_id},
        )
        return registry

    @property
    def mode(self) -> RegistryMode:
        return self._mode

    @property
    def policy(self) -> SandboxPolicy:
        return self._policy

    def register(self, tool: RegisteredTool) -> None:
        """Register a tool.

        Raises StrictRegistryError in strict mode and DuplicateToolError
        if the name is already taken.
        """
        if self._mode is RegistryMode.STRICT:
            raise StrictRegistryError(tool.name)
        self._add(tool)

    def _add(self, tool: RegisteredTool) -> None:
        if tool.name in self._tools:
            raise DuplicateToolError(tool.name)
        self._tools[tool.name] = tool

    def get(self, name: str) -> RegisteredTool | None:
        """Look up a registered tool by name."""
        return self._tools.get(name)

    def list_schemas(self) -> list[ToolSchema]:
        """Schemas in registration order."""
        return [t.schema for t in self._tools.values()]

    def get_wire_schemas(self) -> list[dict[str, Any]]:
        """Schemas in the stable wire format offered to model clients."""
        return [s.to_wire() for s in self.list_schemas()]

    @property
    def tool_names(self) -> list[str]:
        return list(self._tools.keys())

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    async def execute(self, tool_name: str, arguments: Any) -> ToolResult:
        """Validate and run one tool call. Never raises.

        Fails fast with a failed ToolResult when the tool is unknown, the
        arguments do not match the schema, a path or command is rejected
        by the security validator, or the handler raises.
        """
        tool = self._tools.get(tool_name)
        if tool is None:
            logger.warning(f"Rejected unknown tool '{tool_name}'", extra={"tool_name": tool_name})
            return ToolResult.fail(
                ToolErrorCode.UNKNOWN_TOOL,
                f"Unknown tool: {tool_name}. Available tools: {', '.join(self._tools) or 'none'}",
            )

        normalized, errors = validate_arguments(tool.schema, arguments)
        if errors:
            return ToolResult.fail(
                ToolErrorCode.INVALID_ARGUMENTS,
                f"Invalid arguments for '{tool_name}': " + "; ".join(errors),
            )

        rejection = self._check_sandbox_arguments(tool, normalized)
        if rejection is not None:
            return rejection

        start = time.monotonic()
        try:
            if inspect.iscoroutinefunction(tool.handler):
                outcome = await tool.handler(**normalized)
            else:
                # Sync handlers run off the loop so the per-call deadline applies
                outcome = await asyncio.to_thread(tool.handler, **normalized)
                if asyncio.iscoroutine(outcome):
                    outcome = await outcome
        except ValidationError as e:
            logger.warning(
                f"Tool '{tool_name}' rejected its arguments: {e.reason}",
                extra={"tool_name": tool_name, "workspace_id": self._policy.authorized_workspace_id},
            )
            data = {"suggested_path": e.suggested_path} if e.suggested_path else None
            return ToolResult.fail(ToolErrorCode.VALIDATION_ERROR, _truncate(e.reason), data=data)
        except Exception as e:
            duration_ms = (time.monotonic() - start) * 1000
            logger.warning(
                f"Tool '{tool_name}' raised {type(e).__name__}",
                extra={"tool_name": tool_name, "duration_ms": round(duration_ms, 2)},
            )
            return ToolResult.fail(
                ToolErrorCode.EXECUTION_ERROR,
                _truncate(f"{type(e).__name__}: {e}"),
            )

        duration_ms = (time.monotonic() - start) * 1000
        result = outcome if isinstance(outcome, ToolResult) else ToolResult.ok(data=outcome)
        logger.debug(
            f"Tool '{tool_name}' finished (success={result.success})",
            extra={"tool_name": tool_name, "duration_ms": round(duration_ms, 2)},
        )
        return result

    def _check_sandbox_arguments(self, tool: RegisteredTool, arguments: dict[str, Any]) -> ToolResult | None:
        """Validate declared path/command arguments in place.

        Path arguments are rewritten to their root-relative form.
        Returns a failed ToolResult on the first rejection.
        """
        for name in tool.path_arguments:
            if name not in arguments or arguments[name] is None:
                continue
            check = validate_path(arguments[name], self._policy)
            if not check.is_valid:
                logger.warning(
                    f"Path rejected for '{tool.name}': {check.reason}",
                    extra={"tool_name": tool.name, "workspace_id": self._policy.authorized_workspace_id},
                )
                data = {"suggested_path": check.suggested_path} if check.suggested_path else None
                return ToolResult.fail(ToolErrorCode.VALIDATION_ERROR, check.reason or "Path rejected", data=data)
            arguments[name] = check.relative_path

        for name in tool.command_arguments:
            if name not in arguments or arguments[name] is None:
                continue
            check = validate_command(arguments[name], self._policy)
            if not check.is_valid:
                logger.warning(
                    f"Command rejected for '{tool.name}': {check.reason}",
                    extra={"tool_name": tool.name, "workspace_id": self._policy.authorized_workspace_id},
                )
                return ToolResult.fail(ToolErrorCode.VALIDATION_ERROR, check.reason or "Command rejected")

        return None


def _truncate(text: str, limit: int = MAX_ERROR_MESSAGE_CHARS) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + f"... [truncated {len(text) - limit} chars]"

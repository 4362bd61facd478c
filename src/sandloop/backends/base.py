"""
Sandloop Execution Backend Contract

The layer that actually reads, writes, lists or runs something inside
an isolated workspace. Tool handlers call it only after the registry
has validated the path or command.

Contract assumptions:
- targets are root-relative paths (already validated) or commands
- reads and lists are safe to retry, writes and runs are not
- failures are returned as BackendResult(ok=False), never raised
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum

from pydantic import BaseModel

from sandloop.exceptions import ExecutionError


class OperationKind(str, Enum):
    """What the backend is asked to do with its target."""

    READ = "READ"
    WRITE = "WRITE"
    LIST = "LIST"
    RUN = "RUN"

    @property
    def idempotent(self) -> bool:
        return self in (OperationKind.READ, OperationKind.LIST)


class BackendResult(BaseModel):
    """Raw outcome of one backend operation."""

    ok: bool
    output: str | list[str] = ""
    error: str | None = None
    exit_code: int | None = None

    @classmethod
    def success(cls, output: str | list[str] = "", exit_code: int | None = None) -> BackendResult:
        return cls(ok=True, output=output, exit_code=exit_code)

    @classmethod
    def failure(cls, error: str, exit_code: int | None = None, output: str | list[str] = "") -> BackendResult:
        return cls(ok=False, error=error, exit_code=exit_code, output=output)

    def raise_for_error(self, tool_name: str) -> BackendResult:
        """Turn a failed result into an ExecutionError for the registry to wrap."""
        if not self.ok:
            raise ExecutionError(
                tool_name,
                self.error or "backend reported a failure",
                details={"exit_code": self.exit_code},
            )
        return self


class ExecutionBackend(ABC):
    """Abstract execution backend for one or more workspaces."""

    @property
    def name(self) -> str:
        return self.__class__.__name__

    @abstractmethod
    async def execute(
        self,
        workspace_id: str,
        target: str,
        kind: OperationKind,
        *,
        content: str | None = None,
        recursive: bool = False,
        timeout: float | None = None,
    ) -> BackendResult:
        """Perform one operation.

        Args:
            workspace_id: Workspace the session is bound to.
            target: Root-relative path (READ/WRITE/LIST) or command (RUN).
            kind: The operation to perform.
            content: File content for WRITE.
            recursive: Recurse into subdirectories for LIST.
            timeout: Seconds before a RUN is killed.
        """
        ...

"""
Local Execution Backend

Runs workspace operations against directories on the local machine:
- File reads with a size cap
- File writes creating parent directories
- Directory listings (optionally recursive)
- Shell commands in a subprocess with a clean environment, the
  workspace root as cwd, output size limits and kill-on-timeout

Note: this is NOT an isolation boundary. Commands run as the same user
as the host process. Use the Docker backend when the workspace must be
isolated from the host.
"""

from __future__ import annotations

import asyncio
import os
import tempfile
from pathlib import Path

from sandloop.backends.base import BackendResult, ExecutionBackend, OperationKind
from sandloop.logging import get_logger

logger = get_logger("sandloop.backends.local")

# Directories never descended into by recursive listings
SKIPPED_DIRECTORIES = frozenset({".git", "node_modules", "__pycache__", ".venv", ".next"})


class LocalExecutionBackend(ExecutionBackend):
    """Execution backend mapping workspace ids to local directories."""

    def __init__(
        self,
        workspaces: dict[str, str | Path],
        *,
        max_output_bytes: int = 65536,
        max_file_bytes: int = 1_048_576,
        command_timeout: float = 30.0,
        max_list_entries: int = 5000,
    ):
        self._roots = {wid: Path(root).resolve() for wid, root in workspaces.items()}
        self._max_output_bytes = max_output_bytes
        self._max_file_bytes = max_file_bytes
        self._command_timeout = command_timeout
        self._max_list_entries = max_list_entries

    def root_for(self, workspace_id: str) -> Path | None:
        return self._roots.get(workspace_id)

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
        root = self._roots.get(workspace_id)
        if root is None:
            return BackendResult.failure(f"Unknown workspace: {workspace_id}")

        if kind is OperationKind.RUN:
            return await self._run(root, target, timeout or self._command_timeout)

        path = self._resolve(root, target)
        if path is None:
            return BackendResult.failure(f"Path escapes workspace root: {target}")

        # file I/O runs in a worker thread so per-call deadlines can fire
        try:
            if kind is OperationKind.READ:
                return await asyncio.to_thread(self._read, path, target)
            if kind is OperationKind.WRITE:
                return await asyncio.to_thread(self._write, path, target, content or "")
            if kind is OperationKind.LIST:
                return await asyncio.to_thread(self._list, root, path, target, recursive)
        except PermissionError:
            return BackendResult.failure(f"Permission denied: {target}")
        except OSError as e:
            return BackendResult.failure(f"{type(e).__name__}: {e}")

        return BackendResult.failure(f"Unsupported operation: {kind}")

    @staticmethod
    def _resolve(root: Path, target: str) -> Path | None:
        """Resolve a root-relative path, following symlinks, and re-check containment."""
        path = (root / target).resolve()
        if path != root and root not in path.parents:
            return None
        return path

    def _read(self, path: Path, target: str) -> BackendResult:
        if not path.exists():
            return BackendResult.failure(f"File not found: {target}")
        if not path.is_file():
            return BackendResult.failure(f"Not a file: {target}")
        size = path.stat().st_size
        if size > self._max_file_bytes:
            return BackendResult.failure(f"File too large ({size} bytes). Max {self._max_file_bytes} bytes.")
        return BackendResult.success(path.read_text(encoding="utf-8", errors="replace"))

    def _write(self, path: Path, target: str, content: str) -> BackendResult:
        if path.is_dir():
            return BackendResult.failure(f"Is a directory: {target}")
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return BackendResult.success(f"Written {len(content.encode('utf-8'))} bytes to {target}")

    def _list(self, root: Path, path: Path, target: str, recursive: bool) -> BackendResult:
        if not path.exists():
            return BackendResult.failure(f"Directory not found: {target}")
        if not path.is_dir():
            return BackendResult.failure(f"Not a directory: {target}")

        entries: list[str] = []
        if recursive:
            for dirpath, dirnames, filenames in os.walk(path):
                dirnames[:] = sorted(d for d in dirnames if d not in SKIPPED_DIRECTORIES)
                base = Path(dirpath)
                for name in sorted(filenames):
                    entries.append((base / name).relative_to(path).as_posix())
                    if len(entries) >= self._max_list_entries:
                        return BackendResult.success(entries)
        else:
            for child in sorted(path.iterdir(), key=lambda p: p.name):
                entries.append(child.name + "/" if child.is_dir() else child.name)
        return BackendResult.success(entries)

    async def _run(self, root: Path, command: str, timeout: float) -> BackendResult:
        env = {
            "PATH": "/usr/local/bin:/usr/bin:/bin",
            "HOME": tempfile.gettempdir(),
            "LANG": "en_US.UTF-8",
        }
        proc = await asyncio.create_subprocess_shell(
            command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            stdin=asyncio.subprocess.DEVNULL,
            env=env,
            cwd=str(root),
        )
        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except TimeoutError:
            proc.kill()
            await proc.wait()
            logger.warning(f"Command killed after {timeout}s")
            return BackendResult.failure(f"Command exceeded {timeout}s limit", exit_code=proc.returncode)
        except asyncio.CancelledError:
            proc.kill()
            await proc.wait()
            raise

        output = self._cap(stdout.decode("utf-8", errors="replace"))
        if proc.returncode != 0:
            error = self._cap(stderr.decode("utf-8", errors="replace"))
            return BackendResult.failure(
                f"exit={proc.returncode}: {error.strip() or 'command failed'}",
                exit_code=proc.returncode,
                output=output,
            )
        return BackendResult.success(output, exit_code=0)

    def _cap(self, text: str) -> str:
        if len(text) > self._max_output_bytes:
            return text[: self._max_output_bytes] + f"\n[TRUNCATED at {self._max_output_bytes} bytes]"
        return text

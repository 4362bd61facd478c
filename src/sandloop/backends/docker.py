"""
Docker Execution Backend

Performs workspace operations inside an already-running container via
`docker exec`. Container lifecycle (create/start/stop) is managed
elsewhere; this backend only needs the container id and the project
working directory inside it.

Each operation is one `docker exec` subprocess:
    READ   cat -- <path>
    WRITE  sh -c 'mkdir -p "$(dirname "$1")" && cat > "$1"' (content on stdin)
    LIST   ls -1Ap <path>   |   find <path> -type f (recursive)
    RUN    sh -c <command>
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

from sandloop.backends.base import BackendResult, ExecutionBackend, OperationKind
from sandloop.logging import get_logger

logger = get_logger("sandloop.backends.docker")

_WRITE_SCRIPT = 'mkdir -p "$(dirname "$1")" && cat > "$1"'


@dataclass(frozen=True)
class ContainerTarget:
    """Where a workspace lives: container id plus its working directory."""

    container_id: str
    workdir: str


class DockerExecutionBackend(ExecutionBackend):
    """Execution backend that shells into containers with `docker exec`."""

    def __init__(
        self,
        containers: dict[str, ContainerTarget | tuple[str, str]],
        *,
        docker_binary: str = "docker",
        command_timeout: float = 30.0,
        max_output_bytes: int = 65536,
    ):
        self._containers = {
            wid: t if isinstance(t, ContainerTarget) else ContainerTarget(*t)
            for wid, t in containers.items()
        }
        self._docker = docker_binary
        self._command_timeout = command_timeout
        self._max_output_bytes = max_output_bytes

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
        container = self._containers.get(workspace_id)
        if container is None:
            return BackendResult.failure(f"Unknown workspace: {workspace_id}")

        limit = timeout or self._command_timeout
        if kind is OperationKind.READ:
            return await self._exec(container, ["cat", "--", target], timeout=limit)
        if kind is OperationKind.WRITE:
            result = await self._exec(
                container,
                ["sh", "-c", _WRITE_SCRIPT, "sh", target],
                stdin=(content or "").encode("utf-8"),
                timeout=limit,
            )
            if result.ok:
                return BackendResult.success(f"Written {len((content or '').encode('utf-8'))} bytes to {target}")
            return result
        if kind is OperationKind.LIST:
            if recursive:
                argv = [
                    "find", target,
                    "(", "-name", "node_modules", "-o", "-name", ".git", ")", "-prune",
                    "-o", "-type", "f", "-print",
                ]
            else:
                argv = ["ls", "-1Ap", "--", target]
            result = await self._exec(container, argv, timeout=limit)
            if not result.ok:
                return result
            return BackendResult.success(_split_listing(str(result.output), target, recursive))
        if kind is OperationKind.RUN:
            return await self._exec(container, ["sh", "-c", target], timeout=limit)

        return BackendResult.failure(f"Unsupported operation: {kind}")

    async def _exec(
        self,
        container: ContainerTarget,
        argv: list[str],
        *,
        stdin: bytes | None = None,
        timeout: float,
    ) -> BackendResult:
        cmd = [self._docker, "exec"]
        if stdin is not None:
            cmd.append("-i")
        cmd += ["-w", container.workdir, container.container_id, *argv]

        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.PIPE if stdin is not None else asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError:
            return BackendResult.failure(f"Docker binary not found: {self._docker}")

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(input=stdin), timeout=timeout)
        except TimeoutError:
            proc.kill()
            await proc.wait()
            logger.warning(f"docker exec in {container.container_id} killed after {timeout}s")
            return BackendResult.failure(f"Command exceeded {timeout}s limit")
        except asyncio.CancelledError:
            proc.kill()
            await proc.wait()
            raise

        output = _cap(stdout.decode("utf-8", errors="replace"), self._max_output_bytes)
        if proc.returncode != 0:
            error = _cap(stderr.decode("utf-8", errors="replace"), self._max_output_bytes)
            return BackendResult.failure(
                f"exit={proc.returncode}: {error.strip() or 'command failed'}",
                exit_code=proc.returncode,
                output=output,
            )
        return BackendResult.success(output, exit_code=0)


def _split_listing(raw: str, target: str, recursive: bool) -> list[str]:
    lines = [line for line in raw.splitlines() if line.strip()]
    if not recursive:
        return lines
    prefix = "" if target in ("", ".") else target.rstrip("/") + "/"
    entries = []
    for line in lines:
        if line.startswith("./"):
            line = line[2:]
        if prefix and line.startswith(prefix):
            line = line[len(prefix):]
        entries.append(line)
    return sorted(entries)


def _cap(text: str, limit: int) -> str:
    if len(text) > limit:
        return text[:limit] + f"\n[TRUNCATED at {limit} bytes]"
    return text

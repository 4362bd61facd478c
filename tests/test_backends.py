"""Tests for the execution backends.

The local backend runs against a temporary directory; the docker
backend is tested with a mocked subprocess.
"""

import asyncio
import os
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from sandloop.backends.base import BackendResult, OperationKind
from sandloop.backends.docker import ContainerTarget, DockerExecutionBackend
from sandloop.backends.local import LocalExecutionBackend
from sandloop.exceptions import ExecutionError

WS = "ws-test"


class TestBackendResult:
    def test_raise_for_error(self):
        with pytest.raises(ExecutionError, match="read_file"):
            BackendResult.failure("File not found: x").raise_for_error("read_file")

    def test_success_passes_through(self):
        result = BackendResult.success("data")
        assert result.raise_for_error("read_file") is result

    def test_idempotent_kinds(self):
        assert OperationKind.READ.idempotent
        assert OperationKind.LIST.idempotent
        assert not OperationKind.WRITE.idempotent
        assert not OperationKind.RUN.idempotent


# ─── Local ────────────────────────────────────────────────


class TestLocalBackend:
    @pytest.mark.asyncio
    async def test_unknown_workspace(self, local_backend):
        result = await local_backend.execute("other", "README.md", OperationKind.READ)
        assert not result.ok
        assert "Unknown workspace" in result.error

    @pytest.mark.asyncio
    async def test_read(self, local_backend):
        result = await local_backend.execute(WS, "README.md", OperationKind.READ)
        assert result.ok
        assert result.output == "# proj\n"

    @pytest.mark.asyncio
    async def test_read_directory_fails(self, local_backend):
        result = await local_backend.execute(WS, "src", OperationKind.READ)
        assert result.error == "Not a file: src"

    @pytest.mark.asyncio
    async def test_read_too_large(self, workspace):
        backend = LocalExecutionBackend({WS: workspace}, max_file_bytes=4)
        result = await backend.execute(WS, "README.md", OperationKind.READ)
        assert "too large" in result.error

    @pytest.mark.asyncio
    async def test_write_creates_parents(self, local_backend, workspace):
        result = await local_backend.execute(WS, "a/b/c.txt", OperationKind.WRITE, content="hey")
        assert result.ok
        assert result.output == "Written 3 bytes to a/b/c.txt"
        assert (workspace / "a" / "b" / "c.txt").read_text() == "hey"

    @pytest.mark.asyncio
    async def test_write_over_directory_fails(self, local_backend):
        result = await local_backend.execute(WS, "src", OperationKind.WRITE, content="x")
        assert not result.ok

    @pytest.mark.asyncio
    async def test_list(self, local_backend):
        result = await local_backend.execute(WS, "src", OperationKind.LIST)
        assert result.output == ["app/"]

    @pytest.mark.asyncio
    async def test_list_recursive(self, local_backend):
        result = await local_backend.execute(WS, ".", OperationKind.LIST, recursive=True)
        assert result.output == [".env", "README.md", "package.json", "src/app/page.tsx"]

    @pytest.mark.asyncio
    async def test_list_entry_cap(self, workspace):
        backend = LocalExecutionBackend({WS: workspace}, max_list_entries=2)
        result = await backend.execute(WS, ".", OperationKind.LIST, recursive=True)
        assert len(result.output) == 2

    @pytest.mark.adversarial
    @pytest.mark.asyncio
    async def test_symlink_escape_refused(self, local_backend, workspace, tmp_path):
        outside = tmp_path / "outside.txt"
        outside.write_text("secret")
        os.symlink(outside, workspace / "link.txt")

        result = await local_backend.execute(WS, "link.txt", OperationKind.READ)

        assert not result.ok
        assert "escapes" in result.error

    @pytest.mark.asyncio
    async def test_run(self, local_backend):
        result = await local_backend.execute(WS, "echo hello", OperationKind.RUN)
        assert result.ok
        assert result.output == "hello\n"
        assert result.exit_code == 0

    @pytest.mark.asyncio
    async def test_run_failure_reports_stderr(self, local_backend):
        result = await local_backend.execute(WS, "echo oops >&2; exit 3", OperationKind.RUN)
        assert not result.ok
        assert result.exit_code == 3
        assert result.error == "exit=3: oops"

    @pytest.mark.asyncio
    async def test_run_timeout(self, local_backend):
        result = await local_backend.execute(WS, "sleep 5", OperationKind.RUN, timeout=0.1)
        assert not result.ok
        assert "exceeded" in result.error

    @pytest.mark.asyncio
    async def test_run_output_capped(self, workspace):
        backend = LocalExecutionBackend({WS: workspace}, max_output_bytes=10)
        result = await backend.execute(WS, "printf '%050d' 0", OperationKind.RUN)
        assert result.output.startswith("0" * 10)
        assert "TRUNCATED" in result.output


# ─── Docker ───────────────────────────────────────────────


def _proc(stdout: bytes = b"", stderr: bytes = b"", returncode: int = 0) -> MagicMock:
    proc = MagicMock()
    proc.communicate = AsyncMock(return_value=(stdout, stderr))
    proc.returncode = returncode
    proc.wait = AsyncMock(return_value=returncode)
    return proc


@pytest.fixture
def docker_backend():
    return DockerExecutionBackend({WS: ContainerTarget("c0ffee", "/app/workspace/proj")})


class TestDockerBackend:
    @pytest.mark.asyncio
    async def test_read_uses_cat_in_workdir(self, docker_backend):
        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=_proc(b"hello"))) as spawn:
            result = await docker_backend.execute(WS, "src/a.ts", OperationKind.READ)

        assert result.output == "hello"
        args = spawn.call_args.args
        assert args == ("docker", "exec", "-w", "/app/workspace/proj", "c0ffee", "cat", "--", "src/a.ts")

    @pytest.mark.asyncio
    async def test_write_sends_content_on_stdin(self, docker_backend):
        proc = _proc()
        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=proc)) as spawn:
            result = await docker_backend.execute(WS, "src/a.ts", OperationKind.WRITE, content="let x = 1;")

        assert result.ok
        assert result.output == "Written 10 bytes to src/a.ts"
        args = spawn.call_args.args
        assert args[:3] == ("docker", "exec", "-i")
        assert args[-1] == "src/a.ts"
        proc.communicate.assert_awaited_once_with(input=b"let x = 1;")

    @pytest.mark.asyncio
    async def test_list_splits_lines(self, docker_backend):
        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=_proc(b"app/\nindex.ts\n"))):
            result = await docker_backend.execute(WS, "src", OperationKind.LIST)
        assert result.output == ["app/", "index.ts"]

    @pytest.mark.asyncio
    async def test_recursive_list_relative_to_target(self, docker_backend):
        raw = b"src/b.ts\nsrc/app/a.ts\n"
        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=_proc(raw))) as spawn:
            result = await docker_backend.execute(WS, "src", OperationKind.LIST, recursive=True)
        assert result.output == ["app/a.ts", "b.ts"]
        assert "find" in spawn.call_args.args

    @pytest.mark.asyncio
    async def test_run_failure(self, docker_backend):
        with patch(
            "asyncio.create_subprocess_exec",
            AsyncMock(return_value=_proc(b"partial", b"npm ERR!", returncode=1)),
        ):
            result = await docker_backend.execute(WS, "npm test", OperationKind.RUN)
        assert not result.ok
        assert result.exit_code == 1
        assert result.error == "exit=1: npm ERR!"
        assert result.output == "partial"

    @pytest.mark.asyncio
    async def test_missing_docker_binary(self, docker_backend):
        with patch("asyncio.create_subprocess_exec", AsyncMock(side_effect=FileNotFoundError())):
            result = await docker_backend.execute(WS, "ls", OperationKind.RUN)
        assert not result.ok
        assert "not found" in result.error

    @pytest.mark.asyncio
    async def test_timeout_kills_process(self, docker_backend):
        proc = _proc()

        async def hang(input=None):
            await asyncio.sleep(5)

        proc.communicate = hang
        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=proc)):
            result = await docker_backend.execute(WS, "sleep 100", OperationKind.RUN, timeout=0.05)
        assert not result.ok
        proc.kill.assert_called_once()

    @pytest.mark.asyncio
    async def test_cancellation_kills_process(self, docker_backend):
        proc = _proc()
        started = asyncio.Event()

        async def hang(input=None):
            started.set()
            await asyncio.sleep(5)

        proc.communicate = hang
        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=proc)):
            task = asyncio.create_task(docker_backend.execute(WS, "sleep 100", OperationKind.RUN))
            await started.wait()
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
        proc.kill.assert_called_once()
        proc.wait.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unknown_workspace(self, docker_backend):
        result = await docker_backend.execute("nope", "ls", OperationKind.RUN)
        assert "Unknown workspace" in result.error

    def test_tuple_targets(self):
        backend = DockerExecutionBackend({WS: ("cid", "/w")})
        assert backend._containers[WS] == ContainerTarget("cid", "/w")

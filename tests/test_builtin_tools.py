"""Tests for the built-in sandbox tools against a local workspace.

Every call goes through a strict ToolRegistry, so these also verify
that validation happens before the backend is touched.
"""

import json
from unittest.mock import AsyncMock

import pytest

from sandloop.backends.base import BackendResult, OperationKind
from sandloop.tools.builtin import SANDBOX_TOOL_SCHEMAS, build_sandbox_tools
from sandloop.tools.registry import ToolRegistry


@pytest.fixture
def registry(local_policy, local_backend):
    return ToolRegistry.strict(local_policy, local_backend)


class TestReadWrite:
    @pytest.mark.asyncio
    async def test_read_file(self, registry):
        result = await registry.execute("read_file", {"file_path": "src/app/page.tsx"})
        assert result.success
        assert "export default" in result.data

    @pytest.mark.asyncio
    async def test_read_missing_file(self, registry):
        result = await registry.execute("read_file", {"file_path": "nope.txt"})
        assert not result.success
        assert result.error == "execution_error"
        assert "File not found" in result.message

    @pytest.mark.asyncio
    async def test_write_then_read(self, registry, workspace):
        written = await registry.execute("write_file", {"file_path": "src/new/util.ts", "content": "export {}\n"})
        assert written.success
        assert written.data == {"path": "src/new/util.ts", "bytes": 10}
        assert (workspace / "src" / "new" / "util.ts").read_text() == "export {}\n"

        read = await registry.execute("read_file", {"file_path": "src/new/util.ts"})
        assert read.data == "export {}\n"

    @pytest.mark.asyncio
    async def test_absolute_path_inside_root(self, registry, workspace):
        result = await registry.execute("read_file", {"file_path": str(workspace / "README.md")})
        assert result.success
        assert result.data == "# proj\n"


@pytest.mark.adversarial
class TestRejectedBeforeBackend:
    @pytest.mark.asyncio
    async def test_traversal_write_does_not_touch_disk(self, registry, workspace):
        result = await registry.execute("write_file", {"file_path": "../escape.txt", "content": "x"})
        assert result.error == "validation_error"
        assert not (workspace.parent / "escape.txt").exists()

    @pytest.mark.asyncio
    async def test_env_file_denied(self, registry):
        result = await registry.execute("read_file", {"file_path": ".env"})
        assert result.error == "validation_error"
        assert "denied" in result.message

    @pytest.mark.asyncio
    async def test_backend_not_called_on_rejection(self, local_policy):
        backend = AsyncMock()
        registry = ToolRegistry.strict(local_policy, backend)
        result = await registry.execute("run_command", {"command": "sudo rm -rf /"})
        assert result.error == "validation_error"
        backend.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_backend_receives_relative_path(self, local_policy):
        backend = AsyncMock()
        backend.execute.return_value = BackendResult.success("data")
        registry = ToolRegistry.strict(local_policy, backend)

        await registry.execute("read_file", {"file_path": f"{local_policy.sandbox_root}/src/x.ts"})
        backend.execute.assert_awaited_once_with(
            local_policy.authorized_workspace_id, "src/x.ts", OperationKind.READ
        )


class TestListing:
    @pytest.mark.asyncio
    async def test_list_root_default(self, registry):
        result = await registry.execute("list_directory", {})
        assert result.success
        assert result.data == [".env", "README.md", "package.json", "src/"]

    @pytest.mark.asyncio
    async def test_list_null_dir_uses_default(self, registry):
        result = await registry.execute("list_directory", {"dir_path": None})
        assert result.success
        assert "src/" in result.data

    @pytest.mark.asyncio
    async def test_list_subdirectory(self, registry):
        result = await registry.execute("list_directory", {"dir_path": "src/app"})
        assert result.data == ["page.tsx"]

    @pytest.mark.asyncio
    async def test_find_files_by_glob(self, registry):
        result = await registry.execute("find_files", {"pattern": "*.tsx"})
        assert result.success
        assert result.data == ["src/app/page.tsx"]

    @pytest.mark.asyncio
    async def test_find_files_by_substring(self, registry):
        result = await registry.execute("find_files", {"pattern": "READ"})
        assert result.data == ["README.md"]

    @pytest.mark.asyncio
    async def test_find_files_skips_dependency_dirs(self, registry, workspace):
        (workspace / "node_modules" / "lib").mkdir(parents=True)
        (workspace / "node_modules" / "lib" / "index.tsx").write_text("")
        result = await registry.execute("find_files", {"pattern": "*.tsx"})
        assert result.data == ["src/app/page.tsx"]


class TestProjectInfo:
    @pytest.mark.asyncio
    async def test_reads_package_json(self, registry, workspace, local_policy):
        result = await registry.execute("get_project_info", {})
        assert result.success
        assert result.data["name"] == "proj"
        assert result.data["version"] == "1.2.3"
        assert result.data["working_directory"] == local_policy.sandbox_root
        assert result.data["workspace_id"] == local_policy.authorized_workspace_id

    @pytest.mark.asyncio
    async def test_without_package_json(self, registry, workspace):
        (workspace / "package.json").unlink()
        result = await registry.execute("get_project_info", {})
        assert result.success
        assert result.data["name"] == "proj"
        assert "version" not in result.data


class TestRunCommand:
    @pytest.mark.asyncio
    async def test_runs_in_root(self, registry):
        result = await registry.execute("run_command", {"command": "ls"})
        assert result.success
        assert "README.md" in result.data["output"]
        assert result.data["exit_code"] == 0

    @pytest.mark.asyncio
    async def test_non_zero_exit(self, registry):
        result = await registry.execute("run_command", {"command": "ls does-not-exist"})
        assert not result.success
        assert result.error == "execution_error"
        assert result.data["exit_code"] != 0


class TestSchemas:
    def test_table_matches_built_tools(self, local_policy, local_backend):
        tools = build_sandbox_tools(local_policy, local_backend)
        assert [t.schema for t in tools] == list(SANDBOX_TOOL_SCHEMAS)

    def test_only_project_info_is_unchecked(self, local_policy, local_backend):
        unchecked = [t.name for t in build_sandbox_tools(local_policy, local_backend) if not t.touches_sandbox]
        assert unchecked == ["get_project_info"]

    def test_wire_schemas_serialize(self):
        payload = json.dumps([s.to_wire() for s in SANDBOX_TOOL_SCHEMAS])
        assert '"read_file"' in payload

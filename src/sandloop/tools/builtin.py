"""Built-in sandbox tools: the fixed table behind strict registries.

Six tools, all operating on the session's workspace through the
ExecutionBackend:
- read_file / write_file / list_directory / find_files: path arguments
  validated by the registry, handed to the backend root-relative
- get_project_info: reads package.json from the workspace root
- run_command: command argument checked against the command denylist

Writes and commands are never retried here; the model must re-issue them.
"""

from __future__ import annotations

import json
from fnmatch import fnmatchcase
from typing import Any

from sandloop.backends.base import ExecutionBackend, OperationKind
from sandloop.core.models import SandboxPolicy, ToolParameters, ToolResult, ToolSchema
from sandloop.tools.registry import RegisteredTool

READ_FILE_SCHEMA = ToolSchema(
    name="read_file",
    description="Read the contents of a file in the project workspace.",
    parameters=ToolParameters(
        properties={
            "file_path": {
                "type": "string",
                "description": "Path of the file, relative to the project root",
            },
        },
        required=["file_path"],
    ),
)

WRITE_FILE_SCHEMA = ToolSchema(
    name="write_file",
    description=(
        "Write content to a file in the project workspace. "
        "Creates parent directories if needed and replaces existing content."
    ),
    parameters=ToolParameters(
        properties={
            "file_path": {
                "type": "string",
                "description": "Path of the file, relative to the project root",
            },
            "content": {
                "type": "string",
                "description": "Full content to write to the file",
            },
        },
        required=["file_path", "content"],
    ),
)

LIST_DIRECTORY_SCHEMA = ToolSchema(
    name="list_directory",
    description="List the entries of a directory in the project workspace. Directories end with '/'.",
    parameters=ToolParameters(
        properties={
            "dir_path": {
                "type": ["string", "null"],
                "description": "Directory to list, relative to the project root",
                "default": ".",
            },
        },
    ),
)

FIND_FILES_SCHEMA = ToolSchema(
    name="find_files",
    description="Search the project workspace recursively for files whose path matches a pattern (wildcards supported).",
    parameters=ToolParameters(
        properties={
            "pattern": {
                "type": "string",
                "description": "File name or glob pattern, e.g. 'page.tsx' or '*.py'",
            },
            "search_path": {
                "type": ["string", "null"],
                "description": "Directory to search in, relative to the project root",
                "default": ".",
            },
        },
        required=["pattern"],
    ),
)

GET_PROJECT_INFO_SCHEMA = ToolSchema(
    name="get_project_info",
    description="Get basic information about the project: name, working directory and package.json fields.",
    parameters=ToolParameters(),
)

RUN_COMMAND_SCHEMA = ToolSchema(
    name="run_command",
    description=(
        "Run a shell command in the project root and return its output. "
        "Privileged, destructive and network-listening commands are blocked."
    ),
    parameters=ToolParameters(
        properties={
            "command": {
                "type": "string",
                "description": "The shell command to run",
            },
        },
        required=["command"],
    ),
)

SANDBOX_TOOL_SCHEMAS: tuple[ToolSchema, ...] = (
    READ_FILE_SCHEMA,
    WRITE_FILE_SCHEMA,
    LIST_DIRECTORY_SCHEMA,
    FIND_FILES_SCHEMA,
    GET_PROJECT_INFO_SCHEMA,
    RUN_COMMAND_SCHEMA,
)


def build_sandbox_tools(policy: SandboxPolicy, backend: ExecutionBackend) -> list[RegisteredTool]:
    """Create the strict tool table bound to one policy and backend."""
    workspace_id = policy.authorized_workspace_id

    async def read_file(file_path: str) -> ToolResult:
        result = await backend.execute(workspace_id, file_path, OperationKind.READ)
        result.raise_for_error("read_file")
        return ToolResult.ok(data=result.output, message=f"Read {file_path}")

    async def write_file(file_path: str, content: str) -> ToolResult:
        result = await backend.execute(workspace_id, file_path, OperationKind.WRITE, content=content)
        result.raise_for_error("write_file")
        return ToolResult.ok(data={"path": file_path, "bytes": len(content.encode("utf-8"))}, message=str(result.output))

    async def list_directory(dir_path: str = ".") -> ToolResult:
        result = await backend.execute(workspace_id, dir_path, OperationKind.LIST)
        result.raise_for_error("list_directory")
        entries = list(result.output) if isinstance(result.output, list) else str(result.output).splitlines()
        return ToolResult.ok(data=entries, message=f"{len(entries)} entries in {dir_path}")

    async def find_files(pattern: str, search_path: str = ".") -> ToolResult:
        result = await backend.execute(workspace_id, search_path, OperationKind.LIST, recursive=True)
        result.raise_for_error("find_files")
        files = list(result.output) if isinstance(result.output, list) else str(result.output).splitlines()
        matched = [f for f in files if _matches(f, pattern)]
        return ToolResult.ok(data=matched, message=f"Found {len(matched)} files matching '{pattern}'")

    async def get_project_info() -> ToolResult:
        info: dict[str, Any] = {
            "name": policy.sandbox_root.rsplit("/", 1)[-1],
            "working_directory": policy.sandbox_root,
            "workspace_id": workspace_id,
        }
        package = await backend.execute(workspace_id, "package.json", OperationKind.READ)
        if package.ok:
            try:
                manifest = json.loads(str(package.output))
            except json.JSONDecodeError:
                manifest = None
            if isinstance(manifest, dict):
                info.update({k: v for k, v in manifest.items() if k not in ("working_directory", "workspace_id")})
        return ToolResult.ok(data=info, message="Project information collected")

    async def run_command(command: str) -> ToolResult:
        result = await backend.execute(workspace_id, command, OperationKind.RUN)
        if not result.ok:
            return ToolResult.fail(
                "execution_error",
                result.error or "command failed",
                data={"exit_code": result.exit_code, "output": result.output},
            )
        return ToolResult.ok(data={"exit_code": result.exit_code, "output": result.output})

    return [
        RegisteredTool(READ_FILE_SCHEMA, read_file, path_arguments=("file_path",)),
        RegisteredTool(WRITE_FILE_SCHEMA, write_file, path_arguments=("file_path",)),
        RegisteredTool(LIST_DIRECTORY_SCHEMA, list_directory, path_arguments=("dir_path",)),
        RegisteredTool(FIND_FILES_SCHEMA, find_files, path_arguments=("search_path",)),
        RegisteredTool(GET_PROJECT_INFO_SCHEMA, get_project_info),
        RegisteredTool(RUN_COMMAND_SCHEMA, run_command, command_arguments=("command",)),
    ]


def _matches(path: str, pattern: str) -> bool:
    name = path.rsplit("/", 1)[-1]
    return pattern in path or fnmatchcase(name, pattern) or fnmatchcase(path, pattern)

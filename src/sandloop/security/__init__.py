"""
Sandloop Security

Pure path, command and workspace-binding checks parameterized by a
single SandboxPolicy.
"""

from sandloop.security.policy import (
    DEFAULT_COMMAND_DENYLIST,
    DEFAULT_PATH_DENYLIST,
    build_policy,
    project_sandbox_root,
)
from sandloop.security.validator import (
    validate_command,
    validate_path,
    validate_workspace_binding,
)

__all__ = [
    "DEFAULT_COMMAND_DENYLIST",
    "DEFAULT_PATH_DENYLIST",
    "build_policy",
    "project_sandbox_root",
    "validate_command",
    "validate_path",
    "validate_workspace_binding",
]

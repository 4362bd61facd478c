"""
Sandloop Tool System

Every tool call from the model goes through the registry:

    Model → AgentController → ToolRegistry → SecurityValidator → handler → ExecutionBackend

Components:
- ToolRegistry: schemas + handlers, argument validation, fault wrapping
- RegistryMode: OPEN (runtime registration) or STRICT (fixed table)
- RegisteredTool: schema + handler + the arguments to validate
- Built-in tools: read_file, write_file, list_directory, find_files,
  get_project_info, run_command
"""

from sandloop.tools.registry import RegisteredTool, RegistryMode, ToolRegistry
from sandloop.tools.schema import validate_arguments

__all__ = [
    "RegisteredTool",
    "RegistryMode",
    "ToolRegistry",
    "validate_arguments",
]

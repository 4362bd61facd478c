"""
Sandloop: Sandboxed Tool-Calling Agent Loop

Usage:
    from sandloop import (
        AgentController, AgentSession, LocalExecutionBackend,
        ToolRegistry, build_policy, create_client, run_agent,
    )

    policy = build_policy("/app/workspace/my_app", workspace_id="ws-1")
    backend = LocalExecutionBackend({"ws-1": "/app/workspace/my_app"})
    registry = ToolRegistry.strict(policy, backend)

    controller = AgentController(registry, create_client("claude"))
    session = AgentSession.create(policy)
    result = await run_agent(controller, session, "Add a README")
"""

from sandloop.agent import AgentController, AgentSession, default_system_prompt, run_agent
from sandloop.backends import (
    BackendResult,
    ContainerTarget,
    DockerExecutionBackend,
    ExecutionBackend,
    LocalExecutionBackend,
    OperationKind,
)
from sandloop.config import AgentConfig
from sandloop.core.models import (
    AgentRunResult,
    AgentState,
    AssistantMessage,
    FailureReason,
    SandboxPolicy,
    SystemMessage,
    ToolCallRequest,
    ToolErrorCode,
    ToolMessage,
    ToolResult,
    ToolSchema,
    TraceEvent,
    UserMessage,
    ValidationResult,
)
from sandloop.exceptions import (
    BudgetExceededError,
    DuplicateToolError,
    ExecutionError,
    ModelClientError,
    PolicyError,
    SandloopError,
    StrictRegistryError,
    ToolRegistrationError,
    ToolTimeoutError,
    ValidationError,
)
from sandloop.providers import ModelClient, ModelResponse, ProviderConfig, create_client
from sandloop.security import build_policy, validate_command, validate_path, validate_workspace_binding
from sandloop.tools import RegisteredTool, RegistryMode, ToolRegistry

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Agent
    "AgentController",
    "AgentSession",
    "default_system_prompt",
    "run_agent",
    # Config
    "AgentConfig",
    # Models
    "AgentRunResult",
    "AgentState",
    "AssistantMessage",
    "FailureReason",
    "SandboxPolicy",
    "SystemMessage",
    "ToolCallRequest",
    "ToolErrorCode",
    "ToolMessage",
    "ToolResult",
    "ToolSchema",
    "TraceEvent",
    "UserMessage",
    "ValidationResult",
    # Security
    "build_policy",
    "validate_command",
    "validate_path",
    "validate_workspace_binding",
    # Tools
    "RegisteredTool",
    "RegistryMode",
    "ToolRegistry",
    # Backends
    "BackendResult",
    "ContainerTarget",
    "DockerExecutionBackend",
    "ExecutionBackend",
    "LocalExecutionBackend",
    "OperationKind",
    # Providers
    "ModelClient",
    "ModelResponse",
    "ProviderConfig",
    "create_client",
    # Exceptions
    "BudgetExceededError",
    "DuplicateToolError",
    "ExecutionError",
    "ModelClientError",
    "PolicyError",
    "SandloopError",
    "StrictRegistryError",
    "ToolRegistrationError",
    "ToolTimeoutError",
    "ValidationError",
]

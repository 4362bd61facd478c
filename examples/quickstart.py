"""Sandloop quickstart: one sandboxed agent turn against a local project."""

import asyncio
import os
import sys

from sandloop import (
    AgentController,
    AgentSession,
    LocalExecutionBackend,
    ToolRegistry,
    build_policy,
    create_client,
    run_agent,
)

root = os.path.realpath(sys.argv[1] if len(sys.argv) > 1 else ".")
policy = build_policy(root, "quickstart")
registry = ToolRegistry.strict(policy, LocalExecutionBackend({"quickstart": root}))
controller = AgentController(registry, create_client("claude"))
session = AgentSession.create(policy)

result = asyncio.run(run_agent(controller, session, "Summarize what this project does"))

print(f"Success: {result.success} ({result.tool_calls_executed} tool calls)")
print(f"\n{result.message}")

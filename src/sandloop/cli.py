"""
Sandloop CLI

Command-line interface for running the agent loop against a local
workspace and for checking paths and commands against the policy.

Commands:
    sandloop run "message" --root DIR   Run one turn in a local workspace
    sandloop tools                      Print the sandbox tool schemas
    sandloop check-path PATH --root DIR Validate a path
    sandloop check-command CMD          Validate a command

Usage:
    pip install sandloop
    sandloop run "List the files in this project" --root ./my-app
"""

from __future__ import annotations

import asyncio
import json
import os
import sys

import click

from sandloop import __version__
from sandloop.logging import configure_logging

DEFAULT_WORKSPACE_ID = "local"


@click.group()
@click.version_option(version=__version__, prog_name="sandloop")
def cli() -> None:
    """Sandloop: sandboxed tool-calling agent loop"""
    pass


@cli.command()
@click.argument("message")
@click.option(
    "--root",
    required=True,
    type=click.Path(exists=True, file_okay=False, dir_okay=True),
    help="Project directory the agent is confined to",
)
@click.option("--workspace", default=DEFAULT_WORKSPACE_ID, show_default=True, help="Workspace id")
@click.option(
    "--provider",
    type=click.Choice(["claude", "openai"], case_sensitive=False),
    default="claude",
    show_default=True,
    help="Model provider",
)
@click.option("--model", default=None, help="Model name override")
@click.option("--max-tool-calls", type=int, default=None, help="Tool-call budget for this turn")
@click.option("--json-output", is_flag=True, help="Output as JSON")
@click.option("--log-level", default="WARNING", show_default=True, help="Log level")
def run(
    message: str,
    root: str,
    workspace: str,
    provider: str,
    model: str | None,
    max_tool_calls: int | None,
    json_output: bool,
    log_level: str,
) -> None:
    """Run one agent turn against a local workspace."""
    from sandloop.agent import AgentController, AgentSession, run_agent
    from sandloop.backends import LocalExecutionBackend
    from sandloop.config import AgentConfig
    from sandloop.providers import create_client
    from sandloop.security import build_policy
    from sandloop.tools import ToolRegistry

    configure_logging(level=log_level, json_output=json_output)

    sandbox_root = os.path.realpath(root)
    policy = build_policy(sandbox_root, workspace)
    backend = LocalExecutionBackend({workspace: sandbox_root})
    registry = ToolRegistry.strict(policy, backend)
    config = AgentConfig.from_env(max_tool_calls=max_tool_calls)

    try:
        client = create_client(provider, model=model)
    except ImportError as e:
        raise click.ClickException(str(e)) from e

    controller = AgentController(registry, client)
    session = AgentSession.create(policy, config=config)

    if not json_output:
        _print_header("Sandloop")
        click.echo(f"  Root: {sandbox_root}")
        click.echo(f"  Workspace: {workspace}")
        click.echo(f"  Provider: {client.name} ({client.model})")
        click.echo(f"  Budget: {config.max_tool_calls} tool calls, {config.max_retries} retries")
        click.echo()

    try:
        result = asyncio.run(run_agent(controller, session, message))
    except KeyboardInterrupt:
        click.echo("\n  Run interrupted.")
        sys.exit(1)

    if json_output:
        payload = result.model_dump(mode="json")
        payload["traces"] = [t.model_dump(mode="json") for t in session.traces]
        click.echo(json.dumps(payload, indent=2, default=str))
    else:
        for t in session.traces:
            click.echo(f"  [{t.event_type:16s}] {t.description}")
        click.echo()
        _print_header("Result")
        click.echo(f"  Status: {'SUCCESS' if result.success else 'FAILED'}")
        if result.failure_reason:
            click.echo(f"  Failure: {result.failure_reason.value}")
        click.echo(f"  Tool calls: {result.tool_calls_executed}")
        click.echo()
        click.echo(result.message)

    if not result.success:
        sys.exit(1)


@cli.command()
def tools() -> None:
    """Print the sandbox tool schemas in wire format."""
    from sandloop.tools.builtin import SANDBOX_TOOL_SCHEMAS

    click.echo(json.dumps([s.to_wire() for s in SANDBOX_TOOL_SCHEMAS], indent=2))


@cli.command("check-path")
@click.argument("path")
@click.option("--root", required=True, help="Absolute sandbox root")
@click.option("--workspace", default=DEFAULT_WORKSPACE_ID, show_default=True, help="Workspace id")
def check_path(path: str, root: str, workspace: str) -> None:
    """Validate PATH against the default sandbox policy."""
    from sandloop.exceptions import PolicyError
    from sandloop.security import build_policy, validate_path

    try:
        policy = build_policy(root, workspace)
    except PolicyError as e:
        raise click.BadParameter(str(e), param_hint="--root") from e

    result = validate_path(path, policy)
    click.echo(json.dumps(result.model_dump(mode="json", exclude_none=True), indent=2))
    if not result.is_valid:
        sys.exit(1)


@cli.command("check-command")
@click.argument("command")
def check_command(command: str) -> None:
    """Validate COMMAND against the default command denylist."""
    from sandloop.security import build_policy, validate_command

    # command checks do not depend on the root
    policy = build_policy("/workspace", DEFAULT_WORKSPACE_ID)
    result = validate_command(command, policy)
    click.echo(json.dumps(result.model_dump(mode="json", exclude_none=True), indent=2))
    if not result.is_valid:
        sys.exit(1)


def _print_header(title: str) -> None:
    click.echo(f"\n{'=' * 60}")
    click.echo(f"  {title}")
    click.echo(f"{'=' * 60}")


if __name__ == "__main__":
    cli()

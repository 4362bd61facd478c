"""
Sandloop Agent Controller

The tool-calling loop:

    AWAITING_MODEL → EXECUTING_TOOLS → AWAITING_MODEL → … → DONE | FAILED

Each iteration sends the full history and the registry's tool schemas
to the model client. A response without tool calls ends the run in
DONE. Otherwise the tool calls are dispatched one at a time, in order,
through the ToolRegistry, and each result is appended to the history
as a tool message for the model to observe on the next iteration.

Budgets (per user turn):
- max_tool_calls: a call that would exceed it is never dispatched
- max_retries: more than this many consecutive tool failures ends the run
- per_call_timeout: each dispatch has its own deadline
- max_iterations / max_wall_clock_seconds: bound the loop as a whole

Nothing escapes run(): every outcome is an AgentRunResult.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Sequence

from sandloop.agent.prompts import default_system_prompt
from sandloop.agent.session import AgentSession
from sandloop.core.models import (
    AgentRunResult,
    AgentState,
    AssistantMessage,
    FailureReason,
    SystemMessage,
    ToolCallRequest,
    ToolErrorCode,
    ToolMessage,
    ToolResult,
    UserMessage,
    ValidationResult,
)
from sandloop.exceptions import BudgetExceededError, ModelClientError
from sandloop.logging import get_logger, session_logger
from sandloop.providers.base import ModelClient, summarize_arguments
from sandloop.security.validator import validate_workspace_binding
from sandloop.tools.registry import ToolRegistry

logger = get_logger("sandloop.agent")


class AgentController:
    """Drives one session's loop against a registry and a model client.

    The controller holds no per-conversation state; the same instance
    can serve many sessions concurrently. A single session must not be
    run concurrently with itself.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        client: ModelClient,
        *,
        system_prompt: str | None = None,
    ):
        self._registry = registry
        self._client = client
        self._system_prompt = system_prompt

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    @property
    def client(self) -> ModelClient:
        return self._client

    @property
    def system_prompt(self) -> str:
        if self._system_prompt is not None:
            return self._system_prompt
        return default_system_prompt(self._registry.tool_names, self._registry.policy.sandbox_root)

    async def run(
        self,
        session: AgentSession,
        user_message: str,
        cancel_event: asyncio.Event | None = None,
    ) -> AgentRunResult:
        """Run one user turn to completion.

        Args:
            session: The conversation to continue. Its counters are reset,
                its history is extended.
            user_message: The user's input for this turn.
            cancel_event: Optional signal checked before every model call
                and every tool dispatch. A dispatch already in flight is
                allowed to finish.
        """
        config = session.config
        session.tool_call_count = 0
        session.consecutive_failures = 0
        session.state = AgentState.AWAITING_MODEL
        log = session_logger(logger, session.id, session.workspace_id)

        session.record("RUN_STARTED", f"Run started: {user_message[:60]}", history_length=len(session.history))
        log.info("Agent run started")

        binding = validate_workspace_binding(session.policy, session.workspace_id)
        if binding.is_valid and session.policy != self._registry.policy:
            binding = ValidationResult.reject(
                f"Tool registry is bound to workspace '{self._registry.policy.authorized_workspace_id}' "
                f"at {self._registry.policy.sandbox_root}, not to this session's sandbox"
            )
        if not binding.is_valid:
            return self._fail(session, FailureReason.WORKSPACE_MISMATCH, binding.reason or "Workspace not authorized")

        if not session.history:
            session.history.append(SystemMessage(content=self.system_prompt))
        session.history.append(UserMessage(content=user_message))

        schemas = self._registry.list_schemas()
        deadline = time.monotonic() + config.max_wall_clock_seconds
        iterations = 0

        while True:
            if _is_cancelled(cancel_event):
                return self._fail(session, FailureReason.CANCELLED, "Run cancelled by caller")

            if iterations >= config.max_iterations:
                return self._fail(
                    session,
                    FailureReason.ITERATION_LIMIT,
                    f"Stopped after {iterations} model calls without a final answer "
                    f"({session.tool_call_count} tool calls executed)",
                )

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return self._time_limit(session)

            iterations += 1
            session.state = AgentState.AWAITING_MODEL
            session.record("MODEL_CALLED", f"Model call {iterations}", history_length=len(session.history))
            log.debug(
                f"Calling model (iteration {iterations}, {len(session.history)} messages)",
                extra={"state": session.state.value},
            )

            try:
                response = await asyncio.wait_for(
                    self._client.create_message(session.history, schemas, tool_choice="auto"),
                    timeout=remaining,
                )
            except TimeoutError:
                return self._time_limit(session)
            except ModelClientError as e:
                return self._fail(session, FailureReason.MODEL_ERROR, f"Model client failed: {e}")
            except Exception as e:
                log.exception("Model client raised an unexpected error")
                return self._fail(session, FailureReason.MODEL_ERROR, f"Model client failed: {type(e).__name__}: {e}")

            session.record(
                "MODEL_RESPONDED",
                f"Model responded with {len(response.tool_calls)} tool call(s)",
                tool_calls=[c.tool_name for c in response.tool_calls],
                input_tokens=response.input_tokens,
                output_tokens=response.output_tokens,
            )

            # Termination is structural: no tool calls means the model is done
            if not response.has_tool_calls:
                content = response.content or ""
                session.history.append(AssistantMessage(content=content))
                session.state = AgentState.DONE
                session.record("RUN_COMPLETED", "Run completed", tool_calls_executed=session.tool_call_count)
                log.info(
                    f"Agent run completed after {session.tool_call_count} tool calls",
                    extra={"state": session.state.value},
                )
                return AgentRunResult(
                    success=True,
                    message=content,
                    tool_calls_executed=session.tool_call_count,
                    state=session.state,
                    session_id=session.id,
                )

            session.state = AgentState.EXECUTING_TOOLS
            calls = response.tool_calls
            session.history.append(AssistantMessage(content=response.content, tool_calls=calls))

            for index, call in enumerate(calls):
                if _is_cancelled(cancel_event):
                    return self._fail(
                        session, FailureReason.CANCELLED, "Run cancelled by caller", pending=calls[index:]
                    )

                if session.tool_call_count >= config.max_tool_calls:
                    budget = BudgetExceededError("Tool call", config.max_tool_calls, session.tool_call_count)
                    return self._fail(
                        session,
                        FailureReason.BUDGET_EXCEEDED,
                        f"{budget}; '{call.tool_name}' was not dispatched",
                        pending=calls[index:],
                    )

                if time.monotonic() >= deadline:
                    return self._time_limit(session, pending=calls[index:])

                session.tool_call_count += 1
                result = await self._dispatch(session, call)
                session.history.append(
                    ToolMessage(tool_call_id=call.id, name=call.tool_name, content=result.to_content())
                )

                if result.success:
                    session.consecutive_failures = 0
                    continue

                session.consecutive_failures += 1
                if session.consecutive_failures > config.max_retries:
                    return self._fail(
                        session,
                        FailureReason.RETRIES_EXHAUSTED,
                        f"Stopped after {session.consecutive_failures} consecutive tool failures. "
                        f"Last failure ({call.tool_name}): {result.message or result.error}",
                        pending=calls[index + 1:],
                    )

    async def _dispatch(self, session: AgentSession, call: ToolCallRequest) -> ToolResult:
        """Execute one tool call under its own deadline. Never raises."""
        timeout = session.config.per_call_timeout
        log = session_logger(logger, session.id, session.workspace_id)
        extra = {"tool_name": call.tool_name, "tool_call_id": call.id}
        session.record(
            "TOOL_DISPATCHED",
            f"Tool '{call.tool_name}' dispatched",
            tool_call_id=call.id,
            arguments=summarize_arguments(call.arguments),
        )
        log.info(f"Dispatching {call.tool_name}({summarize_arguments(call.arguments)})", extra=extra)

        start = time.monotonic()
        if call.argument_error is not None:
            result = ToolResult.fail(
                ToolErrorCode.INVALID_ARGUMENTS,
                f"Invalid arguments for '{call.tool_name}': {call.argument_error}",
            )
        else:
            try:
                result = await asyncio.wait_for(
                    self._registry.execute(call.tool_name, call.arguments),
                    timeout=timeout,
                )
            except TimeoutError:
                result = ToolResult.timeout(call.tool_name, timeout)
        duration_ms = round((time.monotonic() - start) * 1000, 2)

        if result.success:
            session.record(
                "TOOL_COMPLETED",
                f"Tool '{call.tool_name}' succeeded",
                tool_call_id=call.id,
                duration_ms=duration_ms,
            )
        else:
            session.record(
                "TOOL_FAILED",
                f"Tool '{call.tool_name}' failed: {result.error}",
                tool_call_id=call.id,
                error=result.error,
                message=result.message,
                duration_ms=duration_ms,
            )
            log.warning(
                f"Tool {call.tool_name} failed ({result.error}): {result.message}",
                extra={**extra, "duration_ms": duration_ms},
            )
        return result

    def _time_limit(self, session: AgentSession, pending: Sequence[ToolCallRequest] = ()) -> AgentRunResult:
        return self._fail(
            session,
            FailureReason.TIME_LIMIT,
            f"Run exceeded {session.config.max_wall_clock_seconds}s "
            f"({session.tool_call_count} tool calls executed)",
            pending=pending,
        )

    def _fail(
        self,
        session: AgentSession,
        reason: FailureReason,
        message: str,
        pending: Sequence[ToolCallRequest] = (),
    ) -> AgentRunResult:
        """Move the session to FAILED and build the result.

        Tool calls of the current assistant message that were never
        dispatched get a not_executed tool message, so the history stays
        valid for the next turn.
        """
        for call in pending:
            skipped = ToolResult.fail(ToolErrorCode.NOT_EXECUTED, f"Not executed: {reason.value.lower()}")
            session.history.append(
                ToolMessage(tool_call_id=call.id, name=call.tool_name, content=skipped.to_content())
            )

        session.state = AgentState.FAILED
        session.record(
            "RUN_FAILED",
            message,
            failure_reason=reason.value,
            tool_calls_executed=session.tool_call_count,
        )
        session_logger(logger, session.id, session.workspace_id).warning(
            f"Agent run failed: {message}",
            extra={"state": session.state.value, "failure_reason": reason.value},
        )
        return AgentRunResult(
            success=False,
            message=message,
            tool_calls_executed=session.tool_call_count,
            failure_reason=reason,
            state=session.state,
            session_id=session.id,
        )


async def run_agent(
    controller: AgentController,
    session: AgentSession,
    user_message: str,
    cancel_event: asyncio.Event | None = None,
) -> AgentRunResult:
    """Entry point for the chat layer: one user turn, one result."""
    return await controller.run(session, user_message, cancel_event=cancel_event)


def _is_cancelled(cancel_event: asyncio.Event | None) -> bool:
    return cancel_event is not None and cancel_event.is_set()

"""
Sandloop Configuration

Budget settings for one agent session. Values are bounded so a
misconfigured deployment cannot disable the loop's safety limits.

Environment overrides (all optional):
    SANDLOOP_MAX_TOOL_CALLS
    SANDLOOP_MAX_RETRIES
    SANDLOOP_PER_CALL_TIMEOUT
    SANDLOOP_MAX_ITERATIONS
    SANDLOOP_MAX_WALL_CLOCK_SECONDS
"""

from __future__ import annotations

import os

from pydantic import BaseModel, ConfigDict, Field


class AgentConfig(BaseModel):
    """Per-session budget: tool calls, consecutive failures, deadlines."""

    model_config = ConfigDict(frozen=True)

    max_tool_calls: int = Field(default=5, ge=1, le=1000)
    max_retries: int = Field(default=2, ge=0, le=100)
    per_call_timeout: float = Field(default=30.0, gt=0.0, le=600.0)
    max_iterations: int = Field(default=25, ge=1, le=1000)
    max_wall_clock_seconds: float = Field(default=600.0, gt=0.0, le=86400.0)

    @classmethod
    def from_env(cls, prefix: str = "SANDLOOP_", **overrides) -> AgentConfig:
        """Build a config from environment variables, then explicit overrides.

        Unset variables fall back to the field defaults. Invalid values
        raise pydantic's validation error, same as direct construction.
        """
        values: dict[str, str] = {}
        for name in cls.model_fields:
            raw = os.environ.get(f"{prefix}{name.upper()}")
            if raw is not None and raw.strip():
                values[name] = raw.strip()
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

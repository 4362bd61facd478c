"""Tests for AgentConfig defaults, bounds and environment overrides."""

import pydantic
import pytest

from sandloop.config import AgentConfig


class TestDefaults:
    def test_defaults(self):
        config = AgentConfig()
        assert config.max_tool_calls == 5
        assert config.max_retries == 2
        assert config.per_call_timeout == 30.0
        assert config.max_iterations == 25
        assert config.max_wall_clock_seconds == 600.0

    def test_frozen(self):
        config = AgentConfig()
        with pytest.raises(pydantic.ValidationError):
            config.max_tool_calls = 100

    @pytest.mark.parametrize(
        "field,value",
        [
            ("max_tool_calls", 0),
            ("max_retries", -1),
            ("per_call_timeout", 0.0),
            ("max_iterations", 0),
            ("max_wall_clock_seconds", -5.0),
        ],
    )
    def test_bounds(self, field, value):
        with pytest.raises(pydantic.ValidationError):
            AgentConfig(**{field: value})


class TestFromEnv:
    def test_reads_prefixed_variables(self, monkeypatch):
        monkeypatch.setenv("SANDLOOP_MAX_TOOL_CALLS", "12")
        monkeypatch.setenv("SANDLOOP_PER_CALL_TIMEOUT", " 4.5 ")
        config = AgentConfig.from_env()
        assert config.max_tool_calls == 12
        assert config.per_call_timeout == 4.5
        assert config.max_retries == 2

    def test_blank_variable_ignored(self, monkeypatch):
        monkeypatch.setenv("SANDLOOP_MAX_RETRIES", "  ")
        assert AgentConfig.from_env().max_retries == 2

    def test_overrides_win(self, monkeypatch):
        monkeypatch.setenv("SANDLOOP_MAX_TOOL_CALLS", "12")
        assert AgentConfig.from_env(max_tool_calls=3).max_tool_calls == 3

    def test_none_override_ignored(self, monkeypatch):
        monkeypatch.setenv("SANDLOOP_MAX_TOOL_CALLS", "12")
        assert AgentConfig.from_env(max_tool_calls=None).max_tool_calls == 12

    def test_custom_prefix(self, monkeypatch):
        monkeypatch.setenv("AGENT_MAX_ITERATIONS", "7")
        assert AgentConfig.from_env(prefix="AGENT_").max_iterations == 7

    def test_invalid_value_raises(self, monkeypatch):
        monkeypatch.setenv("SANDLOOP_MAX_TOOL_CALLS", "lots")
        with pytest.raises(pydantic.ValidationError):
            AgentConfig.from_env()

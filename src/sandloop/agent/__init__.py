"""
Sandloop Agent

The controller loop and the per-conversation session it drives.
"""

from sandloop.agent.controller import AgentController, run_agent
from sandloop.agent.prompts import default_system_prompt
from sandloop.agent.session import AgentSession

__all__ = [
    "AgentController",
    "AgentSession",
    "default_system_prompt",
    "run_agent",
]

"""Agent core module."""

from nanogate.agent.context import ContextBuilder
from nanogate.agent.loop import ERROR_REPLY_PREFIX, MAX_ITERATIONS_REPLY, AgentLoop

__all__ = ["AgentLoop", "ContextBuilder", "ERROR_REPLY_PREFIX", "MAX_ITERATIONS_REPLY"]

"""Schema package for external and internal contracts."""

from .requests import AgentMode, AgentRequest, AgentRunOptions
from .responses import AgentResponse

__all__ = ["AgentMode", "AgentRequest", "AgentResponse", "AgentRunOptions"]

"""Agent capability, registry and the simulated stand-in."""

from .base import Agent, AgentContext, AgentOutput, AgentTurnMetadata
from .registry import AgentFactory, AgentManager
from .simulated import SimulatedAgent

__all__ = [
	"Agent",
	"AgentContext",
	"AgentFactory",
	"AgentManager",
	"AgentOutput",
	"AgentTurnMetadata",
	"SimulatedAgent",
]

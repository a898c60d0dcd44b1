"""Agent capability: anything that can take a turn in a conversation."""

from dataclasses import dataclass, field
from typing import Any, Optional, Protocol, runtime_checkable

from ..messages import Message
from ..team import AgentLevel, DeliveryMode, SandboxLevel, TeamConfig


@dataclass
class AgentTurnMetadata:
	"""Per-turn facts about the agent and the session it works in."""
	level: Optional[AgentLevel] = None
	mode: DeliveryMode = DeliveryMode.TIME
	sandbox: SandboxLevel = SandboxLevel.GUIDED
	task_summary: str = ""
	task_context: str = ""
	reason: Optional[str] = None
	extra: dict[str, Any] = field(default_factory=dict)


@dataclass
class AgentContext:
	"""Everything an agent sees when it is asked to act."""
	messages: list[Message]
	team: TeamConfig
	project_spec: str
	metadata: AgentTurnMetadata = field(default_factory=AgentTurnMetadata)


@dataclass
class AgentOutput:
	message: Message


@runtime_checkable
class Agent(Protocol):
	"""
	A team member backed by an LLM API, a CLI process, or a stand-in.

	execute() may take as long as the backing call takes. It must resolve
	to exactly one message or raise.
	"""

	id: str
	name: str
	role: str
	model: str

	async def execute(self, context: AgentContext) -> AgentOutput:
		...

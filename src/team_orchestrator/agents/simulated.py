"""Deterministic stand-in agent, used when no real backend is available."""

from ..messages import AuthorType, Message, MessageAuthor, MessageType, now_ms
from ..session import GENERAL_TOPIC_ID
from ..team import TeamMemberConfig
from .base import AgentContext, AgentOutput

MAX_ECHO_LENGTH = 120


def _truncate(text: str, limit: int = MAX_ECHO_LENGTH) -> str:
	if len(text) > limit:
		return f"{text[:limit - 3]}..."
	return text


class SimulatedAgent:
	"""Acknowledges the latest message without calling any model."""

	def __init__(self, config: TeamMemberConfig):
		self.config = config
		self.id = config.id
		self.name = config.name
		self.role = config.role
		self.model = config.model

	@property
	def level(self):
		return self.config.level

	async def execute(self, context: AgentContext) -> AgentOutput:
		last = context.messages[-1] if context.messages else None
		if last is not None:
			acknowledgement = f"Received: {_truncate(last.content_text())}. Will coordinate next steps."
		else:
			acknowledgement = "Starting on the requested work."

		message = Message(
			topic_id=(last.topic_id if last and last.topic_id else GENERAL_TOPIC_ID),
			author=MessageAuthor(id=self.id, name=self.name, role=self.role, type=AuthorType.AGENT),
			timestamp=now_ms(),
			type=MessageType.TEXT,
			content=f"SIMULATED RESPONSE: {acknowledgement}",
		)
		return AgentOutput(message=message)

	def __repr__(self) -> str:
		return f"SimulatedAgent(id={self.id!r}, model={self.model!r})"

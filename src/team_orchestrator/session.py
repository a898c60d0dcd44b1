"""
Session Event Log - append-only per-topic conversation history.

Each topic keeps every event ever appended, in insertion order, plus a
status derived from the event stream:
- the first message moves a pending topic to in_progress
- a message written by a junior-level member moves the topic to review
- a status event sets the status explicitly

Replaying the same events therefore always reproduces the same status.
"""

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Optional, Union

from .messages import HUMAN_AUTHOR_ID, SYSTEM_AUTHOR_ID, AuthorType, Message, MessageAuthor, MessageType, now_ms
from .team import AgentLevel, DeliveryMode, SandboxLevel, TeamConfig
from .tools.base import ToolResult

logger = logging.getLogger(__name__)

GENERAL_TOPIC_ID = "general"
GENERAL_TOPIC_TITLE = "General Discussion"
DEFAULT_RECENT_LIMIT = 15


class EventKind(str, Enum):
	MESSAGE = "message"
	TOOL_CALL = "tool_call"
	TOOL_RESULT = "tool_result"
	HANDOFF = "handoff"
	STATUS = "status"
	HUMAN_INPUT = "human_input"


class TopicStatus(str, Enum):
	PENDING = "pending"
	IN_PROGRESS = "in_progress"
	REVIEW = "review"
	DONE = "done"
	BLOCKED = "blocked"


@dataclass(frozen=True)
class MessageEvent:
	"""An agent (or system) message posted to a topic."""
	kind: ClassVar[EventKind] = EventKind.MESSAGE

	topic_id: str
	author_id: str
	name: str
	role: str
	body: str
	mentions: tuple[str, ...] = ()
	level: Optional[AgentLevel] = None
	message_type: MessageType = MessageType.TEXT
	timestamp: float = field(default_factory=now_ms)

	@classmethod
	def from_message(cls, message: Message, level: Optional[AgentLevel] = None) -> "MessageEvent":
		author = message.author
		return cls(
			topic_id=message.topic_id or GENERAL_TOPIC_ID,
			author_id=author.id if author else SYSTEM_AUTHOR_ID,
			name=author.name if author else "System",
			role=author.role if author else "Orchestrator",
			body=message.content_text(),
			mentions=tuple(message.mentions),
			level=level,
			message_type=message.type or MessageType.TEXT,
			timestamp=message.timestamp if message.timestamp is not None else now_ms(),
		)


@dataclass(frozen=True)
class ToolCallEvent:
	kind: ClassVar[EventKind] = EventKind.TOOL_CALL

	topic_id: str
	agent_id: str
	tool: str
	args: dict[str, Any] = field(default_factory=dict)
	timestamp: float = field(default_factory=now_ms)


@dataclass(frozen=True)
class ToolResultEvent:
	kind: ClassVar[EventKind] = EventKind.TOOL_RESULT

	topic_id: str
	result: ToolResult
	agent_id: Optional[str] = None
	timestamp: float = field(default_factory=now_ms)


@dataclass(frozen=True)
class HandoffEvent:
	kind: ClassVar[EventKind] = EventKind.HANDOFF

	topic_id: str
	from_agent: str
	to_agent: str
	reason: str
	timestamp: float = field(default_factory=now_ms)


@dataclass(frozen=True)
class StatusEvent:
	kind: ClassVar[EventKind] = EventKind.STATUS

	topic_id: str
	status: TopicStatus
	timestamp: float = field(default_factory=now_ms)


@dataclass(frozen=True)
class HumanInputEvent:
	"""Text typed by the human operator."""
	kind: ClassVar[EventKind] = EventKind.HUMAN_INPUT

	topic_id: str
	body: str
	author_id: str = HUMAN_AUTHOR_ID
	name: str = "You"
	role: str = "User"
	timestamp: float = field(default_factory=now_ms)


ConversationEvent = Union[
	MessageEvent,
	ToolCallEvent,
	ToolResultEvent,
	HandoffEvent,
	StatusEvent,
	HumanInputEvent,
]

CONTEXT_EVENT_KINDS = (EventKind.MESSAGE, EventKind.HUMAN_INPUT)


@dataclass
class TopicState:
	id: str
	title: str
	summary: str = ""
	events: list[ConversationEvent] = field(default_factory=list)
	status: TopicStatus = TopicStatus.PENDING
	active_assignee: Optional[str] = None


@dataclass(frozen=True)
class SessionOptions:
	mode: DeliveryMode = DeliveryMode.TIME
	sandbox: SandboxLevel = SandboxLevel.GUIDED


@dataclass
class SessionState:
	id: str
	team: TeamConfig
	spec: str
	options: SessionOptions
	topics: dict[str, TopicState] = field(default_factory=dict)


class SessionManager:
	"""
	In-memory event log for one session.

	Topics are created on first use. The full history is retained; agents
	only ever see a sliding window of it via get_recent_events().
	"""

	def __init__(self, session_id: str, team: TeamConfig, spec: str, options: Optional[SessionOptions] = None):
		self._state = SessionState(
			id=session_id,
			team=team,
			spec=spec,
			options=options or SessionOptions(),
		)
		self.create_topic(GENERAL_TOPIC_ID, GENERAL_TOPIC_TITLE)

	@property
	def session_id(self) -> str:
		return self._state.id

	def get_session_state(self) -> SessionState:
		return self._state

	def create_topic(self, topic_id: str, title: str) -> TopicState:
		"""Create (or reset) a topic."""
		topic = TopicState(id=topic_id, title=title)
		self._state.topics[topic_id] = topic
		logger.debug(f"Created topic {topic_id!r} ({title})")
		return topic

	def get_topic(self, topic_id: str) -> TopicState:
		"""Return a topic, creating it with its id as title if unknown."""
		topic = self._state.topics.get(topic_id)
		if topic is None:
			topic = self.create_topic(topic_id, topic_id)
		return topic

	def list_topics(self) -> list[TopicState]:
		return list(self._state.topics.values())

	def append_event(self, event: ConversationEvent) -> None:
		"""Store an event under its topic and derive the topic status."""
		topic = self.get_topic(event.topic_id or GENERAL_TOPIC_ID)
		topic.events.append(event)

		if event.kind == EventKind.MESSAGE:
			if topic.status == TopicStatus.PENDING:
				topic.status = TopicStatus.IN_PROGRESS
			if event.level == AgentLevel.JUNIOR:
				topic.status = TopicStatus.REVIEW
		elif event.kind == EventKind.STATUS:
			topic.status = event.status

	def update_topic_status(self, topic_id: str, status: TopicStatus) -> StatusEvent:
		"""Set a topic's status explicitly, recording a status event."""
		event = StatusEvent(topic_id=topic_id, status=TopicStatus(status))
		self.append_event(event)
		return event

	def get_recent_events(self, topic_id: str, limit: int = DEFAULT_RECENT_LIMIT) -> list[ConversationEvent]:
		"""The last `limit` events of a topic, oldest first."""
		if limit <= 0:
			return []
		return list(self.get_topic(topic_id).events[-limit:])


def event_to_message(event: ConversationEvent) -> Message:
	"""
	Render any conversation event as a Message.

	Used both for the agent context and for outbound notifications.
	"""
	if event.kind == EventKind.MESSAGE:
		return Message(
			topic_id=event.topic_id,
			author=MessageAuthor(id=event.author_id, name=event.name, role=event.role),
			timestamp=event.timestamp,
			type=event.message_type,
			content=event.body,
			mentions=list(event.mentions),
		)
	if event.kind == EventKind.HUMAN_INPUT:
		return Message(
			topic_id=event.topic_id,
			author=MessageAuthor(id=event.author_id, name=event.name, role=event.role, type=AuthorType.HUMAN),
			timestamp=event.timestamp,
			type=MessageType.TEXT,
			content=event.body,
		)
	if event.kind == EventKind.TOOL_RESULT:
		return Message(
			topic_id=event.topic_id,
			author=MessageAuthor(id=SYSTEM_AUTHOR_ID, name="System", role="Tool"),
			timestamp=event.timestamp,
			type=MessageType.TOOL_OUTPUT,
			content=event.result,
		)

	if event.kind == EventKind.HANDOFF:
		content = f"Handoff from {event.from_agent} to {event.to_agent}: {event.reason}"
		message_type = MessageType.SYSTEM
	elif event.kind == EventKind.STATUS:
		content = f"Status changed to {event.status.value}"
		message_type = MessageType.STATUS_UPDATE
	else:
		content = f"Tool {event.tool} called with args {json.dumps(event.args)}"
		message_type = MessageType.SYSTEM

	return Message(
		topic_id=event.topic_id,
		author=MessageAuthor(id=SYSTEM_AUTHOR_ID, name="System", role="Orchestrator"),
		timestamp=event.timestamp,
		type=message_type,
		content=content,
	)

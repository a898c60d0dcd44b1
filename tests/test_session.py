"""Tests for the session event log."""

from team_orchestrator.messages import MessageType
from team_orchestrator.session import (
	HandoffEvent,
	HumanInputEvent,
	MessageEvent,
	SessionManager,
	StatusEvent,
	ToolCallEvent,
	ToolResultEvent,
	TopicStatus,
	event_to_message,
)
from team_orchestrator.team import AgentLevel
from team_orchestrator.tools import ToolResult

from .helpers import default_team


def _session() -> SessionManager:
	return SessionManager("session-1", default_team(), "spec")


def _message(topic_id: str = "general", level=None, body: str = "hello") -> MessageEvent:
	return MessageEvent(topic_id=topic_id, author_id="dev", name="Dana", role="Developer", body=body, level=level)


class TestTopics:
	"""Tests for topic creation and lookup."""

	def test_general_topic_exists(self):
		"""Every session starts with the general topic."""
		topic = _session().get_topic("general")
		assert topic.title == "General Discussion"
		assert topic.status == TopicStatus.PENDING
		assert topic.events == []

	def test_unknown_topic_is_created(self):
		"""Unknown topics are created on first use with their id as title."""
		session = _session()
		topic = session.get_topic("frontend")
		assert topic.title == "frontend"
		assert [t.id for t in session.list_topics()] == ["general", "frontend"]

	def test_append_creates_topic(self):
		"""Appending to an unknown topic creates it."""
		session = _session()
		session.append_event(_message(topic_id="backend"))
		assert len(session.get_topic("backend").events) == 1


class TestStatusDerivation:
	"""Tests for the append-driven status rule."""

	def test_first_message_starts_topic(self):
		"""A message moves a pending topic to in_progress."""
		session = _session()
		session.append_event(_message())
		assert session.get_topic("general").status == TopicStatus.IN_PROGRESS

	def test_junior_message_requests_review(self):
		"""A junior-authored message moves the topic to review."""
		session = _session()
		session.append_event(_message())
		session.append_event(_message(level=AgentLevel.JUNIOR))
		assert session.get_topic("general").status == TopicStatus.REVIEW

	def test_non_message_events_keep_status(self):
		"""Tool and handoff events do not change the status."""
		session = _session()
		session.append_event(ToolCallEvent(topic_id="general", agent_id="dev", tool="file_system"))
		session.append_event(HandoffEvent(topic_id="general", from_agent="lead", to_agent="dev", reason="x"))
		assert session.get_topic("general").status == TopicStatus.PENDING

	def test_status_event_sets_status(self):
		"""Explicit status events win over the message rule."""
		session = _session()
		session.append_event(_message())
		session.append_event(StatusEvent(topic_id="general", status=TopicStatus.BLOCKED))
		assert session.get_topic("general").status == TopicStatus.BLOCKED
		session.append_event(_message())
		assert session.get_topic("general").status == TopicStatus.BLOCKED

	def test_update_topic_status_records_event(self):
		"""update_topic_status appends a status event."""
		session = _session()
		event = session.update_topic_status("general", TopicStatus.DONE)
		topic = session.get_topic("general")
		assert topic.status == TopicStatus.DONE
		assert topic.events[-1] is event

	def test_replay_reproduces_status(self):
		"""The same event sequence always yields the same status."""
		events = [
			_message(),
			_message(level=AgentLevel.JUNIOR),
			StatusEvent(topic_id="general", status=TopicStatus.IN_PROGRESS),
			_message(level=AgentLevel.SENIOR),
		]
		first, second = _session(), _session()
		for event in events:
			first.append_event(event)
		for event in events:
			second.append_event(event)
		assert first.get_topic("general").status == second.get_topic("general").status == TopicStatus.IN_PROGRESS


class TestRecentEvents:
	"""Tests for get_recent_events."""

	def test_sliding_window_in_order(self):
		"""Only the last `limit` events are returned, oldest first."""
		session = _session()
		for i in range(20):
			session.append_event(_message(body=f"m{i}"))
		recent = session.get_recent_events("general", limit=3)
		assert [e.body for e in recent] == ["m17", "m18", "m19"]
		assert len(session.get_topic("general").events) == 20

	def test_default_limit(self):
		"""The default window is 15 events."""
		session = _session()
		for i in range(20):
			session.append_event(_message(body=f"m{i}"))
		assert len(session.get_recent_events("general")) == 15

	def test_zero_limit(self):
		"""A zero limit returns nothing."""
		session = _session()
		session.append_event(_message())
		assert session.get_recent_events("general", limit=0) == []


class TestEventToMessage:
	"""Tests for rendering events as messages."""

	def test_handoff(self):
		"""Handoffs render as a system sentence."""
		message = event_to_message(HandoffEvent(topic_id="t", from_agent="lead", to_agent="dev", reason="build it"))
		assert message.content == "Handoff from lead to dev: build it"
		assert message.type == MessageType.SYSTEM

	def test_status(self):
		"""Status events render as status updates."""
		message = event_to_message(StatusEvent(topic_id="t", status=TopicStatus.DONE))
		assert message.content == "Status changed to done"
		assert message.type == MessageType.STATUS_UPDATE

	def test_tool_call(self):
		"""Tool calls render with their JSON arguments."""
		message = event_to_message(ToolCallEvent(topic_id="t", agent_id="dev", tool="file_system", args={"path": "a"}))
		assert message.content == 'Tool file_system called with args {"path": "a"}'

	def test_tool_result_keeps_result(self):
		"""Tool results keep the structured result as content."""
		result = ToolResult(tool_name="file_system", success=True, output="ok")
		message = event_to_message(ToolResultEvent(topic_id="t", result=result))
		assert message.content == result
		assert message.type == MessageType.TOOL_OUTPUT

	def test_human_input(self):
		"""Human input renders with a human author."""
		message = event_to_message(HumanInputEvent(topic_id="t", body="go"))
		assert message.author.id == "human"
		assert message.author.type.value == "human"
		assert message.author.name == "You"

"""Shared test fixtures and helpers for team-orchestrator tests."""

import asyncio
from pathlib import Path
from typing import Any, Optional, Union

from team_orchestrator.agents import AgentContext, AgentManager, AgentOutput
from team_orchestrator.config import Config
from team_orchestrator.events import BusEvent, EventBus
from team_orchestrator.messages import Message, MessageAuthor, MessageType
from team_orchestrator.orchestrator import Orchestrator
from team_orchestrator.team import TeamConfig, TeamMemberConfig, normalize_team_config
from team_orchestrator.tools import ToolContext, ToolResult, ToolService

ScriptStep = Union[str, Message, Exception]


class ScriptExhausted(RuntimeError):
	pass


class ScriptedAgent:
	"""Agent that replies with a fixed list of responses and records its contexts."""

	def __init__(self, config: TeamMemberConfig, script: Optional[list[ScriptStep]] = None, delay: float = 0.0):
		self.config = config
		self.id = config.id
		self.name = config.name
		self.role = config.role
		self.model = config.model
		self.script = list(script or [])
		self.delay = delay
		self.contexts: list[AgentContext] = []

	@property
	def calls(self) -> int:
		return len(self.contexts)

	async def execute(self, context: AgentContext) -> AgentOutput:
		self.contexts.append(context)
		if self.delay:
			await asyncio.sleep(self.delay)
		if not self.script:
			raise ScriptExhausted(f"{self.id} has nothing left to say")
		step = self.script.pop(0)
		if isinstance(step, Exception):
			raise step
		if isinstance(step, Message):
			return AgentOutput(message=step)
		return AgentOutput(message=Message(content=step))


class RecordingTool:
	"""Tool that records calls and tracks how many run at once."""

	def __init__(
		self,
		name: str = "file_system",
		success: bool = True,
		output: str = "ok",
		delay: float = 0.0,
		raises: Optional[Exception] = None,
	):
		self.name = name
		self.description = f"Recording tool {name}"
		self.success = success
		self.output = output
		self.delay = delay
		self.raises = raises
		self.calls: list[tuple[dict[str, Any], ToolContext]] = []
		self.running = 0
		self.max_running = 0

	async def execute(self, args: dict[str, Any], context: ToolContext) -> ToolResult:
		self.calls.append((dict(args), context))
		self.running += 1
		self.max_running = max(self.max_running, self.running)
		try:
			if self.delay:
				await asyncio.sleep(self.delay)
			if self.raises is not None:
				raise self.raises
			return ToolResult(
				tool_name=self.name,
				success=self.success,
				output=self.output if self.success else "",
				error=None if self.success else "tool failed",
			)
		finally:
			self.running -= 1


class FakeClock:
	"""Millisecond clock that only moves when told to."""

	def __init__(self, start: float = 1_000_000.0):
		self.now = start

	def __call__(self) -> float:
		return self.now

	def advance(self, ms: float) -> None:
		self.now += ms


def member(
	member_id: str,
	name: Optional[str] = None,
	role: str = "Developer",
	level: Optional[str] = None,
	model: str = "test/scripted",
) -> dict[str, Any]:
	"""Raw roster entry."""
	entry: dict[str, Any] = {"id": member_id, "name": name or member_id.title(), "role": role, "model": model}
	if level:
		entry["level"] = level
	return entry


def make_team(*members: dict[str, Any], **kwargs: Any) -> TeamConfig:
	return normalize_team_config({"teamName": kwargs.pop("team_name", "Test Team"), "members": list(members), **kwargs})


def default_team() -> TeamConfig:
	"""Lead, developer and QA, none of them with a seniority level."""
	return make_team(
		member("lead", name="Alex", role="Team Lead"),
		member("dev", name="Dana", role="Developer"),
		member("qa", name="Quinn", role="QA Engineer"),
	)


def make_agent_manager(scripts: dict[str, list[ScriptStep]], delays: Optional[dict[str, float]] = None) -> tuple[AgentManager, dict[str, ScriptedAgent]]:
	"""AgentManager whose 'test' provider builds ScriptedAgents from the given scripts."""
	created: dict[str, ScriptedAgent] = {}
	delays = delays or {}

	def factory(config: TeamMemberConfig) -> ScriptedAgent:
		agent = ScriptedAgent(config, scripts.get(config.id, []), delay=delays.get(config.id, 0.0))
		created[config.id] = agent
		return agent

	manager = AgentManager()
	manager.register_adapter("test", factory)
	return manager, created


def make_config(tmp_path: Optional[Path] = None, **overrides: Any) -> Config:
	base = tmp_path or Path("/tmp/team-orchestrator-tests")
	config = Config(config_dir=base / "config", data_dir=base / "data")
	for key, value in overrides.items():
		setattr(config, key, value)
	return config


def make_orchestrator(
	scripts: dict[str, list[ScriptStep]],
	team: Optional[TeamConfig] = None,
	tools: Optional[list[Any]] = None,
	delays: Optional[dict[str, float]] = None,
	**config_overrides: Any,
) -> tuple[Orchestrator, dict[str, ScriptedAgent], list[BusEvent]]:
	"""Orchestrator wired with scripted agents; returns it, the agents, and every published event."""
	manager, agents = make_agent_manager(scripts, delays)
	bus = EventBus()
	published: list[BusEvent] = []
	bus.subscribe_all(published.append)
	orchestrator = Orchestrator(
		team or default_team(),
		"Build a tiny CLI.",
		config=make_config(**config_overrides),
		agent_manager=manager,
		tool_service=ToolService(tools or []),
		event_bus=bus,
	)
	return orchestrator, agents, published


def message_bodies(orchestrator: Orchestrator, topic_id: str = "general") -> list[str]:
	"""Bodies of all message events in a topic, oldest first."""
	topic = orchestrator.session.get_topic(topic_id)
	return [e.body for e in topic.events if e.kind.value in ("message", "human_input")]


def system_bodies(orchestrator: Orchestrator, topic_id: str = "general") -> list[str]:
	topic = orchestrator.session.get_topic(topic_id)
	return [e.body for e in topic.events if e.kind.value == "message" and e.author_id == "system"]


def agent_message(agent_id: str, name: str, role: str, content: str, topic_id: Optional[str] = None) -> Message:
	return Message(
		topic_id=topic_id,
		author=MessageAuthor(id=agent_id, name=name, role=role),
		type=MessageType.TEXT,
		content=content,
	)

"""
Orchestrator - the control loop tying scheduler, agents, tools and tasks together.

Each turn:
1. admits the agent (or reschedules the turn if it cannot start)
2. builds the agent's context and invokes it
3. normalizes and sanitizes the reply, extracts @mentions
4. applies the duplicate-output and error-output guardrails
5. records and publishes the message
6. either runs an embedded tool call (role guardrails, resource locks,
   task completion) or routes the conversation via mentions / the lead
7. escalates the author's message for review where the roster says so

Failures inside a turn never escape it: they become system messages in
the same topic.
"""

import asyncio
import logging
import re
from typing import Callable, Optional

from ..agents import Agent, AgentContext, AgentManager, AgentTurnMetadata
from ..config import Config
from ..events import BusEvent, EventBus
from ..messages import (
	AuthorType,
	Message,
	MessageAuthor,
	MessageType,
	now_ms,
	system_message,
)
from ..session import (
	CONTEXT_EVENT_KINDS,
	GENERAL_TOPIC_ID,
	ConversationEvent,
	EventKind,
	HandoffEvent,
	HumanInputEvent,
	MessageEvent,
	SessionManager,
	SessionOptions,
	StatusEvent,
	ToolCallEvent,
	ToolResultEvent,
	TopicStatus,
	event_to_message,
)
from ..team import TeamConfig, TeamConfigError, find_team_lead, is_lead_role
from ..tools import ToolResult, ToolService
from .parallel import ParallelExecutor
from .parsing import ToolCall, ToolCallParseError, extract_mentions, parse_tool_call, sanitize_agent_content
from .scheduler import ScheduledTurn, Scheduler
from .tasks import TaskManager, extract_task_from_message

logger = logging.getLogger(__name__)

_QA_ROLE_PATTERN = re.compile(r"\bqa\b", re.IGNORECASE)
_WRITE_TOOLS = {"file_system": {"write"}}
_FALLBACK_DESCRIPTION_LENGTH = 200


def _truncate(text: str, limit: int) -> str:
	return text if len(text) <= limit else f"{text[:limit - 3]}..."


class Orchestrator:
	"""
	Runs a team session.

	Args:
		team: Normalized team roster
		project_spec: Project specification text handed to every agent
		config: Orchestration settings (defaults when omitted)
		agent_manager: Agent registry; adapters must be registered before initialize()
		tool_service: Tool dispatcher; empty when omitted
		task_manager: Task tracker, e.g. one carrying ticket hooks
		event_bus: Outbound notification channel
		clock: Millisecond clock used for scheduling
	"""

	def __init__(
		self,
		team: TeamConfig,
		project_spec: str,
		config: Optional[Config] = None,
		agent_manager: Optional[AgentManager] = None,
		tool_service: Optional[ToolService] = None,
		task_manager: Optional[TaskManager] = None,
		event_bus: Optional[EventBus] = None,
		clock: Callable[[], float] = now_ms,
	):
		self.team = team
		self.project_spec = project_spec
		self.config = config or Config()
		self.agents = agent_manager or AgentManager()
		self.tools = tool_service or ToolService()
		self.tasks = task_manager or TaskManager()
		self.executor = ParallelExecutor(self.config.max_parallel_agents)
		self.event_bus = event_bus or EventBus()
		self.scheduler = Scheduler(team, clock=clock)
		self.session: Optional[SessionManager] = None

		self._last_agent_messages: dict[str, str] = {}
		self._simulated_fallback: set[str] = set()
		self._awaiting_human_input = False
		self._processing = False
		self._turns_taken = 0
		self._budget_announced = False
		self._in_flight = 0
		self._queue_changed: Optional[asyncio.Condition] = None

	# Session lifecycle

	async def initialize(self, run: bool = True) -> None:
		"""
		Create the agents and the session, greet the team lead and start.

		Raises:
			TeamConfigError: If no agents could be created or there is no lead
		"""
		agents = self.agents.create_team(self.team)
		if not agents:
			raise TeamConfigError("No agents were created from the team configuration.")
		lead = find_team_lead(self.team.members)
		if lead is None:
			raise TeamConfigError("No Team Lead agent found in the team configuration.")

		options = SessionOptions(mode=self.team.mode, sandbox=self.team.sandbox)
		self.session = SessionManager(f"session-{int(now_ms())}", self.team, self.project_spec, options)
		logger.info(
			f"Session {self.session.session_id} started for '{self.team.team_name}' "
			f"({len(agents)} agents, lead={lead.id}, mode={options.mode.value}, sandbox={options.sandbox.value})"
		)

		self._post_system(
			GENERAL_TOPIC_ID,
			f"Project initialized. {lead.name}, please review the specification and plan the work. "
			f"Modes: mode={options.mode.value}, sandbox={options.sandbox.value}. "
			f"Available tools: {self.tools.get_tool_descriptions()}",
		)
		self.scheduler.schedule_initial_turn(GENERAL_TOPIC_ID)
		if run:
			await self.run()

	async def handle_human_input(self, text: str, topic_id: str = GENERAL_TOPIC_ID, run: bool = True) -> None:
		"""Record human input, clear the halt flag and give the lead a turn."""
		self._require_session()
		if not text.strip():
			if not self._awaiting_human_input:
				return
		else:
			self._awaiting_human_input = False

		self._append(HumanInputEvent(topic_id=topic_id, body=text, timestamp=self.scheduler.now()))
		self.scheduler.schedule_human_turn(topic_id)
		if run:
			await self.run()

	def update_topic_status(self, topic_id: str, status: TopicStatus) -> StatusEvent:
		self._require_session()
		event = self.session.update_topic_status(topic_id, status)
		self.event_bus.emit(EventKind.STATUS.value, event_to_message(event))
		return event

	@property
	def awaiting_human_input(self) -> bool:
		return self._awaiting_human_input

	def requires_human_input(self) -> bool:
		return self._awaiting_human_input

	def has_pending_turns(self) -> bool:
		return self.scheduler.has_pending_tasks()

	def subscribe(self, listener: Callable[[BusEvent], None]) -> Callable[[], None]:
		return self.event_bus.subscribe_all(listener)

	# Dispatch loop

	async def run(self) -> None:
		"""
		Drain the scheduler.

		Stops when the queue is empty, the session awaits human input, or
		the turn budget is spent. Calling run() while it is already running
		is a no-op.
		"""
		self._require_session()
		if self._processing:
			return
		self._processing = True
		self._turns_taken = 0
		self._budget_announced = False
		try:
			workers = max(1, self.config.dispatch_workers)
			if workers == 1:
				await self._run_sequential()
			else:
				self._queue_changed = asyncio.Condition()
				await asyncio.gather(*(self._worker() for _ in range(workers)))
		finally:
			self._processing = False
			self._queue_changed = None

	def _budget_spent(self) -> bool:
		limit = self.config.max_turns
		return limit > 0 and self._turns_taken >= limit

	def _announce_budget_spent(self) -> None:
		if self._budget_announced:
			return
		self._budget_announced = True
		logger.warning(f"Turn limit of {self.config.max_turns} reached with {len(self.scheduler)} turn(s) pending")
		turn = self.scheduler.peek()
		self._post_system(
			turn.topic_id if turn else GENERAL_TOPIC_ID,
			f"Turn limit of {self.config.max_turns} reached. Send a message to continue.",
		)

	async def _run_sequential(self) -> None:
		while self.scheduler.has_pending_tasks() and not self._awaiting_human_input:
			if self._budget_spent():
				self._announce_budget_spent()
				return
			turn = self.scheduler.dequeue()
			await self._wait_until_due(turn)
			await self._handle_turn(turn)

	async def _worker(self) -> None:
		cond = self._queue_changed
		while True:
			async with cond:
				while not self.scheduler.has_pending_tasks() and self._in_flight > 0 and not self._awaiting_human_input:
					await cond.wait()
				if not self.scheduler.has_pending_tasks() or self._awaiting_human_input:
					cond.notify_all()
					return
				if self._budget_spent():
					self._announce_budget_spent()
					cond.notify_all()
					return
				turn = self.scheduler.dequeue()
				self._in_flight += 1

			try:
				await self._wait_until_due(turn)
				await self._handle_turn(turn)
			finally:
				async with cond:
					self._in_flight -= 1
					cond.notify_all()

	async def _wait_until_due(self, turn: ScheduledTurn) -> None:
		delay_ms = turn.timestamp - self.scheduler.now()
		if delay_ms > 0:
			await asyncio.sleep(delay_ms / 1000)

	async def _handle_turn(self, turn: ScheduledTurn) -> None:
		agent = self.agents.get_agent(turn.agent_id)
		if agent is None:
			logger.warning(f"Dropping {turn.reason.value} turn for unknown agent {turn.agent_id}")
			return

		if not self.executor.mark_agent_active(agent.id):
			logger.info(f"{agent.id} cannot start ({self.executor.get_status()}), retrying in {self.config.admission_retry_ms}ms")
			self.scheduler.reschedule(turn, self.config.admission_retry_ms)
			return

		self._turns_taken += 1
		logger.debug(f"Dispatching {turn.reason.value} turn for {agent.id} in {turn.topic_id}")
		try:
			await self._run_agent_turn(agent, turn)
		except Exception as e:
			logger.exception(f"Unexpected failure during turn of {agent.id}")
			self._post_system(turn.topic_id, f"Error executing agent {agent.name}: {e}")
		finally:
			self.executor.mark_agent_idle(agent.id)

	# Turn processing

	def build_agent_context(self, agent: Agent, turn: ScheduledTurn) -> AgentContext:
		self._require_session()
		events = self.session.get_recent_events(turn.topic_id, self.config.recent_event_limit)
		messages = [event_to_message(e) for e in events if e.kind in CONTEXT_EVENT_KINDS]
		member = self.team.get_member(agent.id)
		options = self.session.get_session_state().options
		metadata = AgentTurnMetadata(
			level=member.level if member else None,
			mode=options.mode,
			sandbox=options.sandbox,
			task_summary=self.tasks.get_summary(),
			task_context=self.tasks.get_task_context_for_agent(agent.id),
			reason=turn.reason.value,
			extra=dict(turn.metadata),
		)
		return AgentContext(messages=messages, team=self.team, project_spec=self.project_spec, metadata=metadata)

	async def _run_agent_turn(self, agent: Agent, turn: ScheduledTurn) -> None:
		self.event_bus.emit("agent_thinking", {"agent_id": agent.id, "agent_name": agent.name, "topic_id": turn.topic_id})
		context = self.build_agent_context(agent, turn)
		try:
			output = await agent.execute(context)
		except Exception as e:
			logger.exception(f"Agent {agent.id} failed")
			self._post_system(turn.topic_id, f"Error executing agent {agent.name}: {e}")
			return
		await self._process_agent_output(agent, output.message, turn)

	def _normalize_message(self, message: Message, agent: Agent, topic_id: str) -> Message:
		return message.model_copy(update={
			"topic_id": message.topic_id or topic_id,
			"author": message.author or MessageAuthor(id=agent.id, name=agent.name, role=agent.role, type=AuthorType.AGENT),
			"timestamp": message.timestamp or self.scheduler.now(),
			"type": message.type or MessageType.TEXT,
		})

	async def _process_agent_output(self, agent: Agent, message: Message, turn: ScheduledTurn) -> None:
		topic_id = turn.topic_id
		message = self._normalize_message(message, agent, topic_id)
		text = message.content_text()

		if isinstance(message.content, str):
			others = [m.name for m in self.team.members if m.id != agent.id]
			text = sanitize_agent_content(message.content, agent.name, agent.role, others)
			if not text:
				self._handle_repeated_message(agent, "(empty response after sanitization)", topic_id)
				return
			if self._last_agent_messages.get(agent.id) == text:
				self._handle_repeated_message(agent, text, topic_id)
				return
			self._last_agent_messages[agent.id] = text

			if text.lower().startswith("error:"):
				self._handle_agent_error(agent, text, topic_id)
				return

		mentions = extract_mentions(text, self.team.member_ids())
		update = {"mentions": mentions}
		if isinstance(message.content, str):
			update["content"] = text
		message = message.model_copy(update=update)
		self._record_message(message)

		try:
			call = parse_tool_call(text)
		except ToolCallParseError as e:
			logger.info(f"Malformed tool call from {agent.id}: {e}")
			self._post_system(topic_id, f"Error parsing tool arguments for {e.tool_name}: {e}")
			self.scheduler.schedule_followup(topic_id, agent.id)
			return

		if call is not None:
			await self._handle_tool_call(agent, call, turn)
			return

		is_lead = self._is_lead(agent)
		if mentions:
			self.scheduler.schedule_mentions(topic_id, mentions)
			if is_lead:
				await self._assign_tasks(agent, text, mentions, topic_id)
		elif not is_lead:
			self.scheduler.route_back_to_lead(topic_id, agent.id)

		self.scheduler.schedule_review_if_needed(topic_id, agent.id)

	async def _assign_tasks(self, lead: Agent, text: str, mentions: list[str], topic_id: str) -> None:
		assignment = extract_task_from_message(text)
		for agent_id in mentions:
			if agent_id == lead.id:
				continue
			if assignment is not None and assignment.assignee == agent_id:
				description = assignment.description
			else:
				description = f"Follow up on request from {lead.name}: {_truncate(text, _FALLBACK_DESCRIPTION_LENGTH)}"
			task = await self.tasks.create_task(description, assignee=agent_id, assigned_by=lead.id)
			self._append(HandoffEvent(
				topic_id=topic_id,
				from_agent=lead.id,
				to_agent=agent_id,
				reason=task.description,
				timestamp=self.scheduler.now(),
			))

	# Tool calls

	async def _handle_tool_call(self, agent: Agent, call: ToolCall, turn: ScheduledTurn) -> None:
		topic_id = turn.topic_id
		self._append(ToolCallEvent(topic_id=topic_id, agent_id=agent.id, tool=call.name, args=dict(call.args), timestamp=self.scheduler.now()))

		if self._deny_by_role(agent, call, topic_id):
			return

		if not (
			self.executor.can_execute_tool(agent.id, call.name, call.args)
			and self.executor.acquire_tool_locks(agent.id, call.name, call.args)
		):
			logger.info(f"Resource conflict for {agent.id} on {call.name}, retrying in {self.config.lock_retry_ms}ms")
			self._post_system(
				topic_id,
				f"{agent.name}, the resources needed by {call.name} are in use by another agent. Your turn has been rescheduled.",
			)
			# The retry will repeat this call
			self._last_agent_messages.pop(agent.id, None)
			self.scheduler.reschedule(turn, self.config.lock_retry_ms)
			return

		self.event_bus.emit("tool_calling", {"agent_id": agent.id, "agent_name": agent.name, "tool_name": call.name, "args": call.args})
		logger.info(f"{agent.id} calling {call.name} {call.args.get('action', '')}".rstrip())
		try:
			result = await self.tools.execute_tool(call.name, call.args, self._sandbox_level())
		finally:
			self.executor.release_tool_locks(agent.id, call.name, call.args)

		self._append(ToolResultEvent(topic_id=topic_id, result=result, agent_id=agent.id, timestamp=self.scheduler.now()))

		if not result.success:
			self._post_system(
				topic_id,
				f"{agent.name}, the tool execution failed. Please review the error and either retry with "
				f"corrections or report the issue to the Team Lead.",
			)
			self.scheduler.schedule_followup(topic_id, agent.id)
			return

		await self.tasks.complete_tasks_for_agent(agent.id, result=self._describe_result(result))
		if not self._is_lead(agent):
			self._post_system(
				topic_id,
				f"{agent.name}, the tool executed successfully. Please report your completion to the Team Lead "
				f"using @mention and describe what you accomplished.",
			)
			self.scheduler.schedule_followup(topic_id, agent.id)

	def _deny_by_role(self, agent: Agent, call: ToolCall, topic_id: str) -> bool:
		"""Apply role guardrails to a file write. Returns True when the call was denied."""
		if not self._is_file_write(call):
			return False

		if _QA_ROLE_PATTERN.search(agent.role or ""):
			logger.info(f"Denied file write by QA agent {agent.id}")
			self._post_system(
				topic_id,
				f"{agent.name}, QA agents do not modify files. Report your findings to the Team Lead instead.",
			)
			self.scheduler.route_back_to_lead(topic_id, agent.id)
			return True

		if self._is_lead(agent):
			logger.info(f"Denied file write by lead {agent.id}")
			self._post_system(
				topic_id,
				f"{agent.name}, as the lead you should delegate file changes to a team member with an @mention "
				f"instead of writing files yourself.",
			)
			busy = [m.id for m in self.team.members if m.id != agent.id and self.tasks.has_active_task(m.id)]
			if busy:
				self.scheduler.schedule_mentions(topic_id, busy)
				self.scheduler.schedule_followup(topic_id, agent.id)
			return True

		if not self.tasks.has_active_task(agent.id):
			logger.info(f"Denied file write by {agent.id}: no active task")
			self._post_system(
				topic_id,
				f"{agent.name}, you have no assigned task that covers this change. "
				f"Ask the Team Lead for an assignment before modifying files.",
			)
			self.scheduler.route_back_to_lead(topic_id, agent.id)
			return True

		return False

	@staticmethod
	def _is_file_write(call: ToolCall) -> bool:
		actions = _WRITE_TOOLS.get(call.name)
		return actions is not None and str(call.args.get("action", "")).lower() in actions

	@staticmethod
	def _describe_result(result: ToolResult) -> str:
		if result.output:
			return _truncate(result.output, _FALLBACK_DESCRIPTION_LENGTH)
		return f"{result.tool_name} succeeded"

	# Guardrails

	def _handle_repeated_message(self, agent: Agent, content: str, topic_id: str) -> None:
		logger.warning(f"Agent {agent.id} repeated itself; halting until human input")
		self._post_system(
			topic_id,
			f"Agent {agent.name} repeated the same response. Human guidance is required to proceed. "
			f"Last response: {content}",
		)
		self._awaiting_human_input = True

	def _handle_agent_error(self, agent: Agent, content: str, topic_id: str) -> None:
		self._post_system(topic_id, f"Agent {agent.name} encountered an error: {content}. Attempting fallback...")
		if agent.id in self._simulated_fallback:
			logger.warning(f"Agent {agent.id} reported an error again after fallback")
			return

		fallback = self.agents.replace_with_simulated(agent.id)
		if fallback is None:
			return
		self._simulated_fallback.add(agent.id)
		self._last_agent_messages.pop(agent.id, None)
		self._post_system(topic_id, f"Agent {agent.name} has been switched to a simulated mode for this session.")
		self.scheduler.schedule_followup(topic_id, agent.id)

	# Event log and notifications

	def _append(self, event: ConversationEvent) -> None:
		self.session.append_event(event)
		kind = EventKind.MESSAGE if event.kind == EventKind.HUMAN_INPUT else event.kind
		self.event_bus.emit(kind.value, event_to_message(event))

	def _record_message(self, message: Message) -> None:
		member = self.team.get_member(message.author.id) if message.author else None
		self._append(MessageEvent.from_message(message, level=member.level if member else None))

	def _post_system(self, topic_id: str, content: str) -> None:
		self._record_message(system_message(topic_id, content, timestamp=self.scheduler.now()))

	# Helpers

	def _is_lead(self, agent: Agent) -> bool:
		return agent.id == self.scheduler.team_lead_id or is_lead_role(agent.role)

	def _sandbox_level(self):
		return self.session.get_session_state().options.sandbox

	def _require_session(self) -> None:
		if self.session is None:
			raise RuntimeError("Orchestrator.initialize() must be called first")

"""
Task Tracker - task assignments, their states and external hooks.

Tracks who was asked to do what, so agents cannot claim work assigned
to someone else and dependent work waits for its prerequisites.

State machine:
    pending -> in_progress -> completed | failed

No transition ever leads back to pending. Lifecycle hooks (ticket
trackers and similar) run after the local transition and can never undo
it: a hook that raises is logged and otherwise ignored.
"""

import asyncio
import inspect
import logging
import re
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

_TASK_MENTION_PATTERN = re.compile(r"@([a-zA-Z0-9_-]+)\s+(.+)")


class TaskStatus(str, Enum):
	PENDING = "pending"
	IN_PROGRESS = "in_progress"
	COMPLETED = "completed"
	FAILED = "failed"


TERMINAL_STATUSES = (TaskStatus.COMPLETED, TaskStatus.FAILED)


def _now_ms() -> float:
	return time.time() * 1000


def _new_task_id() -> str:
	return f"task-{int(_now_ms())}-{uuid.uuid4().hex[:7]}"


class Task(BaseModel):
	"""A unit of work assigned by one agent to another."""
	model_config = ConfigDict(populate_by_name=True)

	id: str = Field(default_factory=_new_task_id)
	description: str
	assignee: str = Field(description="Agent id doing the work")
	assigned_by: str = Field(alias="assignedBy", description="Agent id that assigned the work")
	status: TaskStatus = Field(default=TaskStatus.PENDING)
	created_at: float = Field(default_factory=_now_ms, alias="createdAt")
	started_at: Optional[float] = Field(default=None, alias="startedAt")
	completed_at: Optional[float] = Field(default=None, alias="completedAt")
	result: Optional[str] = Field(default=None)
	error: Optional[str] = Field(default=None)
	dependencies: list[str] = Field(default_factory=list)
	external_ticket_id: Optional[str] = Field(default=None, alias="externalTicketId")
	external_ticket_url: Optional[str] = Field(default=None, alias="externalTicketUrl")
	routing: dict[str, Any] = Field(default_factory=dict, description="Per-task routing hints for integrations")

	@property
	def is_active(self) -> bool:
		return self.status not in TERMINAL_STATUSES


class ExternalTicket(BaseModel):
	"""What an onCreate hook may hand back about the ticket it created."""
	model_config = ConfigDict(populate_by_name=True)

	external_ticket_id: Optional[str] = Field(default=None, alias="externalTicketId")
	external_ticket_url: Optional[str] = Field(default=None, alias="externalTicketUrl")


@dataclass(frozen=True)
class TaskAssignment:
	assignee: str
	description: str


@dataclass(frozen=True)
class TaskHookContext:
	"""Passed to every lifecycle hook."""
	task: Task
	assignee_credentials: Optional[dict[str, Any]] = None
	assigner_credentials: Optional[dict[str, Any]] = None


TaskHook = Callable[[TaskHookContext], Awaitable[Any]]
CredentialsLookup = Callable[[str], Union[Optional[dict[str, Any]], Awaitable[Optional[dict[str, Any]]]]]


@dataclass
class TaskHooks:
	"""Optional async callbacks for external systems."""
	on_create: Optional[TaskHook] = None
	on_start: Optional[TaskHook] = None
	on_complete: Optional[TaskHook] = None
	on_fail: Optional[TaskHook] = None


def extract_task_from_message(message: str) -> Optional[TaskAssignment]:
	"""
	Best-effort parse of "@agent-id do something" into an assignment.

	Only the first mention is considered; the rest of that line is the
	description.
	"""
	match = _TASK_MENTION_PATTERN.search(message)
	if not match:
		return None
	return TaskAssignment(assignee=match.group(1), description=match.group(2).strip())


@dataclass
class _TaskIndex:
	tasks: dict[str, Task] = field(default_factory=dict)
	by_agent: dict[str, list[str]] = field(default_factory=dict)
	active_by_agent: dict[str, set[str]] = field(default_factory=dict)


class TaskManager:
	"""
	Tracks task assignments and their states.

	Mutations are serialized with an asyncio.Lock so concurrent dispatch
	workers can complete tasks for the same agent safely. The lock is
	never held while a hook runs.
	"""

	def __init__(
		self,
		hooks: Optional[TaskHooks] = None,
		credentials_lookup: Optional[CredentialsLookup] = None,
	):
		self.hooks = hooks or TaskHooks()
		self._credentials_lookup = credentials_lookup
		self._index = _TaskIndex()
		self._lock = asyncio.Lock()

	def set_hooks(self, hooks: TaskHooks) -> None:
		self.hooks = hooks

	async def create_task(
		self,
		description: str,
		assignee: str,
		assigned_by: str,
		dependencies: Optional[list[str]] = None,
		routing: Optional[dict[str, Any]] = None,
	) -> Task:
		"""Create a pending task and run the on_create hook."""
		async with self._lock:
			task = Task(
				description=description,
				assignee=assignee,
				assigned_by=assigned_by,
				dependencies=list(dependencies or []),
				routing=dict(routing or {}),
			)
			self._index.tasks[task.id] = task
			self._index.by_agent.setdefault(assignee, []).append(task.id)
			self._index.active_by_agent.setdefault(assignee, set()).add(task.id)

		logger.info(f"Created task {task.id} for {assignee} (assigned by {assigned_by})")

		ticket = await self._run_hook("on_create", self.hooks.on_create, task)
		if ticket:
			self._merge_ticket(task, ticket)
		return task

	async def start_task(self, task_id: str) -> bool:
		"""
		Move a pending task to in_progress.

		Returns:
			False if the task is unknown, terminal, or has a dependency that
			is missing or not completed; True otherwise
		"""
		async with self._lock:
			task = self._index.tasks.get(task_id)
			if task is None or task.status in TERMINAL_STATUSES:
				return False
			if task.status == TaskStatus.IN_PROGRESS:
				return True
			if not self._dependencies_met(task):
				logger.debug(f"Task {task_id} blocked on dependencies {task.dependencies}")
				return False
			task.status = TaskStatus.IN_PROGRESS
			task.started_at = _now_ms()

		await self._run_hook("on_start", self.hooks.on_start, task)
		return True

	async def complete_task(self, task_id: str, result: Optional[str] = None) -> bool:
		"""Mark a non-terminal task completed."""
		async with self._lock:
			task = self._index.tasks.get(task_id)
			if task is None or task.status in TERMINAL_STATUSES:
				return False
			self._finish(task, TaskStatus.COMPLETED, result=result)

		await self._run_hook("on_complete", self.hooks.on_complete, task)
		return True

	async def fail_task(self, task_id: str, error: str) -> bool:
		"""Mark a non-terminal task failed."""
		async with self._lock:
			task = self._index.tasks.get(task_id)
			if task is None or task.status in TERMINAL_STATUSES:
				return False
			self._finish(task, TaskStatus.FAILED, error=error)

		logger.info(f"Task {task_id} failed: {error}")
		await self._run_hook("on_fail", self.hooks.on_fail, task)
		return True

	async def complete_tasks_for_agent(self, agent_id: str, result: Optional[str] = None) -> list[Task]:
		"""Complete every active task assigned to an agent."""
		async with self._lock:
			completed = []
			for task_id in list(self._index.active_by_agent.get(agent_id, ())):
				task = self._index.tasks[task_id]
				if task.is_active:
					self._finish(task, TaskStatus.COMPLETED, result=result)
					completed.append(task)
			self._index.active_by_agent.pop(agent_id, None)

		if completed:
			logger.info(f"Completed {len(completed)} task(s) for {agent_id}")
		for task in completed:
			await self._run_hook("on_complete", self.hooks.on_complete, task)
		return completed

	def _finish(self, task: Task, status: TaskStatus, result: Optional[str] = None, error: Optional[str] = None) -> None:
		now = _now_ms()
		if task.started_at is None:
			task.started_at = now
		task.status = status
		task.completed_at = now
		if result is not None:
			task.result = result
		if error is not None:
			task.error = error
		active = self._index.active_by_agent.get(task.assignee)
		if active is not None:
			active.discard(task.id)

	def _dependencies_met(self, task: Task) -> bool:
		for dep_id in task.dependencies:
			dep = self._index.tasks.get(dep_id)
			if dep is None or dep.status != TaskStatus.COMPLETED:
				return False
		return True

	@staticmethod
	def _merge_ticket(task: Task, ticket: Any) -> None:
		try:
			info = ticket if isinstance(ticket, ExternalTicket) else ExternalTicket.model_validate(ticket)
		except Exception as e:
			logger.error(f"Ignoring malformed on_create result for task {task.id}: {e}")
			return
		if info.external_ticket_id:
			task.external_ticket_id = info.external_ticket_id
		if info.external_ticket_url:
			task.external_ticket_url = info.external_ticket_url

	async def _lookup_credentials(self, agent_id: str) -> Optional[dict[str, Any]]:
		if self._credentials_lookup is None:
			return None
		try:
			credentials = self._credentials_lookup(agent_id)
			if inspect.isawaitable(credentials):
				credentials = await credentials
			return credentials
		except Exception as e:
			logger.error(f"Credential lookup failed for {agent_id}: {e}")
			return None

	async def _run_hook(self, name: str, hook: Optional[TaskHook], task: Task) -> Any:
		if hook is None:
			return None
		context = TaskHookContext(
			task=task,
			assignee_credentials=await self._lookup_credentials(task.assignee),
			assigner_credentials=await self._lookup_credentials(task.assigned_by),
		)
		try:
			return await hook(context)
		except Exception as e:
			logger.error(f"Task hook {name} failed for task {task.id}: {e}")
			return None

	# Queries

	def get_task(self, task_id: str) -> Optional[Task]:
		return self._index.tasks.get(task_id)

	def get_all_tasks(self) -> list[Task]:
		return list(self._index.tasks.values())

	def get_agent_tasks(self, agent_id: str, status: Optional[TaskStatus] = None) -> list[Task]:
		tasks = [self._index.tasks[task_id] for task_id in self._index.by_agent.get(agent_id, [])]
		if status is not None:
			tasks = [t for t in tasks if t.status == status]
		return tasks

	def get_active_tasks_for_agent(self, agent_id: str) -> list[Task]:
		return [t for t in self.get_agent_tasks(agent_id) if t.is_active]

	def has_active_task(self, agent_id: str) -> bool:
		return bool(self.get_active_tasks_for_agent(agent_id))

	def get_ready_tasks(self) -> list[Task]:
		"""Pending tasks whose dependencies are all completed."""
		return [
			t for t in self._index.tasks.values()
			if t.status == TaskStatus.PENDING and self._dependencies_met(t)
		]

	def get_summary(self) -> str:
		counts = {status: 0 for status in TaskStatus}
		for task in self._index.tasks.values():
			counts[task.status] += 1
		return (
			f"Tasks: {counts[TaskStatus.PENDING]} pending, "
			f"{counts[TaskStatus.IN_PROGRESS]} in progress, "
			f"{counts[TaskStatus.COMPLETED]} completed, "
			f"{counts[TaskStatus.FAILED]} failed"
		)

	def get_task_context_for_agent(self, agent_id: str) -> str:
		"""Plain-text list of an agent's tasks, for its prompt."""
		tasks = self.get_agent_tasks(agent_id)
		if not tasks:
			return "You have no assigned tasks."

		lines = ["Your assigned tasks:"]
		for task in tasks:
			lines.append(f"- [{task.status.value}] {task.description}")
			if task.status == TaskStatus.IN_PROGRESS:
				lines.append("  (Currently working on this)")
			elif task.status == TaskStatus.COMPLETED:
				lines.append(f"  (Completed: {task.result})")
			elif task.status == TaskStatus.FAILED:
				lines.append(f"  (Failed: {task.error})")
		return "\n".join(lines)

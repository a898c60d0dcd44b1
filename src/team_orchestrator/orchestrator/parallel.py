"""
Parallel Executor - admission control and resource locks.

Lets several agents work at once on independent resources while
serializing agents that touch the same one:
- at most max_parallel_agents agents are active at any time
- each resource key (e.g. "file:src/app.py") has at most one owner
- lock acquisition for a tool call is all-or-nothing
- marking an agent idle releases every lock it still holds

All methods are synchronous, so each call is atomic with respect to
other coroutines on the event loop.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

ResourceExtractor = Callable[[dict[str, Any]], list[str]]


@dataclass(frozen=True)
class ResourceLock:
	resource_id: str
	agent_id: str
	acquired_at: float


def _file_system_resources(args: dict[str, Any]) -> list[str]:
	path = args.get("path")
	return [f"file:{path}"] if path else []


class ParallelExecutor:
	"""Tracks active agents and the resources they hold."""

	def __init__(self, max_parallel_agents: int = 3):
		self.max_parallel_agents = max_parallel_agents
		self._active_agents: set[str] = set()
		self._locks: dict[str, ResourceLock] = {}
		self._extractors: dict[str, ResourceExtractor] = {
			"file_system": _file_system_resources,
		}

	# Admission

	def can_agent_start(self, agent_id: str) -> bool:
		if agent_id in self._active_agents:
			return False
		return len(self._active_agents) < self.max_parallel_agents

	def mark_agent_active(self, agent_id: str) -> bool:
		"""Admit an agent. Returns False if it is already active or capacity is full."""
		if not self.can_agent_start(agent_id):
			return False
		self._active_agents.add(agent_id)
		return True

	def mark_agent_idle(self, agent_id: str) -> None:
		"""Deactivate an agent and release every lock it owns."""
		self._active_agents.discard(agent_id)
		leaked = [rid for rid, lock in self._locks.items() if lock.agent_id == agent_id]
		for resource_id in leaked:
			del self._locks[resource_id]
		if leaked:
			logger.debug(f"Released {len(leaked)} lock(s) held by idle agent {agent_id}")

	def has_capacity(self) -> bool:
		return len(self._active_agents) < self.max_parallel_agents

	def get_active_agents(self) -> list[str]:
		return sorted(self._active_agents)

	# Locks

	def acquire_lock(self, resource_id: str, agent_id: str) -> bool:
		"""Acquire or renew a single lock."""
		existing = self._locks.get(resource_id)
		if existing is not None and existing.agent_id != agent_id:
			return False
		self._locks[resource_id] = ResourceLock(resource_id=resource_id, agent_id=agent_id, acquired_at=time.time() * 1000)
		return True

	def release_lock(self, resource_id: str, agent_id: str) -> bool:
		"""Release a lock; only its owner may release it."""
		existing = self._locks.get(resource_id)
		if existing is None or existing.agent_id != agent_id:
			return False
		del self._locks[resource_id]
		return True

	def get_lock(self, resource_id: str) -> Optional[ResourceLock]:
		return self._locks.get(resource_id)

	def get_locked_resources(self) -> dict[str, str]:
		"""Map of resource key to owning agent id."""
		return {rid: lock.agent_id for rid, lock in self._locks.items()}

	def register_resource_extractor(self, tool_name: str, extractor: ResourceExtractor) -> None:
		"""Teach the executor which resources a tool touches."""
		self._extractors[tool_name] = extractor

	def extract_resources_from_tool(self, tool_name: str, args: dict[str, Any]) -> list[str]:
		extractor = self._extractors.get(tool_name)
		if extractor is None:
			return []
		# Preserve order, drop duplicates
		return list(dict.fromkeys(extractor(args or {})))

	def can_execute_tool(self, agent_id: str, tool_name: str, args: dict[str, Any]) -> bool:
		"""Read-only check that no derived resource is held by another agent."""
		for resource_id in self.extract_resources_from_tool(tool_name, args):
			lock = self._locks.get(resource_id)
			if lock is not None and lock.agent_id != agent_id:
				return False
		return True

	def acquire_tool_locks(self, agent_id: str, tool_name: str, args: dict[str, Any]) -> bool:
		"""
		Acquire every resource a tool call touches, or none of them.

		Locks the agent already holds are renewed. If any resource is held
		by another agent nothing changes and False is returned.
		"""
		resources = self.extract_resources_from_tool(tool_name, args)
		for resource_id in resources:
			lock = self._locks.get(resource_id)
			if lock is not None and lock.agent_id != agent_id:
				logger.info(f"{agent_id} could not lock {resource_id} (held by {lock.agent_id})")
				return False
		for resource_id in resources:
			self.acquire_lock(resource_id, agent_id)
		return True

	def release_tool_locks(self, agent_id: str, tool_name: str, args: dict[str, Any]) -> None:
		for resource_id in self.extract_resources_from_tool(tool_name, args):
			self.release_lock(resource_id, agent_id)

	def get_status(self) -> str:
		return (
			f"Active agents: {len(self._active_agents)}/{self.max_parallel_agents}, "
			f"Locked resources: {len(self._locks)}"
		)

"""
Agent Manager - builds agents from roster entries.

Backends are registered per model-provider prefix ("openai/gpt-4o" ->
"openai"). A roster entry whose provider has no registered backend, or
whose backend needs an API key that is not set, gets a SimulatedAgent.
"""

import logging
import os
from dataclasses import dataclass
from typing import Callable, Optional

from ..team import TeamConfig, TeamConfigError, TeamMemberConfig
from .base import Agent
from .simulated import SimulatedAgent

logger = logging.getLogger(__name__)

AgentFactory = Callable[[TeamMemberConfig], Agent]


@dataclass(frozen=True)
class AdapterRegistration:
	factory: AgentFactory
	env_key: Optional[str] = None


class AgentManager:
	"""Owns the live agent instances of a session."""

	def __init__(self):
		self._adapters: dict[str, AdapterRegistration] = {}
		self._agents: dict[str, Agent] = {}
		self._configs: dict[str, TeamMemberConfig] = {}

	def register_adapter(self, prefix: str, factory: AgentFactory, env_key: Optional[str] = None) -> None:
		"""
		Register a backend for a model-provider prefix.

		Args:
			prefix: Provider prefix, e.g. "anthropic"
			factory: Builds an agent from a roster entry
			env_key: Environment variable the backend needs (e.g. an API key)
		"""
		if prefix in self._adapters:
			logger.warning(f"Adapter for provider '{prefix}' already registered. Overwriting.")
		self._adapters[prefix] = AdapterRegistration(factory=factory, env_key=env_key)

	def registered_providers(self) -> list[str]:
		return sorted(self._adapters)

	def create_agent(self, config: TeamMemberConfig) -> Agent:
		"""Create (and remember) the agent for one roster entry."""
		if not (config.id and config.name and config.role and config.model):
			raise TeamConfigError("Agent configuration missing required fields (id, name, role, model).")

		registration = self._adapters.get(config.provider)
		if registration is None:
			logger.debug(f"No adapter for provider '{config.provider}', using simulated agent for {config.id}")
			agent: Agent = SimulatedAgent(config)
		elif registration.env_key and not os.environ.get(registration.env_key):
			logger.warning(
				f"Missing API key {registration.env_key} for model {config.model}. "
				f"Falling back to simulated adapter."
			)
			agent = SimulatedAgent(config)
		else:
			agent = registration.factory(config)

		self._agents[config.id] = agent
		self._configs[config.id] = config
		return agent

	def create_team(self, team: TeamConfig) -> list[Agent]:
		return [self.create_agent(member) for member in team.members]

	def get_agent(self, agent_id: str) -> Optional[Agent]:
		return self._agents.get(agent_id)

	def get_agents(self) -> list[Agent]:
		return list(self._agents.values())

	def get_config(self, agent_id: str) -> Optional[TeamMemberConfig]:
		return self._configs.get(agent_id)

	def replace_with_simulated(self, agent_id: str) -> Optional[SimulatedAgent]:
		"""Swap an agent for the stand-in built from the same roster entry."""
		config = self._configs.get(agent_id)
		if config is None:
			return None
		simulated = SimulatedAgent(config)
		self._agents[agent_id] = simulated
		logger.warning(f"Agent {agent_id} replaced with simulated agent")
		return simulated

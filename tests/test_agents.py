"""Tests for agent construction and the simulated stand-in."""

import pytest

from team_orchestrator.agents import AgentContext, AgentManager, SimulatedAgent
from team_orchestrator.messages import Message
from team_orchestrator.team import TeamConfigError, TeamMemberConfig

from .helpers import ScriptedAgent, default_team, make_team, member


class TestAgentManager:
	"""Tests for AgentManager adapter selection."""

	def test_unknown_provider_is_simulated(self):
		"""Members whose provider has no adapter get a SimulatedAgent."""
		manager = AgentManager()
		agents = manager.create_team(default_team())
		assert all(isinstance(a, SimulatedAgent) for a in agents)
		assert [a.id for a in manager.get_agents()] == ["lead", "dev", "qa"]

	def test_registered_adapter_is_used(self):
		"""A registered provider builds the agent."""
		manager = AgentManager()
		manager.register_adapter("test", lambda config: ScriptedAgent(config))
		agent = manager.create_agent(default_team().members[0])
		assert isinstance(agent, ScriptedAgent)
		assert manager.get_agent("lead") is agent
		assert manager.get_config("lead").role == "Team Lead"
		assert manager.get_config("ghost") is None
		assert manager.registered_providers() == ["test"]

	def test_missing_api_key_falls_back(self, monkeypatch):
		"""An adapter whose key is unset yields a SimulatedAgent."""
		monkeypatch.delenv("TEST_API_KEY", raising=False)
		manager = AgentManager()
		manager.register_adapter("test", lambda config: ScriptedAgent(config), env_key="TEST_API_KEY")
		assert isinstance(manager.create_agent(default_team().members[0]), SimulatedAgent)

		monkeypatch.setenv("TEST_API_KEY", "secret")
		assert isinstance(manager.create_agent(default_team().members[0]), ScriptedAgent)

	def test_missing_fields_rejected(self):
		"""Roster entries without a model cannot become agents."""
		config = TeamMemberConfig(id="x", name="X", role="Dev", model="")
		with pytest.raises(TeamConfigError, match="missing required fields"):
			AgentManager().create_agent(config)

	def test_replace_with_simulated(self):
		"""An agent can be swapped for its simulated stand-in."""
		manager = AgentManager()
		manager.register_adapter("test", lambda config: ScriptedAgent(config))
		manager.create_team(default_team())
		simulated = manager.replace_with_simulated("dev")
		assert isinstance(simulated, SimulatedAgent)
		assert manager.get_agent("dev") is simulated
		assert simulated.name == "Dana"
		assert manager.replace_with_simulated("ghost") is None


class TestSimulatedAgent:
	"""Tests for the deterministic stand-in."""

	def _agent(self) -> SimulatedAgent:
		return SimulatedAgent(default_team().members[1])

	@pytest.mark.asyncio
	async def test_acknowledges_last_message(self):
		"""The reply echoes the latest message and keeps its topic."""
		context = AgentContext(
			messages=[Message(topic_id="api", content="first"), Message(topic_id="api", content="Please build it")],
			team=default_team(),
			project_spec="spec",
		)
		output = await self._agent().execute(context)
		assert output.message.content == (
			"SIMULATED RESPONSE: Received: Please build it. Will coordinate next steps."
		)
		assert output.message.topic_id == "api"
		assert output.message.author.id == "dev"

	@pytest.mark.asyncio
	async def test_long_message_truncated(self):
		"""Echoed text is cut to 120 characters."""
		context = AgentContext(messages=[Message(content="x" * 300)], team=default_team(), project_spec="")
		output = await self._agent().execute(context)
		assert f"Received: {'x' * 117}.... Will" in output.message.content
		assert output.message.topic_id == "general"

	@pytest.mark.asyncio
	async def test_empty_context(self):
		"""With no messages the agent just starts."""
		context = AgentContext(messages=[], team=make_team(member("dev")), project_spec="")
		output = await self._agent().execute(context)
		assert output.message.content == "SIMULATED RESPONSE: Starting on the requested work."

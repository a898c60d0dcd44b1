"""
Team Models - Pydantic schemas for the team roster.

Defines team members, their seniority levels, and the session-wide
delivery mode and sandbox level. Team files may be YAML, TOML or JSON
and use either snake_case or the camelCase keys of older team files.
"""

import json
import logging
import re
import tomllib
from enum import Enum
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_TEAM_NAME = "Agent Team"

_TEAM_LEAD_PATTERN = re.compile(r"team lead", re.IGNORECASE)


class TeamConfigError(ValueError):
	"""Raised when a team configuration cannot be loaded or is invalid."""


class AgentLevel(str, Enum):
	"""Seniority of a team member, used for review escalation."""
	JUNIOR = "junior"
	MID = "mid"
	SENIOR = "senior"
	PRINCIPAL = "principal"


LEVEL_RANK: dict[AgentLevel, int] = {
	AgentLevel.JUNIOR: 1,
	AgentLevel.MID: 2,
	AgentLevel.SENIOR: 3,
	AgentLevel.PRINCIPAL: 4,
}


class DeliveryMode(str, Enum):
	"""Session-wide bias for scheduling trade-offs."""
	COST = "cost"
	TIME = "time"
	QUALITY = "quality"


class SandboxLevel(str, Enum):
	"""Policy tier constraining which tool actions are auto-permitted."""
	STRICT = "strict"
	GUIDED = "guided"
	WILD = "wild"


class TeamMemberConfig(BaseModel):
	"""A single roster entry."""
	model_config = ConfigDict(populate_by_name=True)

	id: str = Field(description="Unique agent identifier, used for @mentions")
	name: str = Field(description="Display name")
	role: str = Field(description="Role, e.g. 'Team Lead' or 'Frontend Developer'")
	model: str = Field(description="Model identifier, '<provider>/<model>'")
	level: Optional[AgentLevel] = Field(default=None)
	skills: list[str] = Field(default_factory=list)
	scope: str = Field(default="")
	personality: str = Field(default="")
	responsibilities: list[str] = Field(default_factory=list)
	cost_per_minute: Optional[float] = Field(default=None, alias="costPerMinute")

	@property
	def provider(self) -> str:
		"""Provider prefix of the model identifier."""
		return self.model.split("/")[0]


class TeamConfig(BaseModel):
	"""The whole team as configured for a session."""
	model_config = ConfigDict(populate_by_name=True)

	team_name: str = Field(default=DEFAULT_TEAM_NAME, alias="teamName")
	mode: DeliveryMode = Field(default=DeliveryMode.TIME)
	sandbox: SandboxLevel = Field(default=SandboxLevel.GUIDED)
	members: list[TeamMemberConfig] = Field(default_factory=list)

	def get_member(self, agent_id: str) -> Optional[TeamMemberConfig]:
		"""Look up a roster entry by id."""
		for member in self.members:
			if member.id == agent_id:
				return member
		return None

	def member_ids(self) -> list[str]:
		return [m.id for m in self.members]


def _slugify(name: str) -> str:
	return re.sub(r"\s+", "-", name.strip().lower())


def normalize_team_config(
	raw: dict[str, Any],
	default_mode: str = DeliveryMode.TIME.value,
	default_sandbox: str = SandboxLevel.GUIDED.value,
) -> TeamConfig:
	"""
	Build a TeamConfig from a raw mapping.

	Members without an id get one derived from their name and position
	("Alex Lead" at index 0 -> "alex-lead-0").

	Raises:
		TeamConfigError: If the members list is missing or a member is invalid
	"""
	if not isinstance(raw, dict) or not isinstance(raw.get("members"), list):
		raise TeamConfigError("Invalid team configuration: 'members' array is missing or invalid.")

	members: list[dict[str, Any]] = []
	for index, member in enumerate(raw["members"]):
		if not isinstance(member, dict):
			raise TeamConfigError(f"Invalid team member at index {index}: expected a mapping")
		missing = [key for key in ("name", "role", "model") if not member.get(key)]
		if missing:
			raise TeamConfigError(
				f"Team member at index {index} is missing required fields: {', '.join(missing)}"
			)
		entry = dict(member)
		if not entry.get("id"):
			entry["id"] = f"{_slugify(entry['name']) or 'agent'}-{index}"
		members.append(entry)

	seen: set[str] = set()
	for entry in members:
		if entry["id"] in seen:
			raise TeamConfigError(f"Duplicate team member id: {entry['id']}")
		seen.add(entry["id"])

	data = {
		"team_name": raw.get("team_name") or raw.get("teamName") or DEFAULT_TEAM_NAME,
		"mode": raw.get("mode") or default_mode,
		"sandbox": raw.get("sandbox") or default_sandbox,
		"members": members,
	}
	try:
		return TeamConfig.model_validate(data)
	except ValidationError as e:
		raise TeamConfigError(f"Invalid team configuration: {e}") from e


def load_team_config(
	path: Path,
	default_mode: str = DeliveryMode.TIME.value,
	default_sandbox: str = SandboxLevel.GUIDED.value,
) -> TeamConfig:
	"""Load and normalize a team file (.yml/.yaml, .toml or .json)."""
	path = Path(path)
	if not path.exists():
		raise TeamConfigError(f"Team file not found: {path}")

	suffix = path.suffix.lower()
	try:
		if suffix in (".yml", ".yaml"):
			raw = yaml.safe_load(path.read_text(encoding="utf-8"))
		elif suffix == ".toml":
			with open(path, "rb") as f:
				raw = tomllib.load(f)
		elif suffix == ".json":
			raw = json.loads(path.read_text(encoding="utf-8"))
		else:
			raise TeamConfigError(f"Unsupported team file format: {suffix or path.name}")
	except (yaml.YAMLError, tomllib.TOMLDecodeError, json.JSONDecodeError) as e:
		raise TeamConfigError(f"Could not parse team file {path}: {e}") from e

	config = normalize_team_config(raw, default_mode=default_mode, default_sandbox=default_sandbox)
	logger.info(f"Loaded team '{config.team_name}' with {len(config.members)} members from {path}")
	return config


def find_team_lead(members: list[TeamMemberConfig]) -> Optional[TeamMemberConfig]:
	"""The member whose role reads 'team lead', else the first member."""
	for member in members:
		if _TEAM_LEAD_PATTERN.search(member.role or ""):
			return member
	return members[0] if members else None


def is_lead_role(role: str) -> bool:
	"""True for any role that leads ('Team Lead', 'Tech Lead', ...)."""
	return "lead" in (role or "").lower()

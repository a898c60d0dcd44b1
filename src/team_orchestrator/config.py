"""Configuration system using platformdirs for cross-platform paths."""

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

import platformdirs

APP_NAME = "team-orchestrator"
ENV_PREFIX = "TEAM_ORCHESTRATOR_"


@dataclass
class Config:
	"""Central configuration with XDG/platform conventions."""

	config_dir: Path = field(default_factory=lambda: Path(platformdirs.user_config_dir(APP_NAME)))
	data_dir: Path = field(default_factory=lambda: Path(platformdirs.user_data_dir(APP_NAME)))

	# Derived paths
	log_dir: Path = field(init=False)

	# User-configurable
	workspace_dir: Path = field(default_factory=lambda: Path(os.getenv("WORKSPACE_DIR", str(Path.cwd()))))

	# Orchestration
	max_parallel_agents: int = 3
	dispatch_workers: int = 1
	recent_event_limit: int = 20
	admission_retry_ms: int = 500
	lock_retry_ms: int = 1000
	max_turns: int = 200
	default_mode: str = "time"
	default_sandbox: str = "guided"
	log_level: str = "INFO"

	def __post_init__(self) -> None:
		self.log_dir = self.data_dir / "logs"

	def ensure_dirs(self) -> None:
		"""Create all required directories."""
		self.config_dir.mkdir(parents=True, exist_ok=True)
		self.data_dir.mkdir(parents=True, exist_ok=True)
		self.log_dir.mkdir(parents=True, exist_ok=True)


_PATH_FIELDS = {"config_dir", "data_dir", "workspace_dir"}
_INT_FIELDS = {
	"max_parallel_agents",
	"dispatch_workers",
	"recent_event_limit",
	"admission_retry_ms",
	"lock_retry_ms",
	"max_turns",
}


def _apply_env_overrides(config: Config) -> Config:
	"""Apply TEAM_ORCHESTRATOR_* environment variable overrides."""
	for attr in _PATH_FIELDS:
		val = os.getenv(f"{ENV_PREFIX}{attr.upper()}")
		if val:
			setattr(config, attr, Path(val))
	for attr in _INT_FIELDS:
		val = os.getenv(f"{ENV_PREFIX}{attr.upper()}")
		if val:
			try:
				setattr(config, attr, int(val))
			except ValueError:
				pass
	# Recompute derived paths after overrides
	config.__post_init__()
	return config


def _apply_toml(config: Config) -> Config:
	"""Apply config.toml overrides if file exists."""
	toml_path = config.config_dir / "config.toml"
	if not toml_path.exists():
		return config

	with open(toml_path, "rb") as f:
		data = tomllib.load(f)

	for key, val in data.items():
		if hasattr(config, key):
			if key in _PATH_FIELDS:
				setattr(config, key, Path(os.path.expanduser(val)))
			else:
				setattr(config, key, val)

	# Recompute derived paths after toml overrides
	config.__post_init__()
	return config


def load_config() -> Config:
	"""Load config with precedence: env vars > config.toml > defaults."""
	config = Config()
	config = _apply_toml(config)
	config = _apply_env_overrides(config)
	config.ensure_dirs()
	return config


# Singleton
_config: Config | None = None


def get_config() -> Config:
	"""Get or create the global config instance."""
	global _config
	if _config is None:
		_config = load_config()
	return _config

"""team-orchestrator: coordinate a team of agents working on a shared project."""

__version__ = "0.1.0"

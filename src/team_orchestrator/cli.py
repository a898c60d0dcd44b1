"""CLI for team-orchestrator: run, validate, and doctor commands."""

import argparse
import asyncio
import os
import platform
import sys
from importlib.metadata import version as pkg_version
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from .config import Config, load_config
from .events import BusEvent
from .logging_config import setup_logging
from .orchestrator import Orchestrator, Scheduler
from .team import TeamConfig, TeamConfigError, find_team_lead, load_team_config
from .visualizer import render_message, render_session_summary, render_task_table, render_tool_audit

CORE_DEPS = ["pydantic", "platformdirs", "python-dotenv", "pyyaml", "rich"]


def _load_team(path: str, config: Config) -> TeamConfig:
	return load_team_config(Path(path), default_mode=config.default_mode, default_sandbox=config.default_sandbox)


async def _run_session(orchestrator: Orchestrator, message: Optional[str]) -> None:
	await orchestrator.initialize()
	if message:
		await orchestrator.handle_human_input(message)


def cmd_run(args: argparse.Namespace) -> None:
	"""Run a session non-interactively and print the conversation."""
	config = load_config()
	if args.workspace:
		config.workspace_dir = Path(args.workspace)
	if args.workers is not None:
		config.dispatch_workers = args.workers
	if args.max_turns is not None:
		config.max_turns = args.max_turns
	setup_logging(level=args.log_level or os.getenv("LOG_LEVEL") or config.log_level, log_dir=config.log_dir)

	console = Console()
	try:
		team = _load_team(args.team, config)
		spec = Path(args.spec).read_text(encoding="utf-8")
	except (TeamConfigError, OSError) as e:
		console.print(f"[red]{e}[/red]")
		sys.exit(1)

	orchestrator = Orchestrator(team, spec, config=config)

	def on_message(event: BusEvent) -> None:
		render_message(event.payload, console)

	orchestrator.event_bus.subscribe("message", on_message)
	orchestrator.event_bus.subscribe("tool_result", on_message)
	orchestrator.event_bus.subscribe("status", on_message)

	try:
		asyncio.run(_run_session(orchestrator, args.message))
	except TeamConfigError as e:
		console.print(f"[red]{e}[/red]")
		sys.exit(1)
	except KeyboardInterrupt:
		console.print("[yellow]Interrupted.[/yellow]")

	console.print()
	render_task_table(orchestrator.tasks.get_all_tasks(), console)
	render_tool_audit(orchestrator.tools.get_audit_trail(), console)
	render_session_summary(orchestrator, console)


def cmd_validate(args: argparse.Namespace) -> None:
	"""Validate a team file and show the roster with its review chain."""
	config = load_config()
	console = Console()
	try:
		team = _load_team(args.team, config)
	except TeamConfigError as e:
		console.print(f"[red]Invalid team file:[/red] {e}")
		sys.exit(1)

	lead = find_team_lead(team.members)
	scheduler = Scheduler(team)

	table = Table(title=f"{team.team_name} (mode={team.mode.value}, sandbox={team.sandbox.value})")
	table.add_column("ID", style="cyan")
	table.add_column("Name")
	table.add_column("Role")
	table.add_column("Level")
	table.add_column("Model")
	table.add_column("Reviewed by")

	for member in team.members:
		reviewer = ""
		if member.level is not None:
			found = scheduler.find_reviewer(member.level, exclude_id=member.id)
			if found is not None:
				reviewer = found.id
			elif lead is not None and lead.id != member.id:
				reviewer = lead.id
		name = f"[bold]{member.name}[/bold]" if lead is not None and member.id == lead.id else member.name
		table.add_row(
			member.id,
			name,
			member.role,
			member.level.value if member.level else "-",
			member.model,
			reviewer or "-",
		)

	console.print(table)
	console.print(f"Team lead: {lead.id if lead else '(none)'}")


def cmd_doctor(args: argparse.Namespace) -> None:
	"""Health check - verify installation and configuration."""
	print("team-orchestrator doctor")
	print(f"{'=' * 40}")

	config = load_config()
	issues: list[str] = []

	py_ver = f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}"
	print(f"  Python:       {py_ver}")
	print(f"  Platform:     {platform.system()} {platform.machine()}")
	print()

	print("  Core deps:")
	for dep in CORE_DEPS:
		try:
			print(f"    {dep:22s} {pkg_version(dep)}")
		except Exception:
			print(f"    {dep:22s} NOT INSTALLED")
			issues.append(f"{dep} package not installed")
	print()

	print("  Config:")
	print(f"    config dir:          {config.config_dir}")
	print(f"    data dir:            {config.data_dir}")
	print(f"    log dir:             {config.log_dir}")
	print(f"    workspace:           {config.workspace_dir}")
	print(f"    config.toml:         {'found' if (config.config_dir / 'config.toml').exists() else 'not found (using defaults)'}")
	print()

	print("  Orchestration:")
	print(f"    max parallel agents: {config.max_parallel_agents}")
	print(f"    dispatch workers:    {config.dispatch_workers}")
	print(f"    recent events:       {config.recent_event_limit}")
	print(f"    retry delays:        admission {config.admission_retry_ms}ms, lock {config.lock_retry_ms}ms")
	print(f"    max turns:           {config.max_turns or 'unlimited'}")
	print(f"    defaults:            mode={config.default_mode}, sandbox={config.default_sandbox}")
	print()

	if config.dispatch_workers > config.max_parallel_agents:
		issues.append("dispatch_workers exceeds max_parallel_agents; extra workers will only reschedule turns")

	if issues:
		print(f"  {len(issues)} issue(s) found:")
		for issue in issues:
			print(f"    - {issue}")
		sys.exit(1)
	else:
		print("  All checks passed.")


def main() -> None:
	"""CLI entry point."""
	load_dotenv()

	parser = argparse.ArgumentParser(
		prog="team-orchestrator",
		description="Coordinate a team of agents working on a shared project",
	)
	subparsers = parser.add_subparsers(dest="command")

	# run
	run_parser = subparsers.add_parser("run", help="Run a session from a team file and a project spec")
	run_parser.add_argument("--team", required=True, help="Team file (.yml, .yaml, .toml or .json)")
	run_parser.add_argument("--spec", required=True, help="Project specification file")
	run_parser.add_argument("--workspace", type=str, default=None, help="Workspace directory")
	run_parser.add_argument("--workers", type=int, default=None, help="Concurrent dispatch workers")
	run_parser.add_argument("--max-turns", type=int, default=None, help="Turn budget per drain (0 = unlimited)")
	run_parser.add_argument("--message", type=str, default=None, help="Human message to send after the first drain")
	run_parser.add_argument("--log-level", type=str, default=None, help="DEBUG, INFO, WARNING or ERROR")
	run_parser.set_defaults(func=cmd_run)

	# validate
	validate_parser = subparsers.add_parser("validate", help="Validate a team file")
	validate_parser.add_argument("team", help="Team file (.yml, .yaml, .toml or .json)")
	validate_parser.set_defaults(func=cmd_validate)

	# doctor
	doctor_parser = subparsers.add_parser("doctor", help="Health check")
	doctor_parser.set_defaults(func=cmd_doctor)

	args = parser.parse_args()

	if not args.command:
		parser.print_help()
		sys.exit(1)

	args.func(args)


if __name__ == "__main__":
	main()

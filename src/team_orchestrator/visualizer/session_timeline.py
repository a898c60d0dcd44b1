"""Rich views for the conversation: single messages and session summaries."""

from typing import TYPE_CHECKING, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..messages import SYSTEM_AUTHOR_ID, AuthorType, Message
from ..tools.base import ToolResult
from .utils import format_duration, format_timestamp, status_style, status_text

if TYPE_CHECKING:
	from ..orchestrator.coordinator import Orchestrator


def _author_style(message: Message) -> str:
	if message.author is None or message.author.id == SYSTEM_AUTHOR_ID:
		return "magenta"
	if message.author.type == AuthorType.HUMAN:
		return "bold green"
	return "bold cyan"


def render_message(message: Message, console: Optional[Console] = None) -> None:
	"""Print one message as '[time] Name (Role): content'."""
	console = console or Console()
	style = _author_style(message)
	author = message.author
	label = f"{author.name} ({author.role})" if author else "System"
	prefix = f"[dim]{format_timestamp(message.timestamp)}[/dim] [{style}]{escape(label)}[/{style}]"

	if isinstance(message.content, ToolResult):
		result = message.content
		result_style = status_style(result.success)
		duration = format_duration(result.duration_ms / 1000) if result.duration_ms is not None else "-"
		console.print(
			f"{prefix}: tool [cyan]{escape(result.tool_name)}[/cyan] "
			f"[{result_style}]{status_text(result.success)}[/{result_style}] ({duration})"
		)
		detail = result.output if result.success else (result.error or "")
		if detail:
			console.print(f"  [dim]{escape(detail)}[/dim]")
		return

	console.print(f"{prefix}: {escape(message.content_text())}")


def render_session_summary(orchestrator: "Orchestrator", console: Optional[Console] = None) -> None:
	"""Render topics, task counts and executor state for a session."""
	console = console or Console()
	if orchestrator.session is None:
		console.print("[dim]No session started.[/dim]")
		return

	state = orchestrator.session.get_session_state()
	console.print(f"\n[bold cyan]Session: {state.id}[/bold cyan]")
	console.print(f"  Team:     {orchestrator.team.team_name}")
	console.print(f"  Mode:     {state.options.mode.value}, sandbox {state.options.sandbox.value}")
	console.print(f"  {orchestrator.tasks.get_summary()}")
	console.print(f"  {orchestrator.executor.get_status()}")
	console.print(f"  Pending turns: {len(orchestrator.scheduler)}")
	if orchestrator.awaiting_human_input:
		console.print("  [yellow]Waiting for human input[/yellow]")
	console.print()

	table = Table(title="Topics")
	table.add_column("Topic", style="cyan")
	table.add_column("Title")
	table.add_column("Status")
	table.add_column("Events", justify="right")
	for topic in orchestrator.session.list_topics():
		table.add_row(topic.id, topic.title, topic.status.value, str(len(topic.events)))
	console.print(table)

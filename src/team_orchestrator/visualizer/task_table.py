"""Rich views for the task tracker."""

from typing import Optional

from rich.console import Console
from rich.table import Table

from ..orchestrator.tasks import Task
from .utils import TASK_STATUS_STYLES, format_timestamp, truncate_args


def render_task_table(tasks: list[Task], console: Optional[Console] = None) -> None:
	"""Render all tasks with assignee, status and external ticket."""
	console = console or Console()
	if not tasks:
		console.print("[dim]No tasks assigned yet.[/dim]")
		return

	table = Table(title=f"Tasks ({len(tasks)})")
	table.add_column("Task", style="dim")
	table.add_column("Assignee", style="cyan")
	table.add_column("By")
	table.add_column("Status", justify="center")
	table.add_column("Description")
	table.add_column("Created")
	table.add_column("Ticket")

	for task in tasks:
		style = TASK_STATUS_STYLES.get(task.status.value, "white")
		table.add_row(
			task.id,
			task.assignee,
			task.assigned_by,
			f"[{style}]{task.status.value}[/{style}]",
			truncate_args(task.description, max_len=50),
			format_timestamp(task.created_at),
			task.external_ticket_id or "",
		)

	console.print(table)

"""Rich views for the tool audit trail."""

import json
from typing import Optional

from rich.console import Console
from rich.table import Table

from ..tools.base import ToolResult
from .utils import format_duration, status_style, status_text, truncate_args


def render_tool_audit(results: list[ToolResult], console: Optional[Console] = None) -> None:
	"""Render every recorded tool result in call order."""
	console = console or Console()
	if not results:
		console.print("[dim]No tool calls recorded yet.[/dim]")
		return

	table = Table(title=f"Tool Calls ({len(results)})")
	table.add_column("#", justify="right", style="dim")
	table.add_column("Tool", style="cyan")
	table.add_column("Command")
	table.add_column("Duration", justify="right")
	table.add_column("Status", justify="center")
	table.add_column("Detail")

	for i, result in enumerate(results, 1):
		style = status_style(result.success)
		duration = format_duration(result.duration_ms / 1000) if result.duration_ms is not None else "-"
		detail = result.output if result.success else (result.error or "")
		table.add_row(
			str(i),
			result.tool_name,
			truncate_args(result.command or ""),
			duration,
			f"[{style}]{status_text(result.success)}[/{style}]",
			truncate_args(json.dumps(detail) if detail else ""),
		)

	console.print(table)

"""Visualizer package - Rich terminal views for sessions, tasks and tool calls."""

from .session_timeline import render_message, render_session_summary
from .task_table import render_task_table
from .tool_stats import render_tool_audit

__all__ = [
	"render_message",
	"render_session_summary",
	"render_task_table",
	"render_tool_audit",
]

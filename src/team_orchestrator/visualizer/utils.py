"""Shared utilities for visualizer views."""

from datetime import datetime
from typing import Optional


def format_duration(seconds: float) -> str:
	"""Format a duration for display. e.g. '1.2s', '45ms', '2m 3s'."""
	if seconds < 0.001:
		return "<1ms"
	if seconds < 1.0:
		return f"{seconds * 1000:.0f}ms"
	if seconds < 60.0:
		return f"{seconds:.1f}s"
	minutes = int(seconds // 60)
	secs = seconds % 60
	return f"{minutes}m {secs:.0f}s"


def format_timestamp(timestamp_ms: Optional[float]) -> str:
	"""Format an epoch-milliseconds timestamp as wall-clock time (HH:MM:SS)."""
	if timestamp_ms is None:
		return ""
	try:
		return datetime.fromtimestamp(timestamp_ms / 1000).strftime("%H:%M:%S")
	except (ValueError, OverflowError, OSError):
		return str(timestamp_ms)


def truncate_args(args_json: str, max_len: int = 60) -> str:
	"""Shorten an args JSON string for table display."""
	if not args_json:
		return ""
	text = args_json.strip()
	if len(text) <= max_len:
		return text
	return text[:max_len - 3] + "..."


def status_style(success: bool) -> str:
	"""Return a Rich style string for pass/fail."""
	return "green" if success else "red"


def status_text(success: bool) -> str:
	"""Return pass/fail text."""
	return "OK" if success else "FAIL"


TASK_STATUS_STYLES = {
	"pending": "yellow",
	"in_progress": "cyan",
	"completed": "green",
	"failed": "red",
}

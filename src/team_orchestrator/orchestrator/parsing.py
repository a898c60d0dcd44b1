"""
Parsing helpers for free-text agent output.

Agents talk in plain text. Three conventions are recognised:
- "@agent-id" mentions, used for delegation and routing
- a single-line tool call, CALL_TOOL: name(json) or CALL_TOOL: name.action(json)
- "Name (Role):" speaker prefixes that models tend to echo back, which
  are stripped before the text is recorded
"""

import json
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

TOOL_CALL_PATTERN = re.compile(r"^CALL_TOOL:\s*([a-zA-Z0-9_]+)(?:\.([a-zA-Z0-9_]+))?\((.*)\)\s*;?$", re.DOTALL)
MENTION_PATTERN = re.compile(r"@([a-zA-Z0-9_-]+)")
_SYSTEM_PREFIX = re.compile(r"^System(?: \(Orchestrator\))?:\s*", re.IGNORECASE)


class ToolCallParseError(ValueError):
	"""Raised when a tool call's argument payload is not a JSON object."""

	def __init__(self, tool_name: str, message: str):
		super().__init__(message)
		self.tool_name = tool_name


@dataclass(frozen=True)
class ToolCall:
	name: str
	args: dict[str, Any] = field(default_factory=dict)
	action: Optional[str] = None


def parse_tool_call(content: str) -> Optional[ToolCall]:
	"""
	Parse an embedded tool call.

	Returns:
		ToolCall, or None when the content is not a tool call

	Raises:
		ToolCallParseError: If the argument payload is malformed
	"""
	match = TOOL_CALL_PATTERN.match(content.strip())
	if not match:
		return None

	name, action, raw_args = match.group(1), match.group(2), (match.group(3) or "").strip()
	if raw_args:
		try:
			args = json.loads(raw_args)
		except json.JSONDecodeError as e:
			raise ToolCallParseError(name, str(e)) from e
		if not isinstance(args, dict):
			raise ToolCallParseError(name, f"expected a JSON object, got {type(args).__name__}")
	else:
		args = {}

	if action and "action" not in args:
		args["action"] = action
	return ToolCall(name=name, args=args, action=action)


def extract_mentions(content: str, known_ids: Iterable[str]) -> list[str]:
	"""Known agent ids mentioned in content, first occurrence order, no duplicates."""
	known = set(known_ids)
	mentions: list[str] = []
	for agent_id in MENTION_PATTERN.findall(content):
		if agent_id in known and agent_id not in mentions:
			mentions.append(agent_id)
	return mentions


def sanitize_agent_content(content: str, name: str, role: str, other_names: Iterable[str] = ()) -> str:
	"""
	Strip echoed speaker prefixes from every line.

	Removes "System:" / "System (Orchestrator):", the agent's own
	"Name:" / "Name (Role):", and any other agent's "Name (...):".
	Leading whitespace is trimmed per line and the whole result is
	stripped, so an answer consisting only of prefixes becomes "".
	"""
	self_prefix = re.compile(rf"^{re.escape(name)}(?:\s*\({re.escape(role)}\))?:\s*", re.IGNORECASE)
	others = "|".join(re.escape(n) for n in other_names if n)
	other_prefix = re.compile(rf"^(?:{others})(?:\s*\([^)]+\))?:\s*", re.IGNORECASE) if others else None

	cleaned = []
	for raw_line in re.split(r"\r?\n", content):
		line = raw_line.lstrip()
		if not line:
			cleaned.append("")
			continue
		line = _SYSTEM_PREFIX.sub("", line, count=1)
		line = self_prefix.sub("", line, count=1)
		if other_prefix is not None:
			line = other_prefix.sub("", line, count=1)
		cleaned.append(line.lstrip())
	return "\n".join(cleaned).strip()

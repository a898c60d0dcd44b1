"""Coordination core: turn scheduler, task tracker, admission control and the control loop."""

from .coordinator import Orchestrator
from .parallel import ParallelExecutor, ResourceLock
from .parsing import ToolCall, ToolCallParseError, extract_mentions, parse_tool_call, sanitize_agent_content
from .scheduler import ScheduledTurn, Scheduler, TurnReason
from .tasks import (
	ExternalTicket,
	Task,
	TaskAssignment,
	TaskHookContext,
	TaskHooks,
	TaskManager,
	TaskStatus,
	extract_task_from_message,
)

__all__ = [
	"ExternalTicket",
	"Orchestrator",
	"ParallelExecutor",
	"ResourceLock",
	"ScheduledTurn",
	"Scheduler",
	"Task",
	"TaskAssignment",
	"TaskHookContext",
	"TaskHooks",
	"TaskManager",
	"TaskStatus",
	"ToolCall",
	"ToolCallParseError",
	"TurnReason",
	"extract_mentions",
	"extract_task_from_message",
	"parse_tool_call",
	"sanitize_agent_content",
]

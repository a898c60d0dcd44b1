"""Tool capability shared by every tool implementation."""

from dataclasses import dataclass
from typing import Any, Optional, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

from ..team import SandboxLevel


class ToolResult(BaseModel):
	"""Outcome of one tool invocation."""
	model_config = ConfigDict(populate_by_name=True)

	tool_name: str = Field(alias="toolName")
	success: bool
	output: str = Field(default="")
	error: Optional[str] = Field(default=None)
	command: Optional[str] = Field(default=None)
	duration_ms: Optional[float] = Field(default=None, alias="durationMs")


@dataclass(frozen=True)
class ToolContext:
	"""Per-call context handed to a tool."""
	sandbox_level: SandboxLevel = SandboxLevel.GUIDED


@runtime_checkable
class Tool(Protocol):
	"""A named capability agents can invoke with CALL_TOOL."""

	name: str
	description: str

	async def execute(self, args: dict[str, Any], context: ToolContext) -> ToolResult:
		...

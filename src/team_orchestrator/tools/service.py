"""
Tool Service - Name-to-tool registry with an append-only audit trail.

Every invocation, including unknown tool names and tools that raise,
produces a ToolResult and is recorded.
"""

import logging
import time
from typing import Any, Optional

from ..team import SandboxLevel
from .base import Tool, ToolContext, ToolResult

logger = logging.getLogger(__name__)


class ToolService:
	"""Dispatches tool calls by name and keeps an audit trail of results."""

	def __init__(self, tools: Optional[list[Tool]] = None):
		self._tools: dict[str, Tool] = {}
		self._audit_trail: list[ToolResult] = []
		for tool in tools or []:
			self.register_tool(tool)

	def register_tool(self, tool: Tool) -> None:
		"""Register a tool, replacing any tool with the same name."""
		if tool.name in self._tools:
			logger.warning(f"Tool with name '{tool.name}' already registered. Overwriting.")
		self._tools[tool.name] = tool

	def get_tool(self, name: str) -> Optional[Tool]:
		return self._tools.get(name)

	def list_tools(self) -> list[str]:
		return list(self._tools)

	async def execute_tool(
		self,
		tool_name: str,
		args: dict[str, Any],
		sandbox_level: SandboxLevel = SandboxLevel.GUIDED,
	) -> ToolResult:
		"""
		Execute a registered tool.

		Args:
			tool_name: Registered tool name
			args: JSON-decoded arguments
			sandbox_level: Sandbox policy passed through to the tool

		Returns:
			ToolResult; failures are reported in the result, never raised
		"""
		tool = self.get_tool(tool_name)
		if tool is None:
			result = ToolResult(
				tool_name=tool_name,
				success=False,
				error=f"Tool '{tool_name}' not found.",
			)
			self._audit_trail.append(result)
			return result

		start = time.monotonic()
		try:
			result = await tool.execute(args, ToolContext(sandbox_level=sandbox_level))
		except Exception as e:
			logger.error(f"Tool {tool_name} raised: {e}")
			result = ToolResult(tool_name=tool_name, success=False, error=str(e))

		if result.duration_ms is None:
			result = result.model_copy(update={"duration_ms": (time.monotonic() - start) * 1000})

		logger.debug(f"Tool {tool_name} finished success={result.success} in {result.duration_ms:.0f}ms")
		self._audit_trail.append(result)
		return result

	def get_tool_descriptions(self) -> str:
		"""Human-readable list of registered tools for prompts."""
		lines = ["Available Tools:"]
		for tool in self._tools.values():
			lines.append(f"- {tool.name}: {tool.description}")
		return "\n".join(lines)

	def get_audit_trail(self) -> list[ToolResult]:
		return list(self._audit_trail)

"""Tool capability and dispatcher. Concrete tools are provided by integrators."""

from .base import Tool, ToolContext, ToolResult
from .service import ToolService

__all__ = [
	"Tool",
	"ToolContext",
	"ToolResult",
	"ToolService",
]

"""
Message Models - what agents return and what the session publishes.

Agents may return partially filled messages; the coordinator fills in
topic, author, timestamp and type before recording them.
"""

import json
import time
import uuid
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .tools.base import ToolResult

SYSTEM_AUTHOR_ID = "system"
HUMAN_AUTHOR_ID = "human"


class AuthorType(str, Enum):
	AGENT = "agent"
	HUMAN = "human"


class MessageType(str, Enum):
	"""Kind of message content."""
	TEXT = "text"
	CODE = "code"
	FILE_CHANGE = "file_change"
	TOOL_OUTPUT = "tool_output"
	STATUS_UPDATE = "status_update"
	SYSTEM = "system"


class MessageAuthor(BaseModel):
	id: str
	name: str
	role: str
	type: AuthorType = AuthorType.AGENT


class Message(BaseModel):
	"""A single message in a topic."""
	model_config = ConfigDict(populate_by_name=True)

	id: str = Field(default_factory=lambda: new_message_id())
	topic_id: Optional[str] = Field(default=None, alias="topicId")
	author: Optional[MessageAuthor] = Field(default=None)
	timestamp: Optional[float] = Field(default=None, description="Milliseconds since the epoch")
	type: Optional[MessageType] = Field(default=None)
	content: Union[str, ToolResult, dict[str, Any]] = Field(default="")
	mentions: list[str] = Field(default_factory=list)
	parent_id: Optional[str] = Field(default=None, alias="parentId")
	metadata: dict[str, Any] = Field(default_factory=dict)

	def content_text(self) -> str:
		"""Content as a string; structured content is JSON encoded."""
		if isinstance(self.content, str):
			return self.content
		if isinstance(self.content, BaseModel):
			return self.content.model_dump_json(exclude_none=True)
		return json.dumps(self.content)


def now_ms() -> float:
	return time.time() * 1000


def new_message_id() -> str:
	return f"msg-{int(now_ms())}-{uuid.uuid4().hex[:7]}"


def system_message(
	topic_id: str,
	content: Union[str, ToolResult],
	message_type: MessageType = MessageType.SYSTEM,
	role: str = "Orchestrator",
	timestamp: Optional[float] = None,
) -> Message:
	"""Build a message authored by the orchestrator itself."""
	return Message(
		topic_id=topic_id,
		author=MessageAuthor(id=SYSTEM_AUTHOR_ID, name="System", role=role),
		timestamp=timestamp if timestamp is not None else now_ms(),
		type=message_type,
		content=content,
	)

"""
Event Bus - outbound notification channel.

The orchestrator publishes every appended message, status change and
tool result here. Presentation layers (the CLI renderer, tests, a future
UI) subscribe without the orchestrator knowing about them. Publishing
never blocks and never fails because of a subscriber.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from .messages import now_ms

logger = logging.getLogger(__name__)

ALL_EVENTS = "*"

EventListener = Callable[["BusEvent"], None]


@dataclass(frozen=True)
class BusEvent:
	type: str
	payload: Any
	timestamp: float = field(default_factory=now_ms)


class EventBus:
	"""In-process publish/subscribe hub keyed by event type."""

	def __init__(self):
		self._listeners: dict[str, list[EventListener]] = {}

	def publish(self, event: BusEvent) -> None:
		"""Deliver an event to its type's listeners, then to catch-all listeners."""
		for key in (event.type, ALL_EVENTS):
			for listener in list(self._listeners.get(key, [])):
				try:
					listener(event)
				except Exception as e:
					logger.error(f"Event listener for {key!r} failed on {event.type}: {e}")

	def emit(self, event_type: str, payload: Any) -> BusEvent:
		event = BusEvent(type=event_type, payload=payload)
		self.publish(event)
		return event

	def subscribe(self, event_type: str, listener: EventListener) -> Callable[[], None]:
		"""
		Register a listener for one event type.

		Returns:
			A callable that removes the listener again
		"""
		self._listeners.setdefault(event_type, []).append(listener)

		def unsubscribe() -> None:
			listeners = self._listeners.get(event_type, [])
			if listener in listeners:
				listeners.remove(listener)

		return unsubscribe

	def subscribe_all(self, listener: EventListener) -> Callable[[], None]:
		return self.subscribe(ALL_EVENTS, listener)

	def subscribe_queue(self, event_type: str = ALL_EVENTS) -> tuple[asyncio.Queue, Callable[[], None]]:
		"""Subscribe an unbounded asyncio.Queue, for consumers that prefer to await events."""
		queue: asyncio.Queue = asyncio.Queue()
		unsubscribe = self.subscribe(event_type, queue.put_nowait)
		return queue, unsubscribe

	def listener_count(self, event_type: str = ALL_EVENTS) -> int:
		return len(self._listeners.get(event_type, []))

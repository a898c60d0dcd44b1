"""
Turn Scheduler - time-ordered queue of pending agent turns.

Routing policy lives here:
- the initial turn goes to the team lead
- @mentions enqueue one turn per known mentioned member, in mention order
- messages from members with a seniority level are escalated to the
  closest superior for review (falling back to the team lead)
- non-lead agents hand control back to the lead with a followup turn

Turns with equal timestamps dequeue in the order they were enqueued.
"""

import dataclasses
import heapq
import itertools
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

from ..messages import now_ms
from ..team import LEVEL_RANK, AgentLevel, TeamConfig, TeamMemberConfig, find_team_lead

logger = logging.getLogger(__name__)


class TurnReason(str, Enum):
	INIT = "init"
	MENTION = "mention"
	FOLLOWUP = "followup"
	REVIEW = "review"
	HUMAN = "human"


@dataclass(frozen=True)
class ScheduledTurn:
	"""One pending agent turn."""
	agent_id: str
	topic_id: str
	reason: TurnReason
	timestamp: float
	metadata: dict[str, Any] = field(default_factory=dict)
	attempts: int = 0


class Scheduler:
	"""
	Priority queue of ScheduledTurn ordered by (timestamp, enqueue order).

	Args:
		team: Roster used for routing decisions (read-only copy)
		clock: Returns the current time in milliseconds
	"""

	def __init__(self, team: TeamConfig, clock: Callable[[], float] = now_ms):
		self._clock = clock
		self._queue: list[tuple[float, int, ScheduledTurn]] = []
		self._counter = itertools.count()
		self._members: dict[str, TeamMemberConfig] = {m.id: m for m in team.members}
		lead = find_team_lead(team.members)
		self._team_lead_id: Optional[str] = lead.id if lead else None

	@property
	def team_lead_id(self) -> Optional[str]:
		return self._team_lead_id

	def now(self) -> float:
		return self._clock()

	def enqueue(self, turn: ScheduledTurn) -> None:
		heapq.heappush(self._queue, (turn.timestamp, next(self._counter), turn))
		logger.debug(f"Enqueued {turn.reason.value} turn for {turn.agent_id} in {turn.topic_id} at {turn.timestamp:.0f}")

	def dequeue(self) -> Optional[ScheduledTurn]:
		"""Remove and return the earliest turn, or None when empty."""
		if not self._queue:
			return None
		return heapq.heappop(self._queue)[2]

	def peek(self) -> Optional[ScheduledTurn]:
		return self._queue[0][2] if self._queue else None

	def has_pending_tasks(self) -> bool:
		return bool(self._queue)

	def pending_turns(self) -> list[ScheduledTurn]:
		"""Snapshot of the queue in dequeue order."""
		return [entry[2] for entry in sorted(self._queue)]

	def __len__(self) -> int:
		return len(self._queue)

	def _turn(
		self,
		agent_id: str,
		topic_id: str,
		reason: TurnReason,
		offset: float = 0,
		metadata: Optional[dict[str, Any]] = None,
	) -> ScheduledTurn:
		turn = ScheduledTurn(
			agent_id=agent_id,
			topic_id=topic_id,
			reason=reason,
			timestamp=self._clock() + offset,
			metadata=metadata or {},
		)
		self.enqueue(turn)
		return turn

	def schedule_initial_turn(self, topic_id: str) -> Optional[ScheduledTurn]:
		if not self._team_lead_id:
			return None
		return self._turn(self._team_lead_id, topic_id, TurnReason.INIT)

	def schedule_mentions(self, topic_id: str, mentions: list[str]) -> list[ScheduledTurn]:
		"""Enqueue a turn per known id, offset so dequeue order matches mention order."""
		turns = []
		for index, agent_id in enumerate(mentions):
			if agent_id in self._members:
				turns.append(self._turn(agent_id, topic_id, TurnReason.MENTION, offset=index))
		return turns

	def schedule_review_if_needed(self, topic_id: str, author_id: str) -> Optional[ScheduledTurn]:
		"""
		Escalate an author's message to a reviewer.

		The reviewer is the member with the lowest rank strictly above the
		author's; with no such member the team lead reviews, unless the
		lead is the author. Authors without a level are never reviewed.
		"""
		author = self._members.get(author_id)
		if author is None or author.level is None:
			return None

		reviewer = self.find_reviewer(author.level, exclude_id=author_id)
		if reviewer is not None:
			reviewer_id = reviewer.id
		elif self._team_lead_id and self._team_lead_id != author_id:
			reviewer_id = self._team_lead_id
		else:
			return None

		return self._turn(reviewer_id, topic_id, TurnReason.REVIEW, metadata={"author_id": author_id})

	def route_back_to_lead(self, topic_id: str, current_agent_id: str) -> Optional[ScheduledTurn]:
		if not self._team_lead_id or self._team_lead_id == current_agent_id:
			return None
		return self._turn(
			self._team_lead_id,
			topic_id,
			TurnReason.FOLLOWUP,
			metadata={"from": current_agent_id},
		)

	def schedule_followup(self, topic_id: str, agent_id: str, metadata: Optional[dict[str, Any]] = None) -> ScheduledTurn:
		return self._turn(agent_id, topic_id, TurnReason.FOLLOWUP, metadata=metadata)

	def schedule_human_turn(self, topic_id: str) -> Optional[ScheduledTurn]:
		"""Give the team lead a turn to answer human input."""
		if not self._team_lead_id:
			return None
		return self._turn(self._team_lead_id, topic_id, TurnReason.HUMAN)

	def reschedule(self, turn: ScheduledTurn, delay_ms: float) -> ScheduledTurn:
		"""Enqueue a copy of a turn that could not run, delay_ms from now."""
		retry = dataclasses.replace(turn, timestamp=self._clock() + delay_ms, attempts=turn.attempts + 1)
		self.enqueue(retry)
		return retry

	def find_reviewer(self, author_level: AgentLevel, exclude_id: str) -> Optional[TeamMemberConfig]:
		needed_rank = LEVEL_RANK[AgentLevel(author_level)]
		candidate: Optional[TeamMemberConfig] = None
		for member in self._members.values():
			if member.level is None or member.id == exclude_id:
				continue
			rank = LEVEL_RANK[member.level]
			if rank > needed_rank and (candidate is None or rank < LEVEL_RANK[candidate.level]):
				candidate = member
		return candidate

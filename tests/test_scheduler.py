"""Tests for the turn scheduler and its routing policy."""

from team_orchestrator.orchestrator.scheduler import ScheduledTurn, Scheduler, TurnReason

from .helpers import FakeClock, make_team, member


def _drain(scheduler: Scheduler) -> list[ScheduledTurn]:
	turns = []
	while scheduler.has_pending_tasks():
		turns.append(scheduler.dequeue())
	return turns


class TestQueue:
	"""Tests for queue ordering."""

	def test_dequeue_empty(self):
		"""Dequeue on an empty queue returns None."""
		scheduler = Scheduler(make_team())
		assert scheduler.dequeue() is None
		assert scheduler.peek() is None
		assert not scheduler.has_pending_tasks()

	def test_orders_by_timestamp(self):
		"""Earlier timestamps dequeue first."""
		scheduler = Scheduler(make_team(member("a")))
		scheduler.enqueue(ScheduledTurn("a", "general", TurnReason.FOLLOWUP, timestamp=20))
		scheduler.enqueue(ScheduledTurn("b", "general", TurnReason.FOLLOWUP, timestamp=10))
		assert [t.agent_id for t in _drain(scheduler)] == ["b", "a"]

	def test_equal_timestamps_keep_enqueue_order(self):
		"""Ties dequeue in enqueue order."""
		scheduler = Scheduler(make_team(member("a")))
		for agent_id in ["c", "a", "b"]:
			scheduler.enqueue(ScheduledTurn(agent_id, "general", TurnReason.FOLLOWUP, timestamp=5))
		assert [t.agent_id for t in _drain(scheduler)] == ["c", "a", "b"]

	def test_reschedule_creates_new_turn(self):
		"""reschedule enqueues a delayed copy with one more attempt."""
		clock = FakeClock(1000)
		scheduler = Scheduler(make_team(member("a")), clock=clock)
		turn = scheduler.schedule_followup("general", "a")
		scheduler.dequeue()
		retry = scheduler.reschedule(turn, 500)
		assert retry is not turn
		assert retry.timestamp == 1500
		assert retry.attempts == 1
		assert turn.attempts == 0
		assert scheduler.dequeue() is retry


class TestRouting:
	"""Tests for initial, mention and lead routing."""

	def test_initial_turn_goes_to_lead(self):
		"""The initial turn is for the team lead."""
		scheduler = Scheduler(make_team(member("dev"), member("lead", role="Team Lead")))
		turn = scheduler.schedule_initial_turn("general")
		assert turn.agent_id == "lead"
		assert turn.reason == TurnReason.INIT

	def test_initial_turn_falls_back_to_first_member(self):
		"""Without a 'team lead' role the first member starts."""
		scheduler = Scheduler(make_team(member("dev"), member("ops")))
		assert scheduler.schedule_initial_turn("general").agent_id == "dev"

	def test_empty_roster_has_no_initial_turn(self):
		"""An empty roster schedules nothing."""
		scheduler = Scheduler(make_team())
		assert scheduler.schedule_initial_turn("general") is None
		assert len(scheduler) == 0

	def test_mentions_dequeue_in_mention_order(self):
		"""Mentions scheduled together dequeue in the order given, even with a frozen clock."""
		scheduler = Scheduler(make_team(member("a"), member("b")), clock=FakeClock())
		scheduler.schedule_mentions("general", ["b", "a"])
		turns = _drain(scheduler)
		assert [t.agent_id for t in turns] == ["b", "a"]
		assert all(t.reason == TurnReason.MENTION for t in turns)
		assert turns[0].timestamp < turns[1].timestamp

	def test_unknown_mentions_ignored(self):
		"""Ids outside the roster are not scheduled."""
		scheduler = Scheduler(make_team(member("a")))
		scheduler.schedule_mentions("general", ["ghost", "a"])
		assert [t.agent_id for t in _drain(scheduler)] == ["a"]

	def test_route_back_to_lead(self):
		"""Non-lead agents hand back to the lead with a followup."""
		scheduler = Scheduler(make_team(member("lead", role="Team Lead"), member("dev")))
		turn = scheduler.route_back_to_lead("general", "dev")
		assert turn.agent_id == "lead"
		assert turn.reason == TurnReason.FOLLOWUP
		assert turn.metadata == {"from": "dev"}

	def test_route_back_from_lead_is_noop(self):
		"""The lead is never routed back to itself."""
		scheduler = Scheduler(make_team(member("lead", role="Team Lead"), member("dev")))
		assert scheduler.route_back_to_lead("general", "lead") is None
		assert len(scheduler) == 0

	def test_human_turn_goes_to_lead(self):
		"""Human input gives the lead a human-reason turn."""
		scheduler = Scheduler(make_team(member("lead", role="Team Lead")))
		turn = scheduler.schedule_human_turn("general")
		assert turn.agent_id == "lead"
		assert turn.reason == TurnReason.HUMAN


class TestReviewEscalation:
	"""Tests for schedule_review_if_needed."""

	def test_closest_superior_reviews(self):
		"""A junior's work goes to the senior, not the principal."""
		scheduler = Scheduler(make_team(
			member("lead", role="Team Lead", level="principal"),
			member("senior", level="senior"),
			member("junior", level="junior"),
		))
		turn = scheduler.schedule_review_if_needed("general", "junior")
		assert turn.agent_id == "senior"
		assert turn.reason == TurnReason.REVIEW
		assert turn.metadata["author_id"] == "junior"

	def test_lowest_rank_above_author(self):
		"""Among several superiors the lowest-ranked one is chosen."""
		scheduler = Scheduler(make_team(
			member("lead", role="Team Lead", level="principal"),
			member("senior", level="senior"),
			member("mid", level="mid"),
			member("junior", level="junior"),
		))
		assert scheduler.schedule_review_if_needed("general", "junior").agent_id == "mid"

	def test_falls_back_to_lead(self):
		"""With no higher-ranked peer the lead reviews."""
		scheduler = Scheduler(make_team(
			member("lead", role="Team Lead", level="principal"),
			member("solo", level="principal"),
		))
		turn = scheduler.schedule_review_if_needed("general", "solo")
		assert turn.agent_id == "lead"
		assert turn.metadata["author_id"] == "solo"

	def test_lead_author_without_superior(self):
		"""A top-ranked lead has nobody to escalate to."""
		scheduler = Scheduler(make_team(member("lead", role="Team Lead", level="principal")))
		assert scheduler.schedule_review_if_needed("general", "lead") is None
		assert len(scheduler) == 0

	def test_author_without_level(self):
		"""Authors without a level are not reviewed."""
		scheduler = Scheduler(make_team(member("lead", role="Team Lead", level="principal"), member("dev")))
		assert scheduler.schedule_review_if_needed("general", "dev") is None

	def test_unknown_author(self):
		"""Unknown authors are not reviewed."""
		scheduler = Scheduler(make_team(member("lead", role="Team Lead", level="principal")))
		assert scheduler.schedule_review_if_needed("general", "human") is None

	def test_members_without_level_never_review(self):
		"""Only members with a level are reviewer candidates."""
		scheduler = Scheduler(make_team(
			member("lead", role="Team Lead"),
			member("helper"),
			member("junior", level="junior"),
		))
		assert scheduler.schedule_review_if_needed("general", "junior").agent_id == "lead"

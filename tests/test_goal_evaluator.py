# tests/test_goal_evaluator.py

import pytest

from keeper.config import GAME_MODE_TURBO
from keeper.errors import NotFoundError
from keeper.goal_evaluator import GoalEvaluator, estimate_kills, evaluate_goal, goal_applies
from keeper.schemas import GameMode, GoalMetric, HeroScope, MatchCS, NewGoal, ParseState
from tests.helpers import make_goal, make_match, ts


class FakeLookup:
    """In-memory per-minute data keyed like the Match Store."""

    def __init__(self, cs=None, networth=None, items=None):
        self.cs = cs or {}              # (match_id, minute) -> (last_hits, denies)
        self.networth = networth or {}  # (match_id, slot, minute) -> networth
        self.items = items or {}        # (match_id, item_id) -> seconds

    def get_cs_at_minute(self, match_id, minute):
        if (match_id, minute) not in self.cs:
            return None
        last_hits, denies = self.cs[(match_id, minute)]
        return MatchCS(match_id=match_id, minute=minute, last_hits=last_hits, denies=denies)

    def get_networth_at_minute(self, match_id, player_slot, minute):
        return self.networth.get((match_id, player_slot, minute))

    def get_item_timing(self, match_id, item_id):
        return self.items.get((match_id, item_id))


# ---------------------------------------------------------------------------
# Parse state
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("metric", list(GoalMetric))
def test_unparsed_match_is_never_evaluated(metric):
    match = make_match(1, parse_state=ParseState.UNPARSED, kills=30)
    lookup = FakeLookup(cs={(1, 10): (80, 10)}, items={(1, 116): 600})
    goal = make_goal(metric, 1, item_id=116)

    assert evaluate_goal(goal, match, lookup) is None


def test_unparsed_match_reduced_mode_only_estimates_kills():
    match = make_match(1, parse_state=ParseState.UNPARSED, kills=15, duration=1800)
    lookup = FakeLookup(cs={(1, 10): (80, 10)})

    kills = evaluate_goal(make_goal(GoalMetric.KILLS, 10, 20), match, lookup, allow_unparsed_estimates=True)
    last_hits = evaluate_goal(make_goal(GoalMetric.LAST_HITS, 50), match, lookup, allow_unparsed_estimates=True)

    assert kills is not None and kills.actual_value == 10
    assert last_hits is None


def test_per_minute_metrics_need_a_parsed_match():
    match = make_match(1, parse_state=ParseState.FAILED)
    lookup = FakeLookup(cs={(1, 10): (80, 10)})

    assert evaluate_goal(make_goal(GoalMetric.LAST_HITS, 50), match, lookup) is None
    assert evaluate_goal(make_goal(GoalMetric.KILLS, 1, 20), match, lookup) is not None


# ---------------------------------------------------------------------------
# Kills
# ---------------------------------------------------------------------------

def test_kills_pace_estimate_scenario():
    match = make_match(1, kills=15, duration=1800)
    result = evaluate_goal(make_goal(GoalMetric.KILLS, 10, 20), match, FakeLookup())

    assert result.actual_value == 10
    assert result.achieved is True
    assert result.target_value == 10


def test_kills_short_game_uses_final_kills():
    assert estimate_kills(7, 15 * 60, 20) == 7
    assert estimate_kills(7, 20 * 60 + 59, 20) == 7


def test_kills_estimate_rounds_half_up():
    assert estimate_kills(5, 40 * 60, 10) == 1    # 1.25
    assert estimate_kills(6, 40 * 60, 10) == 2    # 1.5
    assert estimate_kills(7, 40 * 60, 10) == 2    # 1.75


# ---------------------------------------------------------------------------
# Exact per-minute metrics
# ---------------------------------------------------------------------------

def test_last_hits_uses_exact_minute_value():
    match = make_match(1, last_hits=400)
    lookup = FakeLookup(cs={(1, 10): (52, 7)})

    result = evaluate_goal(make_goal(GoalMetric.LAST_HITS, 50), match, lookup)

    assert result.actual_value == 52
    assert result.achieved is True


def test_last_hits_missing_minute_is_not_estimated():
    # End-of-game last hits would allow a pace estimate; it must not be used
    match = make_match(1, last_hits=400, duration=40 * 60)
    lookup = FakeLookup(cs={(1, 9): (45, 5)})

    assert evaluate_goal(make_goal(GoalMetric.LAST_HITS, 50), match, lookup) is None
    assert evaluate_goal(make_goal(GoalMetric.DENIES, 5), match, lookup) is None


def test_denies_not_achieved():
    match = make_match(1)
    lookup = FakeLookup(cs={(1, 10): (52, 3)})

    result = evaluate_goal(make_goal(GoalMetric.DENIES, 5), match, lookup)

    assert result.actual_value == 3
    assert result.achieved is False


def test_partner_networth():
    lookup = FakeLookup(networth={(1, 1, 10): 5200})
    goal = make_goal(GoalMetric.PARTNER_NETWORTH, 5000)

    assert evaluate_goal(goal, make_match(1, role=5, partner_slot=None), lookup) is None
    result = evaluate_goal(goal, make_match(1, role=5, partner_slot=1), lookup)
    assert result.actual_value == 5200
    assert result.achieved is True
    assert evaluate_goal(goal, make_match(1, role=5, partner_slot=2), lookup) is None


@pytest.mark.parametrize("metric", [GoalMetric.NETWORTH, GoalMetric.LEVEL])
def test_reserved_metrics_are_not_evaluable(metric):
    assert evaluate_goal(make_goal(metric, 1), make_match(1), FakeLookup()) is None


# ---------------------------------------------------------------------------
# Item timing
# ---------------------------------------------------------------------------

def test_item_timing_earlier_is_better():
    match = make_match(1)
    lookup = FakeLookup(items={(1, 116): 900})

    def achieved(target):
        goal = make_goal(GoalMetric.ITEM_TIMING, target, 0, item_id=116)
        return evaluate_goal(goal, match, lookup).achieved

    assert achieved(960) is True
    assert achieved(900) is True
    assert achieved(840) is False


def test_item_timing_is_monotonic_in_target():
    match = make_match(1)
    lookup = FakeLookup(items={(1, 116): 1234})
    results = [
        evaluate_goal(make_goal(GoalMetric.ITEM_TIMING, target, 0, item_id=116), match, lookup).achieved
        for target in range(2000, 0, -50)
    ]
    # once it stops being achieved it never comes back
    first_miss = results.index(False)
    assert all(r is False for r in results[first_miss:])
    assert all(r is True for r in results[:first_miss])


def test_item_never_bought_is_not_evaluable():
    goal = make_goal(GoalMetric.ITEM_TIMING, 900, 0, item_id=116)
    assert evaluate_goal(goal, make_match(1), FakeLookup()) is None


# ---------------------------------------------------------------------------
# Applicability
# ---------------------------------------------------------------------------

def test_hero_filter():
    goal = make_goal(GoalMetric.KILLS, 1, hero_id=5)
    assert goal_applies(goal, make_match(1, hero_id=5)) is True
    assert goal_applies(goal, make_match(1, hero_id=6)) is False


@pytest.mark.parametrize("scope, role, expected", [
    (HeroScope.ANY_CARRY, 1, True),
    (HeroScope.ANY_CARRY, 2, False),
    (HeroScope.ANY_CORE, 2, True),
    (HeroScope.ANY_CORE, 3, True),
    (HeroScope.ANY_CORE, 4, False),
    (HeroScope.ANY_SUPPORT, 5, True),
    (HeroScope.ANY_SUPPORT, 1, False),
    (HeroScope.ANY_SUPPORT, 0, False),
])
def test_hero_scope_filter(scope, role, expected):
    goal = make_goal(GoalMetric.KILLS, 1, hero_scope=scope)
    assert goal_applies(goal, make_match(1, role=role)) is expected


def test_scope_wins_over_hero_id():
    goal = make_goal(GoalMetric.KILLS, 1, hero_id=99, hero_scope=HeroScope.ANY_CORE)
    assert goal_applies(goal, make_match(1, hero_id=1, role=2)) is True


def test_game_mode_filter():
    turbo_goal = make_goal(GoalMetric.KILLS, 1, game_mode=GameMode.TURBO)
    ranked_goal = make_goal(GoalMetric.KILLS, 1)
    turbo_match = make_match(1, game_mode=GAME_MODE_TURBO)

    assert goal_applies(turbo_goal, turbo_match) is True
    assert goal_applies(ranked_goal, turbo_match) is False
    assert evaluate_goal(ranked_goal, turbo_match, FakeLookup()) is None


# ---------------------------------------------------------------------------
# Aggregates (backed by the real stores)
# ---------------------------------------------------------------------------

@pytest.fixture
def evaluator(match_store, goal_store, clock):
    return GoalEvaluator(match_store, goal_store, clock)


def test_matches_with_goals_counts(evaluator, match_store, goal_store):
    goal_store.insert_goal(NewGoal(metric=GoalMetric.KILLS, target_value=10, target_time_minutes=20), 1)
    goal_store.insert_goal(NewGoal(metric=GoalMetric.LAST_HITS, target_value=50, target_time_minutes=10), 2)
    match_store.insert_match(make_match(1, kills=15, duration=1800))
    match_store.replace_cs_series(1, list(range(0, 110, 5)), [0] * 22)  # minute 10 -> 50
    match_store.insert_match(make_match(2, start_time=ts(2026, 10, 13, 10), parse_state=ParseState.UNPARSED))

    summary = {s.match.match_id: s for s in evaluator.matches_with_goals()}

    assert summary[1].goals_applicable == 2
    assert summary[1].goals_achieved == 2
    assert summary[2].goals_applicable == 0
    assert summary[2].goals_achieved == 0


def test_goals_with_daily_progress_buckets(evaluator, match_store, goal_store):
    goal_store.insert_goal(NewGoal(metric=GoalMetric.KILLS, target_value=10, target_time_minutes=20), 1)
    match_store.insert_match(make_match(1, start_time=ts(2026, 10, 14, 9), kills=15, duration=1800))
    match_store.insert_match(make_match(2, start_time=ts(2026, 10, 12, 23, 59), kills=3, duration=1800))
    match_store.insert_match(make_match(3, start_time=ts(2026, 10, 11, 12), kills=30, duration=1800))

    [progress] = evaluator.goals_with_daily_progress(3)
    days = [(d.date, d.achieved, d.total) for d in progress.daily_progress]

    assert days == [
        ("2026-10-12", 0, 1),
        ("2026-10-13", 0, 0),
        ("2026-10-14", 1, 1),
    ]


def test_goal_match_data(evaluator, match_store, goal_store):
    goal = goal_store.insert_goal(NewGoal(metric=GoalMetric.KILLS, target_value=10, target_time_minutes=20), 1)
    match_store.insert_match(make_match(1, kills=15, duration=1800))
    match_store.insert_match(make_match(2, kills=3, duration=1800, hero_id=7))

    points = {p.match_id: p for p in evaluator.goal_match_data(goal.id)}

    assert points[1].value == 10 and points[1].achieved is True
    assert points[2].value == 2 and points[2].achieved is False
    assert points[2].hero_id == 7


def test_goal_match_data_unknown_goal(evaluator):
    with pytest.raises(NotFoundError):
        evaluator.goal_match_data(404)

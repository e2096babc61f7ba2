"""
goal_evaluator.py — Decides whether a goal was met in a match.

evaluate_goal() returns None for both "goal does not apply to this match"
(hero, role or game-mode filter) and "cannot be evaluated" (the exact data
the metric needs is missing). None is never the same as "not achieved":
such matches are left out of every aggregate.

Metric semantics:
  kills             linear pace estimate at the target minute
  last_hits/denies  exact per-minute value only, never estimated
  partner_networth  lane partner's net worth at the target minute
  item_timing       first purchase time in seconds; earlier is better
  networth/level    not evaluable with the stored data
"""

import math
from datetime import datetime, timezone
from typing import Optional

from keeper.clock import date_key, utc_day_start
from keeper.config import HERO_SCOPE_ROLES
from keeper.schemas import (
    DayGoalProgress,
    Goal,
    GoalEvaluation,
    GoalMatchPoint,
    GoalMetric,
    GoalWithDailyProgress,
    Match,
    MatchWithGoals,
    ParseState,
)

SECONDS_PER_DAY = 86400

# Metrics backed by per-minute series that only exist once a match is parsed
PER_MINUTE_METRICS = frozenset({GoalMetric.LAST_HITS, GoalMetric.DENIES, GoalMetric.PARTNER_NETWORTH})


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def goal_applies(goal: Goal, match: Match) -> bool:
    """Hero/role filter, then game-mode filter."""
    if goal.hero_scope is not None:
        if match.role not in HERO_SCOPE_ROLES[goal.hero_scope.value]:
            return False
    elif goal.hero_id is not None and goal.hero_id != match.hero_id:
        return False
    return match.game_mode == goal.game_mode.code


def estimate_kills(kills: int, duration: int, target_minutes: int) -> int:
    """Kills at `target_minutes`, assuming a uniform kill pace over the game."""
    duration_minutes = duration // 60
    if duration_minutes <= target_minutes:
        return kills
    return _round_half_up(kills * target_minutes / duration_minutes)


def _actual_value(goal: Goal, match: Match, lookup) -> Optional[int]:
    minute = goal.target_time_minutes
    metric = goal.metric

    if metric is GoalMetric.KILLS:
        return estimate_kills(match.kills, match.duration, minute)

    if metric in PER_MINUTE_METRICS and match.parse_state is not ParseState.PARSED:
        return None

    if metric is GoalMetric.LAST_HITS:
        cs = lookup.get_cs_at_minute(match.match_id, minute)
        return cs.last_hits if cs is not None else None
    if metric is GoalMetric.DENIES:
        cs = lookup.get_cs_at_minute(match.match_id, minute)
        return cs.denies if cs is not None else None
    if metric is GoalMetric.PARTNER_NETWORTH:
        if match.partner_slot is None:
            return None
        return lookup.get_networth_at_minute(match.match_id, match.partner_slot, minute)
    if metric is GoalMetric.ITEM_TIMING:
        if goal.item_id is None:
            return None
        return lookup.get_item_timing(match.match_id, goal.item_id)

    # networth, level
    return None


def evaluate_goal(
    goal: Goal,
    match: Match,
    lookup,
    allow_unparsed_estimates: bool = False,
) -> Optional[GoalEvaluation]:
    """Evaluates one goal against one match.

    `lookup` provides get_cs_at_minute / get_networth_at_minute /
    get_item_timing (a MatchStore in production).

    Unparsed matches are skipped. With allow_unparsed_estimates=True they are
    still evaluated, but only for kills, the one metric that can be estimated
    from end-of-game fields.
    """
    if match.parse_state is ParseState.UNPARSED:
        if not allow_unparsed_estimates or goal.metric is not GoalMetric.KILLS:
            return None

    if not goal_applies(goal, match):
        return None

    actual = _actual_value(goal, match, lookup)
    if actual is None:
        return None

    if goal.metric is GoalMetric.ITEM_TIMING:
        achieved = actual <= goal.target_value
    else:
        achieved = actual >= goal.target_value

    return GoalEvaluation(
        goal_id=goal.id,
        achieved=achieved,
        actual_value=actual,
        target_value=goal.target_value,
    )


class GoalEvaluator:
    """Aggregates built on evaluate_goal(); re-reads goals and matches on every call."""

    def __init__(self, match_store, goal_store, clock) -> None:
        self.matches = match_store
        self.goals = goal_store
        self.clock = clock

    def evaluate_match_goals(self, match: Match) -> list[GoalEvaluation]:
        evaluations = []
        for goal in self.goals.get_all_goals():
            evaluation = evaluate_goal(goal, match, self.matches)
            if evaluation is not None:
                evaluations.append(evaluation)
        return evaluations

    def matches_with_goals(self) -> list[MatchWithGoals]:
        """Every match with how many goals applied and how many were achieved."""
        goals = self.goals.get_all_goals()
        result = []
        for match in self.matches.get_all_matches():
            evaluations = [
                e for e in (evaluate_goal(g, match, self.matches) for g in goals) if e is not None
            ]
            result.append(MatchWithGoals(
                match=match,
                goals_applicable=len(evaluations),
                goals_achieved=sum(1 for e in evaluations if e.achieved),
            ))
        return result

    def goals_with_daily_progress(self, days: int) -> list[GoalWithDailyProgress]:
        """Per goal, achieved/total counts for each of the last `days` UTC days (oldest first)."""
        if days <= 0:
            return [GoalWithDailyProgress(goal=g, daily_progress=[]) for g in self.goals.get_all_goals()]

        today_start = utc_day_start(self.clock.now())
        window_start = today_start - (days - 1) * SECONDS_PER_DAY
        window_end = today_start + SECONDS_PER_DAY
        matches = self.matches.get_matches_since(window_start, window_end)

        result = []
        for goal in self.goals.get_all_goals():
            progress = []
            for offset in range(days - 1, -1, -1):
                day_start = today_start - offset * SECONDS_PER_DAY
                day_end = day_start + SECONDS_PER_DAY
                total = achieved = 0
                for match in matches:
                    if not day_start <= match.start_time < day_end:
                        continue
                    evaluation = evaluate_goal(goal, match, self.matches)
                    if evaluation is not None:
                        total += 1
                        achieved += int(evaluation.achieved)
                day = datetime.fromtimestamp(day_start, tz=timezone.utc).date()
                progress.append(DayGoalProgress(date=date_key(day), achieved=achieved, total=total))
            result.append(GoalWithDailyProgress(goal=goal, daily_progress=progress))
        return result

    def goal_match_data(self, goal_id: int) -> list[GoalMatchPoint]:
        """Histogram points: one per match the goal could be evaluated on."""
        goal = self.goals.get_goal(goal_id)
        points = []
        for match in self.matches.get_all_matches():
            evaluation = evaluate_goal(goal, match, self.matches)
            if evaluation is None:
                continue
            points.append(GoalMatchPoint(
                match_id=match.match_id,
                hero_id=match.hero_id,
                start_time=match.start_time,
                value=evaluation.actual_value,
                achieved=evaluation.achieved,
            ))
        return points

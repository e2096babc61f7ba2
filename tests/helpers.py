# tests/helpers.py

from datetime import datetime, timezone
from typing import Optional

from keeper.config import GAME_MODE_RANKED
from keeper.schemas import Goal, GoalMetric, Match, ParseState

# Wednesday; the week started on Sunday 2026-10-11
NOW = datetime(2026, 10, 14, 15, 0, tzinfo=timezone.utc)


def ts(*args) -> int:
    """Epoch seconds of a UTC wall-clock time: ts(2026, 10, 14, 9)."""
    return int(datetime(*args, tzinfo=timezone.utc).timestamp())


def make_match(match_id: int, start_time: Optional[int] = None, **overrides) -> Match:
    """A ranked radiant game with plausible stats; any field can be overridden."""
    fields = {
        "match_id": match_id,
        "hero_id": 1,
        "start_time": start_time if start_time is not None else ts(2026, 10, 14, 10),
        "duration": 40 * 60,
        "game_mode": GAME_MODE_RANKED,
        "lobby_type": 7,
        "radiant_win": True,
        "player_slot": 0,
        "kills": 8,
        "deaths": 4,
        "assists": 10,
        "xp_per_min": 600,
        "gold_per_min": 500,
        "last_hits": 200,
        "denies": 10,
        "hero_damage": 20000,
        "tower_damage": 3000,
        "hero_healing": 0,
        "parse_state": ParseState.PARSED,
    }
    fields.update(overrides)
    return Match(**fields)


def make_goal(metric: GoalMetric, target_value: int, target_time_minutes: int = 10, goal_id: int = 1,
              **overrides) -> Goal:
    fields = {
        "id": goal_id,
        "created_at": 0,
        "metric": metric,
        "target_value": target_value,
        "target_time_minutes": target_time_minutes,
    }
    fields.update(overrides)
    return Goal(**fields)


class ScriptedRandom:
    """Deterministic stand-in for random.Random.

    random() returns the scripted rolls in order (repeating the last one),
    choice() picks the scripted indexes (index 0 once they run out),
    shuffle() keeps the order and uniform() returns the lower bound.
    """

    def __init__(self, rolls=(0.0,), picks=()) -> None:
        self.rolls = list(rolls)
        self.picks = list(picks)

    def random(self) -> float:
        if len(self.rolls) > 1:
            return self.rolls.pop(0)
        return self.rolls[0]

    def choice(self, seq):
        index = self.picks.pop(0) if self.picks else 0
        return seq[index]

    def shuffle(self, seq) -> None:
        return None

    def uniform(self, a: float, b: float) -> float:
        return a


class RngFactory:
    """rng_factory that hands out ScriptedRandom sources and counts the calls."""

    def __init__(self, rolls=(0.0,), picks=()) -> None:
        self.rolls = rolls
        self.picks = picks
        self.calls = 0

    def __call__(self) -> ScriptedRandom:
        self.calls += 1
        return ScriptedRandom(self.rolls, self.picks)

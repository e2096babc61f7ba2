"""
schemas.py — Pydantic entities returned by the stores and engines.

Every store decodes ORM rows through exactly one `*_from_row` function per
entity (see the store modules), so all read paths produce the same shape.
The API layer serializes these models directly.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, model_validator

from keeper.config import GAME_MODE_RANKED, GAME_MODE_TURBO, RADIANT_SLOT_LIMIT


# ---------------------------------------------------------------------------
# Enumerations (stored as their string values)
# ---------------------------------------------------------------------------

class ParseState(str, Enum):
    UNPARSED = "unparsed"
    PARSING = "parsing"
    PARSED = "parsed"
    FAILED = "failed"


class GoalMetric(str, Enum):
    NETWORTH = "networth"
    KILLS = "kills"
    LAST_HITS = "last_hits"
    DENIES = "denies"
    LEVEL = "level"
    ITEM_TIMING = "item_timing"
    PARTNER_NETWORTH = "partner_networth"


class GameMode(str, Enum):
    RANKED = "ranked"
    TURBO = "turbo"

    @property
    def code(self) -> int:
        """Raw OpenDota game_mode code this filter accepts."""
        return GAME_MODE_RANKED if self is GameMode.RANKED else GAME_MODE_TURBO


class HeroScope(str, Enum):
    ANY_CORE = "any_core"
    ANY_CARRY = "any_carry"
    ANY_SUPPORT = "any_support"


class ChallengeStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


# ---------------------------------------------------------------------------
# Matches
# ---------------------------------------------------------------------------

class Match(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    match_id: int
    hero_id: int
    start_time: int
    duration: int
    game_mode: int
    lobby_type: int
    radiant_win: bool
    player_slot: int
    kills: int
    deaths: int
    assists: int
    xp_per_min: int
    gold_per_min: int
    last_hits: int
    denies: int
    hero_damage: int
    tower_damage: int
    hero_healing: int
    parse_state: ParseState = ParseState.UNPARSED
    role: int = 0
    partner_slot: Optional[int] = None

    @property
    def is_radiant(self) -> bool:
        return self.player_slot < RADIANT_SLOT_LIMIT

    @property
    def is_win(self) -> bool:
        return self.radiant_win == self.is_radiant

    @property
    def positive_kda(self) -> bool:
        return self.kills + self.assists > self.deaths


class MatchCS(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    match_id: int
    minute: int
    last_hits: int
    denies: int


class ItemTiming(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    match_id: int
    item_id: int
    timing_seconds: int


class Baselines(BaseModel):
    """Rolling averages that seed challenge targets."""
    avg_kills: float
    avg_gpm: float
    avg_deaths: float
    avg_hero_damage: float
    avg_cs_at_10: Optional[float] = None


# ---------------------------------------------------------------------------
# Goals
# ---------------------------------------------------------------------------

class NewGoal(BaseModel):
    hero_id: Optional[int] = None
    hero_scope: Optional[HeroScope] = None
    metric: GoalMetric
    target_value: int
    target_time_minutes: int = 0
    item_id: Optional[int] = None
    game_mode: GameMode = GameMode.RANKED

    @model_validator(mode="after")
    def _item_timing_needs_item(self):
        if self.metric is GoalMetric.ITEM_TIMING and self.item_id is None:
            raise ValueError("item_timing goals require item_id")
        return self


class Goal(NewGoal):
    model_config = ConfigDict(from_attributes=True)

    id: int
    created_at: int


class GoalEvaluation(BaseModel):
    goal_id: int
    achieved: bool
    actual_value: int
    target_value: int


class MatchWithGoals(BaseModel):
    match: Match
    goals_applicable: int
    goals_achieved: int


class DayGoalProgress(BaseModel):
    date: str
    achieved: int
    total: int


class GoalWithDailyProgress(BaseModel):
    goal: Goal
    daily_progress: list[DayGoalProgress]


class GoalMatchPoint(BaseModel):
    """One histogram bar: a match the goal was evaluated on."""
    match_id: int
    hero_id: int
    start_time: int
    value: int
    achieved: bool


class HeroGoalSuggestion(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    hero_id: int
    suggested_last_hits: int
    current_average: float
    created_at: int
    games_analyzed: int


# ---------------------------------------------------------------------------
# Challenges
# ---------------------------------------------------------------------------

class DailyChallenge(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    challenge_date: str
    difficulty: Difficulty
    description: str
    target: int
    target_games: int = 1
    hero_id: Optional[int] = None
    metric: str
    status: ChallengeStatus
    created_at: int
    completed_at: Optional[int] = None


class DailyChallengeProgress(BaseModel):
    challenge: DailyChallenge
    current_value: int
    target: int
    completed: bool
    games_counted: int


class ChallengeOption(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    week_start_date: str
    difficulty: Difficulty
    description: str
    target: int
    target_games: Optional[int] = None
    hero_id: Optional[int] = None
    metric: str
    option_index: int
    reroll_generation: int


class WeeklyChallenge(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    week_start_date: str
    # Skipped weeks store free-form placeholders here
    difficulty: str
    description: str
    target: int
    target_games: Optional[int] = None
    hero_id: Optional[int] = None
    metric: str
    status: ChallengeStatus
    accepted_at: Optional[int] = None
    completed_at: Optional[int] = None
    reroll_count: int = 0


class WeeklyChallengeProgress(BaseModel):
    challenge: WeeklyChallenge
    current_value: int
    target: int
    games_counted: int
    days_remaining: int
    completed: bool


class ChallengeHistoryEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    challenge_type: str
    period_start_date: str
    description: str
    status: ChallengeStatus
    completed_at: Optional[int] = None
    target_achieved: Optional[int] = None


# ---------------------------------------------------------------------------
# Last-hits analysis
# ---------------------------------------------------------------------------

class LastHitsDataPoint(BaseModel):
    match_id: int
    hero_id: int
    start_time: int
    last_hits: int
    game_mode: int


class LastHitsPeriodStats(BaseModel):
    average: float
    min: int
    max: int
    count: int
    data_points: list[LastHitsDataPoint]


class HeroLastHitsStats(BaseModel):
    hero_id: int
    average: float
    count: int
    # Positive = improving, negative = declining
    trend_percentage: float


class LastHitsAnalysis(BaseModel):
    current_period: LastHitsPeriodStats
    previous_period: Optional[LastHitsPeriodStats] = None
    per_hero_stats: list[HeroLastHitsStats]

"""
config.py — Project-wide constants for Dota Keeper.

Unlike runtime settings (which are read from environment variables), these
constants are stable across environments and don't need to be overridden.
"""

# ---------------------------------------------------------------------------
# Game modes — the only raw OpenDota codes a goal is ever evaluated against.
#
#   game_mode 22 = All Pick Ranked
#   game_mode 23 = Turbo
# Full list: https://github.com/odota/dotaconstants/blob/master/build/game_mode.json
# ---------------------------------------------------------------------------

GAME_MODE_RANKED: int = 22
GAME_MODE_TURBO: int = 23

# Lobby types requested when backfilling history (0 = public, 7 = ranked).
BACKFILL_LOBBY_TYPES: str = "0,7"

# ---------------------------------------------------------------------------
# Lane roles stored on matches.role (0 = unknown until the match is parsed)
# ---------------------------------------------------------------------------

ROLE_UNKNOWN: int = 0
ROLE_CARRY: int = 1
ROLE_MID: int = 2
ROLE_OFFLANE: int = 3
ROLE_SOFT_SUPPORT: int = 4
ROLE_HARD_SUPPORT: int = 5

# hero_scope tag -> roles it covers
HERO_SCOPE_ROLES: dict[str, frozenset[int]] = {
    "any_carry": frozenset({ROLE_CARRY}),
    "any_core": frozenset({ROLE_CARRY, ROLE_MID, ROLE_OFFLANE}),
    "any_support": frozenset({ROLE_SOFT_SUPPORT, ROLE_HARD_SUPPORT}),
}

# Player slots below this value are on the Radiant side.
RADIANT_SLOT_LIMIT: int = 128

# Minute at which lane cores are told apart from supports by net worth.
LANE_NETWORTH_MINUTE: int = 10

# ---------------------------------------------------------------------------
# Challenge generation
# ---------------------------------------------------------------------------

# Окна для скользящих средних
BASELINE_MATCH_WINDOW: int = 20
BASELINE_PARSED_CS_WINDOW: int = 10
CS_BASELINE_MINUTE: int = 10

# Используются, пока у игрока нет ни одного сохранённого матча
DEFAULT_AVG_KILLS: float = 10.0
DEFAULT_AVG_GPM: float = 400.0
DEFAULT_AVG_DEATHS: float = 5.0
DEFAULT_AVG_HERO_DAMAGE: float = 15000.0

# Difficulty roll: easy below 0.60, medium below 0.90, hard otherwise
EASY_ROLL_LIMIT: float = 0.60
MEDIUM_ROLL_LIMIT: float = 0.90

# Пулы героев для шаблонов с конкретным героем
DAILY_RECENT_HERO_WINDOW: int = 10
WEEKLY_RECENT_HERO_WINDOW: int = 20
UNFAMILIAR_HERO_DAYS: int = 7

# A daily metric is not repeated if it was generated in the last N days
DAILY_REPEAT_LOOKBACK_DAYS: int = 3

# Weekly options: one per tier, at most this many rerolls per week
WEEKLY_MAX_REROLLS: int = 2

# ---------------------------------------------------------------------------
# Hero goal suggestion
# ---------------------------------------------------------------------------

SUGGESTION_TTL_DAYS: int = 7
SUGGESTION_MIN_HERO_GAMES: int = 5
SUGGESTION_SAMPLE_GAMES: int = 5

# difficulty -> (min, max) improvement over the current average
SUGGESTION_IMPROVEMENT_RANGES: dict[str, tuple[float, float]] = {
    "Easy": (0.03, 0.05),
    "Medium": (0.05, 0.10),
    "Hard": (0.10, 0.15),
}
SUGGESTION_CUSTOM_SPREAD: float = 0.02

"""
models.py — All SQLAlchemy ORM models for Dota Keeper.

Importing this module registers all models with Base (from database.py),
so Alembic can detect the full schema via Base.metadata.
"""

from sqlalchemy import (
    BigInteger,
    Column,
    Float,
    Integer,
    SmallInteger,
    String,
    Text,
    UniqueConstraint,
)

from keeper.database import Base


# ---------------------------------------------------------------------------
# Matches (populated by ingestion.py)
# ---------------------------------------------------------------------------

class Match(Base):
    """One finished game of the tracked player. Never mutated after insert,
    except for the enrichment columns parse_state / role / partner_slot."""
    __tablename__ = "matches"

    match_id = Column(BigInteger, primary_key=True)
    hero_id = Column(Integer, nullable=False)
    start_time = Column(BigInteger, nullable=False, index=True)
    duration = Column(Integer, nullable=False)
    game_mode = Column(SmallInteger, nullable=False)
    lobby_type = Column(SmallInteger, nullable=False)
    radiant_win = Column(Integer, nullable=False)   # 0 or 1
    player_slot = Column(Integer, nullable=False)   # 0-127 radiant, 128-255 dire
    kills = Column(Integer, nullable=False)
    deaths = Column(Integer, nullable=False)
    assists = Column(Integer, nullable=False)
    xp_per_min = Column(Integer, nullable=False)
    gold_per_min = Column(Integer, nullable=False)
    last_hits = Column(Integer, nullable=False)
    denies = Column(Integer, nullable=False)
    hero_damage = Column(Integer, nullable=False)
    tower_damage = Column(Integer, nullable=False)
    hero_healing = Column(Integer, nullable=False)

    # unparsed -> parsing -> parsed | failed
    parse_state = Column(String(16), nullable=False, default="unparsed", index=True)
    # 0=unknown, 1=carry, 2=mid, 3=offlane, 4=soft support, 5=hard support
    role = Column(SmallInteger, nullable=False, default=0)
    # Lane partner's player_slot; set during parsing for supports only
    partner_slot = Column(Integer)


class MatchCS(Base):
    """Own last hits / denies at each minute boundary (OpenDota lh_t / dn_t)."""
    __tablename__ = "match_cs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    # No ForeignKey constraint — MatchStore.clear_all cleans this table explicitly.
    match_id = Column(BigInteger, nullable=False, index=True)
    minute = Column(Integer, nullable=False)
    last_hits = Column(Integer, nullable=False)
    denies = Column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint("match_id", "minute", name="uq_match_cs_minute"),
    )


class PlayerNetworth(Base):
    """Нетворс каждого игрока на каждой минуте (gold_t из OpenDota)."""
    __tablename__ = "player_networth"

    match_id = Column(BigInteger, primary_key=True, nullable=False)
    player_slot = Column(Integer, primary_key=True, nullable=False)
    minute = Column(Integer, primary_key=True, nullable=False)
    networth = Column(Integer, nullable=False)


class ItemTiming(Base):
    """First purchase time of an item (seconds from the horn, may be negative)."""
    __tablename__ = "item_timings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    match_id = Column(BigInteger, nullable=False, index=True)
    item_id = Column(Integer, nullable=False)
    timing_seconds = Column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint("match_id", "item_id", name="uq_item_timing"),
    )


# ---------------------------------------------------------------------------
# Goals (user-defined)
# ---------------------------------------------------------------------------

class Goal(Base):
    __tablename__ = "goals"

    id = Column(Integer, primary_key=True, autoincrement=True)
    hero_id = Column(Integer)
    # any_core / any_carry / any_support; wins over hero_id when set
    hero_scope = Column(String(16))
    metric = Column(String(32), nullable=False)
    # For item_timing: target time in seconds
    target_value = Column(Integer, nullable=False)
    target_time_minutes = Column(Integer, nullable=False)
    item_id = Column(Integer)
    game_mode = Column(String(16), nullable=False)
    created_at = Column(BigInteger, nullable=False)


class HeroGoalSuggestion(Base):
    """Таблица из одной строки (id = 1) с текущим недельным предложением."""
    __tablename__ = "hero_goal_suggestions"

    id = Column(Integer, primary_key=True)
    hero_id = Column(Integer, nullable=False)
    suggested_last_hits = Column(Integer, nullable=False)
    current_average = Column(Float, nullable=False)
    created_at = Column(BigInteger, nullable=False)
    games_analyzed = Column(Integer, nullable=False)


# ---------------------------------------------------------------------------
# Challenges
# ---------------------------------------------------------------------------

class DailyChallenge(Base):
    __tablename__ = "daily_challenges"

    id = Column(Integer, primary_key=True, autoincrement=True)
    challenge_date = Column(String(10), nullable=False, unique=True)  # YYYY-MM-DD
    difficulty = Column(String(16), nullable=False)
    description = Column(Text, nullable=False)
    target = Column(Integer, nullable=False)
    target_games = Column(Integer, nullable=False, default=1)
    hero_id = Column(Integer)
    metric = Column(String(32), nullable=False)
    status = Column(String(16), nullable=False, default="active")
    created_at = Column(BigInteger, nullable=False)
    completed_at = Column(BigInteger)


class ChallengeOption(Base):
    """Одна из (до) 3 недельных карточек, предложенных пользователю."""
    __tablename__ = "challenge_options"

    id = Column(Integer, primary_key=True, autoincrement=True)
    week_start_date = Column(String(10), nullable=False, index=True)
    difficulty = Column(String(16), nullable=False)
    description = Column(Text, nullable=False)
    target = Column(Integer, nullable=False)
    target_games = Column(Integer)
    hero_id = Column(Integer)
    metric = Column(String(32), nullable=False)
    option_index = Column(Integer, nullable=False)
    reroll_generation = Column(Integer, nullable=False, default=0)
    created_at = Column(BigInteger, nullable=False)

    __table_args__ = (
        UniqueConstraint("week_start_date", "option_index", name="uq_challenge_option_slot"),
    )


class WeeklyChallenge(Base):
    """The accepted (or skipped) challenge of a week."""
    __tablename__ = "weekly_challenges"

    id = Column(Integer, primary_key=True, autoincrement=True)
    week_start_date = Column(String(10), nullable=False, unique=True)
    difficulty = Column(String(16), nullable=False)
    description = Column(Text, nullable=False)
    target = Column(Integer, nullable=False)
    target_games = Column(Integer)
    hero_id = Column(Integer)
    metric = Column(String(32), nullable=False)
    status = Column(String(16), nullable=False, default="active")
    accepted_at = Column(BigInteger)
    completed_at = Column(BigInteger)
    reroll_count = Column(Integer, nullable=False, default=0)


class ChallengeHistory(Base):
    """Append-only ledger of terminal daily/weekly outcomes."""
    __tablename__ = "challenge_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    challenge_type = Column(String(8), nullable=False)       # daily / weekly
    period_start_date = Column(String(10), nullable=False)
    description = Column(Text, nullable=False)
    status = Column(String(16), nullable=False)              # completed / failed
    completed_at = Column(BigInteger)
    target_achieved = Column(Integer)

    __table_args__ = (
        UniqueConstraint("challenge_type", "period_start_date", name="uq_challenge_history_period"),
    )

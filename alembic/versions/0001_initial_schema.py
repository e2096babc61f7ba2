"""Initial schema: matches with enrichment, goals, challenges.

Revision ID: 0001
Revises:
Create Date: 2026-10-19

Creates:
  matches, match_cs, player_networth, item_timings   — Match Store
  goals, hero_goal_suggestions                       — goals
  daily_challenges, challenge_options,
  weekly_challenges, challenge_history               — challenges

Per-match tables carry no FK constraint; MatchStore.clear_all cleans them
explicitly.
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "matches",
        sa.Column("match_id", sa.BigInteger(), primary_key=True),
        sa.Column("hero_id", sa.Integer(), nullable=False),
        sa.Column("start_time", sa.BigInteger(), nullable=False),
        sa.Column("duration", sa.Integer(), nullable=False),
        sa.Column("game_mode", sa.SmallInteger(), nullable=False),
        sa.Column("lobby_type", sa.SmallInteger(), nullable=False),
        sa.Column("radiant_win", sa.Integer(), nullable=False),
        sa.Column("player_slot", sa.Integer(), nullable=False),
        sa.Column("kills", sa.Integer(), nullable=False),
        sa.Column("deaths", sa.Integer(), nullable=False),
        sa.Column("assists", sa.Integer(), nullable=False),
        sa.Column("xp_per_min", sa.Integer(), nullable=False),
        sa.Column("gold_per_min", sa.Integer(), nullable=False),
        sa.Column("last_hits", sa.Integer(), nullable=False),
        sa.Column("denies", sa.Integer(), nullable=False),
        sa.Column("hero_damage", sa.Integer(), nullable=False),
        sa.Column("tower_damage", sa.Integer(), nullable=False),
        sa.Column("hero_healing", sa.Integer(), nullable=False),
        sa.Column("parse_state", sa.String(16), nullable=False, server_default="unparsed"),
        sa.Column("role", sa.SmallInteger(), nullable=False, server_default="0"),
        sa.Column("partner_slot", sa.Integer(), nullable=True),
    )
    op.create_index("ix_matches_start_time", "matches", ["start_time"])
    op.create_index("ix_matches_parse_state", "matches", ["parse_state"])

    op.create_table(
        "match_cs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("match_id", sa.BigInteger(), nullable=False),
        sa.Column("minute", sa.Integer(), nullable=False),
        sa.Column("last_hits", sa.Integer(), nullable=False),
        sa.Column("denies", sa.Integer(), nullable=False),
        sa.UniqueConstraint("match_id", "minute", name="uq_match_cs_minute"),
    )
    op.create_index("ix_match_cs_match_id", "match_cs", ["match_id"])

    op.create_table(
        "player_networth",
        sa.Column("match_id", sa.BigInteger(), primary_key=True, nullable=False),
        sa.Column("player_slot", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("minute", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("networth", sa.Integer(), nullable=False),
    )

    op.create_table(
        "item_timings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("match_id", sa.BigInteger(), nullable=False),
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column("timing_seconds", sa.Integer(), nullable=False),
        sa.UniqueConstraint("match_id", "item_id", name="uq_item_timing"),
    )
    op.create_index("ix_item_timings_match_id", "item_timings", ["match_id"])

    op.create_table(
        "goals",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("hero_id", sa.Integer(), nullable=True),
        sa.Column("hero_scope", sa.String(16), nullable=True),
        sa.Column("metric", sa.String(32), nullable=False),
        sa.Column("target_value", sa.Integer(), nullable=False),
        sa.Column("target_time_minutes", sa.Integer(), nullable=False),
        sa.Column("item_id", sa.Integer(), nullable=True),
        sa.Column("game_mode", sa.String(16), nullable=False),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
    )

    op.create_table(
        "hero_goal_suggestions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("hero_id", sa.Integer(), nullable=False),
        sa.Column("suggested_last_hits", sa.Integer(), nullable=False),
        sa.Column("current_average", sa.Float(), nullable=False),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
        sa.Column("games_analyzed", sa.Integer(), nullable=False),
    )

    op.create_table(
        "daily_challenges",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("challenge_date", sa.String(10), nullable=False, unique=True),
        sa.Column("difficulty", sa.String(16), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("target", sa.Integer(), nullable=False),
        sa.Column("target_games", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("hero_id", sa.Integer(), nullable=True),
        sa.Column("metric", sa.String(32), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="active"),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
        sa.Column("completed_at", sa.BigInteger(), nullable=True),
    )

    op.create_table(
        "challenge_options",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("week_start_date", sa.String(10), nullable=False),
        sa.Column("difficulty", sa.String(16), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("target", sa.Integer(), nullable=False),
        sa.Column("target_games", sa.Integer(), nullable=True),
        sa.Column("hero_id", sa.Integer(), nullable=True),
        sa.Column("metric", sa.String(32), nullable=False),
        sa.Column("option_index", sa.Integer(), nullable=False),
        sa.Column("reroll_generation", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
        sa.UniqueConstraint("week_start_date", "option_index", name="uq_challenge_option_slot"),
    )
    op.create_index("ix_challenge_options_week_start_date", "challenge_options", ["week_start_date"])

    op.create_table(
        "weekly_challenges",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("week_start_date", sa.String(10), nullable=False, unique=True),
        sa.Column("difficulty", sa.String(16), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("target", sa.Integer(), nullable=False),
        sa.Column("target_games", sa.Integer(), nullable=True),
        sa.Column("hero_id", sa.Integer(), nullable=True),
        sa.Column("metric", sa.String(32), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="active"),
        sa.Column("accepted_at", sa.BigInteger(), nullable=True),
        sa.Column("completed_at", sa.BigInteger(), nullable=True),
        sa.Column("reroll_count", sa.Integer(), nullable=False, server_default="0"),
    )

    op.create_table(
        "challenge_history",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("challenge_type", sa.String(8), nullable=False),
        sa.Column("period_start_date", sa.String(10), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("completed_at", sa.BigInteger(), nullable=True),
        sa.Column("target_achieved", sa.Integer(), nullable=True),
        sa.UniqueConstraint("challenge_type", "period_start_date", name="uq_challenge_history_period"),
    )


def downgrade() -> None:
    op.drop_table("challenge_history")
    op.drop_table("weekly_challenges")
    op.drop_index("ix_challenge_options_week_start_date", table_name="challenge_options")
    op.drop_table("challenge_options")
    op.drop_table("daily_challenges")
    op.drop_table("hero_goal_suggestions")
    op.drop_table("goals")
    op.drop_index("ix_item_timings_match_id", table_name="item_timings")
    op.drop_table("item_timings")
    op.drop_table("player_networth")
    op.drop_index("ix_match_cs_match_id", table_name="match_cs")
    op.drop_table("match_cs")
    op.drop_index("ix_matches_parse_state", table_name="matches")
    op.drop_index("ix_matches_start_time", table_name="matches")
    op.drop_table("matches")

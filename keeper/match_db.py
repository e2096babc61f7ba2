"""
match_db.py — Match Store: matches and their per-match enrichment.

Tables (see models.py):
  matches          — one row per game of the tracked player
  match_cs         — own last hits / denies per minute
  player_networth  — every player's net worth per minute
  item_timings     — first purchase time per (match, item)

Reads use the ORM and decode rows through match_from_row(); idempotent
writes use INSERT ... ON CONFLICT ... DO NOTHING (identical syntax in
PostgreSQL 9.5+ and SQLite 3.24+).

Minute N of a series is the exact value at the N-th minute boundary
(zero-indexed, OpenDota lh_t[N]). A missing minute is unknown: lookups return
None and nothing is ever interpolated.
"""

import logging
from typing import Optional, Sequence

from sqlalchemy import delete, func, select, text, update
from sqlalchemy.engine import Engine

from keeper.config import (
    BASELINE_MATCH_WINDOW,
    BASELINE_PARSED_CS_WINDOW,
    CS_BASELINE_MINUTE,
    DEFAULT_AVG_DEATHS,
    DEFAULT_AVG_GPM,
    DEFAULT_AVG_HERO_DAMAGE,
    DEFAULT_AVG_KILLS,
)
from keeper.database import session_scope
from keeper.errors import InvalidStateError, NotFoundError
from keeper.models import ItemTiming as ItemTimingRow
from keeper.models import Match as MatchRow
from keeper.models import MatchCS as MatchCSRow
from keeper.models import PlayerNetworth as PlayerNetworthRow
from keeper.schemas import (
    Baselines,
    ItemTiming,
    LastHitsDataPoint,
    Match,
    MatchCS,
    ParseState,
)

logger = logging.getLogger(__name__)

# parse_state: from -> allowed targets
_PARSE_TRANSITIONS: dict[ParseState, frozenset[ParseState]] = {
    ParseState.UNPARSED: frozenset({ParseState.PARSING}),
    ParseState.FAILED: frozenset({ParseState.PARSING}),
    ParseState.PARSING: frozenset({ParseState.PARSED, ParseState.FAILED, ParseState.UNPARSED}),
    ParseState.PARSED: frozenset(),
}


# ---------------------------------------------------------------------------
# Row decoding
# ---------------------------------------------------------------------------

def match_from_row(row: MatchRow) -> Match:
    """The only place a `matches` row is turned into a Match."""
    return Match.model_validate(row)


def _average(values: Sequence[float]) -> Optional[float]:
    if not values:
        return None
    return sum(values) / len(values)


class MatchStore:
    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    # ------------------------------------------------------------------
    # Matches
    # ------------------------------------------------------------------

    def insert_match(self, match: Match) -> bool:
        """Inserts a match if absent. Returns True when a new row was written."""
        params = match.model_dump(exclude={"parse_state"})
        params["radiant_win"] = int(match.radiant_win)
        params["parse_state"] = match.parse_state.value
        with session_scope(self.engine) as session:
            result = session.execute(
                text("""
                    INSERT INTO matches
                        (match_id, hero_id, start_time, duration, game_mode, lobby_type,
                         radiant_win, player_slot, kills, deaths, assists,
                         xp_per_min, gold_per_min, last_hits, denies,
                         hero_damage, tower_damage, hero_healing,
                         parse_state, role, partner_slot)
                    VALUES
                        (:match_id, :hero_id, :start_time, :duration, :game_mode, :lobby_type,
                         :radiant_win, :player_slot, :kills, :deaths, :assists,
                         :xp_per_min, :gold_per_min, :last_hits, :denies,
                         :hero_damage, :tower_damage, :hero_healing,
                         :parse_state, :role, :partner_slot)
                    ON CONFLICT (match_id) DO NOTHING
                """),
                params,
            )
            return result.rowcount == 1

    def get_match(self, match_id: int) -> Match:
        with session_scope(self.engine) as session:
            row = session.get(MatchRow, match_id)
            if row is None:
                raise NotFoundError(f"Match {match_id} not found")
            return match_from_row(row)

    def get_all_matches(self) -> list[Match]:
        """All matches, newest first."""
        with session_scope(self.engine) as session:
            rows = session.scalars(
                select(MatchRow).order_by(MatchRow.start_time.desc())
            ).all()
            return [match_from_row(r) for r in rows]

    def get_recent_matches(self, limit: int) -> list[Match]:
        with session_scope(self.engine) as session:
            rows = session.scalars(
                select(MatchRow).order_by(MatchRow.start_time.desc()).limit(limit)
            ).all()
            return [match_from_row(r) for r in rows]

    def get_matches_since(self, since: int, until: Optional[int] = None) -> list[Match]:
        """Matches with since <= start_time (< until when given), newest first."""
        stmt = select(MatchRow).where(MatchRow.start_time >= since)
        if until is not None:
            stmt = stmt.where(MatchRow.start_time < until)
        with session_scope(self.engine) as session:
            rows = session.scalars(stmt.order_by(MatchRow.start_time.desc())).all()
            return [match_from_row(r) for r in rows]

    def get_unparsed_matches(self) -> list[Match]:
        """Matches waiting for (or eligible to retry) parsing, newest first."""
        with session_scope(self.engine) as session:
            rows = session.scalars(
                select(MatchRow)
                .where(MatchRow.parse_state.in_([ParseState.UNPARSED.value, ParseState.FAILED.value]))
                .order_by(MatchRow.start_time.desc())
            ).all()
            return [match_from_row(r) for r in rows]

    def get_oldest_match_timestamp(self) -> Optional[int]:
        with session_scope(self.engine) as session:
            return session.scalar(select(func.min(MatchRow.start_time)))

    # ------------------------------------------------------------------
    # Parse state / lane enrichment
    # ------------------------------------------------------------------

    def reset_stuck_parsing(self) -> int:
        """Crash recovery: every match left in 'parsing' goes back to 'unparsed'."""
        with session_scope(self.engine) as session:
            result = session.execute(
                update(MatchRow)
                .where(MatchRow.parse_state == ParseState.PARSING.value)
                .values(parse_state=ParseState.UNPARSED.value)
            )
            return result.rowcount

    def set_parse_state(self, match_id: int, state: ParseState) -> None:
        """Moves a match to `state`, rejecting transitions outside the lifecycle."""
        state = ParseState(state)
        with session_scope(self.engine) as session:
            row = session.get(MatchRow, match_id)
            if row is None:
                raise NotFoundError(f"Match {match_id} not found")
            current = ParseState(row.parse_state)
            if state not in _PARSE_TRANSITIONS[current]:
                raise InvalidStateError(
                    f"Match {match_id}: cannot go from {current.value} to {state.value}"
                )
            row.parse_state = state.value
        logger.debug("[match_db] match %s: %s -> %s", match_id, current.value, state.value)

    def set_role(self, match_id: int, role: int) -> None:
        with session_scope(self.engine) as session:
            session.execute(
                update(MatchRow).where(MatchRow.match_id == match_id).values(role=role)
            )

    def set_partner_slot(self, match_id: int, partner_slot: Optional[int]) -> None:
        with session_scope(self.engine) as session:
            session.execute(
                update(MatchRow)
                .where(MatchRow.match_id == match_id)
                .values(partner_slot=partner_slot)
            )

    # ------------------------------------------------------------------
    # Per-minute series
    # ------------------------------------------------------------------

    def replace_cs_series(self, match_id: int, lh_t: Sequence[int], dn_t: Sequence[int]) -> None:
        """Replaces the match's CS series; lh_t[i] / dn_t[i] is stored as minute i."""
        rows = [
            {"match_id": match_id, "minute": i, "last_hits": lh, "denies": dn}
            for i, (lh, dn) in enumerate(zip(lh_t, dn_t))
        ]
        with session_scope(self.engine) as session:
            session.execute(delete(MatchCSRow).where(MatchCSRow.match_id == match_id))
            if rows:
                session.execute(
                    text("""
                        INSERT INTO match_cs (match_id, minute, last_hits, denies)
                        VALUES (:match_id, :minute, :last_hits, :denies)
                    """),
                    rows,
                )

    def get_cs_at_minute(self, match_id: int, minute: int) -> Optional[MatchCS]:
        with session_scope(self.engine) as session:
            row = session.scalar(
                select(MatchCSRow).where(
                    MatchCSRow.match_id == match_id, MatchCSRow.minute == minute
                )
            )
            return MatchCS.model_validate(row) if row is not None else None

    def get_cs_series(self, match_id: int) -> list[MatchCS]:
        with session_scope(self.engine) as session:
            rows = session.scalars(
                select(MatchCSRow)
                .where(MatchCSRow.match_id == match_id)
                .order_by(MatchCSRow.minute)
            ).all()
            return [MatchCS.model_validate(r) for r in rows]

    def replace_player_networth(self, match_id: int, player_slot: int, gold_t: Sequence[int]) -> None:
        rows = [
            {"match_id": match_id, "player_slot": player_slot, "minute": i, "networth": nw}
            for i, nw in enumerate(gold_t)
        ]
        with session_scope(self.engine) as session:
            session.execute(
                delete(PlayerNetworthRow).where(
                    PlayerNetworthRow.match_id == match_id,
                    PlayerNetworthRow.player_slot == player_slot,
                )
            )
            if rows:
                session.execute(
                    text("""
                        INSERT INTO player_networth (match_id, player_slot, minute, networth)
                        VALUES (:match_id, :player_slot, :minute, :networth)
                    """),
                    rows,
                )

    def get_networth_at_minute(self, match_id: int, player_slot: int, minute: int) -> Optional[int]:
        with session_scope(self.engine) as session:
            return session.scalar(
                select(PlayerNetworthRow.networth).where(
                    PlayerNetworthRow.match_id == match_id,
                    PlayerNetworthRow.player_slot == player_slot,
                    PlayerNetworthRow.minute == minute,
                )
            )

    # ------------------------------------------------------------------
    # Item timings
    # ------------------------------------------------------------------

    def add_item_timing(self, match_id: int, item_id: int, timing_seconds: int) -> bool:
        """Records a purchase; later purchases of the same item are ignored."""
        with session_scope(self.engine) as session:
            result = session.execute(
                text("""
                    INSERT INTO item_timings (match_id, item_id, timing_seconds)
                    VALUES (:match_id, :item_id, :timing_seconds)
                    ON CONFLICT (match_id, item_id) DO NOTHING
                """),
                {"match_id": match_id, "item_id": item_id, "timing_seconds": timing_seconds},
            )
            return result.rowcount == 1

    def get_item_timing(self, match_id: int, item_id: int) -> Optional[int]:
        with session_scope(self.engine) as session:
            return session.scalar(
                select(ItemTimingRow.timing_seconds).where(
                    ItemTimingRow.match_id == match_id,
                    ItemTimingRow.item_id == item_id,
                )
            )

    def get_item_timings_for_match(self, match_id: int) -> list[ItemTiming]:
        with session_scope(self.engine) as session:
            rows = session.scalars(
                select(ItemTimingRow)
                .where(ItemTimingRow.match_id == match_id)
                .order_by(ItemTimingRow.timing_seconds)
            ).all()
            return [ItemTiming.model_validate(r) for r in rows]

    # ------------------------------------------------------------------
    # Aggregates used by challenge generation and suggestions
    # ------------------------------------------------------------------

    def get_recent_averages(self) -> Baselines:
        """Averages over the last 20 matches, CS@10 over the last 10 parsed ones.

        Falls back to the default baselines when no match is stored. The CS
        average is None when none of those parsed matches has a minute-10 entry.
        """
        recent = self.get_recent_matches(BASELINE_MATCH_WINDOW)

        with session_scope(self.engine) as session:
            parsed_ids = (
                select(MatchRow.match_id)
                .where(MatchRow.parse_state == ParseState.PARSED.value)
                .order_by(MatchRow.start_time.desc())
                .limit(BASELINE_PARSED_CS_WINDOW)
                .subquery()
            )
            cs_values = session.scalars(
                select(MatchCSRow.last_hits)
                .join(parsed_ids, parsed_ids.c.match_id == MatchCSRow.match_id)
                .where(MatchCSRow.minute == CS_BASELINE_MINUTE)
            ).all()

        if recent:
            baselines = Baselines(
                avg_kills=_average([m.kills for m in recent]),
                avg_gpm=_average([m.gold_per_min for m in recent]),
                avg_deaths=_average([m.deaths for m in recent]),
                avg_hero_damage=_average([m.hero_damage for m in recent]),
            )
        else:
            baselines = Baselines(
                avg_kills=DEFAULT_AVG_KILLS,
                avg_gpm=DEFAULT_AVG_GPM,
                avg_deaths=DEFAULT_AVG_DEATHS,
                avg_hero_damage=DEFAULT_AVG_HERO_DAMAGE,
            )
        baselines.avg_cs_at_10 = _average(list(cs_values))
        return baselines

    def recent_hero_ids(self, limit: int) -> list[int]:
        """Hero of each of the last `limit` matches (repeats kept)."""
        with session_scope(self.engine) as session:
            return list(session.scalars(
                select(MatchRow.hero_id).order_by(MatchRow.start_time.desc()).limit(limit)
            ).all())

    def unfamiliar_hero_ids(self, cutoff: int) -> list[int]:
        """Heroes played at some point but not since `cutoff`."""
        with session_scope(self.engine) as session:
            recent = select(MatchRow.hero_id).where(MatchRow.start_time >= cutoff)
            return list(session.scalars(
                select(MatchRow.hero_id)
                .where(MatchRow.hero_id.not_in(recent))
                .distinct()
                .order_by(MatchRow.hero_id)
            ).all())

    def hero_game_count(self, hero_id: int) -> int:
        with session_scope(self.engine) as session:
            return session.scalar(
                select(func.count()).select_from(MatchRow).where(MatchRow.hero_id == hero_id)
            ) or 0

    def last_hits_at_minute(
        self,
        minute: int,
        hero_id: Optional[int] = None,
        game_mode: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> list[LastHitsDataPoint]:
        """Exact last hits at `minute` for parsed matches, newest first."""
        stmt = (
            select(
                MatchRow.match_id,
                MatchRow.hero_id,
                MatchRow.start_time,
                MatchRow.game_mode,
                MatchCSRow.last_hits,
            )
            .join(
                MatchCSRow,
                (MatchCSRow.match_id == MatchRow.match_id) & (MatchCSRow.minute == minute),
            )
            .where(MatchRow.parse_state == ParseState.PARSED.value)
        )
        if hero_id is not None:
            stmt = stmt.where(MatchRow.hero_id == hero_id)
        if game_mode is not None:
            stmt = stmt.where(MatchRow.game_mode == game_mode)
        stmt = stmt.order_by(MatchRow.start_time.desc())
        if limit is not None:
            stmt = stmt.limit(limit)

        with session_scope(self.engine) as session:
            rows = session.execute(stmt).mappings().all()
        return [LastHitsDataPoint(**row) for row in rows]

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def clear_all(self) -> None:
        """Deletes every match together with its enrichment rows."""
        with session_scope(self.engine) as session:
            session.execute(delete(MatchCSRow))
            session.execute(delete(PlayerNetworthRow))
            session.execute(delete(ItemTimingRow))
            session.execute(delete(MatchRow))
        logger.info("[match_db] all matches cleared")

"""
challenges_db.py — Persistence for daily/weekly challenges and their history.

Tables (see models.py):
  daily_challenges   — one row per local date (natural key challenge_date)
  challenge_options  — the week's offered cards (week_start_date, option_index)
  weekly_challenges  — the accepted or skipped challenge of a week
  challenge_history  — terminal outcomes, unique per (type, period)

Every status change is guarded on the current status
(UPDATE ... WHERE id = :id AND status = 'active'), and the history row is
written in the same transaction only when that UPDATE actually changed the
row. Calling a transition twice therefore never duplicates history.
"""

import logging
from typing import Optional, Sequence

from sqlalchemy import delete, func, select, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from keeper.database import session_scope
from keeper.errors import InvalidStateError, NotFoundError
from keeper.models import ChallengeHistory as HistoryRow
from keeper.models import ChallengeOption as OptionRow
from keeper.models import DailyChallenge as DailyRow
from keeper.models import WeeklyChallenge as WeeklyRow
from keeper.schemas import (
    ChallengeHistoryEntry,
    ChallengeOption,
    ChallengeStatus,
    DailyChallenge,
    WeeklyChallenge,
)

logger = logging.getLogger(__name__)

DAILY = "daily"
WEEKLY = "weekly"

_TABLES = {DAILY: "daily_challenges", WEEKLY: "weekly_challenges"}


# ---------------------------------------------------------------------------
# Row decoding (one function per entity)
# ---------------------------------------------------------------------------

def daily_from_row(row: DailyRow) -> DailyChallenge:
    return DailyChallenge.model_validate(row)


def option_from_row(row: OptionRow) -> ChallengeOption:
    return ChallengeOption.model_validate(row)


def weekly_from_row(row: WeeklyRow) -> WeeklyChallenge:
    return WeeklyChallenge.model_validate(row)


def history_from_row(row: HistoryRow) -> ChallengeHistoryEntry:
    return ChallengeHistoryEntry.model_validate(row)


# ---------------------------------------------------------------------------
# Shared transition
# ---------------------------------------------------------------------------

def _finish(
    session: Session,
    challenge_type: str,
    challenge_id: int,
    status: ChallengeStatus,
    period: str,
    description: str,
    completed_at: Optional[int],
    achieved: Optional[int],
) -> bool:
    """active -> completed|failed plus one history row. False if not active."""
    table = _TABLES[challenge_type]
    result = session.execute(
        text(f"""
            UPDATE {table}
               SET status = :status, completed_at = :completed_at
             WHERE id = :id AND status = 'active'
        """),
        {"status": status.value, "completed_at": completed_at, "id": challenge_id},
    )
    if result.rowcount != 1:
        return False

    session.execute(
        text("""
            INSERT INTO challenge_history
                (challenge_type, period_start_date, description, status, completed_at, target_achieved)
            VALUES
                (:challenge_type, :period, :description, :status, :completed_at, :achieved)
            ON CONFLICT (challenge_type, period_start_date) DO NOTHING
        """),
        {
            "challenge_type": challenge_type,
            "period": period,
            "description": description,
            "status": status.value,
            "completed_at": completed_at,
            "achieved": achieved,
        },
    )
    logger.info("[challenges_db] %s challenge %s (%s) -> %s", challenge_type, challenge_id, period, status.value)
    return True


class ChallengeStore:
    def __init__(self, engine) -> None:
        self.engine = engine

    # ------------------------------------------------------------------
    # Daily
    # ------------------------------------------------------------------

    def get_daily(self, day_key: str) -> Optional[DailyChallenge]:
        with session_scope(self.engine) as session:
            row = session.scalar(select(DailyRow).where(DailyRow.challenge_date == day_key))
            return daily_from_row(row) if row is not None else None

    def insert_daily_if_absent(self, day_key: str, candidate, created_at: int) -> DailyChallenge:
        """Stores `candidate` for the date unless one exists; returns the stored row."""
        with session_scope(self.engine) as session:
            session.execute(
                text("""
                    INSERT INTO daily_challenges
                        (challenge_date, difficulty, description, target, target_games,
                         hero_id, metric, status, created_at)
                    VALUES
                        (:day, :difficulty, :description, :target, 1,
                         :hero_id, :metric, 'active', :created_at)
                    ON CONFLICT (challenge_date) DO NOTHING
                """),
                {
                    "day": day_key,
                    "difficulty": candidate.difficulty.value,
                    "description": candidate.description,
                    "target": candidate.target,
                    "hero_id": candidate.hero_id,
                    "metric": candidate.metric,
                    "created_at": created_at,
                },
            )
            row = session.scalar(select(DailyRow).where(DailyRow.challenge_date == day_key))
            return daily_from_row(row)

    def last_daily_metric(self, since_key: str, before_key: str) -> Optional[str]:
        """Metric of the latest challenge dated in [since_key, before_key)."""
        with session_scope(self.engine) as session:
            return session.scalar(
                select(DailyRow.metric)
                .where(DailyRow.challenge_date >= since_key, DailyRow.challenge_date < before_key)
                .order_by(DailyRow.challenge_date.desc())
                .limit(1)
            )

    def complete_daily(self, challenge: DailyChallenge, completed_at: int, achieved: int) -> bool:
        with session_scope(self.engine) as session:
            return _finish(
                session, DAILY, challenge.id, ChallengeStatus.COMPLETED,
                challenge.challenge_date, challenge.description, completed_at, achieved,
            )

    def archive_expired_daily(self, today_key: str) -> int:
        """Every active challenge dated before today becomes failed."""
        with session_scope(self.engine) as session:
            rows = session.scalars(
                select(DailyRow).where(
                    DailyRow.status == ChallengeStatus.ACTIVE.value,
                    DailyRow.challenge_date < today_key,
                )
            ).all()
            expired = [(r.id, r.challenge_date, r.description) for r in rows]
            archived = 0
            for challenge_id, day, description in expired:
                if _finish(session, DAILY, challenge_id, ChallengeStatus.FAILED, day, description, None, None):
                    archived += 1
            return archived

    def completed_daily_dates(self, before_key: str) -> set[str]:
        with session_scope(self.engine) as session:
            return set(session.scalars(
                select(DailyRow.challenge_date).where(
                    DailyRow.status == ChallengeStatus.COMPLETED.value,
                    DailyRow.challenge_date < before_key,
                )
            ).all())

    # ------------------------------------------------------------------
    # Weekly options
    # ------------------------------------------------------------------

    def get_options(self, week_key: str) -> list[ChallengeOption]:
        with session_scope(self.engine) as session:
            return self._options(session, week_key)

    def insert_options_if_absent(
        self, week_key: str, candidates: Sequence, created_at: int,
    ) -> list[ChallengeOption]:
        """First generation (0) of the week's options; existing slots are kept."""
        with session_scope(self.engine) as session:
            self._insert_options(session, week_key, candidates, 0, created_at)
            return self._options(session, week_key)

    def replace_options(
        self, week_key: str, candidates: Sequence, created_at: int, max_rerolls: int,
    ) -> list[ChallengeOption]:
        """Reroll: swaps the week's options for `candidates` at generation + 1.

        Raises InvalidStateError (leaving the old options untouched) once the
        week has an accepted or skipped challenge, or the reroll cap is used up.
        """
        with session_scope(self.engine) as session:
            if self._weekly_row(session, week_key) is not None:
                raise InvalidStateError("Cannot reroll after accepting or skipping this week's challenge")
            current = self._max_generation(session, week_key)
            if current >= max_rerolls:
                raise InvalidStateError(f"Maximum rerolls ({max_rerolls}) used for this week")

            session.execute(delete(OptionRow).where(OptionRow.week_start_date == week_key))
            self._insert_options(session, week_key, candidates, current + 1, created_at)
            options = self._options(session, week_key)
        logger.info("[challenges_db] week %s rerolled (generation %d)", week_key, current + 1)
        return options

    # ------------------------------------------------------------------
    # Weekly challenge
    # ------------------------------------------------------------------

    def get_weekly(self, week_key: str) -> Optional[WeeklyChallenge]:
        with session_scope(self.engine) as session:
            row = self._weekly_row(session, week_key)
            return weekly_from_row(row) if row is not None else None

    def accept_option(self, option_id: int, week_key: str, accepted_at: int) -> WeeklyChallenge:
        with session_scope(self.engine) as session:
            if self._weekly_row(session, week_key) is not None:
                raise InvalidStateError("A challenge has already been accepted or skipped for this week")

            option = session.get(OptionRow, option_id)
            if option is None:
                raise NotFoundError(f"Challenge option {option_id} not found")
            if option.week_start_date != week_key:
                raise InvalidStateError(f"Option {option_id} belongs to week {option.week_start_date}")

            row = WeeklyRow(
                week_start_date=week_key,
                difficulty=option.difficulty,
                description=option.description,
                target=option.target,
                target_games=option.target_games,
                hero_id=option.hero_id,
                metric=option.metric,
                status=ChallengeStatus.ACTIVE.value,
                accepted_at=accepted_at,
                reroll_count=self._max_generation(session, week_key),
            )
            session.add(row)
            try:
                session.flush()
            except IntegrityError as exc:
                # a concurrent accept or skip won the week_start_date slot
                raise InvalidStateError(
                    "A challenge has already been accepted or skipped for this week"
                ) from exc
            accepted = weekly_from_row(row)
        logger.info("[challenges_db] week %s: option %s accepted", week_key, option_id)
        return accepted

    def insert_skip_if_absent(self, week_key: str, skipped_at: int) -> WeeklyChallenge:
        with session_scope(self.engine) as session:
            session.execute(
                text("""
                    INSERT INTO weekly_challenges
                        (week_start_date, difficulty, description, target, metric,
                         status, accepted_at, reroll_count)
                    VALUES
                        (:week, 'skipped', 'Skipped this week', 0, 'skipped',
                         'skipped', :now, 0)
                    ON CONFLICT (week_start_date) DO NOTHING
                """),
                {"week": week_key, "now": skipped_at},
            )
            return weekly_from_row(self._weekly_row(session, week_key))

    def complete_weekly(self, challenge: WeeklyChallenge, completed_at: int, achieved: int) -> bool:
        with session_scope(self.engine) as session:
            return _finish(
                session, WEEKLY, challenge.id, ChallengeStatus.COMPLETED,
                challenge.week_start_date, challenge.description, completed_at, achieved,
            )

    def archive_expired_weekly(self, week_key: str) -> int:
        """Every active challenge of a week before `week_key` becomes failed."""
        with session_scope(self.engine) as session:
            rows = session.scalars(
                select(WeeklyRow).where(
                    WeeklyRow.status == ChallengeStatus.ACTIVE.value,
                    WeeklyRow.week_start_date < week_key,
                )
            ).all()
            expired = [(r.id, r.week_start_date, r.description) for r in rows]
            archived = 0
            for challenge_id, week, description in expired:
                if _finish(session, WEEKLY, challenge_id, ChallengeStatus.FAILED, week, description, None, None):
                    archived += 1
            return archived

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def get_history(self, challenge_type: Optional[str] = None, limit: int = 50) -> list[ChallengeHistoryEntry]:
        stmt = select(HistoryRow)
        if challenge_type is not None:
            stmt = stmt.where(HistoryRow.challenge_type == challenge_type)
        stmt = stmt.order_by(HistoryRow.period_start_date.desc(), HistoryRow.id.desc()).limit(limit)
        with session_scope(self.engine) as session:
            return [history_from_row(r) for r in session.scalars(stmt).all()]

    # ------------------------------------------------------------------
    # Session-level helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _options(session: Session, week_key: str) -> list[ChallengeOption]:
        rows = session.scalars(
            select(OptionRow)
            .where(OptionRow.week_start_date == week_key)
            .order_by(OptionRow.option_index)
        ).all()
        return [option_from_row(r) for r in rows]

    @staticmethod
    def _max_generation(session: Session, week_key: str) -> int:
        return session.scalar(
            select(func.coalesce(func.max(OptionRow.reroll_generation), 0))
            .where(OptionRow.week_start_date == week_key)
        )

    @staticmethod
    def _weekly_row(session: Session, week_key: str) -> Optional[WeeklyRow]:
        return session.scalar(select(WeeklyRow).where(WeeklyRow.week_start_date == week_key))

    @staticmethod
    def _insert_options(
        session: Session, week_key: str, candidates: Sequence, generation: int, created_at: int,
    ) -> None:
        for index, candidate in enumerate(candidates, start=1):
            session.execute(
                text("""
                    INSERT INTO challenge_options
                        (week_start_date, difficulty, description, target, target_games,
                         hero_id, metric, option_index, reroll_generation, created_at)
                    VALUES
                        (:week, :difficulty, :description, :target, :target_games,
                         :hero_id, :metric, :option_index, :generation, :created_at)
                    ON CONFLICT (week_start_date, option_index) DO NOTHING
                """),
                {
                    "week": week_key,
                    "difficulty": candidate.difficulty.value,
                    "description": candidate.description,
                    "target": candidate.target,
                    "target_games": candidate.target_games,
                    "hero_id": candidate.hero_id,
                    "metric": candidate.metric,
                    "option_index": index,
                    "generation": generation,
                    "created_at": created_at,
                },
            )

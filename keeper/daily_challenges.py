"""
daily_challenges.py — Daily Challenge Engine.

One challenge per local calendar date, generated on first access:

  1. archive: active challenges dated before today -> failed (+ history)
  2. today's row exists -> return it
  3. otherwise roll a difficulty, build the template pool from rolling
     baselines, drop the metric used within the last 3 days and pick one
     (insert-if-absent on the date, so a concurrent generation is harmless)

Progress is recomputed from the matches of the challenge's own day on every
call. The first time the target is met the challenge moves to completed and
one history entry is written.
"""

import logging
from datetime import date, datetime, timedelta
from random import Random
from typing import Callable, Optional

from keeper.candidates import daily_candidates, roll_difficulty, select_daily
from keeper.clock import date_key, parse_date_key
from keeper.config import (
    CS_BASELINE_MINUTE,
    DAILY_RECENT_HERO_WINDOW,
    DAILY_REPEAT_LOOKBACK_DAYS,
    UNFAMILIAR_HERO_DAYS,
)
from keeper.schemas import (
    ChallengeStatus,
    DailyChallenge,
    DailyChallengeProgress,
    Match,
    ParseState,
)

logger = logging.getLogger(__name__)


class DailyChallengeEngine:
    def __init__(
        self,
        match_store,
        challenge_store,
        clock,
        rng_factory: Callable[[], Random] = Random,
    ) -> None:
        self.matches = match_store
        self.challenges = challenge_store
        self.clock = clock
        # Called once per generation: a freshly seeded source every time
        self.rng_factory = rng_factory

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    def get_or_generate(
        self, today: Optional[date] = None, now: Optional[datetime] = None,
    ) -> Optional[DailyChallenge]:
        now = now or self.clock.now()
        today = today or self.clock.local_date(now)
        today_key = date_key(today)

        archived = self.challenges.archive_expired_daily(today_key)
        if archived:
            logger.info("[daily] archived %d expired challenge(s) as failed", archived)

        existing = self.challenges.get_daily(today_key)
        if existing is not None:
            return existing
        return self._generate(today, now)

    def _generate(self, today: date, now: datetime) -> Optional[DailyChallenge]:
        rng = self.rng_factory()
        baselines = self.matches.get_recent_averages()
        difficulty = roll_difficulty(rng)

        recent_heroes = self.matches.recent_hero_ids(DAILY_RECENT_HERO_WINDOW)
        recent_hero = rng.choice(recent_heroes) if recent_heroes else None
        cutoff = int(now.timestamp()) - UNFAMILIAR_HERO_DAYS * 86400
        unfamiliar = self.matches.unfamiliar_hero_ids(cutoff)
        unfamiliar_hero = rng.choice(unfamiliar) if unfamiliar else None

        last_metric = self.challenges.last_daily_metric(
            date_key(today - timedelta(days=DAILY_REPEAT_LOOKBACK_DAYS)), date_key(today),
        )
        pool = daily_candidates(baselines, recent_hero, unfamiliar_hero)
        chosen = select_daily(pool, difficulty, last_metric, rng)
        if chosen is None:
            return None

        challenge = self.challenges.insert_daily_if_absent(date_key(today), chosen, int(now.timestamp()))
        logger.info(
            "[daily] %s: %s challenge '%s' (metric=%s, target=%s)",
            challenge.challenge_date, challenge.difficulty.value, challenge.description,
            challenge.metric, challenge.target,
        )
        return challenge

    # ------------------------------------------------------------------
    # Progress
    # ------------------------------------------------------------------

    def evaluate(self, challenge: DailyChallenge, now: Optional[datetime] = None) -> DailyChallengeProgress:
        if challenge.status is ChallengeStatus.COMPLETED:
            return DailyChallengeProgress(
                challenge=challenge,
                current_value=challenge.target,
                target=challenge.target,
                completed=True,
                games_counted=0,
            )

        now = now or self.clock.now()
        day = parse_date_key(challenge.challenge_date)
        matches = self.matches.get_matches_since(
            self.clock.local_midnight(day),
            self.clock.local_midnight(day + timedelta(days=1)),
        )
        if challenge.hero_id is not None:
            matches = [m for m in matches if m.hero_id == challenge.hero_id]

        current, target = self._measure(challenge, matches)
        completed = current >= target

        if completed and challenge.status is ChallengeStatus.ACTIVE:
            if self.challenges.complete_daily(challenge, int(now.timestamp()), current):
                challenge = self.challenges.get_daily(challenge.challenge_date)

        return DailyChallengeProgress(
            challenge=challenge,
            current_value=current,
            target=target,
            completed=completed,
            games_counted=len(matches),
        )

    def _measure(self, challenge: DailyChallenge, matches: list[Match]) -> tuple[int, int]:
        """(current value, value that completes the challenge)."""
        metric = challenge.metric
        target = challenge.target

        if metric == "wins":
            return sum(1 for m in matches if m.is_win), target
        if metric == "games_played":
            return len(matches), target
        if metric == "kills":
            return max((m.kills for m in matches), default=0), target
        if metric == "gpm":
            return max((m.gold_per_min for m in matches), default=0), target
        if metric == "hero_damage":
            return max((m.hero_damage for m in matches), default=0), target
        if metric == "positive_kda":
            return int(any(m.positive_kda for m in matches)), 1
        if metric == "low_deaths":
            # target is the death threshold; any one game at or under it completes
            return int(any(m.deaths <= target for m in matches)), 1
        if metric == "cs_at_10":
            best = 0
            for m in matches:
                if m.parse_state is not ParseState.PARSED:
                    continue
                cs = self.matches.get_cs_at_minute(m.match_id, CS_BASELINE_MINUTE)
                if cs is not None:
                    best = max(best, cs.last_hits)
            return best, target

        logger.warning("[daily] challenge %s has unknown metric %r", challenge.id, metric)
        return 0, target

    def get_progress(self) -> Optional[DailyChallengeProgress]:
        """Today's challenge (generated if needed) with its progress."""
        now = self.clock.now()
        challenge = self.get_or_generate(now=now)
        if challenge is None:
            return None
        return self.evaluate(challenge, now=now)

    # ------------------------------------------------------------------
    # Streak
    # ------------------------------------------------------------------

    def streak(self, today: Optional[date] = None) -> int:
        """Consecutive completed days ending yesterday."""
        today = today or self.clock.local_date(self.clock.now())
        completed = self.challenges.completed_daily_dates(date_key(today))

        streak = 0
        day = today - timedelta(days=1)
        while date_key(day) in completed:
            streak += 1
            day -= timedelta(days=1)
        return streak

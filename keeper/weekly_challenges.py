"""
weekly_challenges.py — Weekly Challenge Engine.

Weeks start on Sunday (local date). Each week offers up to three options,
one per difficulty tier. The user may reroll them at most twice, then
accept one of them or skip the week. Accepting or skipping closes the week
for rerolls and further accepts.

Progress of the accepted challenge is computed over the matches played
since it was accepted. It auto-completes like the daily challenge, and an
active challenge left over from an earlier week is archived as failed on
the next access.
"""

import logging
from datetime import date, datetime
from random import Random
from typing import Callable, Optional

from keeper.candidates import select_weekly_options, weekly_candidates
from keeper.clock import date_key, days_remaining_in_week, parse_date_key, week_start
from keeper.config import CS_BASELINE_MINUTE, WEEKLY_MAX_REROLLS, WEEKLY_RECENT_HERO_WINDOW
from keeper.schemas import (
    ChallengeOption,
    ChallengeStatus,
    Match,
    ParseState,
    WeeklyChallenge,
    WeeklyChallengeProgress,
)

logger = logging.getLogger(__name__)

DEFAULT_AVG_GPM_GAMES = 5
DEFAULT_LOW_DEATHS_GAMES = 4


class WeeklyChallengeEngine:
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
        self.rng_factory = rng_factory

    def current_week(self, now: Optional[datetime] = None) -> date:
        now = now or self.clock.now()
        return week_start(self.clock.local_date(now))

    # ------------------------------------------------------------------
    # Options
    # ------------------------------------------------------------------

    def _pick_options(self) -> list:
        rng = self.rng_factory()
        baselines = self.matches.get_recent_averages()
        heroes = self.matches.recent_hero_ids(WEEKLY_RECENT_HERO_WINDOW)
        recent_hero = rng.choice(heroes) if heroes else None
        return select_weekly_options(weekly_candidates(baselines, recent_hero), rng)

    def get_options(self, week: Optional[date] = None) -> list[ChallengeOption]:
        now = self.clock.now()
        week_key = date_key(week or self.current_week(now))

        existing = self.challenges.get_options(week_key)
        if existing:
            return existing

        options = self.challenges.insert_options_if_absent(
            week_key, self._pick_options(), int(now.timestamp()),
        )
        logger.info("[weekly] week %s: generated %d option(s)", week_key, len(options))
        return options

    def reroll(self, week: Optional[date] = None) -> list[ChallengeOption]:
        """Replaces the options (generation + 1).

        Raises InvalidStateError after accept/skip or once two rerolls were used.
        """
        now = self.clock.now()
        week_key = date_key(week or self.current_week(now))
        return self.challenges.replace_options(
            week_key, self._pick_options(), int(now.timestamp()), WEEKLY_MAX_REROLLS,
        )

    def accept(self, option_id: int) -> WeeklyChallenge:
        now = self.clock.now()
        return self.challenges.accept_option(
            option_id, date_key(self.current_week(now)), int(now.timestamp()),
        )

    def skip(self) -> WeeklyChallenge:
        """Marks the current week as skipped; repeated calls are no-ops."""
        now = self.clock.now()
        week_key = date_key(self.current_week(now))
        skipped = self.challenges.insert_skip_if_absent(week_key, int(now.timestamp()))
        logger.info("[weekly] week %s: %s", week_key, skipped.status.value)
        return skipped

    # ------------------------------------------------------------------
    # Accepted challenge
    # ------------------------------------------------------------------

    def archive_expired(self, week: Optional[date] = None) -> int:
        week_key = date_key(week or self.current_week())
        archived = self.challenges.archive_expired_weekly(week_key)
        if archived:
            logger.info("[weekly] archived %d expired challenge(s) as failed", archived)
        return archived

    def get_active(self, now: Optional[datetime] = None) -> Optional[WeeklyChallenge]:
        """This week's accepted challenge (active or completed), if any."""
        week = self.current_week(now)
        self.archive_expired(week)
        challenge = self.challenges.get_weekly(date_key(week))
        if challenge is None or challenge.status not in (ChallengeStatus.ACTIVE, ChallengeStatus.COMPLETED):
            return None
        return challenge

    def days_remaining(self, now: Optional[datetime] = None) -> int:
        """Calendar days left in the week after today, regardless of when it was accepted."""
        now = now or self.clock.now()
        return days_remaining_in_week(self.clock.local_date(now))

    def evaluate(self, challenge: WeeklyChallenge, now: Optional[datetime] = None) -> WeeklyChallengeProgress:
        now = now or self.clock.now()
        days_left = self.days_remaining(now)

        if challenge.status is ChallengeStatus.COMPLETED:
            return WeeklyChallengeProgress(
                challenge=challenge,
                current_value=challenge.target,
                target=challenge.target,
                games_counted=0,
                days_remaining=days_left,
                completed=True,
            )
        if challenge.status is ChallengeStatus.SKIPPED:
            return WeeklyChallengeProgress(
                challenge=challenge,
                current_value=0,
                target=0,
                games_counted=0,
                days_remaining=days_left,
                completed=False,
            )

        since = challenge.accepted_at
        if since is None:
            since = self.clock.local_midnight(parse_date_key(challenge.week_start_date))
        matches = self.matches.get_matches_since(since, int(now.timestamp()) + 1)
        if challenge.hero_id is not None:
            matches = [m for m in matches if m.hero_id == challenge.hero_id]

        current, target = self._measure(challenge, matches)
        completed = current >= target

        if completed and challenge.status is ChallengeStatus.ACTIVE:
            if self.challenges.complete_weekly(challenge, int(now.timestamp()), current):
                challenge = self.challenges.get_weekly(challenge.week_start_date)

        return WeeklyChallengeProgress(
            challenge=challenge,
            current_value=current,
            target=target,
            games_counted=len(matches),
            days_remaining=days_left,
            completed=completed,
        )

    def _measure(self, challenge: WeeklyChallenge, matches: list[Match]) -> tuple[int, int]:
        """(current value, value that completes the challenge). Averages are floored."""
        metric = challenge.metric
        target = challenge.target

        if metric == "wins":
            return sum(1 for m in matches if m.is_win), target
        if metric == "games_played":
            return len(matches), target
        if metric == "positive_kda_games":
            return sum(1 for m in matches if m.positive_kda), target
        if metric == "kills_total":
            return sum(m.kills for m in matches), target
        if metric == "hero_damage_total":
            return sum(m.hero_damage for m in matches), target
        if metric == "avg_gpm":
            required = challenge.target_games or DEFAULT_AVG_GPM_GAMES
            # matches are newest first: once enough games exist, the latest N count
            counted = matches[:required] if len(matches) >= required else matches
            if not counted:
                return 0, target
            return sum(m.gold_per_min for m in counted) // len(counted), target
        if metric == "low_deaths_games":
            # target is the death threshold, target_games the number of games needed
            required = challenge.target_games or DEFAULT_LOW_DEATHS_GAMES
            return sum(1 for m in matches if m.deaths <= target), required
        if metric == "cs_at_10_avg":
            values = []
            for m in matches:
                if m.parse_state is not ParseState.PARSED:
                    continue
                cs = self.matches.get_cs_at_minute(m.match_id, CS_BASELINE_MINUTE)
                if cs is not None:
                    values.append(cs.last_hits)
            if not values:
                return 0, target
            return sum(values) // len(values), target

        logger.warning("[weekly] challenge %s has unknown metric %r", challenge.id, metric)
        return 0, target

    def get_progress(self) -> Optional[WeeklyChallengeProgress]:
        now = self.clock.now()
        challenge = self.get_active(now)
        if challenge is None:
            return None
        return self.evaluate(challenge, now=now)

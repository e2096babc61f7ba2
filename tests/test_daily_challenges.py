# tests/test_daily_challenges.py

from datetime import date, timedelta

import pytest

from keeper.candidates import Candidate
from keeper.clock import FixedClock
from keeper.daily_challenges import DailyChallengeEngine
from keeper.schemas import ChallengeStatus, Difficulty, ParseState
from tests.helpers import NOW, RngFactory, make_match, ts

TODAY = date(2026, 10, 14)


@pytest.fixture
def rng_factory():
    return RngFactory(rolls=[0.0])  # easy tier, first candidate


@pytest.fixture
def daily(match_store, challenge_store, clock, rng_factory):
    return DailyChallengeEngine(match_store, challenge_store, clock, rng_factory=rng_factory)


def _store_daily(challenge_store, day, metric, target, hero_id=None, difficulty=Difficulty.MEDIUM):
    candidate = Candidate(metric, difficulty, f"{metric} {target}", target, hero_id=hero_id)
    return challenge_store.insert_daily_if_absent(day.isoformat(), candidate, ts(2026, 10, 1))


class TestGeneration:

    def test_generates_once_per_day(self, daily, challenge_store, rng_factory):
        first = daily.get_or_generate()
        second = daily.get_or_generate()

        assert first == second
        assert rng_factory.calls == 1
        assert first.challenge_date == "2026-10-14"
        assert first.status is ChallengeStatus.ACTIVE
        assert challenge_store.get_daily("2026-10-14") == first

    def test_easy_roll_without_history(self, daily):
        challenge = daily.get_or_generate()

        assert challenge.difficulty is Difficulty.EASY
        assert challenge.metric == "wins"
        assert challenge.target == 1
        assert challenge.target_games == 1
        assert challenge.hero_id is None

    def test_skips_metric_used_in_last_three_days(self, daily, challenge_store):
        _store_daily(challenge_store, TODAY - timedelta(days=2), "wins", 1, difficulty=Difficulty.EASY)

        challenge = daily.get_or_generate()

        assert challenge.metric == "games_played"

    def test_metric_older_than_three_days_may_repeat(self, daily, challenge_store):
        _store_daily(challenge_store, TODAY - timedelta(days=4), "wins", 1, difficulty=Difficulty.EASY)

        assert daily.get_or_generate().metric == "wins"

    def test_medium_targets_follow_baselines(self, match_store, challenge_store, clock):
        for i in range(4):
            match_store.insert_match(make_match(i + 1, start_time=ts(2026, 10, 10, i), kills=14))
        daily = DailyChallengeEngine(match_store, challenge_store, clock, rng_factory=RngFactory(rolls=[0.7]))

        challenge = daily.get_or_generate()

        assert challenge.difficulty is Difficulty.MEDIUM
        assert challenge.metric == "kills"
        assert challenge.target == 16

    def test_generation_uses_local_date(self, match_store, challenge_store):
        from zoneinfo import ZoneInfo

        # 15:00 UTC is already Oct 15 in Auckland (UTC+13 in October)
        clock = FixedClock(NOW, tz=ZoneInfo("Pacific/Auckland"))
        daily = DailyChallengeEngine(match_store, challenge_store, clock, rng_factory=RngFactory())

        assert daily.get_or_generate().challenge_date == "2026-10-15"


class TestArchival:

    def test_expired_active_becomes_failed_once(self, daily, challenge_store):
        _store_daily(challenge_store, TODAY - timedelta(days=1), "kills", 12)

        daily.get_or_generate()
        daily.get_or_generate()

        yesterday = challenge_store.get_daily("2026-10-13")
        assert yesterday.status is ChallengeStatus.FAILED
        history = challenge_store.get_history("daily")
        assert [(h.period_start_date, h.status) for h in history] == [("2026-10-13", ChallengeStatus.FAILED)]

    def test_completed_challenge_is_not_archived_again(self, daily, challenge_store, match_store):
        old = _store_daily(challenge_store, TODAY - timedelta(days=1), "wins", 1)
        assert challenge_store.complete_daily(old, ts(2026, 10, 13, 20), 1) is True
        assert challenge_store.complete_daily(old, ts(2026, 10, 13, 21), 1) is False

        daily.get_or_generate()

        history = challenge_store.get_history("daily")
        assert len(history) == 1
        assert history[0].status is ChallengeStatus.COMPLETED
        assert challenge_store.get_daily("2026-10-13").status is ChallengeStatus.COMPLETED


class TestProgress:

    def test_wins_scenario(self, daily, match_store, challenge_store):
        challenge = _store_daily(challenge_store, TODAY, "wins", 1)
        match_store.insert_match(make_match(1, start_time=ts(2026, 10, 14, 9), radiant_win=True, player_slot=0))
        match_store.insert_match(make_match(2, start_time=ts(2026, 10, 14, 11), radiant_win=True, player_slot=128))

        progress = daily.evaluate(challenge)

        assert progress.current_value == 1
        assert progress.completed is True
        assert progress.games_counted == 2
        assert progress.challenge.status is ChallengeStatus.COMPLETED
        assert progress.challenge.completed_at == int(NOW.timestamp())

        history = challenge_store.get_history("daily")
        assert len(history) == 1
        assert history[0].target_achieved == 1

    def test_completed_challenge_is_not_rescanned(self, daily, match_store, challenge_store):
        challenge = _store_daily(challenge_store, TODAY, "wins", 1)
        match_store.insert_match(make_match(1, start_time=ts(2026, 10, 14, 9)))
        completed = daily.evaluate(challenge).challenge

        progress = daily.evaluate(completed)

        assert progress.current_value == 1
        assert progress.games_counted == 0
        assert len(challenge_store.get_history("daily")) == 1

    def test_only_matches_of_the_day_count(self, daily, match_store, challenge_store):
        challenge = _store_daily(challenge_store, TODAY, "games_played", 2)
        match_store.insert_match(make_match(1, start_time=ts(2026, 10, 13, 23, 59)))
        match_store.insert_match(make_match(2, start_time=ts(2026, 10, 14, 0, 0)))

        progress = daily.evaluate(challenge)

        assert progress.current_value == 1
        assert progress.completed is False
        assert challenge_store.get_daily("2026-10-14").status is ChallengeStatus.ACTIVE

    def test_hero_filter(self, daily, match_store, challenge_store):
        challenge = _store_daily(challenge_store, TODAY, "wins", 1, hero_id=9)
        match_store.insert_match(make_match(1, hero_id=8))

        assert daily.evaluate(challenge).current_value == 0

    @pytest.mark.parametrize("metric, target, expected", [
        ("kills", 12, 14),
        ("gpm", 430, 650),
        ("hero_damage", 17000, 25000),
    ])
    def test_best_single_game(self, daily, match_store, challenge_store, metric, target, expected):
        challenge = _store_daily(challenge_store, TODAY, metric, target)
        match_store.insert_match(make_match(1, kills=14, gold_per_min=400, hero_damage=25000))
        match_store.insert_match(make_match(2, kills=6, gold_per_min=650, hero_damage=9000))

        assert daily.evaluate(challenge).current_value == expected

    def test_low_deaths_is_binary(self, daily, match_store, challenge_store):
        challenge = _store_daily(challenge_store, TODAY, "low_deaths", 3)
        match_store.insert_match(make_match(1, deaths=7))

        progress = daily.evaluate(challenge)
        assert (progress.current_value, progress.target, progress.completed) == (0, 1, False)

        match_store.insert_match(make_match(2, deaths=3))
        progress = daily.evaluate(challenge)
        assert (progress.current_value, progress.target, progress.completed) == (1, 1, True)

    def test_positive_kda(self, daily, match_store, challenge_store):
        challenge = _store_daily(challenge_store, TODAY, "positive_kda", 1, difficulty=Difficulty.EASY)
        match_store.insert_match(make_match(1, kills=1, assists=2, deaths=3))

        assert daily.evaluate(challenge).completed is False

    def test_cs_at_10_uses_parsed_matches_only(self, daily, match_store, challenge_store):
        challenge = _store_daily(challenge_store, TODAY, "cs_at_10", 50, difficulty=Difficulty.HARD)
        match_store.insert_match(make_match(1))
        match_store.insert_match(make_match(2, parse_state=ParseState.UNPARSED))
        match_store.replace_cs_series(1, [i * 4 for i in range(12)], [0] * 12)   # minute 10 -> 40
        match_store.replace_cs_series(2, [i * 9 for i in range(12)], [0] * 12)   # ignored

        progress = daily.evaluate(challenge)

        assert progress.current_value == 40
        assert progress.completed is False

    def test_get_progress_generates(self, daily, match_store):
        match_store.insert_match(make_match(1, start_time=ts(2026, 10, 14, 9)))

        progress = daily.get_progress()

        assert progress.challenge.challenge_date == "2026-10-14"
        assert progress.completed is True


class TestStreak:

    def test_counts_consecutive_days_before_today(self, daily, challenge_store):
        for days_ago in (1, 2, 4):
            day = TODAY - timedelta(days=days_ago)
            challenge = _store_daily(challenge_store, day, "wins", 1)
            challenge_store.complete_daily(challenge, ts(2026, 10, 1), 1)
        today = _store_daily(challenge_store, TODAY, "wins", 1)
        challenge_store.complete_daily(today, ts(2026, 10, 14), 1)

        assert daily.streak() == 2

    def test_no_streak(self, daily):
        assert daily.streak() == 0

# tests/test_analysis.py

import pytest

from keeper.analysis import get_last_hits_analysis, per_hero_stats, period_stats
from keeper.config import GAME_MODE_TURBO
from keeper.schemas import LastHitsDataPoint
from tests.helpers import make_match, ts


def _point(match_id, last_hits, hero_id=1):
    return LastHitsDataPoint(match_id=match_id, hero_id=hero_id, start_time=match_id, last_hits=last_hits, game_mode=22)


def _add_games(match_store, values, hero_id=1, first_id=1, **overrides):
    """Oldest first: values[0] is the earliest game."""
    for i, last_hits in enumerate(values):
        match_id = first_id + i
        match_store.insert_match(make_match(
            match_id, start_time=ts(2026, 9, 1) + match_id * 3600, hero_id=hero_id, **overrides,
        ))
        match_store.replace_cs_series(match_id, [last_hits] * 11, [0] * 11)


def test_period_stats_chart_order():
    newest_first = [_point(3, 60), _point(2, 40), _point(1, 50)]

    stats = period_stats(newest_first)

    assert stats.average == pytest.approx(50.0)
    assert (stats.min, stats.max, stats.count) == (40, 60, 3)
    assert [p.match_id for p in stats.data_points] == [1, 2, 3]


def test_period_stats_empty():
    stats = period_stats([])
    assert (stats.average, stats.count, stats.data_points) == (0.0, 0, [])


def test_per_hero_trend():
    # newest first: hero 1 improved from 40 to 50 (+25%), hero 2 has no history
    points = [_point(6, 50), _point(5, 50), _point(4, 40), _point(3, 40), _point(2, 70, hero_id=2)]

    stats = per_hero_stats(points, 2)

    assert [s.hero_id for s in stats] == [2, 1]
    hero_1 = stats[1]
    assert hero_1.average == pytest.approx(50.0)
    assert hero_1.count == 2
    assert hero_1.trend_percentage == pytest.approx(25.0)
    assert stats[0].trend_percentage == 0.0


def test_analysis_windows(match_store):
    _add_games(match_store, [30, 30, 30, 40, 50, 60])

    analysis = get_last_hits_analysis(match_store, 10, 3)

    assert analysis.current_period.average == pytest.approx(50.0)
    assert analysis.previous_period.average == pytest.approx(30.0)
    assert [s.hero_id for s in analysis.per_hero_stats] == [1]
    assert analysis.per_hero_stats[0].trend_percentage == pytest.approx(200.0 / 3)


def test_previous_window_requires_a_full_window(match_store):
    _add_games(match_store, [30, 40, 50, 60, 70])

    analysis = get_last_hits_analysis(match_store, 10, 3)

    assert analysis.current_period.count == 3
    assert analysis.previous_period is None


def test_hero_filter_drops_per_hero_stats(match_store):
    _add_games(match_store, [30, 40], hero_id=1)
    _add_games(match_store, [70], hero_id=2, first_id=10)

    analysis = get_last_hits_analysis(match_store, 10, 5, hero_id=2)

    assert analysis.current_period.count == 1
    assert analysis.current_period.max == 70
    assert analysis.per_hero_stats == []


def test_game_mode_filter(match_store):
    _add_games(match_store, [30, 40])
    _add_games(match_store, [90], first_id=10, game_mode=GAME_MODE_TURBO)

    analysis = get_last_hits_analysis(match_store, 10, 5, game_mode=GAME_MODE_TURBO)

    assert [p.last_hits for p in analysis.current_period.data_points] == [90]


def test_minute_without_data(match_store):
    _add_games(match_store, [30, 40])

    analysis = get_last_hits_analysis(match_store, 20, 5)

    assert analysis.current_period.count == 0
    assert analysis.per_hero_stats == []

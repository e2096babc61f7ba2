"""
analysis.py — Last-hits analysis over parsed matches.

Only exact per-minute values are used: a match without the requested
minute in its CS series is not part of any window.
"""

from typing import Optional, Sequence

from keeper.schemas import (
    HeroLastHitsStats,
    LastHitsAnalysis,
    LastHitsDataPoint,
    LastHitsPeriodStats,
)


def period_stats(points: Sequence[LastHitsDataPoint]) -> LastHitsPeriodStats:
    """Stats for one window. data_points come back oldest first (chart order)."""
    if not points:
        return LastHitsPeriodStats(average=0.0, min=0, max=0, count=0, data_points=[])
    values = [p.last_hits for p in points]
    return LastHitsPeriodStats(
        average=sum(values) / len(values),
        min=min(values),
        max=max(values),
        count=len(values),
        data_points=list(reversed(points)),
    )


def _trend(current: Sequence[int], previous: Sequence[int]) -> float:
    if not previous:
        return 0.0
    previous_avg = sum(previous) / len(previous)
    if previous_avg == 0:
        return 0.0
    current_avg = sum(current) / len(current)
    return (current_avg - previous_avg) / previous_avg * 100.0


def per_hero_stats(points: Sequence[LastHitsDataPoint], window_size: int) -> list[HeroLastHitsStats]:
    """Per hero: average of its own last `window_size` games and the trend vs the
    `window_size` before those. Sorted by average, best first."""
    by_hero: dict[int, list[int]] = {}
    for p in points:
        by_hero.setdefault(p.hero_id, []).append(p.last_hits)

    stats = []
    for hero_id, values in by_hero.items():
        current = values[:window_size]
        previous = values[window_size:window_size * 2]
        stats.append(HeroLastHitsStats(
            hero_id=hero_id,
            average=sum(current) / len(current),
            count=len(current),
            trend_percentage=_trend(current, previous),
        ))
    stats.sort(key=lambda s: s.average, reverse=True)
    return stats


def get_last_hits_analysis(
    match_store,
    time_minutes: int,
    window_size: int,
    hero_id: Optional[int] = None,
    game_mode: Optional[int] = None,
) -> LastHitsAnalysis:
    """Current window (latest N games), previous window (the N before, only when
    complete) and per-hero stats (only without a hero filter)."""
    points = match_store.last_hits_at_minute(time_minutes, hero_id=hero_id, game_mode=game_mode)

    current = points[:window_size]
    previous = None
    if window_size > 0 and len(points) >= window_size * 2:
        previous = period_stats(points[window_size:window_size * 2])

    heroes = []
    if hero_id is None and current and window_size > 0:
        heroes = per_hero_stats(points, window_size)

    return LastHitsAnalysis(
        current_period=period_stats(current),
        previous_period=previous,
        per_hero_stats=heroes,
    )

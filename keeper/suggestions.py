"""
suggestions.py — Weekly hero goal suggestion (last hits at 10 minutes).

Picks one of the heroes seen in the last 20 matches that has at least 5
games overall, averages its exact CS at minute 10 over its last 5 parsed
games and proposes a target a few percent above that average. The
suggestion is cached in a single row for 7 days.

Difficulty comes from SUGGESTION_DIFFICULTY (Easy / Medium / Hard / Custom);
Custom uses SUGGESTION_CUSTOM_PERCENTAGE as a fraction (0.10 = +10%).
"""

import logging
import os
from random import Random
from typing import Callable, Optional

from keeper.config import (
    CS_BASELINE_MINUTE,
    SUGGESTION_CUSTOM_SPREAD,
    SUGGESTION_IMPROVEMENT_RANGES,
    SUGGESTION_MIN_HERO_GAMES,
    SUGGESTION_SAMPLE_GAMES,
    SUGGESTION_TTL_DAYS,
    WEEKLY_RECENT_HERO_WINDOW,
)
from keeper.schemas import HeroGoalSuggestion

logger = logging.getLogger(__name__)

SUGGESTION_DIFFICULTY: str = os.getenv("SUGGESTION_DIFFICULTY", "Medium")
SUGGESTION_CUSTOM_PERCENTAGE: Optional[str] = os.getenv("SUGGESTION_CUSTOM_PERCENTAGE")

DEFAULT_CUSTOM_PERCENTAGE = 0.10


def improvement_range(difficulty: str, custom_percentage: Optional[float] = None) -> tuple[float, float]:
    """(min, max) прирост к текущему среднему; неизвестная сложность = Medium."""
    if difficulty == "Custom":
        pct = DEFAULT_CUSTOM_PERCENTAGE if custom_percentage is None else custom_percentage
        return pct - SUGGESTION_CUSTOM_SPREAD, pct + SUGGESTION_CUSTOM_SPREAD
    return SUGGESTION_IMPROVEMENT_RANGES.get(difficulty, SUGGESTION_IMPROVEMENT_RANGES["Medium"])


class SuggestionService:
    def __init__(
        self,
        match_store,
        goal_store,
        clock,
        rng_factory: Callable[[], Random] = Random,
        difficulty: Optional[str] = None,
        custom_percentage: Optional[float] = None,
    ) -> None:
        self.matches = match_store
        self.goals = goal_store
        self.clock = clock
        self.rng_factory = rng_factory
        self.difficulty = difficulty or SUGGESTION_DIFFICULTY
        if custom_percentage is None and SUGGESTION_CUSTOM_PERCENTAGE:
            custom_percentage = float(SUGGESTION_CUSTOM_PERCENTAGE)
        self.custom_percentage = custom_percentage

    def get_current(self) -> Optional[HeroGoalSuggestion]:
        """Сохранённое предложение, пока ему меньше 7 дней."""
        suggestion = self.goals.get_suggestion()
        if suggestion is None:
            return None
        age = int(self.clock.now().timestamp()) - suggestion.created_at
        if age >= SUGGESTION_TTL_DAYS * 86400:
            return None
        return suggestion

    def generate(self) -> Optional[HeroGoalSuggestion]:
        """Строит новое предложение, не сохраняя его. None, если подходящего героя нет."""
        rng = self.rng_factory()

        recent = self.matches.recent_hero_ids(WEEKLY_RECENT_HERO_WINDOW)
        qualifying = sorted(
            hero_id for hero_id in set(recent)
            if self.matches.hero_game_count(hero_id) >= SUGGESTION_MIN_HERO_GAMES
        )
        if not qualifying:
            return None
        hero_id = rng.choice(qualifying)

        points = self.matches.last_hits_at_minute(
            CS_BASELINE_MINUTE, hero_id=hero_id, limit=SUGGESTION_SAMPLE_GAMES,
        )
        values = [p.last_hits for p in points if p.last_hits > 0]
        if not values:
            logger.info("[suggestions] hero %s has no parsed CS@10 data yet", hero_id)
            return None

        average = sum(values) / len(values)
        low, high = improvement_range(self.difficulty, self.custom_percentage)
        factor = 1.0 + low + rng.uniform(0.0, max(high - low, 0.001))

        return HeroGoalSuggestion(
            hero_id=hero_id,
            suggested_last_hits=int(average * factor + 0.5),
            current_average=average,
            created_at=int(self.clock.now().timestamp()),
            games_analyzed=len(values),
        )

    def get_or_generate(self) -> Optional[HeroGoalSuggestion]:
        current = self.get_current()
        if current is not None:
            return current
        return self.regenerate()

    def regenerate(self) -> Optional[HeroGoalSuggestion]:
        """Пересоздаёт предложение независимо от возраста кэша."""
        suggestion = self.generate()
        if suggestion is not None:
            self.goals.save_suggestion(suggestion)
            logger.info(
                "[suggestions] hero %s: %d last hits at 10 (avg %.1f over %d games)",
                suggestion.hero_id, suggestion.suggested_last_hits,
                suggestion.current_average, suggestion.games_analyzed,
            )
        return suggestion

"""
candidates.py — Challenge templates and the pure filter/select pipeline.

Nothing here touches the database or the clock: the engines gather
baselines and hero picks, then hand them to these functions together with
the random source for the current call.
"""

from dataclasses import dataclass
from random import Random
from typing import Optional, Sequence

from keeper.config import EASY_ROLL_LIMIT, MEDIUM_ROLL_LIMIT
from keeper.schemas import Baselines, Difficulty

TIERS = (Difficulty.EASY, Difficulty.MEDIUM, Difficulty.HARD)


@dataclass(frozen=True)
class Candidate:
    metric: str
    difficulty: Difficulty
    description: str
    target: int
    target_games: Optional[int] = None
    hero_id: Optional[int] = None


def roll_difficulty(rng: Random) -> Difficulty:
    """60% easy, 30% medium, 10% hard."""
    roll = rng.random()
    if roll < EASY_ROLL_LIMIT:
        return Difficulty.EASY
    if roll < MEDIUM_ROLL_LIMIT:
        return Difficulty.MEDIUM
    return Difficulty.HARD


# ---------------------------------------------------------------------------
# Daily
# ---------------------------------------------------------------------------

def daily_candidates(
    baselines: Baselines,
    recent_hero: Optional[int] = None,
    unfamiliar_hero: Optional[int] = None,
) -> list[Candidate]:
    """Full daily template pool. Targets use the integer part of each average."""
    easy, medium, hard = TIERS
    pool = [
        Candidate("wins", easy, "Win 1 game today", 1),
        Candidate("games_played", easy, "Play 2 games today", 2),
        Candidate("positive_kda", easy, "Finish with positive KDA in one game (K+A > Deaths)", 1),
    ]
    if recent_hero is not None:
        pool.append(Candidate("wins", easy, "Win 1 game with your hero", 1, hero_id=recent_hero))
    if unfamiliar_hero is not None:
        pool.append(Candidate(
            "games_played", easy, "Play a game with a hero you haven't used in 7 days", 1,
            hero_id=unfamiliar_hero,
        ))

    kills = max(int(baselines.avg_kills) + 2, 10)
    gpm = max(int(baselines.avg_gpm) + 30, 400)
    deaths = min(max(int(baselines.avg_deaths) - 1, 1), 4)
    pool += [
        Candidate("kills", medium, f"Get {kills}+ kills in one game", kills),
        Candidate("gpm", medium, f"Achieve {gpm}+ GPM in one game", gpm),
        Candidate("low_deaths", medium, f"Die {deaths} times or less in one game", deaths),
    ]

    damage = max(int(baselines.avg_hero_damage) + 2000, 15000)
    pool.append(Candidate("hero_damage", hard, f"Deal {damage}+ hero damage in one game", damage))
    if baselines.avg_cs_at_10 is not None:
        cs = max(int(baselines.avg_cs_at_10) + 5, 50)
        pool.append(Candidate("cs_at_10", hard, f"Get {cs}+ CS at 10 minutes", cs))
    return pool


def select_daily(
    candidates: Sequence[Candidate],
    difficulty: Difficulty,
    last_metric: Optional[str],
    rng: Random,
) -> Optional[Candidate]:
    """Uniform pick from the tier minus the last metric.

    Falls back to the whole tier, then to every candidate.
    """
    tier = [c for c in candidates if c.difficulty == difficulty]
    pool = [c for c in tier if c.metric != last_metric] or tier or list(candidates)
    if not pool:
        return None
    return rng.choice(pool)


# ---------------------------------------------------------------------------
# Weekly
# ---------------------------------------------------------------------------

def weekly_candidates(baselines: Baselines, recent_hero: Optional[int] = None) -> list[Candidate]:
    easy, medium, hard = TIERS
    pool = [
        Candidate("wins", easy, "Win 3 games this week", 3),
        Candidate("games_played", easy, "Play 5 games this week", 5),
        Candidate("positive_kda_games", easy, "Finish with positive KDA (K+A > Deaths) in 3 games", 3),
    ]
    if recent_hero is not None:
        pool.append(Candidate("wins", easy, "Win 2 games with your favourite hero", 2, hero_id=recent_hero))

    kills_total = max(int(baselines.avg_kills) * 4, 20)
    gpm = max(int(baselines.avg_gpm) + 50, 450)
    deaths = max(int(baselines.avg_deaths) - 1, 2)
    pool += [
        Candidate("kills_total", medium, f"Get {kills_total}+ total kills this week", kills_total),
        Candidate("avg_gpm", medium, f"Average {gpm}+ GPM across 5 games", gpm, target_games=5),
        Candidate("wins", medium, "Win 5 games this week", 5),
        Candidate("low_deaths_games", medium, f"Die {deaths} or fewer times in 4 games", deaths, target_games=4),
    ]

    damage_total = max(int(baselines.avg_hero_damage) + 3000, 18000) * 5
    pool.append(Candidate(
        "hero_damage_total", hard, f"Deal {damage_total}+ total hero damage this week", damage_total,
    ))
    if baselines.avg_cs_at_10 is not None:
        cs = max(int(baselines.avg_cs_at_10) + 8, 55)
        pool.append(Candidate(
            "cs_at_10_avg", hard, f"Average {cs}+ CS at 10 minutes across 5 games", cs, target_games=5,
        ))
    pool.append(Candidate("wins", hard, "Win 8 games this week", 8))
    return pool


def select_weekly_options(candidates: Sequence[Candidate], rng: Random) -> list[Candidate]:
    """One candidate per tier (easy, medium, hard), each drawn after a shuffle."""
    options = []
    for tier in TIERS:
        pool = [c for c in candidates if c.difficulty == tier]
        rng.shuffle(pool)
        if pool:
            options.append(pool[0])
    return options

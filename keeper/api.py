"""
api.py — HTTP API for Dota Keeper.

Run with:
    uvicorn keeper.api:app --reload

Engine, clock and tracked Steam ID are FastAPI dependencies so tests can
override them. Domain errors map to HTTP statuses in one place:
  NotFoundError      -> 404
  InvalidStateError  -> 409
  OpenDotaError      -> 502
  StoreError         -> 503
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.engine import Engine

from keeper import database
from keeper.analysis import get_last_hits_analysis
from keeper.challenges_db import ChallengeStore
from keeper.clock import SystemClock
from keeper.daily_challenges import DailyChallengeEngine
from keeper.errors import InvalidStateError, NotFoundError, OpenDotaError, StoreError
from keeper.goal_evaluator import GoalEvaluator
from keeper.goals_db import GoalStore
from keeper.ingestion import backfill_matches, parse_match, refresh_matches
from keeper.items import CatalogItem, get_all_items
from keeper.match_db import MatchStore
from keeper.schemas import (
    ChallengeHistoryEntry,
    ChallengeOption,
    DailyChallengeProgress,
    Goal,
    GoalEvaluation,
    GoalMatchPoint,
    GoalWithDailyProgress,
    HeroGoalSuggestion,
    ItemTiming,
    LastHitsAnalysis,
    Match,
    MatchCS,
    MatchWithGoals,
    NewGoal,
    WeeklyChallenge,
    WeeklyChallengeProgress,
)
from keeper.suggestions import SuggestionService
from keeper.weekly_challenges import WeeklyChallengeEngine

logger = logging.getLogger(__name__)


# ========== Dependencies ==========

def get_engine() -> Engine:
    return database.get_engine()


def get_clock() -> SystemClock:
    return SystemClock()


def get_steam_id() -> str:
    steam_id = os.getenv("STEAM_ID")
    if not steam_id:
        raise HTTPException(status_code=400, detail="STEAM_ID is not configured")
    return steam_id


@asynccontextmanager
async def lifespan(_app: FastAPI):
    database.init_db(database.get_engine())
    yield


app = FastAPI(title="Dota Keeper", lifespan=lifespan)

# CORS нужен, чтобы фронтенд мог вызывать API из браузера.
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ========== Error mapping ==========

@app.exception_handler(NotFoundError)
async def _not_found(_request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(InvalidStateError)
async def _invalid_state(_request: Request, exc: InvalidStateError):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(OpenDotaError)
async def _opendota_error(_request: Request, exc: OpenDotaError):
    logger.warning("[api] OpenDota error: %s", exc)
    return JSONResponse(status_code=502, content={"detail": str(exc)})


@app.exception_handler(StoreError)
async def _store_error(_request: Request, exc: StoreError):
    return JSONResponse(status_code=503, content={"detail": "Database unavailable"})


# ========== Response models ==========

class CountResponse(BaseModel):
    count: int


class SuccessResponse(BaseModel):
    success: bool


# ========== Matches ==========

@app.get("/api/matches", response_model=list[MatchWithGoals])
async def list_matches(engine: Engine = Depends(get_engine), clock=Depends(get_clock)):
    """Все сохранённые матчи (от новых к старым) со сводкой по целям."""
    return GoalEvaluator(MatchStore(engine), GoalStore(engine), clock).matches_with_goals()


@app.post("/api/matches/refresh", response_model=CountResponse)
async def refresh(engine: Engine = Depends(get_engine), steam_id: str = Depends(get_steam_id)):
    new_count = await refresh_matches(MatchStore(engine), steam_id)
    return CountResponse(count=new_count)


@app.post("/api/matches/backfill", response_model=CountResponse)
async def backfill(
    limit: int = Query(default=20, ge=1, le=500),
    engine: Engine = Depends(get_engine),
    clock=Depends(get_clock),
    steam_id: str = Depends(get_steam_id),
):
    """Догружает до `limit` матчей старше самого старого сохранённого."""
    store = MatchStore(engine)
    before = store.get_oldest_match_timestamp() or int(clock.now().timestamp())
    new_count = await backfill_matches(store, steam_id, before, limit)
    return CountResponse(count=new_count)


@app.delete("/api/matches", response_model=SuccessResponse)
async def clear_matches(engine: Engine = Depends(get_engine)):
    MatchStore(engine).clear_all()
    logger.info("[api] all matches cleared")
    return SuccessResponse(success=True)


@app.post("/api/matches/{match_id}/parse", response_model=Match)
async def parse(match_id: int, engine: Engine = Depends(get_engine), steam_id: str = Depends(get_steam_id)):
    store = MatchStore(engine)
    await parse_match(store, match_id, steam_id)
    return store.get_match(match_id)


@app.get("/api/matches/{match_id}/goals", response_model=list[GoalEvaluation])
async def match_goals(match_id: int, engine: Engine = Depends(get_engine), clock=Depends(get_clock)):
    store = MatchStore(engine)
    match = store.get_match(match_id)
    return GoalEvaluator(store, GoalStore(engine), clock).evaluate_match_goals(match)


@app.get("/api/matches/{match_id}/cs", response_model=list[MatchCS])
async def match_cs(match_id: int, engine: Engine = Depends(get_engine)):
    store = MatchStore(engine)
    store.get_match(match_id)
    return store.get_cs_series(match_id)


@app.get("/api/matches/{match_id}/items", response_model=list[ItemTiming])
async def match_items(match_id: int, engine: Engine = Depends(get_engine)):
    """Время первой покупки каждого предмета из каталога, по возрастанию."""
    store = MatchStore(engine)
    store.get_match(match_id)
    return store.get_item_timings_for_match(match_id)


# ========== Goals ==========

@app.get("/api/goals", response_model=list[Goal])
async def list_goals(engine: Engine = Depends(get_engine)):
    return GoalStore(engine).get_all_goals()


@app.post("/api/goals", response_model=Goal, status_code=201)
async def create_goal(goal: NewGoal, engine: Engine = Depends(get_engine), clock=Depends(get_clock)):
    created = GoalStore(engine).insert_goal(goal, int(clock.now().timestamp()))
    logger.info("[api] goal %s created (%s)", created.id, created.metric.value)
    return created


# Объявлен до /api/goals/{goal_id}, иначе "calendar" парсится как id
@app.get("/api/goals/calendar", response_model=list[GoalWithDailyProgress])
async def goals_calendar(
    days: int = Query(default=7, ge=1, le=366),
    engine: Engine = Depends(get_engine),
    clock=Depends(get_clock),
):
    return GoalEvaluator(MatchStore(engine), GoalStore(engine), clock).goals_with_daily_progress(days)


@app.get("/api/goals/{goal_id}", response_model=Goal)
async def get_goal(goal_id: int, engine: Engine = Depends(get_engine)):
    return GoalStore(engine).get_goal(goal_id)


@app.put("/api/goals/{goal_id}", response_model=Goal)
async def update_goal(goal_id: int, goal: NewGoal, engine: Engine = Depends(get_engine)):
    return GoalStore(engine).update_goal(goal_id, goal)


@app.delete("/api/goals/{goal_id}", response_model=SuccessResponse)
async def delete_goal(goal_id: int, engine: Engine = Depends(get_engine)):
    GoalStore(engine).delete_goal(goal_id)
    return SuccessResponse(success=True)


@app.get("/api/goals/{goal_id}/histogram", response_model=list[GoalMatchPoint])
async def goal_histogram(goal_id: int, engine: Engine = Depends(get_engine), clock=Depends(get_clock)):
    return GoalEvaluator(MatchStore(engine), GoalStore(engine), clock).goal_match_data(goal_id)


# ========== Hero goal suggestion ==========

def _suggestions(engine: Engine, clock) -> SuggestionService:
    return SuggestionService(MatchStore(engine), GoalStore(engine), clock)


@app.get("/api/suggestion", response_model=Optional[HeroGoalSuggestion])
async def get_suggestion(engine: Engine = Depends(get_engine), clock=Depends(get_clock)):
    """Текущее предложение; генерируется заново, если его нет или оно старше 7 дней."""
    return _suggestions(engine, clock).get_or_generate()


@app.post("/api/suggestion/regenerate", response_model=Optional[HeroGoalSuggestion])
async def regenerate_suggestion(engine: Engine = Depends(get_engine), clock=Depends(get_clock)):
    return _suggestions(engine, clock).regenerate()


# ========== Last-hits analysis ==========

@app.get("/api/analysis/last-hits", response_model=LastHitsAnalysis)
async def last_hits_analysis(
    time_minutes: int = Query(default=10, ge=0, le=120),
    window_size: int = Query(default=30, ge=1, le=500),
    hero_id: Optional[int] = Query(default=None),
    game_mode: Optional[int] = Query(default=None),
    engine: Engine = Depends(get_engine),
):
    return get_last_hits_analysis(
        MatchStore(engine), time_minutes, window_size, hero_id=hero_id, game_mode=game_mode,
    )


# ========== Daily challenge ==========

def _daily(engine: Engine, clock) -> DailyChallengeEngine:
    return DailyChallengeEngine(MatchStore(engine), ChallengeStore(engine), clock)


@app.get("/api/challenges/daily", response_model=Optional[DailyChallengeProgress])
async def daily_progress(engine: Engine = Depends(get_engine), clock=Depends(get_clock)):
    """Челлендж на сегодня с прогрессом; создаётся при первом запросе за день."""
    return _daily(engine, clock).get_progress()


@app.get("/api/challenges/daily/streak", response_model=CountResponse)
async def daily_streak(engine: Engine = Depends(get_engine), clock=Depends(get_clock)):
    """Сколько дней подряд (до сегодняшнего) челлендж был выполнен."""
    return CountResponse(count=_daily(engine, clock).streak())


# ========== Weekly challenge ==========

def _weekly(engine: Engine, clock) -> WeeklyChallengeEngine:
    return WeeklyChallengeEngine(MatchStore(engine), ChallengeStore(engine), clock)


@app.get("/api/challenges/weekly", response_model=Optional[WeeklyChallengeProgress])
async def weekly_progress(engine: Engine = Depends(get_engine), clock=Depends(get_clock)):
    return _weekly(engine, clock).get_progress()


@app.get("/api/challenges/weekly/options", response_model=list[ChallengeOption])
async def weekly_options(engine: Engine = Depends(get_engine), clock=Depends(get_clock)):
    return _weekly(engine, clock).get_options()


@app.post("/api/challenges/weekly/reroll", response_model=list[ChallengeOption])
async def weekly_reroll(engine: Engine = Depends(get_engine), clock=Depends(get_clock)):
    """Новые три варианта; не больше двух раз за неделю и только до выбора."""
    return _weekly(engine, clock).reroll()


@app.post("/api/challenges/weekly/options/{option_id}/accept", response_model=WeeklyChallenge)
async def weekly_accept(option_id: int, engine: Engine = Depends(get_engine), clock=Depends(get_clock)):
    return _weekly(engine, clock).accept(option_id)


@app.post("/api/challenges/weekly/skip", response_model=WeeklyChallenge)
async def weekly_skip(engine: Engine = Depends(get_engine), clock=Depends(get_clock)):
    return _weekly(engine, clock).skip()


# ========== History & catalog ==========

@app.get("/api/challenges/history", response_model=list[ChallengeHistoryEntry])
async def challenge_history(
    challenge_type: Optional[str] = Query(default=None, pattern="^(daily|weekly)$"),
    limit: int = Query(default=50, ge=1, le=500),
    engine: Engine = Depends(get_engine),
):
    return ChallengeStore(engine).get_history(challenge_type=challenge_type, limit=limit)


@app.get("/api/items", response_model=list[CatalogItem])
async def list_items():
    return get_all_items()

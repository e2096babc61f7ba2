"""
goals_db.py — User-defined goals and the cached hero goal suggestion.

Goals are only ever created, updated and deleted by explicit user action.
The suggestion table holds a single row (id = 1) that is overwritten on
every regeneration.
"""

import logging
from typing import Optional

from sqlalchemy import select, text

from keeper.database import session_scope
from keeper.errors import NotFoundError
from keeper.models import Goal as GoalRow
from keeper.models import HeroGoalSuggestion as SuggestionRow
from keeper.schemas import Goal, HeroGoalSuggestion, NewGoal

logger = logging.getLogger(__name__)

_SUGGESTION_ROW_ID = 1


def goal_from_row(row: GoalRow) -> Goal:
    return Goal.model_validate(row)


def _goal_columns(goal: NewGoal) -> dict:
    return {
        "hero_id": goal.hero_id,
        "hero_scope": goal.hero_scope.value if goal.hero_scope else None,
        "metric": goal.metric.value,
        "target_value": goal.target_value,
        "target_time_minutes": goal.target_time_minutes,
        "item_id": goal.item_id,
        "game_mode": goal.game_mode.value,
    }


class GoalStore:
    def __init__(self, engine) -> None:
        self.engine = engine

    # ------------------------------------------------------------------
    # Goals
    # ------------------------------------------------------------------

    def insert_goal(self, goal: NewGoal, created_at: int) -> Goal:
        with session_scope(self.engine) as session:
            row = GoalRow(**_goal_columns(goal), created_at=created_at)
            session.add(row)
            session.flush()
            created = goal_from_row(row)
        logger.info("[goals_db] goal %s created (%s)", created.id, created.metric.value)
        return created

    def get_all_goals(self) -> list[Goal]:
        with session_scope(self.engine) as session:
            rows = session.scalars(select(GoalRow).order_by(GoalRow.created_at.desc(), GoalRow.id.desc())).all()
            return [goal_from_row(r) for r in rows]

    def get_goal(self, goal_id: int) -> Goal:
        with session_scope(self.engine) as session:
            row = session.get(GoalRow, goal_id)
            if row is None:
                raise NotFoundError(f"Goal {goal_id} not found")
            return goal_from_row(row)

    def update_goal(self, goal_id: int, goal: NewGoal) -> Goal:
        """Overwrites every editable field; id and created_at are kept."""
        with session_scope(self.engine) as session:
            row = session.get(GoalRow, goal_id)
            if row is None:
                raise NotFoundError(f"Goal {goal_id} not found")
            for key, value in _goal_columns(goal).items():
                setattr(row, key, value)
            session.flush()
            return goal_from_row(row)

    def delete_goal(self, goal_id: int) -> None:
        with session_scope(self.engine) as session:
            row = session.get(GoalRow, goal_id)
            if row is None:
                raise NotFoundError(f"Goal {goal_id} not found")
            session.delete(row)
        logger.info("[goals_db] goal %s deleted", goal_id)

    # ------------------------------------------------------------------
    # Hero goal suggestion
    # ------------------------------------------------------------------

    def get_suggestion(self) -> Optional[HeroGoalSuggestion]:
        with session_scope(self.engine) as session:
            row = session.get(SuggestionRow, _SUGGESTION_ROW_ID)
            return HeroGoalSuggestion.model_validate(row) if row is not None else None

    def save_suggestion(self, suggestion: HeroGoalSuggestion) -> None:
        with session_scope(self.engine) as session:
            session.execute(
                text("""
                    INSERT INTO hero_goal_suggestions
                        (id, hero_id, suggested_last_hits, current_average, created_at, games_analyzed)
                    VALUES
                        (:id, :hero_id, :suggested_last_hits, :current_average, :created_at, :games_analyzed)
                    ON CONFLICT (id) DO UPDATE SET
                        hero_id             = excluded.hero_id,
                        suggested_last_hits = excluded.suggested_last_hits,
                        current_average     = excluded.current_average,
                        created_at          = excluded.created_at,
                        games_analyzed      = excluded.games_analyzed
                """),
                {"id": _SUGGESTION_ROW_ID, **suggestion.model_dump()},
            )

# tests/conftest.py

import pytest

from keeper.challenges_db import ChallengeStore
from keeper.clock import FixedClock
from keeper.database import create_all_tables, make_engine
from keeper.goals_db import GoalStore
from keeper.match_db import MatchStore
from tests.helpers import NOW


@pytest.fixture
def engine(tmp_path):
    """Fresh SQLite file per test."""
    engine = make_engine(f"sqlite:///{tmp_path / 'keeper.db'}")
    create_all_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def match_store(engine):
    return MatchStore(engine)


@pytest.fixture
def goal_store(engine):
    return GoalStore(engine)


@pytest.fixture
def challenge_store(engine):
    return ChallengeStore(engine)

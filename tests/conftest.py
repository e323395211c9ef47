import importlib
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest


def import_required(module_name: str):
    """
    Import a project module with a clearer failure message than ModuleNotFoundError.
    """
    try:
        return importlib.import_module(module_name)
    except ModuleNotFoundError as e:
        pytest.fail(
            f"Required module '{module_name}.py' not found. "
            f"Original error: {e}"
        )


@pytest.fixture
def maze_module():
    return import_required("maze")


@pytest.fixture
def db_module():
    return import_required("db")


SCENARIO_MAZE = [
    ["S", 0, 1],
    [1, 0, 1],
    [1, 0, "E"],
]


@pytest.fixture
def scenario_grid(maze_module):
    return maze_module.Grid.from_rows(SCENARIO_MAZE, maze_id="scenario-3x3")


@pytest.fixture
def practice_grid(maze_module):
    return maze_module.build_practice_maze()


@pytest.fixture
def scheduler():
    return import_required("scheduler").ManualScheduler()


class FakeClock:
    """Wall clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def repo(tmp_path, db_module):
    return db_module.JsonScoreRepository(tmp_path / "scores.json")


@pytest.fixture
def sqlite_repo(tmp_path, db_module):
    repo = db_module.SqliteScoreRepository(tmp_path / "scores.db")
    yield repo
    repo.close()


@pytest.fixture(params=["json", "sqlite"])
def any_repo(request, tmp_path, db_module):
    if request.param == "json":
        yield db_module.JsonScoreRepository(tmp_path / "scores.json")
        return
    repo = db_module.SqliteScoreRepository(tmp_path / "scores.db")
    yield repo
    repo.close()


class StaticEventSource:
    """Event-state source returning a canned payload, or raising a canned error."""

    def __init__(self, payload: Any = None, error: Exception | None = None):
        self.payload = payload
        self.error = error
        self.calls: list[str] = []

    def fetch(self, identity: str) -> dict[str, Any]:
        self.calls.append(identity)
        if self.error is not None:
            raise self.error
        return self.payload


@pytest.fixture
def static_source():
    return StaticEventSource

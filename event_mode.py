from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Protocol

from maze import Grid, build_practice_maze

logger = logging.getLogger(__name__)


class EventStateError(Exception):
    """The event-state lookup could not be completed."""


class EventMode(Enum):
    PRACTICE = "practice"
    LIVE = "live"


class EventStateSource(Protocol):
    def fetch(self, identity: str) -> dict[str, Any]: ...


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: str) -> datetime:
    dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def format_timestamp(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


class PracticeTimer:
    """Locally accumulated seconds; one tick per elapsed second while running."""

    def __init__(self) -> None:
        self._seconds = 0
        self._stopped = False

    def tick(self, now: datetime | None = None) -> int:
        if not self._stopped:
            self._seconds += 1
        return self._seconds

    def elapsed_seconds(self, now: datetime | None = None) -> int:
        return self._seconds

    def stop(self) -> None:
        self._stopped = True


class LiveTimer:
    """Elapsed time derived from the server start timestamp; never accumulated."""

    def __init__(self, start_time: datetime):
        self.start_time = start_time

    def tick(self, now: datetime) -> int:
        return self.elapsed_seconds(now)

    def elapsed_seconds(self, now: datetime) -> int:
        elapsed = int((now - self.start_time).total_seconds())
        # Clock skew before the start must not show negative time.
        return max(0, elapsed)

    def stop(self) -> None:
        pass


def _flag(payload: dict[str, Any], key: str) -> bool:
    value = payload.get(key, False)
    if not isinstance(value, bool):
        raise ValueError(f"{key} must be a boolean, got {value!r}")
    return value


@dataclass(frozen=True)
class EventState:
    is_event_live: bool
    has_completed: bool
    start_time: datetime | None = None
    maze: Grid | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "EventState":
        """Parse an event-state response. Raises ValueError on malformed data."""
        if not isinstance(payload, dict):
            raise ValueError("event state payload must be an object")
        is_live = _flag(payload, "isEventLive")
        has_completed = _flag(payload, "hasCompleted")
        start_time = None
        maze = None
        if is_live and not has_completed:
            raw_start = payload.get("startTime")
            raw_maze = payload.get("maze")
            if not raw_start or raw_maze is None:
                raise ValueError("live event state requires startTime and maze")
            start_time = parse_timestamp(str(raw_start))
            maze = Grid.from_rows(raw_maze, maze_id=str(payload.get("mazeId", "live")))
        return cls(
            is_event_live=is_live,
            has_completed=has_completed,
            start_time=start_time,
            maze=maze,
        )


@dataclass
class ModeResolution:
    mode: EventMode
    grid: Grid | None
    timer: PracticeTimer | LiveTimer | None
    already_completed: bool = False


class EventModeController:
    def __init__(
        self,
        source: EventStateSource,
        *,
        practice_grid: Grid | None = None,
    ):
        self.source = source
        self.practice_grid = practice_grid or build_practice_maze()

    def _practice(self) -> ModeResolution:
        return ModeResolution(mode=EventMode.PRACTICE, grid=self.practice_grid, timer=PracticeTimer())

    def resolve(self, identity: str) -> ModeResolution:
        try:
            state = EventState.from_payload(self.source.fetch(identity))
        except (EventStateError, ValueError, TypeError) as e:
            logger.warning("Event state lookup failed for %r, falling back to practice: %s", identity, e)
            return self._practice()

        if state.has_completed:
            logger.info("Participant %r already has a recorded finish", identity)
            return ModeResolution(mode=EventMode.LIVE, grid=None, timer=None, already_completed=True)
        if state.is_event_live:
            return ModeResolution(mode=EventMode.LIVE, grid=state.maze, timer=LiveTimer(state.start_time))
        return self._practice()

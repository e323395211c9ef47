from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from commands import parse_batch, parse_commit
from event_mode import EventMode, EventModeController, LiveTimer, PracticeTimer, utc_now
from maze import CellKind, Direction, Grid, MoveOutcome, Position, apply_move, shortest_path
from scheduler import ScheduledSequence, Scheduler
from submission import SubmissionGuard, SubmissionResult, SubmitStatus

logger = logging.getLogger(__name__)

STEP_DELAY_SECONDS = 0.15


class SessionState(Enum):
    INITIALIZING = "initializing"
    PRACTICE_ACTIVE = "practice_active"
    LIVE_ACTIVE = "live_active"
    COMPLETED = "completed"


class SessionStateError(RuntimeError):
    pass


@dataclass(frozen=True)
class Commit:
    """
    One commit gesture from the editor: the whole buffer, plus whether the
    participant asked for a full replay instead of a single step.
    """

    text: str
    replay: bool = False


class InputLock:
    """Editor input capabilities, switched by the session's state."""

    def __init__(self) -> None:
        self.clipboard_blocked = False
        self.editing_blocked = False

    @property
    def accepts_input(self) -> bool:
        return not self.editing_blocked

    def apply(self, state: SessionState) -> None:
        self.clipboard_blocked = state is SessionState.LIVE_ACTIVE
        self.editing_blocked = state is SessionState.COMPLETED


@dataclass
class GameView:
    """
    UI-agnostic state projection returned by the engine.
    """

    pos: dict[str, int] | None
    state: SessionState
    mode: EventMode | None
    is_complete: bool
    elapsed_seconds: int
    move_count: int = 0
    last_outcome: MoveOutcome | None = None
    map_text: str = ""


@dataclass
class GameOutput:
    """
    Wrapper for state + user-facing messages from engine commands.
    """

    view: GameView
    messages: list[str] = field(default_factory=list)
    collision: bool = False
    scheduled_steps: int = 0


class SessionEngine:
    def __init__(
        self,
        *,
        grid: Grid | None,
        scheduler: Scheduler,
        clock: Callable[[], datetime] = utc_now,
        step_delay: float = STEP_DELAY_SECONDS,
        input_lock: InputLock | None = None,
    ):
        self.grid = grid
        self.scheduler = scheduler
        self.clock = clock
        self.step_delay = step_delay
        self.input_lock = input_lock or InputLock()
        self.state = SessionState.INITIALIZING
        self.mode: EventMode | None = None
        self.timer: PracticeTimer | LiveTimer | None = None
        self._pos: Position | None = grid.start if grid is not None else None
        self._move_count = 0
        self._last_outcome: MoveOutcome | None = None
        self._final_seconds: int | None = None
        self._replay: ScheduledSequence | None = None
        self._complete_listeners: list[Callable[[int], None]] = []
        self._collision_listeners: list[Callable[[Position], None]] = []
        self._completion_fired = False

    # -- lifecycle ---------------------------------------------------------

    def activate(self, mode: EventMode, timer: PracticeTimer | LiveTimer) -> None:
        if self.state is not SessionState.INITIALIZING:
            raise SessionStateError(f"Cannot activate a session in state {self.state.name}")
        if self.grid is None:
            raise SessionStateError("Cannot activate a session without a maze")
        self.mode = mode
        self.timer = timer
        self._set_state(SessionState.LIVE_ACTIVE if mode is EventMode.LIVE else SessionState.PRACTICE_ACTIVE)
        logger.info("Session active in %s mode on %s", mode.value, self.grid.maze_id)

    def mark_completed(self) -> None:
        """Enter the terminal state without play, for a finish already on record."""
        if self.state is SessionState.COMPLETED:
            return
        self.mode = self.mode or EventMode.LIVE
        self._completion_fired = True
        self._set_state(SessionState.COMPLETED)

    def on_complete(self, callback: Callable[[int], None]) -> None:
        self._complete_listeners.append(callback)

    def on_collision(self, callback: Callable[[Position], None]) -> None:
        self._collision_listeners.append(callback)

    @property
    def is_active(self) -> bool:
        return self.state in (SessionState.PRACTICE_ACTIVE, SessionState.LIVE_ACTIVE)

    @property
    def position(self) -> Position | None:
        return self._pos

    @property
    def replay_pending(self) -> bool:
        return self._replay is not None

    def hint(self) -> Direction | None:
        """Next step on a shortest route from the current position. Practice only."""
        if self.state is not SessionState.PRACTICE_ACTIVE:
            return None
        path = shortest_path(self.grid, self._pos)
        return path[0] if path else None

    def _set_state(self, state: SessionState) -> None:
        self.state = state
        self.input_lock.apply(state)

    # -- timing ------------------------------------------------------------

    def elapsed_seconds(self) -> int:
        if self._final_seconds is not None:
            return self._final_seconds
        if self.timer is None:
            return 0
        return self.timer.elapsed_seconds(self.clock())

    def tick(self) -> int:
        """Called once per second by the UI loop."""
        if self.is_active and self.timer is not None:
            self.timer.tick(self.clock())
        return self.elapsed_seconds()

    # -- commands ----------------------------------------------------------

    def handle(self, commit: Commit) -> GameOutput:
        if commit.replay:
            return self.replay(commit.text)
        return self.commit_line(commit.text)

    def _inactive_output(self) -> GameOutput:
        if self.state is SessionState.COMPLETED:
            return GameOutput(view=self.view(), messages=["Session complete."])
        return GameOutput(view=self.view(), messages=["Session not started."])

    def commit_line(self, buffer: str) -> GameOutput:
        if not self.is_active:
            return self._inactive_output()
        token = parse_commit(buffer)
        if token is None:
            return GameOutput(view=self.view())
        # A direct step supersedes any replay still animating.
        self._cancel_replay()
        collision = self._apply(token)
        messages = ["Blocked path."] if collision else []
        if self.state is SessionState.COMPLETED:
            messages.append("Goal reached.")
        return GameOutput(view=self.view(), messages=messages, collision=collision)

    def replay(self, buffer: str) -> GameOutput:
        if not self.is_active:
            return self._inactive_output()
        tokens = parse_batch(buffer)
        self._cancel_replay()
        self._pos = self.grid.start
        self._move_count = 0
        self._last_outcome = None

        sequence = ScheduledSequence(self.scheduler)
        last = len(tokens) - 1
        for index, token in enumerate(tokens):
            sequence.schedule(self.step_delay * (index + 1), self._replay_step, sequence, token, index == last)
        self._replay = sequence if tokens else None
        logger.debug("Scheduled replay of %d steps", len(tokens))
        return GameOutput(view=self.view(), scheduled_steps=len(tokens))

    def _replay_step(self, sequence: ScheduledSequence, token: Direction, is_last: bool) -> None:
        if sequence is not self._replay or sequence.cancelled or not self.is_active:
            return
        self._apply(token)
        if is_last and self._replay is sequence:
            self._replay = None

    def _cancel_replay(self) -> None:
        if self._replay is not None:
            self._replay.cancel()
            self._replay = None

    def _apply(self, token: Direction) -> bool:
        result = apply_move(self._pos, token, self.grid)
        self._last_outcome = result.outcome
        if result.outcome is MoveOutcome.BLOCKED:
            for callback in self._collision_listeners:
                callback(self._pos)
            return True
        self._pos = result.position
        self._move_count += 1
        if result.outcome is MoveOutcome.REACHED_GOAL:
            self._complete()
        return False

    def _complete(self) -> None:
        if self._completion_fired:
            return
        self._completion_fired = True
        self._final_seconds = self.elapsed_seconds()
        if self.timer is not None:
            self.timer.stop()
        self._cancel_replay()
        self._set_state(SessionState.COMPLETED)
        logger.info("Goal reached in %ss after %d moves", self._final_seconds, self._move_count)
        for callback in self._complete_listeners:
            callback(self._final_seconds)

    # -- projection --------------------------------------------------------

    def view(self) -> GameView:
        pos = {"row": self._pos.row, "col": self._pos.col} if self._pos is not None else None
        return GameView(
            pos=pos,
            state=self.state,
            mode=self.mode,
            is_complete=self.state is SessionState.COMPLETED,
            elapsed_seconds=self.elapsed_seconds(),
            move_count=self._move_count,
            last_outcome=self._last_outcome,
            map_text=_render_map(self.grid, self._pos) if self.grid is not None else "",
        )


_CELL_GLYPHS = {
    CellKind.OPEN: " . ",
    CellKind.WALL: "###",
    CellKind.START: " S ",
    CellKind.GOAL: " E ",
}


def _render_map(grid: Grid, pos: Position | None) -> str:
    lines = []
    for r, row in enumerate(grid.rows):
        cells = []
        for c, kind in enumerate(row):
            if pos is not None and pos.row == r and pos.col == c:
                cells.append(" @ ")
            else:
                cells.append(_CELL_GLYPHS[kind])
        lines.append("".join(cells))
    return "\n".join(lines)


def format_time(seconds: int) -> str:
    mins, secs = divmod(max(0, int(seconds)), 60)
    return f"{mins:02d}:{secs:02d}"


class GameSession:
    """
    One participant's run: resolves the event mode, builds the engine and
    submits the finishing time through the guard when a live run completes.
    """

    def __init__(
        self,
        *,
        identity: str,
        controller: EventModeController,
        guard: SubmissionGuard | None,
        scheduler: Scheduler,
        contact: str | None = None,
        clock: Callable[[], datetime] = utc_now,
        step_delay: float = STEP_DELAY_SECONDS,
        auto_submit: bool = True,
    ):
        self.identity = identity
        self.contact = contact
        self.guard = guard
        self.last_submission: SubmissionResult | None = None

        resolution = controller.resolve(identity)
        self.resolution = resolution
        self.engine = SessionEngine(
            grid=resolution.grid,
            scheduler=scheduler,
            clock=clock,
            step_delay=step_delay,
        )
        if resolution.already_completed:
            self.engine.mark_completed()
            return
        if auto_submit:
            self.engine.on_complete(self._on_complete)
        self.engine.activate(resolution.mode, resolution.timer)

    @property
    def is_live(self) -> bool:
        return self.resolution.mode is EventMode.LIVE

    def _on_complete(self, elapsed_seconds: int) -> None:
        if self.is_live:
            self.submit_score()

    def submit_score(self) -> SubmissionResult | None:
        """Submit (or retry) the final time. Practice runs are never submitted."""
        if not self.is_live or self.guard is None or self.engine.state is not SessionState.COMPLETED:
            return None
        if self.resolution.already_completed:
            return None
        self.last_submission = self.guard.submit(
            self.identity, self.engine.elapsed_seconds(), contact=self.contact
        )
        return self.last_submission

    @property
    def can_retry_submission(self) -> bool:
        return (
            self.last_submission is not None
            and self.last_submission.status is SubmitStatus.FAILED
            and self.guard is not None
            and not self.guard.locked
        )

    def handle(self, commit: Commit) -> GameOutput:
        out = self.engine.handle(commit)
        if self.last_submission is not None and out.view.is_complete:
            out.messages.append(self.last_submission.message)
        return out

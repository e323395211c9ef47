from __future__ import annotations

import random
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Sequence


class MazeError(ValueError):
    """Raised when maze data cannot form a valid grid."""


class Direction(Enum):
    UP = (-1, 0)
    DOWN = (1, 0)
    LEFT = (0, -1)
    RIGHT = (0, 1)

    @property
    def delta(self) -> tuple[int, int]:
        return self.value


@dataclass(frozen=True)
class Position:
    row: int
    col: int

    def step(self, direction: Direction) -> "Position":
        dr, dc = direction.delta
        return Position(row=self.row + dr, col=self.col + dc)


class CellKind(Enum):
    OPEN = 0
    WALL = 1
    START = "S"
    GOAL = "E"

    @classmethod
    def from_code(cls, code: Any) -> "CellKind":
        # bool is an int subclass; True/False are not valid cell codes.
        if isinstance(code, bool):
            raise MazeError(f"Unknown cell code: {code!r}")
        try:
            return cls(code)
        except ValueError:
            raise MazeError(f"Unknown cell code: {code!r}") from None

    @property
    def traversable(self) -> bool:
        return self is not CellKind.WALL


class MoveOutcome(Enum):
    MOVED = "moved"
    BLOCKED = "blocked"
    REACHED_GOAL = "reached_goal"


@dataclass(frozen=True)
class MoveResult:
    position: Position
    outcome: MoveOutcome


@dataclass(frozen=True)
class Grid:
    """
    Immutable maze layout. Loaded once per session; never mutated.
    """

    rows: tuple[tuple[CellKind, ...], ...]
    maze_id: str = "maze"
    start: Position = field(init=False)
    goal: Position = field(init=False)

    def __post_init__(self) -> None:
        if not self.rows or not self.rows[0]:
            raise MazeError("Grid must have at least one row and one column")
        width = len(self.rows[0])
        if any(len(row) != width for row in self.rows):
            raise MazeError("All grid rows must have equal length")

        starts = [pos for pos, kind in self._cells() if kind is CellKind.START]
        goals = [pos for pos, kind in self._cells() if kind is CellKind.GOAL]
        if len(starts) != 1:
            raise MazeError(f"Grid must contain exactly one start cell, found {len(starts)}")
        if len(goals) != 1:
            raise MazeError(f"Grid must contain exactly one goal cell, found {len(goals)}")
        object.__setattr__(self, "start", starts[0])
        object.__setattr__(self, "goal", goals[0])

    @classmethod
    def from_rows(cls, rows: Sequence[Sequence[Any]], maze_id: str = "maze") -> "Grid":
        """Decode the wire encoding: 0 open, 1 wall, "S" start, "E" goal."""
        if not isinstance(rows, Sequence) or isinstance(rows, str):
            raise MazeError("Maze data must be a list of rows")
        decoded = []
        for row in rows:
            if not isinstance(row, Sequence) or isinstance(row, str):
                raise MazeError("Each maze row must be a list of cell codes")
            decoded.append(tuple(CellKind.from_code(code) for code in row))
        return cls(rows=tuple(decoded), maze_id=maze_id)

    def to_rows(self) -> list[list[Any]]:
        return [[kind.value for kind in row] for row in self.rows]

    @property
    def height(self) -> int:
        return len(self.rows)

    @property
    def width(self) -> int:
        return len(self.rows[0])

    def _cells(self) -> Iterable[tuple[Position, CellKind]]:
        for r, row in enumerate(self.rows):
            for c, kind in enumerate(row):
                yield Position(row=r, col=c), kind

    def in_bounds(self, pos: Position) -> bool:
        return 0 <= pos.row < self.height and 0 <= pos.col < self.width

    def classify(self, row: int, col: int) -> CellKind:
        # Anything off the grid behaves as solid wall.
        if not (0 <= row < self.height and 0 <= col < self.width):
            return CellKind.WALL
        return self.rows[row][col]

    def locate(self, kind: CellKind) -> Position | None:
        for pos, cell in self._cells():
            if cell is kind:
                return pos
        return None

    def available_moves(self, pos: Position) -> set[Direction]:
        if not self.in_bounds(pos):
            return set()
        moves: set[Direction] = set()
        for direction in Direction:
            nxt = pos.step(direction)
            if self.classify(nxt.row, nxt.col).traversable:
                moves.add(direction)
        return moves


def apply_move(position: Position, direction: Direction, grid: Grid) -> MoveResult:
    candidate = position.step(direction)
    kind = grid.classify(candidate.row, candidate.col)
    if kind is CellKind.WALL:
        return MoveResult(position=position, outcome=MoveOutcome.BLOCKED)
    if kind is CellKind.GOAL:
        return MoveResult(position=candidate, outcome=MoveOutcome.REACHED_GOAL)
    return MoveResult(position=candidate, outcome=MoveOutcome.MOVED)


def shortest_path(grid: Grid, start: Position | None = None) -> list[Direction] | None:
    """BFS to the goal from ``start`` (the start cell by default). Returns the directions, or None."""
    origin = grid.start if start is None else start
    q: deque[Position] = deque([origin])
    prev: dict[Position, tuple[Position, Direction] | None] = {origin: None}
    while q:
        cur = q.popleft()
        if cur == grid.goal:
            break
        for direction in grid.available_moves(cur):
            nxt = cur.step(direction)
            if nxt in prev:
                continue
            prev[nxt] = (cur, direction)
            q.append(nxt)

    if grid.goal not in prev:
        return None
    dirs: list[Direction] = []
    cur = grid.goal
    while prev[cur] is not None:
        parent, direction = prev[cur]
        dirs.append(direction)
        cur = parent
    dirs.reverse()
    return dirs


PRACTICE_MAZE: list[list[Any]] = [
    ["S", 0, 1, 0, 0, 1, 1],
    [1, 0, 1, 0, 1, 0, 1],
    [1, 0, 0, 0, 1, 0, 1],
    [1, 1, 1, 0, 0, 0, 1],
    [1, 0, 0, 0, 1, 0, 1],
    [1, 0, 1, 1, 1, 0, 1],
    [1, 0, 0, 0, 0, 0, "E"],
]


def build_practice_maze() -> Grid:
    return Grid.from_rows(PRACTICE_MAZE, maze_id="practice-7x7-v1")


def build_square_maze(size: int, seed: int) -> Grid:
    """Procedurally generate a size x size wall grid with a seeded backtracker.

    Rooms sit on even coordinates; odd cells between two rooms are carved
    into corridors. Start is the top-left corner, goal the bottom-right.
    """
    if size < 3 or size % 2 == 0:
        raise MazeError("Maze size must be an odd number >= 3")
    rng = random.Random(seed)
    cells = [[CellKind.WALL for _ in range(size)] for _ in range(size)]

    start = Position(0, 0)
    cells[start.row][start.col] = CellKind.OPEN
    # Iterative backtracker: carve passages (avoids RecursionError on large grids)
    visited: set[Position] = {start}
    stack: list[Position] = [start]
    while stack:
        pos = stack[-1]
        unvisited_neighbors: list[tuple[Position, Direction]] = []
        for d in Direction:
            dr, dc = d.delta
            nr, nc = pos.row + 2 * dr, pos.col + 2 * dc
            if 0 <= nr < size and 0 <= nc < size:
                npos = Position(nr, nc)
                if npos not in visited:
                    unvisited_neighbors.append((npos, d))
        if unvisited_neighbors:
            npos, d = rng.choice(unvisited_neighbors)
            between = pos.step(d)
            cells[between.row][between.col] = CellKind.OPEN
            cells[npos.row][npos.col] = CellKind.OPEN
            visited.add(npos)
            stack.append(npos)
        else:
            stack.pop()

    cells[0][0] = CellKind.START
    cells[size - 1][size - 1] = CellKind.GOAL
    return Grid(
        rows=tuple(tuple(row) for row in cells),
        maze_id=f"maze-{size}x{size}-{seed}",
    )

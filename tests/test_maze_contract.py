from collections import deque

import pytest


def _all_positions(maze_mod, grid):
    for r in range(grid.height):
        for c in range(grid.width):
            yield maze_mod.Position(row=r, col=c)


def test_practice_maze_start_goal_in_bounds(maze_module):
    grid = maze_module.build_practice_maze()

    assert grid.width == 7
    assert grid.height == 7
    assert grid.in_bounds(grid.start)
    assert grid.in_bounds(grid.goal)
    assert grid.start == maze_module.Position(0, 0)
    assert grid.goal == maze_module.Position(6, 6)


def test_from_rows_decodes_wire_encoding(maze_module, scenario_grid):
    CellKind = maze_module.CellKind

    assert scenario_grid.classify(0, 0) is CellKind.START
    assert scenario_grid.classify(0, 1) is CellKind.OPEN
    assert scenario_grid.classify(0, 2) is CellKind.WALL
    assert scenario_grid.classify(2, 2) is CellKind.GOAL
    assert scenario_grid.to_rows() == [["S", 0, 1], [1, 0, 1], [1, 0, "E"]]


def test_classify_out_of_bounds_is_wall(maze_module, scenario_grid):
    CellKind = maze_module.CellKind

    for row, col in [(-1, 0), (0, -1), (3, 0), (0, 3), (99, 99)]:
        assert scenario_grid.classify(row, col) is CellKind.WALL


def test_locate_finds_unique_cells(maze_module, scenario_grid):
    CellKind = maze_module.CellKind
    Position = maze_module.Position

    assert scenario_grid.locate(CellKind.START) == Position(0, 0)
    assert scenario_grid.locate(CellKind.GOAL) == Position(2, 2)


def test_locate_returns_none_when_absent(maze_module):
    grid = maze_module.Grid.from_rows([["S", "E"]])
    assert grid.locate(maze_module.CellKind.WALL) is None


@pytest.mark.parametrize(
    "rows",
    [
        [],
        [[]],
        [["S", 0], [0]],
        [[0, 0], [0, "E"]],
        [["S", "S"], [0, "E"]],
        [["S", 0], [0, 0]],
        [["S", "E", "E"]],
        [["S", 2, "E"]],
        [["S", "X", "E"]],
        [["S", True, "E"]],
        "S0E",
    ],
)
def test_invalid_grids_are_rejected(maze_module, rows):
    with pytest.raises(maze_module.MazeError):
        maze_module.Grid.from_rows(rows)


def test_grid_is_immutable(maze_module, scenario_grid):
    with pytest.raises(AttributeError):
        scenario_grid.start = maze_module.Position(1, 1)


def test_available_moves_match_apply_move(maze_module, practice_grid):
    for pos in _all_positions(maze_module, practice_grid):
        if not practice_grid.classify(pos.row, pos.col).traversable:
            continue
        moves = practice_grid.available_moves(pos)
        for d in maze_module.Direction:
            result = maze_module.apply_move(pos, d, practice_grid)
            if d in moves:
                assert result.outcome is not maze_module.MoveOutcome.BLOCKED
                assert result.position == pos.step(d)
            else:
                assert result.outcome is maze_module.MoveOutcome.BLOCKED
                assert result.position == pos


def test_goal_reachable_from_start_in_practice_maze(maze_module, practice_grid):
    q = deque([practice_grid.start])
    seen = {practice_grid.start}

    while q:
        cur = q.popleft()
        if cur == practice_grid.goal:
            return
        for d in practice_grid.available_moves(cur):
            nxt = cur.step(d)
            if nxt in seen:
                continue
            seen.add(nxt)
            q.append(nxt)

    raise AssertionError("goal is not reachable from start in the practice maze")


def test_shortest_path_on_scenario_maze(maze_module, scenario_grid):
    D = maze_module.Direction
    assert maze_module.shortest_path(scenario_grid) == [D.RIGHT, D.DOWN, D.DOWN, D.RIGHT]


def test_shortest_path_none_when_goal_walled_off(maze_module):
    grid = maze_module.Grid.from_rows([["S", 1, "E"]])
    assert maze_module.shortest_path(grid) is None


def test_shortest_path_from_a_midpoint(maze_module, scenario_grid):
    D = maze_module.Direction
    path = maze_module.shortest_path(scenario_grid, maze_module.Position(1, 1))
    assert path == [D.DOWN, D.RIGHT]

import pytest


def test_build_square_maze_size_and_bounds(maze_module):
    grid = maze_module.build_square_maze(size=7, seed=11)
    assert grid.width == 7
    assert grid.height == 7
    assert grid.start == maze_module.Position(0, 0)
    assert grid.goal == maze_module.Position(6, 6)


def test_build_square_maze_goal_is_reachable(maze_module):
    for seed in range(10):
        grid = maze_module.build_square_maze(size=9, seed=seed)
        path = maze_module.shortest_path(grid)
        assert path is not None, f"goal unreachable for seed {seed}"


def test_build_square_maze_is_deterministic(maze_module):
    a = maze_module.build_square_maze(size=11, seed=99)
    b = maze_module.build_square_maze(size=11, seed=99)
    c = maze_module.build_square_maze(size=11, seed=100)

    assert a.to_rows() == b.to_rows()
    assert a.maze_id == b.maze_id
    assert a.to_rows() != c.to_rows()


def test_build_square_maze_round_trips_wire_encoding(maze_module):
    grid = maze_module.build_square_maze(size=5, seed=3)
    decoded = maze_module.Grid.from_rows(grid.to_rows(), maze_id=grid.maze_id)
    assert decoded == grid


@pytest.mark.parametrize("size", [1, 2, 4, 10])
def test_build_square_maze_rejects_bad_sizes(maze_module, size):
    with pytest.raises(maze_module.MazeError):
        maze_module.build_square_maze(size=size, seed=0)

import pytest

from commands import format_command, parse_batch, parse_commit, parse_line
from maze import Direction


@pytest.mark.parametrize(
    "line, expected",
    [
        ("up()", Direction.UP),
        ("down()", Direction.DOWN),
        ("left()", Direction.LEFT),
        ("right()", Direction.RIGHT),
        ("   left()  ", Direction.LEFT),
        ("\tright()\t", Direction.RIGHT),
    ],
)
def test_parse_line_recognises_commands(line, expected):
    assert parse_line(line) is expected


@pytest.mark.parametrize(
    "line",
    ["", "   ", "Up()", "UP()", "up", "up( )", "up();", "up()()", "jump()", "# up()", "up() down()", "move(up)"],
)
def test_parse_line_ignores_everything_else(line):
    assert parse_line(line) is None


def test_parse_commit_uses_only_last_line():
    assert parse_commit("up()\nleft()") is Direction.LEFT
    assert parse_commit("up()\nnot a command") is None
    assert parse_commit("") is None


def test_parse_commit_with_trailing_newline_reads_committed_line():
    # splitlines drops the trailing empty segment, so the committed line is still last.
    assert parse_commit("down()\n") is Direction.DOWN


def test_parse_batch_keeps_order_and_drops_noise():
    buffer = "\n".join([
        "right()",
        "",
        "# go down twice",
        "down()",
        "  down()  ",
        "Right()",
        "right()",
    ])
    assert parse_batch(buffer) == [Direction.RIGHT, Direction.DOWN, Direction.DOWN, Direction.RIGHT]


def test_parse_batch_empty_buffer():
    assert parse_batch("") == []
    assert parse_batch("\n\n  \n") == []


def test_format_command_round_trips():
    for d in Direction:
        assert parse_line(format_command(d)) is d

from __future__ import annotations

import re

from maze import Direction

# Four fixed literals; matching is per line with no cross-line state.
COMMAND_PATTERN = re.compile(r"^(up|down|left|right)\(\)$")

_TOKENS = {
    "up": Direction.UP,
    "down": Direction.DOWN,
    "left": Direction.LEFT,
    "right": Direction.RIGHT,
}


def parse_line(line: str) -> Direction | None:
    """Return the token for one editor line, or None when it is not a command."""
    match = COMMAND_PATTERN.match(line.strip())
    if match is None:
        return None
    return _TOKENS[match.group(1)]


def split_buffer(buffer: str) -> list[str]:
    return buffer.splitlines()


def parse_commit(buffer: str) -> Direction | None:
    """Parse only the line being committed (the last line of the buffer)."""
    lines = split_buffer(buffer)
    if not lines:
        return None
    return parse_line(lines[-1])


def parse_batch(buffer: str) -> list[Direction]:
    """Parse every non-empty line in order, dropping anything unrecognised."""
    tokens: list[Direction] = []
    for line in split_buffer(buffer):
        if not line.strip():
            continue
        token = parse_line(line)
        if token is not None:
            tokens.append(token)
    return tokens


def format_command(direction: Direction) -> str:
    return f"{direction.name.lower()}()"

from __future__ import annotations

import logging

from rich.logging import RichHandler


def configure_logging(level: str | int = logging.INFO) -> None:
    logger = logging.getLogger()
    logger.setLevel(level)
    handler = RichHandler(
        show_path=False,
        show_time=True,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    logger.handlers.clear()
    logger.addHandler(handler)

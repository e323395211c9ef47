from __future__ import annotations

import logging
from datetime import datetime
from functools import wraps
from typing import Any, Callable

from flask import Flask, jsonify, request

from db import STORAGE_ERRORS
from event_mode import EventStateError, format_timestamp, utc_now
from maze import build_square_maze
from submission import InvalidSubmission, ScoreService, SubmitStatus

logger = logging.getLogger(__name__)

LEADERBOARD_DEFAULT_LIMIT = 20
LEADERBOARD_MAX_LIMIT = 100


def bad_request(message: str):
    return jsonify({"error": message}), 400


def json_errors(func: Callable[..., Any]):
    """
    Decorator: map InvalidSubmission to 400 and anything else to a logged 500.
    """

    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except InvalidSubmission as e:
            return bad_request(str(e))
        except Exception:
            logger.exception("Request to %s failed", request.path)
            return jsonify({"error": "Internal server error."}), 500

    return wrapper


def start_event(repo: Any, *, size: int, seed: int, now: datetime | None = None) -> dict[str, Any]:
    """Open the live event with a freshly generated maze, anchored at ``now``."""
    grid = build_square_maze(size=size, seed=seed)
    started = format_timestamp(now or utc_now())
    logger.info("Starting live event on %s at %s", grid.maze_id, started)
    return repo.save_event_state(is_live=True, start_time=started, maze=grid.to_rows(), maze_id=grid.maze_id)


def stop_event(repo: Any) -> dict[str, Any]:
    logger.info("Stopping live event")
    return repo.save_event_state(is_live=False)


def event_state_payload(repo: Any, identity: str) -> dict[str, Any]:
    event = repo.get_event_state() or {}
    live = bool(event.get("is_live"))
    return {
        "isEventLive": live,
        "startTime": event.get("start_time") if live else None,
        "maze": event.get("maze") if live else None,
        "mazeId": event.get("maze_id") if live else None,
        "hasCompleted": repo.has_score(identity),
    }


class LocalEventStateSource:
    """Answers event-state lookups straight from a repository, without HTTP."""

    def __init__(self, repo: Any):
        self.repo = repo

    def fetch(self, identity: str) -> dict[str, Any]:
        try:
            return event_state_payload(self.repo, identity)
        except STORAGE_ERRORS as e:
            raise EventStateError(f"event state lookup failed: {e}") from e


def create_app(repo: Any) -> Flask:
    app = Flask(__name__)
    app.json.sort_keys = False
    service = ScoreService(repo)

    @app.get("/")
    def root():
        return "Maze challenge API is running!"

    @app.post("/api/event-state")
    @json_errors
    def event_state():
        data = request.get_json(silent=True) or {}
        identity = str(data.get("playerName") or "").strip()
        if not identity:
            return bad_request("playerName is required")

        return jsonify(event_state_payload(repo, identity))

    @app.post("/api/finish")
    @json_errors
    def finish():
        data = request.get_json(silent=True) or {}
        contact = str(data.get("contactNumber") or "").strip() or None
        status = service.record(data.get("playerName"), data.get("time"), contact=contact)
        if status is SubmitStatus.DUPLICATE:
            return jsonify({"error": "Score already recorded."}), 409
        return jsonify({"message": "Score submitted successfully!"}), 201

    @app.get("/api/leaderboard")
    @json_errors
    def leaderboard():
        limit = request.args.get("limit", default=LEADERBOARD_DEFAULT_LIMIT, type=int)
        limit = max(1, min(limit, LEADERBOARD_MAX_LIMIT))
        scores = repo.top_scores(limit=limit)
        return jsonify([
            {"playerName": s["identity"], "time": s["finish_time_seconds"]}
            for s in scores
        ])

    return app

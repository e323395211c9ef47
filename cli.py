from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path
from typing import Sequence

from rich.console import Console

from client import HttpEventStateSource, HttpScoreSubmitter, fetch_leaderboard
from commands import format_command
from config import Settings, load_settings
from db import open_repo
from event_mode import EventModeController
from logs import configure_logging
from main import Commit, GameSession, format_time
from scheduler import ManualScheduler, Scheduler
from server import LocalEventStateSource, create_app, start_event, stop_event
from submission import LocalScoreSubmitter, ScoreService, SubmissionGuard

logger = logging.getLogger(__name__)

console = Console()

REPLAY_GESTURE = ":run"
RETRY_GESTURE = ":retry"
CLEAR_GESTURE = ":clear"
MAP_GESTURE = ":map"
HINT_GESTURE = ":hint"
QUIT_GESTURE = ":quit"

HELP_TEXT = (
    "Type up(), down(), left() or right() and press Enter to step.\n"
    f"{REPLAY_GESTURE} replays everything typed so far from the start, "
    f"{CLEAR_GESTURE} empties the editor, {MAP_GESTURE} redraws the maze, "
    f"{HINT_GESTURE} suggests a step in practice, "
    f"{RETRY_GESTURE} resends a failed score, {QUIT_GESTURE} exits."
)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="maze-challenge", description="Command-driven maze challenge.")
    parser.add_argument("--log-level", default=None, help="Logging level (default from MAZE_LOG_LEVEL).")
    sub = parser.add_subparsers(dest="command", required=True)

    play = sub.add_parser("play", help="Play in the terminal.")
    play.add_argument("--name", required=True, help="Participant name (identity).")
    play.add_argument("--contact", default=None, help="Optional contact number.")
    play.add_argument("--api-url", default=None, help="Event server URL.")
    play.add_argument("--offline", action="store_true", help="Use the local database instead of the server.")
    play.add_argument("--db", default=None, help="Database path for --offline.")
    play.add_argument("--script", default=None, help="Replay a command file headlessly and exit.")

    serve = sub.add_parser("serve", help="Run the event API server.")
    serve.add_argument("--db", default=None)
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)

    start = sub.add_parser("start-event", help="Open the live event with a generated maze.")
    start.add_argument("--db", default=None)
    start.add_argument("--size", type=int, default=15, help="Odd maze size (default 15).")
    start.add_argument("--seed", type=int, default=0)

    stop = sub.add_parser("stop-event", help="Close the live event.")
    stop.add_argument("--db", default=None)

    board = sub.add_parser("leaderboard", help="Show the fastest finishes.")
    board.add_argument("--db", default=None, help="Read a local database instead of the server.")
    board.add_argument("--api-url", default=None)
    board.add_argument("--limit", type=int, default=20)
    return parser


def _build_session(
    args: argparse.Namespace, settings: Settings, scheduler: Scheduler, auto_submit: bool = True
) -> GameSession:
    identity = args.name.strip()
    if not identity:
        raise SystemExit("--name must not be blank")
    if args.offline:
        repo = open_repo(args.db or settings.db_path)
        source = LocalEventStateSource(repo)
        submitter = LocalScoreSubmitter(ScoreService(repo))
    else:
        api_url = args.api_url or settings.api_url
        source = HttpEventStateSource(api_url, timeout=settings.request_timeout)
        submitter = HttpScoreSubmitter(api_url, timeout=settings.request_timeout)
    return GameSession(
        identity=identity,
        contact=args.contact,
        controller=EventModeController(source),
        guard=SubmissionGuard(submitter),
        scheduler=scheduler,
        step_delay=settings.step_delay,
        auto_submit=auto_submit,
    )


def _show(session: GameSession, messages: Sequence[str] = ()) -> None:
    view = session.engine.view()
    label = "MAIN EVENT" if session.is_live else "PRACTICE MODE"
    console.print(f"[bold]{label}[/bold]  {format_time(view.elapsed_seconds)}  moves: {view.move_count}")
    if view.map_text:
        console.print(view.map_text, markup=False, highlight=False)
    for message in messages:
        console.print(message)


def _show_finish(session: GameSession) -> None:
    if session.resolution.already_completed:
        console.print("[bold green]ACCESS GRANTED[/bold green] Your finish is already recorded.")
        return
    title = "ACCESS GRANTED" if session.is_live else "PRACTICE COMPLETE"
    console.print(f"[bold green]{title}[/bold green] Final time: {format_time(session.engine.elapsed_seconds())}")
    if session.last_submission is not None:
        console.print(session.last_submission.message)


def _hint_text(session: GameSession) -> str:
    step = session.engine.hint()
    if step is None:
        return "Hints are only available in practice mode."
    return f"Try {format_command(step)}"


def run_script(args: argparse.Namespace, settings: Settings) -> int:
    scheduler = ManualScheduler()
    session = _build_session(args, settings, scheduler)
    if session.engine.is_active:
        text = Path(args.script).read_text(encoding="utf-8")
        session.handle(Commit(text=text, replay=True))
        scheduler.run_until_idle()
        logger.debug("Script replay finished after %.2fs", scheduler.time())
    _show(session)
    if session.engine.view().is_complete:
        _show_finish(session)
        return 0
    console.print("The script did not reach the exit.")
    return 1


async def _ticker(session: GameSession) -> None:
    while session.engine.is_active:
        await asyncio.sleep(1)
        session.engine.tick()


async def _animate(session: GameSession) -> None:
    engine = session.engine
    while engine.replay_pending:
        await asyncio.sleep(engine.step_delay)
        _show(session)


async def _play_async(args: argparse.Namespace, settings: Settings) -> int:
    loop = asyncio.get_running_loop()
    # Scores are sent from a worker thread below so the HTTP call never blocks the loop.
    session = await loop.run_in_executor(None, _build_session, args, settings, loop, False)
    if not session.engine.is_active:
        _show_finish(session)
        return 0

    session.engine.on_collision(lambda pos: console.print("[red]Blocked path.[/red]"))
    ticker = asyncio.create_task(_ticker(session))
    console.print(HELP_TEXT)
    _show(session)
    lines: list[str] = []
    try:
        while session.engine.input_lock.accepts_input:
            line = await loop.run_in_executor(None, input, "> ")
            command = line.strip()
            if command == QUIT_GESTURE:
                return 1
            if command == CLEAR_GESTURE:
                lines.clear()
                continue
            if command == MAP_GESTURE:
                _show(session)
                continue
            if command == HINT_GESTURE:
                console.print(_hint_text(session))
                continue
            if command == REPLAY_GESTURE:
                session.handle(Commit(text="\n".join(lines), replay=True))
                await _animate(session)
                continue
            lines.append(line)
            out = session.handle(Commit(text="\n".join(lines)))
            _show(session, [m for m in out.messages if m != "Blocked path."])

        await loop.run_in_executor(None, session.submit_score)
        _show_finish(session)
        while session.can_retry_submission:
            line = await loop.run_in_executor(None, input, f"{RETRY_GESTURE} or {QUIT_GESTURE}> ")
            if line.strip() != RETRY_GESTURE:
                break
            result = await loop.run_in_executor(None, session.submit_score)
            if result is not None:
                console.print(result.message)
        return 0
    finally:
        ticker.cancel()


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    settings = load_settings()
    configure_logging(args.log_level or settings.log_level)

    if args.command == "play":
        if args.script:
            return run_script(args, settings)
        try:
            return asyncio.run(_play_async(args, settings))
        except (EOFError, KeyboardInterrupt):
            return 1

    if args.command == "serve":
        app = create_app(open_repo(args.db or settings.db_path))
        app.run(host=args.host or settings.host, port=args.port or settings.port)
        return 0

    if args.command == "start-event":
        repo = open_repo(args.db or settings.db_path)
        try:
            event = start_event(repo, size=args.size, seed=args.seed)
        finally:
            repo.close()
        console.print(f"Live event started at {event['start_time']} on {event['maze_id']}")
        return 0

    if args.command == "stop-event":
        repo = open_repo(args.db or settings.db_path)
        try:
            stop_event(repo)
        finally:
            repo.close()
        console.print("Live event stopped.")
        return 0

    if args.command == "leaderboard":
        if args.db:
            repo = open_repo(args.db)
            try:
                rows = [
                    {"playerName": s["identity"], "time": s["finish_time_seconds"]}
                    for s in repo.top_scores(limit=args.limit)
                ]
            finally:
                repo.close()
        else:
            rows = fetch_leaderboard(args.api_url or settings.api_url, limit=args.limit, timeout=settings.request_timeout)
        for rank, row in enumerate(rows, start=1):
            console.print(f"{rank:>3}. {row['playerName']:<24} {format_time(row['time'])}")
        return 0

    return 2


if __name__ == "__main__":
    raise SystemExit(main())

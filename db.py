from __future__ import annotations

import json
import threading
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from uuid import uuid4

from sqlalchemy import literal_column
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlmodel import Field, Session, SQLModel, create_engine, select


class DuplicateScoreError(Exception):
    """A score already exists for this identity."""


# Failures of either backend: database errors, file I/O, a corrupt JSON store.
STORAGE_ERRORS = (SQLAlchemyError, OSError, json.JSONDecodeError)


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


@dataclass
class ScoreRecord:
    id: str
    identity: str
    contact: str | None
    finish_time_seconds: int
    created_at: str


def _event_record(is_live: bool, start_time: str | None, maze: list[list[Any]] | None, maze_id: str | None) -> dict[str, Any]:
    return {
        "is_live": bool(is_live),
        "start_time": start_time,
        "maze": maze,
        "maze_id": maze_id,
    }


class JsonScoreRepository:
    def __init__(self, path: str | Path, schema_version: int = 1):
        self.path = Path(path)
        self.schema_version = schema_version
        # Serialises read-modify-write so the identity key stays unique in-process.
        self._lock = threading.Lock()
        self._ensure_store()

    def _empty_doc(self) -> dict[str, Any]:
        return {
            "schema_version": self.schema_version,
            "scores": {},
            "event": None,
        }

    def _ensure_store(self) -> None:
        if self.path.exists():
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._write_doc(self._empty_doc())

    def _read_doc(self) -> dict[str, Any]:
        if not self.path.exists():
            return self._empty_doc()
        raw = self.path.read_text(encoding="utf-8").strip()
        if not raw:
            return self._empty_doc()
        doc = json.loads(raw)
        # Backfill missing keys if needed.
        doc.setdefault("schema_version", self.schema_version)
        doc.setdefault("scores", {})
        doc.setdefault("event", None)
        return doc

    def _write_doc(self, doc: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(doc, indent=2), encoding="utf-8")
        tmp_path.replace(self.path)

    def _save_doc(self, doc: dict[str, Any]) -> None:
        doc["schema_version"] = self.schema_version
        self._write_doc(doc)

    # Score ops
    def has_score(self, identity: str) -> bool:
        return identity in self._read_doc()["scores"]

    def get_score(self, identity: str) -> dict[str, Any] | None:
        return self._read_doc()["scores"].get(identity)

    def insert_score(self, identity: str, finish_time_seconds: int, contact: str | None = None) -> dict[str, Any]:
        with self._lock:
            doc = self._read_doc()
            if identity in doc["scores"]:
                raise DuplicateScoreError(identity)
            record = asdict(
                ScoreRecord(
                    id=str(uuid4()),
                    identity=identity,
                    contact=contact,
                    finish_time_seconds=finish_time_seconds,
                    created_at=_utc_now_iso(),
                )
            )
            doc["scores"][identity] = record
            self._save_doc(doc)
        return record

    def top_scores(self, limit: int = 20) -> list[dict[str, Any]]:
        items = list(self._read_doc()["scores"].values())
        # Stable sort; the file keeps insertion order, so ties stay first-come.
        items.sort(key=lambda s: (s["finish_time_seconds"], s["created_at"]))
        return items[:limit]

    # Event ops
    def get_event_state(self) -> dict[str, Any] | None:
        return self._read_doc()["event"]

    def save_event_state(
        self,
        is_live: bool,
        start_time: str | None = None,
        maze: list[list[Any]] | None = None,
        maze_id: str | None = None,
    ) -> dict[str, Any]:
        with self._lock:
            doc = self._read_doc()
            doc["event"] = _event_record(is_live, start_time, maze, maze_id)
            self._save_doc(doc)
        return doc["event"]

    def close(self) -> None:
        pass


# ---------------------------------------------------------------------------
# SQLModel tables for SqliteScoreRepository
# ---------------------------------------------------------------------------


class ScoreModel(SQLModel, table=True):
    __tablename__ = "leaderboard"
    id: str = Field(primary_key=True)
    identity: str = Field(index=True, unique=True)
    contact: str | None = None
    finish_time_seconds: int = Field(index=True)
    created_at: str


class EventControlModel(SQLModel, table=True):
    __tablename__ = "event_control"
    id: int = Field(default=1, primary_key=True)
    is_live: bool = False
    start_time: str | None = None
    maze_id: str | None = None
    # JSON-encoded grid rows.
    maze: str | None = None


def _score_dict(row: ScoreModel) -> dict[str, Any]:
    return {
        "id": row.id,
        "identity": row.identity,
        "contact": row.contact,
        "finish_time_seconds": row.finish_time_seconds,
        "created_at": row.created_at,
    }


class SqliteScoreRepository:
    """SQLite-backed repository using SQLModel. Same interface as JsonScoreRepository."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        url = f"sqlite:///{self.path}"
        self.engine = create_engine(url, connect_args={"check_same_thread": False, "timeout": 30})
        SQLModel.metadata.create_all(self.engine)
        self._verify_schema()

    def _verify_schema(self) -> None:
        """Drop and recreate tables if the existing schema is incompatible."""
        try:
            with Session(self.engine) as session:
                session.exec(select(ScoreModel).limit(1)).all()
                session.exec(select(EventControlModel).limit(1)).all()
        except OperationalError:
            SQLModel.metadata.drop_all(self.engine)
            SQLModel.metadata.create_all(self.engine)

    # Score ops
    def has_score(self, identity: str) -> bool:
        return self.get_score(identity) is not None

    def get_score(self, identity: str) -> dict[str, Any] | None:
        with Session(self.engine) as session:
            row = session.exec(select(ScoreModel).where(ScoreModel.identity == identity)).first()
            if row is None:
                return None
            return _score_dict(row)

    def insert_score(self, identity: str, finish_time_seconds: int, contact: str | None = None) -> dict[str, Any]:
        row = ScoreModel(
            id=str(uuid4()),
            identity=identity,
            contact=contact,
            finish_time_seconds=finish_time_seconds,
            created_at=_utc_now_iso(),
        )
        record = _score_dict(row)
        with Session(self.engine) as session:
            session.add(row)
            try:
                session.commit()
            except IntegrityError as e:
                session.rollback()
                raise DuplicateScoreError(identity) from e
        return record

    def top_scores(self, limit: int = 20) -> list[dict[str, Any]]:
        with Session(self.engine) as session:
            # rowid breaks ties between finishes recorded in the same second.
            stmt = (
                select(ScoreModel)
                .order_by(ScoreModel.finish_time_seconds, ScoreModel.created_at, literal_column("rowid"))
                .limit(limit)
            )
            return [_score_dict(row) for row in session.exec(stmt).all()]

    # Event ops
    def get_event_state(self) -> dict[str, Any] | None:
        with Session(self.engine) as session:
            row = session.get(EventControlModel, 1)
            if row is None:
                return None
            maze = json.loads(row.maze) if row.maze else None
            return _event_record(row.is_live, row.start_time, maze, row.maze_id)

    def save_event_state(
        self,
        is_live: bool,
        start_time: str | None = None,
        maze: list[list[Any]] | None = None,
        maze_id: str | None = None,
    ) -> dict[str, Any]:
        with Session(self.engine) as session:
            row = session.get(EventControlModel, 1)
            if row is None:
                row = EventControlModel(id=1)
            row.is_live = bool(is_live)
            row.start_time = start_time
            row.maze_id = maze_id
            row.maze = json.dumps(maze) if maze is not None else None
            session.add(row)
            session.commit()
        return _event_record(is_live, start_time, maze, maze_id)

    def close(self) -> None:
        self.engine.dispose()


def open_repo(path: str | Path):
    """Return SqliteScoreRepository for .db paths, JsonScoreRepository otherwise."""
    path = Path(path)
    if path.suffix == ".db":
        return SqliteScoreRepository(path)
    return JsonScoreRepository(path)

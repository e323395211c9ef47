from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

from db import STORAGE_ERRORS, DuplicateScoreError

logger = logging.getLogger(__name__)


class SubmissionTransportError(Exception):
    """The score never reached storage: no response, or the store itself failed."""


class InvalidSubmission(ValueError):
    pass


class SubmitStatus(Enum):
    ACCEPTED = "accepted"
    DUPLICATE = "duplicate"
    FAILED = "failed"
    LOCKED = "locked"
    IN_FLIGHT = "in_flight"


@dataclass(frozen=True)
class SubmissionResult:
    status: SubmitStatus
    message: str

    @property
    def recorded(self) -> bool:
        return self.status in (SubmitStatus.ACCEPTED, SubmitStatus.DUPLICATE, SubmitStatus.LOCKED)


class ScoreSubmitter(Protocol):
    def submit(self, identity: str, elapsed_seconds: int, contact: str | None = None) -> SubmitStatus: ...


def validate_submission(identity: Any, elapsed_seconds: Any) -> tuple[str, int]:
    if not isinstance(identity, str) or not identity.strip():
        raise InvalidSubmission("playerName is required")
    if isinstance(elapsed_seconds, bool) or not isinstance(elapsed_seconds, int):
        raise InvalidSubmission("time must be an integer number of seconds")
    if elapsed_seconds < 0:
        raise InvalidSubmission("time must not be negative")
    return identity.strip(), elapsed_seconds


class ScoreService:
    """
    Server side of the at-most-once protocol.

    The existence pre-check is optimistic; the repository's uniqueness
    constraint on identity is the final backstop and is reported the same way.
    """

    def __init__(self, repo: Any):
        self.repo = repo

    def record(self, identity: str, elapsed_seconds: int, contact: str | None = None) -> SubmitStatus:
        identity, elapsed_seconds = validate_submission(identity, elapsed_seconds)
        if self.repo.has_score(identity):
            logger.info("Duplicate submission for %r rejected by pre-check", identity)
            return SubmitStatus.DUPLICATE
        try:
            self.repo.insert_score(identity=identity, finish_time_seconds=elapsed_seconds, contact=contact)
        except DuplicateScoreError:
            logger.info("Duplicate submission for %r rejected by storage constraint", identity)
            return SubmitStatus.DUPLICATE
        logger.info("Recorded finish for %r: %ss", identity, elapsed_seconds)
        return SubmitStatus.ACCEPTED


class LocalScoreSubmitter:
    """In-process submitter that talks to a ScoreService directly."""

    def __init__(self, service: ScoreService):
        self.service = service

    def submit(self, identity: str, elapsed_seconds: int, contact: str | None = None) -> SubmitStatus:
        try:
            return self.service.record(identity, elapsed_seconds, contact=contact)
        except STORAGE_ERRORS as e:
            raise SubmissionTransportError(f"score storage failed: {e}") from e


class SubmissionGuard:
    """
    Client side of the at-most-once protocol.

    The one-shot lock is set only once the server has acknowledged the score
    (accepted or already recorded). A failed attempt leaves it open for one
    more user-driven try; a second concurrent attempt is refused.
    """

    def __init__(self, submitter: ScoreSubmitter):
        self.submitter = submitter
        self._locked = False
        self._in_flight = threading.Lock()

    @property
    def locked(self) -> bool:
        return self._locked

    def submit(self, identity: str, elapsed_seconds: int, contact: str | None = None) -> SubmissionResult:
        if self._locked:
            return SubmissionResult(SubmitStatus.LOCKED, "Score already recorded.")
        if not self._in_flight.acquire(blocking=False):
            return SubmissionResult(SubmitStatus.IN_FLIGHT, "Submission already in progress.")
        try:
            if self._locked:
                return SubmissionResult(SubmitStatus.LOCKED, "Score already recorded.")
            try:
                status = self.submitter.submit(identity, elapsed_seconds, contact=contact)
            except SubmissionTransportError as e:
                logger.warning("Score submission for %r failed: %s", identity, e)
                return SubmissionResult(SubmitStatus.FAILED, "Could not reach the server. Try again.")

            if status is SubmitStatus.ACCEPTED:
                self._locked = True
                return SubmissionResult(status, "Score recorded.")
            if status is SubmitStatus.DUPLICATE:
                self._locked = True
                return SubmissionResult(status, "Score already recorded.")
            return SubmissionResult(SubmitStatus.FAILED, "Score was not recorded. Try again.")
        finally:
            self._in_flight.release()

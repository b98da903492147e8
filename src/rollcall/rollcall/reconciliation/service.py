from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List

from ..common.datetime_utils import now_utc
from ..core.constants import DEFAULT_RECONCILE_MAX_ATTEMPTS
from ..core.exceptions import StorageError
from ..groups.model import Group
from ..groups.service import GroupService
from ..records.repository import RecordRepository
from ..sessions.model import Session
from ..sessions.repository import SessionRepository
from . import penalty

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReconciliationResult:
    session_id: str
    filled: int
    attempts: int
    pending: List[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.pending


class ReconciliationService:
    """Default-absent fill for students who never marked, run at close.

    The fill is an upsert that ignores existing rows, so running it any
    number of times leaves the same records behind.
    """

    def __init__(
        self,
        records: RecordRepository,
        sessions: SessionRepository,
        groups: GroupService,
        *,
        max_attempts: int = DEFAULT_RECONCILE_MAX_ATTEMPTS,
        clock: Callable[[], datetime] = now_utc,
    ):
        self._records = records
        self._sessions = sessions
        self._groups = groups
        self._max_attempts = max(1, int(max_attempts))
        self._clock = clock

    def missing_students(self, session: Session) -> List[str]:
        """Students without a record. Once closed, only those who had joined by the close."""

        marked = {r.student_id for r in self._records.list_for_session(session.id)}
        return [
            m.profile_id
            for m in self._groups.list_students(session.group_id)
            if m.profile_id not in marked and m.joined_by(session.closed_at)
        ]

    def fill_missing(self, session: Session, *, now: datetime | None = None) -> ReconciliationResult:
        """Insert ABSENT for every unmarked student, retrying failed passes.

        Storage failures do not propagate: whatever is still missing after the
        last attempt is reported in `pending` for a later compensating pass.
        """

        now = now or self._clock()
        filled = 0
        attempts = 0
        pending: List[str] = []

        while attempts < self._max_attempts:
            attempts += 1
            try:
                pending = self.missing_students(session)
                if not pending:
                    break
                filled += self._records.fill_absent(session_id=session.id, student_ids=pending, marked_at=now)
                pending = []
                break
            except StorageError as e:
                logger.warning(
                    "session %s: reconciliation pass %d/%d failed: %s",
                    session.id,
                    attempts,
                    self._max_attempts,
                    e,
                )

        if pending:
            logger.error("session %s: %d students still unreconciled", session.id, len(pending))
        elif filled:
            logger.info("session %s: filled %d absent records", session.id, filled)

        return ReconciliationResult(session_id=session.id, filled=filled, attempts=attempts, pending=pending)

    def penalty_eligibility(self, group: Group) -> Dict[str, int]:
        """Students whose current absence streak reaches the group's threshold.

        Returns student id -> streak. Nothing is persisted; StatsAggregator
        derives the same answer when it reads.
        """

        sessions = list(self._sessions.list_completed_for_group(group.id))
        records = self._records.list_for_sessions([s.id for s in sessions])
        threshold = group.settings.penalty_threshold
        eligible = {
            student_id: streak
            for student_id, streak in penalty.current_streaks(sessions, records).items()
            if streak >= threshold
        }
        if eligible:
            logger.info(
                "group %s: %d students at or above penalty threshold %d",
                group.id,
                len(eligible),
                threshold,
            )
        return eligible

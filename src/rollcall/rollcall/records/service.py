from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Callable, Iterable, Sequence

from ..common.datetime_utils import now_utc
from ..core.enums import RecordStatus, SessionType
from ..core.exceptions import (
    AlreadyMarkedError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    SessionClosedError,
    ValidationError,
    WindowExpiredError,
)
from ..groups.service import GroupService
from ..identity.provider import Identity
from ..permissions import role_gate
from ..sessions.model import Session
from ..sessions.repository import SessionRepository
from .model import Record, RecordEntry
from .repository import InsertOutcome, RecordRepository

logger = logging.getLogger(__name__)


def parse_submitted_status(value) -> RecordStatus:
    """Writers may only store PRESENT or ABSENT; PENALTY is derived on read."""

    try:
        status = value if isinstance(value, RecordStatus) else RecordStatus(str(value).strip().lower())
    except ValueError:
        raise ValidationError(f"unknown attendance status {value!r}")
    if status == RecordStatus.PENALTY:
        raise ValidationError("penalty cannot be submitted; it is derived from absences")
    return status


class RecordLedger:
    """Per-student attendance writes.

    A second write for the same (session, student) never overwrites the
    first one. Corrections are not done through this class.
    """

    def __init__(
        self,
        records: RecordRepository,
        sessions: SessionRepository,
        groups: GroupService,
        *,
        clock: Callable[[], datetime] = now_utc,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ):
        self._records = records
        self._sessions = sessions
        self._groups = groups
        self._clock = clock
        self._new_id = id_factory

    def _get_session(self, session_id: str) -> Session:
        session = self._sessions.get_by_id(session_id)
        if not session:
            raise NotFoundError(f"session {session_id} not found")
        return session

    def submit(
        self,
        session_id: str,
        student_id: str,
        status,
        marked_by: str,
        *,
        caller: Identity,
        now: datetime | None = None,
    ) -> Record:
        """Self-mark one student in a self session."""

        now = now or self._clock()
        status = parse_submitted_status(status)

        session = self._get_session(session_id)
        if not session.is_active:
            raise SessionClosedError("this session has already been closed")

        group = self._groups.get_group(session.group_id)
        actor = self._groups.resolve_actor(caller, group)

        if student_id != caller.profile_id or marked_by != caller.profile_id:
            raise ForbiddenError("students can only mark their own attendance")
        if not actor.is_student_member:
            raise ForbiddenError("only student members can mark attendance")
        if session.type != SessionType.SELF or not group.settings.allow_self_attendance:
            raise ForbiddenError("self attendance is not enabled for this session")
        if not role_gate.is_window_open(session, now):
            raise WindowExpiredError("the attendance window for this session has passed")
        if not role_gate.can_self_mark(actor, group, session, now):
            raise ForbiddenError("you cannot mark attendance in this session")

        if self._records.get(session_id=session.id, student_id=student_id):
            raise AlreadyMarkedError("you have already marked your attendance for this session")

        record = Record(
            id=self._new_id(),
            session_id=session.id,
            student_id=student_id,
            status=status,
            marked_by=marked_by,
            marked_at=now,
        )
        outcome = self._records.insert_if_session_active(record)
        if outcome == InsertOutcome.DUPLICATE:
            raise AlreadyMarkedError("you have already marked your attendance for this session")
        if outcome == InsertOutcome.SESSION_INACTIVE:
            raise SessionClosedError("this session was closed before your attendance was saved")

        logger.info("session %s: %s self-marked %s", session.id, student_id, status.value)
        return record

    def bulk_submit(
        self,
        session_id: str,
        entries: Iterable[RecordEntry],
        marked_by: str,
        *,
        caller: Identity,
        now: datetime | None = None,
    ) -> list[Record]:
        """Teacher marks many students at once; nothing is written unless all are."""

        now = now or self._clock()
        entries = list(entries)

        session = self._get_session(session_id)
        group = self._groups.get_group(session.group_id)
        actor = self._groups.resolve_actor(caller, group)

        if not role_gate.can_bulk_submit(actor, group):
            raise ForbiddenError("only the group owner can take attendance")
        if marked_by != caller.profile_id:
            raise ForbiddenError("marked_by must be the acting teacher")
        if not session.is_active:
            raise SessionClosedError("this session has already been closed")
        if session.type != SessionType.MANUAL:
            raise ValidationError("bulk submission is only for manual sessions")
        if not entries:
            raise ValidationError("no attendance entries submitted")

        students = {m.profile_id for m in self._groups.list_students(group.id)}
        seen: set[str] = set()
        records: list[Record] = []
        for entry in entries:
            if entry.student_id in seen:
                raise ValidationError(f"student {entry.student_id} appears more than once")
            if entry.student_id not in students:
                raise ValidationError(f"{entry.student_id} is not a student of this group")
            seen.add(entry.student_id)
            records.append(
                Record(
                    id=self._new_id(),
                    session_id=session.id,
                    student_id=entry.student_id,
                    status=parse_submitted_status(entry.status),
                    marked_by=marked_by,
                    marked_at=now,
                )
            )

        outcome = self._records.insert_many_if_session_active(records)
        if outcome == InsertOutcome.DUPLICATE:
            raise ConflictError("some students already have attendance in this session; nothing was saved")
        if outcome == InsertOutcome.SESSION_INACTIVE:
            raise SessionClosedError("this session was closed before attendance was saved")

        logger.info("session %s: %d records bulk-submitted by %s", session.id, len(records), marked_by)
        return records

    def list_for_session(self, session_id: str) -> Sequence[Record]:
        self._get_session(session_id)
        return self._records.list_for_session(session_id)

from __future__ import annotations

from typing import Dict, Iterable, List, Sequence

from ..core.enums import RecordStatus
from ..core.exceptions import NotFoundError
from ..groups.service import GroupService
from ..reconciliation import penalty
from ..records.model import Record
from ..records.repository import RecordRepository
from ..sessions.model import Session
from ..sessions.repository import SessionRepository
from .model import GroupRollup, RosterEntry, SessionSummary, StudentHistoryRow, StudentSummary


def _count(session_id: str, statuses: Iterable[RecordStatus]) -> SessionSummary:
    counts: Dict[RecordStatus, int] = {s: 0 for s in RecordStatus}
    total = 0
    for status in statuses:
        counts[status] += 1
        total += 1
    return SessionSummary(
        session_id=session_id,
        present=counts[RecordStatus.PRESENT],
        absent=counts[RecordStatus.ABSENT],
        penalty=counts[RecordStatus.PENALTY],
        total=total,
    )


class StatsAggregator:
    """Read-side summaries. History and rollups only read completed sessions."""

    def __init__(self, records: RecordRepository, sessions: SessionRepository, groups: GroupService):
        self._records = records
        self._sessions = sessions
        self._groups = groups

    def _completed_history(self, group_id: str) -> tuple[List[Session], List[Record]]:
        sessions = list(self._sessions.list_completed_for_group(group_id))
        records = list(self._records.list_for_sessions([s.id for s in sessions]))
        return sessions, records

    def _effective(self, group_id: str) -> tuple[List[Session], List[Record], Dict[penalty.EffectiveKey, RecordStatus]]:
        group = self._groups.get_group(group_id)
        sessions, records = self._completed_history(group_id)
        effective = penalty.effective_statuses(sessions, records, group.settings.penalty_threshold)
        return sessions, records, effective

    def per_session_summary(self, session_id: str) -> SessionSummary:
        session = self._sessions.get_by_id(session_id)
        if not session:
            raise NotFoundError(f"session {session_id} not found")

        if session.is_active:
            # Live counts only; penalties are derived once a session is completed.
            return _count(session.id, (r.status for r in self._records.list_for_session(session.id)))

        _, records, effective = self._effective(session.group_id)
        return _count(
            session.id,
            (effective.get((r.session_id, r.student_id), r.status) for r in records if r.session_id == session.id),
        )

    def per_student_summary(self, group_id: str, student_id: str) -> StudentSummary:
        sessions, records, effective = self._effective(group_id)
        by_session = {s.id: s for s in sessions}
        mine = [r for r in records if r.student_id == student_id]

        history = [
            StudentHistoryRow(
                session_id=r.session_id,
                session_date=by_session[r.session_id].session_date,
                type=by_session[r.session_id].type,
                status=effective.get((r.session_id, student_id), r.status),
            )
            for r in mine
        ]
        history.sort(key=lambda row: by_session[row.session_id].sort_key(), reverse=True)

        counts = _count(student_id, (row.status for row in history))
        streak = penalty.current_streaks(sessions, mine).get(student_id, 0)
        return StudentSummary(
            group_id=group_id,
            student_id=student_id,
            present=counts.present,
            absent=counts.absent,
            penalty=counts.penalty,
            total=counts.total,
            current_streak=streak,
            history=history,
        )

    def group_rollup(self, group_id: str) -> GroupRollup:
        sessions, records, effective = self._effective(group_id)

        statuses: Dict[str, List[RecordStatus]] = {s.id: [] for s in sessions}
        for r in records:
            statuses[r.session_id].append(effective.get((r.session_id, r.student_id), r.status))

        return GroupRollup(
            group_id=group_id,
            student_count=len(self._groups.list_students(group_id)),
            sessions=[_count(s.id, statuses[s.id]) for s in sessions],
        )

    def session_roster(self, session_id: str) -> Sequence[RosterEntry]:
        """Student members with their status, None when not yet marked.

        A completed session lists only students who had joined by its close.
        """

        session = self._sessions.get_by_id(session_id)
        if not session:
            raise NotFoundError(f"session {session_id} not found")

        if session.is_active:
            marked = {r.student_id: r.status for r in self._records.list_for_session(session.id)}
        else:
            _, records, effective = self._effective(session.group_id)
            marked = {
                r.student_id: effective.get((r.session_id, r.student_id), r.status)
                for r in records
                if r.session_id == session.id
            }

        return [
            RosterEntry(student_id=m.profile_id, status=marked.get(m.profile_id))
            for m in self._groups.list_students(session.group_id)
            if m.profile_id in marked or m.joined_by(session.closed_at)
        ]

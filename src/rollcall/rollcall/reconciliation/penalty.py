"""Consecutive-absence streaks and the read-time PENALTY status.

Nothing here touches the store: callers hand in completed sessions and
their records, and get effective statuses back.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Dict, Iterable, List, Sequence, Tuple

from ..core.enums import RecordStatus
from ..records.model import Record
from ..sessions.model import Session

EffectiveKey = Tuple[str, str]  # (session_id, student_id)


def absence_streak(statuses_most_recent_first: Iterable[RecordStatus]) -> int:
    streak = 0
    for status in statuses_most_recent_first:
        if not status.is_absence:
            break
        streak += 1
    return streak


def effective_status(stored: RecordStatus, streak: int, threshold: int) -> RecordStatus:
    if stored == RecordStatus.PENALTY:
        return stored
    if stored == RecordStatus.ABSENT and streak >= threshold:
        return RecordStatus.PENALTY
    return stored


def _records_by_student(sessions: Sequence[Session], records: Iterable[Record]) -> Dict[str, List[Record]]:
    """Each student's records ordered oldest session first."""

    order = {s.id: s.sort_key() for s in sessions}
    by_student: Dict[str, List[Record]] = defaultdict(list)
    for r in records:
        if r.session_id in order:
            by_student[r.student_id].append(r)
    for rows in by_student.values():
        rows.sort(key=lambda r: order[r.session_id])
    return by_student


def effective_statuses(
    sessions: Sequence[Session],
    records: Iterable[Record],
    threshold: int,
) -> Dict[EffectiveKey, RecordStatus]:
    """Effective status of every record in the given completed sessions.

    The streak for a record counts that record and the student's
    uninterrupted absences in earlier sessions. Sessions where the student
    has no record are skipped, not treated as a break.
    """

    out: Dict[EffectiveKey, RecordStatus] = {}
    for student_id, rows in _records_by_student(sessions, records).items():
        streak = 0
        for r in rows:
            streak = streak + 1 if r.status.is_absence else 0
            out[(r.session_id, student_id)] = effective_status(r.status, streak, threshold)
    return out


def current_streaks(sessions: Sequence[Session], records: Iterable[Record]) -> Dict[str, int]:
    """Student id -> absences in a row counted back from their latest record."""

    return {
        student_id: absence_streak(r.status for r in reversed(rows))
        for student_id, rows in _records_by_student(sessions, records).items()
    }

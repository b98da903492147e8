from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional

from ..core.enums import RecordStatus, SessionType


def percentage(part: int, whole: int) -> float:
    """part/whole*100 rounded half-up to one decimal; 0.0 when whole is 0."""

    if whole <= 0:
        return 0.0
    value = Decimal(part) * 100 / Decimal(whole)
    return float(value.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class SessionSummary:
    session_id: str
    present: int
    absent: int
    penalty: int
    total: int

    @property
    def percentage(self) -> float:
        return percentage(self.present, self.total)

    def to_dict(self) -> dict:
        return {
            "session_id": self.session_id,
            "present": self.present,
            "absent": self.absent,
            "penalty": self.penalty,
            "total": self.total,
            "percentage": self.percentage,
        }


@dataclass(frozen=True)
class StudentHistoryRow:
    session_id: str
    session_date: date
    type: SessionType
    status: RecordStatus

    def to_dict(self) -> dict:
        return {
            "session_id": self.session_id,
            "date": self.session_date.isoformat(),
            "type": self.type.value,
            "status": self.status.value,
        }


@dataclass(frozen=True)
class StudentSummary:
    group_id: str
    student_id: str
    present: int
    absent: int
    penalty: int
    total: int
    current_streak: int
    history: List[StudentHistoryRow] = field(default_factory=list)

    @property
    def percentage(self) -> float:
        return percentage(self.present, self.total)

    def to_dict(self) -> dict:
        return {
            "group_id": self.group_id,
            "student_id": self.student_id,
            "present": self.present,
            "absent": self.absent,
            "penalty": self.penalty,
            "total": self.total,
            "percentage": self.percentage,
            "current_streak": self.current_streak,
            "history": [row.to_dict() for row in self.history],
        }


@dataclass(frozen=True)
class GroupRollup:
    """Pooled over completed sessions: sum(present) / sum(records)."""

    group_id: str
    student_count: int
    sessions: List[SessionSummary] = field(default_factory=list)

    @property
    def session_count(self) -> int:
        return len(self.sessions)

    @property
    def total_present(self) -> int:
        return sum(s.present for s in self.sessions)

    @property
    def total_records(self) -> int:
        return sum(s.total for s in self.sessions)

    @property
    def percentage(self) -> float:
        return percentage(self.total_present, self.total_records)

    def to_dict(self) -> dict:
        return {
            "group_id": self.group_id,
            "student_count": self.student_count,
            "session_count": self.session_count,
            "total_present": self.total_present,
            "total_records": self.total_records,
            "percentage": self.percentage,
            "sessions": [s.to_dict() for s in self.sessions],
        }


@dataclass(frozen=True)
class RosterEntry:
    student_id: str
    status: Optional[RecordStatus]

    def to_dict(self) -> dict:
        return {"student_id": self.student_id, "status": self.status.value if self.status else None}

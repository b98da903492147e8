from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from ..core.enums import RecordStatus


@dataclass(frozen=True)
class Record:
    """One student's attendance outcome within a session."""

    id: str
    session_id: str
    student_id: str
    status: RecordStatus
    marked_by: str
    marked_at: datetime

    @property
    def is_self_marked(self) -> bool:
        return self.marked_by == self.student_id

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "student_id": self.student_id,
            "status": self.status.value,
            "marked_by": self.marked_by,
            "marked_at": self.marked_at.isoformat(),
        }


@dataclass(frozen=True)
class RecordEntry:
    """One line of a teacher's bulk submission."""

    student_id: str
    status: RecordStatus

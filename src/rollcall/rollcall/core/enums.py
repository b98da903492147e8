from __future__ import annotations

from enum import Enum


class MemberRole(str, Enum):
    """Role of a profile inside a group."""

    TEACHER = "teacher"
    STUDENT = "student"


class SessionType(str, Enum):
    """How records are collected: by the teacher (manual) or by students (self)."""

    MANUAL = "manual"
    SELF = "self"


class SessionStatus(str, Enum):
    """Only transition allowed: ACTIVE -> COMPLETED."""

    ACTIVE = "active"
    COMPLETED = "completed"


class RecordStatus(str, Enum):
    """Attendance outcome of one student in one session.

    PENALTY is derived when reading; writers only store PRESENT or ABSENT.
    """

    PRESENT = "present"
    ABSENT = "absent"
    PENALTY = "penalty"

    @property
    def is_absence(self) -> bool:
        return self in (RecordStatus.ABSENT, RecordStatus.PENALTY)

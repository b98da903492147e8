from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..core.constants import (
    DEFAULT_ALLOW_SELF_ATTENDANCE,
    DEFAULT_ATTENDANCE_WINDOW_MINUTES,
    DEFAULT_PENALTY_THRESHOLD,
)
from ..core.enums import MemberRole


@dataclass(frozen=True)
class GroupSettings:
    allow_self_attendance: bool = DEFAULT_ALLOW_SELF_ATTENDANCE
    attendance_window_minutes: int = DEFAULT_ATTENDANCE_WINDOW_MINUTES
    penalty_threshold: int = DEFAULT_PENALTY_THRESHOLD

    def to_dict(self) -> dict:
        return {
            "allow_self_attendance": self.allow_self_attendance,
            "attendance_window_minutes": self.attendance_window_minutes,
            "penalty_threshold": self.penalty_threshold,
        }


@dataclass(frozen=True)
class Group:
    """An attendance group (class roster) owned by one teacher profile."""

    id: str
    name: str
    owner_id: str
    join_code: str
    settings: GroupSettings = GroupSettings()


@dataclass(frozen=True)
class Member:
    id: str
    group_id: str
    profile_id: str
    role: MemberRole
    joined_at: Optional[datetime] = None

    @property
    def is_student(self) -> bool:
        return self.role == MemberRole.STUDENT

    def joined_by(self, moment: Optional[datetime]) -> bool:
        """True unless the member provably joined after `moment`."""

        if moment is None or self.joined_at is None:
            return True
        return self.joined_at <= moment

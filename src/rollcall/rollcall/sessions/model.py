from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from ..common.datetime_utils import isoformat_or_none
from ..core.enums import SessionStatus, SessionType


@dataclass(frozen=True)
class Session:
    """One bounded attendance-taking event for a group.

    `expires_at` is only set for self sessions: opened_at plus the group's
    window at the moment the session was opened.
    """

    id: str
    group_id: str
    session_date: date
    type: SessionType
    status: SessionStatus
    opened_at: datetime
    expires_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.status == SessionStatus.ACTIVE

    def sort_key(self) -> tuple:
        return (self.session_date, self.opened_at, self.id)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "group_id": self.group_id,
            "date": self.session_date.isoformat(),
            "type": self.type.value,
            "status": self.status.value,
            "opened_at": self.opened_at.isoformat(),
            "expires_at": isoformat_or_none(self.expires_at),
            "closed_at": isoformat_or_none(self.closed_at),
        }

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union


@dataclass(frozen=True)
class RecordAdded:
    """Hint that a record appeared; refetch, do not apply as a delta."""

    session_id: str
    student_id: Optional[str]
    cursor: int

    kind = "record_added"

    def to_dict(self) -> dict:
        return {"kind": self.kind, "session_id": self.session_id, "student_id": self.student_id, "cursor": self.cursor}


@dataclass(frozen=True)
class SessionClosed:
    """Terminal event; consumers must refetch the whole roster."""

    session_id: str
    cursor: int

    kind = "session_closed"

    def to_dict(self) -> dict:
        return {"kind": self.kind, "session_id": self.session_id, "cursor": self.cursor}


SessionEvent = Union[RecordAdded, SessionClosed]


@dataclass(frozen=True)
class Heartbeat:
    """Emitted on an idle poll when asked for, so a writer notices a dead client."""

    session_id: str
    cursor: int

    kind = "heartbeat"

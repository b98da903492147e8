from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional, Protocol, Sequence

from .model import Record


class InsertOutcome(str, Enum):
    INSERTED = "inserted"
    DUPLICATE = "duplicate"
    SESSION_INACTIVE = "session_inactive"


class RecordRepository(Protocol):
    def get(self, *, session_id: str, student_id: str) -> Optional[Record]:
        raise NotImplementedError

    def list_for_session(self, session_id: str) -> Sequence[Record]:
        raise NotImplementedError

    def list_for_sessions(self, session_ids: Sequence[str]) -> Sequence[Record]:
        raise NotImplementedError

    def insert_if_session_active(self, record: Record) -> InsertOutcome:
        """Insert one record in the same transaction that checks the session is active.

        The uniqueness rule on (session_id, student_id) decides races:
        the loser gets DUPLICATE.
        """

        raise NotImplementedError

    def insert_many_if_session_active(self, records: Sequence[Record]) -> InsertOutcome:
        """All-or-nothing variant of insert_if_session_active."""

        raise NotImplementedError

    def fill_absent(self, *, session_id: str, student_ids: Sequence[str], marked_at: datetime) -> int:
        """Insert ABSENT self-attributed records, ignoring rows that already exist.

        Runs as one transaction regardless of the session status. Returns the
        number of rows actually inserted.
        """

        raise NotImplementedError

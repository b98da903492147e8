from __future__ import annotations

from typing import Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall
from .channel import EventChannel
from .events import RecordAdded, SessionClosed, SessionEvent


class MySQLEventChannel(EventChannel):
    """Reads the `session_events` outbox filled by database triggers."""

    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def fetch_after(self, session_id: str, *, after: int, limit: int) -> Sequence[SessionEvent]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT id, session_id, kind, student_id
                FROM session_events
                WHERE session_id=%s AND id > %s
                ORDER BY id ASC
                LIMIT %s
                """,
                (session_id, int(after), int(limit)),
            )
            events: list[SessionEvent] = []
            for r in fetchall(cur):
                if r["kind"] == SessionClosed.kind:
                    events.append(SessionClosed(session_id=r["session_id"], cursor=int(r["id"])))
                else:
                    events.append(
                        RecordAdded(session_id=r["session_id"], student_id=r.get("student_id"), cursor=int(r["id"]))
                    )
            return events

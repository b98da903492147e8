from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence

import mysql.connector

from ..core.enums import SessionStatus, SessionType
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, is_duplicate_key
from .model import Session
from .repository import SessionRepository

_COLUMNS = "id, group_id, session_date, type, status, opened_at, expires_at, closed_at"


def _to_session(r: dict) -> Session:
    return Session(
        id=r["id"],
        group_id=r["group_id"],
        session_date=r["session_date"],
        type=SessionType(r["type"]),
        status=SessionStatus(r["status"]),
        opened_at=r["opened_at"],
        expires_at=r.get("expires_at"),
        closed_at=r.get("closed_at"),
    )


class MySQLSessionRepository(SessionRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, session_id: str) -> Optional[Session]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM attendance_sessions WHERE id=%s", (session_id,))
            r = fetchone(cur)
            return _to_session(r) if r else None

    def get_active_for_group(self, group_id: str) -> Optional[Session]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM attendance_sessions WHERE active_group_id=%s",
                (group_id,),
            )
            r = fetchone(cur)
            return _to_session(r) if r else None

    def insert(self, session: Session) -> bool:
        with db_cursor(self._conn_factory) as (conn, cur):
            try:
                cur.execute(
                    """
                    INSERT INTO attendance_sessions(id, group_id, session_date, type, status, opened_at, expires_at)
                    VALUES(%s,%s,%s,%s,%s,%s,%s)
                    """,
                    (
                        session.id,
                        session.group_id,
                        session.session_date,
                        session.type.value,
                        SessionStatus.ACTIVE.value,
                        session.opened_at,
                        session.expires_at,
                    ),
                )
            except mysql.connector.IntegrityError as e:
                if not is_duplicate_key(e):
                    raise
                conn.rollback()
                return False
            return True

    def mark_completed(self, *, session_id: str, closed_at: datetime) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            # Waits for in-flight submits holding a shared lock on this row.
            cur.execute("SELECT status FROM attendance_sessions WHERE id=%s FOR UPDATE", (session_id,))
            r = fetchone(cur)
            if not r or r["status"] != SessionStatus.ACTIVE.value:
                return False
            cur.execute(
                "UPDATE attendance_sessions SET status=%s, closed_at=%s WHERE id=%s AND status=%s",
                (SessionStatus.COMPLETED.value, closed_at, session_id, SessionStatus.ACTIVE.value),
            )
            return cur.rowcount > 0

    def list_completed_for_group(self, group_id: str, *, limit: Optional[int] = None) -> Sequence[Session]:
        sql = f"""
            SELECT {_COLUMNS}
            FROM attendance_sessions
            WHERE group_id=%s AND status=%s
            ORDER BY session_date DESC, opened_at DESC, id DESC
        """
        params: list[object] = [group_id, SessionStatus.COMPLETED.value]
        if limit is not None:
            sql += " LIMIT %s"
            params.append(int(limit))

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, tuple(params))
            return [_to_session(r) for r in fetchall(cur)]

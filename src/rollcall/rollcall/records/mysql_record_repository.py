from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional, Sequence

import mysql.connector

from ..core.enums import RecordStatus, SessionStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, in_clause, is_duplicate_key
from .model import Record
from .repository import InsertOutcome, RecordRepository

_COLUMNS = "id, session_id, student_id, status, marked_by, marked_at"

_INSERT_SQL = """
    INSERT INTO attendance_records(id, session_id, student_id, status, marked_by, marked_at)
    VALUES(%s,%s,%s,%s,%s,%s)
"""


def _to_record(r: dict) -> Record:
    return Record(
        id=r["id"],
        session_id=r["session_id"],
        student_id=r["student_id"],
        status=RecordStatus(r["status"]),
        marked_by=r["marked_by"],
        marked_at=r["marked_at"],
    )


def _params(record: Record) -> tuple:
    return (
        record.id,
        record.session_id,
        record.student_id,
        record.status.value,
        record.marked_by,
        record.marked_at,
    )


class MySQLRecordRepository(RecordRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get(self, *, session_id: str, student_id: str) -> Optional[Record]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM attendance_records WHERE session_id=%s AND student_id=%s",
                (session_id, student_id),
            )
            r = fetchone(cur)
            return _to_record(r) if r else None

    def list_for_session(self, session_id: str) -> Sequence[Record]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM attendance_records WHERE session_id=%s ORDER BY student_id ASC",
                (session_id,),
            )
            return [_to_record(r) for r in fetchall(cur)]

    def list_for_sessions(self, session_ids: Sequence[str]) -> Sequence[Record]:
        if not session_ids:
            return []
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM attendance_records
                WHERE session_id IN ({in_clause(session_ids)})
                ORDER BY session_id ASC, student_id ASC
                """,
                tuple(session_ids),
            )
            return [_to_record(r) for r in fetchall(cur)]

    @staticmethod
    def _lock_active(cur, session_id: str) -> bool:
        # Shared lock: a concurrent close (FOR UPDATE) waits until we commit,
        # and a submit that starts after the close committed sees COMPLETED.
        cur.execute("SELECT status FROM attendance_sessions WHERE id=%s FOR SHARE", (session_id,))
        r = fetchone(cur)
        return bool(r) and r["status"] == SessionStatus.ACTIVE.value

    def insert_if_session_active(self, record: Record) -> InsertOutcome:
        return self.insert_many_if_session_active([record])

    def insert_many_if_session_active(self, records: Sequence[Record]) -> InsertOutcome:
        if not records:
            return InsertOutcome.INSERTED
        session_ids = {r.session_id for r in records}
        if len(session_ids) != 1:
            raise ValueError("records must belong to a single session")

        with db_cursor(self._conn_factory) as (conn, cur):
            if not self._lock_active(cur, records[0].session_id):
                return InsertOutcome.SESSION_INACTIVE
            try:
                cur.executemany(_INSERT_SQL, [_params(r) for r in records])
            except mysql.connector.IntegrityError as e:
                if not is_duplicate_key(e):
                    raise
                conn.rollback()
                return InsertOutcome.DUPLICATE
            return InsertOutcome.INSERTED

    def fill_absent(self, *, session_id: str, student_ids: Sequence[str], marked_at: datetime) -> int:
        inserted = 0
        with db_cursor(self._conn_factory) as (_, cur):
            for student_id in student_ids:
                cur.execute(
                    """
                    INSERT INTO attendance_records(id, session_id, student_id, status, marked_by, marked_at)
                    VALUES(%s,%s,%s,%s,%s,%s)
                    ON DUPLICATE KEY UPDATE id=id
                    """,
                    (str(uuid.uuid4()), session_id, student_id, RecordStatus.ABSENT.value, student_id, marked_at),
                )
                # 1 = inserted, 0 = row already there.
                inserted += max(cur.rowcount, 0)
        return inserted

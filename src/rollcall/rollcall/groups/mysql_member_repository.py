from __future__ import annotations

from typing import Optional, Sequence

from ..core.enums import MemberRole
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import Member
from .repository import MemberRepository


def _to_member(r: dict) -> Member:
    return Member(
        id=r["id"],
        group_id=r["group_id"],
        profile_id=r["profile_id"],
        role=MemberRole(r["role"]),
        joined_at=r.get("joined_at"),
    )


class MySQLMemberRepository(MemberRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get(self, *, group_id: str, profile_id: str) -> Optional[Member]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT id, group_id, profile_id, role, joined_at
                FROM group_members
                WHERE group_id=%s AND profile_id=%s
                """,
                (group_id, profile_id),
            )
            r = fetchone(cur)
            return _to_member(r) if r else None

    def list_students(self, group_id: str) -> Sequence[Member]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT id, group_id, profile_id, role, joined_at
                FROM group_members
                WHERE group_id=%s AND role=%s
                ORDER BY profile_id ASC
                """,
                (group_id, MemberRole.STUDENT.value),
            )
            return [_to_member(r) for r in fetchall(cur)]

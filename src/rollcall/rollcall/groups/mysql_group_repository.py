from __future__ import annotations

from typing import Optional

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchone
from .model import Group, GroupSettings
from .repository import GroupRepository


class MySQLGroupRepository(GroupRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, group_id: str) -> Optional[Group]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT id, name, owner_id, join_code,
                       allow_self_attendance, attendance_window_minutes, penalty_threshold
                FROM attendance_groups
                WHERE id=%s
                """,
                (group_id,),
            )
            r = fetchone(cur)
            if not r:
                return None
            return Group(
                id=r["id"],
                name=r["name"],
                owner_id=r["owner_id"],
                join_code=r["join_code"],
                settings=GroupSettings(
                    allow_self_attendance=bool(r["allow_self_attendance"]),
                    attendance_window_minutes=int(r["attendance_window_minutes"]),
                    penalty_threshold=int(r["penalty_threshold"]),
                ),
            )

    def update_settings(self, *, group_id: str, settings: GroupSettings) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE attendance_groups
                SET allow_self_attendance=%s, attendance_window_minutes=%s, penalty_threshold=%s
                WHERE id=%s
                """,
                (
                    int(settings.allow_self_attendance),
                    int(settings.attendance_window_minutes),
                    int(settings.penalty_threshold),
                    group_id,
                ),
            )
            # rowcount is 0 when the values did not change; existence is what matters.
            if cur.rowcount > 0:
                return True
            cur.execute("SELECT 1 AS ok FROM attendance_groups WHERE id=%s", (group_id,))
            return fetchone(cur) is not None

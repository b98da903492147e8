"""Authorization predicates over (actor, group, session).

Every function here is pure: no store access, no clock. Callers pass the
current time where the answer depends on it.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..core.enums import MemberRole, SessionStatus, SessionType
from ..groups.model import Group, Member
from ..sessions.model import Session


@dataclass(frozen=True)
class Actor:
    """The calling profile, resolved against one group."""

    id: str
    role: MemberRole
    membership: Optional[Member] = None

    @property
    def is_teacher(self) -> bool:
        # A stored membership outranks the role the caller claims.
        if self.membership is not None:
            return self.membership.role == MemberRole.TEACHER
        return self.role == MemberRole.TEACHER

    @property
    def is_student_member(self) -> bool:
        return self.membership is not None and self.membership.is_student


def is_owner(actor: Actor, group: Group) -> bool:
    return actor.id == group.owner_id


def can_open_session(actor: Actor, group: Group) -> bool:
    # Ownership, not the teacher role alone, gates session control.
    return actor.is_teacher and is_owner(actor, group)


def can_close_session(actor: Actor, group: Group) -> bool:
    return can_open_session(actor, group)


def can_manage_group(actor: Actor, group: Group) -> bool:
    return can_open_session(actor, group)


def can_bulk_submit(actor: Actor, group: Group) -> bool:
    return can_open_session(actor, group)


def is_window_open(session: Session, now: datetime) -> bool:
    if session.status != SessionStatus.ACTIVE:
        return False
    if session.expires_at is None:
        return True
    return now < session.expires_at


def can_self_mark(actor: Actor, group: Group, session: Session, now: datetime) -> bool:
    return (
        group.settings.allow_self_attendance
        and session.type == SessionType.SELF
        and session.group_id == group.id
        and actor.is_student_member
        and is_window_open(session, now)
    )


def can_view_history(actor: Actor, group: Group) -> bool:
    return actor.membership is not None or is_owner(actor, group)

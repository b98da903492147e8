from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Optional, Sequence

from ..common.validators import require_bool, require_int_at_least
from ..core.constants import MIN_ATTENDANCE_WINDOW_MINUTES, MIN_PENALTY_THRESHOLD
from ..core.exceptions import ForbiddenError, NotFoundError
from ..identity.provider import Identity
from ..permissions import role_gate
from ..permissions.role_gate import Actor
from .model import Group, GroupSettings, Member
from .repository import GroupRepository, MemberRepository

logger = logging.getLogger(__name__)


def validate_settings(settings: GroupSettings) -> GroupSettings:
    return GroupSettings(
        allow_self_attendance=require_bool(settings.allow_self_attendance, "allow_self_attendance"),
        attendance_window_minutes=require_int_at_least(
            settings.attendance_window_minutes, "attendance_window_minutes", MIN_ATTENDANCE_WINDOW_MINUTES
        ),
        penalty_threshold=require_int_at_least(settings.penalty_threshold, "penalty_threshold", MIN_PENALTY_THRESHOLD),
    )


class GroupService:
    """Group lookups, actor resolution and owner-only settings edits."""

    def __init__(self, groups: GroupRepository, members: MemberRepository):
        self._groups = groups
        self._members = members

    def get_group(self, group_id: str) -> Group:
        group = self._groups.get_by_id(group_id)
        if not group:
            raise NotFoundError(f"group {group_id} not found")
        return group

    def resolve_actor(self, caller: Identity, group: Group) -> Actor:
        membership = self._members.get(group_id=group.id, profile_id=caller.profile_id)
        return Actor(id=caller.profile_id, role=caller.role, membership=membership)

    def list_students(self, group_id: str) -> Sequence[Member]:
        return self._members.list_students(group_id)

    def require_viewer(self, group_id: str, *, caller: Identity) -> Group:
        group = self.get_group(group_id)
        if not role_gate.can_view_history(self.resolve_actor(caller, group), group):
            raise ForbiddenError("only group members can view attendance")
        return group

    def get_settings(self, group_id: str, *, caller: Identity) -> GroupSettings:
        return self.require_viewer(group_id, caller=caller).settings

    def update_settings(
        self,
        group_id: str,
        *,
        caller: Identity,
        allow_self_attendance: Optional[Any] = None,
        attendance_window_minutes: Optional[Any] = None,
        penalty_threshold: Optional[Any] = None,
    ) -> GroupSettings:
        group = self.get_group(group_id)
        if not role_gate.can_manage_group(self.resolve_actor(caller, group), group):
            raise ForbiddenError("only the group owner can change settings")

        changes = {
            k: v
            for k, v in {
                "allow_self_attendance": allow_self_attendance,
                "attendance_window_minutes": attendance_window_minutes,
                "penalty_threshold": penalty_threshold,
            }.items()
            if v is not None
        }
        settings = validate_settings(replace(group.settings, **changes))

        if not self._groups.update_settings(group_id=group.id, settings=settings):
            raise NotFoundError(f"group {group_id} not found")

        logger.info("group %s settings updated: %s", group.id, settings.to_dict())
        return settings

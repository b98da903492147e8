from __future__ import annotations

from typing import Optional, Protocol, Sequence

from .model import Group, GroupSettings, Member


class GroupRepository(Protocol):
    def get_by_id(self, group_id: str) -> Optional[Group]:
        raise NotImplementedError

    def update_settings(self, *, group_id: str, settings: GroupSettings) -> bool:
        raise NotImplementedError


class MemberRepository(Protocol):
    def get(self, *, group_id: str, profile_id: str) -> Optional[Member]:
        raise NotImplementedError

    def list_students(self, group_id: str) -> Sequence[Member]:
        """Current student members of the group, ordered by profile id."""

        raise NotImplementedError

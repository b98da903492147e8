from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from ..core.enums import MemberRole
from ..core.exceptions import ForbiddenError


@dataclass(frozen=True)
class Identity:
    """Who is calling, as vouched for by the upstream authentication layer."""

    profile_id: str
    role: MemberRole


class HeaderIdentityProvider:
    """Reads the caller identity from request headers set by a trusted proxy.

    Authentication happens upstream; this only parses what it forwards.
    """

    def __init__(self, *, id_header: str = "X-Profile-Id", role_header: str = "X-Profile-Role"):
        self._id_header = id_header
        self._role_header = role_header

    def from_headers(self, headers: Mapping[str, str]) -> Identity:
        profile_id = (headers.get(self._id_header) or "").strip()
        if not profile_id:
            raise ForbiddenError("missing caller identity")

        raw_role = (headers.get(self._role_header) or MemberRole.STUDENT.value).strip().lower()
        try:
            role = MemberRole(raw_role)
        except ValueError:
            raise ForbiddenError(f"unknown role {raw_role!r}")
        return Identity(profile_id=profile_id, role=role)


from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from .model import Session


class SessionRepository(Protocol):
    def get_by_id(self, session_id: str) -> Optional[Session]:
        raise NotImplementedError

    def get_active_for_group(self, group_id: str) -> Optional[Session]:
        raise NotImplementedError

    def insert(self, session: Session) -> bool:
        """Insert an active session.

        Returns False when the group already has an active session; the
        store's uniqueness rule decides, not a prior read.
        """

        raise NotImplementedError

    def mark_completed(self, *, session_id: str, closed_at: datetime) -> bool:
        """Flip ACTIVE -> COMPLETED. Returns False if it was not active."""

        raise NotImplementedError

    def list_completed_for_group(self, group_id: str, *, limit: Optional[int] = None) -> Sequence[Session]:
        """Completed sessions, most recent first."""

        raise NotImplementedError

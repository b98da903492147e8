from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Callable, Optional, Sequence

from ..common.datetime_utils import add_minutes, now_utc
from ..common.validators import require_int_at_least
from ..core.constants import DEFAULT_HISTORY_LIMIT
from ..core.enums import SessionStatus, SessionType
from ..core.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from ..groups.model import Group
from ..groups.service import GroupService, validate_settings
from ..identity.provider import Identity
from ..permissions import role_gate
from ..reconciliation.service import ReconciliationService
from ..stats.model import SessionSummary
from ..stats.service import StatsAggregator
from .model import Session
from .repository import SessionRepository

logger = logging.getLogger(__name__)


def parse_session_type(value) -> SessionType:
    try:
        return value if isinstance(value, SessionType) else SessionType(str(value).strip().lower())
    except ValueError:
        raise ValidationError(f"unknown session type {value!r}")


class SessionManager:
    """Opens and closes attendance sessions.

    The session's status field is written only here. Closing is never
    automatic: a self session past its window stays active (and rejects
    submits) until the owner closes it.
    """

    def __init__(
        self,
        sessions: SessionRepository,
        groups: GroupService,
        reconciliation: ReconciliationService,
        stats: StatsAggregator,
        *,
        clock: Callable[[], datetime] = now_utc,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ):
        self._sessions = sessions
        self._groups = groups
        self._reconciliation = reconciliation
        self._stats = stats
        self._clock = clock
        self._new_id = id_factory

    def _require_owner(self, group: Group, caller: Identity, action: str) -> None:
        actor = self._groups.resolve_actor(caller, group)
        allowed = role_gate.can_close_session if action == "close" else role_gate.can_open_session
        if not allowed(actor, group):
            raise ForbiddenError(f"only the group owner can {action} attendance sessions")

    def get(self, session_id: str) -> Session:
        session = self._sessions.get_by_id(session_id)
        if not session:
            raise NotFoundError(f"session {session_id} not found")
        return session

    def active_for_group(self, group_id: str) -> Optional[Session]:
        self._groups.get_group(group_id)
        return self._sessions.get_active_for_group(group_id)

    def history(self, group_id: str, *, limit: int = DEFAULT_HISTORY_LIMIT) -> Sequence[Session]:
        limit = require_int_at_least(limit, "limit", 1)
        self._groups.get_group(group_id)
        return self._sessions.list_completed_for_group(group_id, limit=limit)

    def open(self, group_id: str, type, *, caller: Identity, now: datetime | None = None) -> Session:
        now = now or self._clock()
        session_type = parse_session_type(type)

        group = self._groups.get_group(group_id)
        self._require_owner(group, caller, "open")
        settings = validate_settings(group.settings)

        if session_type == SessionType.SELF and not settings.allow_self_attendance:
            raise ValidationError("self attendance is disabled for this group")

        if self._sessions.get_active_for_group(group.id):
            raise ConflictError("this group already has an active attendance session")

        session = Session(
            id=self._new_id(),
            group_id=group.id,
            session_date=now.date(),
            type=session_type,
            status=SessionStatus.ACTIVE,
            opened_at=now,
            expires_at=add_minutes(now, settings.attendance_window_minutes) if session_type == SessionType.SELF else None,
        )
        # The pre-check above is only a fast path; the store decides races.
        if not self._sessions.insert(session):
            raise ConflictError("this group already has an active attendance session")

        logger.info("group %s: opened %s session %s", group.id, session_type.value, session.id)
        return session

    def close(self, session_id: str, *, caller: Identity, now: datetime | None = None) -> SessionSummary:
        """Reconcile, then finalize. Idempotent: closing twice returns the same summary."""

        now = now or self._clock()
        session = self.get(session_id)
        group = self._groups.get_group(session.group_id)
        self._require_owner(group, caller, "close")

        if not session.is_active:
            # Compensating pass: a no-op unless an earlier close left gaps.
            self._reconciliation.fill_missing(session, now=now)
            return self._stats.per_session_summary(session.id)

        self._reconciliation.fill_missing(session, now=now)

        if self._sessions.mark_completed(session_id=session.id, closed_at=now):
            logger.info("group %s: closed session %s", group.id, session.id)
        else:
            logger.info("session %s was already closed concurrently", session.id)

        # Submits that committed between the first fill and finalize already
        # have records; anyone still missing is filled now that writes are shut.
        result = self._reconciliation.fill_missing(self.get(session.id), now=now)
        if not result.complete:
            logger.error(
                "session %s closed with %d unreconciled students; close again to retry",
                session.id,
                len(result.pending),
            )

        self._reconciliation.penalty_eligibility(group)
        return self._stats.per_session_summary(session.id)

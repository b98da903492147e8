from __future__ import annotations

from typing import Protocol, Sequence

from .events import SessionEvent


class EventChannel(Protocol):
    """Change-notification channel of the datastore, read by cursor."""

    def fetch_after(self, session_id: str, *, after: int, limit: int) -> Sequence[SessionEvent]:
        """Events of one session with cursor > `after`, in cursor order.

        Delivery is at-least-once; callers must tolerate repeats and gaps
        between members.
        """

        raise NotImplementedError

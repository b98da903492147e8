from __future__ import annotations

import logging
import threading
import time
from collections import Counter
from typing import Callable, Iterator, Optional, Union

from ..core.constants import DEFAULT_EVENT_BATCH_SIZE, DEFAULT_EVENT_POLL_SECONDS
from .channel import EventChannel
from .events import Heartbeat, SessionClosed, SessionEvent

logger = logging.getLogger(__name__)


class Subscription:
    """A scoped, restartable event sequence for one session.

    Use as a context manager so it is released on teardown whatever happens
    inside the block. Iterating again restarts from the subscription's start
    cursor; `resume()` continues after the last event already handed out.
    The sequence ends after SessionClosed or once released. Streaming
    writers use `with_heartbeats()` so that a generator parked on an idle
    session still reaches a yield, where a closed client surfaces.
    """

    def __init__(
        self,
        notifier: "ChangeNotifier",
        session_id: str,
        *,
        start_after: int = 0,
    ):
        self._notifier = notifier
        self.session_id = session_id
        self.start_after = int(start_after)
        self.last_cursor = int(start_after)
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    def __iter__(self) -> Iterator[SessionEvent]:
        return self._events(self.start_after)

    def resume(self) -> Iterator[SessionEvent]:
        return self._events(self.last_cursor)

    def with_heartbeats(self) -> Iterator[Union[SessionEvent, Heartbeat]]:
        """Like iterating, but yields a Heartbeat on every idle poll."""

        return self._events(self.start_after, heartbeats=True)

    def release(self) -> None:
        if not self._released:
            self._released = True
            self._notifier._release(self)

    def _events(self, after: int, *, heartbeats: bool = False) -> Iterator[Union[SessionEvent, Heartbeat]]:
        cursor = after
        idle = 0
        n = self._notifier
        while not self._released:
            batch = n.channel.fetch_after(self.session_id, after=cursor, limit=n.batch_size)
            if not batch:
                idle += 1
                if n.max_idle_polls is not None and idle >= n.max_idle_polls:
                    return
                if heartbeats:
                    yield Heartbeat(session_id=self.session_id, cursor=cursor)
                n.sleep(n.poll_interval)
                continue

            idle = 0
            for event in batch:
                cursor = max(cursor, event.cursor)
                self.last_cursor = max(self.last_cursor, event.cursor)
                yield event
                if isinstance(event, SessionClosed):
                    return
                if self._released:
                    return


class ChangeNotifier:
    """Hands out per-session subscriptions over an EventChannel.

    Subscribers poll independently, so a slow dashboard never holds up
    another one.
    """

    def __init__(
        self,
        channel: EventChannel,
        *,
        poll_interval: float = DEFAULT_EVENT_POLL_SECONDS,
        batch_size: int = DEFAULT_EVENT_BATCH_SIZE,
        max_idle_polls: Optional[int] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.channel = channel
        self.poll_interval = float(poll_interval)
        self.batch_size = int(batch_size)
        self.max_idle_polls = max_idle_polls
        self.sleep = sleep
        self._lock = threading.Lock()
        self._active: Counter[str] = Counter()

    def subscribe(self, session_id: str, *, after: int = 0) -> Subscription:
        sub = Subscription(self, session_id, start_after=after)
        with self._lock:
            self._active[session_id] += 1
            count = self._active[session_id]
        logger.debug("session %s: subscription acquired (%d active)", session_id, count)
        return sub

    def active_subscriptions(self, session_id: str) -> int:
        with self._lock:
            return self._active[session_id]

    def _release(self, sub: Subscription) -> None:
        with self._lock:
            self._active[sub.session_id] -= 1
            if self._active[sub.session_id] <= 0:
                del self._active[sub.session_id]
            count = self._active[sub.session_id]
        logger.debug("session %s: subscription released (%d active)", sub.session_id, count)

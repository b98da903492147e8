from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional


def now_utc() -> datetime:
    """Current UTC time (naive, the way MySQL DATETIME columns store it).

    Note: Wrapped so tests can patch/mock easier.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def add_minutes(value: datetime, minutes: int) -> datetime:
    return value + timedelta(minutes=int(minutes))


def isoformat_or_none(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None

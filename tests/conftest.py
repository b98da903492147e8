from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Callable, Optional, Sequence

import pytest

from rollcall.core.enums import MemberRole, RecordStatus, SessionStatus
from rollcall.core.exceptions import StorageError
from rollcall.groups.model import Group, GroupSettings, Member
from rollcall.groups.service import GroupService
from rollcall.identity.provider import Identity
from rollcall.notifications.events import RecordAdded, SessionClosed
from rollcall.notifications.notifier import ChangeNotifier
from rollcall.reconciliation.service import ReconciliationService
from rollcall.records.model import Record
from rollcall.records.repository import InsertOutcome
from rollcall.records.service import RecordLedger
from rollcall.sessions.model import Session
from rollcall.sessions.service import SessionManager
from rollcall.stats.service import StatsAggregator


class InMemoryStore:
    """Shared state with the same uniqueness rules as schema.sql."""

    def __init__(self):
        self.lock = threading.RLock()
        self.groups: dict[str, Group] = {}
        self.members: dict[tuple[str, str], Member] = {}
        self.sessions: dict[str, Session] = {}
        self.records: dict[tuple[str, str], Record] = {}
        self.events: list = []
        self._event_id = 0

    def emit(self, factory: Callable[[int], object]) -> None:
        self._event_id += 1
        self.events.append(factory(self._event_id))


class InMemoryGroups:
    def __init__(self, store: InMemoryStore):
        self._s = store

    def get_by_id(self, group_id: str) -> Optional[Group]:
        return self._s.groups.get(group_id)

    def update_settings(self, *, group_id: str, settings: GroupSettings) -> bool:
        group = self._s.groups.get(group_id)
        if not group:
            return False
        self._s.groups[group_id] = replace(group, settings=settings)
        return True


class InMemoryMembers:
    def __init__(self, store: InMemoryStore):
        self._s = store

    def get(self, *, group_id: str, profile_id: str) -> Optional[Member]:
        return self._s.members.get((group_id, profile_id))

    def list_students(self, group_id: str) -> Sequence[Member]:
        rows = [m for (gid, _), m in self._s.members.items() if gid == group_id and m.role == MemberRole.STUDENT]
        return sorted(rows, key=lambda m: m.profile_id)


class InMemorySessions:
    def __init__(self, store: InMemoryStore):
        self._s = store

    def get_by_id(self, session_id: str) -> Optional[Session]:
        return self._s.sessions.get(session_id)

    def get_active_for_group(self, group_id: str) -> Optional[Session]:
        with self._s.lock:
            for s in self._s.sessions.values():
                if s.group_id == group_id and s.status == SessionStatus.ACTIVE:
                    return s
            return None

    def insert(self, session: Session) -> bool:
        with self._s.lock:
            if self.get_active_for_group(session.group_id):
                return False
            self._s.sessions[session.id] = session
            return True

    def mark_completed(self, *, session_id: str, closed_at: datetime) -> bool:
        with self._s.lock:
            s = self._s.sessions.get(session_id)
            if not s or s.status != SessionStatus.ACTIVE:
                return False
            self._s.sessions[session_id] = replace(s, status=SessionStatus.COMPLETED, closed_at=closed_at)
            self._s.emit(lambda eid: SessionClosed(session_id=session_id, cursor=eid))
            return True

    def list_completed_for_group(self, group_id: str, *, limit: Optional[int] = None):
        rows = [s for s in self._s.sessions.values() if s.group_id == group_id and s.status == SessionStatus.COMPLETED]
        rows.sort(key=lambda s: s.sort_key(), reverse=True)
        return rows[:limit] if limit is not None else rows


class InMemoryRecords:
    def __init__(self, store: InMemoryStore):
        self._s = store
        self.fill_failures = 0
        self.before_insert: Optional[Callable[[], None]] = None
        self._n = 0

    def _add(self, record: Record) -> None:
        self._s.records[(record.session_id, record.student_id)] = record
        self._s.emit(lambda eid: RecordAdded(session_id=record.session_id, student_id=record.student_id, cursor=eid))

    def get(self, *, session_id: str, student_id: str) -> Optional[Record]:
        return self._s.records.get((session_id, student_id))

    def list_for_session(self, session_id: str) -> Sequence[Record]:
        return sorted((r for r in self._s.records.values() if r.session_id == session_id), key=lambda r: r.student_id)

    def list_for_sessions(self, session_ids: Sequence[str]) -> Sequence[Record]:
        wanted = set(session_ids)
        return [r for r in self._s.records.values() if r.session_id in wanted]

    def insert_if_session_active(self, record: Record) -> InsertOutcome:
        return self.insert_many_if_session_active([record])

    def insert_many_if_session_active(self, records: Sequence[Record]) -> InsertOutcome:
        if self.before_insert:
            self.before_insert()
        with self._s.lock:
            session = self._s.sessions.get(records[0].session_id)
            if not session or session.status != SessionStatus.ACTIVE:
                return InsertOutcome.SESSION_INACTIVE
            if any((r.session_id, r.student_id) in self._s.records for r in records):
                return InsertOutcome.DUPLICATE
            for r in records:
                self._add(r)
            return InsertOutcome.INSERTED

    def fill_absent(self, *, session_id: str, student_ids: Sequence[str], marked_at: datetime) -> int:
        with self._s.lock:
            if self.fill_failures > 0:
                self.fill_failures -= 1
                raise StorageError("lost connection to MySQL server during query")
            inserted = 0
            for student_id in student_ids:
                if (session_id, student_id) in self._s.records:
                    continue
                self._n += 1
                self._add(
                    Record(
                        id=f"fill-{self._n}",
                        session_id=session_id,
                        student_id=student_id,
                        status=RecordStatus.ABSENT,
                        marked_by=student_id,
                        marked_at=marked_at,
                    )
                )
                inserted += 1
            return inserted


class InMemoryEventChannel:
    def __init__(self, store: InMemoryStore):
        self._s = store
        self.fetches = 0

    def fetch_after(self, session_id: str, *, after: int, limit: int):
        self.fetches += 1
        with self._s.lock:
            rows = [e for e in self._s.events if e.session_id == session_id and e.cursor > after]
        return rows[:limit]


class Clock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class World:
    """Services wired over in-memory repositories, plus roster builders."""

    def __init__(self, now: datetime):
        self.clock = Clock(now)
        self.store = InMemoryStore()
        self.groups_repo = InMemoryGroups(self.store)
        self.members_repo = InMemoryMembers(self.store)
        self.sessions_repo = InMemorySessions(self.store)
        self.records_repo = InMemoryRecords(self.store)
        self.channel = InMemoryEventChannel(self.store)

        counter = iter(range(1, 1_000_000))
        self.new_id = lambda: f"id-{next(counter)}"

        self.group_service = GroupService(self.groups_repo, self.members_repo)
        self.ledger = RecordLedger(
            self.records_repo, self.sessions_repo, self.group_service, clock=self.clock, id_factory=self.new_id
        )
        self.reconciliation = ReconciliationService(
            self.records_repo, self.sessions_repo, self.group_service, max_attempts=3, clock=self.clock
        )
        self.stats = StatsAggregator(self.records_repo, self.sessions_repo, self.group_service)
        self.manager = SessionManager(
            self.sessions_repo,
            self.group_service,
            self.reconciliation,
            self.stats,
            clock=self.clock,
            id_factory=self.new_id,
        )
        self.notifier = ChangeNotifier(self.channel, poll_interval=0, max_idle_polls=1, sleep=lambda _: None)

    def add_group(
        self,
        group_id: str = "g1",
        *,
        owner: str = "teacher-1",
        students: int = 5,
        window: int = 15,
        threshold: int = 3,
        allow_self: bool = True,
    ) -> Group:
        group = Group(
            id=group_id,
            name=f"Group {group_id}",
            owner_id=owner,
            join_code=f"JOIN{group_id.upper()}",
            settings=GroupSettings(
                allow_self_attendance=allow_self,
                attendance_window_minutes=window,
                penalty_threshold=threshold,
            ),
        )
        self.store.groups[group.id] = group
        self.store.members[(group.id, owner)] = Member(
            id=f"m-{group.id}-{owner}", group_id=group.id, profile_id=owner, role=MemberRole.TEACHER
        )
        for n in range(1, students + 1):
            self.add_student(group.id, self.student_id(group.id, n))
        return group

    def add_student(self, group_id: str, profile_id: str) -> Member:
        member = Member(
            id=f"m-{group_id}-{profile_id}",
            group_id=group_id,
            profile_id=profile_id,
            role=MemberRole.STUDENT,
            joined_at=self.clock.now,
        )
        self.store.members[(group_id, profile_id)] = member
        return member

    @staticmethod
    def student_id(group_id: str, n: int) -> str:
        return f"{group_id}-s{n:02d}"

    def students(self, group_id: str) -> list[str]:
        return [m.profile_id for m in self.members_repo.list_students(group_id)]

    @staticmethod
    def teacher(profile_id: str = "teacher-1") -> Identity:
        return Identity(profile_id=profile_id, role=MemberRole.TEACHER)

    @staticmethod
    def student(profile_id: str) -> Identity:
        return Identity(profile_id=profile_id, role=MemberRole.STUDENT)

    def self_mark(self, session: Session, student_id: str, status: str = "present") -> Record:
        return self.ledger.submit(session.id, student_id, status, student_id, caller=self.student(student_id))

    def run_session(self, group: Group, present: Sequence[str], *, type: str = "self") -> Session:
        """Open a session, self-mark the given students present, close it."""

        session = self.manager.open(group.id, type, caller=self.teacher(group.owner_id))
        for student_id in present:
            self.self_mark(session, student_id)
        self.manager.close(session.id, caller=self.teacher(group.owner_id))
        self.clock.advance(days=1)
        return self.sessions_repo.get_by_id(session.id)


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2026, 2, 2, 9, 0, 0)


@pytest.fixture
def world(fixed_now) -> World:
    return World(fixed_now)

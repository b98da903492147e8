from __future__ import annotations

import threading
from dataclasses import replace
from datetime import timedelta

import pytest

from rollcall.core.enums import SessionStatus, SessionType
from rollcall.core.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from rollcall.groups.model import GroupSettings


def test_open_self_session_computes_expiry(world, fixed_now):
    group = world.add_group(window=20)

    session = world.manager.open(group.id, "self", caller=world.teacher())

    assert session.status == SessionStatus.ACTIVE
    assert session.type == SessionType.SELF
    assert session.session_date == fixed_now.date()
    assert session.expires_at == fixed_now + timedelta(minutes=20)
    assert world.manager.active_for_group(group.id) == session


def test_manual_session_has_no_expiry(world):
    group = world.add_group()
    session = world.manager.open(group.id, SessionType.MANUAL, caller=world.teacher())
    assert session.expires_at is None


def test_second_open_conflicts(world):
    group = world.add_group()
    world.manager.open(group.id, "manual", caller=world.teacher())

    with pytest.raises(ConflictError):
        world.manager.open(group.id, "self", caller=world.teacher())


def test_concurrent_opens_leave_exactly_one_active_session(world):
    group = world.add_group()
    barrier = threading.Barrier(4)
    outcomes: list[str] = []

    def attempt():
        barrier.wait()
        try:
            world.manager.open(group.id, "manual", caller=world.teacher())
            outcomes.append("opened")
        except ConflictError:
            outcomes.append("conflict")

    threads = [threading.Thread(target=attempt) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert outcomes.count("opened") == 1
    assert outcomes.count("conflict") == 3
    active = [s for s in world.store.sessions.values() if s.status == SessionStatus.ACTIVE]
    assert len(active) == 1


def test_other_groups_are_independent(world):
    g1 = world.add_group("g1")
    g2 = world.add_group("g2")
    world.manager.open(g1.id, "manual", caller=world.teacher())
    assert world.manager.open(g2.id, "manual", caller=world.teacher()).group_id == "g2"


def test_only_owner_can_open(world):
    group = world.add_group()
    world.store.members[(group.id, "co-teacher")] = replace(
        world.store.members[(group.id, group.owner_id)], id="m-co", profile_id="co-teacher"
    )

    with pytest.raises(ForbiddenError):
        world.manager.open(group.id, "manual", caller=world.teacher("co-teacher"))
    with pytest.raises(ForbiddenError):
        world.manager.open(group.id, "manual", caller=world.student(world.student_id(group.id, 1)))


def test_open_unknown_group_is_not_found(world):
    with pytest.raises(NotFoundError):
        world.manager.open("nope", "manual", caller=world.teacher())


def test_open_rejects_unknown_type(world):
    group = world.add_group()
    with pytest.raises(ValidationError):
        world.manager.open(group.id, "hybrid", caller=world.teacher())


def test_self_session_requires_self_attendance_enabled(world):
    group = world.add_group(allow_self=False)
    with pytest.raises(ValidationError):
        world.manager.open(group.id, "self", caller=world.teacher())


def test_open_rejects_malformed_stored_settings(world):
    group = world.add_group()
    world.store.groups[group.id] = replace(
        group, settings=GroupSettings(allow_self_attendance=True, attendance_window_minutes=0, penalty_threshold=3)
    )
    with pytest.raises(ValidationError):
        world.manager.open(group.id, "self", caller=world.teacher())


def test_expired_self_session_stays_open_until_closed(world):
    group = world.add_group()
    session = world.manager.open(group.id, "self", caller=world.teacher())

    world.clock.advance(hours=3)

    assert world.manager.get(session.id).status == SessionStatus.ACTIVE
    with pytest.raises(ConflictError):
        world.manager.open(group.id, "self", caller=world.teacher())


def test_close_completes_session_and_allows_a_new_one(world):
    group = world.add_group()
    session = world.manager.open(group.id, "manual", caller=world.teacher())

    world.manager.close(session.id, caller=world.teacher())

    closed = world.manager.get(session.id)
    assert closed.status == SessionStatus.COMPLETED
    assert closed.closed_at == world.clock.now
    assert world.manager.active_for_group(group.id) is None
    assert world.manager.open(group.id, "manual", caller=world.teacher()).id != session.id


def test_close_twice_returns_identical_summary(world):
    group = world.add_group(students=4)
    session = world.manager.open(group.id, "self", caller=world.teacher())
    world.self_mark(session, world.student_id(group.id, 1))

    first = world.manager.close(session.id, caller=world.teacher())
    record_count = len(world.store.records)
    second = world.manager.close(session.id, caller=world.teacher())

    assert first == second
    assert first.to_dict() == {
        "session_id": session.id,
        "present": 1,
        "absent": 3,
        "penalty": 0,
        "total": 4,
        "percentage": 25.0,
    }
    assert len(world.store.records) == record_count


def test_only_owner_can_close(world):
    group = world.add_group()
    session = world.manager.open(group.id, "manual", caller=world.teacher())
    with pytest.raises(ForbiddenError):
        world.manager.close(session.id, caller=world.student(world.student_id(group.id, 1)))
    assert world.manager.get(session.id).status == SessionStatus.ACTIVE


def test_close_unknown_session_is_not_found(world):
    with pytest.raises(NotFoundError):
        world.manager.close("missing", caller=world.teacher())


def test_history_lists_completed_sessions_most_recent_first(world):
    group = world.add_group(students=2)
    first = world.run_session(group, present=[])
    second = world.run_session(group, present=[])
    world.manager.open(group.id, "manual", caller=world.teacher())

    assert [s.id for s in world.manager.history(group.id)] == [second.id, first.id]


def test_history_limit(world):
    group = world.add_group(students=1)
    world.run_session(group, present=[])
    latest = world.run_session(group, present=[])

    assert [s.id for s in world.manager.history(group.id, limit=1)] == [latest.id]
    for bad in (0, -1, "many"):
        with pytest.raises(ValidationError):
            world.manager.history(group.id, limit=bad)

from __future__ import annotations

import pytest

from rollcall.core.enums import RecordStatus
from rollcall.core.exceptions import NotFoundError
from rollcall.stats.model import SessionSummary, percentage


@pytest.mark.parametrize(
    "part,whole,expected",
    [
        (13, 20, 65.0),
        (1, 3, 33.3),
        (2, 3, 66.7),
        (1, 16, 6.3),
        (0, 5, 0.0),
        (0, 0, 0.0),
        (7, 7, 100.0),
    ],
)
def test_percentage_rounds_half_up_to_one_decimal(part, whole, expected):
    assert percentage(part, whole) == expected


def test_group_rollup_pools_present_over_all_records(world):
    group = world.add_group(students=10)
    students = world.students(group.id)
    world.run_session(group, present=students[:8])
    world.run_session(group, present=students[:5])

    rollup = world.stats.group_rollup(group.id)

    assert rollup.session_count == 2
    assert rollup.student_count == 10
    assert rollup.total_present == 13
    assert rollup.total_records == 20
    assert rollup.percentage == 65.0


def test_group_rollup_is_not_a_mean_of_session_percentages(world):
    group = world.add_group(students=4)
    world.run_session(group, present=world.students(group.id))
    for n in range(5, 11):
        world.add_student(group.id, world.student_id(group.id, n))
    world.run_session(group, present=world.students(group.id)[:2])

    rollup = world.stats.group_rollup(group.id)

    # 6 of 14 pooled, where averaging 100% and 20% would give 60%.
    assert rollup.percentage == 42.9
    assert [s.percentage for s in rollup.sessions] == [20.0, 100.0]


def test_active_session_is_excluded_from_rollup_and_history(world):
    group = world.add_group(students=3)
    done = world.run_session(group, present=world.students(group.id))
    live = world.manager.open(group.id, "self", caller=world.teacher())
    world.self_mark(live, world.student_id(group.id, 1))

    rollup = world.stats.group_rollup(group.id)

    assert [s.session_id for s in rollup.sessions] == [done.id]
    assert world.stats.per_student_summary(group.id, world.student_id(group.id, 1)).total == 1


def test_third_consecutive_absence_reads_as_penalty(world):
    group = world.add_group(students=2, threshold=3)
    regular, skipper = world.students(group.id)
    sessions = [world.run_session(group, present=[regular]) for _ in range(3)]

    summaries = [world.stats.per_session_summary(s.id) for s in sessions]

    assert [(s.absent, s.penalty) for s in summaries] == [(1, 0), (1, 0), (0, 1)]
    assert summaries[2].percentage == 50.0
    stored = world.records_repo.get(session_id=sessions[2].id, student_id=skipper)
    assert stored.status == RecordStatus.ABSENT


def test_raising_threshold_turns_penalty_back_into_absence(world):
    group = world.add_group(students=1, threshold=3)
    sessions = [world.run_session(group, present=[]) for _ in range(3)]
    assert world.stats.per_session_summary(sessions[2].id).penalty == 1

    world.group_service.update_settings(group.id, caller=world.teacher(), penalty_threshold=4)

    summary = world.stats.per_session_summary(sessions[2].id)
    assert (summary.absent, summary.penalty) == (1, 0)


def test_presence_resets_the_streak(world):
    group = world.add_group(students=1, threshold=2)
    sid = world.student_id(group.id, 1)
    world.run_session(group, present=[])
    world.run_session(group, present=[sid])
    last = world.run_session(group, present=[])

    assert world.stats.per_session_summary(last.id).penalty == 0
    world.run_session(group, present=[])
    assert world.stats.per_student_summary(group.id, sid).penalty == 1


def test_student_summary_lists_history_most_recent_first(world):
    group = world.add_group(students=2, threshold=2)
    sid = world.student_id(group.id, 1)
    first = world.run_session(group, present=[sid])
    second = world.run_session(group, present=[])
    third = world.run_session(group, present=[])

    summary = world.stats.per_student_summary(group.id, sid)

    assert [row.session_id for row in summary.history] == [third.id, second.id, first.id]
    assert [row.status for row in summary.history] == [
        RecordStatus.PENALTY,
        RecordStatus.ABSENT,
        RecordStatus.PRESENT,
    ]
    assert (summary.present, summary.absent, summary.penalty, summary.total) == (1, 1, 1, 3)
    assert summary.current_streak == 2
    assert summary.percentage == 33.3
    assert summary.to_dict()["history"][0]["date"] == third.session_date.isoformat()


def test_student_summary_for_student_without_records(world):
    group = world.add_group(students=1)

    summary = world.stats.per_student_summary(group.id, "nobody")

    assert summary.total == 0
    assert summary.percentage == 0.0
    assert summary.current_streak == 0


def test_active_session_summary_has_live_counts(world):
    group = world.add_group(students=4)
    session = world.manager.open(group.id, "self", caller=world.teacher())
    world.self_mark(session, world.student_id(group.id, 1))
    world.self_mark(session, world.student_id(group.id, 2), "absent")

    summary = world.stats.per_session_summary(session.id)

    assert summary == SessionSummary(session_id=session.id, present=1, absent=1, penalty=0, total=2)


def test_roster_shows_unmarked_students_during_active_session(world):
    group = world.add_group(students=3)
    session = world.manager.open(group.id, "self", caller=world.teacher())
    world.self_mark(session, world.student_id(group.id, 2))

    roster = world.stats.session_roster(session.id)

    assert [(e.student_id, e.status) for e in roster] == [
        (world.student_id(group.id, 1), None),
        (world.student_id(group.id, 2), RecordStatus.PRESENT),
        (world.student_id(group.id, 3), None),
    ]
    assert roster[0].to_dict() == {"student_id": world.student_id(group.id, 1), "status": None}


def test_roster_after_close_has_no_gaps(world):
    group = world.add_group(students=3)
    session = world.run_session(group, present=[world.student_id(group.id, 3)])

    roster = world.stats.session_roster(session.id)

    assert [e.status for e in roster] == [RecordStatus.ABSENT, RecordStatus.ABSENT, RecordStatus.PRESENT]


def test_summary_for_unknown_session(world):
    with pytest.raises(NotFoundError):
        world.stats.per_session_summary("missing")
    with pytest.raises(NotFoundError):
        world.stats.session_roster("missing")

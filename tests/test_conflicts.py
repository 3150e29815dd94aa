from datetime import date, time

import pytest

from school_timetable.models import (
    Exam,
    ExamStatus,
    RecordStatus,
    RecurrenceType,
    Weekday,
)
from school_timetable.schemas.conflict import ConflictType
from school_timetable.services.conflicts import (
    find_exam_conflicts,
    find_template_conflicts,
    find_timetable_conflicts,
    find_timetable_conflicts_for_dates,
    intervals_overlap,
    normalize_room,
)
from school_timetable.services.recurrence import RecurrenceRule

MONDAY = date(2024, 9, 2)


@pytest.mark.parametrize(
    "a, b",
    [
        ((time(8, 0), time(9, 0)), (time(8, 30), time(9, 30))),
        ((time(8, 0), time(12, 0)), (time(9, 0), time(10, 0))),
        ((time(8, 0), time(9, 0)), (time(9, 0), time(10, 0))),
        ((time(8, 0), time(9, 0)), (time(10, 0), time(11, 0))),
    ],
)
def test_overlap_is_symmetric(a, b):
    assert intervals_overlap(*a, *b) == intervals_overlap(*b, *a)


def test_touching_intervals_do_not_overlap():
    assert not intervals_overlap(time(8, 0), time(9, 0), time(9, 0), time(10, 0))
    assert intervals_overlap(time(8, 0), time(9, 1), time(9, 0), time(10, 0))


def test_normalize_room():
    assert normalize_room(" 101 ") == "101"
    assert normalize_room("   ") is None
    assert normalize_room(None) is None


async def test_same_class_overlap_is_a_class_conflict(session, seed, make_timetable):
    session.add(make_timetable())
    await session.commit()

    conflicts = await find_timetable_conflicts(
        session, MONDAY, time(8, 30), time(9, 30), seed.class_id, seed.branch_id, "202"
    )
    assert len(conflicts) == 1
    assert conflicts[0].conflict_type == ConflictType.CLASS
    assert conflicts[0].class_name == "Grade 7A"
    assert conflicts[0].subject_name == "Mathematics"
    assert conflicts[0].teacher_name == "Ama Mensah"


async def test_same_room_overlap_is_a_room_conflict(session, seed, make_timetable):
    session.add(make_timetable())
    await session.commit()

    conflicts = await find_timetable_conflicts(
        session, MONDAY, time(8, 30), time(9, 30), seed.other_class_id, seed.branch_id, "101"
    )
    assert [c.conflict_type for c in conflicts] == [ConflictType.ROOM]


async def test_no_conflict_for_other_class_other_room_or_touching(session, seed, make_timetable):
    session.add(make_timetable())
    await session.commit()

    assert not await find_timetable_conflicts(
        session, MONDAY, time(8, 30), time(9, 30), seed.other_class_id, seed.branch_id, "202"
    )
    assert not await find_timetable_conflicts(
        session, MONDAY, time(9, 0), time(10, 0), seed.class_id, seed.branch_id, "101"
    )
    assert not await find_timetable_conflicts(
        session, date(2024, 9, 3), time(8, 0), time(9, 0), seed.class_id, seed.branch_id, "101"
    )


async def test_blank_room_never_matches_a_room(session, seed, make_timetable):
    session.add(make_timetable(room_number="101"))
    await session.commit()

    assert not await find_timetable_conflicts(
        session, MONDAY, time(8, 0), time(9, 0), seed.other_class_id, seed.branch_id, "  "
    )


async def test_inactive_and_excluded_timetables_are_ignored(session, seed, make_timetable):
    inactive = make_timetable(status=RecordStatus.INACTIVE)
    own = make_timetable(start_time=time(10, 0), end_time=time(11, 0))
    session.add_all([inactive, own])
    await session.commit()

    assert not await find_timetable_conflicts(
        session, MONDAY, time(8, 0), time(9, 0), seed.class_id, seed.branch_id, "101"
    )
    assert not await find_timetable_conflicts(
        session, MONDAY, time(10, 0), time(11, 0), seed.class_id, seed.branch_id, "101", exclude_id=own.id
    )


async def test_conflicts_for_dates_skip_the_templates_own_rows(session, seed, make_timetable, make_template):
    template = make_template()
    session.add(template)
    await session.flush()
    session.add_all(
        [
            make_timetable(timetable_template_id=template.id, is_recurring=True),
            make_timetable(date=date(2024, 9, 9)),
        ]
    )
    await session.commit()

    conflicts = await find_timetable_conflicts_for_dates(
        session,
        [MONDAY, date(2024, 9, 9), date(2024, 9, 16)],
        time(8, 0),
        time(9, 0),
        seed.class_id,
        seed.branch_id,
        "101",
        exclude_template_id=template.id,
    )
    assert list(conflicts) == [date(2024, 9, 9)]


async def test_cancelled_exams_do_not_conflict(session, seed):
    exam_values = dict(
        date=MONDAY,
        start_time=time(9, 0),
        end_time=time(11, 0),
        room_number="Hall A",
        full_marks=100,
        passing_marks=40,
        branch_id=seed.branch_id,
        academic_year_id=seed.academic_year_id,
        class_id=seed.class_id,
        subject_id=seed.subject_id,
    )
    session.add_all(
        [
            Exam(name="Midterm", status=ExamStatus.SCHEDULED, **exam_values),
            Exam(name="Cancelled midterm", status=ExamStatus.CANCELLED, **exam_values),
        ]
    )
    await session.commit()

    conflicts = await find_exam_conflicts(
        session, MONDAY, time(10, 0), time(12, 0), seed.other_class_id, seed.branch_id, "Hall A"
    )
    assert [c.label for c in conflicts] == ["Midterm"]
    assert conflicts[0].conflict_type == ConflictType.ROOM
    assert conflicts[0].teacher_name == "Unknown Teacher"


async def test_template_conflict_requires_shared_dates(session, seed, make_template):
    session.add(make_template(days=["MONDAY", "WEDNESDAY"]))
    await session.commit()

    overlapping = RecurrenceRule(
        start_date=date(2024, 9, 1),
        end_date=date(2024, 9, 30),
        weekdays=frozenset({Weekday.MONDAY}),
    )
    conflicts = await find_template_conflicts(
        session, overlapping, time(8, 30), time(9, 30), seed.class_id, seed.branch_id, seed.academic_year_id, "202"
    )
    assert len(conflicts) == 1
    assert conflicts[0].first_shared_date == MONDAY
    assert conflicts[0].shared_dates == 5

    other_day = RecurrenceRule(
        start_date=date(2024, 9, 1),
        end_date=date(2024, 9, 30),
        weekdays=frozenset({Weekday.FRIDAY}),
    )
    assert not await find_template_conflicts(
        session, other_day, time(8, 30), time(9, 30), seed.class_id, seed.branch_id, seed.academic_year_id, "202"
    )


async def test_interleaved_biweekly_templates_do_not_conflict(session, seed, make_template):
    session.add(make_template(recurrence_type=RecurrenceType.BIWEEKLY))
    await session.commit()

    # Week zero is 2024-09-09, so this expands to the 9th and 23rd while the stored one has the 2nd, 16th and 30th.
    off_weeks = RecurrenceRule(
        start_date=date(2024, 9, 9),
        end_date=date(2024, 9, 30),
        weekdays=frozenset({Weekday.MONDAY}),
        recurrence_type=RecurrenceType.BIWEEKLY,
    )
    assert not await find_template_conflicts(
        session, off_weeks, time(8, 0), time(9, 0), seed.class_id, seed.branch_id, seed.academic_year_id, "101"
    )


async def test_padded_stored_room_matches_a_trimmed_candidate(session, seed, make_timetable):
    session.add(make_timetable(room_number="101 "))
    await session.commit()

    conflicts = await find_timetable_conflicts(
        session, MONDAY, time(8, 0), time(9, 0), seed.other_class_id, seed.branch_id, "101"
    )
    assert [c.conflict_type for c in conflicts] == [ConflictType.ROOM]
    assert await find_timetable_conflicts(
        session, MONDAY, time(8, 0), time(9, 0), seed.other_class_id, seed.branch_id, " 101"
    )


def _slots(seed, shared):
    if shared == "class":
        return (seed.class_id, "101"), (seed.class_id, "202")
    return (seed.class_id, "101 "), (seed.other_class_id, "101")


@pytest.mark.parametrize("shared", ["class", "room"])
async def test_timetable_conflicts_are_found_in_either_order(session, seed, make_timetable, shared):
    first, second = _slots(seed, shared)
    for stored, candidate in ((first, second), (second, first)):
        row = make_timetable(class_id=stored[0], room_number=stored[1])
        session.add(row)
        await session.commit()

        conflicts = await find_timetable_conflicts(
            session, MONDAY, time(8, 30), time(9, 30), candidate[0], seed.branch_id, candidate[1]
        )
        assert [c.id for c in conflicts] == [row.id]

        await session.delete(row)
        await session.commit()


@pytest.mark.parametrize("shared", ["class", "room"])
async def test_exam_conflicts_are_found_in_either_order(session, seed, shared):
    first, second = _slots(seed, shared)
    for stored, candidate in ((first, second), (second, first)):
        exam = Exam(
            name="Midterm",
            date=MONDAY,
            start_time=time(9, 0),
            end_time=time(11, 0),
            room_number=stored[1],
            full_marks=100,
            passing_marks=40,
            status=ExamStatus.SCHEDULED,
            branch_id=seed.branch_id,
            academic_year_id=seed.academic_year_id,
            class_id=stored[0],
            subject_id=seed.subject_id,
        )
        session.add(exam)
        await session.commit()

        conflicts = await find_exam_conflicts(
            session, MONDAY, time(10, 0), time(12, 0), candidate[0], seed.branch_id, candidate[1]
        )
        assert [c.id for c in conflicts] == [exam.id]

        await session.delete(exam)
        await session.commit()

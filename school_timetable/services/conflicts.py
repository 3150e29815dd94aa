"""Overlap detection for timetables, exams and timetable templates."""
import logging
from collections import defaultdict
from collections.abc import Iterable
from datetime import date, time

from pydantic import BaseModel
from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from school_timetable.models import (
    Exam,
    ExamStatus,
    RecordStatus,
    Timetable,
    TimetableTemplate,
    Weekday,
)
from school_timetable.schemas.conflict import ConflictRecord, ConflictType, TemplateConflictRecord
from school_timetable.services.recurrence import RecurrenceRule

logger = logging.getLogger(__name__)


class SchedulingConflictError(Exception):
    """Raised when a slot collides with existing records and the caller did not force it."""

    def __init__(self, message: str, conflicts: Iterable[BaseModel]):
        super().__init__(message)
        self.message = message
        self.conflicts = list(conflicts)


def intervals_overlap(a_start: time, a_end: time, b_start: time, b_end: time) -> bool:
    """Half-open overlap: [a_start, a_end) and [b_start, b_end) share at least one instant."""
    return a_start < b_end and a_end > b_start


def normalize_room(room_number: str | None) -> str | None:
    if room_number is None:
        return None
    room = room_number.strip()
    return room or None


def _overlap_clause(model, start_time: time, end_time: time):
    return and_(model.start_time < end_time, model.end_time > start_time)


def _resource_clause(model, class_id: int, branch_id: int, room_number: str | None):
    """Same class anywhere, or same room within the same branch. Blank rooms never match."""
    room = normalize_room(room_number)
    if room is None:
        return model.class_id == class_id
    return or_(
        model.class_id == class_id,
        and_(model.branch_id == branch_id, func.trim(model.room_number) == room),
    )


def _conflict_type(record_class_id: int, class_id: int) -> ConflictType:
    return ConflictType.CLASS if record_class_id == class_id else ConflictType.ROOM


def _timetable_to_conflict(timetable: Timetable, class_id: int) -> ConflictRecord:
    class_name = timetable.school_class.name if timetable.school_class else None
    subject_name = timetable.subject.name if timetable.subject else None
    return ConflictRecord(
        id=timetable.id,
        label=f"{subject_name or 'Session'} ({class_name or timetable.class_id})",
        date=timetable.date,
        start_time=timetable.start_time,
        end_time=timetable.end_time,
        class_id=timetable.class_id,
        class_name=class_name,
        room_number=timetable.room_number,
        subject_name=subject_name,
        teacher_name=timetable.teacher.full_name if timetable.teacher else None,
        conflict_type=_conflict_type(timetable.class_id, class_id),
    )


def _exam_to_conflict(exam: Exam, class_id: int) -> ConflictRecord:
    return ConflictRecord(
        id=exam.id,
        label=exam.name,
        date=exam.date,
        start_time=exam.start_time,
        end_time=exam.end_time,
        class_id=exam.class_id,
        class_name=exam.school_class.name if exam.school_class else None,
        room_number=exam.room_number,
        subject_name=exam.subject.name if exam.subject else "Unknown Subject",
        teacher_name=exam.teacher.full_name if exam.teacher else "Unknown Teacher",
        conflict_type=_conflict_type(exam.class_id, class_id),
    )


async def find_timetable_conflicts_for_dates(
    session: AsyncSession,
    dates: Iterable[date],
    start_time: time,
    end_time: time,
    class_id: int,
    branch_id: int,
    room_number: str | None,
    exclude_id: int | None = None,
    exclude_template_id: int | None = None,
) -> dict[date, list[ConflictRecord]]:
    """
    Find active timetables overlapping the same daily slot on any of the given dates.

    Args:
        session: Database session
        dates: Candidate dates
        start_time: Candidate start time
        end_time: Candidate end time
        class_id: Candidate class
        branch_id: Branch the candidate room belongs to
        room_number: Candidate room (blank means no room check)
        exclude_id: Timetable being updated, ignored by the check
        exclude_template_id: Template whose generated sessions are ignored by the check

    Returns:
        Dictionary mapping each conflicting date to its conflicting records; dates without conflicts are absent
    """
    candidate_dates = sorted(set(dates))
    if not candidate_dates:
        return {}

    stmt = (
        select(Timetable)
        .options(
            selectinload(Timetable.school_class),
            selectinload(Timetable.subject),
            selectinload(Timetable.teacher),
        )
        .where(
            Timetable.date.in_(candidate_dates),
            Timetable.status == RecordStatus.ACTIVE,
            _overlap_clause(Timetable, start_time, end_time),
            _resource_clause(Timetable, class_id, branch_id, room_number),
        )
        .order_by(Timetable.date, Timetable.start_time, Timetable.id)
    )
    if exclude_id is not None:
        stmt = stmt.where(Timetable.id != exclude_id)
    if exclude_template_id is not None:
        stmt = stmt.where(
            or_(
                Timetable.timetable_template_id.is_(None),
                Timetable.timetable_template_id != exclude_template_id,
            )
        )

    result = await session.execute(stmt)
    conflicts: dict[date, list[ConflictRecord]] = defaultdict(list)
    for timetable in result.scalars().all():
        conflicts[timetable.date].append(_timetable_to_conflict(timetable, class_id))
    return dict(conflicts)


async def find_timetable_conflicts(
    session: AsyncSession,
    slot_date: date,
    start_time: time,
    end_time: time,
    class_id: int,
    branch_id: int,
    room_number: str | None,
    exclude_id: int | None = None,
) -> list[ConflictRecord]:
    """Find active timetables that collide with a single candidate session."""
    conflicts = await find_timetable_conflicts_for_dates(
        session,
        [slot_date],
        start_time,
        end_time,
        class_id,
        branch_id,
        room_number,
        exclude_id=exclude_id,
    )
    return conflicts.get(slot_date, [])


async def find_exam_conflicts(
    session: AsyncSession,
    exam_date: date,
    start_time: time,
    end_time: time,
    class_id: int,
    branch_id: int,
    room_number: str | None,
    exclude_exam_id: int | None = None,
) -> list[ConflictRecord]:
    """Find non-cancelled exams on the same date sharing the class or room with an overlapping time."""
    stmt = (
        select(Exam)
        .options(
            selectinload(Exam.school_class),
            selectinload(Exam.subject),
            selectinload(Exam.teacher),
        )
        .where(
            Exam.date == exam_date,
            Exam.status != ExamStatus.CANCELLED,
            _overlap_clause(Exam, start_time, end_time),
            _resource_clause(Exam, class_id, branch_id, room_number),
        )
        .order_by(Exam.start_time, Exam.id)
    )
    if exclude_exam_id is not None:
        stmt = stmt.where(Exam.id != exclude_exam_id)

    result = await session.execute(stmt)
    return [_exam_to_conflict(exam, class_id) for exam in result.scalars().all()]


async def find_template_conflicts(
    session: AsyncSession,
    rule: RecurrenceRule,
    start_time: time,
    end_time: time,
    class_id: int,
    branch_id: int,
    academic_year_id: int,
    room_number: str | None,
    exclude_template_id: int | None = None,
) -> list[TemplateConflictRecord]:
    """
    Find active templates of the same academic year whose expansions would collide with the rule.

    Candidates are narrowed in SQL by date range, daily time window and shared class/room;
    the remaining ones are expanded and only reported when they share at least one date.
    """
    stmt = select(TimetableTemplate).where(
        TimetableTemplate.academic_year_id == academic_year_id,
        TimetableTemplate.status == RecordStatus.ACTIVE,
        TimetableTemplate.start_date <= rule.end_date,
        TimetableTemplate.end_date >= rule.start_date,
        _overlap_clause(TimetableTemplate, start_time, end_time),
        _resource_clause(TimetableTemplate, class_id, branch_id, room_number),
    )
    if exclude_template_id is not None:
        stmt = stmt.where(TimetableTemplate.id != exclude_template_id)

    result = await session.execute(stmt.order_by(TimetableTemplate.id))
    candidate_dates = set(rule)
    conflicts: list[TemplateConflictRecord] = []
    for template in result.scalars().all():
        if not template.weekdays & rule.weekdays:
            continue
        shared = candidate_dates.intersection(RecurrenceRule.from_template(template))
        if not shared:
            continue
        conflicts.append(
            TemplateConflictRecord(
                id=template.id,
                name=template.name,
                days=sorted(template.weekdays, key=lambda day: day.index),
                recurrence_type=template.recurrence_type,
                start_time=template.start_time,
                end_time=template.end_time,
                class_id=template.class_id,
                room_number=template.room_number,
                first_shared_date=min(shared),
                shared_dates=len(shared),
                conflict_type=_conflict_type(template.class_id, class_id),
            )
        )

    if conflicts:
        logger.info(
            "template conflicts detected",
            extra={"class_id": class_id, "conflicting_templates": [c.id for c in conflicts]},
        )
    return conflicts


def weekday_names(days: Iterable[Weekday]) -> list[str]:
    return [day.value for day in sorted(set(days), key=lambda day: day.index)]

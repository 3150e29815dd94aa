"""Service for previewing and committing timetable template expansions."""
import logging
from datetime import date

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from school_timetable.config import settings
from school_timetable.models import RecordStatus, Timetable, TimetableTemplate, Weekday
from school_timetable.schemas.timetable_template import (
    DateRange,
    GenerationPreview,
    TemplateGenerateResponse,
    TemplatePreviewResponse,
    TemplateSummary,
)
from school_timetable.services.conflicts import find_timetable_conflicts_for_dates
from school_timetable.services.recurrence import RecurrenceRule

logger = logging.getLogger(__name__)


class TemplateNotFoundError(ValueError):
    """Raised when the requested template does not exist."""

    pass


class TemplateInactiveError(ValueError):
    """Raised when generating from a template that is not active."""

    pass


class NoRecurrenceDatesError(ValueError):
    """Raised when a template expands to no dates at all."""

    pass


async def get_template(session: AsyncSession, template_id: int, with_details: bool = False) -> TimetableTemplate:
    stmt = select(TimetableTemplate).where(TimetableTemplate.id == template_id)
    if with_details:
        stmt = stmt.options(
            selectinload(TimetableTemplate.branch),
            selectinload(TimetableTemplate.school_class),
            selectinload(TimetableTemplate.academic_year),
            selectinload(TimetableTemplate.subject),
            selectinload(TimetableTemplate.teacher),
        )
    result = await session.execute(stmt)
    template = result.scalar_one_or_none()
    if not template:
        raise TemplateNotFoundError(f"Timetable template {template_id} not found")
    return template


async def get_generated_dates(session: AsyncSession, template_id: int) -> set[date]:
    """Dates for which the template already has a timetable row."""
    stmt = select(Timetable.date).where(Timetable.timetable_template_id == template_id)
    result = await session.execute(stmt)
    return set(result.scalars().all())


async def _plan(session: AsyncSession, template: TimetableTemplate) -> tuple[list[date], set[date], dict]:
    dates = RecurrenceRule.from_template(template).dates()
    existing = await get_generated_dates(session, template.id)
    pending = [d for d in dates if d not in existing]
    conflicts = await find_timetable_conflicts_for_dates(
        session,
        pending,
        template.start_time,
        template.end_time,
        template.class_id,
        template.branch_id,
        template.room_number,
        exclude_template_id=template.id,
    )
    return dates, existing, conflicts


def _summary(template: TimetableTemplate) -> TemplateSummary:
    return TemplateSummary(
        id=template.id,
        name=template.name,
        branch=template.branch.short_name,
        class_name=template.school_class.name,
        academic_year=template.academic_year.name,
        subject=template.subject.name,
        teacher=template.teacher.full_name,
        days=sorted(template.weekdays, key=lambda day: day.index),
        start_time=template.start_time,
        end_time=template.end_time,
        room_number=template.room_number,
        building_name=template.building_name,
        recurrence_type=template.recurrence_type,
    )


async def preview_template_generation(
    session: AsyncSession,
    template_id: int,
    sample_size: int | None = None,
) -> TemplatePreviewResponse:
    """
    Expand a template and check each pending date for conflicts without writing anything.

    Args:
        session: Database session
        template_id: Timetable template ID
        sample_size: Number of sample dates to return (defaults to settings.preview_sample_size)

    Returns:
        Template summary with total, valid, conflicting and already generated counts
    """
    template = await get_template(session, template_id, with_details=True)
    dates, existing, conflicts = await _plan(session, template)
    pending_count = sum(1 for d in dates if d not in existing)
    sample_size = settings.preview_sample_size if sample_size is None else sample_size

    preview = GenerationPreview(
        total_dates=len(dates),
        valid_dates=pending_count - len(conflicts),
        conflicting_dates=len(conflicts),
        already_generated=len(dates) - pending_count,
        date_range=DateRange(start=template.start_date, end=template.end_date),
        sample_dates=dates[:sample_size],
        conflicts=sorted(conflicts),
    )
    return TemplatePreviewResponse(template=_summary(template), preview=preview)


async def generate_timetables_from_template(
    session: AsyncSession,
    template_id: int,
    force: bool = False,
) -> TemplateGenerateResponse:
    """
    Create timetable rows for every date of a template expansion that does not have one yet.

    Dates already generated from this template are skipped, so calling this again is a no-op
    for them. Conflicting dates are skipped unless force is set. All rows are written in one commit.

    Raises:
        TemplateNotFoundError: If the template does not exist
        TemplateInactiveError: If the template is not active
        NoRecurrenceDatesError: If the expansion contains no dates
    """
    template = await get_template(session, template_id)
    if template.status != RecordStatus.ACTIVE:
        raise TemplateInactiveError("Template is not active")

    dates, existing, conflicts = await _plan(session, template)
    if not dates:
        raise NoRecurrenceDatesError("No valid dates found for the specified criteria")

    skipped_existing = [d for d in dates if d in existing]
    skipped_conflicts: list[date] = []
    created: list[Timetable] = []
    for slot_date in dates:
        if slot_date in existing:
            continue
        if slot_date in conflicts and not force:
            skipped_conflicts.append(slot_date)
            continue
        created.append(
            Timetable(
                branch_id=template.branch_id,
                class_id=template.class_id,
                academic_year_id=template.academic_year_id,
                subject_id=template.subject_id,
                teacher_id=template.teacher_id,
                date=slot_date,
                day=Weekday.from_date(slot_date),
                start_time=template.start_time,
                end_time=template.end_time,
                room_number=template.room_number,
                building_name=template.building_name,
                status=RecordStatus.ACTIVE,
                timetable_template_id=template.id,
                is_recurring=True,
            )
        )

    session.add_all(created)
    await session.commit()

    logger.info(
        "timetables generated from template",
        extra={
            "template_id": template.id,
            "generated": len(created),
            "skipped_existing": len(skipped_existing),
            "skipped_conflicts": len(skipped_conflicts),
            "forced": force,
        },
    )

    if created:
        message = "Timetables generated successfully"
    else:
        message = "No new timetables to generate"
    return TemplateGenerateResponse(
        message=message,
        template_id=template.id,
        template_name=template.name,
        total_dates=len(dates),
        generated_count=len(created),
        skipped_existing=skipped_existing,
        skipped_conflicts=skipped_conflicts,
        date_range=DateRange(start=template.start_date, end=template.end_date),
    )

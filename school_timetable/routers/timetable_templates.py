import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Query, status
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from school_timetable.dependencies.database import DBSessionDep
from school_timetable.models import RecordStatus, Timetable, TimetableTemplate
from school_timetable.schemas.timetable_template import (
    TemplateGenerateRequest,
    TemplateGenerateResponse,
    TemplatePreviewResponse,
    TimetableTemplateCreate,
    TimetableTemplateListItem,
    TimetableTemplateResponse,
    TimetableTemplateUpdate,
)
from school_timetable.services.conflicts import (
    SchedulingConflictError,
    find_template_conflicts,
    weekday_names,
)
from school_timetable.services.recurrence import RecurrenceRule
from school_timetable.services.template_generation import (
    NoRecurrenceDatesError,
    TemplateInactiveError,
    TemplateNotFoundError,
    generate_timetables_from_template,
    preview_template_generation,
)
from school_timetable.utils import get_or_404, integrity_error_detail, validate_schedule_references

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/timetable-templates", tags=["timetable-templates"])


async def _check_template_conflicts(session: AsyncSession, template: TimetableTemplate) -> None:
    rule = RecurrenceRule.from_template(template)
    conflicts = await find_template_conflicts(
        session,
        rule,
        template.start_time,
        template.end_time,
        template.class_id,
        template.branch_id,
        template.academic_year_id,
        template.room_number,
        exclude_template_id=template.id,
    )
    if conflicts:
        raise SchedulingConflictError("Time conflict detected with existing template", conflicts)


@router.get("", response_model=list[TimetableTemplateListItem])
async def list_templates(
    session: DBSessionDep,
    branch_id: int | None = Query(None, ge=1),
    class_id: int | None = Query(None, ge=1),
    academic_year_id: int | None = Query(None, ge=1),
    teacher_id: int | None = Query(None, ge=1),
    status_filter: RecordStatus | None = Query(None, alias="status"),
) -> list[TimetableTemplateListItem]:
    """List timetable templates with the number of timetables each has generated."""
    timetable_count = (
        select(Timetable.timetable_template_id, func.count(Timetable.id).label("timetable_count"))
        .group_by(Timetable.timetable_template_id)
        .subquery()
    )
    stmt = select(TimetableTemplate, func.coalesce(timetable_count.c.timetable_count, 0)).outerjoin(
        timetable_count, timetable_count.c.timetable_template_id == TimetableTemplate.id
    )
    if branch_id is not None:
        stmt = stmt.where(TimetableTemplate.branch_id == branch_id)
    if class_id is not None:
        stmt = stmt.where(TimetableTemplate.class_id == class_id)
    if academic_year_id is not None:
        stmt = stmt.where(TimetableTemplate.academic_year_id == academic_year_id)
    if teacher_id is not None:
        stmt = stmt.where(TimetableTemplate.teacher_id == teacher_id)
    if status_filter is not None:
        stmt = stmt.where(TimetableTemplate.status == status_filter)

    result = await session.execute(stmt.order_by(TimetableTemplate.created_at.desc(), TimetableTemplate.id.desc()))
    items = []
    for template, count in result.all():
        item = TimetableTemplateListItem.model_validate(template)
        item.timetable_count = count
        items.append(item)
    return items


@router.post("", response_model=TimetableTemplateResponse, status_code=status.HTTP_201_CREATED)
async def create_template(
    template: TimetableTemplateCreate,
    session: DBSessionDep,
    force: bool = Query(False, description="Save even if the template collides with an existing one"),
) -> TimetableTemplateResponse:
    """Create a new timetable template."""
    await validate_schedule_references(
        session,
        template.branch_id,
        template.class_id,
        template.academic_year_id,
        template.subject_id,
        template.teacher_id,
    )

    data = template.model_dump()
    data["days"] = weekday_names(template.days)
    data["exclude_dates"] = [d.isoformat() for d in template.exclude_dates]
    db_template = TimetableTemplate(**data, status=RecordStatus.ACTIVE)

    if not force:
        await _check_template_conflicts(session, db_template)

    session.add(db_template)
    try:
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=integrity_error_detail(e, "Template already exists", "Failed to create timetable template"),
        )
    await session.refresh(db_template)
    logger.info("timetable template created", extra={"template_id": db_template.id, "forced": force})
    return TimetableTemplateResponse.model_validate(db_template)


@router.get("/{template_id}", response_model=TimetableTemplateResponse)
async def get_template(template_id: int, session: DBSessionDep) -> TimetableTemplateResponse:
    """Get timetable template details."""
    template = await get_or_404(session, TimetableTemplate, template_id, "Timetable template")
    return TimetableTemplateResponse.model_validate(template)


@router.put("/{template_id}", response_model=TimetableTemplateResponse)
async def update_template(
    template_id: int,
    template_update: TimetableTemplateUpdate,
    session: DBSessionDep,
    force: bool = Query(False, description="Save even if the template collides with an existing one"),
) -> TimetableTemplateResponse:
    """Update a timetable template. Already generated timetables are left untouched."""
    template = await get_or_404(session, TimetableTemplate, template_id, "Timetable template")

    updates = template_update.model_dump(exclude_unset=True)
    if "subject_id" in updates or "teacher_id" in updates:
        await validate_schedule_references(
            session,
            template.branch_id,
            template.class_id,
            template.academic_year_id,
            updates.get("subject_id"),
            updates.get("teacher_id"),
        )
    for field, value in updates.items():
        if value is None and field != "building_name":
            continue
        if field == "days":
            value = weekday_names(value)
        elif field == "exclude_dates":
            value = [d.isoformat() for d in value]
        setattr(template, field, value)

    if template.end_time <= template.start_time:
        await session.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="End time must be after start time")
    if template.end_date < template.start_date:
        await session.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="End date cannot be before start date")

    if not force and template.status == RecordStatus.ACTIVE:
        try:
            await _check_template_conflicts(session, template)
        except SchedulingConflictError:
            await session.rollback()
            raise

    await session.commit()
    await session.refresh(template)
    return TimetableTemplateResponse.model_validate(template)


@router.delete("/{template_id}", status_code=status.HTTP_200_OK)
async def delete_template(template_id: int, session: DBSessionDep) -> dict[str, Any]:
    """Delete a template, or deactivate it when it has already generated timetables."""
    template = await get_or_404(session, TimetableTemplate, template_id, "Timetable template")

    count_result = await session.execute(
        select(func.count(Timetable.id)).where(Timetable.timetable_template_id == template_id)
    )
    timetable_count = count_result.scalar() or 0

    if timetable_count > 0:
        template.status = RecordStatus.INACTIVE
        await session.commit()
        return {
            "success": True,
            "deactivated": True,
            "message": f"Template has {timetable_count} generated timetable(s) and was deactivated",
        }

    await session.delete(template)
    await session.commit()
    return {"success": True, "deactivated": False, "message": "Template deleted"}


@router.get("/{template_id}/preview", response_model=TemplatePreviewResponse)
async def preview_template(template_id: int, session: DBSessionDep) -> TemplatePreviewResponse:
    """Preview the dates a template would generate and which of them conflict."""
    try:
        return await preview_template_generation(session, template_id)
    except TemplateNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.post(
    "/{template_id}/generate",
    response_model=TemplateGenerateResponse,
    status_code=status.HTTP_201_CREATED,
)
async def generate_template(
    template_id: int,
    session: DBSessionDep,
    payload: TemplateGenerateRequest | None = None,
) -> TemplateGenerateResponse:
    """Generate timetables from a template, skipping dates that were already generated."""
    force = payload.force if payload else False
    try:
        return await generate_timetables_from_template(session, template_id, force=force)
    except TemplateNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except (TemplateInactiveError, NoRecurrenceDatesError) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except IntegrityError:
        await session.rollback()
        logger.warning("concurrent template generation detected", extra={"template_id": template_id})
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Timetables for this template were generated concurrently, please retry",
        )

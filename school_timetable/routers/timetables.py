import logging
from datetime import date, time
from typing import Any

from fastapi import APIRouter, File, HTTPException, Query, UploadFile, status
from fastapi.responses import StreamingResponse
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from school_timetable.config import settings
from school_timetable.dependencies.database import DBSessionDep
from school_timetable.models import (
    AcademicYear,
    Branch,
    RecordStatus,
    SchoolClass,
    Subject,
    Teacher,
    Timetable,
    Weekday,
)
from school_timetable.schemas.timetable import (
    TimetableBulkUploadError,
    TimetableBulkUploadResponse,
    TimetableCreate,
    TimetableDateFilter,
    TimetableListResponse,
    TimetableResponse,
    TimetableUpdate,
)
from school_timetable.services.conflicts import (
    SchedulingConflictError,
    find_timetable_conflicts,
    intervals_overlap,
    normalize_room,
)
from school_timetable.services.recurrence import date_window
from school_timetable.services.timetable_upload import (
    TimetableRowError,
    TimetableUploadParseError,
    TimetableUploadValidationError,
    generate_timetable_template,
    parse_timetable_row,
    parse_upload_file,
    validate_required_columns,
)
from school_timetable.utils import get_or_404, integrity_error_detail, validate_schedule_references

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/timetables", tags=["timetables"])


@router.get("", response_model=TimetableListResponse)
async def list_timetables(
    session: DBSessionDep,
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=500),
    branch_id: int | None = Query(None, ge=1),
    class_id: int | None = Query(None, ge=1),
    academic_year_id: int | None = Query(None, ge=1),
    subject_id: int | None = Query(None, ge=1),
    teacher_id: int | None = Query(None, ge=1),
    template_id: int | None = Query(None, ge=1),
    status_filter: RecordStatus | None = Query(None, alias="status"),
    filter_type: TimetableDateFilter | None = Query(None, description="Date window: day, week, month or year"),
    anchor_date: date | None = Query(None, alias="date", description="Date the window is built around"),
) -> TimetableListResponse:
    """List timetables with pagination, reference filters and an optional date window."""
    filters = []
    if branch_id is not None:
        filters.append(Timetable.branch_id == branch_id)
    if class_id is not None:
        filters.append(Timetable.class_id == class_id)
    if academic_year_id is not None:
        filters.append(Timetable.academic_year_id == academic_year_id)
    if subject_id is not None:
        filters.append(Timetable.subject_id == subject_id)
    if teacher_id is not None:
        filters.append(Timetable.teacher_id == teacher_id)
    if template_id is not None:
        filters.append(Timetable.timetable_template_id == template_id)
    if status_filter is not None:
        filters.append(Timetable.status == status_filter)
    if filter_type is not None:
        if anchor_date is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="date is required when filter_type is set",
            )
        first, last = date_window(filter_type.value, anchor_date)
        filters.append(Timetable.date.between(first, last))

    count_result = await session.execute(select(func.count(Timetable.id)).where(*filters))
    total = count_result.scalar() or 0

    offset = (page - 1) * page_size
    stmt = (
        select(Timetable)
        .where(*filters)
        .order_by(Timetable.date, Timetable.start_time, Timetable.id)
        .offset(offset)
        .limit(page_size)
    )
    result = await session.execute(stmt)
    timetables = result.scalars().all()

    total_pages = (total + page_size - 1) // page_size if total > 0 else 0

    return TimetableListResponse(
        items=[TimetableResponse.model_validate(t) for t in timetables],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=total_pages,
    )


@router.post("", response_model=TimetableResponse, status_code=status.HTTP_201_CREATED)
async def create_timetable(
    timetable: TimetableCreate,
    session: DBSessionDep,
    force: bool = Query(False, description="Save even if the session conflicts with existing ones"),
) -> TimetableResponse:
    """Create a single timetable session."""
    await validate_schedule_references(
        session,
        timetable.branch_id,
        timetable.class_id,
        timetable.academic_year_id,
        timetable.subject_id,
        timetable.teacher_id,
    )

    if not force and timetable.status == RecordStatus.ACTIVE:
        conflicts = await find_timetable_conflicts(
            session,
            timetable.date,
            timetable.start_time,
            timetable.end_time,
            timetable.class_id,
            timetable.branch_id,
            timetable.room_number,
        )
        if conflicts:
            raise SchedulingConflictError("Time conflicts detected", conflicts)

    db_timetable = Timetable(
        **timetable.model_dump(),
        day=Weekday.from_date(timetable.date),
        is_recurring=False,
    )
    session.add(db_timetable)
    try:
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=integrity_error_detail(e, "Timetable already exists", "Failed to create timetable"),
        )
    await session.refresh(db_timetable)
    return TimetableResponse.model_validate(db_timetable)


@router.post("/bulk-upload", response_model=TimetableBulkUploadResponse, status_code=status.HTTP_200_OK)
async def bulk_upload_timetables(
    session: DBSessionDep,
    file: UploadFile = File(...),
) -> TimetableBulkUploadResponse:
    """Bulk upload timetable sessions from a CSV or Excel file; invalid rows are reported, valid rows saved."""
    contents = await file.read()
    if len(contents) > settings.upload_max_size:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"File exceeds the maximum upload size of {settings.upload_max_size} bytes",
        )

    try:
        df = parse_upload_file(contents, file.filename or "")
        validate_required_columns(df)
    except (TimetableUploadParseError, TimetableUploadValidationError) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    branch_ids = set((await session.execute(select(Branch.id))).scalars().all())
    academic_year_ids = set((await session.execute(select(AcademicYear.id))).scalars().all())
    subject_ids = set((await session.execute(select(Subject.id))).scalars().all())
    teacher_ids = set((await session.execute(select(Teacher.id))).scalars().all())
    class_rows = await session.execute(select(SchoolClass.id, SchoolClass.branch_id, SchoolClass.academic_year_id))
    classes = {class_id: (branch_id, year_id) for class_id, branch_id, year_id in class_rows.all()}

    accepted: list[dict[str, Any]] = []
    errors: list[TimetableBulkUploadError] = []

    for row_number, (_, row) in enumerate(df.iterrows(), start=2):  # Row 1 is the header
        try:
            data = parse_timetable_row(row)

            for field, known in (
                ("branch_id", branch_ids),
                ("academic_year_id", academic_year_ids),
                ("subject_id", subject_ids),
                ("teacher_id", teacher_ids),
            ):
                if data[field] not in known:
                    raise TimetableRowError(f"{field} {data[field]} does not exist", field)
            if data["class_id"] not in classes:
                raise TimetableRowError(f"class_id {data['class_id']} does not exist", "class_id")
            if classes[data["class_id"]] != (data["branch_id"], data["academic_year_id"]):
                raise TimetableRowError("Class does not belong to the given branch and academic year", "class_id")

            if data["status"] == RecordStatus.ACTIVE:
                _check_against_accepted(data, accepted)
                conflicts = await find_timetable_conflicts(
                    session,
                    data["date"],
                    data["start_time"],
                    data["end_time"],
                    data["class_id"],
                    data["branch_id"],
                    data["room_number"],
                )
                if conflicts:
                    raise TimetableRowError(f"Conflicts with existing session: {conflicts[0].label}")

            accepted.append(data)
        except TimetableRowError as e:
            errors.append(TimetableBulkUploadError(row_number=row_number, error_message=str(e), field=e.field))

    session.add_all(
        Timetable(**data, day=Weekday.from_date(data["date"]), is_recurring=False) for data in accepted
    )
    try:
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=integrity_error_detail(e, "Duplicate timetable rows", "Error committing timetables"),
        )

    logger.info(
        "timetable bulk upload processed",
        extra={"upload_filename": file.filename, "rows": len(df), "successful": len(accepted), "failed": len(errors)},
    )
    return TimetableBulkUploadResponse(
        total_rows=len(df),
        successful=len(accepted),
        failed=len(errors),
        errors=errors,
    )


@router.get("/bulk-upload/template")
async def download_timetable_template() -> StreamingResponse:
    """Download Excel template for timetable upload."""
    template_bytes = generate_timetable_template()
    return StreamingResponse(
        iter([template_bytes]),
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": "attachment; filename=timetable_upload_template.xlsx"},
    )


def _check_against_accepted(data: dict[str, Any], accepted: list[dict[str, Any]]) -> None:
    room = normalize_room(data["room_number"])
    for other in accepted:
        if other["status"] != RecordStatus.ACTIVE or other["date"] != data["date"]:
            continue
        same_class = other["class_id"] == data["class_id"]
        same_room = room is not None and other["branch_id"] == data["branch_id"] and normalize_room(other["room_number"]) == room
        if (same_class or same_room) and intervals_overlap(
            other["start_time"], other["end_time"], data["start_time"], data["end_time"]
        ):
            raise TimetableRowError("Conflicts with an earlier row in the same file")


@router.get("/{timetable_id}", response_model=TimetableResponse)
async def get_timetable(timetable_id: int, session: DBSessionDep) -> TimetableResponse:
    """Get timetable session details."""
    timetable = await get_or_404(session, Timetable, timetable_id, "Timetable")
    return TimetableResponse.model_validate(timetable)


@router.put("/{timetable_id}", response_model=TimetableResponse)
async def update_timetable(
    timetable_id: int,
    timetable_update: TimetableUpdate,
    session: DBSessionDep,
    force: bool = Query(False, description="Save even if the session conflicts with existing ones"),
) -> TimetableResponse:
    """Update a timetable session, re-checking conflicts for its new slot."""
    timetable = await get_or_404(session, Timetable, timetable_id, "Timetable")

    updates = timetable_update.model_dump(exclude_unset=True)
    if "subject_id" in updates or "teacher_id" in updates:
        await validate_schedule_references(
            session,
            timetable.branch_id,
            timetable.class_id,
            timetable.academic_year_id,
            updates.get("subject_id"),
            updates.get("teacher_id"),
        )

    new_date: date = updates.get("date") or timetable.date
    new_start: time = updates.get("start_time") or timetable.start_time
    new_end: time = updates.get("end_time") or timetable.end_time
    new_room: str = updates.get("room_number") or timetable.room_number
    new_status: RecordStatus = updates.get("status") or timetable.status
    if new_end <= new_start:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="End time must be after start time")

    if not force and new_status == RecordStatus.ACTIVE:
        conflicts = await find_timetable_conflicts(
            session,
            new_date,
            new_start,
            new_end,
            timetable.class_id,
            timetable.branch_id,
            new_room,
            exclude_id=timetable.id,
        )
        if conflicts:
            raise SchedulingConflictError("Time conflicts detected", conflicts)

    for field, value in updates.items():
        if value is None and field != "building_name":
            continue
        setattr(timetable, field, value)
    timetable.day = Weekday.from_date(timetable.date)

    try:
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=integrity_error_detail(
                e, "The template already has a session on this date", "Failed to update timetable"
            ),
        )
    await session.refresh(timetable)
    return TimetableResponse.model_validate(timetable)


@router.delete("/{timetable_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_timetable(timetable_id: int, session: DBSessionDep) -> None:
    """Delete a timetable session."""
    timetable = await get_or_404(session, Timetable, timetable_id, "Timetable")
    await session.delete(timetable)
    await session.commit()

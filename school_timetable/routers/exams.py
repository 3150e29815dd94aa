import logging
from datetime import date

from fastapi import APIRouter, HTTPException, Query, status
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from school_timetable.dependencies.database import DBSessionDep
from school_timetable.models import Exam, ExamStatus
from school_timetable.schemas.conflict import ConflictCheckResponse, ExamConflictCheck
from school_timetable.schemas.exam import ExamCreate, ExamListResponse, ExamResponse, ExamUpdate
from school_timetable.services.conflicts import SchedulingConflictError, find_exam_conflicts
from school_timetable.utils import get_or_404, integrity_error_detail, validate_schedule_references

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/exams", tags=["exams"])


@router.post("/check-conflicts", response_model=ConflictCheckResponse)
async def check_exam_conflicts(check: ExamConflictCheck, session: DBSessionDep) -> ConflictCheckResponse:
    """Report exams that would collide with the given slot, without saving anything."""
    conflicts = await find_exam_conflicts(
        session,
        check.date,
        check.start_time,
        check.end_time,
        check.class_id,
        check.branch_id,
        check.room_number,
        exclude_exam_id=check.exclude_exam_id,
    )
    return ConflictCheckResponse(has_conflicts=bool(conflicts), conflicts=conflicts)


@router.get("", response_model=ExamListResponse)
async def list_exams(
    session: DBSessionDep,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    branch_id: int | None = Query(None, ge=1),
    class_id: int | None = Query(None, ge=1),
    academic_year_id: int | None = Query(None, ge=1),
    subject_id: int | None = Query(None, ge=1),
    status_filter: ExamStatus | None = Query(None, alias="status"),
    date_from: date | None = Query(None),
    date_to: date | None = Query(None),
) -> ExamListResponse:
    """List exams with pagination and filters."""
    filters = []
    if branch_id is not None:
        filters.append(Exam.branch_id == branch_id)
    if class_id is not None:
        filters.append(Exam.class_id == class_id)
    if academic_year_id is not None:
        filters.append(Exam.academic_year_id == academic_year_id)
    if subject_id is not None:
        filters.append(Exam.subject_id == subject_id)
    if status_filter is not None:
        filters.append(Exam.status == status_filter)
    if date_from is not None:
        filters.append(Exam.date >= date_from)
    if date_to is not None:
        filters.append(Exam.date <= date_to)

    count_result = await session.execute(select(func.count(Exam.id)).where(*filters))
    total = count_result.scalar() or 0

    offset = (page - 1) * page_size
    stmt = select(Exam).where(*filters).order_by(Exam.date, Exam.start_time, Exam.id).offset(offset).limit(page_size)
    result = await session.execute(stmt)
    exams = result.scalars().all()

    total_pages = (total + page_size - 1) // page_size if total > 0 else 0

    return ExamListResponse(
        items=[ExamResponse.model_validate(exam) for exam in exams],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=total_pages,
    )


@router.post("", response_model=ExamResponse, status_code=status.HTTP_201_CREATED)
async def create_exam(
    exam: ExamCreate,
    session: DBSessionDep,
    force: bool = Query(False, description="Save even if the exam collides with existing ones"),
) -> ExamResponse:
    """Schedule a new exam."""
    await validate_schedule_references(
        session, exam.branch_id, exam.class_id, exam.academic_year_id, exam.subject_id, exam.teacher_id
    )

    if not force and exam.status != ExamStatus.CANCELLED:
        conflicts = await find_exam_conflicts(
            session, exam.date, exam.start_time, exam.end_time, exam.class_id, exam.branch_id, exam.room_number
        )
        if conflicts:
            raise SchedulingConflictError("Exam conflicts detected", conflicts)

    db_exam = Exam(**exam.model_dump())
    session.add(db_exam)
    try:
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=integrity_error_detail(e, "Exam already exists", "Failed to create exam"),
        )
    await session.refresh(db_exam)
    logger.info("exam scheduled", extra={"exam_id": db_exam.id, "forced": force})
    return ExamResponse.model_validate(db_exam)


@router.get("/{exam_id}", response_model=ExamResponse)
async def get_exam(exam_id: int, session: DBSessionDep) -> ExamResponse:
    """Get exam details."""
    exam = await get_or_404(session, Exam, exam_id, "Exam")
    return ExamResponse.model_validate(exam)


@router.put("/{exam_id}", response_model=ExamResponse)
async def update_exam(
    exam_id: int,
    exam_update: ExamUpdate,
    session: DBSessionDep,
    force: bool = Query(False, description="Save even if the exam collides with existing ones"),
) -> ExamResponse:
    """Update an exam. The exam itself is ignored by the conflict check."""
    exam = await get_or_404(session, Exam, exam_id, "Exam")
    await validate_schedule_references(
        session,
        exam_update.branch_id,
        exam_update.class_id,
        exam_update.academic_year_id,
        exam_update.subject_id,
        exam_update.teacher_id,
    )

    if not force and exam_update.status != ExamStatus.CANCELLED:
        conflicts = await find_exam_conflicts(
            session,
            exam_update.date,
            exam_update.start_time,
            exam_update.end_time,
            exam_update.class_id,
            exam_update.branch_id,
            exam_update.room_number,
            exclude_exam_id=exam.id,
        )
        if conflicts:
            raise SchedulingConflictError("Exam conflicts detected", conflicts)

    for field, value in exam_update.model_dump().items():
        setattr(exam, field, value)

    try:
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=integrity_error_detail(e, "Exam already exists", "Failed to update exam"),
        )
    await session.refresh(exam)
    return ExamResponse.model_validate(exam)


@router.delete("/{exam_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_exam(exam_id: int, session: DBSessionDep) -> None:
    """Delete an exam."""
    exam = await get_or_404(session, Exam, exam_id, "Exam")
    await session.delete(exam)
    await session.commit()

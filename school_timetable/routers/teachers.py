from fastapi import APIRouter, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from school_timetable.dependencies.database import DBSessionDep
from school_timetable.models import Branch, Teacher
from school_timetable.schemas.reference import TeacherCreate, TeacherResponse
from school_timetable.utils import get_or_404, integrity_error_detail

router = APIRouter(prefix="/api/v1/teachers", tags=["teachers"])


@router.post("", response_model=TeacherResponse, status_code=status.HTTP_201_CREATED)
async def create_teacher(teacher: TeacherCreate, session: DBSessionDep) -> TeacherResponse:
    """Create a new teacher."""
    if teacher.branch_id is not None:
        await get_or_404(session, Branch, teacher.branch_id, "Branch")

    db_teacher = Teacher(**teacher.model_dump())
    session.add(db_teacher)
    try:
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=integrity_error_detail(
                e, f"Teacher with email '{teacher.email}' already exists", "Failed to create teacher"
            ),
        )
    await session.refresh(db_teacher)
    return TeacherResponse.model_validate(db_teacher)


@router.get("", response_model=list[TeacherResponse])
async def list_teachers(session: DBSessionDep, branch_id: int | None = Query(None, ge=1)) -> list[TeacherResponse]:
    """List teachers with an optional branch filter."""
    stmt = select(Teacher).order_by(Teacher.last_name, Teacher.first_name)
    if branch_id is not None:
        stmt = stmt.where(Teacher.branch_id == branch_id)
    result = await session.execute(stmt)
    return [TeacherResponse.model_validate(teacher) for teacher in result.scalars().all()]


@router.get("/{teacher_id}", response_model=TeacherResponse)
async def get_teacher(teacher_id: int, session: DBSessionDep) -> TeacherResponse:
    """Get teacher details."""
    teacher = await get_or_404(session, Teacher, teacher_id, "Teacher")
    return TeacherResponse.model_validate(teacher)

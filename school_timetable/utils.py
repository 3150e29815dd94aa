from typing import Any

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from school_timetable.models import AcademicYear, Branch, SchoolClass, Subject, Teacher


async def get_or_404(session: AsyncSession, model: Any, record_id: int, label: str) -> Any:
    """Load a row by primary key or raise a 404 naming the entity."""
    result = await session.execute(select(model).where(model.id == record_id))
    record = result.scalar_one_or_none()
    if not record:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{label} with id {record_id} not found")
    return record


def integrity_error_detail(e: IntegrityError, duplicate_message: str, fallback_message: str) -> str:
    """Pick a user-facing message for a unique or foreign key violation."""
    error_str = str(e.orig) if hasattr(e, "orig") else str(e)
    lowered = error_str.lower()
    if "unique constraint" in lowered or "duplicate" in lowered or "uq_" in lowered:
        return duplicate_message
    if "foreign key" in lowered:
        return f"{fallback_message}: a referenced record does not exist"
    return fallback_message


async def validate_schedule_references(
    session: AsyncSession,
    branch_id: int,
    class_id: int,
    academic_year_id: int,
    subject_id: int | None,
    teacher_id: int | None,
) -> None:
    """Check that every referenced row exists and that the class belongs to the branch and academic year."""
    await get_or_404(session, Branch, branch_id, "Branch")
    await get_or_404(session, AcademicYear, academic_year_id, "Academic year")
    school_class = await get_or_404(session, SchoolClass, class_id, "Class")
    if school_class.branch_id != branch_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Class {class_id} does not belong to branch {branch_id}",
        )
    if school_class.academic_year_id != academic_year_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Class {class_id} does not belong to academic year {academic_year_id}",
        )
    if subject_id is not None:
        await get_or_404(session, Subject, subject_id, "Subject")
    if teacher_id is not None:
        await get_or_404(session, Teacher, teacher_id, "Teacher")

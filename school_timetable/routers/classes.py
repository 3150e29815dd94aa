from fastapi import APIRouter, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from school_timetable.dependencies.database import DBSessionDep
from school_timetable.models import AcademicYear, Branch, SchoolClass
from school_timetable.schemas.reference import SchoolClassCreate, SchoolClassResponse
from school_timetable.utils import get_or_404, integrity_error_detail

router = APIRouter(prefix="/api/v1/classes", tags=["classes"])


@router.post("", response_model=SchoolClassResponse, status_code=status.HTTP_201_CREATED)
async def create_class(school_class: SchoolClassCreate, session: DBSessionDep) -> SchoolClassResponse:
    """Create a class within a branch and academic year."""
    await get_or_404(session, Branch, school_class.branch_id, "Branch")
    await get_or_404(session, AcademicYear, school_class.academic_year_id, "Academic year")

    db_class = SchoolClass(**school_class.model_dump())
    session.add(db_class)
    try:
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=integrity_error_detail(
                e,
                f"Class '{school_class.name}' already exists for this branch and academic year",
                "Failed to create class",
            ),
        )
    await session.refresh(db_class)
    return SchoolClassResponse.model_validate(db_class)


@router.get("", response_model=list[SchoolClassResponse])
async def list_classes(
    session: DBSessionDep,
    branch_id: int | None = Query(None, ge=1),
    academic_year_id: int | None = Query(None, ge=1),
) -> list[SchoolClassResponse]:
    """List classes with optional branch and academic year filters."""
    stmt = select(SchoolClass).order_by(SchoolClass.name)
    if branch_id is not None:
        stmt = stmt.where(SchoolClass.branch_id == branch_id)
    if academic_year_id is not None:
        stmt = stmt.where(SchoolClass.academic_year_id == academic_year_id)
    result = await session.execute(stmt)
    return [SchoolClassResponse.model_validate(c) for c in result.scalars().all()]


@router.get("/{class_id}", response_model=SchoolClassResponse)
async def get_class(class_id: int, session: DBSessionDep) -> SchoolClassResponse:
    """Get class details."""
    school_class = await get_or_404(session, SchoolClass, class_id, "Class")
    return SchoolClassResponse.model_validate(school_class)

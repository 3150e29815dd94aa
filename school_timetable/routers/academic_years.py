from fastapi import APIRouter, HTTPException, status
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from school_timetable.dependencies.database import DBSessionDep
from school_timetable.models import AcademicYear
from school_timetable.schemas.reference import AcademicYearCreate, AcademicYearResponse
from school_timetable.utils import get_or_404, integrity_error_detail

router = APIRouter(prefix="/api/v1/academic-years", tags=["academic-years"])


@router.post("", response_model=AcademicYearResponse, status_code=status.HTTP_201_CREATED)
async def create_academic_year(academic_year: AcademicYearCreate, session: DBSessionDep) -> AcademicYearResponse:
    """Create an academic year. Marking it current clears the flag on every other year."""
    if academic_year.is_current:
        await session.execute(update(AcademicYear).values(is_current=False))

    db_year = AcademicYear(**academic_year.model_dump())
    session.add(db_year)
    try:
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=integrity_error_detail(
                e, f"Academic year '{academic_year.name}' already exists", "Failed to create academic year"
            ),
        )
    await session.refresh(db_year)
    return AcademicYearResponse.model_validate(db_year)


@router.get("", response_model=list[AcademicYearResponse])
async def list_academic_years(session: DBSessionDep) -> list[AcademicYearResponse]:
    """List academic years, most recent first."""
    result = await session.execute(select(AcademicYear).order_by(AcademicYear.start_date.desc()))
    return [AcademicYearResponse.model_validate(year) for year in result.scalars().all()]


@router.get("/{academic_year_id}", response_model=AcademicYearResponse)
async def get_academic_year(academic_year_id: int, session: DBSessionDep) -> AcademicYearResponse:
    """Get academic year details."""
    academic_year = await get_or_404(session, AcademicYear, academic_year_id, "Academic year")
    return AcademicYearResponse.model_validate(academic_year)

from fastapi import APIRouter, HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from school_timetable.dependencies.database import DBSessionDep
from school_timetable.models import Subject
from school_timetable.schemas.reference import SubjectCreate, SubjectResponse
from school_timetable.utils import get_or_404, integrity_error_detail

router = APIRouter(prefix="/api/v1/subjects", tags=["subjects"])


@router.post("", response_model=SubjectResponse, status_code=status.HTTP_201_CREATED)
async def create_subject(subject: SubjectCreate, session: DBSessionDep) -> SubjectResponse:
    """Create a new subject."""
    db_subject = Subject(**subject.model_dump())
    session.add(db_subject)
    try:
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=integrity_error_detail(
                e, f"Subject with code '{subject.code}' already exists", "Failed to create subject"
            ),
        )
    await session.refresh(db_subject)
    return SubjectResponse.model_validate(db_subject)


@router.get("", response_model=list[SubjectResponse])
async def list_subjects(session: DBSessionDep) -> list[SubjectResponse]:
    """List subjects."""
    result = await session.execute(select(Subject).order_by(Subject.code))
    return [SubjectResponse.model_validate(subject) for subject in result.scalars().all()]


@router.get("/{subject_id}", response_model=SubjectResponse)
async def get_subject(subject_id: int, session: DBSessionDep) -> SubjectResponse:
    """Get subject details."""
    subject = await get_or_404(session, Subject, subject_id, "Subject")
    return SubjectResponse.model_validate(subject)

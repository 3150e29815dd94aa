from fastapi import APIRouter, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from school_timetable.dependencies.database import DBSessionDep
from school_timetable.models import Branch, RecordStatus
from school_timetable.schemas.reference import BranchCreate, BranchResponse
from school_timetable.utils import get_or_404, integrity_error_detail

router = APIRouter(prefix="/api/v1/branches", tags=["branches"])


@router.post("", response_model=BranchResponse, status_code=status.HTTP_201_CREATED)
async def create_branch(branch: BranchCreate, session: DBSessionDep) -> BranchResponse:
    """Create a new branch."""
    db_branch = Branch(**branch.model_dump())
    session.add(db_branch)
    try:
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=integrity_error_detail(
                e, f"Branch with short name '{branch.short_name}' already exists", "Failed to create branch"
            ),
        )
    await session.refresh(db_branch)
    return BranchResponse.model_validate(db_branch)


@router.get("", response_model=list[BranchResponse])
async def list_branches(
    session: DBSessionDep,
    status_filter: RecordStatus | None = Query(None, alias="status"),
) -> list[BranchResponse]:
    """List branches, optionally filtered by status."""
    stmt = select(Branch).order_by(Branch.name)
    if status_filter is not None:
        stmt = stmt.where(Branch.status == status_filter)
    result = await session.execute(stmt)
    return [BranchResponse.model_validate(branch) for branch in result.scalars().all()]


@router.get("/{branch_id}", response_model=BranchResponse)
async def get_branch(branch_id: int, session: DBSessionDep) -> BranchResponse:
    """Get branch details."""
    branch = await get_or_404(session, Branch, branch_id, "Branch")
    return BranchResponse.model_validate(branch)

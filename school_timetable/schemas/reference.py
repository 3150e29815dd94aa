from datetime import date, datetime

from pydantic import BaseModel, EmailStr, Field, model_validator

from school_timetable.models import RecordStatus


class BranchCreate(BaseModel):
    """Schema for creating a branch."""

    name: str = Field(..., min_length=1, max_length=255)
    short_name: str = Field(..., min_length=1, max_length=50)
    status: RecordStatus = RecordStatus.ACTIVE


class BranchResponse(BranchCreate):
    """Schema for branch response."""

    id: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class AcademicYearCreate(BaseModel):
    """Schema for creating an academic year."""

    name: str = Field(..., min_length=1, max_length=50)
    start_date: date
    end_date: date
    is_current: bool = False

    @model_validator(mode="after")
    def validate_dates(self) -> "AcademicYearCreate":
        if self.end_date <= self.start_date:
            raise ValueError("End date must be after start date")
        return self


class AcademicYearResponse(AcademicYearCreate):
    """Schema for academic year response."""

    id: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class SchoolClassCreate(BaseModel):
    """Schema for creating a class."""

    name: str = Field(..., min_length=1, max_length=100)
    branch_id: int = Field(..., ge=1)
    academic_year_id: int = Field(..., ge=1)
    capacity: int | None = Field(None, ge=1)


class SchoolClassResponse(SchoolClassCreate):
    """Schema for class response."""

    id: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class SubjectCreate(BaseModel):
    """Schema for creating a subject."""

    code: str = Field(..., min_length=1, max_length=20)
    name: str = Field(..., min_length=1, max_length=255)


class SubjectResponse(SubjectCreate):
    """Schema for subject response."""

    id: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class TeacherCreate(BaseModel):
    """Schema for creating a teacher."""

    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    branch_id: int | None = Field(None, ge=1)


class TeacherResponse(TeacherCreate):
    """Schema for teacher response."""

    id: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

from datetime import date, datetime, time

from pydantic import BaseModel, Field, field_validator, model_validator

from school_timetable.models import ExamStatus


class ExamBase(BaseModel):
    """Base exam schema."""

    name: str = Field(..., min_length=3, max_length=200)
    date: date
    start_time: time
    end_time: time
    room_number: str = Field(..., min_length=1, max_length=50)
    full_marks: int = Field(..., ge=1, le=1000)
    passing_marks: int = Field(..., ge=0)
    status: ExamStatus = ExamStatus.SCHEDULED
    branch_id: int = Field(..., ge=1)
    academic_year_id: int = Field(..., ge=1)
    class_id: int = Field(..., ge=1)
    subject_id: int | None = Field(None, ge=1)
    teacher_id: int | None = Field(None, ge=1)

    @field_validator("room_number", mode="before")
    @classmethod
    def strip_room_number(cls, v: str | None) -> str | None:
        """Trim surrounding whitespace; a blank room then fails the length check."""
        if isinstance(v, str):
            return v.strip()
        return v

    @model_validator(mode="after")
    def validate_exam(self) -> "ExamBase":
        if self.passing_marks > self.full_marks:
            raise ValueError("Passing marks cannot be greater than full marks")
        if self.end_time <= self.start_time:
            raise ValueError("End time must be after start time")
        return self


class ExamCreate(ExamBase):
    """Schema for creating an exam."""

    pass


class ExamUpdate(ExamBase):
    """Schema for updating an exam; the full slot is resubmitted so it can be re-checked."""

    pass


class ExamResponse(ExamBase):
    """Schema for exam response."""

    id: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ExamListResponse(BaseModel):
    """Schema for paginated exam list."""

    items: list[ExamResponse]
    total: int
    page: int = Field(ge=1)
    page_size: int = Field(ge=1, le=100)
    total_pages: int

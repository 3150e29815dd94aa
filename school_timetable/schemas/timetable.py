import datetime as dt
from datetime import date, datetime, time
from enum import Enum

from pydantic import BaseModel, Field, field_validator, model_validator

from school_timetable.models import RecordStatus, Weekday


class TimetableDateFilter(str, Enum):
    """Enum for timetable list date windows."""

    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


class TimetableBase(BaseModel):
    """Base timetable schema."""

    branch_id: int = Field(..., ge=1)
    class_id: int = Field(..., ge=1)
    academic_year_id: int = Field(..., ge=1)
    subject_id: int = Field(..., ge=1)
    teacher_id: int = Field(..., ge=1)
    date: date
    start_time: time
    end_time: time
    room_number: str = Field(..., min_length=1, max_length=50)
    building_name: str | None = Field(None, max_length=100)
    status: RecordStatus = RecordStatus.ACTIVE

    @field_validator("room_number", mode="before")
    @classmethod
    def strip_room_number(cls, v: str | None) -> str | None:
        """Trim surrounding whitespace; a blank room then fails the length check."""
        if isinstance(v, str):
            return v.strip()
        return v

    @model_validator(mode="after")
    def validate_times(self) -> "TimetableBase":
        if self.end_time <= self.start_time:
            raise ValueError("End time must be after start time")
        return self


class TimetableCreate(TimetableBase):
    """Schema for creating a single timetable session."""

    pass


class TimetableUpdate(BaseModel):
    """Schema for updating a timetable session."""

    subject_id: int | None = Field(None, ge=1)
    teacher_id: int | None = Field(None, ge=1)
    date: dt.date | None = None
    start_time: time | None = None
    end_time: time | None = None
    room_number: str | None = Field(None, min_length=1, max_length=50)
    building_name: str | None = Field(None, max_length=100)
    status: RecordStatus | None = None

    @field_validator("room_number", mode="before")
    @classmethod
    def strip_room_number(cls, v: str | None) -> str | None:
        if isinstance(v, str):
            return v.strip()
        return v


class TimetableResponse(TimetableBase):
    """Schema for timetable response."""

    id: int
    day: Weekday
    timetable_template_id: int | None = None
    is_recurring: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class TimetableListResponse(BaseModel):
    """Schema for paginated timetable list."""

    items: list[TimetableResponse]
    total: int
    page: int = Field(ge=1)
    page_size: int = Field(ge=1, le=500)
    total_pages: int


class TimetableBulkUploadError(BaseModel):
    """Schema for bulk upload error details."""

    row_number: int
    error_message: str
    field: str | None = None


class TimetableBulkUploadResponse(BaseModel):
    """Schema for bulk upload response."""

    total_rows: int
    successful: int
    failed: int
    errors: list[TimetableBulkUploadError]

from datetime import date, time
from enum import Enum

from pydantic import BaseModel, Field, model_validator

from school_timetable.models import RecurrenceType, Weekday


class ConflictType(str, Enum):
    """Which shared resource makes two sessions collide."""

    CLASS = "class"
    ROOM = "room"


class ConflictRecord(BaseModel):
    """An existing scheduled record that overlaps a candidate slot."""

    id: int
    label: str
    date: date
    start_time: time
    end_time: time
    class_id: int
    class_name: str | None = None
    room_number: str | None = None
    subject_name: str | None = None
    teacher_name: str | None = None
    conflict_type: ConflictType


class TemplateConflictRecord(BaseModel):
    """An active template whose expansion shares dates and resources with a candidate template."""

    id: int
    name: str
    days: list[Weekday]
    recurrence_type: RecurrenceType
    start_time: time
    end_time: time
    class_id: int
    room_number: str | None = None
    first_shared_date: date
    shared_dates: int
    conflict_type: ConflictType


class ConflictCheckResponse(BaseModel):
    """Schema for a conflict query result."""

    has_conflicts: bool
    conflicts: list[ConflictRecord]


class ExamConflictCheck(BaseModel):
    """Schema for checking an exam slot before saving it."""

    date: date
    start_time: time
    end_time: time
    class_id: int = Field(..., ge=1)
    branch_id: int = Field(..., ge=1)
    room_number: str = ""
    exclude_exam_id: int | None = Field(None, description="Exam being edited, ignored by the check")

    @model_validator(mode="after")
    def validate_times(self) -> "ExamConflictCheck":
        if self.end_time <= self.start_time:
            raise ValueError("End time must be after start time")
        return self

from datetime import date, datetime, time

from pydantic import BaseModel, Field, field_validator, model_validator

from school_timetable.models import RecordStatus, RecurrenceType, Weekday


class TimetableTemplateBase(BaseModel):
    """Base timetable template schema."""

    name: str = Field(..., min_length=1, max_length=255)
    branch_id: int = Field(..., ge=1)
    class_id: int = Field(..., ge=1)
    academic_year_id: int = Field(..., ge=1)
    subject_id: int = Field(..., ge=1)
    teacher_id: int = Field(..., ge=1)
    days: list[Weekday] = Field(..., min_length=1)
    start_time: time
    end_time: time
    room_number: str = Field(..., min_length=1, max_length=50)
    building_name: str | None = Field(None, max_length=100)
    recurrence_type: RecurrenceType = RecurrenceType.WEEKLY
    start_date: date
    end_date: date
    exclude_dates: list[date] = Field(default_factory=list)

    @field_validator("days")
    @classmethod
    def deduplicate_days(cls, v: list[Weekday]) -> list[Weekday]:
        """Keep each weekday once, in calendar order."""
        return sorted(set(v), key=lambda day: day.index)

    @field_validator("room_number", mode="before")
    @classmethod
    def strip_room_number(cls, v: str | None) -> str | None:
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("exclude_dates")
    @classmethod
    def deduplicate_exclude_dates(cls, v: list[date]) -> list[date]:
        return sorted(set(v))

    @model_validator(mode="after")
    def validate_ranges(self) -> "TimetableTemplateBase":
        if self.end_time <= self.start_time:
            raise ValueError("End time must be after start time")
        if self.end_date < self.start_date:
            raise ValueError("End date cannot be before start date")
        return self


class TimetableTemplateCreate(TimetableTemplateBase):
    """Schema for creating a timetable template."""

    pass


class TimetableTemplateUpdate(BaseModel):
    """Schema for updating a timetable template; omitted fields are left unchanged."""

    name: str | None = Field(None, min_length=1, max_length=255)
    subject_id: int | None = Field(None, ge=1)
    teacher_id: int | None = Field(None, ge=1)
    days: list[Weekday] | None = Field(None, min_length=1)
    start_time: time | None = None
    end_time: time | None = None
    room_number: str | None = Field(None, min_length=1, max_length=50)
    building_name: str | None = Field(None, max_length=100)
    recurrence_type: RecurrenceType | None = None
    start_date: date | None = None
    end_date: date | None = None
    exclude_dates: list[date] | None = None
    status: RecordStatus | None = None

    @field_validator("days")
    @classmethod
    def deduplicate_days(cls, v: list[Weekday] | None) -> list[Weekday] | None:
        if v is None:
            return v
        return sorted(set(v), key=lambda day: day.index)

    @field_validator("exclude_dates")
    @classmethod
    def deduplicate_exclude_dates(cls, v: list[date] | None) -> list[date] | None:
        return v if v is None else sorted(set(v))

    @field_validator("room_number", mode="before")
    @classmethod
    def strip_room_number(cls, v: str | None) -> str | None:
        if isinstance(v, str):
            return v.strip()
        return v


class TimetableTemplateResponse(TimetableTemplateBase):
    """Schema for timetable template response."""

    id: int
    status: RecordStatus
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class TimetableTemplateListItem(TimetableTemplateResponse):
    """Template with the number of timetables it has generated."""

    timetable_count: int = 0


class TemplateSummary(BaseModel):
    """Readable summary of a template for the preview screen."""

    id: int
    name: str
    branch: str
    class_name: str
    academic_year: str
    subject: str
    teacher: str
    days: list[Weekday]
    start_time: time
    end_time: time
    room_number: str
    building_name: str | None = None
    recurrence_type: RecurrenceType


class DateRange(BaseModel):
    start: date
    end: date


class GenerationPreview(BaseModel):
    """Counts and sample dates for a template expansion."""

    total_dates: int
    valid_dates: int
    conflicting_dates: int
    already_generated: int
    date_range: DateRange
    sample_dates: list[date]
    conflicts: list[date]


class TemplatePreviewResponse(BaseModel):
    """Schema for template generation preview response."""

    template: TemplateSummary
    preview: GenerationPreview


class TemplateGenerateRequest(BaseModel):
    """Schema for committing a template expansion."""

    force: bool = Field(False, description="Create sessions even on dates that conflict with existing ones")


class TemplateGenerateResponse(BaseModel):
    """Schema for template generation result."""

    message: str
    template_id: int
    template_name: str
    total_dates: int
    generated_count: int
    skipped_existing: list[date]
    skipped_conflicts: list[date]
    date_range: DateRange

"""Service for parsing and validating timetable bulk upload files."""

import io
from datetime import date, datetime, time
from typing import Any

import pandas as pd

from school_timetable.models import RecordStatus

REQUIRED_COLUMNS = {
    "branch_id",
    "class_id",
    "academic_year_id",
    "subject_id",
    "teacher_id",
    "date",
    "start_time",
    "end_time",
    "room_number",
}


class TimetableUploadParseError(Exception):
    """Raised when file parsing fails."""

    pass


class TimetableUploadValidationError(Exception):
    """Raised when file validation fails."""

    pass


class TimetableRowError(ValueError):
    """Raised for a single invalid row; carries the offending column."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


def parse_upload_file(file_content: bytes, filename: str) -> pd.DataFrame:
    """
    Parse Excel or CSV file and return DataFrame.

    Args:
        file_content: Raw file content as bytes
        filename: Original filename for type detection

    Returns:
        DataFrame with parsed data and normalized (lower-case, stripped) column names

    Raises:
        TimetableUploadParseError: If file cannot be parsed
    """
    try:
        file_lower = filename.lower()
        if file_lower.endswith((".xlsx", ".xls")):
            df = pd.read_excel(io.BytesIO(file_content), engine="openpyxl", dtype=object)
        elif file_lower.endswith(".csv"):
            df = pd.read_csv(io.BytesIO(file_content), dtype=str)
        else:
            raise TimetableUploadParseError(
                f"Unsupported file type. Expected .xlsx, .xls, or .csv, got {filename}"
            )

        df = df.dropna(how="all")

        if df.empty:
            raise TimetableUploadParseError("File is empty or contains no data")

        df.columns = df.columns.astype(str).str.lower().str.strip()
        return df
    except pd.errors.EmptyDataError:
        raise TimetableUploadParseError("File is empty or contains no data")
    except Exception as e:
        if isinstance(e, (TimetableUploadParseError, TimetableUploadValidationError)):
            raise
        raise TimetableUploadParseError(f"Failed to parse file: {str(e)}")


def validate_required_columns(df: pd.DataFrame) -> None:
    """
    Validate that required columns exist in the DataFrame.

    Raises:
        TimetableUploadValidationError: If required columns are missing
    """
    df_columns = set(df.columns)
    missing_columns = REQUIRED_COLUMNS - df_columns
    if missing_columns:
        raise TimetableUploadValidationError(
            f"Missing required columns: {', '.join(sorted(missing_columns))}. "
            f"Found columns: {', '.join(sorted(df_columns))}"
        )


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip() or value.strip().lower() in ("nan", "none")
    return bool(pd.isna(value))


def _parse_int(value: Any, field: str) -> int:
    if _is_blank(value):
        raise TimetableRowError(f"{field} is required", field)
    try:
        number = float(str(value).strip())
    except (ValueError, TypeError):
        raise TimetableRowError(f"{field} must be a number, got '{value}'", field)
    if not number.is_integer():
        raise TimetableRowError(f"{field} must be a whole number, got '{value}'", field)
    parsed = int(number)
    if parsed < 1:
        raise TimetableRowError(f"{field} must be a positive number", field)
    return parsed


def _parse_date(value: Any, field: str) -> date:
    if _is_blank(value):
        raise TimetableRowError(f"{field} is required", field)
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return pd.to_datetime(str(value).strip()).date()
    except (ValueError, TypeError):
        raise TimetableRowError(f"Invalid {field} '{value}'. Expected YYYY-MM-DD", field)


def _parse_time(value: Any, field: str) -> time:
    if _is_blank(value):
        raise TimetableRowError(f"{field} is required", field)
    if isinstance(value, datetime):
        return time(value.hour, value.minute)
    if isinstance(value, time):
        return time(value.hour, value.minute)
    time_parts = str(value).strip().split(":")
    try:
        if len(time_parts) < 2:
            raise ValueError
        return time(int(time_parts[0]), int(time_parts[1]))
    except (ValueError, TypeError):
        raise TimetableRowError(f"Invalid {field} '{value}'. Expected HH:MM", field)


def parse_timetable_row(row: pd.Series) -> dict[str, Any]:
    """
    Parse a single row from the DataFrame into timetable fields.

    Returns:
        Dictionary with branch_id, class_id, academic_year_id, subject_id, teacher_id,
        date, start_time, end_time, room_number, building_name and status

    Raises:
        TimetableRowError: If a value is missing or malformed
    """
    row_dict = row.to_dict()

    parsed: dict[str, Any] = {
        field: _parse_int(row_dict.get(field), field)
        for field in ("branch_id", "class_id", "academic_year_id", "subject_id", "teacher_id")
    }
    parsed["date"] = _parse_date(row_dict.get("date"), "date")
    parsed["start_time"] = _parse_time(row_dict.get("start_time"), "start_time")
    parsed["end_time"] = _parse_time(row_dict.get("end_time"), "end_time")
    if parsed["end_time"] <= parsed["start_time"]:
        raise TimetableRowError("End time must be after start time", "end_time")

    room_number = row_dict.get("room_number")
    if _is_blank(room_number):
        raise TimetableRowError("room_number is required", "room_number")
    parsed["room_number"] = str(room_number).strip()

    building_name = row_dict.get("building_name")
    parsed["building_name"] = None if _is_blank(building_name) else str(building_name).strip()

    status_raw = row_dict.get("status")
    if _is_blank(status_raw):
        parsed["status"] = RecordStatus.ACTIVE
    else:
        try:
            parsed["status"] = RecordStatus(str(status_raw).strip().upper())
        except ValueError:
            raise TimetableRowError(f"Invalid status '{status_raw}'. Expected ACTIVE or INACTIVE", "status")

    return parsed


def generate_timetable_template() -> bytes:
    """
    Generate Excel template for timetable upload.

    Returns:
        Bytes of Excel file
    """
    data = {
        "branch_id": [1, 1],
        "class_id": [1, 1],
        "academic_year_id": [1, 1],
        "subject_id": [1, 2],
        "teacher_id": [1, 2],
        "date": ["2024-09-06", "2024-09-06"],
        "start_time": ["09:00", "10:15"],
        "end_time": ["10:00", "11:15"],
        "room_number": ["204", "205"],
        "building_name": ["Science Block", "Science Block"],
        "status": ["ACTIVE", "ACTIVE"],
    }
    df = pd.DataFrame(data)

    output = io.BytesIO()
    with pd.ExcelWriter(output, engine="openpyxl") as writer:
        df.to_excel(writer, index=False, sheet_name="Timetables")
    output.seek(0)
    return output.getvalue()

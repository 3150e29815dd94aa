from datetime import date, time

import pandas as pd
import pytest

from school_timetable.models import RecordStatus
from school_timetable.services.timetable_upload import TimetableRowError, parse_timetable_row


@pytest.fixture
def row_values():
    return {
        "branch_id": 1,
        "class_id": 2,
        "academic_year_id": 1,
        "subject_id": 3,
        "teacher_id": "4",
        "date": "2024-09-02",
        "start_time": "08:00",
        "end_time": "09:00",
        "room_number": " 101 ",
    }


def test_parse_row(row_values):
    parsed = parse_timetable_row(pd.Series(row_values))

    assert parsed["teacher_id"] == 4
    assert parsed["date"] == date(2024, 9, 2)
    assert parsed["start_time"] == time(8, 0)
    assert parsed["room_number"] == "101"
    assert parsed["building_name"] is None
    assert parsed["status"] == RecordStatus.ACTIVE


def test_whole_number_floats_are_accepted(row_values):
    row_values["teacher_id"] = "2.0"
    row_values["class_id"] = 5.0

    parsed = parse_timetable_row(pd.Series(row_values))
    assert parsed["teacher_id"] == 2
    assert parsed["class_id"] == 5


@pytest.mark.parametrize("value", ["1.9", 2.5, "abc", "0", "-3"])
def test_bad_ids_are_rejected(row_values, value):
    row_values["teacher_id"] = value

    with pytest.raises(TimetableRowError) as exc_info:
        parse_timetable_row(pd.Series(row_values))
    assert exc_info.value.field == "teacher_id"


def test_fractional_id_is_not_truncated(row_values):
    row_values["subject_id"] = "1.9"

    with pytest.raises(TimetableRowError, match="whole number"):
        parse_timetable_row(pd.Series(row_values))

import pytest


@pytest.fixture
def exam_payload(seed):
    return {
        "name": "Mathematics Midterm",
        "date": "2024-10-14",
        "start_time": "09:00",
        "end_time": "11:00",
        "room_number": "Hall A",
        "full_marks": 100,
        "passing_marks": 40,
        "branch_id": seed.branch_id,
        "academic_year_id": seed.academic_year_id,
        "class_id": seed.class_id,
        "subject_id": seed.subject_id,
        "teacher_id": seed.teacher_id,
    }


async def test_create_exam(client, exam_payload):
    response = await client.post("/api/v1/exams", json=exam_payload)

    assert response.status_code == 201
    assert response.json()["status"] == "SCHEDULED"


async def test_passing_marks_cannot_exceed_full_marks(client, exam_payload):
    exam_payload["passing_marks"] = 120
    response = await client.post("/api/v1/exams", json=exam_payload)

    assert response.status_code == 422
    assert response.json()["error"] == "Validation failed"


async def test_check_conflicts(client, seed, exam_payload):
    await client.post("/api/v1/exams", json=exam_payload)

    check = {
        "date": "2024-10-14",
        "start_time": "10:00",
        "end_time": "12:00",
        "class_id": seed.other_class_id,
        "branch_id": seed.branch_id,
        "room_number": "Hall A",
    }
    response = await client.post("/api/v1/exams/check-conflicts", json=check)
    assert response.status_code == 200
    body = response.json()
    assert body["has_conflicts"] is True
    assert body["conflicts"][0]["label"] == "Mathematics Midterm"
    assert body["conflicts"][0]["conflict_type"] == "room"

    free = await client.post("/api/v1/exams/check-conflicts", json=dict(check, start_time="11:00", end_time="12:00"))
    assert free.json() == {"has_conflicts": False, "conflicts": []}


async def test_conflicting_exam_needs_force(client, seed, exam_payload):
    await client.post("/api/v1/exams", json=exam_payload)

    clash = dict(exam_payload, name="Science Midterm", class_id=seed.other_class_id, start_time="10:30")
    clash["end_time"] = "12:00"
    response = await client.post("/api/v1/exams", json=clash)
    assert response.status_code == 409
    assert response.json()["message"] == "Exam conflicts detected"

    forced = await client.post("/api/v1/exams", params={"force": "true"}, json=clash)
    assert forced.status_code == 201


async def test_cancelled_exam_frees_the_slot(client, exam_payload):
    exam_id = (await client.post("/api/v1/exams", json=exam_payload)).json()["id"]

    cancelled = await client.put(f"/api/v1/exams/{exam_id}", json=dict(exam_payload, status="CANCELLED"))
    assert cancelled.status_code == 200

    replacement = await client.post("/api/v1/exams", json=dict(exam_payload, name="Rescheduled Midterm"))
    assert replacement.status_code == 201


async def test_update_ignores_the_exam_itself(client, exam_payload):
    exam_id = (await client.post("/api/v1/exams", json=exam_payload)).json()["id"]

    response = await client.put(f"/api/v1/exams/{exam_id}", json=dict(exam_payload, end_time="11:30"))
    assert response.status_code == 200
    assert response.json()["end_time"] == "11:30:00"


async def test_list_and_delete_exams(client, exam_payload):
    first = (await client.post("/api/v1/exams", json=exam_payload)).json()
    await client.post("/api/v1/exams", json=dict(exam_payload, name="Final", date="2024-12-09"))

    october = await client.get("/api/v1/exams", params={"date_from": "2024-10-01", "date_to": "2024-10-31"})
    assert [exam["name"] for exam in october.json()["items"]] == ["Mathematics Midterm"]

    assert (await client.delete(f"/api/v1/exams/{first['id']}")).status_code == 204
    remaining = await client.get("/api/v1/exams")
    assert remaining.json()["total"] == 1
    assert (await client.get(f"/api/v1/exams/{first['id']}")).status_code == 404


async def test_exam_room_is_trimmed_and_must_not_be_blank(client, exam_payload):
    created = await client.post("/api/v1/exams", json=dict(exam_payload, room_number=" Hall A "))
    assert created.status_code == 201
    assert created.json()["room_number"] == "Hall A"

    blank = await client.post("/api/v1/exams", json=dict(exam_payload, room_number="  "))
    assert blank.status_code == 422

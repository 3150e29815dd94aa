import pytest


@pytest.fixture
def template_payload(seed):
    return {
        "name": "Grade 7A Mathematics",
        "branch_id": seed.branch_id,
        "class_id": seed.class_id,
        "academic_year_id": seed.academic_year_id,
        "subject_id": seed.subject_id,
        "teacher_id": seed.teacher_id,
        "days": ["WEDNESDAY", "MONDAY", "MONDAY"],
        "start_time": "08:00",
        "end_time": "09:00",
        "room_number": "101",
        "recurrence_type": "WEEKLY",
        "start_date": "2024-09-02",
        "end_date": "2024-09-15",
    }


async def test_create_template(client, template_payload):
    response = await client.post("/api/v1/timetable-templates", json=template_payload)

    assert response.status_code == 201
    body = response.json()
    assert body["days"] == ["MONDAY", "WEDNESDAY"]
    assert body["status"] == "ACTIVE"
    assert body["exclude_dates"] == []


async def test_create_template_validation_error(client, template_payload):
    template_payload["end_time"] = "07:00"
    response = await client.post("/api/v1/timetable-templates", json=template_payload)

    assert response.status_code == 422
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "Validation failed"
    assert "End time must be after start time" in body["message"]


async def test_create_template_unknown_teacher(client, template_payload):
    template_payload["teacher_id"] = 999
    response = await client.post("/api/v1/timetable-templates", json=template_payload)
    assert response.status_code == 404


async def test_overlapping_template_needs_force(client, seed, template_payload):
    assert (await client.post("/api/v1/timetable-templates", json=template_payload)).status_code == 201

    clashing = dict(template_payload, name="Room clash", class_id=seed.other_class_id, days=["MONDAY"])
    clashing["start_time"] = "08:30"
    clashing["end_time"] = "09:30"
    response = await client.post("/api/v1/timetable-templates", json=clashing)

    assert response.status_code == 409
    body = response.json()
    assert body["error"] == "Scheduling conflict"
    assert body["conflicts"][0]["conflict_type"] == "room"
    assert body["conflicts"][0]["first_shared_date"] == "2024-09-02"

    forced = await client.post("/api/v1/timetable-templates", params={"force": "true"}, json=clashing)
    assert forced.status_code == 201


async def test_preview_and_generate(client, template_payload):
    template_id = (await client.post("/api/v1/timetable-templates", json=template_payload)).json()["id"]

    preview = await client.get(f"/api/v1/timetable-templates/{template_id}/preview")
    assert preview.status_code == 200
    assert preview.json()["preview"]["total_dates"] == 4
    assert preview.json()["preview"]["valid_dates"] == 4

    generated = await client.post(f"/api/v1/timetable-templates/{template_id}/generate")
    assert generated.status_code == 201
    assert generated.json()["generated_count"] == 4

    again = await client.post(f"/api/v1/timetable-templates/{template_id}/generate", json={"force": True})
    assert again.status_code == 201
    assert again.json()["generated_count"] == 0
    assert len(again.json()["skipped_existing"]) == 4

    listed = await client.get("/api/v1/timetable-templates")
    assert [item["timetable_count"] for item in listed.json()] == [4]

    timetables = await client.get("/api/v1/timetables", params={"template_id": template_id})
    assert timetables.json()["total"] == 4


async def test_update_template(client, template_payload):
    template_id = (await client.post("/api/v1/timetable-templates", json=template_payload)).json()["id"]

    response = await client.put(
        f"/api/v1/timetable-templates/{template_id}",
        json={"days": ["FRIDAY"], "exclude_dates": ["2024-09-13"], "room_number": "102"},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["days"] == ["FRIDAY"]
    assert body["exclude_dates"] == ["2024-09-13"]
    assert body["room_number"] == "102"

    preview = await client.get(f"/api/v1/timetable-templates/{template_id}/preview")
    assert preview.json()["preview"]["sample_dates"] == ["2024-09-06"]


async def test_update_template_deduplicates_days_and_exclusions(client, template_payload):
    template_id = (await client.post("/api/v1/timetable-templates", json=template_payload)).json()["id"]

    response = await client.put(
        f"/api/v1/timetable-templates/{template_id}",
        json={
            "days": ["FRIDAY", "MONDAY", "FRIDAY"],
            "exclude_dates": ["2024-09-13", "2024-09-06", "2024-09-13"],
            "room_number": " 102 ",
        },
    )
    assert response.status_code == 200
    body = response.json()
    assert body["days"] == ["MONDAY", "FRIDAY"]
    assert body["exclude_dates"] == ["2024-09-06", "2024-09-13"]
    assert body["room_number"] == "102"


async def test_update_template_rejects_inverted_times(client, template_payload):
    template_id = (await client.post("/api/v1/timetable-templates", json=template_payload)).json()["id"]

    response = await client.put(f"/api/v1/timetable-templates/{template_id}", json={"end_time": "07:30"})
    assert response.status_code == 400

    unchanged = await client.get(f"/api/v1/timetable-templates/{template_id}")
    assert unchanged.json()["end_time"] == "09:00:00"


async def test_delete_template_without_timetables(client, template_payload):
    template_id = (await client.post("/api/v1/timetable-templates", json=template_payload)).json()["id"]

    response = await client.delete(f"/api/v1/timetable-templates/{template_id}")
    assert response.status_code == 200
    assert response.json()["deactivated"] is False
    assert (await client.get(f"/api/v1/timetable-templates/{template_id}")).status_code == 404


async def test_delete_template_with_timetables_deactivates(client, template_payload):
    template_id = (await client.post("/api/v1/timetable-templates", json=template_payload)).json()["id"]
    await client.post(f"/api/v1/timetable-templates/{template_id}/generate")

    response = await client.delete(f"/api/v1/timetable-templates/{template_id}")
    assert response.json()["deactivated"] is True

    template = await client.get(f"/api/v1/timetable-templates/{template_id}")
    assert template.json()["status"] == "INACTIVE"

    generate = await client.post(f"/api/v1/timetable-templates/{template_id}/generate")
    assert generate.status_code == 400


async def test_missing_template_returns_404(client, seed):
    assert (await client.get("/api/v1/timetable-templates/999/preview")).status_code == 404
    assert (await client.post("/api/v1/timetable-templates/999/generate")).status_code == 404

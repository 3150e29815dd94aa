from fastapi.testclient import TestClient

from school_timetable.main import app

client = TestClient(app)


def test_api_test():
    data = {"success": True}
    response = client.get("/")
    assert response.status_code == 200
    assert response.json() == data


def test_health():
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}

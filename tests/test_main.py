import pytest
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock, MagicMock, patch

from conftest import FakeEngine
from voice_intake.config.constants import ERROR_CREDENTIAL_MISSING
from voice_intake.config.settings import Settings
from voice_intake.main import APP_NAME, app, create_app, websocket_endpoint

RECORD = {
    "organizationId": "school-1",
    "locationName": "Springfield",
    "organizationName": "Lincoln School",
    "subjectName": "Max Mustermann",
    "subjectBirthDate": "12.05.2015",
    "effectiveUntil": "Friday",
}


@pytest.fixture
def engine():
    return FakeEngine()


@pytest.fixture
def client(tmp_path, engine):
    settings = Settings(data_dir=tmp_path, gemini_api_key="test-key")
    with TestClient(create_app(settings, engine_factory=lambda: engine)) as test_client:
        yield test_client


def test_health_check(client):
    """Test the health check endpoint returns correct response"""
    response = client.get("/health")
    assert response.status_code == 200

    response_json = response.json()
    assert response_json["status"] == "healthy"
    assert response_json["ok"] is True
    assert response_json["engine"] == "gemini"
    assert response_json["engine_api_key_configured"] is True
    assert response_json["active_connections"] == 0


def test_root_endpoint(client):
    """Test the root endpoint returns the correct API information"""
    response = client.get("/")
    assert response.status_code == 200

    response_json = response.json()
    assert response_json["name"] == APP_NAME
    assert response_json["version"] == "1.0.0"
    assert "/ws" in response_json["endpoints"]
    assert "/directory" in response_json["endpoints"]


def test_directory_crud(client):
    response = client.post("/directory", json={
        "id": "school-1",
        "organizationName": "Lincoln School",
        "locationName": "Springfield",
        "contactEmail": "office@lincoln.example",
    })
    assert response.status_code == 201
    assert response.json()["id"] == "school-1"

    response = client.post("/directory", json={
        "organizationName": "Oak Academy",
        "locationName": "Shelbyville",
        "contactEmail": "oak@example.org",
    })
    assert response.status_code == 201
    generated_id = response.json()["id"]
    assert generated_id

    names = [entry["organizationName"] for entry in client.get("/directory").json()]
    assert names == ["Oak Academy", "Lincoln School"]

    response = client.put(f"/directory/{generated_id}", json={
        "organizationName": "Oak Academy",
        "locationName": "Capital City",
        "contactEmail": "oak@example.org",
    })
    assert response.status_code == 200
    assert response.json()["locationName"] == "Capital City"

    response = client.delete(f"/directory/{generated_id}")
    assert response.json() == {"ok": True}
    assert [entry["id"] for entry in client.get("/directory").json()] == ["school-1"]


def test_directory_missing_fields_is_bad_request(client):
    response = client.post("/directory", json={"organizationName": "Lincoln School"})
    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Missing fields"
    assert any("locationName" in error["loc"] for error in body["detail"])


def test_unknown_directory_entry_is_not_found(client):
    payload = {"organizationName": "X", "locationName": "Y", "contactEmail": "z@example.org"}
    assert client.put("/directory/missing", json=payload).status_code == 404
    assert client.delete("/directory/missing").status_code == 404


def add_school(client, entry_id, name):
    client.post("/directory", json={
        "id": entry_id,
        "organizationName": name,
        "locationName": "Springfield",
        "contactEmail": f"{entry_id}@example.org",
    })


def test_records_and_summary(client):
    add_school(client, "school-1", "Lincoln School")
    add_school(client, "school-2", "Oak Academy")
    response = client.post("/records", json=RECORD)
    assert response.status_code == 201
    record = response.json()
    assert record["status"] == "collected"
    assert record["savedAt"]

    client.post("/records", json={**RECORD, "organizationId": "school-2"})

    assert len(client.get("/records").json()) == 2
    filtered = client.get("/records", params={"organizationId": "school-1"}).json()
    assert [item["id"] for item in filtered] == [record["id"]]

    response = client.patch(f"/records/{record['id']}", json={"status": "confirmed"})
    assert response.status_code == 200
    assert response.json()["status"] == "confirmed"
    assert response.json()["subjectName"] == "Max Mustermann"

    summary = client.get("/directory/summary").json()
    assert summary == {"total": 2, "counts": {"school-1": 1, "school-2": 1}, "entries": 2}


def test_record_for_unknown_organization_is_rejected(client):
    response = client.post("/records", json={**RECORD, "organizationId": "does-not-exist"})
    assert response.status_code == 400
    assert client.get("/records").json() == []


def test_record_status_validation(client):
    assert client.patch("/records/missing", json={"status": "confirmed"}).status_code == 404
    assert client.patch("/records/missing", json={"status": "lost"}).status_code == 400
    assert client.post("/records", json={"organizationId": "school-1"}).status_code == 400


def test_websocket_start_and_stop(client, engine):
    with client.websocket_connect("/ws") as websocket:
        websocket.send_json({"type": "start"})
        assert websocket.receive_json() == {"type": "open"}

        websocket.send_json({"type": "stop"})
        assert websocket.receive_json() == {"type": "close"}

    assert engine.closed
    assert engine.began_speaking == 1
    assert "DIRECTORY" in engine.setup.instructions


def test_websocket_without_credentials_reports_error(tmp_path):
    settings = Settings(data_dir=tmp_path, gemini_api_key=None)
    with TestClient(create_app(settings)) as test_client:
        with test_client.websocket_connect("/ws") as websocket:
            websocket.send_json({"type": "start"})
            error = websocket.receive_json()
            assert error["type"] == "error"
            assert error["message"] == ERROR_CREDENTIAL_MISSING
            assert websocket.receive_json() == {"type": "close"}


@pytest.mark.asyncio
async def test_websocket_endpoint():
    """Test that websocket endpoint calls the handle_websocket method"""
    mock_websocket = MagicMock()
    mock_websocket.app = app
    with patch.object(app.state.websocket_manager, "handle_websocket", AsyncMock()) as mock_handle:
        await websocket_endpoint(mock_websocket)

        mock_handle.assert_awaited_once_with(mock_websocket)


def test_app_startup_configuration():
    """Test the app configuration on startup"""
    assert app.title == APP_NAME
    assert app.version == "1.0.0"

    assert app.url_path_for("websocket_endpoint") == "/ws"
    assert app.url_path_for("health_check") == "/health"
    assert app.url_path_for("root") == "/"
    assert app.url_path_for("list_directory") == "/directory"
    assert app.url_path_for("directory_summary") == "/directory/summary"
    assert app.url_path_for("list_records") == "/records"
    assert app.url_path_for("update_record_status", record_id="r1") == "/records/r1"

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from parking_admin.dependencies import get_notifier
from parking_admin.main import app
from parking_admin.utils.workflow import RedisNotifier


@pytest.fixture
def reservation_id(client):
    response = client.post("/reservations", json={
        "customer_name": "Nimal Perera",
        "vehicle_number": "WPCBC5068",
        "slot_id": "S12",
        "requested_duration_hours": 2,
    })
    return response.json()["id"]


@pytest.fixture
def session_id(client):
    response = client.post("/detection/sessions")
    assert response.status_code == 200
    assert response.json()["state"] == "idle"
    return response.json()["session_id"]


def test_detection_match_then_confirm(client, reservation_id, session_id, notifier):
    # A MATCH ONLY ASKS FOR CONFIRMATION
    response = client.post(f"/detection/sessions/{session_id}/detections", json={"plate_text": "WP CBC 5068"})
    assert response.status_code == 200
    data = response.json()
    assert data["state"] == "match_found"
    assert data["pending"]["reservation_id"] == reservation_id
    assert data["pending"]["slot_id"] == "S12"
    assert client.get(f"/reservations/{reservation_id}").json()["status"] == "pending"

    # OPERATOR CONFIRMS
    response = client.post(f"/detection/sessions/{session_id}/confirm")
    assert response.status_code == 200
    assert "approved" in response.json()["message"]

    reservation = client.get(f"/reservations/{reservation_id}").json()
    assert reservation["status"] == "approved"
    assert reservation["approved_at"] is not None

    # SUCCESS NOTIFICATION IS VISIBLE ON THE SESSION
    data = client.get(f"/detection/sessions/{session_id}").json()
    assert data["state"] == "idle"
    assert data["pending"] is None
    assert data["notification"]["reservation_id"] == reservation_id
    assert notifier.sent[0][2] == 5


def test_detection_without_match(client, reservation_id, session_id):
    response = client.post(f"/detection/sessions/{session_id}/detections", json={"plate_text": "CAB 1234"})

    assert response.status_code == 200
    assert response.json()["state"] == "idle"
    assert response.json()["pending"] is None


def test_detection_dismiss(client, reservation_id, session_id):
    client.post(f"/detection/sessions/{session_id}/detections", json={"plate_text": "wpcbc-5068"})

    response = client.post(f"/detection/sessions/{session_id}/dismiss")
    assert response.status_code == 200
    assert response.json()["state"] == "idle"
    assert client.get(f"/reservations/{reservation_id}").json()["status"] == "pending"


def test_confirm_without_match_conflicts(client, session_id):
    assert client.post(f"/detection/sessions/{session_id}/confirm").status_code == 409
    assert client.post(f"/detection/sessions/{session_id}/dismiss").status_code == 409


def test_confirm_after_reservation_cancelled_propagates_failure(client, reservation_id, session_id):
    client.post(f"/detection/sessions/{session_id}/detections", json={"plate_text": "WPCBC5068"})
    client.post(f"/reservations/{reservation_id}/cancel")

    response = client.post(f"/detection/sessions/{session_id}/confirm")
    assert response.status_code == 409
    assert "cannot be approved" in response.json()["detail"]

    # THE MATCH IS STILL WAITING FOR THE OPERATOR
    assert client.get(f"/detection/sessions/{session_id}").json()["state"] == "match_found"


def test_frame_detection(client, reservation_id, session_id, detector_responses):
    detector_responses.append((200, {"success": True, "plates": [
        {"number": "WP-CBC-5068", "confidence": 0.93},
        {"number": "XX-0000", "confidence": 0.2},
    ]}))

    response = client.post(f"/detection/sessions/{session_id}/frames", content=b"\xff\xd8frame")
    assert response.status_code == 200
    assert response.json()["state"] == "match_found"
    assert response.json()["pending"]["plate_number"] == "WP-CBC-5068"


def test_frame_without_plate(client, session_id, detector_responses):
    detector_responses.append((200, {"success": True, "detected": False}))

    response = client.post(f"/detection/sessions/{session_id}/frames", content=b"\xff\xd8frame")
    assert response.status_code == 200
    assert response.json()["state"] == "idle"


def test_frame_detector_failure(client, session_id):
    # NO QUEUED RESPONSE, THE MOCK DETECTOR ANSWERS 503
    response = client.post(f"/detection/sessions/{session_id}/frames", content=b"\xff\xd8frame")
    assert response.status_code == 502


def test_end_session(client, session_id):
    response = client.delete(f"/detection/sessions/{session_id}")
    assert response.status_code == 200

    assert client.get(f"/detection/sessions/{session_id}").status_code == 404
    assert client.delete(f"/detection/sessions/{session_id}").status_code == 404
    assert client.post(f"/detection/sessions/{session_id}/detections", json={"plate_text": "WPCBC5068"}).status_code == 404


def test_detector_status(client, detector_responses):
    detector_responses.append((405, {"detail": "Method Not Allowed"}))

    data = client.get("/detection/status").json()
    assert data["accessible"] is True
    assert data["status"] == 405


class DownRedis:
    def set(self, key, value, ex=None):
        raise RedisConnectionError("Connection refused.")

    def get(self, key):
        raise RedisConnectionError("Connection refused.")


def test_detection_workflow_with_redis_down(client, reservation_id):
    app.dependency_overrides[get_notifier] = lambda: RedisNotifier(DownRedis())

    # THE SESSION ID IS RETURNED EVEN THOUGH REDIS IS UNREACHABLE
    response = client.post("/detection/sessions")
    assert response.status_code == 200
    session_id = response.json()["session_id"]

    response = client.post(f"/detection/sessions/{session_id}/detections", json={"plate_text": "WPCBC5068"})
    assert response.status_code == 200
    assert response.json()["state"] == "match_found"
    assert response.json()["notification"] is None

    response = client.post(f"/detection/sessions/{session_id}/confirm")
    assert response.status_code == 200
    assert client.get(f"/reservations/{reservation_id}").json()["status"] == "approved"

    data = client.get(f"/detection/sessions/{session_id}").json()
    assert data["state"] == "idle"
    assert data["notification"] is None


def test_idle_session_expires(client, clock, session_id):
    clock.advance(hours=2)

    assert client.get(f"/detection/sessions/{session_id}").status_code == 404

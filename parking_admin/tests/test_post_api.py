import pytest
from parking_admin.config import Config, BillingPolicy


def create_reservation(client, **overrides):
    payload = {"customer_name": "Nimal Perera", "vehicle_number": "WP CBC-5068", "slot_id": "S12", "requested_duration_hours": 1}
    payload.update(overrides)
    return client.post("/reservations", json=payload)


@pytest.mark.parametrize("slot_id,expected_status,expected_slot", [
    ("S12", 200, "S12"),
    ("s7", 200, "S7"),
    (3, 200, "S3"),
    ("50", 200, "S50"),
    ("S0", 400, None),
    ("S51", 400, None),
    ("A-1", 400, None),
])
def test_create_reservation(client, slot_id, expected_status, expected_slot):

    response = create_reservation(client, slot_id=slot_id)

    assert response.status_code == expected_status

    if expected_slot:
        data = response.json()
        assert data["slot_id"] == expected_slot
        assert data["status"] == "pending"
        assert data["approved_at"] is None
        assert data["check_out_time"] is None
        # DEFAULT SLOT PRICE 5.00 FOR 1 HOUR
        assert data["amount"] == 5.0


def test_create_reservation_rejects_bad_duration(client):
    response = create_reservation(client, requested_duration_hours=0)
    assert response.status_code == 422


def test_create_reservation_slot_already_held(client):
    assert create_reservation(client).status_code == 200

    response = create_reservation(client, vehicle_number="CAB-1234")
    assert response.status_code == 409
    assert "already reserved" in response.json()["detail"]


def test_create_reservation_uses_slot_price(client):
    response = client.put("/slots/S4/price", json={"price": 150})
    assert response.status_code == 200
    assert response.json()["price"] == 150

    response = create_reservation(client, slot_id="S4", requested_duration_hours=2.5)
    assert response.json()["amount"] == 375


def test_set_slot_price_validation(client):
    assert client.put("/slots/S4/price", json={"price": 0}).status_code == 422
    assert client.put("/slots/S99/price", json={"price": 10}).status_code == 400


def test_approve_reservation_sets_approved_at_once(client, clock):
    reservation_id = create_reservation(client).json()["id"]
    clock.advance(minutes=10)

    response = client.post(f"/reservations/{reservation_id}/approve")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "approved"
    assert data["approved_at"].startswith("2024-05-01T09:10:00")
    assert data["duration_since_approval"]["formatted"] == "0h 0m"

    # APPROVING TWICE IS NOT ALLOWED
    response = client.post(f"/reservations/{reservation_id}/approve")
    assert response.status_code == 409


def test_approve_missing_reservation(client):
    response = client.post("/reservations/999/approve")
    assert response.status_code == 404


def test_cancel_reservation(client):
    reservation_id = create_reservation(client).json()["id"]

    response = client.post(f"/reservations/{reservation_id}/cancel")
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"
    assert response.json()["check_out_time"] is not None

    # CANCELLED IS TERMINAL AND FREES THE SLOT
    assert client.post(f"/reservations/{reservation_id}/cancel").status_code == 409
    assert client.post(f"/reservations/{reservation_id}/approve").status_code == 409
    assert create_reservation(client, vehicle_number="CAB-1234").status_code == 200


def test_pay_reservation_with_overtime(client, clock):
    reservation_id = create_reservation(client).json()["id"]
    client.post(f"/reservations/{reservation_id}/approve")
    clock.advance(minutes=90)

    response = client.post(f"/reservations/{reservation_id}/pay", json={"payment_method": "Card"})
    assert response.status_code == 200

    data = response.json()
    assert "Rs.350.00" in data["message"]
    assert data["data"]["total_amount"] == 350
    assert data["data"]["regular_amount"] == 200
    assert data["data"]["overtime_amount"] == 150
    assert data["data"]["is_overtime"] is True
    assert data["data"]["billing_policy"] == "fixed-rate"
    assert data["data"]["payment_method"] == "Card"

    reservation = client.get(f"/reservations/{reservation_id}").json()
    assert reservation["status"] == "completed"
    assert reservation["check_out_time"] is not None
    assert reservation["duration_status"] == "Completed"


def test_pay_reservation_early_checkout_charges_full_duration(client, clock):
    reservation_id = create_reservation(client, requested_duration_hours=2).json()["id"]
    client.post(f"/reservations/{reservation_id}/approve")
    clock.advance(minutes=20)

    data = client.post(f"/reservations/{reservation_id}/pay").json()["data"]
    assert data["total_amount"] == 400
    assert data["is_overtime"] is False
    assert data["payment_method"] == "Cash"


def test_pay_with_per_slot_flat_policy(client, clock, monkeypatch):
    monkeypatch.setattr(Config, "BILLING_POLICY", BillingPolicy.PER_SLOT_FLAT.value)
    client.put("/slots/S12/price", json={"price": 120})
    reservation_id = create_reservation(client, requested_duration_hours=2).json()["id"]
    client.post(f"/reservations/{reservation_id}/approve")
    clock.advance(hours=5)

    data = client.post(f"/reservations/{reservation_id}/pay").json()["data"]
    assert data["total_amount"] == 240
    assert data["is_overtime"] is False
    assert data["overtime_amount"] == 0
    assert data["actual_hours"] == 5
    assert data["billing_policy"] == "per-slot-flat"


@pytest.mark.parametrize("action", [None, "cancel"])
def test_pay_requires_approved_reservation(client, action):
    reservation_id = create_reservation(client).json()["id"]
    if action:
        client.post(f"/reservations/{reservation_id}/{action}")

    response = client.post(f"/reservations/{reservation_id}/pay")
    assert response.status_code == 409


def test_paid_reservation_cannot_be_cancelled(client):
    reservation_id = create_reservation(client).json()["id"]
    client.post(f"/reservations/{reservation_id}/approve")
    client.post(f"/reservations/{reservation_id}/pay")

    assert client.post(f"/reservations/{reservation_id}/cancel").status_code == 409

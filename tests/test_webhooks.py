import json
import time
from datetime import date, timedelta

import httpx
import pytest

from carflow import webhook_security
from carflow.models import Booking, Customer
from carflow.services import n8n_service
from carflow.webhook_security import compute_hmac_sha256


@pytest.fixture
def signing_secret(monkeypatch):
    secret = "n8n-shared-secret"
    monkeypatch.setattr(webhook_security, "N8N_WEBHOOK_SECRET", secret)
    return secret


def _dates(offset=10, length=2):
    start = date.today() + timedelta(days=offset)
    return start.isoformat(), (start + timedelta(days=length)).isoformat()


def test_booking_webhook_creates_booking(client, make_customer, make_vehicle):
    customer, vehicle = make_customer(), make_vehicle()
    start, end = _dates()

    response = client.post(
        "/api/webhooks/booking",
        json={"customerId": customer.id, "vehicleId": vehicle.id, "startDate": start, "endDate": end, "campaign": "spring"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Booking created successfully"
    assert body["data"]["source"] == "n8n"
    assert body["data"]["bookingRef"].startswith("BK-")


def test_booking_webhook_updates_by_reference(client, db, make_customer, make_vehicle, make_booking):
    customer, vehicle = make_customer(), make_vehicle()
    booking = make_booking(customer, vehicle)

    response = client.post(
        "/api/webhooks/booking",
        json={
            "bookingRef": booking.booking_ref,
            "customerId": customer.id,
            "vehicleId": vehicle.id,
            "status": "confirmed",
            "notes": "Confirmed by phone",
        },
    )

    assert response.status_code == 200
    assert response.json()["message"] == "Booking updated successfully"
    db.expire_all()
    stored = db.query(Booking).filter(Booking.id == booking.id).one()
    assert stored.status == "confirmed"
    assert stored.notes == "Confirmed by phone"
    assert stored.n8n_webhook_data["notes"] == "Confirmed by phone"


def test_booking_webhook_requires_ids(client):
    start, end = _dates()

    response = client.post("/api/webhooks/booking", json={"startDate": start, "endDate": end})

    assert response.status_code == 400
    assert response.json()["detail"].startswith("Invalid booking data from n8n")


def test_booking_webhook_rejects_bad_dates(client, make_customer, make_vehicle):
    response = client.post(
        "/api/webhooks/booking",
        json={"customerId": make_customer().id, "vehicleId": make_vehicle().id, "startDate": "next week"},
    )

    assert response.status_code == 400
    assert "startDate" in response.json()["detail"]


def test_booking_webhook_conflict(client, make_customer, make_vehicle, make_booking):
    customer, vehicle = make_customer(), make_vehicle()
    booking = make_booking(customer, vehicle)

    response = client.post(
        "/api/webhooks/booking",
        json={
            "customerId": customer.id,
            "vehicleId": vehicle.id,
            "startDate": booking.start_date.isoformat(),
            "endDate": booking.end_date.isoformat(),
        },
    )

    assert response.status_code == 409


def test_n8n_webhook_creates_customer_from_email(client, db, make_vehicle):
    make_vehicle()
    start, end = _dates()

    response = client.post(
        "/api/n8n/webhook",
        json={
            "customerEmail": "New.Person@Example.com",
            "customerName": "New Person",
            "customerPhone": "+1 555 300 4000",
            "startDate": start,
            "endDate": end,
        },
    )

    assert response.status_code == 200
    assert response.json()["message"] == "Booking created successfully"
    customer = db.query(Customer).filter(Customer.email == "new.person@example.com").one()
    assert customer.source == "n8n"
    assert response.json()["data"]["customerId"] == customer.id


def test_n8n_webhook_without_customer_is_400(client, make_vehicle):
    make_vehicle()
    start, end = _dates()

    response = client.post("/api/n8n/webhook", json={"startDate": start, "endDate": end})

    assert response.status_code == 400


def test_n8n_webhook_no_free_vehicle_is_409(client, make_customer):
    start, end = _dates()

    response = client.post(
        "/api/n8n/webhook", json={"customerId": make_customer().id, "startDate": start, "endDate": end}
    )

    assert response.status_code == 409


def test_signature_required_when_secret_configured(client, signing_secret, make_customer, make_vehicle):
    start, end = _dates()
    body = json.dumps(
        {"customerId": make_customer().id, "vehicleId": make_vehicle().id, "startDate": start, "endDate": end}
    ).encode()

    unsigned = client.post("/api/webhooks/booking", content=body, headers={"Content-Type": "application/json"})
    assert unsigned.status_code == 401

    signed = client.post(
        "/api/webhooks/booking",
        content=body,
        headers={
            "Content-Type": "application/json",
            "X-Webhook-Signature": f"sha256={compute_hmac_sha256(signing_secret, body)}",
            "X-Webhook-Timestamp": str(int(time.time())),
        },
    )
    assert signed.status_code == 200


def test_stale_timestamp_is_rejected(client, signing_secret):
    body = b"{}"

    response = client.post(
        "/api/webhooks/voice-agent",
        content=body,
        headers={
            "X-Webhook-Signature": compute_hmac_sha256(signing_secret, body),
            "X-Webhook-Timestamp": str(int(time.time()) - 3600),
        },
    )

    assert response.status_code == 401


def test_webhook_test_endpoint(client):
    response = client.get("/api/webhooks/test")

    assert response.status_code == 200
    assert response.json()["success"] is True


def test_send_to_n8n_relays_payload(client, auth_headers, monkeypatch):
    received = []

    def handler(request):
        received.append(request)
        return httpx.Response(200, json={"ok": True})

    monkeypatch.setattr(
        n8n_service, "http_client", lambda: httpx.AsyncClient(transport=httpx.MockTransport(handler))
    )

    response = client.post(
        "/api/webhooks/send-to-n8n",
        json={"url": "https://n8n.example.com/webhook/abc", "data": {"event": "fleet_update"}},
        headers=auth_headers,
    )

    assert response.status_code == 200
    assert response.json()["response"] == {"ok": True}
    assert str(received[0].url) == "https://n8n.example.com/webhook/abc"
    assert json.loads(received[0].content) == {"event": "fleet_update"}


def test_send_to_n8n_upstream_error_is_502(client, auth_headers, monkeypatch):
    monkeypatch.setattr(
        n8n_service,
        "http_client",
        lambda: httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(500))),
    )

    response = client.post(
        "/api/webhooks/send-to-n8n",
        json={"url": "https://n8n.example.com/webhook/abc", "data": {}},
        headers=auth_headers,
    )

    assert response.status_code == 502


def test_send_to_n8n_needs_url(client, auth_headers, monkeypatch):
    monkeypatch.setattr(n8n_service, "N8N_WEBHOOK_URL", None)

    response = client.post("/api/webhooks/send-to-n8n", json={"data": {}}, headers=auth_headers)

    assert response.status_code == 400

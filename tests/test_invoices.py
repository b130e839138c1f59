import json
from datetime import date
from types import SimpleNamespace

import pytest

from carflow.domain.invoices.service import compute_totals
from carflow.models import Booking


@pytest.fixture
def booked(make_customer, make_vehicle, make_booking):
    customer = make_customer()
    booking = make_booking(customer, make_vehicle(make="Ford", model="Focus"), totalAmount=240)
    return customer, booking


def _create(client, headers, customer, **overrides):
    payload = {
        "customerId": customer.id,
        "invoiceDate": "2031-02-10",
        "taxRate": 10,
        "items": [
            {"description": "Rental", "quantity": 3, "unitPrice": 49.99},
            {"description": "Child seat", "quantity": 1, "unitPrice": 15},
        ],
    }
    payload.update(overrides)
    return client.post("/api/invoices", json=payload, headers=headers)


def test_compute_totals_rounds_to_cents():
    items = [{"quantity": 3, "unitPrice": 49.99}, {"quantity": 1, "unitPrice": 15}]

    assert compute_totals(items, 10) == (164.97, 16.5, 181.47)
    assert compute_totals([], 20) == (0, 0, 0)


def test_create_invoice_computes_totals_and_number(client, auth_headers, make_customer):
    customer = make_customer()

    response = _create(client, auth_headers, customer)

    assert response.status_code == 201
    invoice = response.json()
    assert invoice["invoiceNumber"] == "INV-2031-0001"
    assert invoice["subtotal"] == 164.97
    assert invoice["tax"] == 16.5
    assert invoice["total"] == 181.47
    assert invoice["dueDate"] == "2031-03-12"
    assert invoice["customerName"] == customer.full_name


def test_invoice_numbers_increase_per_year(client, auth_headers, make_customer):
    customer = make_customer()
    _create(client, auth_headers, customer)
    _create(client, auth_headers, customer, invoiceNumber="INV-2031-0007")

    next_one = _create(client, auth_headers, customer).json()
    other_year = _create(client, auth_headers, customer, invoiceDate="2032-01-05").json()

    assert next_one["invoiceNumber"] == "INV-2031-0008"
    assert other_year["invoiceNumber"] == "INV-2032-0001"


def test_duplicate_invoice_number_conflicts(client, auth_headers, make_customer):
    customer = make_customer()
    _create(client, auth_headers, customer, invoiceNumber="CUSTOM-1")

    assert _create(client, auth_headers, customer, invoiceNumber="CUSTOM-1").status_code == 409


def test_invoice_from_booking_seeds_line_item(client, auth_headers, booked):
    customer, booking = booked

    response = _create(client, auth_headers, customer, bookingId=booking.id, items=[], taxRate=0)

    assert response.status_code == 201
    invoice = response.json()
    assert invoice["bookingRef"] == booking.booking_ref
    assert len(invoice["items"]) == 1
    assert "Ford Focus" in invoice["items"][0]["description"]
    assert invoice["total"] == 240


def test_invoice_for_someone_elses_booking_is_400(client, auth_headers, booked, make_customer):
    _, booking = booked

    response = _create(client, auth_headers, make_customer(), bookingId=booking.id)

    assert response.status_code == 400


def test_unknown_customer_is_404(client, auth_headers):
    assert _create(client, auth_headers, SimpleNamespace(id=999)).status_code == 404


def test_negative_unit_price_is_400(client, auth_headers, make_customer):
    response = _create(
        client, auth_headers, make_customer(), items=[{"description": "Bad", "quantity": 1, "unitPrice": -1}]
    )

    assert response.status_code == 400


def test_update_recomputes_totals(client, auth_headers, make_customer):
    invoice = _create(client, auth_headers, make_customer()).json()

    response = client.put(
        f"/api/invoices/{invoice['id']}",
        json={"items": [{"description": "Flat fee", "quantity": 2, "unitPrice": 100}], "taxRate": 5},
        headers=auth_headers,
    )

    assert response.status_code == 200
    assert response.json()["subtotal"] == 200
    assert response.json()["tax"] == 10
    assert response.json()["total"] == 210


def test_paid_status_marks_booking_paid(client, auth_headers, db, booked):
    customer, booking = booked
    invoice = _create(client, auth_headers, customer, bookingId=booking.id).json()

    response = client.patch(
        f"/api/invoices/{invoice['id']}/status", json={"status": "paid"}, headers=auth_headers
    )

    assert response.status_code == 200
    assert response.json()["paidAt"] is not None
    db.expire_all()
    assert db.query(Booking).filter(Booking.id == booking.id).one().payment_status == "paid"


def test_invalid_status_is_400(client, auth_headers, make_customer):
    invoice = _create(client, auth_headers, make_customer()).json()

    response = client.patch(
        f"/api/invoices/{invoice['id']}/status", json={"status": "lost"}, headers=auth_headers
    )

    assert response.status_code == 400


def test_listing_by_customer_and_booking(client, auth_headers, booked, make_customer):
    customer, booking = booked
    linked = _create(client, auth_headers, customer, bookingId=booking.id).json()
    _create(client, auth_headers, make_customer())

    by_customer = client.get(f"/api/invoices/customer/{customer.id}", headers=auth_headers).json()
    by_booking = client.get(f"/api/invoices/booking/{booking.id}", headers=auth_headers).json()
    via_customer_route = client.get(f"/api/customers/{customer.id}/invoices", headers=auth_headers).json()

    assert [i["id"] for i in by_customer] == [linked["id"]]
    assert [i["id"] for i in by_booking] == [linked["id"]]
    assert [i["id"] for i in via_customer_route] == [linked["id"]]
    assert len(client.get("/api/invoices", headers=auth_headers).json()) == 2


def test_booking_with_invoice_cannot_be_deleted(client, auth_headers, booked):
    customer, booking = booked
    _create(client, auth_headers, customer, bookingId=booking.id)

    assert client.delete(f"/api/bookings/{booking.id}", headers=auth_headers).status_code == 409


def test_pdf_download(client, auth_headers, make_customer):
    invoice = _create(client, auth_headers, make_customer(), notes="Thank you for renting with us").json()

    response = client.get(f"/api/invoices/{invoice['id']}/pdf", headers=auth_headers)

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.content.startswith(b"%PDF")
    assert "INV-2031-0001.pdf" in response.headers["content-disposition"]


def test_delete_invoice(client, auth_headers, make_customer):
    invoice = _create(client, auth_headers, make_customer()).json()

    assert client.delete(f"/api/invoices/{invoice['id']}", headers=auth_headers).status_code == 200
    assert client.get(f"/api/invoices/{invoice['id']}", headers=auth_headers).status_code == 404


def test_email_invoice_via_gmail(client, auth_headers, make_customer, google_connected, google_api):
    google_api.add("POST", "gmail.googleapis.com", json={"id": "msg-123"})
    customer = make_customer()
    invoice = _create(client, auth_headers, customer).json()

    response = client.post(f"/api/invoices/{invoice['id']}/email", json={}, headers=auth_headers)

    assert response.status_code == 200
    assert response.json() == {"success": True, "messageId": "msg-123", "status": "sent"}
    sent = google_api.calls("POST", "gmail.googleapis.com")
    assert len(sent) == 1
    assert "raw" in json.loads(sent[0].content)


def test_email_invoice_requires_google(client, auth_headers, make_customer):
    invoice = _create(client, auth_headers, make_customer()).json()

    response = client.post(f"/api/invoices/{invoice['id']}/email", json={}, headers=auth_headers)

    assert response.status_code == 409


def test_invoice_date_defaults_to_today(client, auth_headers, make_customer):
    response = _create(client, auth_headers, make_customer(), invoiceDate=None)

    assert response.json()["invoiceDate"] == date.today().isoformat()

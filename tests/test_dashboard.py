from carflow.auth import get_current_user
from carflow.main import app
from carflow.models import SupportTicket


def test_summary_on_empty_fleet(client, auth_headers):
    response = client.get("/api/dashboard/summary", headers=auth_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["bookingStats"]["totalBookings"] == 0
    assert body["vehicleStats"]["totalVehicles"] == 0
    assert body["openTickets"] == 0
    assert body["pendingInvoiceTotal"] == 0
    assert body["recentBookings"] == []


def test_summary_counts(client, db, auth_headers, make_customer, make_vehicle, make_booking):
    customer = make_customer()
    make_vehicle(status="maintenance", category="suv")
    bookings = [make_booking(customer, make_vehicle()) for _ in range(6)]
    db.add_all(
        [
            SupportTicket(subject="Scratch", description="Door scratch", status="open"),
            SupportTicket(subject="Keys", description="Lost keys", status="in_progress"),
            SupportTicket(subject="Refund", description="Done", status="resolved"),
        ]
    )
    db.commit()
    client.post(
        "/api/invoices",
        json={"customerId": customer.id, "taxRate": 0, "items": [{"description": "Rental", "quantity": 1, "unitPrice": 99.5}]},
        headers=auth_headers,
    )

    body = client.get("/api/dashboard/summary", headers=auth_headers).json()

    assert body["bookingStats"]["totalBookings"] == 6
    assert body["bookingStats"]["todayBookings"] == 6
    assert body["vehicleStats"]["totalVehicles"] == 7
    assert body["vehicleStats"]["inMaintenance"] == 1
    assert body["vehicleCategories"] == {"economy": 6, "suv": 1}
    assert body["openTickets"] == 2
    assert body["pendingInvoiceTotal"] == 99.5
    assert len(body["recentBookings"]) == 5
    assert bookings[-1].booking_ref in [b["bookingRef"] for b in body["recentBookings"]]


def test_summary_requires_login(client):
    assert client.get("/api/dashboard/summary").status_code == 401


def test_summary_with_overridden_user(client, staff_user):
    app.dependency_overrides[get_current_user] = lambda: staff_user

    assert client.get("/api/dashboard/summary").status_code == 200

import csv
import io
from datetime import date, timedelta

from carflow.services.report_service import booked_days_in_window


def _create_table(client, headers, **overrides):
    payload = {"name": "Fleet report", "type": "bookings"}
    payload.update(overrides)
    return client.post("/api/reports/tables", json=payload, headers=headers)


def test_create_table_defaults_to_all_columns(client, auth_headers):
    response = _create_table(client, auth_headers, type="revenue")

    assert response.status_code == 201
    assert response.json()["columns"] == ["month", "totalRevenue", "bookingCount", "averageBookingValue"]
    assert [t["name"] for t in client.get("/api/reports/tables", headers=auth_headers).json()] == ["Fleet report"]


def test_unknown_column_is_400(client, auth_headers):
    response = _create_table(client, auth_headers, columns=["bookingRef", "mileage"])

    assert response.status_code == 400
    assert "mileage" in response.json()["detail"]


def test_unknown_type_is_400(client, auth_headers):
    assert _create_table(client, auth_headers, type="weather").status_code == 400


def test_booking_report_respects_columns_and_filters(client, auth_headers, make_customer, make_vehicle, make_booking):
    customer, vehicle = make_customer(), make_vehicle()
    confirmed = make_booking(customer, vehicle, status="confirmed")
    make_booking(customer, vehicle, start=confirmed.end_date + timedelta(days=5))

    table = _create_table(
        client, auth_headers, columns=["bookingRef", "status"], filters={"status": "confirmed"}
    ).json()
    response = client.get(f"/api/reports/tables/{table['id']}/data", headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["columns"] == ["bookingRef", "status"]
    assert response.json()["rows"] == [{"bookingRef": confirmed.booking_ref, "status": "confirmed"}]


def test_booked_days_counts_each_day_once():
    window_start, window_end = date(2031, 1, 1), date(2031, 1, 30)

    class B:
        def __init__(self, start, end, status="confirmed"):
            self.start_date, self.end_date, self.status = start, end, status

    bookings = [
        B(date(2030, 12, 28), date(2031, 1, 3)),
        B(date(2031, 1, 2), date(2031, 1, 4)),
        B(date(2031, 1, 10), date(2031, 1, 12), status="cancelled"),
    ]

    assert booked_days_in_window(bookings, window_start, window_end) == 4


def test_vehicle_report_utilization(client, auth_headers, make_customer, make_vehicle, make_booking):
    vehicle = make_vehicle()
    make_vehicle(model="Yaris")
    today = date.today()
    make_booking(make_customer(), vehicle, start=today - timedelta(days=5), end=today - timedelta(days=2), totalAmount=200)

    table = _create_table(client, auth_headers, type="vehicles").json()
    rows = client.get(f"/api/reports/tables/{table['id']}/data", headers=auth_headers).json()["rows"]

    assert rows[0]["licensePlate"] == vehicle.license_plate
    assert rows[0]["totalBookings"] == 1
    assert rows[0]["revenue"] == 200
    assert rows[0]["utilizationRate"] == 13.3
    assert rows[1]["utilizationRate"] == 0


def test_revenue_report_groups_by_month(client, auth_headers, make_customer, make_vehicle, make_booking):
    customer, vehicle = make_customer(), make_vehicle()
    make_booking(customer, vehicle, start=date(2031, 1, 5), end=date(2031, 1, 7), totalAmount=100)
    make_booking(customer, vehicle, start=date(2031, 2, 10), end=date(2031, 2, 12), totalAmount=90)
    make_booking(customer, vehicle, start=date(2031, 2, 20), end=date(2031, 2, 22), totalAmount=60)
    make_booking(customer, vehicle, start=date(2031, 2, 25), end=date(2031, 2, 26), totalAmount=500, status="cancelled")

    table = _create_table(client, auth_headers, type="revenue").json()
    rows = client.get(f"/api/reports/tables/{table['id']}/data", headers=auth_headers).json()["rows"]

    assert rows == [
        {"month": "2031-01", "totalRevenue": 100, "bookingCount": 1, "averageBookingValue": 100},
        {"month": "2031-02", "totalRevenue": 150, "bookingCount": 2, "averageBookingValue": 75},
    ]


def test_customer_report(client, auth_headers, make_customer, make_vehicle, make_booking):
    customer = make_customer()
    make_booking(customer, make_vehicle(category="suv"), totalAmount=300)

    table = _create_table(client, auth_headers, type="customers", columns=["email", "totalSpent", "preferredCategory"]).json()
    rows = client.get(f"/api/reports/tables/{table['id']}/data", headers=auth_headers).json()["rows"]

    assert rows == [{"email": customer.email, "totalSpent": 300, "preferredCategory": "suv"}]


def test_export_quotes_every_value(client, auth_headers, make_customer, make_vehicle, make_booking):
    booking = make_booking(make_customer(), make_vehicle(), totalAmount=150)
    table = _create_table(client, auth_headers, name="Q1 bookings!", columns=["bookingRef", "totalAmount"]).json()

    response = client.get(f"/api/reports/tables/{table['id']}/export", headers=auth_headers)

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "filename=Q1_bookings_" in response.headers["content-disposition"]
    assert response.text.splitlines()[1] == f'"{booking.booking_ref}","150"'
    assert list(csv.reader(io.StringIO(response.text)))[0] == ["bookingRef", "totalAmount"]


def test_delete_table(client, auth_headers):
    table = _create_table(client, auth_headers).json()

    assert client.delete(f"/api/reports/tables/{table['id']}", headers=auth_headers).status_code == 200
    assert client.get(f"/api/reports/tables/{table['id']}/data", headers=auth_headers).status_code == 404

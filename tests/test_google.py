import json
from datetime import datetime, timedelta
from urllib.parse import parse_qs, urlparse

import pytest
from fastapi import HTTPException

from carflow.models import Booking
from carflow.models_google import GoogleIntegration
from carflow.security_utils import decrypt_token
from carflow.services import google_calendar_service, google_oauth

EVENTS = "calendar/v3/calendars/primary/events"
SHEETS = "sheets.googleapis.com/v4/spreadsheets"
DOCS = "docs.googleapis.com/v1/documents"


def _mock_sheets(google_api, spreadsheet_id="sheet-1", rows=1):
    google_api.add("POST", ":append", json={"updates": {"updatedRows": rows}})
    google_api.add("POST", ":batchUpdate", json={})
    google_api.add(
        "POST",
        SHEETS,
        json={"spreadsheetId": spreadsheet_id, "spreadsheetUrl": f"https://docs.google.com/spreadsheets/d/{spreadsheet_id}"},
    )


# ----------------------------------------------------------------------
# Connection
# ----------------------------------------------------------------------


def test_auth_url_requests_service_scopes(client, admin_headers):
    response = client.get("/api/google/auth/calendar/url", headers=admin_headers)

    assert response.status_code == 200
    query = parse_qs(urlparse(response.json()["authUrl"]).query)
    assert query["access_type"] == ["offline"]
    assert google_oauth.CALENDAR_SCOPE in query["scope"][0].split()
    assert query["state"][0]


def test_auth_url_for_unknown_service(client, admin_headers):
    assert client.get("/api/google/auth/drive/url", headers=admin_headers).status_code == 400


def test_callback_reports_google_error(client):
    response = client.get("/api/google/callback", params={"error": "access_denied"})

    assert response.status_code == 400
    assert "access_denied" in response.json()["detail"]


def test_callback_rejects_tampered_state(client):
    response = client.get("/api/google/callback", params={"code": "abc", "state": "forged"})

    assert response.status_code == 400


def test_callback_stores_encrypted_tokens(client, db, admin_user, google_api):
    google_api.add(
        "POST",
        "oauth2.googleapis.com/token",
        json={
            "access_token": "ya29.fresh",
            "refresh_token": "1//refresh",
            "expires_in": 3600,
            "scope": google_oauth.CALENDAR_SCOPE,
        },
    )
    google_api.add("GET", "oauth2/v2/userinfo", json={"email": "fleet@gmail.com"})
    auth_url = google_oauth.build_authorization_url(admin_user, "calendar")
    state = parse_qs(urlparse(auth_url).query)["state"][0]

    response = client.get("/api/google/callback", params={"code": "auth-code", "state": state})

    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "message": "Google account connected successfully",
        "service": "calendar",
        "userEmail": "fleet@gmail.com",
    }
    integration = db.query(GoogleIntegration).filter(GoogleIntegration.user_id == admin_user.id).one()
    assert integration.access_token != "ya29.fresh"
    assert decrypt_token(integration.access_token) == "ya29.fresh"
    assert integration.has_scope(google_oauth.CALENDAR_SCOPE)


def test_status_lists_services(client, auth_headers, google_connected):
    response = client.get("/api/google/status", headers=auth_headers)

    assert response.json() == {
        "connected": True,
        "userEmail": "agent@gmail.com",
        "calendarId": "primary",
        "services": {"calendar": True, "sheets": True, "docs": True, "gmail": True},
    }


def test_status_when_not_connected(client, auth_headers):
    assert client.get("/api/google/status", headers=auth_headers).json()["connected"] is False


def test_disconnect(client, db, auth_headers, google_connected, google_api):
    google_api.add("POST", "oauth2.googleapis.com/revoke")

    response = client.post("/api/google/disconnect", headers=auth_headers)

    assert response.status_code == 200
    assert len(google_api.calls("POST", "revoke")) == 1
    assert db.query(GoogleIntegration).count() == 0
    assert client.post("/api/google/disconnect", headers=auth_headers).status_code == 404


def test_expired_token_is_refreshed(client, db, auth_headers, staff_user, google_api, make_customer, make_vehicle, make_booking):
    google_oauth.save_integration(
        db,
        staff_user.id,
        {"access_token": "ya29.stale", "refresh_token": "1//refresh", "expires_in": 0},
        "agent@gmail.com",
    )
    google_api.add("POST", "oauth2.googleapis.com/token", json={"access_token": "ya29.renewed", "expires_in": 3600})
    google_api.add("POST", EVENTS, json={"id": "evt-1"})
    booking = make_booking(make_customer(), make_vehicle())

    response = client.post("/api/google/calendar/booking", json={"bookingId": booking.id}, headers=auth_headers)

    assert response.status_code == 200
    assert google_api.calls("POST", EVENTS)[0].headers["Authorization"] == "Bearer ya29.renewed"
    db.expire_all()
    integration = db.query(GoogleIntegration).one()
    assert integration.token_expires_at > datetime.utcnow() + timedelta(minutes=30)


# ----------------------------------------------------------------------
# Calendar
# ----------------------------------------------------------------------


def test_add_booking_to_calendar(client, db, auth_headers, google_connected, google_api, make_customer, make_vehicle, make_booking):
    google_api.add("POST", EVENTS, json={"id": "evt-42"})
    booking = make_booking(make_customer(full_name="Dana Scully"), make_vehicle(), pickupTime="10:30")

    response = client.post("/api/google/calendar/booking", json={"bookingId": booking.id}, headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["eventId"] == "evt-42"
    event = json.loads(google_api.calls("POST", EVENTS)[0].content)
    assert event["summary"] == "Car Rental: Dana Scully"
    assert event["start"]["dateTime"] == f"{booking.start_date.isoformat()}T10:30:00"
    assert booking.booking_ref in event["description"]
    db.expire_all()
    assert db.query(Booking).filter(Booking.id == booking.id).one().google_calendar_event_id == "evt-42"


def test_calendar_requires_connection(client, auth_headers, make_customer, make_vehicle, make_booking):
    booking = make_booking(make_customer(), make_vehicle())

    response = client.post("/api/google/calendar/booking", json={"bookingId": booking.id}, headers=auth_headers)

    assert response.status_code == 409


def test_sync_reports_each_booking(client, auth_headers, google_connected, google_api, make_customer, make_vehicle, make_booking):
    customer = make_customer()
    first = make_booking(customer, make_vehicle())
    second = make_booking(customer, make_vehicle())
    google_api.add("POST", EVENTS, json={"id": "evt-sync"})

    response = client.post("/api/google/calendar/sync", json={}, headers=auth_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Synced 2 of 2 bookings"
    assert {r["bookingId"] for r in body["results"]} == {first.id, second.id}


def test_sync_collects_failures(client, auth_headers, google_connected, google_api, make_customer, make_vehicle, make_booking):
    booking = make_booking(make_customer(), make_vehicle())
    google_api.add("POST", EVENTS, status=500, json={"error": "backend"})

    response = client.post("/api/google/calendar/sync", json={"bookingIds": [booking.id]}, headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["message"] == "Synced 0 of 1 bookings"
    assert response.json()["results"][0]["success"] is False


def test_new_booking_gets_calendar_event(client, auth_headers, google_connected, google_api, make_customer, make_vehicle):
    google_api.add("POST", EVENTS, json={"id": "evt-auto"})
    start = datetime.utcnow().date() + timedelta(days=7)

    response = client.post(
        "/api/bookings",
        json={
            "customerId": make_customer().id,
            "vehicleId": make_vehicle().id,
            "startDate": start.isoformat(),
            "endDate": (start + timedelta(days=2)).isoformat(),
        },
        headers=auth_headers,
    )

    assert response.status_code == 201
    assert response.json()["googleCalendarEventId"] == "evt-auto"


def test_booking_survives_calendar_failure(client, auth_headers, google_connected, google_api, make_customer, make_vehicle):
    google_api.add("POST", EVENTS, status=503)
    start = datetime.utcnow().date() + timedelta(days=7)

    response = client.post(
        "/api/bookings",
        json={
            "customerId": make_customer().id,
            "vehicleId": make_vehicle().id,
            "startDate": start.isoformat(),
            "endDate": (start + timedelta(days=2)).isoformat(),
        },
        headers=auth_headers,
    )

    assert response.status_code == 201
    assert response.json()["googleCalendarEventId"] is None


def test_cancel_removes_calendar_event(client, db, auth_headers, google_connected, google_api, make_customer, make_vehicle, make_booking):
    booking = make_booking(make_customer(), make_vehicle())
    booking.google_calendar_event_id = "evt-gone"
    db.commit()
    google_api.add("DELETE", f"{EVENTS}/evt-gone", status=204)

    response = client.patch(f"/api/bookings/{booking.id}/status", json={"status": "cancelled"}, headers=auth_headers)

    assert response.status_code == 200
    assert len(google_api.calls("DELETE", "evt-gone")) == 1
    assert response.json()["googleCalendarEventId"] is None


def test_voice_agent_cancel_keeps_calendar_event(client, db, google_connected, google_api, make_customer, make_vehicle, make_booking):
    booking = make_booking(make_customer(), make_vehicle())
    booking.google_calendar_event_id = "evt-kept"
    db.commit()

    response = client.post(
        "/api/webhooks/voice-agent",
        json={"action": "cancel_booking", "parameters": {"booking_reference": booking.booking_ref}},
    )

    assert response.json()["success"] is True
    assert google_api.calls("DELETE", "evt-kept") == []
    db.expire_all()
    assert db.query(Booking).filter(Booking.id == booking.id).one().google_calendar_event_id == "evt-kept"


def test_pickup_meeting(client, db, auth_headers, google_connected, google_api, make_customer, make_vehicle, make_booking):
    customer = make_customer(email="mulder@example.com")
    booking = make_booking(customer, make_vehicle())
    google_api.add("POST", EVENTS, json={"id": "evt-pickup"})
    start = datetime.combine(booking.start_date, datetime.min.time()).replace(hour=8, minute=45)

    response = client.post(
        "/api/calendar/booking",
        json={
            "bookingId": booking.id,
            "title": "Vehicle handover",
            "startDateTime": start.isoformat(),
            "durationMinutes": 45,
            "location": "Airport desk 3",
            "attendees": ["Counter@CarFlow.test"],
            "sendNotification": False,
        },
        headers=auth_headers,
    )

    assert response.status_code == 201
    assert response.json() == {"success": True, "eventId": "evt-pickup", "message": "Pickup meeting scheduled"}
    request = google_api.calls("POST", EVENTS)[0]
    assert request.url.params["sendUpdates"] == "none"
    event = json.loads(request.content)
    assert event["end"]["dateTime"] == (start + timedelta(minutes=45)).isoformat()
    assert [a["email"] for a in event["attendees"]] == ["counter@carflow.test", "mulder@example.com"]

    db.expire_all()
    stored = db.query(Booking).filter(Booking.id == booking.id).one()
    assert stored.has_pickup_meeting is True
    assert stored.pickup_location == "Airport desk 3"
    assert stored.pickup_time == "08:45"


def test_pickup_meeting_rejects_bad_attendee(client, auth_headers, make_customer, make_vehicle, make_booking):
    booking = make_booking(make_customer(), make_vehicle())

    response = client.post(
        "/api/calendar/booking",
        json={
            "bookingId": booking.id,
            "title": "Vehicle handover",
            "startDateTime": "2031-01-01T09:00:00",
            "location": "Main office",
            "attendees": ["not-an-email"],
        },
        headers=auth_headers,
    )

    assert response.status_code == 400


# ----------------------------------------------------------------------
# Sheets and Docs
# ----------------------------------------------------------------------


def test_create_bookings_spreadsheet(client, auth_headers, google_connected, google_api, make_customer, make_vehicle, make_booking):
    booking = make_booking(make_customer(), make_vehicle())
    _mock_sheets(google_api)

    response = client.post(
        "/api/google/sheets/bookings", json={"title": "March rentals", "bookingIds": [booking.id]}, headers=auth_headers
    )

    assert response.status_code == 201
    body = response.json()
    assert body["spreadsheetId"] == "sheet-1"
    assert body["rowsWritten"] == 1
    appends = google_api.calls("POST", ":append")
    assert json.loads(appends[0].content)["values"][0][0] == "Booking Ref"
    assert json.loads(appends[1].content)["values"][0][0] == booking.booking_ref


def test_append_to_spreadsheet_needs_bookings(client, auth_headers, google_connected):
    response = client.post("/api/google/sheets/bookings/sheet-1", json={"bookingIds": [999]}, headers=auth_headers)

    assert response.status_code == 404


def test_sheets_need_sheets_permission(client, db, auth_headers, staff_user):
    google_oauth.save_integration(
        db,
        staff_user.id,
        {"access_token": "ya29.cal", "refresh_token": "1//r", "expires_in": 3600, "scope": google_oauth.CALENDAR_SCOPE},
        None,
    )

    response = client.post("/api/google/sheets/bookings", json={}, headers=auth_headers)

    assert response.status_code == 409


def test_report_to_sheet(client, auth_headers, google_connected, google_api, make_customer, make_vehicle, make_booking):
    make_booking(make_customer(), make_vehicle(), totalAmount=120)
    table = client.post(
        "/api/reports/tables", json={"name": "Revenue", "type": "revenue"}, headers=auth_headers
    ).json()
    _mock_sheets(google_api, spreadsheet_id="report-sheet")

    response = client.post(f"/api/google/reports/{table['id']}/sheet", json={}, headers=auth_headers)

    assert response.status_code == 201
    assert response.json()["spreadsheetId"] == "report-sheet"
    created = json.loads(google_api.calls("POST", SHEETS)[0].content)
    assert created["properties"]["title"] == "Revenue"


def test_create_document(client, auth_headers, google_connected, google_api):
    google_api.add("POST", ":batchUpdate", json={})
    google_api.add("POST", DOCS, json={"documentId": "doc-9"})

    response = client.post(
        "/api/google/docs", json={"title": "Rental terms", "content": "Fuel must be full."}, headers=auth_headers
    )

    assert response.status_code == 201
    assert response.json() == {
        "success": True,
        "documentId": "doc-9",
        "documentUrl": "https://docs.google.com/document/d/doc-9/edit",
    }
    update = json.loads(google_api.calls("POST", ":batchUpdate")[0].content)
    assert update["requests"][0]["insertText"]["text"] == "Fuel must be full."


async def test_booking_event_skipped_without_connection(db, staff_user, make_customer, make_vehicle, make_booking):
    booking = make_booking(make_customer(), make_vehicle())

    assert await google_calendar_service.create_booking_event(db, staff_user, booking) is None
    assert await google_calendar_service.delete_booking_event(db, staff_user, booking) is False


async def test_google_request_maps_errors_to_502(google_api):
    google_api.add("GET", "www.googleapis.com/calendar", status=403, json={"error": "forbidden"})

    with pytest.raises(HTTPException) as exc:
        await google_oauth.google_request("GET", f"{google_calendar_service.GOOGLE_CALENDAR_API}/users/me", "token")

    assert exc.value.status_code == 502

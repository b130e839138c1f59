def _log_call(client, headers, **overrides):
    payload = {
        "callerName": "Peter Park",
        "callerPhone": "+1 555 123 9876",
        "callDuration": 95,
        "reason": "Booking inquiry",
    }
    payload.update(overrides)
    return client.post("/api/n8n-calls", json=payload, headers=headers)


def test_log_and_fetch_call(client, auth_headers):
    response = _log_call(client, auth_headers)

    assert response.status_code == 201
    call = response.json()
    assert call["status"] == "new"
    assert call["callerName"] == "Peter Park"

    fetched = client.get(f"/api/n8n-calls/{call['id']}", headers=auth_headers)
    assert fetched.json()["callDuration"] == 95


def test_filter_calls_by_status(client, auth_headers):
    _log_call(client, auth_headers)
    booked = _log_call(client, auth_headers, status="booked").json()

    response = client.get("/api/n8n-calls/status/booked", headers=auth_headers)

    assert [c["id"] for c in response.json()] == [booked["id"]]


def test_filter_by_unknown_status_is_400(client, auth_headers):
    assert client.get("/api/n8n-calls/status/dropped", headers=auth_headers).status_code == 400


def test_update_call_keeps_unset_fields(client, auth_headers):
    call = _log_call(client, auth_headers).json()

    response = client.put(
        f"/api/n8n-calls/{call['id']}",
        json={"status": "followup", "agentNotes": "Call back tomorrow"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    updated = response.json()
    assert updated["status"] == "followup"
    assert updated["agentNotes"] == "Call back tomorrow"
    assert updated["callerName"] == "Peter Park"


def test_delete_call(client, auth_headers):
    call = _log_call(client, auth_headers).json()

    assert client.delete(f"/api/n8n-calls/{call['id']}", headers=auth_headers).status_code == 200
    assert client.get(f"/api/n8n-calls/{call['id']}", headers=auth_headers).status_code == 404

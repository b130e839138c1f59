from carflow.domain.customers.service import CustomerService


def test_create_customer_normalizes_email(client, auth_headers):
    response = client.post(
        "/api/customers",
        json={"fullName": "Ana Lopez", "email": "  Ana.Lopez@Example.COM ", "phone": "+1 (555) 201-3344"},
        headers=auth_headers,
    )

    assert response.status_code == 201
    assert response.json()["email"] == "ana.lopez@example.com"


def test_duplicate_email_conflicts(client, auth_headers, make_customer):
    existing = make_customer()

    response = client.post(
        "/api/customers", json={"fullName": "Someone Else", "email": existing.email}, headers=auth_headers
    )

    assert response.status_code == 409


def test_invalid_phone_is_400(client, auth_headers):
    response = client.post(
        "/api/customers",
        json={"fullName": "Bad Phone", "email": "bad@example.com", "phone": "12"},
        headers=auth_headers,
    )

    assert response.status_code == 400
    assert "phone" in response.json()["detail"]


def test_search_customers(client, auth_headers, make_customer):
    make_customer(full_name="Maria Garcia")
    make_customer(full_name="John Smith")

    response = client.get("/api/customers", params={"search": "garc"}, headers=auth_headers)

    assert response.status_code == 200
    assert [c["fullName"] for c in response.json()] == ["Maria Garcia"]


def test_update_customer(client, auth_headers, make_customer):
    customer = make_customer()

    response = client.put(
        f"/api/customers/{customer.id}", json={"notes": "Prefers SUVs"}, headers=auth_headers
    )

    assert response.status_code == 200
    assert response.json()["notes"] == "Prefers SUVs"
    assert response.json()["email"] == customer.email


def test_delete_customer_with_bookings_conflicts(client, auth_headers, make_customer, make_vehicle, make_booking):
    customer = make_customer()
    make_booking(customer, make_vehicle())

    assert client.delete(f"/api/customers/{customer.id}", headers=auth_headers).status_code == 409


def test_customer_bookings(client, auth_headers, make_customer, make_vehicle, make_booking):
    customer = make_customer()
    booking = make_booking(customer, make_vehicle())
    make_booking(make_customer(), make_vehicle())

    response = client.get(f"/api/customers/{customer.id}/bookings", headers=auth_headers)

    assert response.status_code == 200
    assert [b["id"] for b in response.json()] == [booking.id]


def test_export_customers_csv(client, auth_headers, make_customer):
    customer = make_customer(full_name="Csv Person")

    response = client.get("/api/customers/export", headers=auth_headers)

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "Csv Person" in response.text
    assert customer.email in response.text


def test_find_or_create_matches_by_email_then_phone(db, make_customer):
    existing = make_customer(email="match@example.com", phone="+15550001111")
    service = CustomerService(db)

    assert service.find_or_create_customer("Anyone", email="match@example.com").id == existing.id
    assert service.find_or_create_customer("Anyone", phone="+15550001111").id == existing.id


def test_find_or_create_without_email_uses_phone_placeholder(db):
    customer = CustomerService(db).find_or_create_customer("Caller Only", phone="+1 555 777 8888")
    db.commit()

    assert customer.id is not None
    assert customer.email == "phone-15557778888@customers.carflow.local"


def test_find_or_create_needs_identity(db):
    assert CustomerService(db).find_or_create_customer(None, email="x@example.com") is None
    assert CustomerService(db).find_or_create_customer("Nameless") is None

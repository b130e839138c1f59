from datetime import date

from carflow.domain.vehicles.pricing import calculate_rental_price, rental_days


def test_same_day_rental_bills_one_day():
    assert rental_days(date(2030, 3, 1), date(2030, 3, 1)) == 1
    assert rental_days(date(2030, 3, 1), date(2030, 3, 4)) == 3


def test_daily_rate_without_pricing_row(make_vehicle):
    vehicle = make_vehicle(daily_rate=40)

    quote = calculate_rental_price(vehicle, date(2030, 3, 1), date(2030, 3, 6))

    assert quote["days"] == 5
    assert quote["basePrice"] == 200
    assert quote["insurance"] == 0
    assert quote["totalPrice"] == 200


def test_weekly_and_monthly_tiers(make_vehicle, add_pricing):
    vehicle = make_vehicle(daily_rate=40)
    add_pricing(vehicle, daily_rate=40, weekly_rate=250, monthly_rate=900)

    # 40 days = 1 month + 1 week + 3 days
    quote = calculate_rental_price(vehicle, date(2030, 1, 1), date(2030, 2, 10))

    assert quote["breakdown"] == {"months": 1, "weeks": 1, "days": 3}
    assert quote["basePrice"] == 900 + 250 + 3 * 40


def test_missing_tier_falls_through(make_vehicle, add_pricing):
    vehicle = make_vehicle(daily_rate=40)
    add_pricing(vehicle, daily_rate=35, weekly_rate=200)

    # 31 days without a monthly rate: 4 weeks + 3 days
    quote = calculate_rental_price(vehicle, date(2030, 1, 1), date(2030, 2, 1))

    assert quote["breakdown"] == {"months": 0, "weeks": 4, "days": 3}
    assert quote["basePrice"] == 4 * 200 + 3 * 35


def test_insurance_uses_vehicle_rate_when_set(make_vehicle, add_pricing):
    vehicle = make_vehicle(daily_rate=40)
    add_pricing(vehicle, daily_rate=40, insurance_daily_rate=12)

    quote = calculate_rental_price(vehicle, date(2030, 1, 1), date(2030, 1, 3), include_insurance=True)

    assert quote["insurance"] == 24
    assert quote["totalPrice"] == 80 + 24


def test_quote_endpoint(client, auth_headers, make_vehicle):
    vehicle = make_vehicle(daily_rate=60)

    response = client.get(
        f"/api/vehicles/{vehicle.id}/quote",
        params={"startDate": "2030-06-01", "endDate": "2030-06-04"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    assert response.json()["totalPrice"] == 180


def test_pricing_update_roundtrip(client, auth_headers, make_vehicle):
    vehicle = make_vehicle(daily_rate=60)

    response = client.put(
        f"/api/vehicles/{vehicle.id}/pricing",
        json={"dailyRate": 55, "weeklyRate": 300},
        headers=auth_headers,
    )

    assert response.status_code == 200
    assert response.json()["weeklyRate"] == 300

    quote = client.get(
        f"/api/vehicles/{vehicle.id}/quote",
        params={"startDate": "2030-06-01", "endDate": "2030-06-09"},
        headers=auth_headers,
    ).json()
    assert quote["basePrice"] == 300 + 55

"""Rental price quotes"""

from datetime import date

from ...config import INSURANCE_DAILY_RATE
from ...models import Vehicle

DAYS_PER_MONTH = 30
DAYS_PER_WEEK = 7


def rental_days(start_date: date, end_date: date) -> int:
    """Billable days; same-day rentals bill one day"""
    return max(1, (end_date - start_date).days)


def calculate_rental_price(
    vehicle: Vehicle, start_date: date, end_date: date, include_insurance: bool = False
) -> dict:
    """
    Quote a rental.

    With a pricing row, whole 30-day blocks use the monthly rate, remaining
    whole weeks the weekly rate and leftover days the daily rate. Tiers
    without a rate fall through to the next smaller one.
    """
    days = rental_days(start_date, end_date)
    pricing = vehicle.pricing

    daily_rate = pricing.daily_rate if pricing else vehicle.daily_rate
    months = weeks = 0
    remaining = days

    if pricing and pricing.monthly_rate:
        months, remaining = divmod(remaining, DAYS_PER_MONTH)
    if pricing and pricing.weekly_rate:
        weeks, remaining = divmod(remaining, DAYS_PER_WEEK)

    base_price = remaining * daily_rate
    if months:
        base_price += months * pricing.monthly_rate
    if weeks:
        base_price += weeks * pricing.weekly_rate

    insurance_rate = INSURANCE_DAILY_RATE
    if pricing and pricing.insurance_daily_rate is not None:
        insurance_rate = pricing.insurance_daily_rate
    insurance = insurance_rate * days if include_insurance else 0

    return {
        "vehicleId": vehicle.id,
        "vehicle": vehicle.display_name,
        "startDate": start_date.isoformat(),
        "endDate": end_date.isoformat(),
        "days": days,
        "dailyRate": daily_rate,
        "breakdown": {"months": months, "weeks": weeks, "days": remaining},
        "basePrice": base_price,
        "insurance": insurance,
        "totalPrice": base_price + insurance,
    }

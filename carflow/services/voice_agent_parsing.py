"""
Voice agent request normalization

ElevenLabs tool calls arrive with loosely named parameters and spoken-style
values. These helpers map them onto one request shape per action.
"""

import re
from datetime import date, datetime
from typing import Any, Iterable, Optional

from dateutil import parser as date_parser

DEFAULT_PICKUP_TIME = "09:00"
DEFAULT_RETURN_TIME = "17:00"

ISO_DATE = re.compile(r"(\d{4})-(\d{1,2})-(\d{1,2})")
DAY_FIRST_DATE = re.compile(r"(\d{1,2})[/-](\d{1,2})[/-](\d{4})")
YEAR_PATTERN = re.compile(r"\b(?:19|20)\d{2}\b")

ACTION_ALIASES = {
    "vehicles": ("get_vehicles", "get_available_vehicles", "search_vehicles"),
    "pricing": ("calculate_rental_price", "get_price", "pricing"),
    "booking": ("create_booking", "book", "reserve"),
    "booking_lookup": ("get_booking_details", "find_booking", "booking_status"),
    "availability_check": ("check_vehicle_availability", "availability", "check_availability"),
    "booking_modification": ("modify_booking", "change_booking", "update_booking"),
    "booking_cancellation": ("cancel_booking", "cancel", "booking_cancellation"),
}

BOOKING_REQUIRED_FIELDS = {
    "customer_name": "your full name",
    "phone": "your phone number",
    "start_date": "pickup date",
    "end_date": "return date",
}

HELP_MESSAGE = (
    "I can help you with vehicle rentals. I can search for available vehicles, calculate prices, "
    "create bookings, or help with existing reservations. What would you like to do?"
)


def get_parameter(params: Optional[dict], keys: Iterable[str]) -> Any:
    """First value among ``keys`` that is not None or an empty string"""
    if not params:
        return None
    for key in keys:
        value = params.get(key)
        if value is not None and value != "":
            return value
    return None


def search_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip().lower()
    return text or None


def _safe_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_date(value: Any) -> Any:
    """
    Normalize a spoken or typed date to a ``date``.

    Numeric forms are read as YYYY-MM-DD or day first (DD/MM/YYYY,
    DD-MM-YYYY); free text goes through dateutil. Anything unparseable is
    returned unchanged so validation can report it.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()

    match = ISO_DATE.search(text)
    if match:
        year, month, day = (int(part) for part in match.groups())
        parsed = _safe_date(year, month, day)
        if parsed:
            return parsed

    match = DAY_FIRST_DATE.search(text)
    if match:
        first, second, year = (int(part) for part in match.groups())
        parsed = _safe_date(year, second, first) or _safe_date(year, first, second)
        if parsed:
            return parsed

    try:
        return date_parser.parse(text, fuzzy=True, default=datetime.combine(date.today(), datetime.min.time())).date()
    except (ValueError, OverflowError):
        return text


def parse_time(value: Any, default: str) -> str:
    """Normalize "9am", "9:30 pm" or "17:00" to HH:MM"""
    if value is None or value == "":
        return default
    try:
        return date_parser.parse(str(value)).strftime("%H:%M")
    except (ValueError, OverflowError):
        return default


def normalize_booking_ref(value: Any) -> Optional[str]:
    """"7801", "bk 7801" and "BK-7801" all name booking BK-7801"""
    if value is None or value == "":
        return None
    text = str(value).strip().upper()
    if text.isdigit():
        return f"BK-{text}"
    match = re.fullmatch(r"BK[\s-]?(\d+)", text)
    if match:
        return f"BK-{match.group(1)}"
    return text


def extract_year(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    match = YEAR_PATTERN.search(str(value))
    return int(match.group(0)) if match else None


def to_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    match = re.search(r"\d+", str(value))
    return int(match.group(0)) if match else None


def to_int_list(value: Any) -> list[int]:
    """"3", 3, "3, 7" and [3, "7"] all become a list of ids"""
    if value is None or value == "":
        return []
    if isinstance(value, (list, tuple, set)):
        items = list(value)
    elif isinstance(value, str):
        items = re.split(r"[\s,;]+", value.strip())
    else:
        items = [value]
    return [v for v in (to_int(item) for item in items) if v is not None]


def to_bool(value: Any, default: bool) -> bool:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() not in ("false", "no", "0", "none", "without")


def resolve_action(action: Optional[str]) -> str:
    action = (action or "").strip().lower()
    for request_type, aliases in ACTION_ALIASES.items():
        if action in aliases:
            return request_type
    return "natural_language"


def detect_intent(text: str) -> Optional[str]:
    text = (text or "").lower()
    if any(word in text for word in ("book", "reserve", "rent")):
        return "booking"
    if any(word in text for word in ("available", "search", "find")):
        return "search_vehicles"
    if any(word in text for word in ("price", "cost", "rate")):
        return "pricing"
    if "cancel" in text:
        return "cancellation"
    return None


def _vehicle_filters(params: dict) -> dict:
    category = search_text(get_parameter(params, ["category", "vehicle_category", "car_category", "type"]))
    year = extract_year(get_parameter(params, ["year", "vehicle_year", "model_year"]))
    min_year = extract_year(get_parameter(params, ["min_year", "year_from", "from_year"]))
    max_year = extract_year(get_parameter(params, ["max_year", "year_to", "to_year"]))

    filters = {
        "category": category if category != "all" else None,
        "make": search_text(get_parameter(params, ["make", "vehicle_make", "brand", "manufacturer"])),
        "model": search_text(get_parameter(params, ["model", "vehicle_model", "car_model"])),
        "year": year,
        "min_year": min_year,
        "max_year": max_year,
        "transmission": search_text(get_parameter(params, ["transmission", "gear"])),
        "fuel_type": search_text(get_parameter(params, ["fuel_type", "fuel", "engine_type"])),
        "seats": to_int(get_parameter(params, ["seats", "passengers", "seating"])),
        "doors": to_int(get_parameter(params, ["doors"])),
        "start_date": parse_date(get_parameter(params, ["start_date", "pickup_date", "from_date"])),
        "end_date": parse_date(get_parameter(params, ["end_date", "return_date", "to_date"])),
    }
    # A lone year means exactly that year
    if year and not min_year and not max_year:
        filters["min_year"] = year
        filters["max_year"] = year
    return filters


def normalize_request(body: dict) -> dict:
    """
    Map a raw tool call onto {"requestType", "action", <per-type data>}.

    The action comes from ``action``, ``tool_name`` or ``function_name``;
    parameters from ``parameters``, ``arguments``, ``data`` or the body itself.
    """
    body = body or {}
    action = get_parameter(body, ["action", "tool_name", "function_name"])
    params = get_parameter(body, ["parameters", "arguments", "data"])
    if not isinstance(params, dict):
        params = body

    request_type = resolve_action(action)
    request: dict[str, Any] = {"requestType": request_type, "action": action}

    if request_type == "vehicles":
        request["filters"] = _vehicle_filters(params)

    elif request_type == "pricing":
        rental_type = search_text(get_parameter(params, ["rental_type"])) or "daily"
        request["priceQuery"] = {
            "vehicle_id": to_int(get_parameter(params, ["vehicle_id", "car_id", "id"])),
            "vehicle_make": search_text(get_parameter(params, ["vehicle_make", "make"])),
            "vehicle_model": search_text(get_parameter(params, ["vehicle_model", "model"])),
            "category": search_text(get_parameter(params, ["category", "vehicle_category"])),
            "start_date": parse_date(get_parameter(params, ["start_date", "pickup_date", "from_date"])),
            "end_date": parse_date(get_parameter(params, ["end_date", "return_date", "to_date"])),
            "rental_days": to_int(get_parameter(params, ["rental_days", "days", "duration"])),
            "include_insurance": to_bool(get_parameter(params, ["include_insurance", "insurance"]), True),
            "rental_type": rental_type if rental_type in ("daily", "weekly", "monthly") else "daily",
        }

    elif request_type == "booking":
        data = {
            "customer_name": get_parameter(params, ["customer_name", "name", "full_name"]),
            "email": get_parameter(params, ["email", "customer_email", "email_address"]),
            "phone": get_parameter(params, ["phone", "customer_phone", "phone_number", "mobile"]),
            "driver_license": get_parameter(params, ["driver_license", "license", "driving_license"]),
            "vehicle_id": to_int(get_parameter(params, ["vehicle_id", "car_id", "id"])),
            "vehicle_make": search_text(get_parameter(params, ["vehicle_make", "make"])),
            "vehicle_model": search_text(get_parameter(params, ["vehicle_model", "model"])),
            "category": search_text(get_parameter(params, ["category", "vehicle_category"])),
            "start_date": parse_date(get_parameter(params, ["start_date", "pickup_date", "from_date"])),
            "end_date": parse_date(get_parameter(params, ["end_date", "return_date", "to_date"])),
            "pickup_time": parse_time(get_parameter(params, ["pickup_time", "start_time"]), DEFAULT_PICKUP_TIME),
            "return_time": parse_time(get_parameter(params, ["return_time", "end_time"]), DEFAULT_RETURN_TIME),
            "pickup_location": get_parameter(params, ["pickup_location", "pickup_address"]),
            "return_location": get_parameter(params, ["return_location", "return_address"]),
            "special_requests": get_parameter(params, ["special_requests", "notes", "comments", "requirements"]),
        }
        request["bookingData"] = data

        missing = [field for field in BOOKING_REQUIRED_FIELDS if not data[field]]
        if missing:
            request["validationErrors"] = missing
            request["message"] = (
                "I need some more information to complete your booking: "
                f"{', '.join(BOOKING_REQUIRED_FIELDS[f] for f in missing)}. Please provide these details."
            )

    elif request_type == "booking_lookup":
        request["lookupData"] = {
            "booking_reference": get_parameter(params, ["booking_reference", "reference", "booking_id", "booking_ref"]),
            "customer_name": get_parameter(params, ["customer_name", "name"]),
            "phone": get_parameter(params, ["phone", "customer_phone"]),
        }

    elif request_type == "availability_check":
        request["availabilityQuery"] = {
            "vehicle_ids": to_int_list(get_parameter(params, ["vehicle_ids", "car_ids"])),
            "vehicle_id": to_int(get_parameter(params, ["vehicle_id", "car_id"])),
            "start_date": parse_date(get_parameter(params, ["start_date", "pickup_date"])),
            "end_date": parse_date(get_parameter(params, ["end_date", "return_date"])),
            "category": search_text(get_parameter(params, ["category", "vehicle_category"])),
            "make": search_text(get_parameter(params, ["make", "vehicle_make"])),
            "model": search_text(get_parameter(params, ["model", "vehicle_model"])),
        }

    elif request_type == "booking_modification":
        request["modificationData"] = {
            "booking_reference": get_parameter(params, ["booking_reference", "reference", "booking_ref"]),
            "customer_name": get_parameter(params, ["customer_name", "name"]),
            "phone": get_parameter(params, ["phone", "customer_phone"]),
            "new_start_date": parse_date(get_parameter(params, ["new_start_date", "start_date"])),
            "new_end_date": parse_date(get_parameter(params, ["new_end_date", "end_date"])),
            "new_vehicle_id": to_int(get_parameter(params, ["new_vehicle_id", "vehicle_id"])),
            "new_pickup_location": get_parameter(params, ["new_pickup_location", "pickup_location"]),
            "new_special_requests": get_parameter(params, ["new_special_requests", "special_requests"]),
        }

    elif request_type == "booking_cancellation":
        request["cancellationData"] = {
            "booking_reference": get_parameter(params, ["booking_reference", "reference", "booking_ref"]),
            "customer_name": get_parameter(params, ["customer_name", "name"]),
            "phone": get_parameter(params, ["phone", "customer_phone"]),
            "cancellation_reason": get_parameter(params, ["cancellation_reason", "reason"]),
        }

    else:
        text = get_parameter(body, ["text", "message"]) or ""
        request["naturalLanguageQuery"] = {
            "original_text": str(text),
            "detected_intent": detect_intent(str(text)),
        }
        request["message"] = HELP_MESSAGE

    return request

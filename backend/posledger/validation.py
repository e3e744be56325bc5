from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable

from .errors import ValidationError
from .time_utils import parse_iso_datetime, parse_date_bound


# Maximum amount: 9,999,999,999.99 (999,999,999,999 cents)
# Keeps sums well inside a signed 64-bit column
MAX_AMOUNT_CENTS = 999_999_999_999


def coerce_int(value: Any, field: str) -> int:
    """
    Strict integer coercion for JSON input.

    Rejects bools, floats, decimals in strings and scientific notation so
    "12.5" or 1e3 never silently become a quantity.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer", {"field": field, "value": value})
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer", {"field": field, "value": value})
        if "e" in stripped.lower():
            raise ValidationError(
                f"{field} must be a plain integer (scientific notation not allowed)",
                {"field": field, "value": value},
            )
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)", {"field": field, "value": value})
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer", {"field": field, "value": value})
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal", {"field": field, "value": value})
    raise ValidationError(f"{field} must be an integer", {"field": field, "value": value})


def positive_int(value: Any, field: str) -> int:
    number = coerce_int(value, field)
    if number < 1:
        raise ValidationError(f"{field} must be at least 1", {"field": field, "value": number})
    return number


def positive_cents(value: Any, field: str = "amount_cents") -> int:
    cents = coerce_int(value, field)
    if cents <= 0:
        raise ValidationError(f"{field} must be greater than 0", {"field": field, "value": cents})
    if cents > MAX_AMOUNT_CENTS:
        raise ValidationError(
            f"{field} exceeds maximum of {MAX_AMOUNT_CENTS}",
            {"field": field, "value": cents, "max": MAX_AMOUNT_CENTS},
        )
    return cents


def optional_int(value: Any, field: str) -> int | None:
    if value is None or value == "":
        return None
    return coerce_int(value, field)


def choice(value: Any, field: str, allowed: Iterable[str]) -> str:
    allowed = list(allowed)
    if value not in allowed:
        raise ValidationError(
            f"Invalid {field}: {value}. Must be one of {allowed}",
            {"field": field, "value": value, "allowed": allowed},
        )
    return value


def optional_datetime(value: Any, field: str) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be an ISO-8601 datetime", {"field": field})
    try:
        return parse_iso_datetime(value)
    except ValueError:
        raise ValidationError(f"{field} must be an ISO-8601 datetime", {"field": field, "value": value})


def page_args(page: Any, limit: Any, *, max_limit: int = 200) -> tuple[int, int]:
    page_num = positive_int(page if page is not None else 1, "page")
    limit_num = positive_int(limit if limit is not None else 50, "limit")
    return page_num, min(limit_num, max_limit)


def date_range(start: Any, end: Any) -> tuple[datetime | None, datetime | None]:
    """
    Parse inclusive report bounds from query args.

    A bare date as the upper bound covers that whole day.
    """
    try:
        start_dt = parse_date_bound(start)
        end_dt = parse_date_bound(end, end_of_day=True)
    except ValueError:
        raise ValidationError(
            "from and to must be ISO-8601 dates or datetimes",
            {"from": start, "to": end},
        )
    return start_dt, end_dt

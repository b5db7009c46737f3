"""
Built-in functions of the clause logic language.

The table is closed: logic cannot define functions of its own. Both logic
backends share these implementations, the interpreter through ``FUNCTIONS``
and generated or hand-written Python modules by importing them directly.

``now()`` is not in the table; it reads the clock injected into each
execution.

Durations are ``org.accordproject.time.Duration`` instances in their JSON
form: ``{"$class": ..., "amount": 2, "unit": "days"}``.
"""

from __future__ import annotations

import calendar
import math
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

from pactum.stdlib import DURATION, PERIOD_UNITS, TEMPORAL_UNITS


class BuiltinError(Exception):
    """Raised when a built-in function receives unusable arguments."""


_SECONDS_PER_UNIT: dict[str, int] = {
    "seconds": 1,
    "minutes": 60,
    "hours": 3600,
    "days": 86400,
    "weeks": 604800,
}


# =============================================================================
# Values
# =============================================================================


def make_duration(amount: int, unit: str) -> dict[str, Any]:
    """Build a Duration value."""
    if unit not in TEMPORAL_UNITS:
        raise BuiltinError(f"Unknown duration unit: {unit}")
    return {"$class": DURATION, "amount": amount, "unit": unit}


def is_duration(value: Any) -> bool:
    return isinstance(value, dict) and value.get("$class") == DURATION


def to_timedelta(value: Any) -> timedelta:
    """Convert a Duration value (or a timedelta) into a timedelta."""
    if isinstance(value, timedelta):
        return value
    if not is_duration(value):
        raise BuiltinError(f"Expected a Duration, got {type_name(value)}")
    unit = value["unit"]
    if unit not in _SECONDS_PER_UNIT:
        raise BuiltinError(f"Unknown duration unit: {unit}")
    return timedelta(seconds=value["amount"] * _SECONDS_PER_UNIT[unit])


def to_datetime(value: Any) -> datetime:
    """Accept a datetime or an ISO 8601 string; naive values are taken as UTC."""
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value)
        except ValueError as e:
            raise BuiltinError(f"Invalid DateTime: {value!r}") from e
    if not isinstance(value, datetime):
        raise BuiltinError(f"Expected a DateTime, got {type_name(value)}")
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value


def type_name(value: Any) -> str:
    if isinstance(value, dict) and "$class" in value:
        return str(value["$class"])
    return type(value).__name__


# =============================================================================
# Time
# =============================================================================


def is_before(a: Any, b: Any) -> bool:
    return to_datetime(a) < to_datetime(b)


def is_after(a: Any, b: Any) -> bool:
    return to_datetime(a) > to_datetime(b)


def is_same(a: Any, b: Any, unit: str | None = None) -> bool:
    """Same instant, or same calendar ``unit`` (days, months, ...) when given."""
    if unit is None:
        return to_datetime(a) == to_datetime(b)
    return start_of(a, unit) == start_of(b, unit)


def add_duration(dt: Any, duration: Any) -> datetime:
    return to_datetime(dt) + to_timedelta(duration)


def subtract_duration(dt: Any, duration: Any) -> datetime:
    return to_datetime(dt) - to_timedelta(duration)


def diff_duration_as(start: Any, end: Any, unit: str) -> dict[str, Any]:
    """Elapsed time from ``start`` to ``end`` as a whole number of ``unit``.

    The amount is truncated toward zero, so 2 days and 9 hours is 2 days
    and minus 2 days and 9 hours is -2 days.
    """
    if unit not in _SECONDS_PER_UNIT:
        raise BuiltinError(f"Unknown duration unit: {unit}")
    delta = to_datetime(end) - to_datetime(start)
    seconds = delta.days * 86400 + delta.seconds
    amount = int(seconds / _SECONDS_PER_UNIT[unit])
    return make_duration(amount, unit)


def duration(amount: Any, unit: str) -> dict[str, Any]:
    if isinstance(amount, bool) or not isinstance(amount, (int, float)):
        raise BuiltinError(f"duration() amount must be a number, got {type_name(amount)}")
    return make_duration(int(amount), unit)


def start_of(dt: Any, unit: str) -> datetime:
    """Start of the calendar period containing ``dt``."""
    value = to_datetime(dt)
    day = value.replace(hour=0, minute=0, second=0, microsecond=0)
    if unit in ("day", "days"):
        return day
    if unit in ("week", "weeks"):
        return day - timedelta(days=day.weekday())
    if unit in ("month", "months"):
        return day.replace(day=1)
    if unit in ("quarter", "quarters"):
        return day.replace(month=3 * ((day.month - 1) // 3) + 1, day=1)
    if unit in ("year", "years"):
        return day.replace(month=1, day=1)
    raise BuiltinError(f"Unknown period unit: {unit} (expected one of {', '.join(PERIOD_UNITS)})")


def end_of(dt: Any, unit: str) -> datetime:
    """Last microsecond of the calendar period containing ``dt``."""
    start = start_of(dt, unit)
    if unit in ("day", "days"):
        nxt = start + timedelta(days=1)
    elif unit in ("week", "weeks"):
        nxt = start + timedelta(weeks=1)
    else:
        months = {"month": 1, "months": 1, "quarter": 3, "quarters": 3}.get(unit, 12)
        nxt = _add_months(start, months)
    return nxt - timedelta(microseconds=1)


def _add_months(dt: datetime, months: int) -> datetime:
    month_index = dt.month - 1 + months
    year = dt.year + month_index // 12
    month = month_index % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


# =============================================================================
# Numbers, strings and lists
# =============================================================================


def minimum(*values: Any) -> Any:
    vals = _flatten_non_null(values)
    return min(vals) if vals else None


def maximum(*values: Any) -> Any:
    vals = _flatten_non_null(values)
    return max(vals) if vals else None


def absolute(value: Any) -> Any:
    if value is None:
        return None
    return abs(value)


def round_to(value: Any, ndigits: Any = 0) -> Any:
    if value is None:
        return None
    return round(value, int(ndigits))


def floor(value: Any) -> Any:
    if value is None:
        return None
    return math.floor(value)


def ceil(value: Any) -> Any:
    if value is None:
        return None
    return math.ceil(value)


def total(*values: Any) -> Any:
    return sum(_flatten_non_null(values))


def length(value: Any) -> int:
    if value is None:
        return 0
    return len(value)


def concat(*parts: Any) -> str:
    return "".join(to_string(p) for p in parts if p is not None)


def coalesce(*values: Any) -> Any:
    for value in values:
        if value is not None:
            return value
    return None


def to_string(value: Any) -> str:
    """Render a logic value as text."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime):
        return value.isoformat()
    if is_duration(value):
        return f"{value['amount']} {value['unit']}"
    return str(value)


def _flatten_non_null(values: tuple[Any, ...]) -> list[Any]:
    # min([a, b]) and min(a, b) are both accepted
    if len(values) == 1 and isinstance(values[0], list):
        values = tuple(values[0])
    return [v for v in values if v is not None]


FUNCTIONS: dict[str, Callable[..., Any]] = {
    "isBefore": is_before,
    "isAfter": is_after,
    "isSame": is_same,
    "addDuration": add_duration,
    "subtractDuration": subtract_duration,
    "diffDurationAs": diff_duration_as,
    "duration": duration,
    "startOf": start_of,
    "endOf": end_of,
    "min": minimum,
    "max": maximum,
    "abs": absolute,
    "round": round_to,
    "floor": floor,
    "ceil": ceil,
    "sum": total,
    "len": length,
    "concat": concat,
    "coalesce": coalesce,
    "toString": to_string,
}

# Names resolvable in a call, including the clock
FUNCTION_NAMES = frozenset(FUNCTIONS) | {"now"}

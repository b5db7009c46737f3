"""
Value formats: how each property type appears in contract text.

A ``ValueFormat`` knows three things about a type: the regular expression
that recognizes it in text, how to turn matched text into a JSON value,
and how to render a JSON (or runtime) value back into text.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from pactum.core.errors import DraftError, GrammarSyntaxError
from pactum.core.model_manager import format_datetime, parse_datetime
from pactum.stdlib import DURATION, MONETARY_AMOUNT, PERIOD, PERIOD_UNITS, TEMPORAL_UNITS

_INT = r"-?\d+"
_NUMBER = r"-?\d+(?:\.\d+)?(?:[eE][+-]?\d+)?"
_QUOTED = r'"(?:[^"\\]|\\.)*"'
_ISO_DATETIME = (
    r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}(?::\d{2}(?:\.\d+)?)?(?:Z|[+-]\d{2}:?\d{2})?"
)

_MONTHS = [
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
]


@dataclass(frozen=True)
class ValueFormat:
    """Base class; subclasses implement one type."""

    type_name: str

    def pattern(self) -> str:
        raise NotImplementedError

    def parse(self, text: str) -> Any:
        raise NotImplementedError

    def render(self, value: Any, unquoted: bool = False) -> str:
        raise NotImplementedError

    def describe(self) -> str:
        return f"a {self.type_name.rsplit('.', 1)[-1]}"


@dataclass(frozen=True)
class StringFormat(ValueFormat):
    def pattern(self) -> str:
        return _QUOTED

    def parse(self, text: str) -> str:
        return re.sub(r"\\(.)", r"\1", text[1:-1])

    def render(self, value: Any, unquoted: bool = False) -> str:
        if unquoted:
            return str(value)
        escaped = str(value).replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'

    def describe(self) -> str:
        return "a quoted String"


@dataclass(frozen=True)
class BooleanFormat(ValueFormat):
    def pattern(self) -> str:
        return r"true|false"

    def parse(self, text: str) -> bool:
        return text == "true"

    def render(self, value: Any, unquoted: bool = False) -> str:
        return "true" if value else "false"


@dataclass(frozen=True)
class IntegerFormat(ValueFormat):
    def pattern(self) -> str:
        return _INT

    def parse(self, text: str) -> int:
        return int(text)

    def render(self, value: Any, unquoted: bool = False) -> str:
        return str(int(value))


@dataclass(frozen=True)
class DoubleFormat(ValueFormat):
    """
    Doubles render in shortest round-trip form with at least one decimal
    (``7.0``). A format such as ``0.00`` or ``0,0.00`` fixes the number of
    decimals and enables thousands separators.
    """

    format: str | None = None

    def _decimals(self) -> int:
        assert self.format is not None
        _, _, fraction = self.format.partition(".")
        return len(fraction)

    def pattern(self) -> str:
        if self.format is None:
            return _NUMBER
        decimals = self._decimals()
        whole = r"-?\d{1,3}(?:,\d{3})*" if "," in self.format else r"-?\d+"
        return whole + (rf"\.\d{{{decimals}}}" if decimals else "")

    def parse(self, text: str) -> float:
        return float(text.replace(",", ""))

    def render(self, value: Any, unquoted: bool = False) -> str:
        number = float(value)
        if self.format is None:
            return repr(number)
        grouping = "," if "," in self.format else ""
        return f"{number:{grouping}.{self._decimals()}f}"


@dataclass(frozen=True)
class DateTimeFormat(ValueFormat):
    """
    ISO 8601 by default. Format tokens: ``YYYY``, ``MMMM``, ``MMM``, ``MM``,
    ``DD``, ``D``, ``HH``, ``mm``, ``ss``, ``Z``; other characters are literal.
    """

    format: str | None = None

    _TOKENS = ("YYYY", "MMMM", "MMM", "MM", "DD", "D", "HH", "mm", "ss", "Z")

    def _split(self) -> list[str]:
        assert self.format is not None
        parts: list[str] = []
        i = 0
        while i < len(self.format):
            for token in self._TOKENS:
                if self.format.startswith(token, i):
                    parts.append(token)
                    i += len(token)
                    break
            else:
                parts.append(self.format[i])
                i += 1
        return parts

    def pattern(self) -> str:
        if self.format is None:
            return _ISO_DATETIME
        regex = {
            "YYYY": r"\d{4}",
            "MMMM": "(?:" + "|".join(_MONTHS) + ")",
            "MMM": "(?:" + "|".join(m[:3] for m in _MONTHS) + ")",
            "MM": r"\d{2}",
            "DD": r"\d{2}",
            "D": r"\d{1,2}",
            "HH": r"\d{2}",
            "mm": r"\d{2}",
            "ss": r"\d{2}",
            "Z": r"(?:Z|[+-]\d{2}:\d{2})",
        }
        return "".join(regex.get(part, re.escape(part)) for part in self._split())

    def parse(self, text: str) -> str:
        if self.format is None:
            return format_datetime(parse_datetime(text))
        fields = {"year": 1970, "month": 1, "day": 1, "hour": 0, "minute": 0, "second": 0}
        offset = "Z"
        rest = text
        for part in self._split():
            if part == "YYYY":
                fields["year"], rest = int(rest[:4]), rest[4:]
            elif part in ("MMMM", "MMM"):
                names = _MONTHS if part == "MMMM" else [m[:3] for m in _MONTHS]
                for index, name in enumerate(names):
                    if rest.startswith(name):
                        fields["month"], rest = index + 1, rest[len(name) :]
                        break
            elif part in ("MM", "DD", "HH", "mm", "ss"):
                key = {"MM": "month", "DD": "day", "HH": "hour", "mm": "minute", "ss": "second"}[
                    part
                ]
                fields[key], rest = int(rest[:2]), rest[2:]
            elif part == "D":
                m = re.match(r"\d{1,2}", rest)
                assert m is not None
                fields["day"], rest = int(m.group(0)), rest[m.end() :]
            elif part == "Z":
                m = re.match(r"Z|[+-]\d{2}:\d{2}", rest)
                assert m is not None
                offset, rest = m.group(0), rest[m.end() :]
            else:
                rest = rest[len(part) :]
        suffix = "+00:00" if offset == "Z" else offset
        value = datetime.fromisoformat(
            "{year:04d}-{month:02d}-{day:02d}T{hour:02d}:{minute:02d}:{second:02d}".format(
                **fields
            )
            + suffix
        )
        return format_datetime(value)

    def render(self, value: Any, unquoted: bool = False) -> str:
        moment = value if isinstance(value, datetime) else parse_datetime(str(value))
        if self.format is None:
            return format_datetime(moment)
        out: list[str] = []
        for part in self._split():
            if part == "YYYY":
                out.append(f"{moment.year:04d}")
            elif part == "MMMM":
                out.append(_MONTHS[moment.month - 1])
            elif part == "MMM":
                out.append(_MONTHS[moment.month - 1][:3])
            elif part == "MM":
                out.append(f"{moment.month:02d}")
            elif part == "DD":
                out.append(f"{moment.day:02d}")
            elif part == "D":
                out.append(str(moment.day))
            elif part == "HH":
                out.append(f"{moment.hour:02d}")
            elif part == "mm":
                out.append(f"{moment.minute:02d}")
            elif part == "ss":
                out.append(f"{moment.second:02d}")
            elif part == "Z":
                offset = moment.utcoffset()
                if not offset:
                    out.append("Z")
                else:
                    out.append(moment.isoformat()[-6:])
            else:
                out.append(part)
        return "".join(out)


@dataclass(frozen=True)
class EnumFormat(ValueFormat):
    values: tuple[str, ...] = ()

    def pattern(self) -> str:
        ordered = sorted(self.values, key=len, reverse=True)
        return "|".join(re.escape(v) for v in ordered)

    def parse(self, text: str) -> str:
        return text

    def render(self, value: Any, unquoted: bool = False) -> str:
        return str(value)

    def describe(self) -> str:
        return "one of " + ", ".join(self.values)


@dataclass(frozen=True)
class AmountUnitFormat(ValueFormat):
    """``<amount> <unit>`` values: Duration, Period and MonetaryAmount."""

    amount_field: str = "amount"
    unit_field: str = "unit"
    units: tuple[str, ...] = ()
    amount_pattern: str = _INT

    def pattern(self) -> str:
        units = "|".join(re.escape(u) for u in sorted(self.units, key=len, reverse=True))
        return rf"(?:{self.amount_pattern})\s+(?:{units})"

    def parse(self, text: str) -> dict[str, Any]:
        amount_text, unit = text.split()
        amount: int | float = (
            int(amount_text) if self.amount_pattern == _INT else float(amount_text)
        )
        return {"$class": self.type_name, self.amount_field: amount, self.unit_field: unit}

    def render(self, value: Any, unquoted: bool = False) -> str:
        if not isinstance(value, dict):
            raise DraftError(f"Expected a {self.type_name} value, got {value!r}")
        amount = value.get(self.amount_field)
        unit = value.get(self.unit_field)
        if amount is None or unit is None:
            raise DraftError(f"Incomplete {self.type_name} value: {value!r}")
        if self.amount_pattern == _INT:
            return f"{int(amount)} {unit}"
        return f"{float(amount)!r} {unit}"

    def describe(self) -> str:
        return f"a {self.type_name.rsplit('.', 1)[-1]} such as '1 {self.units[0]}'"


_CURRENCIES = ("AUD", "CAD", "CHF", "CNY", "EUR", "GBP", "JPY", "USD")

# Concept types that have an inline text form
INLINE_CONCEPTS: dict[str, ValueFormat] = {
    DURATION: AmountUnitFormat(DURATION, units=TEMPORAL_UNITS),
    PERIOD: AmountUnitFormat(PERIOD, units=PERIOD_UNITS),
    MONETARY_AMOUNT: AmountUnitFormat(
        MONETARY_AMOUNT,
        amount_field="doubleValue",
        unit_field="currencyCode",
        units=_CURRENCIES,
        amount_pattern=_NUMBER,
    ),
}


def primitive_format(type_name: str, fmt: str | None = None) -> ValueFormat:
    """Format for a primitive type name, optionally with a format pattern."""
    if type_name == "String":
        return StringFormat(type_name)
    if type_name == "Boolean":
        return BooleanFormat(type_name)
    if type_name in ("Integer", "Long"):
        return IntegerFormat(type_name)
    if type_name == "Double":
        if fmt is not None and not re.fullmatch(r"0(,0)?(\.0+)?", fmt):
            raise GrammarSyntaxError(f"Unsupported Double format {fmt!r}")
        return DoubleFormat(type_name, format=fmt)
    if type_name == "DateTime":
        return DateTimeFormat(type_name, format=fmt)
    raise GrammarSyntaxError(f"No text format for type {type_name!r}")


def render_formula_value(value: Any) -> str:
    """Text for the result of a ``{{% ... %}}`` formula."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return repr(value)
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return format_datetime(value)
    if isinstance(value, dict):
        fmt = INLINE_CONCEPTS.get(str(value.get("$class")))
        if fmt is not None:
            return fmt.render(value)
    if value is None:
        return ""
    return str(value)

"""
Canonical field mapper: heterogeneous spreadsheet headers -> typed logical fields.

Pure functions, ZERO I/O. Every logical field has one declared FieldType and
is coerced exactly once here; validators and the resolver only ever see
typed values.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Mapping, Sequence

from mediaplan_ingestion.domain.types import FieldSpec, FieldType, Severity, ValidationIssue


# -----------------------------------------------------------------------------
# Result types
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class CoercionResult:
    """Result of coercing a raw cell to a target type."""

    success: bool
    value: Any = None
    error: str | None = None


@dataclass(frozen=True)
class HeaderMap:
    """Which source header feeds each logical field."""

    mapped: dict[str, str] = field(default_factory=dict)  # logical -> source header
    unmapped: tuple[str, ...] = ()  # source headers no field claimed
    missing: tuple[str, ...] = ()  # logical fields with no source header


@dataclass(frozen=True)
class MappingResult:
    """Result of mapping one raw row."""

    success: bool
    values: dict[str, Any] = field(default_factory=dict)
    issues: tuple[ValidationIssue, ...] = ()


# -----------------------------------------------------------------------------
# Header matching
# -----------------------------------------------------------------------------

_NON_ALNUM = re.compile(r"[^0-9a-z]")


def normalize_header(header: Any) -> str:
    """Lowercase and drop everything but letters and digits."""
    if header is None:
        return ""
    return _NON_ALNUM.sub("", str(header).lower())


def _candidates(spec: FieldSpec) -> list[str]:
    names = list(spec.synonyms)
    if spec.label:
        names.append(spec.label)
    names.append(spec.name)
    return names


def build_header_map(headers: Iterable[str], fields: Sequence[FieldSpec]) -> HeaderMap:
    """
    Match source headers to logical fields.

    Synonyms are tried in declared order, so when a file carries two
    spellings of the same field the higher-priority one wins. A source header
    feeds at most one logical field.
    """
    headers = list(headers)
    by_normalized: dict[str, str] = {}
    for h in headers:
        by_normalized.setdefault(normalize_header(h), h)

    mapped: dict[str, str] = {}
    claimed: set[str] = set()
    for spec in fields:
        for candidate in _candidates(spec):
            source = by_normalized.get(normalize_header(candidate))
            if source is not None and source not in claimed:
                mapped[spec.name] = source
                claimed.add(source)
                break

    return HeaderMap(
        mapped=mapped,
        unmapped=tuple(h for h in headers if h not in claimed),
        missing=tuple(spec.name for spec in fields if spec.name not in mapped),
    )


# -----------------------------------------------------------------------------
# Coercion
# -----------------------------------------------------------------------------

_NULL_MARKERS = frozenset({"", "-", "--", "n/a", "na", "null", "none"})
_CURRENCY_AND_SEPARATORS = re.compile(r"[\s ,%€$£¥₹]|(?i:eur|usd|gbp)")

_MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "sept": 9, "oct": 10, "nov": 11, "dec": 12,
}
_DAY_MONTH_YEAR = re.compile(r"^(\d{1,2})[-\s/]([A-Za-z]{3,9})[-\s/](\d{2}|\d{4})$")
_ISO_DATE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})(?:[T ].*)?$")
_SLASH_DATE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")

_TRUE = frozenset({"true", "yes", "y", "1", "on"})
_FALSE = frozenset({"false", "no", "n", "0", "off"})


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip().lower() in _NULL_MARKERS)


def parse_number(value: Any) -> CoercionResult:
    """
    Parse a human-edited numeric cell into a Decimal.

    Currency symbols, thousands separators, percent signs and whitespace are
    stripped. "-" and "" mean "no value" and yield None, not zero. Anything
    else that is not a number yields None plus an error.
    """
    if isinstance(value, bool):
        return CoercionResult(success=False, error=f"Not a number: {value!r}")
    if isinstance(value, Decimal):
        return CoercionResult(success=True, value=value)
    if isinstance(value, int):
        return CoercionResult(success=True, value=Decimal(value))
    if isinstance(value, float):
        return CoercionResult(success=True, value=Decimal(str(value)))
    if _is_blank(value):
        return CoercionResult(success=True, value=None)

    s = str(value).strip()
    negative = s.startswith("(") and s.endswith(")")
    if negative:
        s = s[1:-1]
    s = _CURRENCY_AND_SEPARATORS.sub("", s)
    if not s or s == "-":
        return CoercionResult(success=True, value=None)
    try:
        number = Decimal(s)
    except InvalidOperation:
        return CoercionResult(success=False, error=f"Not a number: {value!r}")
    if not number.is_finite():
        return CoercionResult(success=False, error=f"Not a number: {value!r}")
    return CoercionResult(success=True, value=-number if negative else number)


def parse_date(value: Any) -> CoercionResult:
    """
    Parse a date cell.

    Accepts D-MMM-YY and D-MMM-YYYY (e.g. "1-Feb-25"; two-digit years are
    20YY), full month names, ISO YYYY-MM-DD and DD/MM/YYYY. Spreadsheet date
    cells pass through.
    """
    if isinstance(value, datetime):
        return CoercionResult(success=True, value=value.date())
    if isinstance(value, date):
        return CoercionResult(success=True, value=value)
    if _is_blank(value):
        return CoercionResult(success=True, value=None)

    s = str(value).strip()
    try:
        m = _DAY_MONTH_YEAR.match(s)
        if m:
            month = _MONTHS.get(m.group(2)[:4].lower()) or _MONTHS.get(m.group(2)[:3].lower())
            if month is None:
                return CoercionResult(success=False, error=f"Unknown month in date: {value!r}")
            year = int(m.group(3))
            if year < 100:
                year += 2000
            return CoercionResult(success=True, value=date(year, month, int(m.group(1))))
        m = _ISO_DATE.match(s)
        if m:
            return CoercionResult(
                success=True, value=date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
            )
        m = _SLASH_DATE.match(s)
        if m:
            return CoercionResult(
                success=True, value=date(int(m.group(3)), int(m.group(2)), int(m.group(1)))
            )
    except ValueError:
        return CoercionResult(success=False, error=f"Invalid calendar date: {value!r}")
    return CoercionResult(success=False, error=f"Cannot parse date: {value!r}")


def coerce_value(value: Any, field_type: FieldType) -> CoercionResult:
    """Coerce a raw cell to the declared field type. Blank cells become None."""
    if field_type == FieldType.TEXT:
        if value is None or not str(value).strip():
            return CoercionResult(success=True, value=None)
        if isinstance(value, float) and value.is_integer():
            value = int(value)
        text = re.sub(r"\s+", " ", str(value)).strip()
        return CoercionResult(success=True, value=text or None)

    if field_type == FieldType.DECIMAL:
        return parse_number(value)

    if field_type == FieldType.INTEGER:
        result = parse_number(value)
        if not result.success or result.value is None:
            return result
        if result.value != result.value.to_integral_value():
            return CoercionResult(success=False, error=f"Not a whole number: {value!r}")
        return CoercionResult(success=True, value=int(result.value))

    if field_type == FieldType.BOOLEAN:
        if isinstance(value, bool):
            return CoercionResult(success=True, value=value)
        if value is None or not str(value).strip():
            return CoercionResult(success=True, value=None)
        low = str(value).strip().lower()
        if low in _TRUE:
            return CoercionResult(success=True, value=True)
        if low in _FALSE:
            return CoercionResult(success=True, value=False)
        return CoercionResult(success=False, error=f"Not a yes/no value: {value!r}")

    if field_type == FieldType.DATE:
        return parse_date(value)

    return CoercionResult(success=False, error=f"Unsupported field type: {field_type}")


# -----------------------------------------------------------------------------
# Apply mapping (pure)
# -----------------------------------------------------------------------------


def map_row(
    raw: Mapping[str, Any],
    header_map: HeaderMap,
    fields: Sequence[FieldSpec],
    row_index: int,
) -> MappingResult:
    """
    Map one raw row to typed logical fields.

    Logical fields without a source header stay absent so validation can
    report them as missing. A cell that cannot be coerced maps to None and
    produces a critical issue on that row.
    """
    values: dict[str, Any] = {}
    issues: list[ValidationIssue] = []

    for spec in fields:
        source = header_map.mapped.get(spec.name)
        if source is None:
            continue
        raw_value = raw.get(source)
        result = coerce_value(raw_value, spec.field_type)
        if result.success:
            values[spec.name] = result.value
            continue
        values[spec.name] = None
        issues.append(
            ValidationIssue(
                row_index=row_index,
                field_name=spec.display_name,
                severity=Severity.CRITICAL,
                message=f"{spec.display_name}: {result.error}",
                observed_value=raw_value,
                code=f"INVALID_{spec.field_type.name}",
            )
        )

    return MappingResult(success=not issues, values=values, issues=tuple(issues))

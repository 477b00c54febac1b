"""Tests for the canonical field mapper."""

from datetime import date, datetime
from decimal import Decimal

import pytest

from mediaplan_ingestion.domain.types import FieldSpec, FieldType, Severity
from mediaplan_ingestion.mapping.engine import (
    build_header_map,
    coerce_value,
    map_row,
    normalize_header,
    parse_date,
    parse_number,
)

FIELDS = (
    FieldSpec(name="business_unit", label="Business Unit", synonyms=("Business Unit", "BU")),
    FieldSpec(
        name="start_date",
        label="Start Date",
        field_type=FieldType.DATE,
        synonyms=("Initial Date", "Start Date"),
    ),
    FieldSpec(name="total_budget", label="Total Budget", field_type=FieldType.DECIMAL, synonyms=("Budget",)),
    FieldSpec(name="burst", field_type=FieldType.INTEGER),
)


class TestNormalizeHeader:
    @pytest.mark.parametrize("header", ["Business Unit", "BU ", "business_unit", "BUSINESSUNIT"])
    def test_spellings_collapse(self, header):
        assert normalize_header(header) in ("businessunit", "bu")

    def test_punctuation_dropped(self):
        assert normalize_header("R1+ (%)") == "r1"
        assert normalize_header(None) == ""


class TestBuildHeaderMap:
    def test_synonyms_map_to_one_field(self):
        for header in ("Business Unit", "BU", "BUSINESSUNIT", "business unit"):
            hm = build_header_map([header], FIELDS)
            assert hm.mapped["business_unit"] == header

    def test_synonym_order_sets_priority(self):
        hm = build_header_map(["Start Date", "Initial Date"], FIELDS)
        assert hm.mapped["start_date"] == "Initial Date"
        assert "Start Date" in hm.unmapped

    def test_field_name_is_implicit_synonym(self):
        hm = build_header_map(["burst"], FIELDS)
        assert hm.mapped["burst"] == "burst"

    def test_unrecognized_and_missing(self):
        hm = build_header_map(["Budget", "Comments"], FIELDS)
        assert hm.mapped == {"total_budget": "Budget"}
        assert hm.unmapped == ("Comments",)
        assert set(hm.missing) == {"business_unit", "start_date", "burst"}


class TestParseNumber:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("€ 1,234.50", Decimal("1234.50")),
            ("1 000", Decimal("1000")),
            (" 12,5%", Decimal("125")),
            ("45%", Decimal("45")),
            ("(1,200)", Decimal("-1200")),
            ("USD 300", Decimal("300")),
            (42, Decimal("42")),
            (0.25, Decimal("0.25")),
        ],
    )
    def test_parses(self, raw, expected):
        r = parse_number(raw)
        assert r.success and r.value == expected

    @pytest.mark.parametrize("raw", ["-", "", "  ", None, "n/a"])
    def test_empty_markers_are_none_not_zero(self, raw):
        r = parse_number(raw)
        assert r.success and r.value is None

    @pytest.mark.parametrize("raw", ["abc", "1.2.3", "NaN", "twelve", True])
    def test_garbage_is_error(self, raw):
        r = parse_number(raw)
        assert not r.success and r.value is None and r.error


class TestParseDate:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("1-Feb-25", date(2025, 2, 1)),
            ("01-Feb-2025", date(2025, 2, 1)),
            ("15-September-2025", date(2025, 9, 15)),
            ("2025-02-01", date(2025, 2, 1)),
            ("2025-02-01T00:00:00", date(2025, 2, 1)),
            ("01/02/2025", date(2025, 2, 1)),
            (date(2025, 3, 4), date(2025, 3, 4)),
            (datetime(2025, 3, 4, 10, 30), date(2025, 3, 4)),
        ],
    )
    def test_formats(self, raw, expected):
        r = parse_date(raw)
        assert r.success and r.value == expected

    def test_impossible_calendar_date(self):
        r = parse_date("31-Feb-25")
        assert not r.success and "Invalid calendar date" in r.error

    def test_unknown_format(self):
        r = parse_date("next tuesday")
        assert not r.success

    def test_blank_is_none(self):
        r = parse_date("")
        assert r.success and r.value is None


class TestCoerceValue:
    def test_text_collapses_whitespace(self):
        assert coerce_value("  Open   TV ", FieldType.TEXT).value == "Open TV"

    def test_text_keeps_dash(self):
        assert coerce_value("-", FieldType.TEXT).value == "-"

    def test_integer_rejects_fraction(self):
        assert coerce_value("3", FieldType.INTEGER).value == 3
        assert not coerce_value("3.5", FieldType.INTEGER).success

    def test_boolean(self):
        assert coerce_value("Yes", FieldType.BOOLEAN).value is True
        assert coerce_value("n", FieldType.BOOLEAN).value is False
        assert coerce_value("", FieldType.BOOLEAN).value is None
        assert not coerce_value("maybe", FieldType.BOOLEAN).success


class TestMapRow:
    def test_typed_values(self):
        hm = build_header_map(["BU", "Initial Date", "Budget"], FIELDS)
        result = map_row({"BU": "Nivea", "Initial Date": "1-Feb-25", "Budget": "€ 1,000"}, hm, FIELDS, 1)
        assert result.success
        assert result.values == {
            "business_unit": "Nivea",
            "start_date": date(2025, 2, 1),
            "total_budget": Decimal("1000"),
        }
        assert "burst" not in result.values

    def test_coercion_failure_is_critical_issue_on_row(self):
        hm = build_header_map(["Budget"], FIELDS)
        result = map_row({"Budget": "lots"}, hm, FIELDS, 7)
        assert not result.success
        assert result.values["total_budget"] is None
        (issue,) = result.issues
        assert issue.row_index == 7
        assert issue.severity == Severity.CRITICAL
        assert issue.code == "INVALID_DECIMAL"
        assert issue.field_name == "Total Budget"
        assert issue.observed_value == "lots"

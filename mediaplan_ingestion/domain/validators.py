"""
Validation engine: tiered rules over mapped and resolved rows.

Record-level validators look at one row at a time; duplicate detection looks
across the file in file order. Everything here is a pure function of the
rows and the import profile: the relational store is never touched.

Architecture: mediaplan_ingestion/domain. ZERO I/O.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Any, Iterable, Sequence

from mediaplan_ingestion.domain.types import (
    CrossFieldRule,
    DuplicateKey,
    FieldSpec,
    ImportProfile,
    ReconciledRow,
    Severity,
    ValidationIssue,
    ValidationSummary,
)


def _fmt(value: Any) -> str:
    if isinstance(value, Decimal):
        text = format(value.normalize(), "f")
        return text
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, Decimal)) and not isinstance(value, bool)


# -----------------------------------------------------------------------------
# Record-level validators (one row at a time)
# -----------------------------------------------------------------------------


def validate_required_fields(
    row: ReconciledRow,
    profile: ImportProfile,
    skip: frozenset[str] = frozenset(),
) -> list[ValidationIssue]:
    """Every required field must carry a value."""
    issues: list[ValidationIssue] = []
    for spec in profile.fields:
        if not spec.required or spec.name in skip:
            continue
        if row.values.get(spec.name) is None:
            issues.append(
                ValidationIssue(
                    row_index=row.row_index,
                    field_name=spec.display_name,
                    severity=Severity.CRITICAL,
                    message=f"{spec.display_name} is required and cannot be empty",
                    code="MISSING_REQUIRED_FIELD",
                )
            )
    return issues


def _describe_bounds(spec: FieldSpec) -> str:
    lo, hi = spec.minimum, spec.maximum
    if lo is not None and hi is not None:
        if not spec.exclusive_minimum and not spec.exclusive_maximum:
            return f"between {_fmt(lo)} and {_fmt(hi)}"
        left = "(" if spec.exclusive_minimum else "["
        right = ")" if spec.exclusive_maximum else "]"
        return f"in {left}{_fmt(lo)}, {_fmt(hi)}{right}"
    if lo is not None:
        return f"greater than {_fmt(lo)}" if spec.exclusive_minimum else f"at least {_fmt(lo)}"
    return f"less than {_fmt(hi)}" if spec.exclusive_maximum else f"at most {_fmt(hi)}"


def _within_bounds(value: Any, spec: FieldSpec) -> bool:
    if spec.minimum is not None:
        if value < spec.minimum or (spec.exclusive_minimum and value == spec.minimum):
            return False
    if spec.maximum is not None:
        if value > spec.maximum or (spec.exclusive_maximum and value == spec.maximum):
            return False
    return True


def validate_bounds(row: ReconciledRow, profile: ImportProfile) -> list[ValidationIssue]:
    """Numeric fields must fall inside their hard bounds (e.g. age 0-100)."""
    issues: list[ValidationIssue] = []
    for spec in profile.fields:
        if spec.minimum is None and spec.maximum is None:
            continue
        value = row.values.get(spec.name)
        if not _is_number(value):
            continue
        if not _within_bounds(value, spec):
            issues.append(
                ValidationIssue(
                    row_index=row.row_index,
                    field_name=spec.display_name,
                    severity=Severity.CRITICAL,
                    message=f"{spec.display_name} must be {_describe_bounds(spec)}",
                    observed_value=value,
                    code="VALUE_OUT_OF_RANGE",
                )
            )
    return issues


def validate_choices(row: ReconciledRow, profile: ImportProfile) -> list[ValidationIssue]:
    """Enumerated fields must hold one of the allowed values (case-insensitive)."""
    issues: list[ValidationIssue] = []
    for spec in profile.fields:
        if not spec.choices:
            continue
        value = row.values.get(spec.name)
        if value is None:
            continue
        allowed = {c.casefold() for c in spec.choices}
        if str(value).casefold() not in allowed:
            issues.append(
                ValidationIssue(
                    row_index=row.row_index,
                    field_name=spec.display_name,
                    severity=spec.choices_severity,
                    message=f"{spec.display_name} must be one of {', '.join(spec.choices)}",
                    observed_value=value,
                    code="INVALID_CHOICE",
                )
            )
    return issues


def _is_typical_value(value: Any, typical: Iterable[Any]) -> bool:
    for candidate in typical:
        if isinstance(value, str) and isinstance(candidate, str):
            if value.casefold() == candidate.casefold():
                return True
        elif _is_number(value) and _is_number(candidate):
            if value == candidate:
                return True
        elif value == candidate:
            return True
    return False


def validate_typical_values(
    row: ReconciledRow,
    profile: ImportProfile,
    skip: frozenset[str] = frozenset(),
) -> list[ValidationIssue]:
    """Flag legal but uncommon values as warnings or suggestions."""
    issues: list[ValidationIssue] = []
    for spec in profile.fields:
        if spec.name in skip:
            continue
        value = row.values.get(spec.name)
        if value is None:
            continue
        lo, hi = spec.typical_minimum, spec.typical_maximum
        if _is_number(value) and (lo is not None or hi is not None):
            if (lo is not None and value < lo) or (hi is not None and value > hi):
                issues.append(
                    ValidationIssue(
                        row_index=row.row_index,
                        field_name=spec.display_name,
                        severity=spec.typical_severity,
                        message=(
                            f"Uncommon {spec.display_name} {_fmt(value)}; typical range is "
                            f"{_fmt(lo) if lo is not None else '-'} to {_fmt(hi) if hi is not None else '-'}"
                        ),
                        observed_value=value,
                        code="UNCOMMON_VALUE",
                    )
                )
                continue
        if spec.typical_values and not _is_typical_value(value, spec.typical_values):
            shown = ", ".join(_fmt(v) for v in spec.typical_values)
            issues.append(
                ValidationIssue(
                    row_index=row.row_index,
                    field_name=spec.display_name,
                    severity=spec.typical_severity,
                    message=f"Uncommon {spec.display_name} '{_fmt(value)}'; common values are {shown}",
                    observed_value=value,
                    code="UNCOMMON_VALUE",
                )
            )
    return issues


def _matches_any(value: Any, needles: Sequence[str]) -> bool:
    if value is None:
        return False
    haystack = str(value).casefold()
    return any(n.casefold() in haystack for n in needles)


def _cross_field_issue(
    row: ReconciledRow,
    rule: CrossFieldRule,
    field_name: str,
    default_message: str,
    observed: Any,
) -> ValidationIssue:
    return ValidationIssue(
        row_index=row.row_index,
        field_name=field_name,
        severity=rule.severity,
        message=rule.message or default_message,
        observed_value=observed,
        code=f"CROSS_FIELD_{rule.rule_type.upper()}",
    )


def validate_cross_fields(row: ReconciledRow, profile: ImportProfile) -> list[ValidationIssue]:
    """Apply the profile's cross-field rules in declared order."""
    issues: list[ValidationIssue] = []
    values = row.values
    for rule in profile.cross_field_rules:
        labels = [profile.label_for(f) for f in rule.fields]

        if rule.rule_type == "less_than":
            first, second = (values.get(f) for f in rule.fields[:2])
            if first is not None and second is not None and not first < second:
                issues.append(_cross_field_issue(
                    row, rule, labels[1],
                    f"{labels[0]} must be less than {labels[1]}",
                    second,
                ))

        elif rule.rule_type == "same_year":
            first, second = (values.get(f) for f in rule.fields[:2])
            if isinstance(first, date) and isinstance(second, date) and first.year != second.year:
                issues.append(_cross_field_issue(
                    row, rule, labels[1],
                    f"{labels[0]} and {labels[1]} must be in the same year",
                    second,
                ))

        elif rule.rule_type == "required_when":
            trigger = values.get(rule.when_field) if rule.when_field else None
            if _matches_any(trigger, rule.when_values):
                for name, label in zip(rule.fields, labels):
                    if values.get(name) is None:
                        issues.append(_cross_field_issue(
                            row, rule, label,
                            f"{label} is required for {profile.label_for(rule.when_field)} '{trigger}'",
                            None,
                        ))

        elif rule.rule_type == "only_when":
            trigger = values.get(rule.when_field) if rule.when_field else None
            if not _matches_any(trigger, rule.when_values):
                for name, label in zip(rule.fields, labels):
                    value = values.get(name)
                    if value is not None and value != 0:
                        issues.append(_cross_field_issue(
                            row, rule, label,
                            f"{label} should only be used when {profile.label_for(rule.when_field)} "
                            f"is one of {', '.join(rule.when_values)}",
                            value,
                        ))

        elif rule.rule_type == "sum_matches":
            total = values.get(rule.fields[0])
            parts = [values.get(f) for f in rule.fields[1:]]
            present = [p for p in parts if p is not None]
            if _is_number(total) and present:
                difference = abs(sum(present, Decimal(0)) - total)
                if difference > abs(total) * rule.tolerance:
                    issues.append(_cross_field_issue(
                        row, rule, labels[0],
                        f"{labels[0]} should equal the sum of {', '.join(labels[1:])}",
                        total,
                    ))

    return issues


# -----------------------------------------------------------------------------
# Cross-record validators (file context)
# -----------------------------------------------------------------------------


def _key_part(value: Any) -> Any:
    if isinstance(value, str):
        return value.casefold()
    return value


def detect_duplicates(
    rows: Sequence[ReconciledRow],
    key: DuplicateKey,
    profile: ImportProfile,
) -> dict[int, list[ValidationIssue]]:
    """
    Flag repeated composite keys in file order.

    The first occurrence of a key is not flagged; the second and every later
    occurrence are critical. Rows whose key fields are all empty are ignored.
    Returns row index -> issues.
    """
    label = key.label or " + ".join(profile.label_for(f) for f in key.fields)
    first_seen: dict[tuple[Any, ...], int] = {}
    result: dict[int, list[ValidationIssue]] = defaultdict(list)
    for row in rows:
        parts = tuple(row.values.get(f) for f in key.fields)
        if all(p is None for p in parts):
            continue
        normalized = tuple(_key_part(p) for p in parts)
        if normalized not in first_seen:
            first_seen[normalized] = row.row_index
            continue
        shown = " + ".join(f"'{_fmt(p)}'" if p is not None else "(empty)" for p in parts)
        result[row.row_index].append(
            ValidationIssue(
                row_index=row.row_index,
                field_name=label,
                severity=Severity.CRITICAL,
                message=(
                    f"Duplicate {label} {shown}: already used in row {first_seen[normalized]}"
                ),
                observed_value=" + ".join(_fmt(p) if p is not None else "" for p in parts),
                code="DUPLICATE_ROW",
            )
        )
    return dict(result)


# -----------------------------------------------------------------------------
# Summary and engine
# -----------------------------------------------------------------------------


def summarize_issues(
    issues: Sequence[ValidationIssue],
    total_rows: int,
) -> ValidationSummary:
    """Aggregate counts by severity and distinct affected rows."""
    counts = {s: 0 for s in Severity}
    affected: set[int] = set()
    critical_rows: set[int] = set()
    for issue in issues:
        counts[issue.severity] += 1
        if issue.row_index is not None:
            affected.add(issue.row_index)
            if issue.severity == Severity.CRITICAL:
                critical_rows.add(issue.row_index)
    return ValidationSummary(
        total_rows=total_rows,
        critical=counts[Severity.CRITICAL],
        warning=counts[Severity.WARNING],
        suggestion=counts[Severity.SUGGESTION],
        affected_rows=len(affected),
        rows_with_critical=len(critical_rows),
    )


class ValidationEngine:
    """
    Runs the fixed, ordered validator set of an import profile.

    Per row: issues collected upstream (coercion, resolution, scope), then
    required fields, bounds, enumerations, typical values and cross-field
    rules. Finally duplicate detection across the file.
    """

    def __init__(self, profile: ImportProfile):
        self._profile = profile

    def validate(
        self,
        rows: Sequence[ReconciledRow],
        missing_columns: Sequence[str] = (),
    ) -> tuple[list[ValidationIssue], ValidationSummary]:
        profile = self._profile
        issues: list[ValidationIssue] = []

        missing_required = frozenset(
            name for name in missing_columns
            if (spec := profile.get_field(name)) is not None and spec.required
        )
        for name in sorted(missing_required, key=lambda n: profile.label_for(n)):
            issues.append(
                ValidationIssue(
                    row_index=None,
                    field_name=profile.label_for(name),
                    severity=Severity.CRITICAL,
                    message=f"Missing required column '{profile.label_for(name)}'",
                    code="MISSING_REQUIRED_COLUMN",
                )
            )

        duplicates = (
            detect_duplicates(rows, profile.duplicate_key, profile)
            if profile.duplicate_key
            else {}
        )

        for row in rows:
            failed = frozenset(
                spec.name for spec in profile.fields
                if any(i.field_name == spec.display_name for i in row.issues)
            )
            row_issues = list(row.issues)
            row_issues.extend(validate_required_fields(row, profile, skip=missing_required | failed))
            hard = validate_bounds(row, profile) + validate_choices(row, profile)
            row_issues.extend(hard)
            rejected = frozenset(
                spec.name for spec in profile.fields
                if any(i.field_name == spec.display_name for i in hard)
            )
            row_issues.extend(validate_typical_values(row, profile, skip=rejected))
            row_issues.extend(validate_cross_fields(row, profile))
            row_issues.extend(duplicates.get(row.row_index, ()))
            issues.extend(row_issues)

        return issues, summarize_issues(issues, total_rows=len(rows))

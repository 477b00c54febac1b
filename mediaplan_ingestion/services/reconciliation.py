"""
Row reconciliation shared by validation and import.

Maps raw session records to typed values, resolves their references and
checks them against the session scope.
"""

from __future__ import annotations

from typing import Any, Sequence

from mediaplan_ingestion.domain.types import (
    ImportProfile,
    ImportScope,
    ReconciledRow,
    Severity,
    ValidationIssue,
)
from mediaplan_ingestion.mapping.engine import HeaderMap, build_header_map, map_row
from mediaplan_ingestion.resolution.resolver import (
    MasterDataResolver,
    ResolverContext,
    normalize_name,
)

# Reference field -> scope attribute it must agree with
_SCOPE_FIELDS = (
    ("country", "country_id"),
    ("business_unit", "business_unit_id"),
    ("period", "period_id"),
)


def check_scope(
    values: dict[str, Any],
    reference_ids: dict[str, int | None],
    scope: ImportScope,
    profile: ImportProfile,
    row_index: int,
) -> list[ValidationIssue]:
    """
    Rows may repeat the scope's country, business unit and period; when they
    name something else the row belongs to another scope and is critical.
    A scope without a business unit accepts any business unit.
    """
    issues: list[ValidationIssue] = []
    for field_name, attr in _SCOPE_FIELDS:
        name = normalize_name(values.get(field_name))
        expected = getattr(scope, attr)
        if name is None or expected is None:
            continue
        if reference_ids.get(field_name) != expected:
            label = profile.label_for(field_name)
            issues.append(
                ValidationIssue(
                    row_index=row_index,
                    field_name=label,
                    severity=Severity.CRITICAL,
                    message=f"{label} '{name}' does not match the import scope",
                    observed_value=name,
                    code="SCOPE_MISMATCH",
                )
            )
    return issues


def reconcile_records(
    headers: Sequence[str],
    raw_records: Sequence[dict[str, Any]],
    profile: ImportProfile,
    scope: ImportScope,
    resolver: MasterDataResolver,
    ctx: ResolverContext,
) -> tuple[HeaderMap, list[ReconciledRow]]:
    """Map, resolve and scope-check every record; row indexes start at 1."""
    header_map = build_header_map(headers, profile.fields)
    rows: list[ReconciledRow] = []
    for row_index, raw in enumerate(raw_records, start=1):
        mapped = map_row(raw, header_map, profile.fields, row_index)
        resolved = resolver.resolve_row(mapped.values, ctx, row_index)
        ctx.commit_row()
        issues = (
            list(mapped.issues)
            + list(resolved.issues)
            + check_scope(mapped.values, resolved.ids, scope, profile, row_index)
        )
        rows.append(
            ReconciledRow(
                row_index=row_index,
                values=mapped.values,
                issues=tuple(issues),
                reference_ids=resolved.ids,
            )
        )
    return header_map, rows

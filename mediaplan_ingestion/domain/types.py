"""
mediaplan_ingestion.domain.types -- Pure frozen dataclasses for the import pipeline.

ZERO I/O. Session documents round-trip through ``to_document`` /
``from_document`` using the camelCase keys of the external session format.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any


# =============================================================================
# Enums
# =============================================================================


class FieldType(str, Enum):
    """Type a logical field is coerced to once, in the field mapper."""

    TEXT = "text"
    INTEGER = "integer"
    DECIMAL = "decimal"
    BOOLEAN = "boolean"
    DATE = "date"


class Severity(str, Enum):
    """Validation issue tier. Only CRITICAL blocks an import."""

    CRITICAL = "critical"
    WARNING = "warning"
    SUGGESTION = "suggestion"


class ImportSessionStatus(str, Enum):
    """Session lifecycle: uploaded -> validated -> importing -> imported | error."""

    UPLOADED = "uploaded"
    VALIDATED = "validated"
    IMPORTING = "importing"
    IMPORTED = "imported"
    ERROR = "error"


class ImportOutcome(str, Enum):
    """Whether an import fully, partially or never happened."""

    COMPLETE = "complete"
    PARTIAL = "partial"
    NONE = "none"


# Logical fields that name a master-data entity, in resolution order
REFERENCE_FIELDS: tuple[str, ...] = (
    "sub_region",
    "country",
    "business_unit",
    "category",
    "range",
    "campaign",
    "media_type",
    "media_subtype",
    "period",
)


# =============================================================================
# Import profile (compiled from mediaplan_config definitions)
# =============================================================================


@dataclass(frozen=True)
class FieldSpec:
    """One logical field: header synonyms, type and value rules."""

    name: str
    field_type: FieldType = FieldType.TEXT
    label: str | None = None  # Column name used in messages
    synonyms: tuple[str, ...] = ()  # In priority order
    required: bool = False
    minimum: Decimal | None = None
    maximum: Decimal | None = None
    exclusive_minimum: bool = False
    exclusive_maximum: bool = False
    choices: tuple[str, ...] = ()
    choices_severity: Severity = Severity.CRITICAL
    typical_minimum: Decimal | None = None
    typical_maximum: Decimal | None = None
    typical_values: tuple[Any, ...] = ()
    typical_severity: Severity = Severity.WARNING

    @property
    def display_name(self) -> str:
        return self.label or self.name


@dataclass(frozen=True)
class CrossFieldRule:
    """Rule relating two or more fields of the same row."""

    rule_type: str  # less_than, same_year, required_when, only_when, sum_matches
    fields: tuple[str, ...]
    severity: Severity = Severity.CRITICAL
    when_field: str | None = None
    when_values: tuple[str, ...] = ()
    tolerance: Decimal = Decimal("0.01")
    message: str = ""


@dataclass(frozen=True)
class DuplicateKey:
    """Composite key whose repetition within one file is a critical issue."""

    fields: tuple[str, ...]
    label: str | None = None


@dataclass(frozen=True)
class ImportProfile:
    """Everything the pipeline needs to know about one import type."""

    name: str
    fact_type: str
    version: int = 1
    description: str = ""
    fields: tuple[FieldSpec, ...] = ()
    cross_field_rules: tuple[CrossFieldRule, ...] = ()
    duplicate_key: DuplicateKey | None = None
    auto_create_severity: Severity = Severity.WARNING
    source_options: dict[str, Any] = field(default_factory=dict)

    def get_field(self, name: str) -> FieldSpec | None:
        for spec in self.fields:
            if spec.name == name:
                return spec
        return None

    def label_for(self, name: str) -> str:
        spec = self.get_field(name)
        return spec.display_name if spec else name

    @property
    def reference_fields(self) -> tuple[str, ...]:
        names = {spec.name for spec in self.fields}
        return tuple(f for f in REFERENCE_FIELDS if f in names)


# =============================================================================
# Scope
# =============================================================================


@dataclass(frozen=True)
class ImportScope:
    """The (country, period, business unit) triple bounding one scoped replace."""

    country_id: int
    period_id: int
    business_unit_id: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "countryId": self.country_id,
            "periodId": self.period_id,
            "businessUnitId": self.business_unit_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ImportScope:
        return cls(
            country_id=int(data["countryId"]),
            period_id=int(data["periodId"]),
            business_unit_id=(
                int(data["businessUnitId"]) if data.get("businessUnitId") is not None else None
            ),
        )


# =============================================================================
# Validation
# =============================================================================


@dataclass(frozen=True)
class ValidationIssue:
    """One finding against one row and field. Ephemeral, per validation run."""

    row_index: int | None
    field_name: str | None
    severity: Severity
    message: str
    observed_value: Any = None
    code: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "rowIndex": self.row_index,
            "fieldName": self.field_name,
            "severity": self.severity.value,
            "message": self.message,
            "observedValue": to_json_safe(self.observed_value),
            "code": self.code,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ValidationIssue:
        return cls(
            row_index=data.get("rowIndex"),
            field_name=data.get("fieldName"),
            severity=Severity(data["severity"]),
            message=data["message"],
            observed_value=data.get("observedValue"),
            code=data.get("code", ""),
        )


@dataclass(frozen=True)
class ValidationSummary:
    """Counts by severity and of distinct affected rows."""

    total_rows: int
    critical: int = 0
    warning: int = 0
    suggestion: int = 0
    affected_rows: int = 0
    rows_with_critical: int = 0

    @property
    def can_import(self) -> bool:
        return self.critical == 0

    @property
    def total_issues(self) -> int:
        return self.critical + self.warning + self.suggestion

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalRows": self.total_rows,
            "critical": self.critical,
            "warning": self.warning,
            "suggestion": self.suggestion,
            "affectedRows": self.affected_rows,
            "rowsWithCritical": self.rows_with_critical,
            "canImport": self.can_import,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ValidationSummary:
        return cls(
            total_rows=data.get("totalRows", 0),
            critical=data.get("critical", 0),
            warning=data.get("warning", 0),
            suggestion=data.get("suggestion", 0),
            affected_rows=data.get("affectedRows", 0),
            rows_with_critical=data.get("rowsWithCritical", 0),
        )


@dataclass(frozen=True)
class ReconciledRow:
    """A mapped row plus the issues found while coercing and resolving it."""

    row_index: int  # 1-based data row; the header is line 1 of the file
    values: dict[str, Any]
    issues: tuple[ValidationIssue, ...] = ()
    reference_ids: dict[str, int | None] = field(default_factory=dict)


# =============================================================================
# Import results
# =============================================================================


@dataclass(frozen=True)
class RowOutcome:
    """Per-row result of the insert phase."""

    row_index: int
    success: bool
    record_id: int | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "rowIndex": self.row_index,
            "success": self.success,
            "recordId": self.record_id,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RowOutcome:
        return cls(
            row_index=data["rowIndex"],
            success=data["success"],
            record_id=data.get("recordId"),
            error=data.get("error"),
        )


@dataclass(frozen=True)
class ImportResult:
    """Summary of one scoped replace."""

    session_id: str
    total_records: int
    success_count: int
    error_count: int
    imported_at: datetime
    imported_by: str
    deleted_count: int = 0
    created_entities: dict[str, int] = field(default_factory=dict)
    errors: tuple[RowOutcome, ...] = ()  # Bounded sample, file order

    @property
    def outcome(self) -> ImportOutcome:
        if self.success_count == 0 and self.total_records > 0:
            return ImportOutcome.NONE
        if self.success_count == self.total_records:
            return ImportOutcome.COMPLETE
        return ImportOutcome.PARTIAL

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalRecords": self.total_records,
            "successCount": self.success_count,
            "errorCount": self.error_count,
            "deletedCount": self.deleted_count,
            "importedAt": self.imported_at.isoformat(),
            "importedBy": self.imported_by,
            "createdEntities": dict(self.created_entities),
            "outcome": self.outcome.value,
            "errors": [e.to_dict() for e in self.errors],
        }

    @classmethod
    def from_dict(cls, session_id: str, data: dict[str, Any]) -> ImportResult:
        return cls(
            session_id=session_id,
            total_records=data["totalRecords"],
            success_count=data["successCount"],
            error_count=data["errorCount"],
            deleted_count=data.get("deletedCount", 0),
            imported_at=datetime.fromisoformat(data["importedAt"]),
            imported_by=data.get("importedBy", ""),
            created_entities=dict(data.get("createdEntities") or {}),
            errors=tuple(RowOutcome.from_dict(e) for e in data.get("errors") or ()),
        )


# =============================================================================
# Session document
# =============================================================================


@dataclass(frozen=True)
class ImportSession:
    """Durable holding area for one upload between pipeline stages."""

    session_id: str
    profile: str
    status: ImportSessionStatus
    scope: ImportScope
    headers: tuple[str, ...] = ()
    raw_records: tuple[dict[str, Any], ...] = ()
    uploaded_by: str | None = None
    source_filename: str | None = None
    validation_summary: ValidationSummary | None = None
    validation_issues: tuple[ValidationIssue, ...] = ()
    import_results: ImportResult | None = None
    error_message: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_document(self) -> dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "profile": self.profile,
            "status": self.status.value,
            "rawRecords": [to_json_safe(r) for r in self.raw_records],
            "headers": list(self.headers),
            "scope": self.scope.to_dict(),
            "uploadedBy": self.uploaded_by,
            "sourceFilename": self.source_filename,
            "validationSummary": (
                self.validation_summary.to_dict() if self.validation_summary else None
            ),
            "validationIssues": [i.to_dict() for i in self.validation_issues],
            "importResults": self.import_results.to_dict() if self.import_results else None,
            "errorMessage": self.error_message,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> ImportSession:
        session_id = doc["sessionId"]
        summary = doc.get("validationSummary")
        results = doc.get("importResults")
        return cls(
            session_id=session_id,
            profile=doc["profile"],
            status=ImportSessionStatus(doc["status"]),
            scope=ImportScope.from_dict(doc["scope"]),
            headers=tuple(doc.get("headers") or ()),
            raw_records=tuple(doc.get("rawRecords") or ()),
            uploaded_by=doc.get("uploadedBy"),
            source_filename=doc.get("sourceFilename"),
            validation_summary=ValidationSummary.from_dict(summary) if summary else None,
            validation_issues=tuple(
                ValidationIssue.from_dict(i) for i in doc.get("validationIssues") or ()
            ),
            import_results=ImportResult.from_dict(session_id, results) if results else None,
            error_message=doc.get("errorMessage"),
            created_at=_parse_timestamp(doc.get("createdAt")),
            updated_at=_parse_timestamp(doc.get("updatedAt")),
        )


def _parse_timestamp(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def to_json_safe(obj: Any) -> Any:
    """Convert values to JSON-serializable form (Decimal -> str, dates -> ISO)."""
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, dict):
        return {str(k): to_json_safe(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [to_json_safe(v) for v in obj]
    if isinstance(obj, (date, datetime)):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    return obj

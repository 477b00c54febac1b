"""
mediaplan_ingestion.domain -- Pure types and validators for the import pipeline.

ZERO I/O.
"""

from mediaplan_ingestion.domain.types import (
    REFERENCE_FIELDS,
    CrossFieldRule,
    DuplicateKey,
    FieldSpec,
    FieldType,
    ImportOutcome,
    ImportProfile,
    ImportResult,
    ImportScope,
    ImportSession,
    ImportSessionStatus,
    ReconciledRow,
    RowOutcome,
    Severity,
    ValidationIssue,
    ValidationSummary,
)

__all__ = [
    "REFERENCE_FIELDS",
    "CrossFieldRule",
    "DuplicateKey",
    "FieldSpec",
    "FieldType",
    "ImportOutcome",
    "ImportProfile",
    "ImportResult",
    "ImportScope",
    "ImportSession",
    "ImportSessionStatus",
    "ReconciledRow",
    "RowOutcome",
    "Severity",
    "ValidationIssue",
    "ValidationSummary",
]

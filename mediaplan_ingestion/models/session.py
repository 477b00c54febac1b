"""
Import session ORM model.

Contract:
    ImportSessionModel persists one session document: raw records, headers,
    scope, validation summary and capped issue list, import results. The
    scope ids are real columns so sessions can be listed per scope; the rest
    of the document lives in JSON columns.

Architecture: mediaplan_ingestion/models. Imports from mediaplan_kernel.db.base only.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import JSON, DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from mediaplan_kernel.db.base import TrackedBase

if TYPE_CHECKING:
    from mediaplan_ingestion.domain.types import ImportSession


class ImportSessionModel(TrackedBase):
    """Durable holding area for one upload between pipeline stages."""

    __tablename__ = "import_sessions"

    __table_args__ = (
        Index("ix_import_sessions_session_id", "session_id", unique=True),
        Index("ix_import_sessions_status", "status"),
        Index("ix_import_sessions_scope", "country_id", "period_id", "business_unit_id"),
    )

    session_id: Mapped[str] = mapped_column(String(64), nullable=False)
    profile: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    country_id: Mapped[int] = mapped_column(nullable=False)
    period_id: Mapped[int] = mapped_column(nullable=False)
    business_unit_id: Mapped[int | None] = mapped_column(nullable=True)
    uploaded_by: Mapped[str | None] = mapped_column(String(200), nullable=True)
    source_filename: Mapped[str | None] = mapped_column(String(500), nullable=True)
    headers: Mapped[list] = mapped_column(JSON, nullable=False)
    raw_records: Mapped[list] = mapped_column(JSON, nullable=False)
    validation_summary: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    validation_issues: Mapped[list | None] = mapped_column(JSON, nullable=True)
    import_results: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    session_created_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    session_updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def to_dto(self) -> ImportSession:
        from mediaplan_ingestion.domain.types import ImportSession

        return ImportSession.from_document(self.to_document())

    def to_document(self) -> dict:
        return {
            "sessionId": self.session_id,
            "profile": self.profile,
            "status": self.status,
            "rawRecords": list(self.raw_records or ()),
            "headers": list(self.headers or ()),
            "scope": {
                "countryId": self.country_id,
                "periodId": self.period_id,
                "businessUnitId": self.business_unit_id,
            },
            "uploadedBy": self.uploaded_by,
            "sourceFilename": self.source_filename,
            "validationSummary": self.validation_summary,
            "validationIssues": list(self.validation_issues or ()),
            "importResults": self.import_results,
            "errorMessage": self.error_message,
            "createdAt": self.session_created_at.isoformat() if self.session_created_at else None,
            "updatedAt": self.session_updated_at.isoformat() if self.session_updated_at else None,
        }

    def apply_document(self, doc: dict) -> None:
        """Overwrite every column from a session document."""
        scope = doc["scope"]
        self.session_id = doc["sessionId"]
        self.profile = doc["profile"]
        self.status = doc["status"]
        self.country_id = scope["countryId"]
        self.period_id = scope["periodId"]
        self.business_unit_id = scope.get("businessUnitId")
        self.uploaded_by = doc.get("uploadedBy")
        self.source_filename = doc.get("sourceFilename")
        self.headers = list(doc.get("headers") or ())
        self.raw_records = list(doc.get("rawRecords") or ())
        self.validation_summary = doc.get("validationSummary")
        self.validation_issues = list(doc.get("validationIssues") or ())
        self.import_results = doc.get("importResults")
        self.error_message = doc.get("errorMessage")
        self.session_created_at = _parse_timestamp(doc.get("createdAt"))
        self.session_updated_at = _parse_timestamp(doc.get("updatedAt"))

    @classmethod
    def from_dto(cls, dto: ImportSession) -> ImportSessionModel:
        model = cls()
        model.apply_document(dto.to_document())
        return model


def _parse_timestamp(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None

"""
Import pipeline: upload -> validate -> import, plus session lookup.

The facade external callers (CLI, web routes, workers) talk to. Each stage
is also usable on its own: ValidationService, ScopedImportExecutor and the
session stores take the same collaborators.
"""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Any, Callable
from uuid import uuid4

from sqlalchemy.orm import Session

from mediaplan_kernel.db.engine import session_scope
from mediaplan_kernel.domain.clock import Clock, SystemClock
from mediaplan_kernel.exceptions import InvalidScopeError
from mediaplan_kernel.logging_config import LogContext, get_logger
from mediaplan_kernel.models.taxonomy import BusinessUnit, Country, FinancialCycle

from mediaplan_config import SettingsDef, get_import_profile, get_settings
from mediaplan_ingestion.adapters import SourceProbe, adapter_for
from mediaplan_ingestion.domain.types import (
    ImportProfile,
    ImportResult,
    ImportScope,
    ImportSession,
    ImportSessionStatus,
    ValidationSummary,
    to_json_safe,
)
from mediaplan_ingestion.mapping.engine import normalize_header
from mediaplan_ingestion.promoters import FactPromoter
from mediaplan_ingestion.services.import_executor import (
    BackgroundImportRunner,
    ScopedImportExecutor,
)
from mediaplan_ingestion.services.session_store import (
    FileSessionStore,
    SessionStore,
    SqlSessionStore,
)
from mediaplan_ingestion.services.validation_service import ValidationService

logger = get_logger("ingestion.pipeline")


def _source_options(profile: ImportProfile) -> dict[str, Any]:
    """Profile source options plus the header names that identify a header row."""
    known: set[str] = set()
    for spec in profile.fields:
        for name in (*spec.synonyms, spec.label, spec.name):
            if name:
                known.add(normalize_header(name))
    return {**profile.source_options, "known_headers": sorted(known)}


def build_session_store(
    settings: SettingsDef, session_factory: Callable[[], Session]
) -> SessionStore:
    """The session store backend named by settings.session_store."""
    if settings.session_store == "file":
        return FileSessionStore(Path(settings.session_directory))
    return SqlSessionStore(session_factory)


class ImportPipeline:
    """Entry points of the import engine."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        store: SessionStore | None = None,
        profiles: Callable[[str], ImportProfile] = get_import_profile,
        promoters: dict[str, FactPromoter] | None = None,
        clock: Clock | None = None,
        settings: SettingsDef | None = None,
    ):
        settings = settings or get_settings()
        self._session_factory = session_factory
        self._store = store or build_session_store(settings, session_factory)
        self._issue_cap = settings.issue_cap
        self._profiles = profiles
        self._clock = clock or SystemClock()
        self._validation = ValidationService(
            session_factory, self._store, profiles=profiles, clock=self._clock,
        )
        self._executor = ScopedImportExecutor(
            session_factory, self._store, profiles=profiles, promoters=promoters,
            clock=self._clock, batch_size=settings.batch_size,
            error_sample_size=settings.error_sample_size,
        )
        self._runner = BackgroundImportRunner(self._executor)

    @property
    def store(self) -> SessionStore:
        return self._store

    @property
    def runner(self) -> BackgroundImportRunner:
        return self._runner

    # -------------------------------------------------------------------------
    # Upload
    # -------------------------------------------------------------------------

    def check_scope(self, scope: ImportScope) -> None:
        """Raise InvalidScopeError unless every scope id exists."""
        missing: dict[str, int] = {}
        with session_scope(self._session_factory) as db:
            if db.get(Country, scope.country_id) is None:
                missing["country_id"] = scope.country_id
            if db.get(FinancialCycle, scope.period_id) is None:
                missing["period_id"] = scope.period_id
            if (
                scope.business_unit_id is not None
                and db.get(BusinessUnit, scope.business_unit_id) is None
            ):
                missing["business_unit_id"] = scope.business_unit_id
        if missing:
            raise InvalidScopeError(missing)

    def probe(self, source_path: Path, profile: str) -> SourceProbe:
        """Quick look at a file: row count, columns, first rows."""
        import_profile = self._profiles(profile)
        source_path = Path(source_path)
        return adapter_for(source_path).probe(source_path, _source_options(import_profile))

    def upload(
        self,
        source_path: Path,
        scope: ImportScope,
        profile: str,
        uploaded_by: str,
    ) -> str:
        """
        Read a file into a new session in the uploaded state.

        Raises:
            UnknownProfileError: no such import profile.
            InvalidScopeError: a scope id does not exist.
            UnsupportedSourceFormatError: no adapter for the file suffix.
            StructuralFileError: malformed file; no session is created.
        """
        source_path = Path(source_path)
        import_profile = self._profiles(profile)
        self.check_scope(scope)

        table = adapter_for(source_path).read_table(source_path, _source_options(import_profile))
        now = self._clock.now()
        session = ImportSession(
            session_id=uuid4().hex,
            profile=import_profile.name,
            status=ImportSessionStatus.UPLOADED,
            scope=scope,
            headers=table.headers,
            raw_records=tuple(to_json_safe(r) for r in table.records),
            uploaded_by=uploaded_by,
            source_filename=source_path.name,
            created_at=now,
            updated_at=now,
        )
        self._store.create(session)
        with LogContext.bind(session_id=session.session_id, actor_id=uploaded_by, profile=profile):
            logger.info(
                "session_uploaded",
                extra={
                    "source_filename": source_path.name,
                    "row_count": len(table.records),
                    "column_count": len(table.headers),
                    "scope": scope.to_dict(),
                },
            )
        return session.session_id

    # -------------------------------------------------------------------------
    # Validate / import / query
    # -------------------------------------------------------------------------

    def validate(self, session_id: str) -> ValidationSummary:
        return self._validation.validate(session_id)

    def import_session(self, session_id: str, actor: str) -> ImportResult:
        return self._executor.import_scope(session_id, actor)

    def submit_import(self, session_id: str, actor: str) -> threading.Thread:
        """Start the import on a worker thread; poll get_session() for status."""
        return self._runner.submit(session_id, actor)

    def get_session(self, session_id: str) -> dict[str, Any]:
        """The full session document (camelCase keys), every issue included."""
        return self._store.get(session_id).to_document()

    def session_view(self, session_id: str) -> dict[str, Any]:
        """
        The session document for display: at most issue_cap validation issues.

        The stored session keeps every issue; issuesTruncated tells a caller
        to fetch the full document with get_session().
        """
        doc = self.get_session(session_id)
        issues = doc["validationIssues"]
        doc["issuesTruncated"] = len(issues) > self._issue_cap
        doc["validationIssues"] = issues[: self._issue_cap]
        return doc

    def list_sessions(self, status: ImportSessionStatus | None = None) -> list[dict[str, Any]]:
        return [s.to_document() for s in self._store.list_sessions(status)]

"""
ScopedImportExecutor -- delete-then-insert replace of one scope.

Contract:
    import_scope() replaces every fact of the session's
    (country, period, business unit) scope with the session's rows.

Invariants enforced:
    - Preconditions (validated, zero critical issues) are checked before
      anything is written.
    - The delete and every insert run in ONE transaction. A catastrophic
      failure rolls all of it back, so the previous facts survive.
    - Each row runs in its own SAVEPOINT: a failing row is rolled back and
      recorded while the rest of the file continues.
    - Session status moves through the store in short transactions of its
      own: importing before the replace, imported or error after it.
    - All timestamps come from the injected Clock.
"""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from dataclasses import replace
from typing import Any, Callable

from sqlalchemy import delete
from sqlalchemy.exc import DataError, IntegrityError
from sqlalchemy.orm import Session

from mediaplan_kernel.domain.clock import Clock, SystemClock
from mediaplan_kernel.exceptions import (
    CriticalValidationErrorsError,
    ImportFailedError,
    MediaPlanError,
    ProfileDefinitionError,
    SessionNotValidatedError,
)
from mediaplan_kernel.logging_config import LogContext, get_logger

from mediaplan_config import get_import_profile
from mediaplan_ingestion.domain.types import (
    ImportProfile,
    ImportResult,
    ImportScope,
    ImportSession,
    ImportSessionStatus,
    RowOutcome,
    Severity,
)
from mediaplan_ingestion.mapping.engine import HeaderMap, build_header_map, map_row
from mediaplan_ingestion.promoters import FactPromoter, default_promoter_registry
from mediaplan_ingestion.resolution.resolver import MasterDataResolver, ResolverContext
from mediaplan_ingestion.services.session_store import SessionStore

logger = get_logger("ingestion.import_executor")


def delete_scope(db: Session, model: type, scope: ImportScope) -> int:
    """Delete every fact of exactly this scope. Returns the deleted row count."""
    business_unit = (
        model.business_unit_id.is_(None)
        if scope.business_unit_id is None
        else model.business_unit_id == scope.business_unit_id
    )
    result = db.execute(
        delete(model).where(
            model.country_id == scope.country_id,
            model.period_id == scope.period_id,
            business_unit,
        )
    )
    return result.rowcount or 0


class ScopedImportExecutor:
    """Runs the scoped replace for validated sessions."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        store: SessionStore,
        profiles: Callable[[str], ImportProfile] = get_import_profile,
        promoters: dict[str, FactPromoter] | None = None,
        clock: Clock | None = None,
        batch_size: int = 50,
        error_sample_size: int = 20,
    ):
        self._session_factory = session_factory
        self._store = store
        self._profiles = profiles
        self._promoters = promoters if promoters is not None else default_promoter_registry()
        self._clock = clock or SystemClock()
        self._batch_size = max(1, batch_size)
        self._error_sample_size = error_sample_size

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def import_scope(self, session_id: str, actor: str) -> ImportResult:
        """
        Replace the session's scope with its rows.

        Raises:
            SessionNotFoundError: unknown session id.
            SessionNotValidatedError: session is not in the validated state.
            CriticalValidationErrorsError: validation found critical issues.
            ImportFailedError: the replace was rolled back; the session is
                left in the error state.
        """
        doc = self._store.get(session_id)
        with LogContext.bind(
            session_id=session_id, actor_id=actor, profile=doc.profile, producer="ingestion"
        ):
            summary = doc.validation_summary
            if doc.status != ImportSessionStatus.VALIDATED or summary is None:
                raise SessionNotValidatedError(session_id, doc.status.value)
            if summary.critical > 0:
                raise CriticalValidationErrorsError(session_id, summary.critical)

            profile = self._profiles(doc.profile)
            promoter = self._promoters.get(profile.fact_type)
            if promoter is None:
                raise ProfileDefinitionError(
                    profile.name, f"no promoter for fact type {profile.fact_type!r}"
                )

            importing = replace(
                doc, status=ImportSessionStatus.IMPORTING, updated_at=self._clock.now()
            )
            self._store.save(importing)
            logger.info(
                "scope_import_started",
                extra={"total_records": len(doc.raw_records), "scope": doc.scope.to_dict()},
            )

            try:
                result = self._replace_scope(importing, profile, promoter, actor)
            except Exception as exc:
                logger.exception("scope_import_failed")
                self._store.save(
                    replace(
                        importing,
                        status=ImportSessionStatus.ERROR,
                        error_message=str(exc),
                        updated_at=self._clock.now(),
                    )
                )
                raise ImportFailedError(session_id, str(exc)) from exc

            self._store.save(
                replace(
                    importing,
                    status=ImportSessionStatus.IMPORTED,
                    import_results=result,
                    error_message=None,
                    updated_at=self._clock.now(),
                )
            )
            logger.info(
                "scope_import_completed",
                extra={
                    "outcome": result.outcome.value,
                    "deleted_count": result.deleted_count,
                    "success_count": result.success_count,
                    "error_count": result.error_count,
                    "created_entities": result.created_entities,
                },
            )
            return result

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _replace_scope(
        self,
        doc: ImportSession,
        profile: ImportProfile,
        promoter: FactPromoter,
        actor: str,
    ) -> ImportResult:
        start = time.monotonic()
        records = doc.raw_records
        total = len(records)
        db = self._session_factory()
        try:
            deleted = delete_scope(db, promoter.model, doc.scope)
            logger.info("scope_deleted", extra={"deleted_count": deleted})

            header_map = build_header_map(doc.headers, profile.fields)
            resolver = MasterDataResolver(db)
            ctx = ResolverContext(create_missing=True, actor=actor, profile=profile)
            success_count = 0
            failures: list[RowOutcome] = []

            for batch_start in range(0, total, self._batch_size):
                batch = records[batch_start: batch_start + self._batch_size]
                for offset, raw in enumerate(batch):
                    outcome = self._import_row(
                        db, raw, batch_start + offset + 1, header_map, profile,
                        promoter, resolver, ctx, doc, actor,
                    )
                    if outcome.success:
                        success_count += 1
                    else:
                        failures.append(outcome)
                logger.info(
                    "import_batch_progress",
                    extra={
                        "processed": min(batch_start + self._batch_size, total),
                        "total_records": total,
                        "success_count": success_count,
                        "error_count": len(failures),
                    },
                )

            db.commit()
        except BaseException:
            db.rollback()
            raise
        finally:
            db.close()

        logger.debug(
            "scope_replace_committed",
            extra={"duration_ms": int((time.monotonic() - start) * 1000)},
        )
        return ImportResult(
            session_id=doc.session_id,
            total_records=total,
            success_count=success_count,
            error_count=len(failures),
            imported_at=self._clock.now(),
            imported_by=actor,
            deleted_count=deleted,
            created_entities=ctx.created_entities,
            errors=tuple(failures[: self._error_sample_size]),
        )

    def _import_row(
        self,
        db: Session,
        raw: dict[str, Any],
        row_index: int,
        header_map: HeaderMap,
        profile: ImportProfile,
        promoter: FactPromoter,
        resolver: MasterDataResolver,
        ctx: ResolverContext,
        doc: ImportSession,
        actor: str,
    ) -> RowOutcome:
        ctx.begin_row()
        savepoint = db.begin_nested()
        try:
            mapped = map_row(raw, header_map, profile.fields, row_index)
            blocking = [i.message for i in mapped.issues]
            resolved = None
            if not blocking:
                resolved = resolver.resolve_row(mapped.values, ctx, row_index)
                blocking = [
                    i.message for i in resolved.issues if i.severity == Severity.CRITICAL
                ]
            if blocking:
                result_error = "; ".join(blocking)
            else:
                result = promoter.promote(
                    mapped.values, resolved.ids, doc.scope, db, actor,
                    doc.session_id, row_index,
                )
                if result.success:
                    savepoint.commit()
                    ctx.commit_row()
                    return RowOutcome(row_index=row_index, success=True, record_id=result.record_id)
                result_error = result.error or "Unknown error"
        except (IntegrityError, DataError, ValueError, ArithmeticError) as exc:
            result_error = str(getattr(exc, "orig", None) or exc)

        savepoint.rollback()
        ctx.discard_row()
        logger.warning(
            "row_import_failed",
            extra={"row_index": row_index, "error_msg": result_error},
        )
        return RowOutcome(row_index=row_index, success=False, error=result_error)


class BackgroundImportRunner:
    """
    Runs import_scope on a worker thread so callers can poll the session.

    Non-goals:
        - No cancellation once a replace has started.
    """

    def __init__(self, executor: ScopedImportExecutor, max_errors: int = 256):
        self._executor = executor
        self._lock = threading.Lock()
        self._max_errors = max_errors
        self._errors: OrderedDict[str, MediaPlanError] = OrderedDict()

    def submit(self, session_id: str, actor: str) -> threading.Thread:
        thread = threading.Thread(
            target=self._run,
            args=(session_id, actor, LogContext.get_all().get("correlation_id")),
            name=f"scope-import-{session_id[:12]}",
            daemon=True,
        )
        thread.start()
        logger.info("background_import_submitted", extra={"session_id": session_id})
        return thread

    def error_for(self, session_id: str) -> MediaPlanError | None:
        """
        Take the error a finished background import raised, if any.

        The error is handed out once. Only the newest max_errors unread
        errors are kept; the session document records the failure either way.
        """
        with self._lock:
            return self._errors.pop(session_id, None)

    def _run(self, session_id: str, actor: str, correlation_id: str | None) -> None:
        with LogContext.bind(correlation_id=correlation_id):
            try:
                self._executor.import_scope(session_id, actor)
            except MediaPlanError as exc:
                with self._lock:
                    self._errors[session_id] = exc
                    while len(self._errors) > self._max_errors:
                        self._errors.popitem(last=False)
                logger.exception("background_import_failed", extra={"session_id": session_id})

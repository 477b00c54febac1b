"""
Validation service: session -> tiered issues and summary.

Maps every stored raw record, resolves references in lookup-only mode,
checks scope consistency and runs the validation engine. Stores the summary
and every issue on the session and marks it validated. Never
writes fact or taxonomy tables.
"""

from __future__ import annotations

import time
from dataclasses import replace
from typing import Callable

from sqlalchemy.orm import Session

from mediaplan_kernel.db.engine import session_scope
from mediaplan_kernel.domain.clock import Clock, SystemClock
from mediaplan_kernel.exceptions import SessionStateError
from mediaplan_kernel.logging_config import LogContext, get_logger

from mediaplan_config import get_import_profile
from mediaplan_ingestion.domain.types import (
    ImportProfile,
    ImportSessionStatus,
    ValidationSummary,
)
from mediaplan_ingestion.domain.validators import ValidationEngine
from mediaplan_ingestion.resolution.resolver import MasterDataResolver, ResolverContext
from mediaplan_ingestion.services.reconciliation import reconcile_records
from mediaplan_ingestion.services.session_store import SessionStore

logger = get_logger("ingestion.validation_service")

_VALIDATABLE = frozenset({
    ImportSessionStatus.UPLOADED,
    ImportSessionStatus.VALIDATED,
    ImportSessionStatus.ERROR,
})


class ValidationService:
    """Validates stored import sessions."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        store: SessionStore,
        profiles: Callable[[str], ImportProfile] = get_import_profile,
        clock: Clock | None = None,
    ):
        self._session_factory = session_factory
        self._store = store
        self._profiles = profiles
        self._clock = clock or SystemClock()

    def validate(self, session_id: str) -> ValidationSummary:
        """
        Validate a session and store the result.

        Raises:
            SessionNotFoundError: unknown session id.
            SessionStateError: session is importing or already imported.
        """
        start = time.monotonic()
        doc = self._store.get(session_id)
        with LogContext.bind(session_id=session_id, profile=doc.profile, producer="ingestion"):
            if doc.status not in _VALIDATABLE:
                raise SessionStateError(session_id, doc.status.value, "validate")

            profile = self._profiles(doc.profile)
            with session_scope(self._session_factory) as db:
                ctx = ResolverContext(create_missing=False, profile=profile)
                header_map, rows = reconcile_records(
                    doc.headers, doc.raw_records, profile, doc.scope,
                    MasterDataResolver(db), ctx,
                )

            issues, summary = ValidationEngine(profile).validate(
                rows, missing_columns=header_map.missing
            )
            self._store.save(
                replace(
                    doc,
                    status=ImportSessionStatus.VALIDATED,
                    validation_summary=summary,
                    validation_issues=tuple(issues),
                    error_message=None,
                    updated_at=self._clock.now(),
                )
            )
            logger.info(
                "session_validated",
                extra={
                    "total_rows": summary.total_rows,
                    "critical": summary.critical,
                    "warning": summary.warning,
                    "suggestion": summary.suggestion,
                    "can_import": summary.can_import,
                    "unmapped_headers": list(header_map.unmapped),
                    "duration_ms": int((time.monotonic() - start) * 1000),
                },
            )
            return summary

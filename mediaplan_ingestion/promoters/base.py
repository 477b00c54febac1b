"""
FactPromoter protocol and PromoteResult.

Promoters turn one reconciled row into one fact ORM row bound to the import
scope. Each row promotion runs inside a SAVEPOINT managed by the scoped
import executor.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Protocol

from sqlalchemy.orm import Session

from mediaplan_ingestion.domain.types import ImportScope


@dataclass(frozen=True)
class PromoteResult:
    """Result of a single promotion attempt."""

    success: bool
    record_id: int | None = None
    error: str | None = None


class FactPromoter(Protocol):
    """Protocol for turning reconciled rows into scoped fact rows."""

    @property
    def fact_type(self) -> str:
        """Fact type this promoter handles (e.g. 'game_plan')."""
        ...

    @property
    def model(self) -> type:
        """ORM class of the fact table; the scoped delete runs against it."""
        ...

    def promote(
        self,
        values: dict[str, Any],
        reference_ids: dict[str, int | None],
        scope: ImportScope,
        session: Session,
        actor: str,
        session_id: str,
        row_index: int,
    ) -> PromoteResult:
        """Create the fact row. Runs inside SAVEPOINT."""
        ...


def _optional_str(d: dict[str, Any], key: str) -> str | None:
    v = d.get(key)
    if v is None or (isinstance(v, str) and not v.strip()):
        return None
    return str(v).strip()


def _optional_int(d: dict[str, Any], key: str) -> int | None:
    v = d.get(key)
    if v is None:
        return None
    if isinstance(v, int):
        return v
    try:
        return int(v)
    except (TypeError, ValueError):
        return None


def _optional_decimal(d: dict[str, Any], key: str) -> Decimal | None:
    v = d.get(key)
    if v is None:
        return None
    if isinstance(v, Decimal):
        return v
    try:
        return Decimal(str(v))
    except (TypeError, ValueError, ArithmeticError):
        return None


def _optional_date(d: dict[str, Any], key: str) -> date | None:
    v = d.get(key)
    return v if isinstance(v, date) else None


def _missing(d: dict[str, Any], keys: tuple[str, ...]) -> list[str]:
    return [k for k in keys if d.get(k) is None]


def scope_columns(
    scope: ImportScope, actor: str, session_id: str, row_index: int
) -> dict[str, Any]:
    """Scope and provenance columns every fact row carries."""
    return {
        "country_id": scope.country_id,
        "period_id": scope.period_id,
        "business_unit_id": scope.business_unit_id,
        "uploaded_by": actor,
        "upload_session": session_id,
        "source_row": row_index,
        "created_by": actor,
    }

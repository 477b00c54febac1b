"""Diminishing-returns promoter: reconciled row -> DiminishingReturnsCurve row."""

from __future__ import annotations

from typing import Any

from sqlalchemy.orm import Session

from mediaplan_kernel.models.facts import DiminishingReturnsCurve

from mediaplan_ingestion.domain.types import ImportScope
from mediaplan_ingestion.promoters.base import (
    PromoteResult,
    _missing,
    _optional_decimal,
    _optional_int,
    _optional_str,
    scope_columns,
)

_REQUIRED_VALUES = (
    "target_audience",
    "gender",
    "min_age",
    "max_age",
    "saturation_point",
    "budget",
    "frequency",
    "reach",
)


class DiminishingReturnsPromoter:
    """Promotes reconciled rows to DiminishingReturnsCurve. Fact type: diminishing_returns."""

    fact_type: str = "diminishing_returns"
    model = DiminishingReturnsCurve

    def promote(
        self,
        values: dict[str, Any],
        reference_ids: dict[str, int | None],
        scope: ImportScope,
        session: Session,
        actor: str,
        session_id: str,
        row_index: int,
        **kwargs: Any,
    ) -> PromoteResult:
        missing = _missing(values, _REQUIRED_VALUES)
        if missing:
            return PromoteResult(success=False, error=f"Missing {', '.join(missing)}")

        curve = DiminishingReturnsCurve(
            **scope_columns(scope, actor, session_id, row_index),
            target_audience=_optional_str(values, "target_audience"),
            gender=_optional_str(values, "gender").upper(),
            min_age=_optional_int(values, "min_age"),
            max_age=_optional_int(values, "max_age"),
            saturation_point=_optional_decimal(values, "saturation_point"),
            budget=_optional_decimal(values, "budget"),
            frequency=_optional_decimal(values, "frequency"),
            reach=_optional_decimal(values, "reach"),
        )
        session.add(curve)
        session.flush()
        return PromoteResult(success=True, record_id=curve.id)

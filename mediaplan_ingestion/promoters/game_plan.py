"""
Game plan promoter: reconciled row -> GamePlan row.

Country and business unit always come from the import scope; the row's own
country and business unit columns only feed the scope consistency check.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.orm import Session

from mediaplan_kernel.models.facts import GamePlan

from mediaplan_ingestion.domain.types import ImportScope
from mediaplan_ingestion.promoters.base import (
    PromoteResult,
    _missing,
    _optional_date,
    _optional_decimal,
    _optional_int,
    _optional_str,
    scope_columns,
)

_REQUIRED_VALUES = ("start_date", "end_date", "total_budget")
_REQUIRED_REFERENCES = ("campaign", "media_subtype")


class GamePlanPromoter:
    """Promotes reconciled rows to GamePlan. Fact type: game_plan."""

    fact_type: str = "game_plan"
    model = GamePlan

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
        missing = _missing(values, _REQUIRED_VALUES) + [
            f"{k} reference" for k in _missing(reference_ids, _REQUIRED_REFERENCES)
        ]
        if missing:
            return PromoteResult(success=False, error=f"Missing {', '.join(missing)}")

        start_date = _optional_date(values, "start_date")
        plan = GamePlan(
            **scope_columns(scope, actor, session_id, row_index),
            sub_region_id=reference_ids.get("sub_region"),
            category_id=reference_ids.get("category"),
            range_id=reference_ids.get("range"),
            campaign_id=reference_ids["campaign"],
            media_subtype_id=reference_ids["media_subtype"],
            campaign_archetype=_optional_str(values, "campaign_archetype"),
            playbook_id=_optional_str(values, "playbook_id"),
            burst=_optional_int(values, "burst"),
            year=_optional_int(values, "year") or (start_date.year if start_date else None),
            start_date=start_date,
            end_date=_optional_date(values, "end_date"),
            total_budget=_optional_decimal(values, "total_budget"),
            q1_budget=_optional_decimal(values, "q1_budget"),
            q2_budget=_optional_decimal(values, "q2_budget"),
            q3_budget=_optional_decimal(values, "q3_budget"),
            q4_budget=_optional_decimal(values, "q4_budget"),
            total_weeks=_optional_int(values, "total_weeks"),
            total_woa=_optional_decimal(values, "total_woa"),
            weeks_off_air=_optional_decimal(values, "weeks_off_air"),
            total_trps=_optional_decimal(values, "total_trps"),
            reach_1_plus=_optional_decimal(values, "reach_1_plus"),
            reach_3_plus=_optional_decimal(values, "reach_3_plus"),
            reach_level=_optional_str(values, "reach_level"),
            target_gender=_optional_str(values, "target_gender"),
            target_min_age=_optional_int(values, "target_min_age"),
            target_max_age=_optional_int(values, "target_max_age"),
        )
        session.add(plan)
        session.flush()
        return PromoteResult(success=True, record_id=plan.id)

"""
Reach planning promoter: reconciled row -> ReachPlan row.

When the row says the digital target is the same as the TV one, blank
digital demo fields inherit the TV demo values.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.orm import Session

from mediaplan_kernel.models.facts import ReachPlan

from mediaplan_ingestion.domain.types import ImportScope
from mediaplan_ingestion.promoters.base import (
    PromoteResult,
    _missing,
    _optional_decimal,
    _optional_int,
    _optional_str,
    scope_columns,
)

_REQUIRED_REFERENCES = ("campaign",)
_DEMO_FIELDS = ("demo_gender", "demo_min_age", "demo_max_age")


def _digital_demo(values: dict[str, Any]) -> dict[str, Any]:
    demo = {f: values.get(f"digital_{f}") for f in _DEMO_FIELDS}
    if values.get("is_digital_target_same_as_tv") is True:
        for f in _DEMO_FIELDS:
            if demo[f] is None:
                demo[f] = values.get(f"tv_{f}")
    return demo


def _gender(value: str | None) -> str | None:
    return value.upper() if value else None


class ReachPlanningPromoter:
    """Promotes reconciled rows to ReachPlan. Fact type: reach_planning."""

    fact_type: str = "reach_planning"
    model = ReachPlan

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
        missing = [f"{k} reference" for k in _missing(reference_ids, _REQUIRED_REFERENCES)]
        if missing:
            return PromoteResult(success=False, error=f"Missing {', '.join(missing)}")

        digital = _digital_demo(values)
        plan = ReachPlan(
            **scope_columns(scope, actor, session_id, row_index),
            category_id=reference_ids.get("category"),
            range_id=reference_ids.get("range"),
            campaign_id=reference_ids["campaign"],
            tv_demo_gender=_gender(_optional_str(values, "tv_demo_gender")),
            tv_demo_min_age=_optional_int(values, "tv_demo_min_age"),
            tv_demo_max_age=_optional_int(values, "tv_demo_max_age"),
            tv_sel=_optional_str(values, "tv_sel"),
            tv_target_size=_optional_decimal(values, "tv_target_size"),
            tv_copy_length=_optional_str(values, "tv_copy_length"),
            tv_planned_r1_plus=_optional_decimal(values, "tv_planned_r1_plus"),
            tv_planned_r3_plus=_optional_decimal(values, "tv_planned_r3_plus"),
            tv_potential_r1_plus=_optional_decimal(values, "tv_potential_r1_plus"),
            cpp_2024=_optional_decimal(values, "cpp_2024"),
            cpp_2025=_optional_decimal(values, "cpp_2025"),
            cpp_2026=_optional_decimal(values, "cpp_2026"),
            reported_currency=_optional_str(values, "reported_currency"),
            is_digital_target_same_as_tv=values.get("is_digital_target_same_as_tv"),
            digital_demo_gender=_gender(_optional_str(digital, "demo_gender")),
            digital_demo_min_age=_optional_int(digital, "demo_min_age"),
            digital_demo_max_age=_optional_int(digital, "demo_max_age"),
            digital_sel=_optional_str(values, "digital_sel"),
            digital_target_size=_optional_decimal(values, "digital_target_size"),
            digital_planned_r1_plus=_optional_decimal(values, "digital_planned_r1_plus"),
            digital_potential_r1_plus=_optional_decimal(values, "digital_potential_r1_plus"),
            combined_potential_reach=_optional_decimal(values, "combined_potential_reach"),
        )
        session.add(plan)
        session.flush()
        return PromoteResult(success=True, record_id=plan.id)

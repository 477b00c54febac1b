"""Fact promoters: reconciled rows -> scoped fact rows."""

from mediaplan_ingestion.promoters.base import FactPromoter, PromoteResult
from mediaplan_ingestion.promoters.diminishing_returns import DiminishingReturnsPromoter
from mediaplan_ingestion.promoters.game_plan import GamePlanPromoter
from mediaplan_ingestion.promoters.reach_planning import ReachPlanningPromoter


def default_promoter_registry() -> dict[str, FactPromoter]:
    """Return a dict of fact_type -> promoter for all implemented promoters."""
    return {
        "game_plan": GamePlanPromoter(),
        "diminishing_returns": DiminishingReturnsPromoter(),
        "reach_planning": ReachPlanningPromoter(),
    }


__all__ = [
    "FactPromoter",
    "PromoteResult",
    "GamePlanPromoter",
    "DiminishingReturnsPromoter",
    "ReachPlanningPromoter",
    "default_promoter_registry",
]

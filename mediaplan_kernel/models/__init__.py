"""Master-data taxonomy and fact ORM models."""

from mediaplan_kernel.models.facts import (
    DiminishingReturnsCurve,
    GamePlan,
    ReachPlan,
    ScopedFactMixin,
)
from mediaplan_kernel.models.taxonomy import (
    BusinessUnit,
    Campaign,
    CampaignToRange,
    Category,
    CategoryToRange,
    Country,
    FinancialCycle,
    MediaSubtype,
    MediaType,
    Range,
    SubRegion,
)

__all__ = [
    "BusinessUnit",
    "Campaign",
    "CampaignToRange",
    "Category",
    "CategoryToRange",
    "Country",
    "DiminishingReturnsCurve",
    "FinancialCycle",
    "GamePlan",
    "MediaSubtype",
    "MediaType",
    "Range",
    "ReachPlan",
    "ScopedFactMixin",
    "SubRegion",
]

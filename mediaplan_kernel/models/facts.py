"""
Module: mediaplan_kernel.models.facts
Responsibility: ORM persistence for imported fact records: campaign game
    plans, digital diminishing-returns curves and per-campaign reach plans.
Architecture position: Kernel > Models.  May import from db/base.py and
    models/taxonomy.py.

Invariants enforced:
    - Every fact belongs to exactly one scope (country_id, period_id,
      business_unit_id).  Facts are only created by a scoped replace that
      first deleted every prior fact of the same scope; they die only by a
      later replace of that scope.
    - Every taxonomy reference is a real foreign key.
    - uploaded_by and upload_session record the provenance of each row.
"""

from datetime import date
from decimal import Decimal

from sqlalchemy import Date, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from mediaplan_kernel.db.base import TrackedBase


class ScopedFactMixin:
    """Scope and provenance columns shared by every fact table."""

    country_id: Mapped[int] = mapped_column(ForeignKey("countries.id"), nullable=False)
    period_id: Mapped[int] = mapped_column(ForeignKey("financial_cycles.id"), nullable=False)
    business_unit_id: Mapped[int | None] = mapped_column(
        ForeignKey("business_units.id"), nullable=True
    )
    uploaded_by: Mapped[str | None] = mapped_column(String(200), nullable=True)
    upload_session: Mapped[str | None] = mapped_column(String(64), nullable=True)
    source_row: Mapped[int | None] = mapped_column(nullable=True)


class GamePlan(ScopedFactMixin, TrackedBase):
    """One media burst of a campaign in a country's annual plan."""

    __tablename__ = "game_plans"

    __table_args__ = (
        Index("idx_game_plans_scope", "country_id", "period_id", "business_unit_id"),
        Index("idx_game_plans_campaign", "campaign_id"),
    )

    sub_region_id: Mapped[int | None] = mapped_column(ForeignKey("sub_regions.id"), nullable=True)
    category_id: Mapped[int | None] = mapped_column(ForeignKey("categories.id"), nullable=True)
    range_id: Mapped[int | None] = mapped_column(ForeignKey("ranges.id"), nullable=True)
    campaign_id: Mapped[int] = mapped_column(ForeignKey("campaigns.id"), nullable=False)
    media_subtype_id: Mapped[int] = mapped_column(ForeignKey("media_subtypes.id"), nullable=False)

    campaign_archetype: Mapped[str | None] = mapped_column(String(100), nullable=True)
    playbook_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    burst: Mapped[int | None] = mapped_column(nullable=True)
    year: Mapped[int | None] = mapped_column(nullable=True)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)

    total_budget: Mapped[Decimal] = mapped_column(nullable=False)
    q1_budget: Mapped[Decimal | None] = mapped_column(nullable=True)
    q2_budget: Mapped[Decimal | None] = mapped_column(nullable=True)
    q3_budget: Mapped[Decimal | None] = mapped_column(nullable=True)
    q4_budget: Mapped[Decimal | None] = mapped_column(nullable=True)

    total_weeks: Mapped[int | None] = mapped_column(nullable=True)
    total_woa: Mapped[Decimal | None] = mapped_column(nullable=True)
    weeks_off_air: Mapped[Decimal | None] = mapped_column(nullable=True)
    total_trps: Mapped[Decimal | None] = mapped_column(nullable=True)
    reach_1_plus: Mapped[Decimal | None] = mapped_column(nullable=True)
    reach_3_plus: Mapped[Decimal | None] = mapped_column(nullable=True)

    reach_level: Mapped[str | None] = mapped_column(String(20), nullable=True)

    target_gender: Mapped[str | None] = mapped_column(String(10), nullable=True)
    target_min_age: Mapped[int | None] = mapped_column(nullable=True)
    target_max_age: Mapped[int | None] = mapped_column(nullable=True)


class DiminishingReturnsCurve(ScopedFactMixin, TrackedBase):
    """One point of a digital reach curve for a target audience."""

    __tablename__ = "diminishing_returns_curves"

    __table_args__ = (
        Index(
            "idx_diminishing_returns_scope",
            "country_id",
            "period_id",
            "business_unit_id",
        ),
    )

    target_audience: Mapped[str] = mapped_column(String(100), nullable=False)
    gender: Mapped[str] = mapped_column(String(10), nullable=False)
    min_age: Mapped[int] = mapped_column(nullable=False)
    max_age: Mapped[int] = mapped_column(nullable=False)
    saturation_point: Mapped[Decimal] = mapped_column(nullable=False)
    budget: Mapped[Decimal] = mapped_column(nullable=False)
    frequency: Mapped[Decimal] = mapped_column(nullable=False)
    reach: Mapped[Decimal] = mapped_column(nullable=False)


class ReachPlan(ScopedFactMixin, TrackedBase):
    """
    Planned and potential reach of one campaign on TV and digital.

    TV and digital carry their own demo target (gender plus age band); the
    digital target may simply repeat the TV one.
    """

    __tablename__ = "reach_plans"

    __table_args__ = (
        Index("idx_reach_plans_scope", "country_id", "period_id", "business_unit_id"),
        Index("idx_reach_plans_campaign", "campaign_id"),
    )

    category_id: Mapped[int | None] = mapped_column(ForeignKey("categories.id"), nullable=True)
    range_id: Mapped[int | None] = mapped_column(ForeignKey("ranges.id"), nullable=True)
    campaign_id: Mapped[int] = mapped_column(ForeignKey("campaigns.id"), nullable=False)

    tv_demo_gender: Mapped[str | None] = mapped_column(String(10), nullable=True)
    tv_demo_min_age: Mapped[int | None] = mapped_column(nullable=True)
    tv_demo_max_age: Mapped[int | None] = mapped_column(nullable=True)
    tv_sel: Mapped[str | None] = mapped_column(String(50), nullable=True)
    tv_target_size: Mapped[Decimal | None] = mapped_column(nullable=True)
    tv_copy_length: Mapped[str | None] = mapped_column(String(50), nullable=True)
    tv_planned_r1_plus: Mapped[Decimal | None] = mapped_column(nullable=True)
    tv_planned_r3_plus: Mapped[Decimal | None] = mapped_column(nullable=True)
    tv_potential_r1_plus: Mapped[Decimal | None] = mapped_column(nullable=True)

    cpp_2024: Mapped[Decimal | None] = mapped_column(nullable=True)
    cpp_2025: Mapped[Decimal | None] = mapped_column(nullable=True)
    cpp_2026: Mapped[Decimal | None] = mapped_column(nullable=True)
    reported_currency: Mapped[str | None] = mapped_column(String(10), nullable=True)

    is_digital_target_same_as_tv: Mapped[bool | None] = mapped_column(nullable=True)
    digital_demo_gender: Mapped[str | None] = mapped_column(String(10), nullable=True)
    digital_demo_min_age: Mapped[int | None] = mapped_column(nullable=True)
    digital_demo_max_age: Mapped[int | None] = mapped_column(nullable=True)
    digital_sel: Mapped[str | None] = mapped_column(String(50), nullable=True)
    digital_target_size: Mapped[Decimal | None] = mapped_column(nullable=True)
    digital_planned_r1_plus: Mapped[Decimal | None] = mapped_column(nullable=True)
    digital_potential_r1_plus: Mapped[Decimal | None] = mapped_column(nullable=True)
    combined_potential_reach: Mapped[Decimal | None] = mapped_column(nullable=True)

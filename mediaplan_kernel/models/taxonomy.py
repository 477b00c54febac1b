"""
Module: mediaplan_kernel.models.taxonomy
Responsibility: ORM persistence for the master-data taxonomy that imported
    rows are reconciled against: sub-region, country, business unit,
    category, range, campaign, media type, media subtype and financial cycle.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - One row per unique name (uq_<table>_name).  Name resolution relies on
      these constraints for compare-and-swap creation: a concurrent insert of
      the same name fails with IntegrityError and the loser fetches the
      winner's row.
    - MediaSubtype names are unique only within a MediaType.
    - Category <-> Range and Campaign <-> Range are many-to-many via junction
      rows.  Links are only ever added by the import engine, never removed.

Failure modes:
    - IntegrityError on duplicate name or duplicate junction link.
    - IntegrityError on a dangling foreign key (SQLite runs with
      foreign_keys=ON, PostgreSQL enforces natively).
"""

from sqlalchemy import ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mediaplan_kernel.db.base import TrackedBase


class SubRegion(TrackedBase):
    """Geographic grouping of countries (e.g. "Northern Europe")."""

    __tablename__ = "sub_regions"

    __table_args__ = (UniqueConstraint("name", name="uq_sub_regions_name"),)

    name: Mapped[str] = mapped_column(String(200), nullable=False)


class Country(TrackedBase):
    """
    Market a plan is made for.

    sub_region_id is nullable: countries created from a row without a
    sub-region column are linked later by hand.
    """

    __tablename__ = "countries"

    __table_args__ = (UniqueConstraint("name", name="uq_countries_name"),)

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    sub_region_id: Mapped[int | None] = mapped_column(
        ForeignKey("sub_regions.id"), nullable=True
    )

    sub_region: Mapped[SubRegion | None] = relationship(SubRegion)


class BusinessUnit(TrackedBase):
    """Brand business unit (e.g. "Nivea", "Derma")."""

    __tablename__ = "business_units"

    __table_args__ = (UniqueConstraint("name", name="uq_business_units_name"),)

    name: Mapped[str] = mapped_column(String(200), nullable=False)


class Category(TrackedBase):
    """Product category, optionally owned by a business unit."""

    __tablename__ = "categories"

    __table_args__ = (UniqueConstraint("name", name="uq_categories_name"),)

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    business_unit_id: Mapped[int | None] = mapped_column(
        ForeignKey("business_units.id"), nullable=True
    )


class Range(TrackedBase):
    """Product range.  May belong to more than one category."""

    __tablename__ = "ranges"

    __table_args__ = (UniqueConstraint("name", name="uq_ranges_name"),)

    name: Mapped[str] = mapped_column(String(200), nullable=False)


class CategoryToRange(TrackedBase):
    """Additive many-to-many link between Category and Range."""

    __tablename__ = "category_to_range"

    __table_args__ = (
        UniqueConstraint("category_id", "range_id", name="uq_category_to_range"),
        Index("idx_category_to_range_range", "range_id"),
    )

    category_id: Mapped[int] = mapped_column(ForeignKey("categories.id"), nullable=False)
    range_id: Mapped[int] = mapped_column(ForeignKey("ranges.id"), nullable=False)


class Campaign(TrackedBase):
    """
    Marketing campaign.

    range_id is the range the campaign was first seen with; additional
    ranges that reuse the campaign are recorded in CampaignToRange.
    """

    __tablename__ = "campaigns"

    __table_args__ = (UniqueConstraint("name", name="uq_campaigns_name"),)

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    range_id: Mapped[int | None] = mapped_column(ForeignKey("ranges.id"), nullable=True)


class CampaignToRange(TrackedBase):
    """Additive many-to-many link between Campaign and Range."""

    __tablename__ = "campaign_to_range"

    __table_args__ = (
        UniqueConstraint("campaign_id", "range_id", name="uq_campaign_to_range"),
    )

    campaign_id: Mapped[int] = mapped_column(ForeignKey("campaigns.id"), nullable=False)
    range_id: Mapped[int] = mapped_column(ForeignKey("ranges.id"), nullable=False)


class MediaType(TrackedBase):
    """Top-level media channel (e.g. "TV", "Digital")."""

    __tablename__ = "media_types"

    __table_args__ = (UniqueConstraint("name", name="uq_media_types_name"),)

    name: Mapped[str] = mapped_column(String(200), nullable=False)


class MediaSubtype(TrackedBase):
    """Media subtype.  Its name is unique only within its media type."""

    __tablename__ = "media_subtypes"

    __table_args__ = (
        UniqueConstraint("name", "media_type_id", name="uq_media_subtypes_name_type"),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    media_type_id: Mapped[int] = mapped_column(ForeignKey("media_types.id"), nullable=False)

    media_type: Mapped[MediaType] = relationship(MediaType)


class FinancialCycle(TrackedBase):
    """Planning period of an upload (e.g. "ABP2025", "FY25")."""

    __tablename__ = "financial_cycles"

    __table_args__ = (UniqueConstraint("name", name="uq_financial_cycles_name"),)

    name: Mapped[str] = mapped_column(String(200), nullable=False)

"""
Master-data resolver: taxonomy names -> integer ids.

Resolution is idempotent by name: exact match first, then case-insensitive,
with whitespace collapsed. In create mode an absent entity is inserted
inside a SAVEPOINT; if a concurrent writer wins the unique constraint the
savepoint is rolled back and the winner is fetched (compare-and-swap).

In lookup-only mode (validation) nothing is written: absent entities and
links are reported as issues describing what the import will create.

Resolver state lives in an explicit ResolverContext owned by one run.
"""

from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from mediaplan_kernel.logging_config import get_logger
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

from mediaplan_ingestion.domain.types import ImportProfile, Severity, ValidationIssue

logger = get_logger("ingestion.resolver")

_WHITESPACE = re.compile(r"\s+")

_NAMED_MODELS: dict[str, type] = {
    "sub_region": SubRegion,
    "country": Country,
    "business_unit": BusinessUnit,
    "category": Category,
    "range": Range,
    "campaign": Campaign,
    "media_type": MediaType,
    "media_subtype": MediaSubtype,
    "period": FinancialCycle,
}


def normalize_name(value: Any) -> str | None:
    """Collapse whitespace; empty names are no reference at all."""
    if value is None:
        return None
    text = _WHITESPACE.sub(" ", str(value)).strip()
    return text or None


@dataclass(frozen=True)
class ResolvedReferences:
    """Ids for one row's reference fields plus the issues found resolving them."""

    ids: dict[str, int | None]
    issues: tuple[ValidationIssue, ...] = ()


class ResolverContext:
    """
    Per-run resolver state.

    Caches (entity type, normalized name, parent id) -> id and counts the
    entities a run created. begin_row()/discard_row() bracket one row's
    savepoint so entries created by a rolled-back row are forgotten.
    """

    def __init__(
        self,
        create_missing: bool,
        actor: str | None = None,
        profile: ImportProfile | None = None,
    ):
        self.create_missing = create_missing
        self.actor = actor
        self.profile = profile
        self._cache: dict[tuple[Any, ...], int] = {}
        self._row_keys: list[tuple[Any, ...]] = []
        self._created: Counter[str] = Counter()
        self._row_created: Counter[str] = Counter()

    @property
    def auto_create_severity(self) -> Severity:
        return self.profile.auto_create_severity if self.profile else Severity.WARNING

    def label_for(self, field_name: str) -> str:
        if self.profile is not None:
            return self.profile.label_for(field_name)
        return field_name.replace("_", " ").title()

    def lookup(self, key: tuple[Any, ...]) -> int | None:
        return self._cache.get(key)

    def remember(self, key: tuple[Any, ...], entity_id: int) -> None:
        if key not in self._cache:
            self._row_keys.append(key)
        self._cache[key] = entity_id

    def record_created(self, entity_type: str) -> None:
        self._row_created[entity_type] += 1

    def begin_row(self) -> None:
        self._row_keys = []
        self._row_created = Counter()

    def commit_row(self) -> None:
        self._created.update(self._row_created)
        self.begin_row()

    def discard_row(self) -> None:
        for key in self._row_keys:
            self._cache.pop(key, None)
        self.begin_row()

    @property
    def created_entities(self) -> dict[str, int]:
        """Entities created by committed rows, by entity type."""
        merged = self._created + self._row_created
        return dict(sorted(merged.items()))


class MasterDataResolver:
    """Resolves the reference fields of mapped rows against the taxonomy."""

    def __init__(self, session: Session):
        self._session = session

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def resolve_row(
        self,
        values: dict[str, Any],
        ctx: ResolverContext,
        row_index: int | None = None,
    ) -> ResolvedReferences:
        """
        Resolve every reference field present in values.

        Order: sub-region, country, business unit, category, range,
        category-range link, campaign, media type, media subtype, period.
        A field that is absent or empty resolves to None without an issue.
        """
        issues: list[ValidationIssue] = []
        ids: dict[str, int | None] = {}

        ids["sub_region"] = self._resolve_simple("sub_region", values, ctx, issues, row_index)
        ids["country"] = self._resolve_country(values, ids["sub_region"], ctx, issues, row_index)
        ids["business_unit"] = self._resolve_simple(
            "business_unit", values, ctx, issues, row_index
        )
        ids["category"] = self._resolve_simple(
            "category", values, ctx, issues, row_index,
            business_unit_id=ids["business_unit"],
        )
        ids["range"] = self._resolve_simple("range", values, ctx, issues, row_index)
        self._link_category_range(
            values, ids["category"], ids["range"], ctx, issues, row_index
        )
        ids["campaign"] = self._resolve_campaign(values, ids["range"], ctx, issues, row_index)
        ids["media_type"] = self._resolve_simple("media_type", values, ctx, issues, row_index)
        ids["media_subtype"] = self._resolve_media_subtype(
            values, ids["media_type"], ctx, issues, row_index
        )
        ids["period"] = self._resolve_simple("period", values, ctx, issues, row_index)

        present = {k: v for k, v in ids.items() if k in values}
        return ResolvedReferences(ids=present, issues=tuple(issues))

    def find_id(self, entity_type: str, name: str) -> int | None:
        """Look up an entity id by name without creating it."""
        normalized = normalize_name(name)
        if normalized is None:
            return None
        return self._find(_NAMED_MODELS[entity_type], normalized)

    def resolve_name(self, entity_type: str, name: str, ctx: ResolverContext) -> int | None:
        """Resolve one name outside a row (e.g. scope names on the CLI)."""
        issues: list[ValidationIssue] = []
        entity_id = self._resolve_simple(entity_type, {entity_type: name}, ctx, issues, None)
        ctx.commit_row()
        return entity_id

    # -------------------------------------------------------------------------
    # Lookup and compare-and-swap creation
    # -------------------------------------------------------------------------

    def _find(self, model: type, name: str, **filters: Any) -> int | None:
        conditions = [getattr(model, k) == v for k, v in filters.items()]
        exact = select(model.id).where(model.name == name, *conditions).order_by(model.id)
        found = self._session.scalars(exact).first()
        if found is not None:
            return found
        folded = (
            select(model.id)
            .where(func.lower(model.name) == name.lower(), *conditions)
            .order_by(model.id)
        )
        return self._session.scalars(folded).first()

    def _insert(
        self,
        model: type,
        entity_type: str,
        ctx: ResolverContext,
        find_winner: Any,
        **attrs: Any,
    ) -> int | None:
        savepoint = self._session.begin_nested()
        try:
            entity = model(created_by=ctx.actor, **attrs)
            self._session.add(entity)
            self._session.flush()
            savepoint.commit()
        except IntegrityError:
            savepoint.rollback()
            winner = find_winner()
            logger.info(
                "entity_create_conflict",
                extra={"entity_type": entity_type, "winner_id": winner, "attrs": attrs},
            )
            return winner
        ctx.record_created(entity_type)
        logger.info(
            "entity_created",
            extra={"entity_type": entity_type, "entity_id": entity.id, "attrs": attrs},
        )
        return entity.id

    def _unresolved(
        self,
        field_name: str,
        name: str,
        reason: str,
        ctx: ResolverContext,
        issues: list[ValidationIssue],
        row_index: int | None,
    ) -> None:
        label = ctx.label_for(field_name)
        issues.append(
            ValidationIssue(
                row_index=row_index,
                field_name=label,
                severity=Severity.CRITICAL,
                message=f"Cannot resolve {label} '{name}': {reason}",
                observed_value=name,
                code="UNRESOLVED_REFERENCE",
            )
        )

    def _will_be_created(
        self,
        field_name: str,
        name: str,
        ctx: ResolverContext,
        issues: list[ValidationIssue],
        row_index: int | None,
    ) -> None:
        label = ctx.label_for(field_name)
        issues.append(
            ValidationIssue(
                row_index=row_index,
                field_name=label,
                severity=ctx.auto_create_severity,
                message=f"{label} '{name}' does not exist and will be created on import",
                observed_value=name,
                code="ENTITY_WILL_BE_CREATED",
            )
        )

    def _get_or_create(
        self,
        field_name: str,
        name: str,
        ctx: ResolverContext,
        issues: list[ValidationIssue],
        row_index: int | None,
        filters: dict[str, Any] | None = None,
        create_attrs: dict[str, Any] | None = None,
    ) -> int | None:
        model = _NAMED_MODELS[field_name]
        filters = filters or {}
        key = (field_name, name.casefold(), tuple(sorted(filters.items())))
        cached = ctx.lookup(key)
        if cached is not None:
            return cached

        entity_id = self._find(model, name, **filters)
        if entity_id is None:
            if not ctx.create_missing:
                self._will_be_created(field_name, name, ctx, issues, row_index)
                return None
            attrs = {"name": name, **filters, **(create_attrs or {})}
            entity_id = self._insert(
                model, field_name, ctx, lambda: self._find(model, name, **filters), **attrs
            )
            if entity_id is None:
                self._unresolved(
                    field_name, name, "create conflicted and no existing row was found",
                    ctx, issues, row_index,
                )
                return None
        ctx.remember(key, entity_id)
        return entity_id

    # -------------------------------------------------------------------------
    # Per-entity rules
    # -------------------------------------------------------------------------

    def _resolve_simple(
        self,
        field_name: str,
        values: dict[str, Any],
        ctx: ResolverContext,
        issues: list[ValidationIssue],
        row_index: int | None,
        **create_attrs: Any,
    ) -> int | None:
        name = normalize_name(values.get(field_name))
        if name is None:
            return None
        attrs = {k: v for k, v in create_attrs.items() if v is not None}
        return self._get_or_create(
            field_name, name, ctx, issues, row_index, create_attrs=attrs
        )

    def _resolve_country(
        self,
        values: dict[str, Any],
        sub_region_id: int | None,
        ctx: ResolverContext,
        issues: list[ValidationIssue],
        row_index: int | None,
    ) -> int | None:
        name = normalize_name(values.get("country"))
        if name is None:
            return None
        attrs = {"sub_region_id": sub_region_id} if sub_region_id is not None else {}
        country_id = self._get_or_create("country", name, ctx, issues, row_index, create_attrs=attrs)
        if country_id is None or sub_region_id is None:
            return country_id

        country = self._session.get(Country, country_id)
        if country.sub_region_id is None:
            if ctx.create_missing:
                country.sub_region_id = sub_region_id
                self._session.flush()
        elif country.sub_region_id != sub_region_id:
            issues.append(
                ValidationIssue(
                    row_index=row_index,
                    field_name=ctx.label_for("sub_region"),
                    severity=Severity.WARNING,
                    message=(
                        f"{ctx.label_for('country')} '{name}' belongs to a different "
                        f"{ctx.label_for('sub_region')} than "
                        f"'{normalize_name(values.get('sub_region'))}'"
                    ),
                    observed_value=values.get("sub_region"),
                    code="SUB_REGION_MISMATCH",
                )
            )
        return country_id

    def _link_category_range(
        self,
        values: dict[str, Any],
        category_id: int | None,
        range_id: int | None,
        ctx: ResolverContext,
        issues: list[ValidationIssue],
        row_index: int | None,
    ) -> None:
        if category_id is None or range_id is None:
            return
        key = ("category_to_range", category_id, range_id)
        if ctx.lookup(key) is not None:
            return

        def find_link() -> int | None:
            stmt = select(CategoryToRange.id).where(
                CategoryToRange.category_id == category_id,
                CategoryToRange.range_id == range_id,
            )
            return self._session.scalars(stmt).first()

        link_id = find_link()
        if link_id is None:
            if not ctx.create_missing:
                issues.append(
                    ValidationIssue(
                        row_index=row_index,
                        field_name=ctx.label_for("range"),
                        severity=Severity.SUGGESTION,
                        message=(
                            f"{ctx.label_for('range')} '{normalize_name(values.get('range'))}' "
                            f"will be linked to {ctx.label_for('category')} "
                            f"'{normalize_name(values.get('category'))}'"
                        ),
                        observed_value=values.get("range"),
                        code="LINK_WILL_BE_CREATED",
                    )
                )
                return
            link_id = self._insert(
                CategoryToRange, "category_to_range", ctx, find_link,
                category_id=category_id, range_id=range_id,
            )
        if link_id is not None:
            ctx.remember(key, link_id)

    def _resolve_campaign(
        self,
        values: dict[str, Any],
        range_id: int | None,
        ctx: ResolverContext,
        issues: list[ValidationIssue],
        row_index: int | None,
    ) -> int | None:
        name = normalize_name(values.get("campaign"))
        if name is None:
            return None
        attrs = {"range_id": range_id} if range_id is not None else {}
        campaign_id = self._get_or_create("campaign", name, ctx, issues, row_index, create_attrs=attrs)
        if campaign_id is None or range_id is None:
            return campaign_id

        campaign = self._session.get(Campaign, campaign_id)
        if campaign.range_id is None:
            if ctx.create_missing:
                campaign.range_id = range_id
                self._session.flush()
            return campaign_id
        if campaign.range_id == range_id:
            return campaign_id

        key = ("campaign_to_range", campaign_id, range_id)
        if ctx.lookup(key) is not None:
            return campaign_id

        def find_link() -> int | None:
            stmt = select(CampaignToRange.id).where(
                CampaignToRange.campaign_id == campaign_id,
                CampaignToRange.range_id == range_id,
            )
            return self._session.scalars(stmt).first()

        link_id = find_link()
        if link_id is None and ctx.create_missing:
            link_id = self._insert(
                CampaignToRange, "campaign_to_range", ctx, find_link,
                campaign_id=campaign_id, range_id=range_id,
            )
        if link_id is None:
            issues.append(
                ValidationIssue(
                    row_index=row_index,
                    field_name=ctx.label_for("campaign"),
                    severity=Severity.WARNING,
                    message=(
                        f"{ctx.label_for('campaign')} '{name}' is linked to another "
                        f"{ctx.label_for('range')}; it will also be linked to "
                        f"'{normalize_name(values.get('range'))}'"
                    ),
                    observed_value=name,
                    code="CAMPAIGN_RANGE_MISMATCH",
                )
            )
            return campaign_id
        ctx.remember(key, link_id)
        return campaign_id

    def _resolve_media_subtype(
        self,
        values: dict[str, Any],
        media_type_id: int | None,
        ctx: ResolverContext,
        issues: list[ValidationIssue],
        row_index: int | None,
    ) -> int | None:
        name = normalize_name(values.get("media_subtype"))
        if name is None:
            return None

        if media_type_id is not None:
            return self._get_or_create(
                "media_subtype", name, ctx, issues, row_index,
                filters={"media_type_id": media_type_id},
            )

        if normalize_name(values.get("media_type")) is not None:
            # Media type will be created on import, so its subtype will be too
            self._will_be_created("media_subtype", name, ctx, issues, row_index)
            return None

        key = ("media_subtype", name.casefold(), ())
        cached = ctx.lookup(key)
        if cached is not None:
            return cached
        stmt = select(MediaSubtype.id).where(func.lower(MediaSubtype.name) == name.lower())
        matches = list(self._session.scalars(stmt))
        if len(matches) == 1:
            ctx.remember(key, matches[0])
            return matches[0]
        reason = (
            f"no {ctx.label_for('media_type')} given and no existing subtype matches"
            if not matches
            else f"no {ctx.label_for('media_type')} given and {len(matches)} subtypes match"
        )
        self._unresolved("media_subtype", name, reason, ctx, issues, row_index)
        return None

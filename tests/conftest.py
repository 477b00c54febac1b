"""
Pytest fixtures for the media plan import engine test suite.

Provides:
- Structured logging capture and LogContext isolation
- A file-backed SQLite database per test (commits are real, so the session
  store and the fact transaction see each other's writes)
- A seeded master-data taxonomy
- Deterministic clock and test actor
- CSV writing helper
"""

import csv
import json
import logging
from dataclasses import dataclass
from io import StringIO
from pathlib import Path

import pytest
from sqlalchemy import func, select

from mediaplan_kernel.db.engine import (
    create_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
    session_scope,
)
from mediaplan_kernel.domain.clock import DeterministicClock
from mediaplan_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from mediaplan_kernel.models.taxonomy import (
    BusinessUnit,
    Campaign,
    Category,
    CategoryToRange,
    Country,
    FinancialCycle,
    MediaSubtype,
    MediaType,
    Range,
    SubRegion,
)
from mediaplan_ingestion.domain.types import ImportScope
from mediaplan_ingestion.services import ImportPipeline

# Actor recorded on every test upload and import
TEST_ACTOR = "planner@example.com"


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture mediaplan logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, pipeline):
            pipeline.validate(session_id)
            logs = captured_logs()
            assert any(r["message"] == "session_validated" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("mediaplan")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite:///{tmp_path / 'mediaplan_test.db'}"


@pytest.fixture
def session_factory(db_url):
    """Fresh schema per test."""
    reset_engine()
    init_engine_from_url(db_url)
    create_tables()
    yield get_session_factory()
    reset_engine()


@pytest.fixture
def session(session_factory):
    """A session for direct queries; rolled back after the test."""
    s = session_factory()
    yield s
    s.rollback()
    s.close()


@pytest.fixture
def deterministic_clock():
    return DeterministicClock()


@pytest.fixture
def test_actor():
    return TEST_ACTOR


# =============================================================================
# Master data
# =============================================================================


@dataclass(frozen=True)
class SeededTaxonomy:
    """Ids of the seeded master data."""

    northern_europe: int
    western_europe: int
    germany: int
    austria: int
    nivea: int
    derma: int
    abp2025: int
    abp2026: int
    face_care: int
    sun: int
    cellular: int
    luminous: int
    cellular_filler: int
    tv: int
    digital: int
    open_tv: int
    paid_tv: int
    social: int


@pytest.fixture
def taxonomy(session_factory) -> SeededTaxonomy:
    """
    Seed a small taxonomy.

    Germany and Austria sit in Northern Europe; Nivea owns Face Care, Derma
    owns Sun; range Cellular is linked to Face Care; campaign Cellular Filler
    runs on Cellular; TV has Open TV and Paid TV, Digital has Social.
    """
    with session_scope(session_factory) as s:
        northern = SubRegion(name="Northern Europe")
        western = SubRegion(name="Western Europe")
        s.add_all([northern, western])
        s.flush()
        germany = Country(name="Germany", sub_region_id=northern.id)
        austria = Country(name="Austria", sub_region_id=northern.id)
        nivea = BusinessUnit(name="Nivea")
        derma = BusinessUnit(name="Derma")
        abp2025 = FinancialCycle(name="ABP2025")
        abp2026 = FinancialCycle(name="ABP2026")
        tv = MediaType(name="TV")
        digital = MediaType(name="Digital")
        cellular = Range(name="Cellular")
        luminous = Range(name="Luminous")
        s.add_all([germany, austria, nivea, derma, abp2025, abp2026, tv, digital, cellular, luminous])
        s.flush()
        face_care = Category(name="Face Care", business_unit_id=nivea.id)
        sun = Category(name="Sun", business_unit_id=derma.id)
        open_tv = MediaSubtype(name="Open TV", media_type_id=tv.id)
        paid_tv = MediaSubtype(name="Paid TV", media_type_id=tv.id)
        social = MediaSubtype(name="Social", media_type_id=digital.id)
        filler = Campaign(name="Cellular Filler", range_id=cellular.id)
        s.add_all([face_care, sun, open_tv, paid_tv, social, filler])
        s.flush()
        s.add(CategoryToRange(category_id=face_care.id, range_id=cellular.id))
        s.flush()
        return SeededTaxonomy(
            northern_europe=northern.id,
            western_europe=western.id,
            germany=germany.id,
            austria=austria.id,
            nivea=nivea.id,
            derma=derma.id,
            abp2025=abp2025.id,
            abp2026=abp2026.id,
            face_care=face_care.id,
            sun=sun.id,
            cellular=cellular.id,
            luminous=luminous.id,
            cellular_filler=filler.id,
            tv=tv.id,
            digital=digital.id,
            open_tv=open_tv.id,
            paid_tv=paid_tv.id,
            social=social.id,
        )


# =============================================================================
# Files
# =============================================================================


@pytest.fixture
def write_csv(tmp_path):
    """Write rows (first row is the header) to a CSV file and return its path."""

    def _write(rows: list[list], name: str = "upload.csv") -> Path:
        path = tmp_path / name
        with path.open("w", encoding="utf-8", newline="") as f:
            csv.writer(f).writerows(rows)
        return path

    return _write


# =============================================================================
# Game plan uploads
# =============================================================================

GAME_PLAN_HEADERS = [
    "Country", "Business Unit", "Last Update", "Category", "Range", "Campaign",
    "Media", "Media Subtype", "Initial Date", "End Date", "Budget", "TRPs", "R3+",
    "Gender", "Min Age", "Max Age",
]


def game_plan_row(
    campaign="Cellular Filler",
    media="TV",
    subtype="Open TV",
    business_unit="Nivea",
    category="Face Care",
    range_name="Cellular",
    start="1-Feb-25",
    end="31-Mar-25",
    budget="€ 100,000",
    trps="350",
    r3="45",
    gender="F",
    min_age="25",
    max_age="54",
    country="Germany",
    period="ABP2025",
) -> list:
    """One game plan row in GAME_PLAN_HEADERS order. Defaults validate cleanly."""
    return [
        country, business_unit, period, category, range_name, campaign,
        media, subtype, start, end, budget, trps, r3, gender, min_age, max_age,
    ]


def digital_row(**kwargs) -> list:
    """A Social burst: no TRPs or R3+."""
    params = {"media": "Digital", "subtype": "Social", "trps": "", "r3": "", "budget": "50,000"}
    params.update(kwargs)
    return game_plan_row(**params)


@pytest.fixture
def nivea_scope(taxonomy):
    return ImportScope(
        country_id=taxonomy.germany, period_id=taxonomy.abp2025, business_unit_id=taxonomy.nivea
    )


@pytest.fixture
def derma_scope(taxonomy):
    return ImportScope(
        country_id=taxonomy.germany, period_id=taxonomy.abp2025, business_unit_id=taxonomy.derma
    )


@pytest.fixture
def pipeline(session_factory, taxonomy, deterministic_clock):
    return ImportPipeline(session_factory, clock=deterministic_clock)


@pytest.fixture
def upload_plan(pipeline, write_csv, test_actor):
    """Write game plan rows to CSV and upload them; returns the session id."""
    counter = iter(range(1000))

    def _upload(rows: list[list], scope, profile: str = "game_plan") -> str:
        path = write_csv([GAME_PLAN_HEADERS, *rows], name=f"plan_{next(counter)}.csv")
        return pipeline.upload(path, scope, profile, test_actor)

    return _upload


def count_rows(session_factory, model, scope=None) -> int:
    """Rows of a table, optionally only those of one scope, read in a short transaction."""
    with session_scope(session_factory) as s:
        stmt = select(func.count()).select_from(model)
        if scope is not None:
            stmt = stmt.where(
                model.country_id == scope.country_id,
                model.period_id == scope.period_id,
                model.business_unit_id == scope.business_unit_id,
            )
        return s.scalar(stmt)

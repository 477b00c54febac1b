"""End-to-end tests for the upload -> validate -> import pipeline."""

from datetime import datetime
from decimal import Decimal

import pytest
from openpyxl import Workbook
from sqlalchemy import select

from mediaplan_kernel.db.engine import session_scope
from mediaplan_kernel.exceptions import (
    InvalidScopeError,
    StructuralFileError,
    UnknownProfileError,
    UnsupportedSourceFormatError,
)
from mediaplan_kernel.models.facts import DiminishingReturnsCurve, GamePlan, ReachPlan
from mediaplan_kernel.models.taxonomy import Campaign
from mediaplan_ingestion.domain.types import ImportOutcome, ImportScope, ImportSessionStatus, Severity
from mediaplan_config import SettingsDef
from mediaplan_ingestion.services import FileSessionStore, ImportPipeline, SqlSessionStore
from tests.conftest import GAME_PLAN_HEADERS, count_rows, digital_row, game_plan_row


class TestUpload:
    def test_creates_uploaded_session(self, pipeline, upload_plan, nivea_scope, deterministic_clock):
        session_id = upload_plan([game_plan_row(), digital_row()], nivea_scope)
        doc = pipeline.get_session(session_id)
        assert doc["sessionId"] == session_id
        assert doc["status"] == "uploaded"
        assert doc["profile"] == "game_plan"
        assert doc["headers"] == GAME_PLAN_HEADERS
        assert len(doc["rawRecords"]) == 2
        assert doc["rawRecords"][0]["Budget"] == "€ 100,000"
        assert doc["scope"] == nivea_scope.to_dict()
        assert doc["uploadedBy"] == "planner@example.com"
        assert doc["validationSummary"] is None
        assert doc["importResults"] is None

    def test_unknown_profile(self, pipeline, write_csv, nivea_scope, test_actor):
        path = write_csv([GAME_PLAN_HEADERS, game_plan_row()])
        with pytest.raises(UnknownProfileError) as exc_info:
            pipeline.upload(path, nivea_scope, "tv_plan", test_actor)
        assert "game_plan" in exc_info.value.available

    def test_invalid_scope(self, pipeline, write_csv, taxonomy, test_actor):
        path = write_csv([GAME_PLAN_HEADERS, game_plan_row()])
        scope = ImportScope(country_id=taxonomy.germany, period_id=9999, business_unit_id=8888)
        with pytest.raises(InvalidScopeError) as exc_info:
            pipeline.upload(path, scope, "game_plan", test_actor)
        assert exc_info.value.missing == {"period_id": 9999, "business_unit_id": 8888}
        assert pipeline.list_sessions() == []

    def test_structural_error_creates_no_session(self, pipeline, write_csv, nivea_scope, test_actor):
        path = write_csv([GAME_PLAN_HEADERS, game_plan_row()[:3]])
        with pytest.raises(StructuralFileError) as exc_info:
            pipeline.upload(path, nivea_scope, "game_plan", test_actor)
        assert exc_info.value.line_number == 2
        assert pipeline.list_sessions() == []

    def test_unsupported_format(self, pipeline, tmp_path, nivea_scope, test_actor):
        path = tmp_path / "plan.pdf"
        path.write_bytes(b"%PDF-1.4")
        with pytest.raises(UnsupportedSourceFormatError):
            pipeline.upload(path, nivea_scope, "game_plan", test_actor)

    def test_scope_without_business_unit(self, pipeline, upload_plan, taxonomy, test_actor, session_factory):
        scope = ImportScope(country_id=taxonomy.germany, period_id=taxonomy.abp2025)
        session_id = upload_plan([game_plan_row(), digital_row(business_unit="Derma")], scope)
        summary = pipeline.validate(session_id)
        assert summary.critical == 0
        pipeline.import_session(session_id, test_actor)
        assert count_rows(session_factory, GamePlan, scope) == 2


class TestSessions:
    def test_list_sessions_by_status(self, pipeline, upload_plan, nivea_scope):
        first = upload_plan([game_plan_row()], nivea_scope)
        second = upload_plan([digital_row()], nivea_scope)
        pipeline.validate(second)
        assert [d["sessionId"] for d in pipeline.list_sessions()] == [first, second]
        validated = pipeline.list_sessions(ImportSessionStatus.VALIDATED)
        assert [d["sessionId"] for d in validated] == [second]

    def test_document_after_import(self, pipeline, upload_plan, nivea_scope, test_actor):
        session_id = upload_plan([game_plan_row()], nivea_scope)
        pipeline.validate(session_id)
        pipeline.import_session(session_id, test_actor)
        doc = pipeline.get_session(session_id)
        assert doc["status"] == "imported"
        assert doc["validationSummary"]["canImport"] is True
        assert doc["importResults"]["successCount"] == 1
        assert doc["importResults"]["outcome"] == "complete"
        assert doc["importResults"]["importedBy"] == test_actor

    def test_file_session_store(self, session_factory, taxonomy, tmp_path, write_csv, nivea_scope, test_actor):
        store = FileSessionStore(tmp_path / "sessions")
        file_pipeline = ImportPipeline(session_factory, store=store)
        path = write_csv([GAME_PLAN_HEADERS, game_plan_row()])
        session_id = file_pipeline.upload(path, nivea_scope, "game_plan", test_actor)
        file_pipeline.validate(session_id)
        result = file_pipeline.import_session(session_id, test_actor)
        assert result.outcome == ImportOutcome.COMPLETE
        assert (tmp_path / "sessions" / f"{session_id}.json").is_file()
        assert store.get(session_id).status == ImportSessionStatus.IMPORTED

    def test_settings_select_file_store(self, session_factory, taxonomy, tmp_path, write_csv, nivea_scope, test_actor):
        settings = SettingsDef(session_store="file", session_directory=str(tmp_path / "from_settings"))
        file_pipeline = ImportPipeline(session_factory, settings=settings)
        assert isinstance(file_pipeline.store, FileSessionStore)
        session_id = file_pipeline.upload(
            write_csv([GAME_PLAN_HEADERS, game_plan_row()]), nivea_scope, "game_plan", test_actor
        )
        assert (tmp_path / "from_settings" / f"{session_id}.json").is_file()

    def test_settings_default_to_sql_store(self, session_factory):
        assert isinstance(ImportPipeline(session_factory, settings=SettingsDef()).store, SqlSessionStore)

    def test_session_view_caps_issues(self, session_factory, taxonomy, write_csv, nivea_scope, test_actor):
        capped = ImportPipeline(session_factory, settings=SettingsDef(issue_cap=2))
        rows = [digital_row(gender="X", start=f"{day}-Feb-25") for day in range(1, 6)]
        session_id = capped.upload(write_csv([GAME_PLAN_HEADERS, *rows]), nivea_scope, "game_plan", test_actor)
        capped.validate(session_id)

        view = capped.session_view(session_id)
        assert view["issuesTruncated"] is True
        assert [i["rowIndex"] for i in view["validationIssues"]] == [1, 2]
        assert len(capped.get_session(session_id)["validationIssues"]) == 5

    def test_session_view_not_truncated(self, pipeline, upload_plan, nivea_scope):
        session_id = upload_plan([game_plan_row()], nivea_scope)
        pipeline.validate(session_id)
        assert pipeline.session_view(session_id)["issuesTruncated"] is False


class TestWorkbookUpload:
    def test_synonym_headers_below_title(
        self, pipeline, tmp_path, nivea_scope, test_actor, session_factory, taxonomy
    ):
        wb = Workbook()
        ws = wb.active
        ws.append(["GERMANY GAME PLAN ABP2025"])
        ws.append(["BUSINESSUNIT", "Campaign Name", "Media Type", "Sub Media", "Start", "End",
                   "Total Budget", "Total TRPs", "Reach 3+", "Target Gender"])
        ws.append(["Nivea", "Cellular Filler", "TV", "Paid TV", datetime(2025, 2, 1),
                   datetime(2025, 3, 31), 120000, 410.5, 38, "f"])
        path = tmp_path / "plan.xlsx"
        wb.save(path)

        probe = pipeline.probe(path, "game_plan")
        assert probe.row_count == 1

        session_id = pipeline.upload(path, nivea_scope, "game_plan", test_actor)
        summary = pipeline.validate(session_id)
        assert summary.total_issues == 0
        pipeline.import_session(session_id, test_actor)

        with session_scope(session_factory) as s:
            (plan,) = s.scalars(select(GamePlan)).all()
            assert plan.media_subtype_id == taxonomy.paid_tv
            assert plan.total_budget == Decimal("120000")
            assert plan.total_trps == Decimal("410.5")
            assert plan.start_date.isoformat() == "2025-02-01"


DR_HEADERS = [
    "Country", "Last Update", "TargetAudience", "Gender", "MinAge", "MaxAge",
    "SaturationPoint", "Budget", "Frequency", "Reach",
]


class TestDiminishingReturns:
    def test_curve_import(self, pipeline, write_csv, taxonomy, test_actor, session_factory):
        scope = ImportScope(country_id=taxonomy.austria, period_id=taxonomy.abp2026)
        rows = [
            DR_HEADERS,
            ["Austria", "ABP2026", "F 25-54", "f", "25", "54", "0.7768", "100,000", "2.1", "31.5"],
            ["Austria", "ABP2026", "F 25-54", "F", "25", "54", "0.7768", "200,000", "2.4", "42"],
            ["Austria", "ABP2026", "Gamers", "BG", "18", "34", "0.8", "200,000", "3", "20"],
        ]
        session_id = pipeline.upload(write_csv(rows), scope, "digital_diminishing_returns", test_actor)
        summary = pipeline.validate(session_id)
        issues = pipeline.store.get(session_id).validation_issues
        assert summary.critical == 0
        assert sorted((i.row_index, i.code) for i in issues) == [
            (3, "UNCOMMON_VALUE"),
            (3, "UNCOMMON_VALUE"),
        ]

        result = pipeline.import_session(session_id, test_actor)
        assert result.success_count == 3
        with session_scope(session_factory) as s:
            curves = s.scalars(select(DiminishingReturnsCurve).order_by(DiminishingReturnsCurve.source_row)).all()
            assert [c.gender for c in curves] == ["F", "F", "BG"]
            assert curves[0].business_unit_id is None
            assert curves[1].reach == Decimal("42")

    def test_duplicate_budget_point(self, pipeline, write_csv, taxonomy, test_actor):
        scope = ImportScope(country_id=taxonomy.austria, period_id=taxonomy.abp2026)
        rows = [
            DR_HEADERS,
            ["Austria", "ABP2026", "F 25-54", "F", "25", "54", "0.7768", "100,000", "2.1", "31.5"],
            ["Austria", "ABP2026", "f 25-54", "F", "25", "54", "0.7768", "100000", "2.3", "33"],
        ]
        session_id = pipeline.upload(write_csv(rows), scope, "digital_diminishing_returns", test_actor)
        summary = pipeline.validate(session_id)
        (issue,) = pipeline.store.get(session_id).validation_issues
        assert issue.code == "DUPLICATE_ROW"
        assert issue.row_index == 2
        assert summary.critical == 1


REACH_HEADERS = [
    "Category", "Range", "Campaign",
    "TV Demo Gender", "TV Demo Min. Age", "TV Demo Max. Age", "TV Target Size",
    "Total TV Planned R1+ (%)", "Total TV Planned R3+ (%)", "CPP 2025",
    "Is Digital target the same than TV?",
    "Digital Demo Gender", "Digital Demo Min. Age", "Digital Demo Max. Age",
    "Total Digital Planned R1+",
]


def reach_row(category="Face Care", range_name="Cellular", campaign="Men Hydration",
              gender="M", min_age="25", max_age="45", same_as_tv="Yes",
              digital_gender="", digital_min="", digital_max=""):
    return [
        category, range_name, campaign,
        gender, min_age, max_age, "12,500,000",
        "68", "41", "1,250",
        same_as_tv, digital_gender, digital_min, digital_max, "55",
    ]


class TestReachPlanning:
    def _import(self, pipeline, write_csv, rows, scope, actor, name):
        path = write_csv([REACH_HEADERS, *rows], name=name)
        session_id = pipeline.upload(path, scope, "reach_planning", actor)
        assert pipeline.validate(session_id).critical == 0
        return pipeline.import_session(session_id, actor)

    def test_replacing_one_business_unit_keeps_the_other(
        self, pipeline, write_csv, nivea_scope, derma_scope, test_actor, session_factory
    ):
        self._import(pipeline, write_csv, [
            reach_row(campaign="Men Hydration"),
            reach_row(campaign="Body Lotion", gender="F", min_age="18", max_age="65"),
        ], nivea_scope, test_actor, "nivea_1.csv")
        self._import(pipeline, write_csv, [
            reach_row(category="Sun", range_name="Luminous", campaign="Anti-Aging", gender="F",
                      min_age="35", max_age="55"),
            reach_row(category="Sun", range_name="Luminous", campaign="Sensitive Skin", gender="BG",
                      same_as_tv="No", digital_gender="F", digital_min="25", digital_max="50"),
        ], derma_scope, test_actor, "derma_1.csv")
        assert count_rows(session_factory, ReachPlan, nivea_scope) == 2
        assert count_rows(session_factory, ReachPlan, derma_scope) == 2

        result = self._import(pipeline, write_csv, [
            reach_row(campaign="Men Hydration"),
            reach_row(campaign="Body Lotion", gender="F", min_age="18", max_age="65"),
            reach_row(campaign="Night Repair", gender="F", min_age="30", max_age="60"),
        ], nivea_scope, test_actor, "nivea_2.csv")

        assert result.deleted_count == 2
        assert result.success_count == 3
        assert count_rows(session_factory, ReachPlan, nivea_scope) == 3
        assert count_rows(session_factory, ReachPlan, derma_scope) == 2
        with session_scope(session_factory) as s:
            derma_campaigns = s.scalars(
                select(Campaign.name)
                .join(ReachPlan, ReachPlan.campaign_id == Campaign.id)
                .where(ReachPlan.business_unit_id == derma_scope.business_unit_id)
                .order_by(ReachPlan.source_row)
            ).all()
        assert derma_campaigns == ["Anti-Aging", "Sensitive Skin"]

    def test_tv_and_digital_demo_targets(
        self, pipeline, write_csv, nivea_scope, test_actor, session_factory
    ):
        self._import(pipeline, write_csv, [
            reach_row(campaign="Men Hydration", gender="m"),
            reach_row(campaign="Body Lotion", gender="F", min_age="18", max_age="65",
                      same_as_tv="No", digital_gender="bg", digital_min="18", digital_max="34"),
        ], nivea_scope, test_actor, "reach.csv")
        with session_scope(session_factory) as s:
            same, own = s.scalars(select(ReachPlan).order_by(ReachPlan.source_row)).all()
            assert (same.tv_demo_gender, same.tv_demo_min_age, same.tv_demo_max_age) == ("M", 25, 45)
            assert same.is_digital_target_same_as_tv is True
            assert (same.digital_demo_gender, same.digital_demo_min_age, same.digital_demo_max_age) == ("M", 25, 45)
            assert (own.digital_demo_gender, own.digital_demo_min_age, own.digital_demo_max_age) == ("BG", 18, 34)
            assert own.tv_target_size == Decimal("12500000")
            assert own.cpp_2025 == Decimal("1250")

    def test_separate_digital_target_needs_demo(self, pipeline, write_csv, nivea_scope, test_actor):
        path = write_csv([REACH_HEADERS, reach_row(same_as_tv="No")], name="reach.csv")
        session_id = pipeline.upload(path, nivea_scope, "reach_planning", test_actor)
        summary = pipeline.validate(session_id)
        critical = sorted(
            i.field_name for i in pipeline.store.get(session_id).validation_issues
            if i.severity == Severity.CRITICAL
        )
        assert summary.critical == 3
        assert critical == ["Digital Demo Gender", "Digital Demo Max. Age", "Digital Demo Min. Age"]

    def test_inverted_tv_age_band(self, pipeline, write_csv, nivea_scope, test_actor):
        path = write_csv([REACH_HEADERS, reach_row(min_age="50", max_age="25")], name="reach.csv")
        session_id = pipeline.upload(path, nivea_scope, "reach_planning", test_actor)
        pipeline.validate(session_id)
        codes = {i.code for i in pipeline.store.get(session_id).validation_issues}
        assert "CROSS_FIELD_LESS_THAN" in codes

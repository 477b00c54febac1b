"""scripts/run_import.py end to end against a throwaway SQLite file."""

import importlib.util
from pathlib import Path

import pytest

import mediaplan_config
import mediaplan_kernel.logging_config as logging_config
from mediaplan_config import SettingsDef
from mediaplan_kernel.db.engine import get_session_factory, reset_engine
from mediaplan_kernel.exceptions import InvalidSettingsError
from mediaplan_kernel.models.facts import GamePlan
from mediaplan_kernel.models.taxonomy import Country
from tests.conftest import GAME_PLAN_HEADERS, count_rows, game_plan_row

SCRIPT = Path(__file__).resolve().parents[2] / "scripts" / "run_import.py"


@pytest.fixture
def run_import():
    spec = importlib.util.spec_from_file_location("run_import", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    reset_engine()
    yield module
    reset_engine()


def _args(db_url, csv_path, *extra):
    return [
        "--profile", "game_plan",
        "--file", str(csv_path),
        "--country", "Germany",
        "--period", "ABP2025",
        "--business-unit", "Nivea",
        "--actor", "planner@example.com",
        "--db-url", db_url,
        *extra,
    ]


def test_full_import_creates_scope_and_facts(run_import, db_url, write_csv, capsys):
    path = write_csv([GAME_PLAN_HEADERS, game_plan_row(), game_plan_row(start="1-Apr-25", end="30-Apr-25")])

    code = run_import.main(_args(db_url, path, "--create-scope"))

    assert code == run_import.EXIT_OK
    out = capsys.readouterr().out
    assert "Imported: 2/2" in out
    factory = get_session_factory()
    assert count_rows(factory, GamePlan) == 2
    assert count_rows(factory, Country) == 1


def test_unknown_scope_without_create(run_import, db_url, write_csv, capsys):
    path = write_csv([GAME_PLAN_HEADERS, game_plan_row()])

    code = run_import.main(_args(db_url, path))

    assert code == run_import.EXIT_USAGE
    assert "Unknown country 'Germany'" in capsys.readouterr().err


def test_critical_issues_exit_code(run_import, db_url, write_csv, capsys):
    path = write_csv([GAME_PLAN_HEADERS, game_plan_row(budget="lots")])

    code = run_import.main(_args(db_url, path, "--create-scope"))

    assert code == run_import.EXIT_CRITICAL
    assert "Import blocked" in capsys.readouterr().out
    assert count_rows(get_session_factory(), GamePlan) == 0


def test_validate_only_writes_no_facts(run_import, db_url, write_csv, capsys):
    path = write_csv([GAME_PLAN_HEADERS, game_plan_row()])

    code = run_import.main(_args(db_url, path, "--create-scope", "--validate-only"))

    assert code == run_import.EXIT_OK
    assert "Skipping import" in capsys.readouterr().out
    assert count_rows(get_session_factory(), GamePlan) == 0


def test_probe_only(run_import, db_url, write_csv, capsys):
    path = write_csv([GAME_PLAN_HEADERS, game_plan_row(), game_plan_row(campaign="Glow Up")])

    code = run_import.main(
        ["--profile", "game_plan", "--file", str(path), "--probe-only", "--db-url", db_url]
    )

    assert code == run_import.EXIT_OK
    assert "Rows: 2" in capsys.readouterr().out


def test_missing_file(run_import, db_url, tmp_path, capsys):
    code = run_import.main(_args(db_url, tmp_path / "nope.csv"))

    assert code == run_import.EXIT_USAGE
    assert "File not found" in capsys.readouterr().err


def test_logging_level_from_settings(run_import, db_url, write_csv, monkeypatch):
    levels = []
    monkeypatch.setattr(mediaplan_config, "get_settings", lambda: SettingsDef(log_level="DEBUG"))
    monkeypatch.setattr(logging_config, "configure_logging", lambda level: levels.append(level))
    path = write_csv([GAME_PLAN_HEADERS, game_plan_row()])

    code = run_import.main(
        ["--profile", "game_plan", "--file", str(path), "--probe-only", "--db-url", db_url]
    )

    assert code == run_import.EXIT_OK
    assert levels == ["DEBUG"]


def test_invalid_settings_exit_code(run_import, db_url, write_csv, monkeypatch, capsys):
    def broken_settings():
        raise InvalidSettingsError("session_store", "redis", "expected one of ['file', 'sql']")

    monkeypatch.setattr(mediaplan_config, "get_settings", broken_settings)
    path = write_csv([GAME_PLAN_HEADERS, game_plan_row()])

    code = run_import.main(_args(db_url, path))

    assert code == run_import.EXIT_USAGE
    assert "Invalid setting session_store='redis'" in capsys.readouterr().err

"""
Import profile and settings schema.

Defines the human-authored, reviewable source artifacts: one YAML file per
import profile plus engine settings. YAML is parsed into these types by the
loader and compiled into the domain ImportProfile the pipeline runs on.

Key distinction:
  ImportProfileDef = source artifact (human-authored, versioned)
  ImportProfile    = runtime artifact (typed bounds, enum severities)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

# ---------------------------------------------------------------------------
# Import profiles
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FieldDef:
    """Single logical field: header synonyms, type and value rules."""

    name: str
    field_type: str = "text"  # text, integer, decimal, boolean, date
    label: str | None = None
    synonyms: tuple[str, ...] = ()
    required: bool = False
    minimum: Any = None
    maximum: Any = None
    exclusive_minimum: bool = False
    exclusive_maximum: bool = False
    choices: tuple[str, ...] = ()
    choices_severity: str = "critical"
    typical_minimum: Any = None
    typical_maximum: Any = None
    typical_values: tuple[Any, ...] = ()
    typical_severity: str = "warning"


@dataclass(frozen=True)
class CrossFieldRuleDef:
    """Rule relating two or more fields of one row."""

    rule_type: str  # less_than, same_year, required_when, only_when, sum_matches
    fields: tuple[str, ...]
    severity: str = "critical"
    when_field: str | None = None
    when_values: tuple[str, ...] = ()
    tolerance: Any = "0.01"
    message: str = ""


@dataclass(frozen=True)
class DuplicateKeyDef:
    """Composite key whose repetition in one file is critical."""

    fields: tuple[str, ...]
    label: str | None = None


@dataclass(frozen=True)
class ImportProfileDef:
    """Declarative import profile: fields, rules, duplicate key, fact type."""

    name: str
    fact_type: str
    version: int = 1
    description: str = ""
    auto_create_severity: str = "warning"
    source_options: dict[str, Any] = field(default_factory=dict)
    fields: tuple[FieldDef, ...] = ()
    cross_field_rules: tuple[CrossFieldRuleDef, ...] = ()
    duplicate_key: DuplicateKeyDef | None = None


# ---------------------------------------------------------------------------
# Engine settings
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SettingsDef:
    """Engine-wide settings."""

    database_url: str = "sqlite:///mediaplan.db"
    batch_size: int = 50
    issue_cap: int = 100
    error_sample_size: int = 20
    session_store: str = "sql"  # sql | file
    session_directory: str = "import_sessions"
    log_level: str = "INFO"

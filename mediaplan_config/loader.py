"""
Configuration loader (``mediaplan_config.loader``).

Loads profile and settings YAML files, parses them into the frozen
``mediaplan_config.schema`` definitions and compiles profiles into the
domain ``ImportProfile`` the pipeline runs on.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys in parsed dict  -> ``KeyError`` propagates.
* Inconsistent profile (unknown field in a rule, bad type or severity)
  -> ``ProfileDefinitionError``.
* Unknown session store backend or log level -> ``InvalidSettingsError``.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from mediaplan_kernel.exceptions import InvalidSettingsError, ProfileDefinitionError

from mediaplan_config.schema import (
    CrossFieldRuleDef,
    DuplicateKeyDef,
    FieldDef,
    ImportProfileDef,
    SettingsDef,
)
from mediaplan_ingestion.domain.types import (
    CrossFieldRule,
    DuplicateKey,
    FieldSpec,
    FieldType,
    ImportProfile,
    Severity,
)

RULE_TYPES = frozenset({"less_than", "same_year", "required_when", "only_when", "sum_matches"})
_CONDITIONAL_RULES = frozenset({"required_when", "only_when"})
SESSION_STORES = frozenset({"sql", "file"})
LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _tuple(value: Any) -> tuple:
    if value is None:
        return ()
    if isinstance(value, (list, tuple)):
        return tuple(value)
    return (value,)


# ---------------------------------------------------------------------------
# Parse: dict -> schema definitions
# ---------------------------------------------------------------------------


def parse_field(data: dict[str, Any]) -> FieldDef:
    """Parse a FieldDef from a dict. ``name`` is required."""
    return FieldDef(
        name=data["name"],
        field_type=data.get("type", "text"),
        label=data.get("label"),
        synonyms=tuple(str(s) for s in _tuple(data.get("synonyms"))),
        required=bool(data.get("required", False)),
        minimum=data.get("min"),
        maximum=data.get("max"),
        exclusive_minimum=bool(data.get("exclusive_min", False)),
        exclusive_maximum=bool(data.get("exclusive_max", False)),
        choices=tuple(str(c) for c in _tuple(data.get("choices"))),
        choices_severity=data.get("choices_severity", "critical"),
        typical_minimum=data.get("typical_min"),
        typical_maximum=data.get("typical_max"),
        typical_values=_tuple(data.get("typical_values")),
        typical_severity=data.get("typical_severity", "warning"),
    )


def parse_cross_field_rule(data: dict[str, Any]) -> CrossFieldRuleDef:
    """Parse a CrossFieldRuleDef from a dict. ``type`` and ``fields`` are required."""
    return CrossFieldRuleDef(
        rule_type=data["type"],
        fields=tuple(data["fields"]),
        severity=data.get("severity", "critical"),
        when_field=data.get("when_field"),
        when_values=tuple(str(v) for v in _tuple(data.get("when_values"))),
        tolerance=data.get("tolerance", "0.01"),
        message=data.get("message", ""),
    )


def parse_duplicate_key(data: dict[str, Any] | None) -> DuplicateKeyDef | None:
    if not data:
        return None
    return DuplicateKeyDef(fields=tuple(data["fields"]), label=data.get("label"))


def parse_profile(data: dict[str, Any]) -> ImportProfileDef:
    """Parse an ImportProfileDef. ``name`` and ``fact_type`` are required."""
    return ImportProfileDef(
        name=data["name"],
        fact_type=data["fact_type"],
        version=int(data.get("version", 1)),
        description=data.get("description", ""),
        auto_create_severity=data.get("auto_create_severity", "warning"),
        source_options=dict(data.get("source_options") or {}),
        fields=tuple(parse_field(f) for f in data.get("fields", [])),
        cross_field_rules=tuple(
            parse_cross_field_rule(r) for r in data.get("cross_field_rules", [])
        ),
        duplicate_key=parse_duplicate_key(data.get("duplicate_key")),
    )


def parse_settings(data: dict[str, Any]) -> SettingsDef:
    """Parse SettingsDef; absent keys keep their defaults."""
    defaults = SettingsDef()
    settings = SettingsDef(
        database_url=data.get("database_url", defaults.database_url),
        batch_size=int(data.get("batch_size", defaults.batch_size)),
        issue_cap=int(data.get("issue_cap", defaults.issue_cap)),
        error_sample_size=int(data.get("error_sample_size", defaults.error_sample_size)),
        session_store=data.get("session_store", defaults.session_store),
        session_directory=data.get("session_directory", defaults.session_directory),
        log_level=str(data.get("log_level", defaults.log_level)).upper(),
    )
    if settings.session_store not in SESSION_STORES:
        raise InvalidSettingsError(
            "session_store", settings.session_store,
            f"expected one of {sorted(SESSION_STORES)}",
        )
    if settings.log_level not in LOG_LEVELS:
        raise InvalidSettingsError(
            "log_level", settings.log_level, f"expected one of {sorted(LOG_LEVELS)}"
        )
    if settings.issue_cap < 1:
        raise InvalidSettingsError("issue_cap", settings.issue_cap, "must be at least 1")
    return settings


# ---------------------------------------------------------------------------
# Compile: schema definitions -> domain ImportProfile
# ---------------------------------------------------------------------------


def _decimal(profile: str, value: Any, what: str) -> Decimal | None:
    if value is None:
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation as e:
        raise ProfileDefinitionError(profile, f"{what} is not a number: {value!r}") from e


def _severity(profile: str, value: str, what: str) -> Severity:
    try:
        return Severity(str(value).lower())
    except ValueError as e:
        raise ProfileDefinitionError(profile, f"{what} has unknown severity {value!r}") from e


def _typical_value(profile: str, value: Any, field_type: FieldType) -> Any:
    if field_type in (FieldType.DECIMAL, FieldType.INTEGER) and not isinstance(value, str):
        return _decimal(profile, value, "typical value")
    return str(value)


def compile_field(profile: str, fd: FieldDef) -> FieldSpec:
    try:
        field_type = FieldType(fd.field_type.lower())
    except ValueError as e:
        raise ProfileDefinitionError(
            profile, f"field {fd.name!r} has unknown type {fd.field_type!r}"
        ) from e
    return FieldSpec(
        name=fd.name,
        field_type=field_type,
        label=fd.label,
        synonyms=fd.synonyms,
        required=fd.required,
        minimum=_decimal(profile, fd.minimum, f"{fd.name}.min"),
        maximum=_decimal(profile, fd.maximum, f"{fd.name}.max"),
        exclusive_minimum=fd.exclusive_minimum,
        exclusive_maximum=fd.exclusive_maximum,
        choices=fd.choices,
        choices_severity=_severity(profile, fd.choices_severity, f"{fd.name}.choices_severity"),
        typical_minimum=_decimal(profile, fd.typical_minimum, f"{fd.name}.typical_min"),
        typical_maximum=_decimal(profile, fd.typical_maximum, f"{fd.name}.typical_max"),
        typical_values=tuple(_typical_value(profile, v, field_type) for v in fd.typical_values),
        typical_severity=_severity(profile, fd.typical_severity, f"{fd.name}.typical_severity"),
    )


def compile_profile(definition: ImportProfileDef) -> ImportProfile:
    """
    Compile a parsed profile into the runtime ImportProfile.

    Raises:
        ProfileDefinitionError: when a rule or key names an unknown field,
            a rule type is unknown, or a field name repeats.
    """
    name = definition.name
    fields = tuple(compile_field(name, fd) for fd in definition.fields)
    known = {f.name for f in fields}
    if len(known) != len(fields):
        raise ProfileDefinitionError(name, "field names must be unique")

    rules: list[CrossFieldRule] = []
    for rd in definition.cross_field_rules:
        if rd.rule_type not in RULE_TYPES:
            raise ProfileDefinitionError(name, f"unknown cross-field rule type {rd.rule_type!r}")
        unknown = [f for f in rd.fields if f not in known]
        if unknown:
            raise ProfileDefinitionError(
                name, f"{rd.rule_type} rule references unknown fields {unknown}"
            )
        if rd.rule_type in _CONDITIONAL_RULES and (
            rd.when_field not in known or not rd.when_values
        ):
            raise ProfileDefinitionError(
                name, f"{rd.rule_type} rule needs a known when_field and when_values"
            )
        minimum_fields = 1 if rd.rule_type in _CONDITIONAL_RULES else 2
        if len(rd.fields) < minimum_fields:
            raise ProfileDefinitionError(name, f"{rd.rule_type} rule needs more fields")
        rules.append(
            CrossFieldRule(
                rule_type=rd.rule_type,
                fields=rd.fields,
                severity=_severity(name, rd.severity, f"{rd.rule_type} rule"),
                when_field=rd.when_field,
                when_values=rd.when_values,
                tolerance=_decimal(name, rd.tolerance, "tolerance"),
                message=rd.message,
            )
        )

    duplicate_key = None
    if definition.duplicate_key is not None:
        unknown = [f for f in definition.duplicate_key.fields if f not in known]
        if unknown or not definition.duplicate_key.fields:
            raise ProfileDefinitionError(name, f"duplicate_key references unknown fields {unknown}")
        duplicate_key = DuplicateKey(
            fields=definition.duplicate_key.fields,
            label=definition.duplicate_key.label,
        )

    return ImportProfile(
        name=name,
        fact_type=definition.fact_type,
        version=definition.version,
        description=definition.description,
        fields=fields,
        cross_field_rules=tuple(rules),
        duplicate_key=duplicate_key,
        auto_create_severity=_severity(name, definition.auto_create_severity, "auto_create_severity"),
        source_options=dict(definition.source_options),
    )


def load_profile_file(path: Path) -> ImportProfile:
    """Load, parse and compile one profile YAML file."""
    return compile_profile(parse_profile(load_yaml_file(path)))

"""
mediaplan_config -- public entrypoints for import profiles and settings.

Responsibility:
    Provides the only way to obtain import profiles and engine settings at
    runtime: ``get_import_profile()``, ``list_import_profiles()`` and
    ``get_settings()``. Profiles live as one YAML file per import type under
    ``mediaplan_config/profiles/``; settings in ``settings.yaml``.

Failure modes:
    - ``UnknownProfileError`` -- no profile file with the requested name.
    - ``ProfileDefinitionError`` -- the profile is internally inconsistent.
    - ``yaml.YAMLError`` -- malformed YAML.
"""

from __future__ import annotations

from pathlib import Path

from mediaplan_kernel.exceptions import UnknownProfileError
from mediaplan_kernel.logging_config import get_logger

from mediaplan_config.loader import load_profile_file, load_yaml_file, parse_settings
from mediaplan_config.schema import SettingsDef
from mediaplan_ingestion.domain.types import ImportProfile

logger = get_logger("config")

_DEFAULT_PROFILES_DIR = Path(__file__).parent / "profiles"
_DEFAULT_SETTINGS_FILE = Path(__file__).parent / "settings.yaml"


def list_import_profiles(profiles_dir: Path | None = None) -> list[str]:
    """Names of all configured import profiles, sorted."""
    directory = profiles_dir or _DEFAULT_PROFILES_DIR
    return sorted(p.stem for p in directory.glob("*.yaml"))


def get_import_profile(name: str, profiles_dir: Path | None = None) -> ImportProfile:
    """
    Load and compile one import profile.

    Profiles are re-read on every call; callers hold the returned profile
    for the duration of a pipeline stage.

    Raises:
        UnknownProfileError: if no ``<name>.yaml`` exists.
        ProfileDefinitionError: if the profile fails compilation.
    """
    directory = profiles_dir or _DEFAULT_PROFILES_DIR
    path = directory / f"{name}.yaml"
    if not path.is_file():
        raise UnknownProfileError(name, list_import_profiles(directory))
    profile = load_profile_file(path)
    logger.debug(
        "import_profile_loaded",
        extra={
            "profile": profile.name,
            "version": profile.version,
            "fact_type": profile.fact_type,
            "field_count": len(profile.fields),
        },
    )
    return profile


def get_settings(path: Path | None = None) -> SettingsDef:
    """Load engine settings; a missing file yields the defaults."""
    settings_file = path or _DEFAULT_SETTINGS_FILE
    if not settings_file.is_file():
        return SettingsDef()
    return parse_settings(load_yaml_file(settings_file))


__all__ = [
    "SettingsDef",
    "get_import_profile",
    "get_settings",
    "list_import_profiles",
]

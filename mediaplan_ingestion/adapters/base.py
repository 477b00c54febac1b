"""
Source adapter protocol, probe and table DTOs.

Contract:
    SourceAdapter.read_table() loads the whole file with structural checks:
    a malformed file raises StructuralFileError and yields nothing.
    SourceAdapter.probe() returns a quick snapshot: row count, columns, sample rows.

Architecture: mediaplan_ingestion/adapters. File I/O only, no DB imports.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Protocol, runtime_checkable

from mediaplan_kernel.exceptions import StructuralFileError


@runtime_checkable
class SourceAdapter(Protocol):
    """Protocol for reading structured source files into record dicts."""

    def read_table(self, source_path: Path, options: dict[str, Any]) -> "SourceTable":
        """Read headers and every record, raising StructuralFileError on a malformed file."""
        ...

    def probe(self, source_path: Path, options: dict[str, Any]) -> "SourceProbe":
        """Quick probe: row count, detected columns, sample rows."""
        ...


@dataclass(frozen=True)
class SourceProbe:
    """Result of probing a source file (row count, columns, first N rows)."""

    row_count: int
    columns: tuple[str, ...]
    sample_rows: tuple[dict[str, Any], ...]  # First 5 rows; do not mutate
    encoding: str | None = None
    detected_delimiter: str | None = None


@dataclass(frozen=True)
class SourceTable:
    """Headers in file order plus every data record keyed by header."""

    headers: tuple[str, ...]
    records: tuple[dict[str, Any], ...]


def check_headers(headers: Iterable[Any], source: str | None = None, line_number: int = 1) -> tuple[str, ...]:
    """Strip header cells; reject empty and duplicate names."""
    cleaned: list[str] = []
    for position, raw in enumerate(headers, start=1):
        name = str(raw).strip() if raw is not None else ""
        if not name:
            raise StructuralFileError(
                f"Empty header in column {position}", line_number=line_number, source=source
            )
        if name in cleaned:
            raise StructuralFileError(
                f"Duplicate header {name!r}", line_number=line_number, source=source
            )
        cleaned.append(name)
    if not cleaned:
        raise StructuralFileError("File has no header row", line_number=line_number, source=source)
    return tuple(cleaned)

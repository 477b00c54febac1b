"""
XLSX source adapter for plan workbooks.

Supports flexible layout:
  - sheet by index (0-based) or name
  - header row by index or auto-detect (scans the first rows for known column names)
  - skip_rows before header
  - native cell values: dates stay dates, integral floats become ints

Auto-detect looks for the first row containing at least 2 of the profile's
known headers (passed as options["known_headers"], already normalized), so
title rows and notes above the table are skipped.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

from mediaplan_kernel.exceptions import StructuralFileError

from mediaplan_ingestion.adapters.base import SourceProbe, SourceTable, check_headers
from mediaplan_ingestion.mapping.engine import normalize_header

_MAX_SEARCH_ROWS = 15


def _load_workbook(source_path: Path) -> Any:
    try:
        import openpyxl
    except ImportError as e:
        raise ImportError("XLSX support requires openpyxl. Install with: pip install openpyxl") from e
    return openpyxl.load_workbook(source_path, read_only=True, data_only=True)


def _normalize_header_cell(value: Any) -> str:
    if value is None:
        return ""
    return re.sub(r"\s+", " ", str(value)).strip()


def _cell_value(row: tuple, col_idx: int) -> Any:
    """Cell value from a values_only row (0-based column index)."""
    if col_idx >= len(row):
        return None
    v = row[col_idx]
    if isinstance(v, float) and v.is_integer():
        return int(v)
    if isinstance(v, str):
        v = v.strip()
        return v or None
    return v


def _is_blank(row: tuple) -> bool:
    return all(_cell_value(row, c) is None for c in range(len(row)))


def _column_count(row: tuple) -> int:
    n = 0
    for c in range(len(row)):
        if _cell_value(row, c) is not None:
            n = c + 1
    return n


def _detect_header_row(rows: list[tuple], known: frozenset[str], min_matches: int = 2) -> int:
    """Return 0-based index of the first row that looks like the header."""
    if not known:
        return 0
    for i, row in enumerate(rows[:_MAX_SEARCH_ROWS]):
        matches = {
            normalize_header(v) for v in row if v is not None
        } & known
        if len(matches) >= min_matches:
            return i
    return 0


class XlsxSourceAdapter:
    """
    Read .xlsx files as one dict per row.

    source_options:
      sheet: 0-based sheet index (int) or sheet name (str). Default: active sheet.
      skip_rows: number of rows to skip at top of sheet before header/data. Default: 0.
      header_row: 0-based row index (after skip_rows) to use as header. Disables auto-detect.
      known_headers: normalized header names used to auto-detect the header row.
    """

    def _get_sheet(self, wb: Any, options: dict[str, Any]) -> Any:
        sheet_ref = options.get("sheet")
        if sheet_ref is None:
            return wb.active
        if isinstance(sheet_ref, int):
            return wb.worksheets[sheet_ref]
        return wb[sheet_ref]

    def _rows(self, source_path: Path, options: dict[str, Any]) -> tuple[list[tuple], int]:
        skip_rows = int(options.get("skip_rows", 0))
        wb = _load_workbook(source_path)
        try:
            sheet = self._get_sheet(wb, options)
            rows = list(sheet.iter_rows(min_row=1 + skip_rows, values_only=True))
        finally:
            wb.close()
        return rows, skip_rows

    def _header_index(self, rows: list[tuple], options: dict[str, Any]) -> int:
        if options.get("header_row") is not None:
            return int(options["header_row"])
        known = frozenset(options.get("known_headers") or ())
        return _detect_header_row(rows, known)

    def read_table(self, source_path: Path, options: dict[str, Any]) -> SourceTable:
        """
        Read the whole sheet.

        Raises StructuralFileError for an empty sheet, an empty or duplicate
        header, or a data cell outside the header's columns. Line numbers are
        spreadsheet row numbers.
        """
        source = source_path.name
        rows, skip_rows = self._rows(source_path, options)
        if not rows or all(_is_blank(r) for r in rows):
            raise StructuralFileError("Sheet is empty", line_number=1 + skip_rows, source=source)

        hi = self._header_index(rows, options)
        header_line = hi + 1 + skip_rows
        header_row = rows[hi]
        ncols = _column_count(header_row)
        headers = check_headers(
            (_normalize_header_cell(header_row[c]) for c in range(ncols)),
            source=source,
            line_number=header_line,
        )

        records: list[dict[str, Any]] = []
        for offset, row in enumerate(rows[hi + 1:], start=1):
            if _is_blank(row):
                continue
            if _column_count(row) > ncols:
                raise StructuralFileError(
                    f"Value outside the {ncols} header columns",
                    line_number=header_line + offset,
                    source=source,
                )
            records.append({h: _cell_value(row, c) for c, h in enumerate(headers)})
        return SourceTable(headers=headers, records=tuple(records))

    def probe(self, source_path: Path, options: dict[str, Any]) -> SourceProbe:
        rows, _ = self._rows(source_path, options)
        if not rows:
            return SourceProbe(row_count=0, columns=(), sample_rows=(), encoding=None, detected_delimiter=None)

        hi = self._header_index(rows, options)
        header_row = rows[hi]
        ncols = _column_count(header_row)
        headers = [
            _normalize_header_cell(header_row[c]) or f"Column_{c + 1}" for c in range(ncols)
        ]
        data = [r for r in rows[hi + 1:] if not _is_blank(r)]
        sample = [
            {h: _cell_value(row, c) for c, h in enumerate(headers)} for row in data[:5]
        ]
        return SourceProbe(
            row_count=len(data),
            columns=tuple(headers),
            sample_rows=tuple(sample),
            encoding=None,
            detected_delimiter=None,
        )

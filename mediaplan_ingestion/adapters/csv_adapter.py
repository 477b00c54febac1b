"""
CSV source adapter.

Uses the csv module in strict mode. Configurable: delimiter, encoding,
quoting, skip_rows. Handles BOM via utf-8-sig when encoding is utf-8.
read_table() loads and checks the whole file; probe() samples the first rows.
"""

from __future__ import annotations

import csv
from pathlib import Path
from typing import Any

from mediaplan_kernel.exceptions import StructuralFileError

from mediaplan_ingestion.adapters.base import SourceProbe, SourceTable, check_headers


_QUOTING = {
    "minimal": csv.QUOTE_MINIMAL,
    "all": csv.QUOTE_ALL,
    "nonnumeric": csv.QUOTE_NONNUMERIC,
    "none": csv.QUOTE_NONE,
}


def _get_encoding(options: dict[str, Any]) -> str:
    enc = options.get("encoding", "utf-8")
    if enc.lower() == "utf-8":
        return "utf-8-sig"  # Strip BOM if present
    return enc


def _get_quoting(options: dict[str, Any]) -> int:
    q = options.get("quoting", "minimal")
    if isinstance(q, int):
        return q
    return _QUOTING.get(str(q).lower(), csv.QUOTE_MINIMAL)


def _is_blank_row(row: list[str]) -> bool:
    return not row or all(not cell.strip() for cell in row)


class CsvSourceAdapter:
    """Read CSV files as one dict per row."""

    def read_table(self, source_path: Path, options: dict[str, Any]) -> SourceTable:
        """
        Read the whole file.

        Raises StructuralFileError for an empty file, an empty or duplicate
        header, an unterminated quote or a row whose column count differs
        from the header. Blank lines are skipped. Line numbers are physical
        lines of the file.
        """
        encoding = _get_encoding(options)
        delimiter = options.get("delimiter", ",")
        skip_rows = int(options.get("skip_rows", 0))
        quoting = _get_quoting(options)
        source = source_path.name

        with source_path.open("r", encoding=encoding, newline="") as f:
            for _ in range(skip_rows):
                next(f, None)
            reader = csv.reader(f, delimiter=delimiter, quoting=quoting, strict=True)
            try:
                first = next(reader, None)
                while first is not None and _is_blank_row(first):
                    first = next(reader, None)
                if first is None:
                    raise StructuralFileError("File is empty", line_number=1 + skip_rows, source=source)
                header_line = reader.line_num + skip_rows
                headers = check_headers(first, source=source, line_number=header_line)

                records: list[dict[str, Any]] = []
                for row in reader:
                    if _is_blank_row(row):
                        continue
                    if len(row) != len(headers):
                        raise StructuralFileError(
                            f"Expected {len(headers)} columns, found {len(row)}",
                            line_number=reader.line_num + skip_rows,
                            source=source,
                        )
                    records.append(dict(zip(headers, row)))
            except csv.Error as e:
                raise StructuralFileError(
                    str(e), line_number=reader.line_num + skip_rows, source=source
                ) from e

        return SourceTable(headers=headers, records=tuple(records))

    def probe(self, source_path: Path, options: dict[str, Any]) -> SourceProbe:
        encoding = _get_encoding(options)
        delimiter = options.get("delimiter", ",")
        skip_rows = int(options.get("skip_rows", 0))
        quoting = _get_quoting(options)
        sample_size = 5

        with source_path.open("r", encoding=encoding, newline="") as f:
            for _ in range(skip_rows):
                next(f, None)
            reader = csv.DictReader(f, delimiter=delimiter, quoting=quoting)
            columns_tuple = tuple(reader.fieldnames or ())
            sample: list[dict[str, Any]] = []
            for row in reader:
                sample.append(dict(row))
                if len(sample) >= sample_size:
                    break
            count = len(sample)
            for _ in reader:
                count += 1

        return SourceProbe(
            row_count=count,
            columns=columns_tuple,
            sample_rows=tuple(sample),
            encoding=encoding,
            detected_delimiter=delimiter,
        )

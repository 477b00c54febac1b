"""Source adapters for plan files (file I/O only, no DB)."""

from pathlib import Path

from mediaplan_kernel.exceptions import UnsupportedSourceFormatError

from mediaplan_ingestion.adapters.base import SourceAdapter, SourceProbe, SourceTable
from mediaplan_ingestion.adapters.csv_adapter import CsvSourceAdapter
from mediaplan_ingestion.adapters.xlsx_adapter import XlsxSourceAdapter

_ADAPTERS_BY_SUFFIX: dict[str, type] = {
    ".csv": CsvSourceAdapter,
    ".txt": CsvSourceAdapter,
    ".xlsx": XlsxSourceAdapter,
    ".xlsm": XlsxSourceAdapter,
}


def adapter_for(source_path: Path) -> SourceAdapter:
    """Pick the adapter by file suffix."""
    suffix = Path(source_path).suffix.lower()
    adapter_cls = _ADAPTERS_BY_SUFFIX.get(suffix)
    if adapter_cls is None:
        raise UnsupportedSourceFormatError(suffix or "(none)", sorted(_ADAPTERS_BY_SUFFIX))
    return adapter_cls()


__all__ = [
    "SourceAdapter",
    "SourceProbe",
    "SourceTable",
    "CsvSourceAdapter",
    "XlsxSourceAdapter",
    "adapter_for",
]

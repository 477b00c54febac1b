"""Tests for source adapters."""

from datetime import datetime
from pathlib import Path

import pytest
from openpyxl import Workbook

from mediaplan_kernel.exceptions import StructuralFileError, UnsupportedSourceFormatError
from mediaplan_ingestion.adapters import CsvSourceAdapter, XlsxSourceAdapter, adapter_for


def _write_text(tmp_path: Path, text: str, name: str = "plan.csv", encoding: str = "utf-8") -> Path:
    path = tmp_path / name
    path.write_text(text, encoding=encoding, newline="")
    return path


class TestCsvSourceAdapter:
    """CSV adapter: whole-file read with structural checks, probe."""

    def test_read_table(self, tmp_path):
        path = _write_text(tmp_path, "Campaign,Budget\nCellular Filler,\"1,000\"\n\nGlow Up,500\n")
        table = CsvSourceAdapter().read_table(path, {})
        assert table.headers == ("Campaign", "Budget")
        assert table.records == (
            {"Campaign": "Cellular Filler", "Budget": "1,000"},
            {"Campaign": "Glow Up", "Budget": "500"},
        )

    def test_bom_stripped(self, tmp_path):
        path = _write_text(tmp_path, "Campaign,Budget\nx,1\n", encoding="utf-8-sig")
        assert CsvSourceAdapter().read_table(path, {}).headers == ("Campaign", "Budget")

    def test_header_cells_stripped(self, tmp_path):
        path = _write_text(tmp_path, " Campaign , Budget\nx,1\n")
        assert CsvSourceAdapter().read_table(path, {}).headers == ("Campaign", "Budget")

    def test_custom_delimiter_and_skip_rows(self, tmp_path):
        path = _write_text(tmp_path, "exported plan\nh1;h2\n1;2\n")
        table = CsvSourceAdapter().read_table(path, {"delimiter": ";", "skip_rows": 1})
        assert table.records == ({"h1": "1", "h2": "2"},)

    def test_header_only(self, tmp_path):
        path = _write_text(tmp_path, "Campaign,Budget\n")
        table = CsvSourceAdapter().read_table(path, {})
        assert table.headers == ("Campaign", "Budget")
        assert table.records == ()

    def test_empty_file(self, tmp_path):
        path = _write_text(tmp_path, "")
        with pytest.raises(StructuralFileError, match="File is empty"):
            CsvSourceAdapter().read_table(path, {})

    def test_column_count_mismatch(self, tmp_path):
        path = _write_text(tmp_path, "a,b\n1,2\n3\n")
        with pytest.raises(StructuralFileError) as exc_info:
            CsvSourceAdapter().read_table(path, {})
        assert exc_info.value.line_number == 3
        assert exc_info.value.source == "plan.csv"
        assert exc_info.value.code == "STRUCTURAL_FILE_ERROR"

    def test_unterminated_quote(self, tmp_path):
        path = _write_text(tmp_path, 'a,b\n1,"never closed\n')
        with pytest.raises(StructuralFileError):
            CsvSourceAdapter().read_table(path, {})

    @pytest.mark.parametrize("header", ["a,a\n", "a,,b\n"])
    def test_bad_header(self, tmp_path, header):
        path = _write_text(tmp_path, header + "1,2,3\n")
        with pytest.raises(StructuralFileError) as exc_info:
            CsvSourceAdapter().read_table(path, {})
        assert exc_info.value.line_number == 1

    def test_probe_returns_row_count_and_columns(self, tmp_path):
        path = _write_text(tmp_path, "x,y\n" + "".join(f"{i},{i}\n" for i in range(8)))
        probe = CsvSourceAdapter().probe(path, {})
        assert probe.row_count == 8
        assert probe.columns == ("x", "y")
        assert len(probe.sample_rows) == 5


@pytest.fixture
def workbook_path(tmp_path):
    """Plan workbook with a title and notes row above the header."""
    wb = Workbook()
    ws = wb.active
    ws.title = "Plan"
    ws.append(["Germany media plan 2025"])
    ws.append(["Budgets in EUR"])
    ws.append(["Campaign", "Media Subtype", "Budget", "Initial Date"])
    ws.append([" Cellular Filler ", "Open TV", 1500.0, datetime(2025, 2, 1)])
    ws.append(["Glow Up", "Social", 250.5, datetime(2025, 3, 1)])
    path = tmp_path / "plan.xlsx"
    wb.save(path)
    return path


KNOWN = ("campaign", "mediasubtype", "budget", "initialdate")


class TestXlsxSourceAdapter:
    def test_auto_detects_header_row(self, workbook_path):
        table = XlsxSourceAdapter().read_table(workbook_path, {"known_headers": KNOWN})
        assert table.headers == ("Campaign", "Media Subtype", "Budget", "Initial Date")
        first, second = table.records
        assert first == {
            "Campaign": "Cellular Filler",
            "Media Subtype": "Open TV",
            "Budget": 1500,
            "Initial Date": datetime(2025, 2, 1),
        }
        assert second["Budget"] == 250.5

    def test_explicit_header_row(self, workbook_path):
        table = XlsxSourceAdapter().read_table(workbook_path, {"header_row": 2})
        assert len(table.records) == 2

    def test_sheet_by_name(self, workbook_path):
        table = XlsxSourceAdapter().read_table(workbook_path, {"sheet": "Plan", "known_headers": KNOWN})
        assert table.headers[0] == "Campaign"

    def test_value_outside_header_columns(self, tmp_path):
        wb = Workbook()
        ws = wb.active
        ws.append(["Campaign", "Budget"])
        ws.append(["Cellular Filler", 100, "stray"])
        path = tmp_path / "stray.xlsx"
        wb.save(path)
        with pytest.raises(StructuralFileError) as exc_info:
            XlsxSourceAdapter().read_table(path, {})
        assert exc_info.value.line_number == 2

    def test_empty_sheet(self, tmp_path):
        path = tmp_path / "empty.xlsx"
        Workbook().save(path)
        with pytest.raises(StructuralFileError, match="Sheet is empty"):
            XlsxSourceAdapter().read_table(path, {})

    def test_probe(self, workbook_path):
        probe = XlsxSourceAdapter().probe(workbook_path, {"known_headers": KNOWN})
        assert probe.row_count == 2
        assert probe.columns == ("Campaign", "Media Subtype", "Budget", "Initial Date")


class TestAdapterFor:
    @pytest.mark.parametrize(
        "name,adapter_cls",
        [("plan.csv", CsvSourceAdapter), ("PLAN.XLSX", XlsxSourceAdapter), ("plan.txt", CsvSourceAdapter)],
    )
    def test_by_suffix(self, name, adapter_cls):
        assert isinstance(adapter_for(Path(name)), adapter_cls)

    def test_unsupported(self):
        with pytest.raises(UnsupportedSourceFormatError) as exc_info:
            adapter_for(Path("plan.pdf"))
        assert exc_info.value.source_format == ".pdf"

    @pytest.mark.parametrize("adapter_cls", [CsvSourceAdapter, XlsxSourceAdapter])
    def test_adapter_surface(self, adapter_cls):
        public = {name for name in vars(adapter_cls) if not name.startswith("_")}
        assert public == {"read_table", "probe"}

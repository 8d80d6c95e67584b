"""Test suite for the import pipeline, the Excel adapter and BomTreeParser exports."""

import csv
import json

import openpyxl
import pytest

from bomtree import BomTreeParser, rows_from_records, rows_from_workbook
from bomtree.adapters.csv_adapter import CsvAdapter
from bomtree.adapters.excel_adapter import ExcelAdapter
from bomtree.normalizer import is_temp_id
from bomtree.schema import NODE_EXPORT_HEADERS, QuantityUnit


def write_workbook(path, header, rows):
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.append(header)
    for row in rows:
        ws.append(row)
    wb.save(path)
    return path


@pytest.fixture
def ebom_xlsx(tmp_path):
    return write_workbook(
        tmp_path / "ebom.xlsx",
        ["Line No", "Parent Line No", "Part No", "Rev", "Part Name", "Material",
         "Q'ty", "UoM", "Mass per EA (kg)", "Supplier"],
        [
            ["1", None, "FR-100", "A", "Frame", "AL6061", 1, "EA", 2.5, "ACME"],
            ["1.1", "1", "BT-10", None, "Bolt", "STEEL", 4, "EA", 0.01, None],
            [None, None, None, None, None, None, None, None, None, None],
            ["   ", None, "XX-1", None, "No line", None, 1, "EA", 1, None],
            ["2", None, "CV-20", "B", "Cover", "ABS", 1, "EA", 0.3, None],
        ],
    )


@pytest.fixture
def parser():
    parser = BomTreeParser()
    parser.register_adapter(ExcelAdapter())
    parser.register_adapter(CsvAdapter())
    return parser


# =============================================================================
# RECORDS -> ROWS
# =============================================================================

class TestRowsFromRecords:

    def test_end_to_end(self, ebom_records):
        rows = rows_from_records(ebom_records, treetable_id="tt-1")

        assert [row.name for row in rows] == ["Frame", "Bolt", "Cover", "Screw", "Packaging"]
        assert [row.level for row in rows] == [0, 1, 1, 2, 0]
        assert all(is_temp_id(row.tmp_id) for row in rows)
        assert all(row.treetable_id == "tt-1" for row in rows)

        named = {row.name: row for row in rows}
        assert named["Screw"].parent_id == named["Cover"].tmp_id
        assert named["Packaging"].qty_uom == QuantityUnit.KG
        assert named["Packaging"].total_mass_kg == 0.4

    def test_rows_without_line_number_are_dropped(self):
        rows = rows_from_records([
            {"Line No": "1", "Name": "Frame"},
            {"Line No": "", "Name": "Blank"},
            {"Name": "Missing"},
            {"Line No": None, "Name": "None"},
        ])
        assert [row.name for row in rows] == ["Frame"]
        assert all(row.line_no for row in rows)

    def test_spreadsheet_content_never_raises(self):
        rows = rows_from_records([
            {"Line No": "x.y", "Qty": "lots", "UoM": "furlong", "Parent": "nowhere"},
            {"Whatever": 1},
            {},
        ])
        assert len(rows) == 1
        assert rows[0].qty is None
        assert rows[0].qty_uom is None
        assert rows[0].parent_id is None

    def test_legacy_weight_only_sheet(self):
        rows = rows_from_records([
            {"Line No": "1", "Name": "Frame", "Weight": 12.5},
            {"Line No": "1.1", "Name": "Bolt", "Weight": "0.2"},
        ])
        for row in rows:
            assert row.qty == 1.0
            assert row.qty_uom == QuantityUnit.EACH
            assert row.mass_per_ea_kg == row.weight

    def test_gram_per_each_header(self):
        rows = rows_from_records([
            {"Line No": "1", "Name": "Frame", "Qty": 2, "Unit": "EA", "Mass (g/ea)": "1,500"},
        ])
        assert rows[0].mass_per_ea_kg == pytest.approx(1.5)
        assert rows[0].total_mass_kg == pytest.approx(3.0)

    def test_idempotent_apart_from_temp_ids(self, ebom_records):
        first = rows_from_records(ebom_records)
        second = rows_from_records(ebom_records)

        def strip(rows):
            line_by_tmp = {row.tmp_id: row.line_no for row in rows}
            result = []
            for row in rows:
                data = row.to_dict()
                data.pop("tmp_id")
                data["parent_id"] = line_by_tmp.get(row.parent_id)
                result.append(data)
            return result

        assert strip(first) == strip(second)
        assert {row.tmp_id for row in first}.isdisjoint({row.tmp_id for row in second})


# =============================================================================
# EXCEL
# =============================================================================

class TestExcel:

    def test_adapter_reads_first_sheet(self, ebom_xlsx):
        records = ExcelAdapter().read(str(ebom_xlsx))

        assert len(records) == 4  # the all-blank row is skipped
        assert records[0]["Part No"] == "FR-100"
        assert records[0]["Supplier"] == "ACME"

    def test_adapter_skips_blank_headers(self, tmp_path):
        path = write_workbook(tmp_path / "gaps.xlsx", ["Line No", None, "Name"], [["1", "junk", "Frame"]])
        assert ExcelAdapter().read(str(path)) == [{"Line No": "1", "Name": "Frame"}]

    def test_adapter_read_bytes(self, ebom_xlsx):
        records = ExcelAdapter().read_bytes(ebom_xlsx.read_bytes())
        assert [record["Line No"] for record in records] == ["1", "1.1", "   ", "2"]

    def test_adapter_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            ExcelAdapter().read(str(tmp_path / "missing.xlsx"))

    def test_can_handle(self):
        adapter = ExcelAdapter()
        assert adapter.can_handle("bom.XLSX")
        assert adapter.can_handle("bom.xlsm")
        assert not adapter.can_handle("bom.csv")

    def test_rows_from_workbook(self, ebom_xlsx):
        wb = openpyxl.load_workbook(ebom_xlsx)
        rows = rows_from_workbook(wb, treetable_id="tt-9")

        assert [row.name for row in rows] == ["Frame", "Bolt", "Cover"]
        assert rows[0].revision == "A"
        assert rows[1].parent_id == rows[0].tmp_id

    def test_empty_sheet_yields_no_rows(self):
        wb = openpyxl.Workbook()
        assert rows_from_workbook(wb) == []


# =============================================================================
# PARSER
# =============================================================================

class TestBomTreeParser:

    def test_parse(self, parser, ebom_xlsx):
        rows = parser.parse(str(ebom_xlsx), treetable_id="tt-1")
        assert [(row.line_no, row.level) for row in rows] == [("1", 0), ("1.1", 1), ("2", 0)]

    def test_no_adapter(self, parser, tmp_path):
        with pytest.raises(ValueError, match="No adapter"):
            parser.parse(str(tmp_path / "bom.pdf"))

    def test_mapping_report(self, parser, ebom_xlsx):
        report = parser.get_mapping_report(str(ebom_xlsx))

        assert report["mapped"]["parent_line_no"] == ["Parent Line No"]
        assert report["mapped"]["mass_per_ea_kg"] == ["Mass per EA (kg)"]
        assert report["unmapped"] == ["Supplier"]

    def test_export_csv(self, parser, ebom_xlsx, tmp_path):
        rows = parser.parse(str(ebom_xlsx))
        output = parser.export(rows, str(tmp_path / "out.csv"))

        with open(output, newline="", encoding="utf-8") as f:
            exported = list(csv.DictReader(f))

        assert list(exported[0].keys()) == NODE_EXPORT_HEADERS
        assert [r["line_no"] for r in exported] == ["1", "1.1", "2"]
        assert exported[1]["parent_line_no"] == "1"
        assert exported[0]["parent_line_no"] == ""
        assert exported[1]["level"] == "1"
        assert float(exported[1]["total_mass_kg"]) == pytest.approx(0.04)

    def test_export_excel_indents_by_level(self, parser, ebom_xlsx, tmp_path):
        rows = parser.parse(str(ebom_xlsx))
        output = parser.export(rows, str(tmp_path / "out.xlsx"))

        ws = openpyxl.load_workbook(output).active
        assert [cell.value for cell in ws[1]] == NODE_EXPORT_HEADERS
        assert ws["A2"].value == "1"
        assert ws["A3"].alignment.indent == 1
        assert ws["A4"].alignment.indent == 0

    def test_export_json(self, parser, ebom_xlsx, tmp_path):
        rows = parser.parse(str(ebom_xlsx))
        output = parser.export(rows, str(tmp_path / "out.json"))

        with open(output, encoding="utf-8") as f:
            exported = json.load(f)
        assert exported[1]["name"] == "Bolt"
        assert exported[1]["qty_uom"] == "ea"

    def test_export_round_trip(self, parser, ebom_xlsx, tmp_path):
        rows = parser.parse(str(ebom_xlsx))
        output = parser.export(rows, str(tmp_path / "out.xlsx"))
        again = parser.parse(output)

        assert [(r.line_no, r.name, r.level) for r in again] == [(r.line_no, r.name, r.level) for r in rows]

    def test_export_unknown_extension_defaults_to_csv(self, parser, ebom_xlsx, tmp_path):
        rows = parser.parse(str(ebom_xlsx))
        output = parser.export(rows, str(tmp_path / "out.dat"))
        assert output.endswith("out.csv")

    def test_export_errors(self, parser, tmp_path):
        with pytest.raises(ValueError, match="empty"):
            parser.export([], str(tmp_path / "out.csv"))

        rows = rows_from_records([{"Line No": "1"}])
        with pytest.raises(ValueError, match="Unsupported"):
            parser.export(rows, str(tmp_path / "out.csv"), format="pdf")

    def test_parse_and_export(self, parser, ebom_xlsx, tmp_path):
        output = parser.parse_and_export(str(ebom_xlsx), str(tmp_path / "tree.json"))
        with open(output, encoding="utf-8") as f:
            assert len(json.load(f)) == 3

from .column_mapper import ColumnMapper
from .importer import rows_from_records
from .models import Row
from .schema import NODE_EXPORT_HEADERS
from typing import List, Dict, Any, Optional
from pathlib import Path
import csv
import json
import openpyxl
from openpyxl.styles import Alignment, Font


class BomTreeParser:
    """Parser for tree BOM spreadsheets (EBOM sheets with dotted line numbers)."""

    def __init__(self):
        """Initialize the parser with no adapters registered."""
        self.adapters = []
        self.mapper = ColumnMapper()

    def register_adapter(self, adapter):
        """Register a file adapter for parsing.

        Args:
            adapter: Adapter instance with can_handle() and read() methods
        """
        self.adapters.append(adapter)

    def _find_adapter(self, file_path: str):
        for adapter in self.adapters:
            if adapter.can_handle(file_path):
                return adapter
        raise ValueError(f"No adapter found for {file_path}")

    def read_records(self, file_path: str) -> List[Dict[Any, Any]]:
        """Read raw header-keyed records from a file without mapping them."""
        return self._find_adapter(file_path).read(file_path)

    def parse(self, file_path: str, treetable_id: Optional[str] = None) -> List[Row]:
        """Parse a tree BOM file into ordered, leveled rows.

        Args:
            file_path: Path to the BOM file
            treetable_id: Owner treetable stamped on every row (optional)

        Returns:
            Rows in hierarchical order with temporary ids and parent links

        Raises:
            ValueError: If no adapter is found for the file
        """
        records = self.read_records(file_path)
        return rows_from_records(records, treetable_id=treetable_id, mapper=self.mapper)

    def get_mapping_report(self, file_path: str) -> Dict[str, Any]:
        """Get a report of how the file's headers map to canonical fields.

        Args:
            file_path: Path to the BOM file

        Returns:
            Dictionary with mapped and unmapped headers
        """
        return self.mapper.get_mapping_report(self.read_records(file_path))

    def export(self, rows: List[Row], output_path: str, format: Optional[str] = None) -> str:
        """Export tree rows to a file.

        Parent links are written back as parent_line_no so the export can be
        imported again.

        Args:
            rows: Rows in hierarchical order
            output_path: Path where the file should be saved
            format: Output format ('csv', 'excel', 'json', or None for auto-detect from extension)

        Returns:
            Path to the exported file

        Raises:
            ValueError: If format is not supported or rows is empty
        """
        if not rows:
            raise ValueError("Cannot export empty data")

        output_path = Path(output_path)

        # Auto-detect format from extension if not provided
        if format is None:
            suffix = output_path.suffix.lower()
            if suffix in ['.csv', '.tsv']:
                format = 'csv'
            elif suffix in ['.xlsx', '.xlsm']:
                format = 'excel'
            elif suffix == '.json':
                format = 'json'
            else:
                format = 'csv'
                output_path = output_path.with_suffix('.csv')

        format = format.lower()
        records = self.to_records(rows)

        if format == 'csv':
            self._export_csv(records, output_path)
        elif format == 'excel':
            self._export_excel(records, output_path)
        elif format == 'json':
            self._export_json(records, output_path)
        else:
            raise ValueError(f"Unsupported export format: {format}. Supported formats: csv, excel, json")

        return str(output_path)

    def to_records(self, rows: List[Row]) -> List[Dict[str, Any]]:
        """Flatten rows into export records keyed by NODE_EXPORT_HEADERS."""
        line_by_id = {}
        for row in rows:
            line_by_id[row.tmp_id] = row.line_no
            if row.id:
                line_by_id[row.id] = row.line_no

        records = []
        for row in rows:
            records.append({
                "line_no": row.line_no,
                "parent_line_no": line_by_id.get(row.parent_id) if row.parent_id else None,
                "part_no": row.part_no,
                "revision": row.revision,
                "name": row.name,
                "material": row.material,
                "qty": row.qty,
                "qty_uom": row.qty_uom.value if row.qty_uom else None,
                "mass_per_ea_kg": row.mass_per_ea_kg,
                "total_mass_kg": row.total_mass_kg,
                "level": row.level,
            })
        return records

    def _export_csv(self, records: List[Dict[str, Any]], output_path: Path) -> None:
        """Export records to CSV file."""
        with open(output_path, 'w', newline='', encoding='utf-8') as f:
            writer = csv.DictWriter(f, fieldnames=NODE_EXPORT_HEADERS, extrasaction='ignore')
            writer.writeheader()
            for record in records:
                writer.writerow({
                    header: '' if record.get(header) is None else record[header]
                    for header in NODE_EXPORT_HEADERS
                })

    def _export_excel(self, records: List[Dict[str, Any]], output_path: Path) -> None:
        """Export records to Excel, indenting line numbers by level."""
        wb = openpyxl.Workbook()
        ws = wb.active
        ws.title = "BOM"

        for col_idx, header in enumerate(NODE_EXPORT_HEADERS, start=1):
            cell = ws.cell(row=1, column=col_idx, value=header)
            cell.font = Font(bold=True)

        for row_idx, record in enumerate(records, start=2):
            for col_idx, header in enumerate(NODE_EXPORT_HEADERS, start=1):
                cell = ws.cell(row=row_idx, column=col_idx, value=record.get(header))
                if header == "line_no":
                    cell.alignment = Alignment(indent=record["level"])

        wb.save(output_path)

    def _export_json(self, records: List[Dict[str, Any]], output_path: Path) -> None:
        """Export records to JSON file."""
        with open(output_path, 'w', encoding='utf-8') as f:
            json.dump(records, f, indent=2, ensure_ascii=False)

    def parse_and_export(self, input_path: str, output_path: str,
                         treetable_id: Optional[str] = None,
                         format: Optional[str] = None) -> str:
        """Parse a BOM file and export the reconstructed tree.

        Args:
            input_path: Path to the input BOM file
            output_path: Path where the exported file should be saved
            treetable_id: Owner treetable (optional)
            format: Output format ('csv', 'excel', 'json', or None for auto-detect)

        Returns:
            Path to the exported file
        """
        rows = self.parse(input_path, treetable_id=treetable_id)
        return self.export(rows, output_path, format=format)

import io
from pathlib import Path
from typing import Any, Dict, List

import openpyxl


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class ExcelAdapter:
    """Excel adapter: reads the first sheet of a workbook as header-keyed records.

    The first row is the header row. Columns with a blank header and rows
    with no values at all are skipped.
    """

    def can_handle(self, file_path: str) -> bool:
        return Path(file_path).suffix.lower() in [".xlsx", ".xlsm"]

    def read(self, file_path: str) -> List[Dict[Any, Any]]:
        if not Path(file_path).exists():
            raise FileNotFoundError(f"File not found: {file_path}")

        wb = openpyxl.load_workbook(file_path, data_only=True, read_only=True)
        try:
            return self.read_workbook(wb)
        finally:
            wb.close()

    def read_bytes(self, data: bytes) -> List[Dict[Any, Any]]:
        """Read records from workbook bytes (e.g. an uploaded file)."""
        wb = openpyxl.load_workbook(io.BytesIO(data), data_only=True, read_only=True)
        try:
            return self.read_workbook(wb)
        finally:
            wb.close()

    def read_workbook(self, wb) -> List[Dict[Any, Any]]:
        """Read records from an already loaded openpyxl workbook.

        Raises:
            ValueError: If the workbook has no sheets
        """
        if not wb.worksheets:
            raise ValueError("Workbook contains no sheets")

        ws = wb.worksheets[0]
        values_iter = ws.iter_rows(values_only=True)

        header_row = next(values_iter, None)
        if header_row is None:
            return []
        headers = [None if _is_blank(header) else header for header in header_row]

        rows = []
        for values in values_iter:
            if all(_is_blank(value) for value in values):
                continue
            row_dict = {
                header: value
                for header, value in zip(headers, values)
                if header is not None
            }
            rows.append(row_dict)

        return rows

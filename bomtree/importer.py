"""
Spreadsheet records -> ordered tree rows.

The transform is pure and re-entrant:

    records --map headers--> canonical records
            --normalize----> typed Rows with fresh temporary ids
            --filter-------> rows without a line number dropped
            --link---------> parent_id resolved from line numbers
            --break cycles-> rows closing a cycle detached to root
            --level--------> nesting depth from the parent chain
            --sort---------> depth-first, numeric line number order

It never raises for spreadsheet content: unknown headers are ignored,
unparseable numbers become None, unresolved parents become roots.
"""

import logging
from typing import Any, Dict, List, Optional

from .column_mapper import ColumnMapper
from .adapters.excel_adapter import ExcelAdapter
from .models import Row
from .normalizer import RowNormalizer, TempIdGenerator
from .tree import build_tree

logger = logging.getLogger(__name__)


def rows_from_records(
    records: List[Dict[Any, Any]],
    treetable_id: Optional[str] = None,
    mapper: Optional[ColumnMapper] = None,
    normalizer: Optional[RowNormalizer] = None
) -> List[Row]:
    """
    Build ordered, leveled tree rows from raw header-keyed records.

    Args:
        records: Raw records as read from the first sheet
        treetable_id: Owner treetable stamped on every row
        mapper: Column mapper (default: ColumnMapper())
        normalizer: Row normalizer (default: RowNormalizer())

    Returns:
        Rows in hierarchical order, each with tmp_id, parent_id and level set
    """
    mapper = mapper or ColumnMapper()
    normalizer = normalizer or RowNormalizer()

    mapped = mapper.map_records(records)
    rows = normalizer.normalize(mapped, treetable_id=treetable_id, new_id=TempIdGenerator())

    kept = [row for row in rows if row.line_no]
    if len(kept) != len(rows):
        logger.debug(f"Dropped {len(rows) - len(kept)} rows without a line number")

    return build_tree(kept)


def rows_from_workbook(wb, treetable_id: Optional[str] = None) -> List[Row]:
    """
    Build tree rows from the first sheet of an openpyxl workbook.

    Raises:
        ValueError: If the workbook has no sheets
    """
    records = ExcelAdapter().read_workbook(wb)
    return rows_from_records(records, treetable_id=treetable_id)

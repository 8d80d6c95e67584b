from .parser import BomTreeParser
from .importer import rows_from_records, rows_from_workbook
from .column_mapper import ColumnMapper
from .normalizer import RowNormalizer, TempIdGenerator
from .unit_normalizer import UnitNormalizer
from .models import Row, Material, SaveResult
from .tree import build_tree, format_tree
from .report import build_material_report, export_report_csv
from .schema import CANONICAL_FIELDS, COLUMN_MAPPINGS, QuantityUnit

__all__ = [
    "BomTreeParser",
    "rows_from_records",
    "rows_from_workbook",
    "ColumnMapper",
    "RowNormalizer",
    "TempIdGenerator",
    "UnitNormalizer",
    "Row",
    "Material",
    "SaveResult",
    "build_tree",
    "format_tree",
    "build_material_report",
    "export_report_csv",
    "CANONICAL_FIELDS",
    "COLUMN_MAPPINGS",
    "QuantityUnit",
]

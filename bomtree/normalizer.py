from typing import List, Dict, Any, Optional, Callable
import logging
import math
import re
import secrets
import string

from .models import Row
from .schema import FieldTag, QuantityUnit
from .unit_normalizer import UnitNormalizer

logger = logging.getLogger(__name__)

TEMP_ID_PREFIX = "tmp_"
_BASE36 = string.digits + string.ascii_lowercase


def is_temp_id(value: Any) -> bool:
    """Check whether an id was issued by a TempIdGenerator."""
    return isinstance(value, str) and value.startswith(TEMP_ID_PREFIX)


class TempIdGenerator:
    """Issues temporary row ids for a single import pass.

    Ids look like "tmp_k3x9a0zq": a prefix plus random base-36 characters.
    An id is never issued twice by the same generator.
    """

    def __init__(self, length: int = 8):
        self.length = length
        self._issued = set()

    def __call__(self) -> str:
        while True:
            suffix = "".join(secrets.choice(_BASE36) for _ in range(self.length))
            tmp_id = f"{TEMP_ID_PREFIX}{suffix}"
            if tmp_id not in self._issued:
                self._issued.add(tmp_id)
                return tmp_id


def to_number(value: Any) -> Optional[float]:
    """Parse a cell into a finite float.

    Thousands separators and whitespace are stripped ("1,234.5 " -> 1234.5).
    Anything that does not parse to a finite number is None, never 0,
    including digit-grouping underscores ("1_000") that float() would accept.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = re.sub(r'[,\s]', '', str(value))
        if not text or "_" in text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None

    return number if math.isfinite(number) else None


def to_text(value: Any) -> Optional[str]:
    """Coerce a cell to a stripped string; None and blanks become None.

    Integral floats lose their ".0" so a line number typed as 1 stays "1".
    """
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    return text or None


class RowNormalizer:
    """Converts column-mapped records into typed Rows."""

    TEXT_FIELDS = [
        FieldTag.LINE_NO,
        FieldTag.PARENT_LINE_NO,
        FieldTag.PART_NO,
        FieldTag.REVISION,
        FieldTag.NAME,
        FieldTag.MATERIAL,
    ]

    NUMBER_FIELDS = [
        FieldTag.QTY,
        FieldTag.MASS_PER_EA_KG,
        FieldTag.WEIGHT,
    ]

    def __init__(self, unit_normalizer: Optional[UnitNormalizer] = None):
        self.unit_normalizer = unit_normalizer or UnitNormalizer()

    def normalize_record(
        self,
        record: Dict[str, Any],
        treetable_id: Optional[str],
        new_id: Callable[[], str]
    ) -> Row:
        """Normalize one column-mapped record.

        Args:
            record: Dictionary keyed by canonical field names
            treetable_id: Owner treetable of the import
            new_id: Temporary id factory for this import pass

        Returns:
            Row with typed fields and a fresh temporary id
        """
        values = {}
        for field_name in self.TEXT_FIELDS:
            values[field_name] = to_text(record.get(field_name))
        for field_name in self.NUMBER_FIELDS:
            values[field_name] = to_number(record.get(field_name))

        qty_uom = self.unit_normalizer.normalize_unit(record.get(FieldTag.QTY_UOM))

        # Gram per each columns are stored in kg; an explicit kg column wins
        mass_per_ea_g = to_number(record.get(FieldTag.MASS_PER_EA_G))
        if values[FieldTag.MASS_PER_EA_KG] is None and mass_per_ea_g is not None:
            values[FieldTag.MASS_PER_EA_KG] = self.unit_normalizer.to_kg(mass_per_ea_g, QuantityUnit.G)

        row = Row(
            tmp_id=new_id(),
            treetable_id=treetable_id,
            qty_uom=qty_uom,
            **values
        )

        # Legacy sheets carry a single weight column: read it as one unit of that mass
        if (
            row.weight is not None
            and row.qty is None
            and row.qty_uom is None
            and row.mass_per_ea_kg is None
        ):
            row.qty = 1.0
            row.qty_uom = QuantityUnit.EACH
            row.mass_per_ea_kg = row.weight
            logger.debug(f"Row {row.line_no!r}: legacy weight {row.weight} read as 1 ea")

        return row

    def normalize(
        self,
        records: List[Dict[str, Any]],
        treetable_id: Optional[str] = None,
        new_id: Optional[Callable[[], str]] = None
    ) -> List[Row]:
        """Normalize a batch of column-mapped records.

        A new TempIdGenerator is used for every call unless one is passed in.
        """
        new_id = new_id or TempIdGenerator()
        return [self.normalize_record(record, treetable_id, new_id) for record in records]

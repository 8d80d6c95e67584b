from typing import List, Dict, Any, Optional
import re
import unicodedata

from .schema import COLUMN_MAPPINGS, COLUMN_PATTERNS, CANONICAL_FIELDS


def normalize_header(column_name: Any) -> str:
    """Normalize header text for matching.

    Applies NFKC (full-width characters, compatibility forms), lowercases,
    and collapses whitespace, underscores and hyphens into single spaces.
    """
    if column_name is None:
        return ""
    text = unicodedata.normalize("NFKC", str(column_name))
    return re.sub(r'[\s_\-]+', ' ', text.lower()).strip()


class ColumnMapper:
    """Maps free text spreadsheet headers to canonical tree BOM fields.

    Matching is best effort: a header that matches nothing is ignored,
    never reported as an error.
    """

    def __init__(self):
        """Initialize the mapper with alias and pattern tables."""
        # Forward lookup: normalized alias -> canonical field
        self._alias_to_field = {}
        for field_name, aliases in COLUMN_MAPPINGS.items():
            for alias in aliases:
                self._alias_to_field[normalize_header(alias)] = field_name

        self._patterns = [
            (field_name, re.compile(pattern))
            for field_name, pattern in COLUMN_PATTERNS
        ]

    def get_canonical_fields(self) -> List[str]:
        """Get the canonical field names in display order."""
        return CANONICAL_FIELDS.copy()

    def map_header(self, column_name: Any) -> Optional[str]:
        """Map a header to its canonical field.

        Args:
            column_name: The original header text from the sheet

        Returns:
            Canonical field name if a match is found, None otherwise
        """
        normalized_input = normalize_header(column_name)
        if not normalized_input:
            return None

        # Direct lookup
        if normalized_input in self._alias_to_field:
            return self._alias_to_field[normalized_input]

        # Ordered pattern search (first pattern wins)
        for field_name, pattern in self._patterns:
            if pattern.search(normalized_input):
                return field_name

        return None

    def map_record(self, record: Dict[Any, Any]) -> Dict[str, Any]:
        """Re-key a raw record by canonical field, dropping unmapped columns.

        When several headers map to the same field, the last one wins.

        Args:
            record: Dictionary of header -> cell value

        Returns:
            Dictionary of canonical field -> cell value
        """
        mapped = {}
        for original_key, value in record.items():
            field_name = self.map_header(original_key)
            if field_name:
                mapped[field_name] = value
        return mapped

    def map_records(self, records: List[Dict[Any, Any]]) -> List[Dict[str, Any]]:
        return [self.map_record(record) for record in records]

    def get_mapping_report(self, records: List[Dict[Any, Any]]) -> Dict[str, Any]:
        """Generate a report of header mappings for debugging.

        Args:
            records: List of raw records

        Returns:
            Dictionary with mapped (field -> headers) and unmapped headers
        """
        if not records:
            return {"mapped": {}, "unmapped": []}

        # Unique headers in first-seen order
        all_columns = []
        for record in records:
            for column in record.keys():
                if column not in all_columns:
                    all_columns.append(column)

        mapped = {}
        unmapped = []

        for column in all_columns:
            if column is None:
                continue
            field_name = self.map_header(column)
            if field_name:
                mapped.setdefault(field_name, []).append(column)
            else:
                unmapped.append(column)

        return {
            "mapped": mapped,
            "unmapped": unmapped,
            "canonical_fields": CANONICAL_FIELDS
        }

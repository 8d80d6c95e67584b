import csv
import io
import logging
from pathlib import Path
from typing import List, Dict, Any, Optional

import chardet

logger = logging.getLogger(__name__)


class CsvAdapter:
    """CSV adapter for tree BOM sheets saved as CSV or TSV.

    Handles:
    - Multiple encodings (UTF-8, UTF-8-BOM, CP949/EUC-KR exports, Windows-1252)
    - Different delimiters (comma, semicolon, tab)
    - Empty cells, which are returned as None like empty Excel cells
    """

    FALLBACK_ENCODINGS = ['cp949', 'latin-1']

    def can_handle(self, file_path: str) -> bool:
        """Check if this adapter can handle the given file."""
        return Path(file_path).suffix.lower() in [".csv", ".tsv"]

    def _detect_encoding(self, raw_data: bytes) -> str:
        """Detect encoding from the first bytes of the file using chardet."""
        if raw_data.startswith(b'\xef\xbb\xbf'):
            return 'utf-8-sig'

        result = chardet.detect(raw_data)
        encoding = result.get('encoding') or 'utf-8'

        # ASCII is a subset of UTF-8; prefer the wider codec
        if encoding.lower() in ('ascii', 'utf-8', 'utf8'):
            return 'utf-8'
        return encoding

    def _detect_delimiter(self, sample: str, suffix: str) -> str:
        """Pick the delimiter by sniffing, falling back to first-line counts."""
        if suffix == '.tsv':
            return '\t'

        try:
            return csv.Sniffer().sniff(sample, delimiters=',;\t').delimiter
        except csv.Error:
            first_line = sample.splitlines()[0] if sample else ''
            counts = {d: first_line.count(d) for d in (',', ';', '\t')}
            return max(counts, key=counts.get) if any(counts.values()) else ','

    def _decode(self, raw_data: bytes, encoding: str) -> str:
        try:
            return raw_data.decode(encoding)
        except (UnicodeDecodeError, LookupError):
            for fallback_encoding in self.FALLBACK_ENCODINGS:
                try:
                    logger.debug(f"Decoding with {encoding} failed, trying {fallback_encoding}")
                    return raw_data.decode(fallback_encoding)
                except UnicodeDecodeError:
                    continue
        raise ValueError(f"Could not decode CSV data with {encoding}")

    def read(self, file_path: str) -> List[Dict[str, Any]]:
        """Read a CSV file and return raw records keyed by header.

        Args:
            file_path: Path to the CSV/TSV file

        Returns:
            List of dictionaries, one per data row; empty cells are None

        Raises:
            FileNotFoundError: If file doesn't exist
            ValueError: If the file cannot be decoded or parsed
        """
        path = Path(file_path)
        if not path.exists():
            raise FileNotFoundError(f"File not found: {file_path}")

        raw_data = path.read_bytes()
        if not raw_data:
            return []

        text = self._decode(raw_data, self._detect_encoding(raw_data[:10000]))
        return self.read_text(text, suffix=path.suffix.lower())

    def read_text(self, text: str, suffix: Optional[str] = None) -> List[Dict[str, Any]]:
        """Parse already decoded CSV text."""
        if text.startswith('\ufeff'):
            text = text[1:]
        if not text.strip():
            return []

        delimiter = self._detect_delimiter(text[:2048], suffix or '.csv')

        try:
            reader = csv.DictReader(io.StringIO(text), delimiter=delimiter)
            rows = []
            for row in reader:
                cleaned_row = {
                    key.strip(): (value.strip() or None) if isinstance(value, str) else None
                    for key, value in row.items()
                    if key is not None and key.strip()
                }
                if any(value is not None for value in cleaned_row.values()):
                    rows.append(cleaned_row)
            return rows
        except csv.Error as e:
            raise ValueError(f"Error parsing CSV data: {e}")

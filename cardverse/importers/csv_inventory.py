"""Generic CSV inventory importer.

Works with Moxfield, Deckbox, Archidekt and hand-made spreadsheets: the
name/quantity/set/foil columns are found with detect_columns() instead of
being hard-coded per site.
"""

import csv
from typing import Any, Dict, List, Optional, Tuple

from cardverse.db.columns import ColumnMap, detect_columns
from cardverse.importers.base import BaseImporter
from cardverse.utils import parse_bool


def sniff_dialect(sample: str):
    """Sniff a CSV dialect, preferring ';' when it dominates the sample."""
    if ";" in sample and sample.count(";") > sample.count(","):
        return csv.Sniffer().sniff(sample, delimiters=";,")
    return csv.Sniffer().sniff(sample, delimiters=",;\t")


class CsvImporter(BaseImporter):
    """Import from any CSV with recognisable column headers."""

    def __init__(self):
        super().__init__()
        self.columns: Optional[ColumnMap] = None

    @property
    def format_name(self) -> str:
        return "CSV"

    def parse_file(self, file_path: str) -> List[Dict[str, Any]]:
        """Parse a CSV file and detect its columns.

        Raises:
            ColumnDetectionError: if no card name column can be found
        """
        with open(file_path, "r", encoding="utf-8-sig", newline="") as f:
            sample = f.read(4096)
            f.seek(0)
            try:
                dialect = sniff_dialect(sample)
            except csv.Error:
                dialect = csv.excel

            reader = csv.DictReader(f, dialect=dialect)
            self.columns = detect_columns(reader.fieldnames or [], required=("name",))
            return list(reader)

    def _value(self, row: Dict[str, Any], canonical: str) -> str:
        column = self.columns.get(canonical) if self.columns else None
        if column is None:
            return ""
        return (row.get(column) or "").strip()

    def row_to_lookup(self, row: Dict[str, Any]) -> Tuple[Optional[str], Optional[str], Optional[str], int]:
        """Convert a CSV row to lookup parameters."""
        name = self._value(row, "name")
        set_code = self._value(row, "set_code") or None
        collector_number = self._value(row, "collector_number") or None

        quantity_str = self._value(row, "quantity")
        try:
            quantity = int(quantity_str) if quantity_str else 1
        except ValueError:
            quantity = 1

        return name, set_code, collector_number, quantity

    def row_is_foil(self, row: Dict[str, Any]) -> bool:
        return parse_bool(self._value(row, "foil"))

"""Importers for deck lists and inventory files."""

import csv

from cardverse.db.columns import ColumnDetectionError, detect_columns
from cardverse.importers.base import BaseImporter, ImportResult
from cardverse.importers.csv_inventory import CsvImporter, sniff_dialect
from cardverse.importers.decklist import DecklistImporter, parse_decklist

IMPORTERS = {
    "csv": CsvImporter,
    "decklist": DecklistImporter,
}


def get_importer(format_name: str) -> BaseImporter:
    """Get an importer by format name."""
    importer_class = IMPORTERS.get(format_name.lower())
    if not importer_class:
        raise ValueError(f"Unknown import format: {format_name}. Available: {', '.join(IMPORTERS.keys())}")
    return importer_class()


def detect_format(file_path: str) -> str:
    """
    Auto-detect the format of an import file (CSV or text deck list).

    A file is CSV when its first line sniffs as delimited and its header row
    has a recognisable card name column; anything else is a deck list.
    """
    with open(file_path, "r", encoding="utf-8-sig") as f:
        sample = f.read(4096)

    lines = sample.splitlines()
    first = lines[0] if lines else ""
    # Deck list lines start with a count ("1 Atraxa, Praetors' Voice")
    if first[:1].isdigit() or not any(d in first for d in (",", ";", "\t")):
        return "decklist"

    try:
        dialect = sniff_dialect(sample)
    except csv.Error:
        return "decklist"

    headers = next(csv.reader([first], dialect), [])
    try:
        detect_columns(headers, required=("name",))
    except ColumnDetectionError:
        return "decklist"
    return "csv"


__all__ = [
    "BaseImporter",
    "ImportResult",
    "CsvImporter",
    "DecklistImporter",
    "parse_decklist",
    "get_importer",
    "detect_format",
    "IMPORTERS",
]

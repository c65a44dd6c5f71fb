"""Text deck list parsing and importer.

Handles the formats people paste from deck sites and clients:

    Commander:
    1 Atraxa, Praetors' Voice
    Deck:
    1x Sol Ring (CMR) 472 *F*
    35 Forest
    Sideboard (2):
    2 Negate
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from cardverse.importers.base import BaseImporter
from cardverse.utils import parse_bool

log = logging.getLogger(__name__)

# Header text (lower-cased) -> canonical section
SECTION_ALIASES = {
    "main": "main",
    "maindeck": "main",
    "main deck": "main",
    "mainboard": "main",
    "deck": "main",
    "commander": "commander",
    "commanders": "commander",
    "cmdr": "commander",
    "companion": "companion",
    "sideboard": "sideboard",
    "side": "sideboard",
    "sb": "sideboard",
    "maybeboard": "maybeboard",
    "maybe": "maybeboard",
    "considering": "maybeboard",
    "stickers": "stickers",
    "tokens": "tokens",
    "attractions": "attractions",
}

# Sections that count towards the playable deck
MAIN_SECTIONS = ("main", "commander", "companion")

_COUNT_RE = re.compile(r"^(\d+)x?\s+(.*)$", re.IGNORECASE)
_PREFIX_RE = re.compile(r"^([A-Za-z][A-Za-z ]*?)\s*:\s*(.+)$")
_SET_RE = re.compile(r"^(.*?)\s+\(([A-Za-z0-9]{2,6})\)(?:\s+(\S+))?$")
_TAGS_RE = re.compile(r"^(.*?)\s*\[([^\]]*)\]$")
_FLAG_RE = re.compile(r"^(.*?)\s*(\*[A-Za-z]+\*)$")
# Card counts on headers: "Sideboard (15):"
_HEADER_COUNT_RE = re.compile(r"\s*\(\d+\)$")


@dataclass
class DeckEntry:
    """One (merged) card line of a deck list."""
    name: str
    count: int
    section: str = "main"
    set_code: Optional[str] = None
    collector_number: Optional[str] = None
    foil: bool = False
    commander: bool = False
    line_number: int = 0


@dataclass
class ParsedDeck:
    """Result of parse_decklist(): entries in first-seen order plus warnings."""
    entries: List[DeckEntry] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def main_entries(self) -> List[DeckEntry]:
        return [e for e in self.entries if e.section in MAIN_SECTIONS]

    def commander_entries(self) -> List[DeckEntry]:
        return [e for e in self.entries if e.section == "commander" or e.commander]

    def section(self, name: str) -> List[DeckEntry]:
        return [e for e in self.entries if e.section == name]

    def total_cards(self) -> int:
        """Copies in the playable deck (main, commander and companion)."""
        return sum(e.count for e in self.main_entries())

    def names(self) -> List[str]:
        return [e.name for e in self.entries]


def _section_for(header: str) -> Optional[str]:
    header = _HEADER_COUNT_RE.sub("", header.strip())
    return SECTION_ALIASES.get(header.lower())


def _split_card_text(text: str) -> Tuple[str, Optional[str], Optional[str], bool, bool]:
    """Strip trailing tags/flags/set info from a card name.

    Returns (name, set_code, collector_number, foil, commander).
    """
    foil = False
    commander = False

    m = _TAGS_RE.match(text)
    if m:
        text = m.group(1)
        # Archidekt tags look like "[Commander{top}]" or "[Ramp,Draw]"
        tags = [t.split("{")[0].strip().lower() for t in m.group(2).split(",")]
        commander = "commander" in tags

    while True:
        m = _FLAG_RE.match(text)
        if not m:
            break
        text = m.group(1)
        flag = m.group(2).upper()
        if flag in ("*F*", "*E*"):
            foil = True
        elif flag == "*CMDR*":
            commander = True

    set_code = None
    collector_number = None
    m = _SET_RE.match(text)
    if m:
        text, set_code, collector_number = m.group(1), m.group(2).upper(), m.group(3)

    return text.strip(), set_code, collector_number, foil, commander


def parse_decklist(text: str) -> ParsedDeck:
    """
    Parse a free-text deck list.

    Never raises on bad lines: zero counts and empty names are skipped and
    reported in ParsedDeck.warnings. Duplicate cards within a section are
    merged by summing counts, keeping the first line's position.
    """
    deck = ParsedDeck()
    merged: Dict[Tuple[str, str], DeckEntry] = {}
    current = "main"

    for line_number, raw in enumerate(re.split(r"\r?\n", text or ""), start=1):
        line = raw.strip()
        if not line:
            continue

        # Comments; "//Sideboard" style comments double as headers
        if line.startswith("#") or line.startswith("//"):
            section = _section_for(line.lstrip("#/ ").rstrip(":"))
            if section:
                current = section
            continue

        if line.endswith(":"):
            header = line[:-1].strip()
            section = _section_for(header)
            if section:
                current = section
            else:
                # Type groupings like "Creatures (30):" keep the current section
                log.debug("Ignoring header on line %d: %s", line_number, header)
            continue

        section = _section_for(line)
        if section:
            current = section
            continue

        target = current
        m = _PREFIX_RE.match(line)
        if m and _section_for(m.group(1)):
            target = _section_for(m.group(1))
            line = m.group(2).strip()
        # Otherwise a colon is part of the name ("Circle of Protection: Red")

        m = _COUNT_RE.match(line)
        if m:
            count = int(m.group(1))
            card_text = m.group(2).strip()
        else:
            count = 1
            card_text = line

        name, set_code, collector_number, foil, commander = _split_card_text(card_text)

        if not name:
            deck.warnings.append(f"Skipping empty or invalid card name at line {line_number}: {raw.strip()!r}")
            continue
        if count < 1:
            deck.warnings.append(f"Skipping zero-count line {line_number}: {raw.strip()!r}")
            continue

        key = (name.lower(), target)
        existing = merged.get(key)
        if existing:
            existing.count += count
            existing.foil = existing.foil or foil
            existing.commander = existing.commander or commander
            continue

        entry = DeckEntry(
            name=name,
            count=count,
            section=target,
            set_code=set_code,
            collector_number=collector_number,
            foil=foil,
            commander=commander,
            line_number=line_number,
        )
        merged[key] = entry
        deck.entries.append(entry)

    for warning in deck.warnings:
        log.warning(warning)

    return deck


class DecklistImporter(BaseImporter):
    """Import from text deck list format (Moxfield/Arena/MTGO export, pasted lists)."""

    # Physical cards; maybeboard/tokens/stickers are not owned copies
    INVENTORY_SECTIONS = ("main", "commander", "companion", "sideboard")

    @property
    def format_name(self) -> str:
        return "Decklist"

    def parse_file(self, file_path: str) -> List[Dict[str, Any]]:
        """Parse a text deck list file into importer rows."""
        with open(file_path, "r", encoding="utf-8") as f:
            deck = parse_decklist(f.read())

        self.warnings = list(deck.warnings)
        return [
            {
                "Count": str(e.count),
                "Name": e.name,
                "Edition": e.set_code or "",
                "Collector Number": e.collector_number or "",
                "Foil": "foil" if e.foil else "",
                "Section": e.section,
            }
            for e in deck.entries
            if e.section in self.INVENTORY_SECTIONS
        ]

    def row_to_lookup(self, row: Dict[str, Any]) -> Tuple[Optional[str], Optional[str], Optional[str], int]:
        """Convert deck list row to lookup parameters."""
        name = row.get("Name", "").strip()
        set_code = row.get("Edition", "").strip() or None
        collector_number = row.get("Collector Number", "").strip() or None

        try:
            quantity = int(row.get("Count", 1))
        except (ValueError, TypeError):
            quantity = 1

        return name, set_code, collector_number, quantity

    def row_is_foil(self, row: Dict[str, Any]) -> bool:
        return parse_bool(row.get("Foil"))

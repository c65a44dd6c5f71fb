"""Base importer interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from cardverse.db.models import VariantFlags
from cardverse.services.reconcile import ReconcileItem
from cardverse.services.scryfall import DEFAULT_FETCH_WORKERS, CardLookup


@dataclass
class ImportResult:
    """Result of an import operation."""

    total_rows: int = 0
    cards_added: int = 0
    cards_skipped: int = 0
    rows_inserted: int = 0
    rows_updated: int = 0
    errors: List[str] = None

    def __post_init__(self):
        if self.errors is None:
            self.errors = []


class BaseImporter(ABC):
    """Abstract base class for inventory importers.

    Subclasses turn a file into rows; import_file() resolves the rows against
    Scryfall in one batch and merges them into inventory.
    """

    def __init__(self):
        # Parse problems from the last parse_file(), reported with the results
        self.warnings: List[str] = []

    @property
    @abstractmethod
    def format_name(self) -> str:
        """Human-readable format name."""
        pass

    @abstractmethod
    def parse_file(self, file_path: str) -> List[Dict[str, Any]]:
        """
        Parse the import file and return raw row data.

        Args:
            file_path: Path to import file

        Returns:
            List of dicts, one per row
        """
        pass

    @abstractmethod
    def row_to_lookup(self, row: Dict[str, Any]) -> Tuple[Optional[str], Optional[str], Optional[str], int]:
        """
        Convert a row to Scryfall lookup parameters.

        Args:
            row: Parsed row dict

        Returns:
            Tuple of (card_name, set_code, collector_number, quantity)
        """
        pass

    def row_is_foil(self, row: Dict[str, Any]) -> bool:
        return False

    def import_file(
        self,
        file_path: str,
        api,
        reconciler,
        workers: int = DEFAULT_FETCH_WORKERS,
    ) -> ImportResult:
        """
        Import a file into the inventory.

        Args:
            file_path: Path to import file
            api: ScryfallAPI used to resolve cards
            reconciler: InventoryReconciler that merges rows (honours its dry_run)
            workers: Concurrent Scryfall lookups

        Returns:
            ImportResult with statistics
        """
        result = ImportResult()

        rows = self.parse_file(file_path)
        result.total_rows = len(rows)
        result.errors.extend(self.warnings)

        pending = []
        for row in rows:
            try:
                name, set_code, collector_number, quantity = self.row_to_lookup(row)
            except (ValueError, KeyError, TypeError) as e:
                result.errors.append(f"Error processing row: {e}")
                result.cards_skipped += 1
                continue

            if not name:
                result.cards_skipped += 1
                continue
            if quantity < 1:
                result.errors.append(f"Invalid quantity {quantity} for {name}")
                result.cards_skipped += 1
                continue

            lookup = CardLookup(
                name=name,
                set_code=set_code,
                collector_number=collector_number,
                key=f"{name}|{set_code or ''}|{collector_number or ''}".lower(),
            )
            pending.append((lookup, quantity, self.row_is_foil(row)))

        fetched = api.fetch_cards([lk for lk, _, _ in pending], workers=workers)
        result.errors.extend(fetched.logs)

        items = []
        for lookup, quantity, foil in pending:
            card = fetched.cards.get(lookup.key)
            if card is None:
                result.cards_skipped += 1
                continue
            items.append(ReconcileItem(card=card, count=quantity, flags=VariantFlags(foil=foil)))

        reconciled = reconciler.reconcile(items)
        result.rows_inserted = reconciled.inserted
        result.rows_updated = reconciled.updated
        result.cards_added = reconciled.copies
        result.cards_skipped += reconciled.skipped
        result.errors.extend(reconciled.errors)

        return result

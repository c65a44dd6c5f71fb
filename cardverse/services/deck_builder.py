"""Deck list import pipeline: parse, fetch, detect commander, group, save."""

import logging
import sqlite3
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import requests

from cardverse.db.models import CatalogRepository, Deck, DeckRepository, VariantFlags
from cardverse.importers.decklist import DeckEntry, ParsedDeck, parse_decklist
from cardverse.services.commander import (
    CommanderDetection,
    deck_color_identity,
    detect_commander,
    detect_format,
)
from cardverse.services.discord import DiscordWebhookError
from cardverse.services.reconcile import InventoryReconciler, ReconcileItem, ReconcileResult
from cardverse.services.scryfall import DEFAULT_FETCH_WORKERS, CardLookup, cache_card_data
from cardverse.utils import CATEGORY_ORDER, OTHER_CATEGORY, primary_category

log = logging.getLogger(__name__)

EMPTY_DECK_MESSAGE = "Please enter a deck list first."


@dataclass
class CategorizedCard:
    entry: DeckEntry
    card: Optional[Dict]

    @property
    def name(self) -> str:
        return self.card["name"] if self.card else self.entry.name

    @property
    def count(self) -> int:
        return self.entry.count


def categorize_cards(entries: List[DeckEntry], cards: Dict[str, Optional[Dict]]) -> "OrderedDict[str, List[CategorizedCard]]":
    """
    Group entries by card type.

    Buckets come in a fixed order (Creature, Instant, Sorcery, Enchantment,
    Artifact, Planeswalker, Land, Other); the first type found in the type
    line wins. Cards that were not resolved go to Other.
    """
    categories: "OrderedDict[str, List[CategorizedCard]]" = OrderedDict(
        (name, []) for name in CATEGORY_ORDER + [OTHER_CATEGORY]
    )
    for entry in entries:
        card = cards.get(entry.name)
        type_line = card.get("type_line") if card else None
        if card and not type_line:
            type_line = (card.get("card_faces") or [{}])[0].get("type_line")
        categories[primary_category(type_line)].append(CategorizedCard(entry=entry, card=card))
    return categories


@dataclass
class DeckImportResult:
    """Everything run() learned about a pasted deck list."""
    title: str
    deck: ParsedDeck
    cards: Dict[str, Optional[Dict]]
    commander: CommanderDetection
    color_identity: str
    mtg_type: str
    categories: "OrderedDict[str, List[CategorizedCard]]"
    logs: List[str] = field(default_factory=list)

    @property
    def total_cards(self) -> int:
        return self.deck.total_cards()

    @property
    def missing(self) -> List[str]:
        return [e.name for e in self.deck.entries if self.cards.get(e.name) is None]

    def found_cards(self) -> List[Dict]:
        """Resolved card JSON, one per deck entry, in deck order."""
        seen = set()
        found = []
        for e in self.deck.entries:
            card = self.cards.get(e.name)
            if card is not None and e.name not in seen:
                seen.add(e.name)
                found.append(card)
        return found

    def canonical_name(self, name: str) -> str:
        card = self.cards.get(name)
        return card["name"] if card else name

    @property
    def commander_name(self) -> Optional[str]:
        if not self.commander:
            return None
        return " + ".join(self.canonical_name(n) for n in self.commander.names)

    def decklist(self) -> List[Dict]:
        return [
            {"name": self.canonical_name(e.name), "count": e.count, "section": e.section}
            for e in self.deck.entries
        ]


class DeckImporter:
    """Runs the deck list import pipeline against Scryfall."""

    def __init__(self, api, workers: int = DEFAULT_FETCH_WORKERS, notifier=None, fuzzy: bool = True):
        self.api = api
        self.workers = workers
        self.notifier = notifier
        self.fuzzy = fuzzy

    def run(self, text: str, title: Optional[str] = None) -> DeckImportResult:
        """
        Parse and resolve a deck list.

        Raises:
            ValueError: if the text is empty
        """
        if not text or not text.strip():
            raise ValueError(EMPTY_DECK_MESSAGE)

        deck = parse_decklist(text)
        logs = list(deck.warnings)

        lookups = [CardLookup(name=e.name, set_code=e.set_code, collector_number=e.collector_number)
                   for e in deck.entries]
        fetched = self.api.fetch_cards(lookups, workers=self.workers, fuzzy_fallback=self.fuzzy)
        logs.extend(fetched.logs)
        cards = fetched.cards

        detection = detect_commander(deck, cards)
        identity_names = detection.names or [e.name for e in deck.main_entries()]
        result = DeckImportResult(
            title=title or "",
            deck=deck,
            cards=cards,
            commander=detection,
            color_identity=deck_color_identity(identity_names, cards),
            mtg_type=detect_format(deck.total_cards(), bool(detection)),
            categories=categorize_cards(deck.main_entries(), cards),
            logs=logs,
        )
        if not result.title:
            result.title = f"{result.commander_name} Deck" if detection else "Imported Deck"

        log.info("Imported %s: %d cards, %d missing, commander via %s",
                 result.title, result.total_cards, len(result.missing), detection.method)

        if self.notifier is not None:
            self._notify(result)

        return result

    def _notify(self, result: DeckImportResult) -> None:
        try:
            self.notifier.send_cards(result.found_cards())
        except (DiscordWebhookError, requests.exceptions.RequestException) as e:
            msg = f"Discord notification failed: {e}"
            log.warning(msg)
            result.logs.append(msg)

    def save(self, result: DeckImportResult, conn: sqlite3.Connection, user_id: str, is_public: bool = False) -> int:
        """Cache the resolved cards and store the deck. Returns the deck ID."""
        catalog = CatalogRepository(conn)
        for card in result.found_cards():
            cache_card_data(catalog, card)

        deck = Deck(
            id=None,
            user_id=user_id,
            title=result.title,
            cards=result.decklist(),
            commander_name=result.commander_name,
            color_identity=result.color_identity,
            mtg_type=result.mtg_type,
            is_public=is_public,
        )
        deck_id = DeckRepository(conn).add(deck)
        conn.commit()
        return deck_id

    def add_to_inventory(self, result: DeckImportResult, reconciler: InventoryReconciler) -> ReconcileResult:
        """Merge the deck's resolved main-deck cards into inventory."""
        items = [
            ReconcileItem(card=result.cards[e.name], count=e.count, flags=VariantFlags(foil=e.foil))
            for e in result.deck.main_entries()
            if result.cards.get(e.name) is not None
        ]
        return reconciler.reconcile(items)

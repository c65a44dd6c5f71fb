"""Shared fixtures: in-memory database and Scryfall-shaped card dicts."""

import sqlite3

import pytest

from cardverse.db.schema import init_db
from cardverse.services.scryfall import CardLookup, FetchResult


@pytest.fixture
def conn():
    """In-memory database with the full schema."""
    conn = sqlite3.connect(":memory:")
    conn.row_factory = sqlite3.Row
    init_db(conn)
    yield conn
    conn.close()


def _card(name, type_line="Creature — Elf", colors=None, color_identity=None, **extra):
    colors = ["G"] if colors is None else colors
    card = {
        "object": "card",
        "id": f"id-{name.lower().replace(' ', '-')}",
        "name": name,
        "type_line": type_line,
        "colors": colors,
        "color_identity": list(colors) if color_identity is None else color_identity,
        "mana_cost": "",
        "cmc": 2.0,
        "oracle_text": "",
        "rarity": "common",
        "set": "tst",
        "set_name": "Test Set",
        "collector_number": "1",
        "scryfall_uri": f"https://scryfall.com/card/tst/1/{name.lower().replace(' ', '-')}",
        "image_uris": {"small": f"https://img/{name}/small.jpg", "normal": f"https://img/{name}/normal.jpg"},
        "prices": {"usd": "0.25"},
        "keywords": [],
    }
    card.update(extra)
    return card


@pytest.fixture
def make_card():
    """Factory for Scryfall card JSON."""
    return _card


class FakeScryfall:
    """Stands in for ScryfallAPI.fetch_cards with a fixed name -> card table."""

    def __init__(self, cards):
        self.cards = {c["name"].lower(): c for c in cards}
        self.calls = []

    def fetch_cards(self, lookups, workers=5, fuzzy_fallback=True):
        self.calls.append({"lookups": list(lookups), "workers": workers})
        result = FetchResult()
        for lookup in self.calls[-1]["lookups"]:
            if isinstance(lookup, str):
                lookup = CardLookup(name=lookup)
            card = self.cards.get(lookup.name.lower())
            result.cards[lookup.key] = card
            if card is None:
                result.logs.append(f'Card not found: "{lookup.name}"')
        return result


@pytest.fixture
def fake_api():
    """Factory: fake_api([card, ...]) -> FakeScryfall."""
    return FakeScryfall

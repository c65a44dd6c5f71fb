"""
Tests for the Scryfall client: batch fetch, search query building and card
helpers. HTTP is replaced with a fake session; no network access.

To run: pytest tests/test_scryfall.py -v
"""

import threading
import time
from unittest.mock import MagicMock

import pytest
import requests

from cardverse.db.models import VariantFlags
from cardverse.services.scryfall import (
    CardLookup,
    ScryfallAPI,
    build_search_query,
    card_colors,
    card_image_urls,
    print_matches_flags,
    to_catalog_card,
)


class FakeResponse:
    def __init__(self, status_code=200, data=None):
        self.status_code = status_code
        self._data = data if data is not None else {}

    @property
    def ok(self):
        return 200 <= self.status_code < 300

    def json(self):
        return self._data

    def raise_for_status(self):
        if not self.ok:
            raise requests.exceptions.HTTPError(f"HTTP {self.status_code}")


class FakeSession:
    """requests.Session stand-in answering /cards/named from a dict."""

    def __init__(self, cards=None, delay=0.0):
        self.headers = {}
        self.cards = {c["name"].lower(): c for c in (cards or [])}
        self.delay = delay
        self.requests = []
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def request(self, method, url, params=None, **kwargs):
        with self._lock:
            self.requests.append((url, dict(params or {})))
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                time.sleep(self.delay)
            return self._answer(url, params or {})
        finally:
            with self._lock:
                self.active -= 1

    def _answer(self, url, params):
        if url.endswith("/cards/named"):
            if "exact" in params:
                card = self.cards.get(params["exact"].lower())
            else:
                query = params["fuzzy"].lower().replace(" ", "")
                card = next((c for n, c in self.cards.items() if n.replace(" ", "").startswith(query[:5])), None)
            if params.get("set") and card and card.get("set") != params["set"]:
                card = None
            if card is None:
                return FakeResponse(404, {"object": "error", "code": "not_found"})
            return FakeResponse(200, card)
        return FakeResponse(404, {"object": "error"})


@pytest.fixture
def api_with(monkeypatch):
    """Factory: api_with(cards, delay) -> (ScryfallAPI, FakeSession) without rate-limit sleeps."""
    monkeypatch.setattr(ScryfallAPI, "MIN_INTERVAL", 0.0)

    def _make(cards=None, delay=0.0):
        session = FakeSession(cards, delay)
        return ScryfallAPI(session=session), session

    return _make


# =============================================================================
# get_card_named
# =============================================================================

class TestGetCardNamed:
    def test_found(self, api_with, make_card):
        api, session = api_with([make_card("Sol Ring")])
        card, error = api.get_card_named("Sol Ring")
        assert card["name"] == "Sol Ring"
        assert error is None
        assert session.requests[0][1] == {"exact": "Sol Ring"}

    def test_not_found(self, api_with):
        api, _ = api_with([])
        assert api.get_card_named("Nope") == (None, None)

    def test_set_param_lowercased(self, api_with, make_card):
        api, session = api_with([make_card("Sol Ring")])
        api.get_card_named("Sol Ring", set_code="TST")
        assert session.requests[0][1]["set"] == "tst"

    def test_server_error_reported(self, make_card, monkeypatch):
        monkeypatch.setattr(ScryfallAPI, "MIN_INTERVAL", 0.0)
        session = MagicMock()
        session.headers = {}
        session.request.return_value = FakeResponse(500, {"object": "error"})
        card, error = ScryfallAPI(session=session).get_card_named("Sol Ring")
        assert card is None
        assert error == "HTTP 500"

    def test_connection_error_reported(self, monkeypatch):
        monkeypatch.setattr(ScryfallAPI, "MIN_INTERVAL", 0.0)
        session = MagicMock()
        session.headers = {}
        session.request.side_effect = requests.exceptions.ConnectionError("boom")
        card, error = ScryfallAPI(session=session).get_card_named("Sol Ring")
        assert card is None
        assert "boom" in error

    def test_retries_on_429(self, make_card, monkeypatch):
        monkeypatch.setattr(ScryfallAPI, "MIN_INTERVAL", 0.0)
        monkeypatch.setattr("cardverse.services.scryfall.time.sleep", lambda s: None)
        session = MagicMock()
        session.headers = {}
        session.request.side_effect = [FakeResponse(429), FakeResponse(200, make_card("Sol Ring"))]
        card, error = ScryfallAPI(session=session).get_card_named("Sol Ring")
        assert card["name"] == "Sol Ring"
        assert session.request.call_count == 2


# =============================================================================
# fetch_cards
# =============================================================================

class TestFetchCards:
    def test_results_in_input_order(self, api_with, make_card):
        names = [f"Card {i}" for i in range(12)]
        api, _ = api_with([make_card(n) for n in names], delay=0.01)
        result = api.fetch_cards(list(reversed(names)))
        assert list(result.cards.keys()) == list(reversed(names))
        assert all(result.cards[n]["name"] == n for n in names)
        assert result.logs == []

    def test_not_found_logged_and_stored_as_none(self, api_with, make_card):
        api, _ = api_with([make_card("Sol Ring")])
        result = api.fetch_cards(["Sol Ring", "Zzzz Qqqq"], fuzzy_fallback=False)
        assert result.cards["Zzzz Qqqq"] is None
        assert result.logs == ['Card not found: "Zzzz Qqqq"']
        assert result.missing() == ["Zzzz Qqqq"]
        assert list(result.found()) == ["Sol Ring"]

    def test_fetch_error_logged(self, monkeypatch):
        monkeypatch.setattr(ScryfallAPI, "MIN_INTERVAL", 0.0)
        session = MagicMock()
        session.headers = {}
        session.request.side_effect = requests.exceptions.Timeout("slow")
        result = ScryfallAPI(session=session).fetch_cards(["Sol Ring"])
        assert result.cards == {"Sol Ring": None}
        assert result.logs[0].startswith('Fetch error for "Sol Ring":')

    def test_fuzzy_fallback(self, api_with, make_card):
        api, _ = api_with([make_card("Llanowar Elves")])
        result = api.fetch_cards(["Llanowar Elfs"])
        assert result.cards["Llanowar Elfs"]["name"] == "Llanowar Elves"
        assert result.logs == ["Fuzzy match: 'Llanowar Elfs' -> 'Llanowar Elves'"]

    def test_set_miss_retries_without_set(self, api_with, make_card):
        api, session = api_with([make_card("Sol Ring")])
        result = api.fetch_cards([CardLookup(name="Sol Ring", set_code="CMR")])
        assert result.cards["Sol Ring"]["name"] == "Sol Ring"
        assert [p.get("set") for _, p in session.requests] == ["cmr", None]

    def test_duplicate_keys_fetched_once(self, api_with, make_card):
        api, session = api_with([make_card("Sol Ring")])
        api.fetch_cards(["Sol Ring", "Sol Ring", CardLookup(name="Sol Ring")])
        assert len(session.requests) == 1

    def test_empty_name_skipped(self, api_with):
        api, session = api_with([])
        result = api.fetch_cards([CardLookup(name="  ", key="blank")])
        assert result.cards == {"blank": None}
        assert "empty or invalid" in result.logs[0]
        assert session.requests == []

    def test_worker_pool_is_bounded(self, api_with, make_card):
        names = [f"Card {i}" for i in range(20)]
        api, session = api_with([make_card(n) for n in names], delay=0.02)
        api.fetch_cards(names, workers=5)
        assert 1 <= session.max_active <= 5

    def test_empty_input(self, api_with):
        api, _ = api_with([])
        result = api.fetch_cards([])
        assert result.cards == {}
        assert result.logs == []


# =============================================================================
# Query building and card helpers
# =============================================================================

class TestBuildSearchQuery:
    def test_all_filters(self):
        q = build_search_query(
            name="Sol Ring",
            set_code="CMR",
            type_line="Artifact",
            colors=["W", "U"],
            cmc="1",
            rarity="Uncommon",
            power="2",
            toughness="3",
            text="o:draw",
            layout="Normal",
            format="Commander",
            price_min=1,
            price_max=5.5,
            styles=["normal", "borderless"],
            availability=["paper"],
        )
        assert q == (
            '!"Sol Ring" set:cmr type:artifact c>=WU cmc=1 rarity:uncommon power=2 toughness=3 '
            "o:draw layout:normal format:commander usd>=1 usd<=5.5 -is:foil -is:etched is:borderless is:paper"
        )

    def test_empty(self):
        assert build_search_query() == ""


class TestCardHelpers:
    def test_image_urls_single_faced(self, make_card):
        assert card_image_urls(make_card("Sol Ring")) == ("https://img/Sol Ring/normal.jpg", "")

    def test_image_urls_double_faced(self):
        card = {"card_faces": [
            {"image_uris": {"normal": "front.jpg"}},
            {"image_uris": {"normal": "back.jpg"}},
        ]}
        assert card_image_urls(card) == ("front.jpg", "back.jpg")

    def test_image_size_fallback(self):
        card = {"image_uris": {"large": "large.jpg"}}
        assert card_image_urls(card, size="small") == ("large.jpg", "")

    def test_colors_plain(self, make_card):
        assert card_colors(make_card("Bolt", colors=["R"])) == ["R"]

    def test_colors_from_faces(self):
        card = {"card_faces": [{"colors": ["U"]}, {"colors": ["B", "U"]}], "type_line": "Creature"}
        assert card_colors(card) == ["U", "B"]

    @pytest.mark.parametrize("type_line,mana_cost,expected", [
        ("Artifact", "{1}", ["Colorless"]),
        ("Land", "", ["Colorless"]),
        ("Creature — Eldrazi", "{C}{C}", ["Colorless"]),
        ("Creature — Eldrazi", "{10}", []),
        ("Artifact Creature — Golem", "{W}", []),
    ])
    def test_colorless_rules(self, make_card, type_line, mana_cost, expected):
        card = make_card("X", type_line=type_line, colors=[], mana_cost=mana_cost)
        assert card_colors(card) == expected

    def test_print_matches_flags(self):
        printing = {"frame_effects": ["showcase"], "finishes": ["nonfoil", "foil"], "border_color": "black"}
        assert print_matches_flags(printing, VariantFlags(showcase=True, foil=True))
        assert not print_matches_flags(printing, VariantFlags(borderless=True))
        assert print_matches_flags({"border_color": "borderless"}, VariantFlags(borderless=True))

    def test_to_catalog_card(self, make_card):
        cat = to_catalog_card(make_card("Sol Ring", type_line="Artifact", colors=[], set="cmr"))
        assert cat.scryfall_id == "id-sol-ring"
        assert cat.set_code == "CMR"
        assert cat.colors == ["Colorless"]
        assert cat.price_usd == 0.25
        assert cat.get_scryfall_data()["name"] == "Sol Ring"


class TestPickPrintImage:
    def test_no_flags_uses_card_image(self, make_card):
        api = ScryfallAPI(session=MagicMock(headers={}))
        assert api.pick_print_image(make_card("Sol Ring"))[0] == "https://img/Sol Ring/normal.jpg"

    def test_flags_pick_matching_printing(self, make_card, monkeypatch):
        api = ScryfallAPI(session=MagicMock(headers={}))
        prints = [
            {"set": "cmr", "finishes": ["nonfoil"], "image_uris": {"normal": "plain.jpg"}},
            {"set": "cmr", "finishes": ["foil"], "image_uris": {"normal": "foil.jpg"}},
        ]
        monkeypatch.setattr(api, "get_prints_from_uri", lambda uri: prints)
        card = make_card("Sol Ring", prints_search_uri="https://api.scryfall.com/cards/search?q=x")
        assert api.pick_print_image(card, VariantFlags(foil=True), "cmr") == ("foil.jpg", "")

    def test_flags_without_match_fall_back_to_preferred_set(self, make_card, monkeypatch):
        api = ScryfallAPI(session=MagicMock(headers={}))
        prints = [
            {"set": "lea", "finishes": ["nonfoil"], "image_uris": {"normal": "lea.jpg"}},
            {"set": "cmr", "finishes": ["nonfoil"], "image_uris": {"normal": "cmr.jpg"}},
        ]
        monkeypatch.setattr(api, "get_prints_from_uri", lambda uri: prints)
        card = make_card("Sol Ring", prints_search_uri="uri")
        assert api.pick_print_image(card, VariantFlags(showcase=True), "CMR")[0] == "cmr.jpg"

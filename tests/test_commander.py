"""
Tests for commander detection heuristics (no DB/network required).

To run: pytest tests/test_commander.py -v
"""

import pytest

from cardverse.importers.decklist import parse_decklist
from cardverse.services.commander import (
    deck_color_identity,
    detect_commander,
    detect_format,
    has_partner,
    is_commander_candidate,
    is_singleton_shaped,
)

LEGEND = "Legendary Creature — Elf Druid"


@pytest.fixture
def build(make_card):
    """Build (deck, cards) from an ordered list of (count, card dict) pairs."""

    def _build(lines):
        text = "\n".join(f"{count} {card['name']}" for count, card in lines)
        cards = {card["name"]: card for _, card in lines}
        return parse_decklist(text), cards

    return _build


def _singleton(make_card, legends, filler_count=None, filler_colors=("G",)):
    """Legends (in order) plus filler singles and Forests totalling 100."""
    lines = [(1, card) for card in legends]
    filler_count = 60 if filler_count is None else filler_count
    for i in range(filler_count):
        lines.append((1, make_card(f"Filler {i}", colors=list(filler_colors))))
    lines.append((100 - len(lines), make_card("Forest", type_line="Basic Land — Forest", colors=[])))
    return lines


# =============================================================================
# Candidate checks
# =============================================================================

class TestCandidates:
    def test_legendary_creature(self, make_card):
        assert is_commander_candidate(make_card("Ezuri", type_line=LEGEND))

    def test_nonlegendary_creature(self, make_card):
        assert not is_commander_candidate(make_card("Llanowar Elves"))

    def test_legendary_noncreature(self, make_card):
        assert not is_commander_candidate(make_card("Sword", type_line="Legendary Artifact — Equipment"))

    def test_can_be_your_commander(self, make_card):
        card = make_card("Teferi", type_line="Legendary Planeswalker — Teferi",
                         oracle_text="Teferi can be your commander.")
        assert is_commander_candidate(card)

    def test_missing_card(self):
        assert not is_commander_candidate(None)

    def test_partner_keyword(self, make_card):
        assert has_partner(make_card("Thrasios", type_line=LEGEND, keywords=["Partner"]))
        assert not has_partner(make_card("Ezuri", type_line=LEGEND))


# =============================================================================
# Detection
# =============================================================================

class TestExplicit:
    def test_commander_section_wins(self, make_card):
        deck = parse_decklist("Commander:\n1 Ezuri\nDeck:\n1 Llanowar Elves")
        result = detect_commander(deck, {"Ezuri": make_card("Ezuri", type_line=LEGEND)})
        assert result.names == ["Ezuri"]
        assert result.method == "explicit"

    def test_cmdr_marker(self):
        deck = parse_decklist("1 Llanowar Elves\n1 Ezuri *CMDR*")
        result = detect_commander(deck, {})
        assert result.names == ["Ezuri"]
        assert result.method == "explicit"

    def test_at_most_two(self):
        deck = parse_decklist("Commander:\n1 A\n1 B\n1 C")
        assert detect_commander(deck, {}).names == ["A", "B"]


class TestHeuristics:
    def test_only_legend(self, make_card, build):
        deck, cards = build(_singleton(make_card, [make_card("Ezuri", type_line=LEGEND)]))
        result = detect_commander(deck, cards)
        assert result.names == ["Ezuri"]
        assert result.method == "only-legend"

    def test_color_identity_picks_covering_legend(self, make_card, build):
        lines = _singleton(make_card, [
            make_card("Mono Green Legend", type_line=LEGEND, colors=["G"]),
            make_card("Golgari Legend", type_line=LEGEND, colors=["B", "G"]),
        ])
        # One black filler card means only the Golgari legend covers the deck
        lines.insert(2, (1, make_card("Black Filler", colors=["B"])))
        lines[-1] = (lines[-1][0] - 1, lines[-1][1])
        deck, cards = build(lines)
        result = detect_commander(deck, cards)
        assert result.names == ["Golgari Legend"]
        assert result.method == "color-identity"

    def test_first_line(self, make_card, build):
        lines = _singleton(make_card, [
            make_card("First Legend", type_line=LEGEND),
            make_card("Second Legend", type_line=LEGEND),
        ])
        deck, cards = build(lines)
        result = detect_commander(deck, cards)
        assert result.names == ["First Legend"]
        assert result.method == "first-line"

    def test_first_line_with_partner(self, make_card, build):
        lines = _singleton(make_card, [
            make_card("Thrasios", type_line=LEGEND, keywords=["Partner"]),
            make_card("Tymna", type_line=LEGEND, keywords=["Partner"]),
        ])
        deck, cards = build(lines)
        result = detect_commander(deck, cards)
        assert result.names == ["Thrasios", "Tymna"]
        assert result.method == "first-line"

    def test_last_line(self, make_card, build):
        lines = _singleton(make_card, [])
        lines.insert(5, (1, make_card("Middle Legend", type_line=LEGEND)))
        lines.append((1, make_card("Last Legend", type_line=LEGEND)))
        # keep 100 cards: drop two Forests
        forest_idx = len(lines) - 2
        lines[forest_idx] = (lines[forest_idx][0] - 2, lines[forest_idx][1])
        deck, cards = build(lines)
        assert deck.total_cards() == 100
        result = detect_commander(deck, cards)
        assert result.names == ["Last Legend"]
        assert result.method == "last-line"

    def test_not_singleton_means_no_commander(self, make_card, build):
        lines = [
            (1, make_card("Ezuri", type_line=LEGEND)),
            (4, make_card("Llanowar Elves")),
            (55, make_card("Forest", type_line="Basic Land — Forest", colors=[])),
        ]
        deck, cards = build(lines)
        result = detect_commander(deck, cards)
        assert not result
        assert result.method == "none"

    def test_no_candidates(self, make_card, build):
        deck, cards = build(_singleton(make_card, []))
        assert detect_commander(deck, cards).method == "none"


class TestSingletonShape:
    def test_basics_may_repeat(self, make_card, build):
        deck, cards = build(_singleton(make_card, []))
        assert is_singleton_shaped(deck, cards)

    def test_any_number_cards_may_repeat(self, make_card, build):
        rats = make_card("Relentless Rats", colors=["B"],
                         oracle_text="A deck can have any number of cards named Relentless Rats.")
        lines = _singleton(make_card, [], filler_count=50)
        lines.insert(0, (20, rats))
        lines[-1] = (lines[-1][0] - 20, lines[-1][1])
        deck, cards = build(lines)
        assert is_singleton_shaped(deck, cards)

    def test_wrong_size(self, make_card, build):
        deck, cards = build([(60, make_card("Forest", type_line="Basic Land — Forest", colors=[]))])
        assert not is_singleton_shaped(deck, cards)


# =============================================================================
# Colour identity and format
# =============================================================================

class TestIdentityAndFormat:
    def test_deck_color_identity_ordered(self, make_card):
        cards = {
            "A": make_card("A", colors=["G", "W"]),
            "B": make_card("B", colors=["U"]),
            "C": None,
        }
        assert deck_color_identity(["A", "B", "C"], cards) == "WUG"

    def test_colorless(self, make_card):
        assert deck_color_identity(["Sol Ring"], {"Sol Ring": make_card("Sol Ring", colors=[])}) == ""

    @pytest.mark.parametrize("total,commander,expected", [
        (100, True, "Commander"),
        (60, True, "Brawl"),
        (60, False, "Constructed"),
        (75, False, "Constructed"),
        (40, False, "Limited"),
        (20, False, "Casual"),
    ])
    def test_detect_format(self, total, commander, expected):
        assert detect_format(total, commander) == expected

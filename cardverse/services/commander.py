"""Commander detection heuristics for imported deck lists."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from cardverse.importers.decklist import DeckEntry, ParsedDeck
from cardverse.utils import color_identity_string

BASIC_LAND_NAMES = {
    "plains", "island", "swamp", "mountain", "forest", "wastes",
    "snow-covered plains", "snow-covered island", "snow-covered swamp",
    "snow-covered mountain", "snow-covered forest", "snow-covered wastes",
}

PARTNER_KEYWORDS = {"partner", "partner with", "friends forever", "choose a background", "doctor's companion"}

MAX_COMMANDERS = 2


@dataclass
class CommanderDetection:
    """Detected commander(s) by deck-list name, and which rule found them.

    method is one of: explicit, only-legend, color-identity, first-line,
    last-line, none.
    """
    names: List[str] = field(default_factory=list)
    method: str = "none"

    def __bool__(self) -> bool:
        return bool(self.names)


def _faces(card: Dict) -> List[Dict]:
    return [card] + list(card.get("card_faces") or [])


def is_commander_candidate(card: Optional[Dict]) -> bool:
    """Legendary creatures, plus anything that says it can be your commander."""
    if not card:
        return False
    front_type = card.get("type_line") or ((card.get("card_faces") or [{}])[0].get("type_line") or "")
    front_type = front_type.split(" // ")[0]
    if "Legendary" in front_type and "Creature" in front_type:
        return True
    return any("can be your commander" in (f.get("oracle_text") or "") for f in _faces(card))


def has_partner(card: Optional[Dict]) -> bool:
    """Whether a card lets a second commander join it."""
    if not card:
        return False
    keywords = {k.lower() for k in card.get("keywords") or []}
    if keywords & PARTNER_KEYWORDS:
        return True
    return "Background" in (card.get("type_line") or "")


def is_basic_land(name: str, card: Optional[Dict] = None) -> bool:
    if name.lower() in BASIC_LAND_NAMES:
        return True
    return bool(card) and "Basic" in (card.get("type_line") or "")


def _allows_multiple(card: Optional[Dict]) -> bool:
    """Relentless Rats and friends may appear any number of times."""
    if not card:
        return False
    return any("any number of cards named" in (f.get("oracle_text") or "") for f in _faces(card))


def is_singleton_shaped(deck: ParsedDeck, cards: Dict[str, Optional[Dict]]) -> bool:
    """A 99-100 card deck where only basics (or any-number cards) repeat."""
    main = deck.main_entries()
    if not 99 <= sum(e.count for e in main) <= 100:
        return False
    for e in main:
        card = cards.get(e.name)
        if e.count > 1 and not is_basic_land(e.name, card) and not _allows_multiple(card):
            return False
    return True


def card_color_identity(card: Optional[Dict]) -> set:
    if not card:
        return set()
    return set(card.get("color_identity") or [])


def deck_color_identity(names: List[str], cards: Dict[str, Optional[Dict]]) -> str:
    """WUBRG-ordered union of the colour identities of the named cards."""
    colors = set()
    for name in names:
        colors |= card_color_identity(cards.get(name))
    return color_identity_string(colors)


def _covers_deck(candidate: DeckEntry, main: List[DeckEntry], cards: Dict[str, Optional[Dict]]) -> bool:
    identity = card_color_identity(cards.get(candidate.name))
    for e in main:
        if e is candidate:
            continue
        if not card_color_identity(cards.get(e.name)) <= identity:
            return False
    return True


def _with_partner(first: DeckEntry, second: Optional[DeckEntry], candidates: List[DeckEntry], cards) -> List[str]:
    names = [first.name]
    if (
        second is not None
        and second in candidates
        and has_partner(cards.get(first.name))
        and has_partner(cards.get(second.name))
    ):
        names.append(second.name)
    return names


def detect_commander(deck: ParsedDeck, cards: Dict[str, Optional[Dict]]) -> CommanderDetection:
    """
    Work out which card(s) of a deck list are the commander.

    Explicit markers always win. Otherwise the heuristics only run for
    singleton-shaped 99-100 card decks, and consider count-1 cards that are
    legal commanders:

      1. exactly one candidate                        -> only-legend
      2. exactly one candidate covering the deck's colours -> color-identity
      3. the first line is a candidate (plus a partner on line two) -> first-line
      4. the last line is a candidate                 -> last-line
    """
    explicit = deck.commander_entries()
    if explicit:
        return CommanderDetection(names=[e.name for e in explicit[:MAX_COMMANDERS]], method="explicit")

    if not is_singleton_shaped(deck, cards):
        return CommanderDetection()

    main = deck.main_entries()
    candidates = [e for e in main if e.count == 1 and is_commander_candidate(cards.get(e.name))]
    if not candidates:
        return CommanderDetection()

    if len(candidates) == 1:
        return CommanderDetection(names=[candidates[0].name], method="only-legend")

    covering = [c for c in candidates if _covers_deck(c, main, cards)]
    if len(covering) == 1:
        return CommanderDetection(names=[covering[0].name], method="color-identity")

    if main[0] in candidates:
        second = main[1] if len(main) > 1 else None
        return CommanderDetection(names=_with_partner(main[0], second, candidates, cards), method="first-line")

    if main[-1] in candidates:
        return CommanderDetection(names=[main[-1].name], method="last-line")

    return CommanderDetection()


def detect_format(total_cards: int, has_commander: bool) -> str:
    """Guess the play format from deck size and whether it has a commander."""
    if has_commander:
        return "Brawl" if total_cards <= 60 else "Commander"
    if total_cards >= 60:
        return "Constructed"
    if total_cards >= 40:
        return "Limited"
    return "Casual"

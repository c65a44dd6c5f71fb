"""Scryfall API interface."""

import json
import logging
import re
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple, Union

import requests

from cardverse.db.models import CatalogCard, VariantFlags
from cardverse.utils import now_iso

log = logging.getLogger(__name__)

DEFAULT_FETCH_WORKERS = 5

COMMANDER_QUERY = "is:commander is:legendary type:creature legal:commander"


@dataclass
class CardLookup:
    """One card to resolve. Results are stored under `key` (defaults to name)."""
    name: str
    set_code: Optional[str] = None
    collector_number: Optional[str] = None
    key: Optional[str] = None

    def __post_init__(self):
        if self.key is None:
            self.key = self.name


@dataclass
class FetchResult:
    """Outcome of a batch fetch: key -> card JSON (None when unresolved)."""
    cards: Dict[str, Optional[Dict]] = field(default_factory=dict)
    logs: List[str] = field(default_factory=list)

    def found(self) -> Dict[str, Dict]:
        return {k: v for k, v in self.cards.items() if v is not None}

    def missing(self) -> List[str]:
        return [k for k, v in self.cards.items() if v is None]


@dataclass
class SearchPage:
    """One page of /cards/search results."""
    cards: List[Dict] = field(default_factory=list)
    total: int = 0
    has_more: bool = False
    error: Optional[str] = None


class ScryfallAPI:
    """Interface to Scryfall API.

    Safe to share between worker threads: the rate limiter is locked.
    """

    BASE_URL = "https://api.scryfall.com"
    MIN_INTERVAL = 0.1

    def __init__(self, session: Optional[requests.Session] = None):
        self.session = session or requests.Session()
        self.session.headers.update({
            "User-Agent": "CardVerse/0.3",
            "Accept": "application/json",
        })
        self.last_request = 0.0
        self._lock = threading.Lock()
        self._all_sets_cache: Optional[List[Dict]] = None

    def _rate_limit(self):
        """Respect Scryfall's rate limit (100ms between requests, across threads)."""
        with self._lock:
            elapsed = time.time() - self.last_request
            if elapsed < self.MIN_INTERVAL:
                time.sleep(self.MIN_INTERVAL - elapsed)
            self.last_request = time.time()

    def _request_with_retry(self, method: str, url: str, max_retries: int = 3, **kwargs) -> requests.Response:
        """Make an HTTP request with retry on 429 rate limit errors."""
        kwargs.setdefault("timeout", 15)
        for attempt in range(max_retries + 1):
            self._rate_limit()
            response = self.session.request(method, url, **kwargs)
            if response.status_code == 429 and attempt < max_retries:
                wait = 0.5 * (2 ** attempt)
                log.warning("Scryfall rate limited, retrying in %.1fs", wait)
                time.sleep(wait)
                continue
            return response
        return response

    # Single-card lookups

    def get_card_named(
        self,
        name: str,
        set_code: Optional[str] = None,
        fuzzy: bool = False,
    ) -> Tuple[Optional[Dict], Optional[str]]:
        """
        Look a card up on /cards/named.

        Returns (card, None) when found, (None, None) when Scryfall has no
        such card, and (None, error) when the request itself failed.
        """
        params = {"fuzzy" if fuzzy else "exact": name}
        if set_code:
            params["set"] = set_code.lower()

        try:
            response = self._request_with_retry("GET", f"{self.BASE_URL}/cards/named", params=params)
        except requests.exceptions.RequestException as e:
            return None, str(e)

        if response.status_code == 404:
            return None, None
        if not response.ok:
            return None, f"HTTP {response.status_code}"

        try:
            data = response.json()
        except ValueError:
            return None, "invalid JSON in response"

        if data.get("object") != "card":
            return None, None
        return data, None

    def get_card_by_id(self, scryfall_id: str) -> Optional[Dict]:
        """Get a specific card by Scryfall ID."""
        url = f"{self.BASE_URL}/cards/{scryfall_id}"

        try:
            response = self._request_with_retry("GET", url)
            response.raise_for_status()
            return response.json()
        except requests.exceptions.RequestException:
            return None

    def get_card_by_set_cn(self, set_code: str, collector_number: str) -> Optional[Dict]:
        """Get a specific card by set code and collector number."""
        url = f"{self.BASE_URL}/cards/{set_code.lower()}/{collector_number}"

        try:
            response = self._request_with_retry("GET", url)
            response.raise_for_status()
            return response.json()
        except requests.exceptions.RequestException:
            return None

    # Batch fetch

    def fetch_cards(
        self,
        lookups: Iterable[Union[CardLookup, str]],
        workers: int = DEFAULT_FETCH_WORKERS,
        fuzzy_fallback: bool = True,
    ) -> FetchResult:
        """
        Resolve many cards with a fixed-size worker pool.

        Every key ends up in the result: the card JSON, or None when the card
        was not found or the request failed. Each miss adds a line to
        result.logs. Keys keep their input order; repeated keys are fetched
        once.
        """
        unique: Dict[str, CardLookup] = {}
        for lookup in lookups:
            if isinstance(lookup, str):
                lookup = CardLookup(name=lookup)
            if lookup.key not in unique:
                unique[lookup.key] = lookup

        result = FetchResult()
        if not unique:
            return result

        with ThreadPoolExecutor(max_workers=max(1, workers)) as executor:
            outcomes = list(executor.map(
                lambda lk: self._fetch_one(lk, fuzzy_fallback), unique.values()
            ))

        for lookup, (card, messages) in zip(unique.values(), outcomes):
            result.cards[lookup.key] = card
            result.logs.extend(messages)

        return result

    def _fetch_one(self, lookup: CardLookup, fuzzy_fallback: bool) -> Tuple[Optional[Dict], List[str]]:
        """Resolve one lookup. Never raises; failures come back as log lines."""
        name = (lookup.name or "").strip()
        if not name:
            msg = f'Skipping fetch for empty or invalid card name: "{lookup.name}"'
            log.warning(msg)
            return None, [msg]

        messages: List[str] = []
        try:
            # Exact printing first when we know set + collector number
            if lookup.set_code and lookup.collector_number:
                card = self.get_card_by_set_cn(lookup.set_code, lookup.collector_number)
                if card and card.get("object") == "card" and name_matches(name, card.get("name", "")):
                    return card, messages

            card, error = self.get_card_named(name, lookup.set_code)
            if card is None and error is None and lookup.set_code:
                card, error = self.get_card_named(name)

            if card is None and error is None and fuzzy_fallback:
                card, error = self.get_card_named(name, fuzzy=True)
                if card is not None and card.get("name", "").lower() != name.lower():
                    msg = f"Fuzzy match: '{name}' -> '{card['name']}'"
                    log.info(msg)
                    messages.append(msg)

            if card is not None:
                return card, messages

            if error:
                msg = f'Fetch error for "{name}": {error}'
            else:
                msg = f'Card not found: "{name}"'
        except Exception as e:
            msg = f'Fetch error for "{name}": {e}'

        log.warning(msg)
        messages.append(msg)
        return None, messages

    # Search

    def search(
        self,
        query: str,
        page: int = 1,
        unique: str = "cards",
        order: str = "name",
    ) -> SearchPage:
        """Run a Scryfall full-text search and return one page of results."""
        params = {"q": query, "unique": unique, "order": order, "page": page}

        try:
            response = self._request_with_retry("GET", f"{self.BASE_URL}/cards/search", params=params)
        except requests.exceptions.RequestException as e:
            return SearchPage(error=str(e))

        try:
            data = response.json()
        except ValueError:
            return SearchPage(error=f"HTTP {response.status_code}")

        if data.get("object") == "error":
            # Scryfall answers a search with zero hits with a 404 error object
            if response.status_code == 404:
                return SearchPage()
            return SearchPage(error=data.get("details") or f"HTTP {response.status_code}")

        return SearchPage(
            cards=data.get("data", []),
            total=data.get("total_cards", 0),
            has_more=bool(data.get("has_more")),
        )

    def _search_all(self, params: Dict) -> List[Dict]:
        """Follow next_page links for a search and return every result."""
        cards = []
        url = f"{self.BASE_URL}/cards/search"

        while url:
            try:
                response = self._request_with_retry("GET", url, params=params)
                if response.status_code == 404:
                    break
                response.raise_for_status()
                data = response.json()
            except requests.exceptions.RequestException as e:
                log.warning("Error fetching search results: %s", e)
                break

            if data.get("object") == "list":
                cards.extend(data.get("data", []))

            if data.get("has_more"):
                url = data.get("next_page")
                params = {}  # next_page URL includes params
            else:
                url = None

        return cards

    def get_prints(self, name: str) -> List[Dict]:
        """All printings of a card by exact name, newest first."""
        return self._search_all({
            "q": f'!"{name}"',
            "unique": "prints",
            "order": "released",
            "dir": "desc",
        })

    def get_prints_from_uri(self, prints_search_uri: str) -> List[Dict]:
        """All printings behind a card's prints_search_uri."""
        cards = []
        url = prints_search_uri

        while url:
            try:
                response = self._request_with_retry("GET", url)
                response.raise_for_status()
                data = response.json()
            except requests.exceptions.RequestException as e:
                log.warning("Error fetching printings: %s", e)
                break
            cards.extend(data.get("data", []))
            url = data.get("next_page") if data.get("has_more") else None

        return cards

    def autocomplete(self, query: str) -> List[str]:
        """Card name suggestions for a partial name."""
        try:
            response = self._request_with_retry("GET", f"{self.BASE_URL}/cards/autocomplete", params={"q": query})
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.RequestException:
            return []

        suggestions = data.get("data", [])
        return suggestions if isinstance(suggestions, list) else []

    def random_commander(self) -> Optional[Dict]:
        """A random legendary creature that is legal as a commander."""
        try:
            response = self._request_with_retry("GET", f"{self.BASE_URL}/cards/random", params={"q": COMMANDER_QUERY})
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.RequestException as e:
            log.warning("Error fetching random commander: %s", e)
            return None

        if data.get("object") != "card":
            return None
        return data

    # Sets

    def get_all_sets(self) -> List[Dict]:
        """
        Fetch all sets from Scryfall.

        Results are cached in memory for the session.
        """
        if self._all_sets_cache is None:
            try:
                response = self._request_with_retry("GET", f"{self.BASE_URL}/sets")
                response.raise_for_status()
                data = response.json()
                self._all_sets_cache = data.get("data", [])
            except requests.exceptions.RequestException as e:
                log.warning("Error fetching sets: %s", e)
                return []

        return self._all_sets_cache

    def normalize_set_code(self, set_input: str) -> Optional[str]:
        """
        Normalize a set code or name to a valid Scryfall set code.

        Args:
            set_input: Set code (e.g., "MH3", "mh3") or name (e.g., "Modern Horizons 3")

        Returns:
            Normalized lowercase set code, or None if not found
        """
        set_input_lower = set_input.strip().lower()

        all_sets = self.get_all_sets()

        for s in all_sets:
            if s["code"].lower() == set_input_lower:
                return s["code"]

        for s in all_sets:
            if s["name"].lower() == set_input_lower:
                return s["code"]

        for s in all_sets:
            if set_input_lower in s["name"].lower():
                return s["code"]

        return None

    # Images

    def pick_print_image(
        self,
        card: Dict,
        flags: Optional[VariantFlags] = None,
        preferred_set: Optional[str] = None,
    ) -> Tuple[str, str]:
        """
        Choose front/back image URLs for a card given variant flags.

        Without flags the card's own images are used. With flags, the card's
        printings are searched for one matching every flag (preferring
        `preferred_set`), then any printing from the preferred set, then any
        printing with an image, then the card itself.
        """
        if not card:
            return "", ""

        flags = flags or VariantFlags()
        own = card_image_urls(card)

        if not flags.any() or not card.get("prints_search_uri"):
            return own

        prints = self.get_prints_from_uri(card["prints_search_uri"])
        if not prints:
            return own

        preferred = (preferred_set or "").lower()

        candidates = []
        if preferred:
            candidates = [p for p in prints if str(p.get("set", "")).lower() == preferred and print_matches_flags(p, flags)]
        if not candidates:
            candidates = [p for p in prints if print_matches_flags(p, flags)]

        fallbacks = [p for p in prints if preferred and str(p.get("set", "")).lower() == preferred]
        for p in candidates + fallbacks + prints:
            front, back = card_image_urls(p)
            if front:
                return front, back

        return own


def to_catalog_card(data: Dict) -> CatalogCard:
    """Convert Scryfall API response to a CatalogCard."""
    front, back = card_image_urls(data)
    face = (data.get("card_faces") or [{}])[0]

    return CatalogCard(
        scryfall_id=data["id"],
        name=data["name"],
        set_code=(data.get("set") or "").upper() or None,
        number=data.get("collector_number"),
        rarity=data.get("rarity") or face.get("rarity"),
        type_line=data.get("type_line") or face.get("type_line"),
        colors=card_colors(data),
        color_identity=data.get("color_identity", []),
        cmc=data["cmc"] if data.get("cmc") is not None else face.get("cmc"),
        oracle_text=data.get("oracle_text") or face.get("oracle_text"),
        image_url=front or None,
        back_image_url=back or None,
        scryfall_uri=data.get("scryfall_uri"),
        price_usd=card_price(data),
        raw_json=json.dumps(data),
        updated_at=now_iso(),
    )


def cache_card_data(catalog_repo, scryfall_data: Dict) -> None:
    """Upsert one Scryfall card into the local catalog."""
    catalog_repo.upsert(to_catalog_card(scryfall_data))


def name_matches(search_name: str, card_name: str) -> bool:
    """Check if search_name matches card_name (case-insensitive, DFC-aware)."""
    search_lower = search_name.lower()
    card_lower = card_name.lower()

    if search_lower == card_lower:
        return True

    # DFC: Scryfall names are "Front // Back", a deck list may have just "Front"
    if " // " in card_lower:
        return search_lower == card_lower.split(" // ")[0]

    return False


_IMAGE_SIZES = ("normal", "large", "small", "png")


def _face_image(face: Optional[Dict], size: str) -> str:
    if not face:
        return ""
    uris = face.get("image_uris") or {}
    for s in (size,) + tuple(x for x in _IMAGE_SIZES if x != size):
        if uris.get(s):
            return uris[s]
    return ""


def card_image_urls(card: Optional[Dict], size: str = "normal") -> Tuple[str, str]:
    """Front and back image URLs, handling double-faced cards."""
    if not card:
        return "", ""

    if card.get("image_uris"):
        return _face_image(card, size), ""

    faces = card.get("card_faces") or []
    if faces:
        front = _face_image(faces[0], size)
        back = _face_image(faces[1], size) if len(faces) > 1 else ""
        # Fall back to the back face when the front has no image
        return front or back, back if front else ""

    return "", ""


def print_matches_flags(printing: Dict, flags: VariantFlags) -> bool:
    """Whether a printing has every treatment requested in flags."""
    frame_effects = [str(x).lower() for x in printing.get("frame_effects") or []]
    finishes = [str(x).lower() for x in printing.get("finishes") or []]
    is_foil = bool(printing.get("foil")) or "foil" in finishes
    is_borderless = "borderless" in frame_effects or printing.get("border_color") == "borderless"

    if flags.borderless and not is_borderless:
        return False
    if flags.showcase and "showcase" not in frame_effects:
        return False
    if flags.extended_art and not any(x in frame_effects for x in ("extendedart", "extended_art", "extended")):
        return False
    if flags.foil and not is_foil:
        return False
    return True


_COLORED_MANA = re.compile(r"\{[WUBRG]\}")


def card_colors(card: Dict) -> List[str]:
    """
    Colours for inventory display and filtering.

    Uses the card's colours, then the union of its faces' colours. A card
    with no colours is tagged ["Colorless"] when it is an artifact, a land
    without mana cost, or has {C} in its cost.
    """
    colors = card.get("colors")
    if not colors:
        seen: List[str] = []
        for face in card.get("card_faces") or []:
            for c in face.get("colors") or []:
                if c not in seen:
                    seen.append(c)
        colors = seen

    if colors:
        return list(colors)

    faces = card.get("card_faces") or [{}]
    mana_cost = (card.get("mana_cost") or faces[0].get("mana_cost") or "").strip()
    type_line = (card.get("type_line") or faces[0].get("type_line") or "").strip()

    if not _COLORED_MANA.search(mana_cost) and (
        "Artifact" in type_line
        or ("Land" in type_line and not mana_cost)
        or "{C}" in mana_cost
    ):
        return ["Colorless"]
    return []


def card_price(card: Dict) -> Optional[float]:
    """USD price from a Scryfall card, or None."""
    usd = (card.get("prices") or {}).get("usd")
    if not usd:
        return None
    try:
        return float(usd)
    except (TypeError, ValueError):
        return None


def build_search_query(
    name: Optional[str] = None,
    set_code: Optional[str] = None,
    type_line: Optional[str] = None,
    colors: Optional[List[str]] = None,
    cmc: Optional[str] = None,
    rarity: Optional[str] = None,
    power: Optional[str] = None,
    toughness: Optional[str] = None,
    text: Optional[str] = None,
    layout: Optional[str] = None,
    format: Optional[str] = None,
    price_min: Optional[float] = None,
    price_max: Optional[float] = None,
    styles: Optional[List[str]] = None,
    availability: Optional[List[str]] = None,
) -> str:
    """Build a Scryfall query string from advanced-search filters."""
    q = []

    if name:
        q.append(f'!"{name.strip()}"')
    if set_code:
        q.append(f"set:{set_code.strip().lower()}")
    if type_line:
        q.append(f"type:{type_line.strip().lower()}")
    if colors:
        q.append(f"c>={''.join(colors)}")
    if cmc:
        q.append(f"cmc={str(cmc).strip()}")
    if rarity:
        q.append(f"rarity:{rarity.lower()}")
    if power:
        q.append(f"power={power.strip()}")
    if toughness:
        q.append(f"toughness={toughness.strip()}")
    if text:
        q.append(text.strip())
    if layout:
        q.append(f"layout:{layout.lower()}")
    if format:
        q.append(f"format:{format.lower()}")
    if price_min is not None:
        q.append(f"usd>={price_min}")
    if price_max is not None:
        q.append(f"usd<={price_max}")
    if styles:
        q.append(" ".join("-is:foil -is:etched" if s == "normal" else f"is:{s}" for s in styles))
    if availability:
        q.append(" ".join(f"is:{tag}" for tag in availability))

    return " ".join(q).strip()

"""Discord webhook notifications for imported cards."""

import logging
import os
from typing import Dict, Iterable, Optional

import requests

from cardverse.services.scryfall import card_image_urls
from cardverse.utils import now_iso

log = logging.getLogger(__name__)

BOT_USERNAME = "CardVerse Bot"
EMBED_COLOR = 7506394
MAX_EMBEDS_PER_MESSAGE = 10


class DiscordWebhookError(Exception):
    """Discord rejected a webhook post."""

    def __init__(self, status_code: int, body: str = ""):
        self.status_code = status_code
        self.body = body
        super().__init__(f"Discord webhook failed with HTTP {status_code}: {body[:200]}")


def card_embed(card: Dict) -> Dict:
    """Build the embed announcing one card found in an imported deck."""
    price = (card.get("prices") or {}).get("usd")
    thumbnail, _ = card_image_urls(card, size="small")

    embed = {
        "title": f"Card Found in Deck: {card.get('name') or 'Unknown'}",
        "url": card.get("scryfall_uri"),
        "description": card.get("oracle_text") or "No description",
        "color": EMBED_COLOR,
        "fields": [
            {"name": "Set", "value": card.get("set_name") or "N/A", "inline": True},
            {"name": "Rarity", "value": card.get("rarity") or "N/A", "inline": True},
            {"name": "Price (USD)", "value": price or "N/A", "inline": True},
        ],
        "timestamp": now_iso(),
    }
    if thumbnail:
        embed["thumbnail"] = {"url": thumbnail}
    return embed


class DiscordWebhook:
    """Posts messages to a Discord channel webhook."""

    def __init__(self, url: str, session: Optional[requests.Session] = None, username: str = BOT_USERNAME):
        if not url:
            raise ValueError("Discord webhook URL is required")
        self.url = url
        self.session = session or requests.Session()
        self.username = username

    @classmethod
    def from_env(cls) -> "DiscordWebhook":
        url = os.environ.get("DISCORD_WEBHOOK_URL")
        if not url:
            raise ValueError("Webhook URL not configured (set DISCORD_WEBHOOK_URL)")
        return cls(url)

    def send(self, payload: Dict) -> None:
        """Post one message.

        Raises:
            DiscordWebhookError: on a non-2xx response
            requests.exceptions.RequestException: on connection failures
        """
        body = dict(payload)
        body.setdefault("username", self.username)
        response = self.session.post(self.url, json=body, timeout=10)
        if not response.ok:
            raise DiscordWebhookError(response.status_code, response.text)
        log.debug("Posted Discord message with %d embed(s)", len(body.get("embeds", [])))

    def send_cards(self, cards: Iterable[Dict]) -> int:
        """Announce cards, ten embeds per message. Returns messages sent."""
        embeds = [card_embed(c) for c in cards if c]
        sent = 0
        for start in range(0, len(embeds), MAX_EMBEDS_PER_MESSAGE):
            self.send({"embeds": embeds[start:start + MAX_EMBEDS_PER_MESSAGE]})
            sent += 1
        return sent

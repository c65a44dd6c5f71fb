"""Claude-backed deckbuilding assistant."""

import logging
import random
import time
from dataclasses import dataclass
from typing import Dict, List, Optional

import anthropic

from cardverse.importers.decklist import ParsedDeck, parse_decklist

log = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-5-20250929"
FALLBACK_MODEL = "claude-haiku-4-5-20251001"

DECK_SYSTEM_PROMPT = """You are a Magic: The Gathering deckbuilding assistant.
Build a legal 100-card Commander (EDH) deck: exactly 1 commander and 99 other cards.
Every card except basic lands must be a single copy, and every card must fit the
commander's color identity.

Format the answer as a plain deck list and nothing else:
Commander:
1 <commander name>
Deck:
<count> <card name>
..."""

CHAT_SYSTEM_PROMPT = (
    "You are a helpful Magic: The Gathering assistant. Suggest cards, point out "
    "deck-building problems, and explain card interactions concisely."
)


@dataclass
class GeneratedDeck:
    """A deck list written by the model, plus its parsed form."""
    text: str
    deck: ParsedDeck
    model: str


def strip_code_fences(text: str) -> str:
    """Remove a surrounding markdown code fence, if any."""
    text = text.strip()
    if text.startswith("```"):
        lines = text.split("\n")
        if lines[-1].strip().startswith("```"):
            lines = lines[:-1]
        text = "\n".join(lines[1:])
    return text.strip()


class DeckAssistant:
    """Interface to Claude for deck generation and chat."""

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        fallback_model: Optional[str] = FALLBACK_MODEL,
        max_retries: int = 3,
        client: Optional[anthropic.Anthropic] = None,
    ):
        self.client = client or anthropic.Anthropic()
        self.model = model
        self.fallback_model = fallback_model
        self.max_retries = max_retries

    def _create_with_retry(self, model: str, system: str, messages: List[Dict], temperature: float, max_tokens: int):
        """Call the Messages API, backing off with jitter on rate limits."""
        for attempt in range(self.max_retries + 1):
            try:
                return self.client.messages.create(
                    model=model,
                    max_tokens=max_tokens,
                    system=system,
                    temperature=temperature,
                    messages=messages,
                )
            except anthropic.RateLimitError:
                if attempt >= self.max_retries:
                    raise
                wait_time = 2 ** attempt + random.uniform(0, 0.5)
                log.warning("Rate limited by %s, retrying in %.1fs (attempt %d/%d)",
                            model, wait_time, attempt + 1, self.max_retries)
                time.sleep(wait_time)

    def _complete(self, system: str, messages: List[Dict], temperature: float, max_tokens: int = 4000):
        """Return (text, model used), falling back to the second model on API errors."""
        model = self.model
        try:
            response = self._create_with_retry(model, system, messages, temperature, max_tokens)
        except anthropic.APIError as e:
            if not self.fallback_model or self.fallback_model == model:
                raise
            log.warning("%s failed (%s), falling back to %s", model, e, self.fallback_model)
            model = self.fallback_model
            response = self._create_with_retry(model, system, messages, temperature, max_tokens)

        text_content = ""
        for block in response.content:
            if block.type == "text":
                text_content += block.text
        return text_content, model

    def build_commander_deck(self, commander: Optional[str] = None) -> GeneratedDeck:
        """
        Ask Claude for a 100-card Commander deck.

        Args:
            commander: Commander to build around; Claude picks one when None

        Raises:
            ValueError: if the model returns no text
            anthropic.APIError: if both models fail
        """
        if commander:
            prompt = f'Build a Commander deck with "{commander}" as the commander.'
        else:
            prompt = "Pick an interesting legendary creature and build a Commander deck around it."

        text, model = self._complete(
            DECK_SYSTEM_PROMPT,
            [{"role": "user", "content": prompt}],
            temperature=0.9,
        )
        text = strip_code_fences(text)
        if not text:
            raise ValueError("Empty response from Claude")

        deck = parse_decklist(text)
        if deck.total_cards() != 100:
            log.info("Generated deck has %d cards", deck.total_cards())
        return GeneratedDeck(text=text, deck=deck, model=model)

    def chat(self, messages: List[Dict]) -> str:
        """
        Reply to a conversation.

        Messages are {"role": "user"|"assistant"|"ai", "text"|"content": str}.

        Raises:
            ValueError: if there are no usable messages
        """
        converted = []
        for m in messages or []:
            content = (m.get("text") or m.get("content") or "").strip()
            if not content:
                continue
            role = "assistant" if m.get("role") in ("assistant", "ai", "bot") else "user"
            converted.append({"role": role, "content": content})

        if not converted:
            raise ValueError("Missing or invalid messages array")

        text, _ = self._complete(CHAT_SYSTEM_PROMPT, converted, temperature=0.7, max_tokens=1000)
        return text.strip() or "No response from AI."

"""
Tests for the Claude deck assistant with a mocked Anthropic client.

To run: pytest tests/test_assistant.py -v
"""

from types import SimpleNamespace
from unittest.mock import MagicMock

import anthropic
import httpx
import pytest

from cardverse.services.assistant import DeckAssistant, strip_code_fences

_REQUEST = httpx.Request("POST", "https://api.anthropic.com/v1/messages")


def _response(text):
    return SimpleNamespace(content=[SimpleNamespace(type="text", text=text)])


def _rate_limited():
    return anthropic.RateLimitError(
        "rate limited", response=httpx.Response(429, request=_REQUEST), body=None
    )


@pytest.fixture
def client():
    return MagicMock()


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    monkeypatch.setattr("cardverse.services.assistant.time.sleep", lambda s: None)


DECK_TEXT = "Commander:\n1 Ezuri, Renegade Leader\nDeck:\n1 Llanowar Elves\n98 Forest"


class TestStripCodeFences:
    def test_fenced(self):
        assert strip_code_fences("```text\n1 Sol Ring\n```") == "1 Sol Ring"

    def test_plain(self):
        assert strip_code_fences("  1 Sol Ring \n") == "1 Sol Ring"


# =============================================================================
# Deck generation
# =============================================================================

class TestBuildCommanderDeck:
    def test_named_commander(self, client):
        client.messages.create.return_value = _response(f"```\n{DECK_TEXT}\n```")
        deck = DeckAssistant(client=client).build_commander_deck("Ezuri, Renegade Leader")

        assert deck.deck.total_cards() == 100
        assert deck.deck.commander_entries()[0].name == "Ezuri, Renegade Leader"
        assert deck.model == "claude-sonnet-4-5-20250929"
        prompt = client.messages.create.call_args.kwargs["messages"][0]["content"]
        assert '"Ezuri, Renegade Leader"' in prompt

    def test_empty_reply(self, client):
        client.messages.create.return_value = _response("   ")
        with pytest.raises(ValueError):
            DeckAssistant(client=client).build_commander_deck()

    def test_retries_rate_limit(self, client):
        client.messages.create.side_effect = [_rate_limited(), _rate_limited(), _response(DECK_TEXT)]
        deck = DeckAssistant(client=client).build_commander_deck()
        assert deck.deck.total_cards() == 100
        assert client.messages.create.call_count == 3

    def test_falls_back_to_second_model(self, client):
        client.messages.create.side_effect = [
            anthropic.APIConnectionError(request=_REQUEST),
            _response(DECK_TEXT),
        ]
        deck = DeckAssistant(client=client, model="big", fallback_model="small").build_commander_deck()
        assert deck.model == "small"
        models = [c.kwargs["model"] for c in client.messages.create.call_args_list]
        assert models == ["big", "small"]

    def test_no_fallback_raises(self, client):
        client.messages.create.side_effect = anthropic.APIConnectionError(request=_REQUEST)
        with pytest.raises(anthropic.APIError):
            DeckAssistant(client=client, fallback_model=None).build_commander_deck()

    def test_rate_limit_exhausted_then_fallback(self, client):
        client.messages.create.side_effect = [_rate_limited(), _rate_limited(), _response(DECK_TEXT)]
        deck = DeckAssistant(client=client, model="big", fallback_model="small", max_retries=1).build_commander_deck()
        assert deck.model == "small"


# =============================================================================
# Chat
# =============================================================================

class TestChat:
    def test_roles_converted(self, client):
        client.messages.create.return_value = _response(" Play more ramp. ")
        reply = DeckAssistant(client=client).chat([
            {"role": "user", "text": "What does my deck need?"},
            {"role": "ai", "text": "Which deck?"},
            {"role": "user", "content": "Ezuri elves"},
            {"role": "user", "text": "   "},
        ])
        assert reply == "Play more ramp."
        assert client.messages.create.call_args.kwargs["messages"] == [
            {"role": "user", "content": "What does my deck need?"},
            {"role": "assistant", "content": "Which deck?"},
            {"role": "user", "content": "Ezuri elves"},
        ]

    def test_no_messages(self, client):
        with pytest.raises(ValueError, match="Missing or invalid messages array"):
            DeckAssistant(client=client).chat([])

    def test_empty_reply(self, client):
        client.messages.create.return_value = SimpleNamespace(content=[])
        assert DeckAssistant(client=client).chat([{"role": "user", "text": "hi"}]) == "No response from AI."

"""
End-to-end CLI tests against a temporary database. Scryfall is replaced with
a fake client; no network access.

To run: pytest tests/test_cli.py -v
"""

from unittest.mock import MagicMock

import pytest

from cardverse.cli import main
from cardverse.db import close_connection
from cardverse.services.news import NewsFeedError, NewsItem


@pytest.fixture
def cli(tmp_path, capsys, monkeypatch):
    """Run the CLI with a fresh database; returns captured stdout."""
    db_path = str(tmp_path / "test.sqlite")
    monkeypatch.delenv("CARDVERSE_USER", raising=False)

    def _run(*argv):
        main(["--db", db_path, *argv])
        return capsys.readouterr().out

    yield _run
    close_connection()


@pytest.fixture
def scryfall(monkeypatch, fake_api, make_card):
    """Patch every CLI module's ScryfallAPI with a fake holding a few cards."""
    api = fake_api([
        make_card("Ezuri, Renegade Leader", type_line="Legendary Creature — Elf Warrior"),
        make_card("Llanowar Elves"),
        make_card("Sol Ring", type_line="Artifact", colors=[]),
        make_card("Forest", type_line="Basic Land — Forest", colors=[]),
    ])
    api.normalize_set_code = lambda s: "tst"
    api.get_card_named = lambda name, set_code=None, fuzzy=False: (api.cards.get(name.lower()), None)
    api.pick_print_image = lambda card, flags=None, preferred_set=None: ("https://img/x.jpg", "")
    monkeypatch.setattr("cardverse.cli.deck_cmd.ScryfallAPI", lambda: api)
    monkeypatch.setattr("cardverse.cli.inventory_cmd.ScryfallAPI", lambda: api)
    return api


class TestDbCommands:
    def test_init(self, cli):
        assert "Database initialized at" in cli("db", "init")
        assert "already up to date" in cli("db", "init")

    def test_settings(self, cli):
        assert "fetch_workers = 9" in cli("db", "settings", "fetch_workers", "9")
        assert "9" in cli("db", "settings", "fetch_workers")
        assert "Unknown setting" in cli("db", "settings", "nope")


class TestInventoryCommands:
    def test_add_list_remove(self, cli, scryfall):
        assert "Added 2x Sol Ring" in cli("inventory", "add", "Sol Ring", "-q", "2")
        assert "Updated quantity for Sol Ring (+1)" in cli("inv", "add", "Sol Ring")

        out = cli("inventory", "list")
        assert "Sol Ring" in out
        assert "Total copies in inventory: 3" in out

        assert "(2 left)" in cli("inventory", "remove", "1")
        assert "No inventory entry found" in cli("inventory", "remove", "99")

    def test_add_bad_quantity(self, cli, scryfall):
        assert "Error: Quantity must be at least 1" in cli("inventory", "add", "Sol Ring", "-q", "0")

    def test_list_empty(self, cli):
        assert "No cards found" in cli("inventory", "list", "--color", "R")

    def test_import_dry_run(self, cli, scryfall, tmp_path):
        path = tmp_path / "cards.csv"
        path.write_text("Count,Name\n4,Llanowar Elves\n1,Missing Card\n", encoding="utf-8")

        out = cli("inventory", "import", str(path), "--dry-run", "--workers", "2")
        assert "Auto-detected format: csv" in out
        assert "Cards added:   4" in out
        assert 'Card not found: "Missing Card"' in out
        assert scryfall.calls[0]["workers"] == 2
        assert "No cards found" in cli("inventory", "list")

    def test_import_unknown_table(self, cli, scryfall, tmp_path):
        path = tmp_path / "deck.txt"
        path.write_text("1 Sol Ring\n", encoding="utf-8")
        assert "Error: Unknown table" in cli("inventory", "import", str(path), "--table", "nope")


class TestDeckCommands:
    def test_import_save_and_show(self, cli, scryfall, tmp_path):
        path = tmp_path / "deck.txt"
        path.write_text("Commander:\n1 Ezuri, Renegade Leader\nDeck:\n1 Sol Ring\n1 Llanowar Elves\n97 Forest\n",
                        encoding="utf-8")

        out = cli("deck", "import", str(path), "--add-to-inventory")
        assert "EZURI, RENEGADE LEADER DECK" in out
        assert "Format:         Commander" in out
        assert "Saved deck #1" in out
        assert "Added 100 card(s) to inventory: 4 new row(s)" in out

        listing = cli("deck", "list")
        assert "Ezuri, Renegade Leader Deck" in listing

        shown = cli("deck", "show", "1")
        assert "Land (97):" in shown
        assert "[commander]" in shown

        assert "Deleted deck 1" in cli("deck", "delete", "1", "-y")
        assert "No decks saved yet." in cli("deck", "list")

    def test_notify_without_webhook_warns(self, cli, scryfall, tmp_path, monkeypatch):
        monkeypatch.delenv("DISCORD_WEBHOOK_URL", raising=False)
        path = tmp_path / "deck.txt"
        path.write_text("1 Sol Ring\n", encoding="utf-8")
        out = cli("deck", "import", str(path), "--notify", "--no-save")
        assert "Warning: Webhook URL not configured" in out
        assert "Saved deck" not in out

    def test_empty_deck(self, cli, scryfall, tmp_path):
        path = tmp_path / "deck.txt"
        path.write_text("\n", encoding="utf-8")
        assert "Please enter a deck list first." in cli("deck", "import", str(path))


class TestStats:
    def test_stats(self, cli, scryfall):
        cli("inventory", "add", "Llanowar Elves", "-q", "3")
        out = cli("stats")
        assert "Total Cards:       3" in out
        assert "Saved Decks:       0" in out


class TestCardCommand:
    def test_card_detail(self, cli, make_card, monkeypatch):
        api = MagicMock()
        api.get_card_by_id.return_value = make_card("Sol Ring", type_line="Artifact", colors=[], mana_cost="{1}")
        monkeypatch.setattr("cardverse.cli.search.ScryfallAPI", lambda: api)

        out = cli("card", "id-sol-ring")
        assert out.startswith("Sol Ring")
        assert "Colors:    C" in out
        assert "Price:     $0.25" in out
        api.get_card_by_id.assert_called_once_with("id-sol-ring")

    def test_card_not_found(self, cli, monkeypatch):
        api = MagicMock()
        api.get_card_by_id.return_value = None
        monkeypatch.setattr("cardverse.cli.search.ScryfallAPI", lambda: api)
        assert "No card found with ID: nope" in cli("card", "nope")


class TestNewsCommand:
    def test_lists_articles(self, cli, monkeypatch):
        item = NewsItem(title="Top Commanders", url="https://edhrec.com/a", date="2025-10-14", excerpt="Popular picks.")
        fetch = MagicMock(return_value=[item])
        monkeypatch.setattr("cardverse.cli.news.fetch_news", fetch)

        out = cli("news", "-n", "3")
        assert "2025-10-14   Top Commanders" in out
        assert "Popular picks." in out
        assert "https://edhrec.com/a" in out
        fetch.assert_called_once_with(limit=3)

    def test_feed_error(self, cli, monkeypatch):
        monkeypatch.setattr("cardverse.cli.news.fetch_news", MagicMock(side_effect=NewsFeedError("HTTP 503")))
        assert "Error: HTTP 503" in cli("news")

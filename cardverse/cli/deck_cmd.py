"""Deck commands: cardverse deck import/list/show/delete"""

import sys

from cardverse.db import DeckRepository, SettingsRepository, get_connection, init_db
from cardverse.services.deck_builder import DeckImporter, categorize_cards
from cardverse.services.discord import DiscordWebhook
from cardverse.services.reconcile import InventoryReconciler
from cardverse.services.scryfall import ScryfallAPI
from cardverse.utils import format_box


def register(subparsers):
    """Register the deck subcommand."""
    deck_parser = subparsers.add_parser("deck", help="Import and manage decks")
    deck_subparsers = deck_parser.add_subparsers(dest="deck_command", metavar="<subcommand>")

    # deck import
    import_parser = deck_subparsers.add_parser(
        "import",
        help="Import a deck list",
        description="Parse a pasted deck list, look every card up on Scryfall and save the deck.",
    )
    import_parser.add_argument("file", metavar="FILE", help="Deck list file ('-' for stdin)")
    import_parser.add_argument("--title", help="Deck title (default: '<commander> Deck')")
    import_parser.add_argument("--no-save", action="store_true", help="Show the result without saving the deck")
    import_parser.add_argument(
        "--add-to-inventory", action="store_true", help="Also merge the main deck into your inventory"
    )
    import_parser.add_argument(
        "--table", default="inventory", metavar="NAME",
        help="Inventory table to merge into (default: inventory; other tables use detected columns)",
    )
    import_parser.add_argument("--dry-run", action="store_true", help="Preview inventory changes only")
    import_parser.add_argument("--notify", action="store_true", help="Post found cards to the Discord webhook")
    import_parser.add_argument("--public", action="store_true", help="Mark the saved deck as public")
    import_parser.add_argument("--workers", type=int, metavar="N", help="Concurrent Scryfall lookups")
    import_parser.set_defaults(func=run_import)

    # deck list
    list_parser = deck_subparsers.add_parser("list", help="List your saved decks")
    list_parser.set_defaults(func=run_list)

    # deck show
    show_parser = deck_subparsers.add_parser("show", help="Show a saved deck grouped by card type")
    show_parser.add_argument("id", type=int, help="Deck ID")
    show_parser.set_defaults(func=run_show)

    # deck delete
    delete_parser = deck_subparsers.add_parser("delete", help="Delete a saved deck")
    delete_parser.add_argument("id", type=int, help="Deck ID")
    delete_parser.add_argument("-y", "--yes", action="store_true", help="Skip confirmation prompt")
    delete_parser.set_defaults(func=run_delete)

    deck_parser.set_defaults(func=lambda args: deck_parser.print_help())


def _read_text(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def run_import(args):
    """Run the deck import pipeline."""
    conn = get_connection(args.db_path)
    init_db(conn)
    settings = SettingsRepository(conn)

    try:
        text = _read_text(args.file)
    except OSError as e:
        print(f"Error: {e}")
        return

    notifier = None
    if args.notify or settings.get_bool("notify_discord"):
        try:
            notifier = DiscordWebhook.from_env()
        except ValueError as e:
            print(f"Warning: {e}")

    workers = args.workers or settings.get_int("fetch_workers", 5)
    importer = DeckImporter(ScryfallAPI(), workers=workers, notifier=notifier)

    try:
        result = importer.run(text, title=args.title)
    except ValueError as e:
        print(f"Error: {e}")
        return

    print()
    print(format_box(result.title.upper()))
    print(f"Cards:          {result.total_cards}")
    print(f"Format:         {result.mtg_type}")
    print(f"Commander:      {result.commander_name or '-'} ({result.commander.method})")
    print(f"Color identity: {result.color_identity or 'C'}")
    print()

    for category, cards in result.categories.items():
        if not cards:
            continue
        print(f"{category} ({sum(c.count for c in cards)}):")
        for c in cards:
            marker = "" if c.card else "  [not found]"
            print(f"  {c.count:>3} {c.name}{marker}")
        print()

    if result.logs:
        print(f"Messages ({len(result.logs)}):")
        for line in result.logs:
            print(f"  - {line}")
        print()

    if not args.no_save:
        deck_id = importer.save(result, conn, args.user_id, is_public=args.public)
        print(f"Saved deck #{deck_id}: {result.title}")

    if args.add_to_inventory:
        try:
            reconciler = InventoryReconciler(conn, user_id=args.user_id, table=args.table, dry_run=args.dry_run)
        except ValueError as e:
            print(f"Error: {e}")
            return
        rec = importer.add_to_inventory(result, reconciler)
        prefix = "Would add" if rec.dry_run else "Added"
        print(f"{prefix} {rec.copies} card(s) to {args.table}: "
              f"{rec.inserted} new row(s), {rec.updated} updated, {rec.skipped} skipped")
        for error in rec.errors:
            print(f"  - {error}")


def run_list(args):
    """List the user's decks."""
    conn = get_connection(args.db_path)
    init_db(conn)

    decks = DeckRepository(conn).list_for_user(args.user_id)
    if not decks:
        print("No decks saved yet.")
        return

    print(f"{'ID':>5}  {'Title':<32}  {'Commander':<28}  {'Colors':<6}  {'Type':<12}  {'Cards':>5}")
    print("-" * 100)
    for d in decks:
        print(
            f"{d.id:>5}  "
            f"{d.title[:32]:<32}  "
            f"{(d.commander_name or '-')[:28]:<28}  "
            f"{(d.color_identity or 'C'):<6}  "
            f"{(d.mtg_type or '-'):<12}  "
            f"{d.card_count:>5}"
        )
    print("-" * 100)
    print(f"{len(decks)} deck(s)")


def run_show(args):
    """Show a deck grouped by card type, using cached card data."""
    from cardverse.db import CatalogRepository
    from cardverse.importers.decklist import DeckEntry

    conn = get_connection(args.db_path)
    init_db(conn)

    deck = DeckRepository(conn).get(args.id, args.user_id)
    if not deck:
        print(f"No deck found with ID: {args.id}")
        return

    catalog = CatalogRepository(conn)
    entries = []
    cards = {}
    for c in deck.cards:
        name = c.get("name", "")
        entries.append(DeckEntry(name=name, count=c.get("count", 1), section=c.get("section", "main")))
        cached = catalog.get_by_name(name)
        cards[name] = cached.get_scryfall_data() if cached else None

    print()
    print(format_box(deck.title.upper()))
    print(f"Commander:      {deck.commander_name or '-'}")
    print(f"Color identity: {deck.color_identity or 'C'}")
    print(f"Format:         {deck.mtg_type or '-'}")
    print(f"Cards:          {deck.card_count}")
    print(f"Created:        {deck.created_at}")
    print()

    for category, grouped in categorize_cards(entries, cards).items():
        if not grouped:
            continue
        print(f"{category} ({sum(c.count for c in grouped)}):")
        for c in grouped:
            section = "" if c.entry.section == "main" else f"  [{c.entry.section}]"
            print(f"  {c.count:>3} {c.name}{section}")
        print()


def run_delete(args):
    """Delete a deck."""
    conn = get_connection(args.db_path)
    init_db(conn)
    repo = DeckRepository(conn)

    deck = repo.get(args.id, args.user_id)
    if not deck:
        print(f"No deck found with ID: {args.id}")
        return

    if not args.yes:
        print(f"About to delete deck: {deck.title} ({deck.card_count} cards)")
        confirm = input("Are you sure? (y/N): ").strip().lower()
        if confirm != "y":
            print("Cancelled.")
            return

    repo.delete(args.id, args.user_id)
    conn.commit()
    print(f"Deleted deck {args.id}: {deck.title}")

"""Inventory commands: cardverse inventory add/remove/list/import"""

from cardverse.db import InventoryRepository, SettingsRepository, get_connection, init_db
from cardverse.db.models import InventoryFilter, VariantFlags
from cardverse.importers import IMPORTERS, detect_format, get_importer
from cardverse.services.reconcile import InventoryReconciler, add_card
from cardverse.services.scryfall import ScryfallAPI


def register(subparsers):
    """Register the inventory subcommand."""
    inv_parser = subparsers.add_parser("inventory", aliases=["inv"], help="Manage your card inventory")
    inv_subparsers = inv_parser.add_subparsers(dest="inventory_command", metavar="<subcommand>")

    # inventory add
    add_parser = inv_subparsers.add_parser("add", help="Add copies of a card")
    add_parser.add_argument("name", help="Card name")
    add_parser.add_argument("-q", "--quantity", type=int, default=1, help="Copies to add (default: 1)")
    add_parser.add_argument("--set", dest="set_name", metavar="SET", help="Set code or name")
    add_parser.add_argument("--foil", action="store_true", help="Foil copy")
    add_parser.add_argument("--borderless", action="store_true", help="Borderless printing")
    add_parser.add_argument("--showcase", action="store_true", help="Showcase printing")
    add_parser.add_argument("--extended-art", action="store_true", help="Extended art printing")
    add_parser.set_defaults(func=run_add)

    # inventory remove
    remove_parser = inv_subparsers.add_parser("remove", help="Remove one copy of an inventory row")
    remove_parser.add_argument("id", type=int, help="Inventory row ID")
    remove_parser.set_defaults(func=run_remove)

    # inventory list
    list_parser = inv_subparsers.add_parser(
        "list",
        help="List your inventory",
        description="Query your inventory, newest first, with optional filters.",
    )
    list_parser.add_argument("--name", metavar="NAME", help="Filter by card name (partial match)")
    list_parser.add_argument("--set", dest="set_name", metavar="SET", help="Filter by set name")
    list_parser.add_argument("--min-qty", type=int, metavar="N", help="Minimum quantity")
    list_parser.add_argument("--max-qty", type=int, metavar="N", help="Maximum quantity")
    list_parser.add_argument("--min-price", type=float, metavar="USD", help="Minimum price")
    list_parser.add_argument("--max-price", type=float, metavar="USD", help="Maximum price")
    list_parser.add_argument(
        "--color", dest="colors", action="append", default=[], metavar="C",
        help="Colour filter: W, U, B, R, G or Colorless (repeatable)",
    )
    list_parser.add_argument(
        "--type", dest="types", action="append", default=[], metavar="TYPE",
        help="Type line must contain TYPE (repeatable)",
    )
    list_parser.add_argument("--page", type=int, default=1, metavar="N", help="Page number (default: 1)")
    list_parser.set_defaults(func=run_list)

    # inventory import
    import_parser = inv_subparsers.add_parser(
        "import",
        help="Import cards from a CSV or deck list file",
        description="Resolve every row on Scryfall and merge it into an inventory table.",
    )
    import_parser.add_argument("file", metavar="FILE", help="File to import")
    import_parser.add_argument(
        "-f", "--format",
        choices=list(IMPORTERS.keys()) + ["auto"],
        default="auto",
        help="Import format (default: auto-detect)",
    )
    import_parser.add_argument(
        "--table", default="inventory", metavar="NAME",
        help="Target table (default: inventory; other tables use detected columns)",
    )
    import_parser.add_argument("--dry-run", action="store_true", help="Preview import without saving to database")
    import_parser.add_argument("--workers", type=int, metavar="N", help="Concurrent Scryfall lookups")
    import_parser.set_defaults(func=run_import)

    inv_parser.set_defaults(func=lambda args: inv_parser.print_help())


def run_add(args):
    """Add copies of a card to the inventory."""
    conn = get_connection(args.db_path)
    init_db(conn)

    flags = VariantFlags(
        borderless=args.borderless,
        showcase=args.showcase,
        extended_art=args.extended_art,
        foil=args.foil,
    )
    reconciler = InventoryReconciler(conn, user_id=args.user_id)

    try:
        result = add_card(ScryfallAPI(), reconciler, args.name, args.quantity, args.set_name, flags)
    except ValueError as e:
        print(f"Error: {e}")
        return

    if result.errors:
        print(f"Error: {result.errors[0]}")
    elif result.updated:
        print(f"Updated quantity for {args.name} (+{args.quantity})")
    else:
        print(f"Added {args.quantity}x {args.name}")


def run_remove(args):
    """Remove one copy of an inventory row."""
    conn = get_connection(args.db_path)
    init_db(conn)
    repo = InventoryRepository(conn)

    entry = repo.get(args.id, args.user_id)
    if not entry:
        print(f"No inventory entry found with ID: {args.id}")
        return

    remaining = repo.remove_one(args.id, args.user_id)
    conn.commit()
    if remaining:
        print(f"Removed one {entry.name} ({remaining} left)")
    else:
        print(f"Removed {entry.name} from inventory")


def _flags(e) -> str:
    names = [label for label, on in (
        ("foil", e.foil), ("borderless", e.borderless), ("showcase", e.showcase), ("ext", e.extended_art),
    ) if on]
    return ",".join(names)


def run_list(args):
    """List inventory rows."""
    conn = get_connection(args.db_path)
    init_db(conn)

    repo = InventoryRepository(conn)
    page_size = SettingsRepository(conn).get_int("page_size", 25)
    filters = InventoryFilter(
        name=args.name,
        set_name=args.set_name,
        min_quantity=args.min_qty,
        max_quantity=args.max_qty,
        min_price=args.min_price,
        max_price=args.max_price,
        colors=args.colors,
        types=args.types,
    )

    entries = repo.list_all(args.user_id, filters, page=args.page, page_size=page_size)
    if not entries:
        print("No cards found matching your criteria.")
        return

    print(f"{'ID':>6}  {'Name':<30}  {'Set':<24}  {'Qty':>4}  {'Price':>8}  {'Colors':<8}  {'Flags':<16}")
    print("-" * 110)

    for e in entries:
        price = f"${e.price:.2f}" if e.price is not None else "-"
        colors = "".join(c if c != "Colorless" else "C" for c in e.colors)
        print(
            f"{e.id:>6}  "
            f"{e.name[:30]:<30}  "
            f"{(e.set_name or '-')[:24]:<24}  "
            f"{e.quantity:>4}  "
            f"{price:>8}  "
            f"{colors:<8}  "
            f"{_flags(e):<16}"
        )

    print("-" * 110)
    print(f"Page {args.page}: showing {len(entries)} row(s)")

    total = repo.count(args.user_id)
    print(f"(Total copies in inventory: {total})")


def run_import(args):
    """Import a file into an inventory table."""
    conn = get_connection(args.db_path)
    init_db(conn)

    if args.format == "auto":
        try:
            format_name = detect_format(args.file)
            print(f"Auto-detected format: {format_name}")
        except OSError as e:
            print(f"Error: {e}")
            return
    else:
        format_name = args.format

    importer = get_importer(format_name)

    try:
        reconciler = InventoryReconciler(conn, user_id=args.user_id, table=args.table, dry_run=args.dry_run)
    except ValueError as e:
        print(f"Error: {e}")
        return

    workers = args.workers or SettingsRepository(conn).get_int("fetch_workers", 5)

    print(f"Importing from {args.file} ({importer.format_name} format) into {args.table}...")
    if args.dry_run:
        print("(Dry run - no changes will be saved)")
    print()

    try:
        result = importer.import_file(args.file, ScryfallAPI(), reconciler, workers=workers)
    except (OSError, ValueError) as e:
        print(f"Error: {e}")
        return

    print()
    print("=" * 50)
    print("IMPORT SUMMARY".center(50))
    print("=" * 50)
    print(f"Total rows:    {result.total_rows}")
    print(f"Cards added:   {result.cards_added}")
    print(f"Rows inserted: {result.rows_inserted}")
    print(f"Rows updated:  {result.rows_updated}")
    print(f"Cards skipped: {result.cards_skipped}")

    if result.errors:
        print()
        print(f"Errors ({len(result.errors)}):")
        for error in result.errors[:10]:  # Show first 10 errors
            print(f"  - {error}")
        if len(result.errors) > 10:
            print(f"  ... and {len(result.errors) - 10} more")

    print("=" * 50)

    if args.dry_run:
        print("\nDry run complete. No changes were saved.")
    else:
        print(f"\nImport complete. Database: {args.db_path}")

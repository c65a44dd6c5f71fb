"""Stats command: cardverse stats"""

from cardverse.db import DeckRepository, InventoryRepository, get_connection, init_db
from cardverse.utils import CATEGORY_ORDER, OTHER_CATEGORY, format_box


def register(subparsers):
    """Register the stats subcommand."""
    parser = subparsers.add_parser(
        "stats",
        help="Show inventory statistics",
        description="Display summary statistics about your inventory, counted in copies.",
    )
    parser.add_argument("--top", type=int, default=10, metavar="N", help="Sets to show (default: 10)")
    parser.set_defaults(func=run)


def run(args):
    """Run the stats command."""
    conn = get_connection(args.db_path)
    init_db(conn)

    stats = InventoryRepository(conn).stats(args.user_id)
    decks = DeckRepository(conn).list_for_user(args.user_id)

    print()
    print(format_box("INVENTORY STATISTICS"))
    print()

    print(f"Total Cards:       {stats['total_cards']:,}")
    print(f"Unique Cards:      {stats['unique_cards']:,}")
    print(f"Inventory Rows:    {stats['rows']:,}")
    print(f"Saved Decks:       {len(decks):,}")
    print()

    if stats["by_color"]:
        print("By Color:")
        for color, count in sorted(stats["by_color"].items(), key=lambda kv: -kv[1]):
            print(f"  {color:<12} {count:,}")
        print()

    if stats["by_type"]:
        print("By Type:")
        for category in CATEGORY_ORDER + [OTHER_CATEGORY]:
            if category in stats["by_type"]:
                print(f"  {category:<12} {stats['by_type'][category]:,}")
        print()

    if stats["by_rarity"]:
        print("By Rarity:")
        for rarity, count in sorted(stats["by_rarity"].items()):
            print(f"  {rarity:<12} {count:,}")
        print()

    if stats["total_value"] > 0:
        print(f"Total Value:       ${stats['total_value']:,.2f}")
        print()

    if stats["by_set"]:
        print("Top Sets:")
        top = sorted(stats["by_set"].items(), key=lambda kv: -kv[1])[:args.top]
        for set_name, count in top:
            print(f"  {set_name[:40]:<40} {count:,}")
        print()

    print("=" * 50)

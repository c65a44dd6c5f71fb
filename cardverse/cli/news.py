"""News command: cardverse news"""

from cardverse.services.news import NewsFeedError, fetch_news
from cardverse.utils import format_box


def register(subparsers):
    """Register the news subcommand."""
    parser = subparsers.add_parser(
        "news",
        help="Show the latest EDHREC articles",
        description="List recent articles from the EDHREC RSS feed.",
    )
    parser.add_argument("-n", "--limit", type=int, default=10, metavar="N", help="Articles to show (default: 10)")
    parser.set_defaults(func=run)


def run(args):
    """Run the news command."""
    try:
        items = fetch_news(limit=args.limit)
    except NewsFeedError as e:
        print(f"Error: {e}")
        return

    if not items:
        print("No news items found.")
        return

    print()
    print(format_box("EDHREC NEWS"))
    print()
    for item in items:
        print(f"{item.date or '?':<12} {item.title}")
        if item.excerpt:
            print(f"             {item.excerpt}")
        print(f"             {item.url}")
        print()

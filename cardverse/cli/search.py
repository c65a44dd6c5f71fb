"""Scryfall search commands: cardverse search / card / prints / autocomplete"""

from cardverse.services.scryfall import ScryfallAPI, build_search_query, card_colors, card_image_urls, card_price

STYLE_CHOICES = ["normal", "foil", "etched", "borderless", "showcase", "extendedart", "fullart"]


def register(subparsers):
    """Register the search, card, prints and autocomplete subcommands."""
    parser = subparsers.add_parser(
        "search",
        help="Search Scryfall",
        description="Search Scryfall with a raw query and/or advanced filters.",
    )
    parser.add_argument("query", nargs="?", default="", help="Raw Scryfall query (e.g. 'o:draw t:elf')")
    parser.add_argument("--name", help="Exact card name")
    parser.add_argument("--set", dest="set_code", metavar="CODE", help="Set code")
    parser.add_argument("--type", dest="type_line", metavar="TYPE", help="Type line contains")
    parser.add_argument("--color", dest="colors", action="append", default=[], metavar="C",
                        help="Card has at least these colours (repeatable)")
    parser.add_argument("--cmc", help="Mana value")
    parser.add_argument("--rarity", choices=["common", "uncommon", "rare", "mythic"])
    parser.add_argument("--power")
    parser.add_argument("--toughness")
    parser.add_argument("--layout")
    parser.add_argument("--format", dest="format_name", metavar="FORMAT", help="Legal in format")
    parser.add_argument("--min-price", type=float, metavar="USD")
    parser.add_argument("--max-price", type=float, metavar="USD")
    parser.add_argument("--style", dest="styles", action="append", default=[], choices=STYLE_CHOICES)
    parser.add_argument("--available", dest="availability", action="append", default=[],
                        metavar="TAG", help="Availability tag, e.g. paper, arena, mtgo (repeatable)")
    parser.add_argument("--page", type=int, default=1, metavar="N")
    parser.set_defaults(func=run_search)

    card_parser = subparsers.add_parser("card", help="Show one card by Scryfall ID")
    card_parser.add_argument("scryfall_id", metavar="ID", help="Scryfall card ID")
    card_parser.set_defaults(func=run_card)

    prints_parser = subparsers.add_parser("prints", help="List every printing of a card")
    prints_parser.add_argument("name", help="Exact card name")
    prints_parser.set_defaults(func=run_prints)

    auto_parser = subparsers.add_parser("autocomplete", help="Suggest card names")
    auto_parser.add_argument("partial", help="Partial card name")
    auto_parser.set_defaults(func=run_autocomplete)


def _price(card) -> str:
    price = card_price(card)
    return f"${price:.2f}" if price is not None else "-"


def run_search(args):
    """Run a Scryfall search."""
    query = build_search_query(
        name=args.name,
        set_code=args.set_code,
        type_line=args.type_line,
        colors=[c.upper() for c in args.colors],
        cmc=args.cmc,
        rarity=args.rarity,
        power=args.power,
        toughness=args.toughness,
        text=args.query,
        layout=args.layout,
        format=args.format_name,
        price_min=args.min_price,
        price_max=args.max_price,
        styles=args.styles,
        availability=args.availability,
    )
    if not query:
        print("Error: give a query or at least one filter.")
        return

    page = ScryfallAPI().search(query, page=args.page)
    if page.error:
        print(f"Error: {page.error}")
        return
    if not page.cards:
        print(f"No cards found for: {query}")
        return

    print(f"{'Name':<36}  {'Set':<6}  {'Type':<36}  {'Price':>8}")
    print("-" * 92)
    for card in page.cards:
        print(
            f"{card.get('name', '')[:36]:<36}  "
            f"{card.get('set', '').upper():<6}  "
            f"{(card.get('type_line') or '')[:36]:<36}  "
            f"{_price(card):>8}"
        )
    print("-" * 92)
    more = f" (more on page {args.page + 1})" if page.has_more else ""
    print(f"Page {args.page}: {len(page.cards)} of {page.total} card(s){more}")


def run_card(args):
    """Show a single card's details."""
    card = ScryfallAPI().get_card_by_id(args.scryfall_id)
    if not card:
        print(f"No card found with ID: {args.scryfall_id}")
        return

    front, back = card_image_urls(card)
    colors = "".join(c if c != "Colorless" else "C" for c in card_colors(card))

    print(card.get("name", ""))
    if card.get("mana_cost"):
        print(f"  Mana cost: {card['mana_cost']}")
    print(f"  Type:      {card.get('type_line', '')}")
    print(f"  Colors:    {colors or '-'}")
    print(f"  Set:       {card.get('set_name', '')} ({card.get('set', '').upper()} #{card.get('collector_number', '')})")
    print(f"  Rarity:    {card.get('rarity', '')}")
    print(f"  Price:     {_price(card)}")
    if card.get("oracle_text"):
        print()
        print(card["oracle_text"])
    print()
    for url in (front, back, card.get("scryfall_uri")):
        if url:
            print(url)


def run_prints(args):
    """List every printing of a card."""
    prints = ScryfallAPI().get_prints(args.name)
    if not prints:
        print(f"No printings found for: {args.name}")
        return

    print(f"{'Set':<6}  {'Set Name':<36}  {'#':<6}  {'Released':<10}  {'Price':>8}")
    print("-" * 76)
    for p in prints:
        print(
            f"{p.get('set', '').upper():<6}  "
            f"{p.get('set_name', '')[:36]:<36}  "
            f"{p.get('collector_number', '')[:6]:<6}  "
            f"{p.get('released_at', ''):<10}  "
            f"{_price(p):>8}"
        )
    print(f"{len(prints)} printing(s)")


def run_autocomplete(args):
    """Print card name suggestions."""
    for name in ScryfallAPI().autocomplete(args.partial):
        print(name)

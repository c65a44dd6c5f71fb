"""Commander and assistant commands: cardverse commander random/build, cardverse chat"""

import anthropic

from cardverse.services.assistant import DeckAssistant
from cardverse.services.scryfall import ScryfallAPI, card_image_urls


def register(subparsers):
    """Register the commander and chat subcommands."""
    cmd_parser = subparsers.add_parser("commander", help="Commander helpers")
    cmd_subparsers = cmd_parser.add_subparsers(dest="commander_command", metavar="<subcommand>")

    random_parser = cmd_subparsers.add_parser("random", help="Pick a random legal commander")
    random_parser.set_defaults(func=run_random)

    build_parser = cmd_subparsers.add_parser("build", help="Have Claude write a 100-card Commander deck")
    build_parser.add_argument("commander", nargs="?", help="Commander to build around (default: Claude picks)")
    build_parser.add_argument("-o", "--output", metavar="FILE", help="Also write the deck list to FILE")
    build_parser.set_defaults(func=run_build)

    cmd_parser.set_defaults(func=lambda args: cmd_parser.print_help())

    chat_parser = subparsers.add_parser(
        "chat",
        help="Chat with the deckbuilding assistant",
        description="Interactive chat. An empty line or Ctrl-D ends the session.",
    )
    chat_parser.set_defaults(func=run_chat)


def run_random(args):
    """Print a random commander."""
    card = ScryfallAPI().random_commander()
    if not card:
        print("Error: could not fetch a random commander.")
        return

    image, _ = card_image_urls(card)
    print(card["name"])
    print(f"  {card.get('type_line', '')}")
    print(f"  Color identity: {''.join(card.get('color_identity') or []) or 'C'}")
    if card.get("scryfall_uri"):
        print(f"  {card['scryfall_uri']}")
    if image:
        print(f"  {image}")


def run_build(args):
    """Generate a Commander deck."""
    print("Asking Claude for a deck...")
    try:
        generated = DeckAssistant().build_commander_deck(args.commander)
    except (anthropic.APIError, ValueError) as e:
        print(f"Error: {e}")
        return

    print()
    print(generated.text)
    print()
    print(f"{generated.deck.total_cards()} cards ({generated.model})")
    for warning in generated.deck.warnings:
        print(f"  - {warning}")

    if args.output:
        with open(args.output, "w", encoding="utf-8") as f:
            f.write(generated.text + "\n")
        print(f"Saved to {args.output} (import with: cardverse deck import {args.output})")


def run_chat(args):
    """Interactive chat loop."""
    assistant = DeckAssistant()
    messages = []

    while True:
        try:
            text = input("you> ").strip()
        except EOFError:
            print()
            break
        if not text:
            break

        messages.append({"role": "user", "text": text})
        try:
            reply = assistant.chat(messages)
        except (anthropic.APIError, ValueError) as e:
            print(f"Error: {e}")
            messages.pop()
            continue

        messages.append({"role": "ai", "text": reply})
        print(f"ai> {reply}")

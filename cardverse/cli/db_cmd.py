"""Database management commands: cardverse db init/settings"""

from cardverse.db import SCHEMA_VERSION, SettingsRepository, get_connection, init_db


def register(subparsers):
    """Register the db subcommand."""
    db_parser = subparsers.add_parser("db", help="Database management commands")
    db_subparsers = db_parser.add_subparsers(dest="db_command", metavar="<subcommand>")

    # db init
    init_parser = db_subparsers.add_parser("init", help="Initialize the database")
    init_parser.add_argument(
        "--force", action="store_true", help="Recreate tables even if they exist"
    )
    init_parser.set_defaults(func=run_init)

    # db settings
    settings_parser = db_subparsers.add_parser(
        "settings", help="Show settings, or set one with KEY VALUE"
    )
    settings_parser.add_argument("key", nargs="?", help="Setting name (e.g. fetch_workers)")
    settings_parser.add_argument("value", nargs="?", help="New value")
    settings_parser.set_defaults(func=run_settings)

    db_parser.set_defaults(func=lambda args: db_parser.print_help())


def run_init(args):
    """Initialize the database."""
    conn = get_connection(args.db_path)

    created = init_db(conn, force=args.force)

    if created:
        print(f"Database initialized at: {args.db_path}")
        print(f"Schema version: {SCHEMA_VERSION}")
    else:
        print(f"Database already up to date (version {SCHEMA_VERSION})")
        print(f"Location: {args.db_path}")


def run_settings(args):
    """Show or change settings."""
    conn = get_connection(args.db_path)
    init_db(conn)
    settings = SettingsRepository(conn)

    if args.key and args.value is not None:
        settings.set(args.key, args.value)
        conn.commit()
        print(f"{args.key} = {args.value}")
        return

    values = settings.all()
    if args.key:
        if args.key not in values:
            print(f"Unknown setting: {args.key}")
            return
        values = {args.key: values[args.key]}

    for key, value in values.items():
        print(f"{key:<20} {value}")

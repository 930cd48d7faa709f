import argparse
import logging
import sys

from clipstash import __version__
from clipstash.config import DATA_DIR, LOG_PATH, RETENTION_DAYS
from clipstash.errors import ClipstashError
from clipstash.models import ClipboardItem
from clipstash.search import SearchResult

COMMANDS = ["run", "search", "list", "favorite", "delete", "prune", "clear", "stats"]


def setup_logging(verbose: bool = False) -> None:
    DATA_DIR.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.FileHandler(LOG_PATH),
            logging.StreamHandler(sys.stderr),
        ],
    )


def format_item(item: ClipboardItem) -> str:
    star = "*" if item.is_favorite else " "
    when = item.timestamp.strftime("%Y-%m-%d %H:%M")
    return f"{star} {item.id[:8]}  {when}  {item.content_type.display_name:<9}  {item.preview}"


def format_result(result: SearchResult) -> str:
    return f"{format_item(result.item)}  ({result.match_type.value} {result.score:.2f})"


def build_service(with_pasteboard: bool = False, fuzzy: bool | None = None):
    from clipstash.app import ClipstashService

    kwargs = {}
    if fuzzy is not None:
        kwargs["fuzzy_search"] = fuzzy
    if with_pasteboard:
        from clipstash.pasteboard import MacPasteboard

        kwargs["pasteboard"] = MacPasteboard()
    return ClipstashService(**kwargs)


def resolve_item_id(service, prefix: str) -> str | None:
    """Accept a full id or the 8-character prefix printed by `list`."""
    if service.storage.get_item(prefix):
        return prefix
    matches = [item.id for item in service.storage.get_all() if item.id.startswith(prefix)]
    return matches[0] if len(matches) == 1 else None


def run_app(verbose: bool = False) -> int:
    """Capture clipboard changes in the foreground until interrupted."""
    setup_logging(verbose)
    service = build_service(with_pasteboard=True)
    service.run_forever()
    return 0


def cmd_search(args) -> int:
    query = " ".join(args.query)
    with build_service(fuzzy=not args.exact) as service:
        results = service.search(query, limit=args.limit)
    if not results:
        print(f'No results for "{query}"')
        return 1
    for result in results:
        print(format_result(result))
    return 0


def cmd_list(args) -> int:
    with build_service() as service:
        items = service.storage.get_recent(limit=args.limit, favorites_only=args.favorites)
    if not items:
        print("(No clipboard history)")
        return 0
    for item in items:
        print(format_item(item))
    return 0


def cmd_favorite(args) -> int:
    with build_service() as service:
        item_id = resolve_item_id(service, args.item_id)
        if item_id is None:
            print(f"No item matching {args.item_id}")
            return 1
        favorite = service.storage.toggle_favorite(item_id)
    print("Added to favorites." if favorite else "Removed from favorites.")
    return 0


def cmd_delete(args) -> int:
    with build_service() as service:
        item_id = resolve_item_id(service, args.item_id)
        if item_id is None:
            print(f"No item matching {args.item_id}")
            return 1
        service.storage.delete_item(item_id)
    print("Deleted.")
    return 0


def cmd_prune(args) -> int:
    with build_service() as service:
        removed = service.storage.delete_older_than(args.days)
    print(f"Removed {removed} items older than {args.days} days.")
    return 0


def cmd_clear(args) -> int:
    with build_service() as service:
        if args.all:
            service.storage.clear_all()
            print("Cleared all clipboard history.")
        else:
            removed = service.storage.clear_history()
            print(f"Cleared {removed} items (favorites kept).")
    return 0


def cmd_stats(args) -> int:
    with build_service() as service:
        print(f"Items:       {service.storage.count()}")
        print(f"Favorites:   {service.storage.count_favorites()}")
        print(f"Schema:      v{service.storage.schema_version()}")
        print(f"Blob bytes:  {service.blob_store.total_size()}")
    return 0


HANDLERS = {
    "search": cmd_search,
    "list": cmd_list,
    "favorite": cmd_favorite,
    "delete": cmd_delete,
    "prune": cmd_prune,
    "clear": cmd_clear,
    "stats": cmd_stats,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="clipstash",
        description="clipstash - searchable clipboard history",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  (none), run       Capture clipboard changes in the foreground
  search QUERY      Fuzzy search the history
  list              Show the most recent items
  favorite ID       Toggle favorite on an item
  delete ID         Delete an item
  prune             Delete non-favorite items older than --days
  clear             Delete history (favorites kept unless --all)
  stats             Show history size and schema version

Examples:
  clipstash search git push    # Find a copied command
  clipstash list --favorites   # Show favorites only
  clipstash prune --days 7     # Drop anything older than a week
""",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("command", nargs="?", choices=COMMANDS, help="Command to run")
    parser.add_argument("args", nargs="*", help="Search query or item id")
    parser.add_argument("--limit", type=int, default=None, help="Maximum items to show")
    parser.add_argument("--favorites", action="store_true", help="list: favorites only")
    parser.add_argument("--exact", action="store_true", help="search: disable fuzzy matching")
    parser.add_argument("--days", type=int, default=RETENTION_DAYS or 30, help="prune: age threshold in days")
    parser.add_argument("--all", action="store_true", help="clear: include favorites")
    return parser


def main(argv: list[str] | None = None):
    parser = build_parser()
    args = parser.parse_intermixed_args(argv)

    if args.command in (None, "run"):
        sys.exit(run_app(args.verbose))

    if args.command == "search":
        if not args.args:
            parser.error("search needs a query")
        args.query = args.args
    elif args.command in ("favorite", "delete"):
        if len(args.args) != 1:
            parser.error(f"{args.command} needs exactly one item id")
        args.item_id = args.args[0]
    elif args.command == "list" and args.limit is None:
        args.limit = 20

    try:
        sys.exit(HANDLERS[args.command](args))
    except ClipstashError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()

"""CLI entry point — dispatches icecache subcommands."""
import argparse
import logging
import sys

from icecache.errors import ConfigError


def _configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s %(levelname)-5s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
    )


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="icecache",
        description="Incremental content-identity cache for ICE container files",
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    # icecache scan
    p_scan = sub.add_parser("scan", help="Scan a directory and update the cache")
    p_scan.add_argument("path", nargs="?", default=None,
                        help="Directory to scan (default: [scan] root from config)")
    p_scan.add_argument("--force", action="store_true",
                        help="Re-read and re-hash every container even if its mtime/size are unchanged")
    p_scan.add_argument("--prune", action="store_true",
                        help="Drop cache records for files that no longer exist")
    p_scan.add_argument("--db", default=None, help="Path to cache.duckdb")
    p_scan.add_argument("--debug", action="store_true",
                        help="Log every path with its classification")
    p_scan.add_argument("--quiet", action="store_true",
                        help="Only print the final summary")

    # icecache status
    p_status = sub.add_parser("status", help="Show what the cache currently tracks")
    p_status.add_argument("--db", default=None, help="Path to cache.duckdb")

    # icecache contents
    p_contents = sub.add_parser("contents", help="Index entries inside containers (not yet available)")
    p_contents.add_argument("path", nargs="?", default=".", help="Directory or container")

    # icecache hash
    p_hash = sub.add_parser("hash", help="Print the SHA-256 digest of files")
    p_hash.add_argument("paths", nargs="+", metavar="FILE", help="Files to hash")

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    _configure_logging(getattr(args, "debug", False))
    if getattr(args, "quiet", False):
        logging.getLogger("icecache").setLevel(logging.WARNING)

    try:
        if args.command == "scan":
            from icecache.commands.scan import cmd_scan
            cmd_scan(args)
        elif args.command == "status":
            from icecache.commands.status import cmd_status
            cmd_status(args)
        elif args.command == "contents":
            from icecache.commands.contents import cmd_contents
            cmd_contents(args)
        elif args.command == "hash":
            from icecache.commands.hash import cmd_hash
            cmd_hash(args)
        else:
            parser.print_help()
            sys.exit(1)
    except ConfigError as e:
        print(f"icecache: bad config: {e}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        sys.stderr.write("\n")
        sys.exit(130)


if __name__ == "__main__":
    main()

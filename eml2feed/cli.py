"""
Import archived feed messages (EML) into the feed reader database.

Usage:
    eml2feed --dburl URL --user NAME --feed FEED_URL messages/
    eml2feed --dburl URL --user NAME --feedmap feeds.map --dry --dump out.json messages/
    eml2feed --dburl URL --update out.json

Exit codes:
    0   success
    1   wrong command line
    2   import failed
"""

import argparse
import logging
import sys
from typing import List, Optional

from .errors import ConfigError, Eml2FeedError
from .logging_config import configure_logging
from .pipeline import RunStats, run_import
from .settings import (
    ImportConfig,
    default_batch_size,
    default_database_url,
    default_retries,
    default_retry_delay,
)

logger = logging.getLogger(__name__)

EPILOG = """\
Feed map file:
  One rule per line, '<entry URL substring> => <feed URL>'. Rules are
  checked in file order and the first substring found in the entry URL
  wins. Use 'none' as the feed URL to drop matching messages. Lines
  starting with '#' are comments.

    xkcd.com => https://xkcd.com/rss.xml
    http://blogs.technet.com => none

Troubleshooting:
  - 'feed not found for URL' warnings list messages no rule matched; add
    a rule or rerun with --quiet to hide them.
  - 'you must run the SQL migrations' means the database schema does not
    match this tool; upgrade the feed reader first.
  - Build once with --dry --dump entries.json, inspect the dump, then
    import it with 'eml2feed --dburl URL entries.json'.
"""


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message):
        raise ConfigError(message)


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="eml2feed",
        description="Import feed articles stored as EML messages into the feed reader database",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "path",
        nargs="?",
        default="",
        help="EML file, directory with EML files, or JSON dump",
    )
    parser.add_argument(
        "--dburl",
        default=default_database_url(),
        help="Database URL (default: $DATABASE_URL)",
    )
    parser.add_argument("--user", default="", help="Feed reader username")
    parser.add_argument("--feed", default="", help="Feed URL receiving every message")
    parser.add_argument("--feedmap", default="", help="Feed map file (see below)")
    parser.add_argument("--mark", action="store_true", help="Mark imported entries as read")
    parser.add_argument(
        "--update", action="store_true", help="Overwrite entries that already exist"
    )
    parser.add_argument(
        "--remove", action="store_true", help="Remove existing entries before inserting"
    )
    parser.add_argument("--dry", action="store_true", help="Do not touch the database")
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Hide warnings about messages without a feed and the final summary",
    )
    parser.add_argument("--dump", default="", help="Write built entries to a JSON file")
    parser.add_argument(
        "--batch",
        type=int,
        default=default_batch_size(),
        help="Entries per database transaction (default: %(default)s)",
    )
    parser.add_argument(
        "--retries",
        type=int,
        default=default_retries(),
        help="Attempts per failing batch (default: %(default)s)",
    )
    parser.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING or ERROR")
    parser.add_argument(
        "--json-logs", action="store_true", help="Log one JSON object per line"
    )
    return parser


def config_from_args(args: argparse.Namespace) -> ImportConfig:
    return ImportConfig(
        database_url=args.dburl,
        message_path=args.path,
        username=args.user,
        feed_url=args.feed,
        feed_map_file=args.feedmap,
        mark_read=args.mark,
        update=args.update,
        remove=args.remove,
        dry_run=args.dry,
        quiet=args.quiet,
        dump_file=args.dump,
        batch_size=args.batch,
        retries=args.retries,
        retry_delay=default_retry_delay(),
        log_level=args.log_level or "INFO",
        json_logs=args.json_logs,
    )


def print_summary(stats: RunStats, dry_run: bool) -> None:
    print("\n" + "=" * 50)
    print("Import Complete" + (" (dry run)" if dry_run else ""))
    print("=" * 50)
    print(f"Messages read:  {stats.read}")
    print(f"Entries built:  {stats.built}")
    print(f"Ignored:        {stats.ignored}")
    print(f"Feed not found: {stats.not_found}")
    print(f"Failed:         {stats.failed}")
    if not dry_run:
        print(f"Removed:        {stats.removed}")
        print(f"Stored:         {stats.stored}")


def main(argv: Optional[List[str]] = None) -> int:
    parser: Optional[argparse.ArgumentParser] = None
    try:
        parser = build_parser()
        args = parser.parse_args(argv)
        configure_logging(level=args.log_level, force_json=args.json_logs)
        config = config_from_args(args).validate()
    except ConfigError as e:
        print(f"Wrong command line: {e}\n", file=sys.stderr)
        if parser is not None:
            parser.print_usage(sys.stderr)
        return 1

    try:
        stats = run_import(config)
    except Eml2FeedError as e:
        logger.debug("Import aborted", exc_info=True)
        print(f"Failed: {e}", file=sys.stderr)
        return 2

    if not config.quiet:
        print_summary(stats, config.dry_run)
    return 0


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()

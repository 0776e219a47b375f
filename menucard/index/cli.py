"""
Command-line interface for (re)building the search index.

Examples:
  python -m menucard.index.cli --all
  python -m menucard.index.cli --restaurant 6f1c... --db menucard.db
  python -m menucard.index.cli --migrate-legacy --all
"""

import argparse
import logging
import sys

from dotenv import load_dotenv

from menucard.catalog.repository import RestaurantRepository
from menucard.config import get_settings
from menucard.embed.store import VectorStore
from menucard.errors import ConfigurationError, MenuCardError
from menucard.obs.tracing import setup_logging

from .service import RestaurantIndexer, check_database, check_index_preconditions

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """
    Returns:
        Exit code (0 for success, 1 for failure, 2 for configuration errors)
    """
    parser = argparse.ArgumentParser(
        description="Re-index restaurants into the vector store",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    target = parser.add_mutually_exclusive_group()
    target.add_argument("--restaurant", help="Re-index a single restaurant id")
    target.add_argument("--all", action="store_true", help="Re-index every restaurant")
    parser.add_argument(
        "--migrate-legacy",
        action="store_true",
        help="Link name-joined legacy menus to their restaurant first",
    )
    parser.add_argument("--db", default=None, help="SQLite database file (default: SQLITE_PATH)")
    parser.add_argument("--workers", type=int, default=None, help="Parallel re-index workers")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")

    args = parser.parse_args(argv)
    if not (args.restaurant or args.all or args.migrate_legacy):
        parser.error("nothing to do: pass --restaurant, --all or --migrate-legacy")

    load_dotenv()
    settings = get_settings()
    if args.db:
        settings = settings.model_copy(update={"sqlite_path": args.db})
    setup_logging("DEBUG" if args.verbose else settings.log_level)

    reindexing = bool(args.restaurant or args.all)
    try:
        # a migration alone touches no embedding provider
        if reindexing:
            embeddings = check_index_preconditions(settings)
        else:
            check_database(settings)
    except ConfigurationError as e:
        logger.error("Cannot start indexing: %s", e)
        return 2

    repository = RestaurantRepository(settings.sqlite_path, timeout_s=settings.db_timeout_s)
    repository.init_schema()

    try:
        if args.migrate_legacy:
            migrated = repository.migrate_legacy_menus()
            print(f"Migrated legacy menus: {migrated}")
        if not reindexing:
            return 0

        store = VectorStore(settings.sqlite_path, timeout_s=settings.db_timeout_s, backend=settings.vector_backend)
        indexer = RestaurantIndexer(
            repository,
            store,
            embeddings,
            workers=args.workers or settings.index_workers,
        )
        if args.restaurant:
            count = indexer.reindex_restaurant(args.restaurant)
            print(f"Indexed {count} documents for {args.restaurant} -> {settings.sqlite_path}")
            return 0

        if args.all:
            report = indexer.reindex_all()
            print("\n=== Indexing Complete ===")
            print(f"Restaurants attempted: {report.attempted}")
            print(f"Restaurants indexed: {len(report.succeeded)}")
            print(f"Documents written: {report.documents}")
            if report.failed:
                print(f"Failed: {len(report.failed)}")
                for rid, err in sorted(report.failed.items()):
                    print(f"  ✗ {rid}: {err}")
                return 1
        return 0

    except KeyboardInterrupt:
        logger.warning("Indexing interrupted by user")
        return 1
    except MenuCardError as e:
        logger.error("Indexing failed: %s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())

"""Command-line controller for imports, re-pricing, alerts and cleanup.

    python -m app.cli rsa --use-cache
    python -m app.cli all --dry-run
    python -m app.cli files imports/denver_fs.xlsx
    python -m app.cli files --watch
    python -m app.cli cleanup --job names
    python -m app.cli status
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from app.config import settings
from app.database import SessionLocal
from app.importers.spreadsheets import import_file
from app.importers.watcher import ImportWatcher
from app.services.cleanup import CLEANUP_JOBS, helmets_without_prices
from app.services.prices import get_price_stats, validate_schema
from app.tasks.cleanup import run_cleanup_jobs
from app.tasks.import_sources import COLLECTORS, import_source, run_async
from app.tasks.monthly_price_update import run_monthly_update
from app.tasks.weekly_price_alerts import run_weekly_alerts

logger = logging.getLogger("app.cli")

SOURCE_COMMANDS = tuple(COLLECTORS)
COMMANDS = SOURCE_COMMANDS + ("all", "status", "files", "reprice", "notify", "cleanup")
# commands that never touch the database
NO_DB_COMMANDS = {"notify"}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="python -m app.cli", description="HelmetPulse price tracker")
    parser.add_argument("command", help=f"one of: {', '.join(COMMANDS)}")
    parser.add_argument("paths", nargs="*", help="spreadsheets for the files command")
    parser.add_argument("--use-cache", action="store_true", help="read/write cache/<source>-products.json")
    parser.add_argument("--dry-run", action="store_true", help="parse and report without writing")
    parser.add_argument("--watch", action="store_true", help="keep polling the imports folder")
    parser.add_argument("--job", choices=sorted(CLEANUP_JOBS), help="run a single cleanup job")
    return parser


def _print(result) -> None:
    print(json.dumps(result, indent=2, default=str))


def run_all_sources(db, use_cache: bool, dry_run: bool) -> dict:
    results = {}
    for source in SOURCE_COMMANDS:
        if source == "fanatics" and not settings.firecrawl_api_key:
            logger.warning("FIRECRAWL_API_KEY not set; skipping fanatics")
            results[source] = {"status": "not_configured"}
            continue
        results[source] = import_source(db, source, use_cache=use_cache, dry_run=dry_run)
    return results


def run_files(db, paths: list[str], watch: bool) -> Optional[list]:
    if watch:
        ImportWatcher(SessionLocal).watch()
        return None
    if not paths:
        return ImportWatcher(SessionLocal).process_pending()

    results = []
    for raw in paths:
        path = Path(raw).resolve()
        if not path.exists():
            raise FileNotFoundError(f"File not found: {path}")
        results.append(import_file(db, path))
    return results


def dispatch(args, db) -> object:
    command = args.command
    if command in SOURCE_COMMANDS:
        return import_source(db, command, use_cache=args.use_cache, dry_run=args.dry_run)
    if command == "all":
        return run_all_sources(db, args.use_cache, args.dry_run)
    if command == "status":
        stats = get_price_stats(db)
        stats["helmets_without_prices"] = len(helmets_without_prices(db))
        return stats
    if command == "files":
        return run_files(db, args.paths, args.watch)
    if command == "reprice":
        return run_async(run_monthly_update(db))
    if command == "notify":
        return run_async(run_weekly_alerts())
    if command == "cleanup":
        return run_cleanup_jobs(db, args.job)
    raise ValueError(f"Unknown command: {command}")


def main(argv: Optional[list[str]] = None) -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    args = build_parser().parse_args(argv)
    if args.command not in COMMANDS:
        logger.error(f"Unknown command: {args.command}. Expected one of: {', '.join(COMMANDS)}")
        return 1

    db = SessionLocal()
    try:
        if args.command not in NO_DB_COMMANDS:
            ok, message = validate_schema(db)
            if not ok:
                logger.error(f"Database schema validation failed: {message}")
                return 1

        result = dispatch(args, db)
        if result is not None:
            _print(result)
        return 0
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 0
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())

"""Command line entry point for the gallery sync workflows."""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

import config
from crawlers.eh_client import EHClient
from crawlers.errors import RunInProgressError
from crawlers.gallery_sync_crawler import GallerySyncCrawler
from crawlers.manual_fetch_crawler import ManualFetchCrawler, parse_fetch_items
from crawlers.mark_replaced_crawler import MarkReplacedCrawler
from crawlers.resync_crawler import ResyncCrawler
from crawlers.settings import CrawlerSettings
from crawlers.torrent_backfill_crawler import TorrentBackfillCrawler
from crawlers.torrent_sync_crawler import TorrentSyncCrawler
from database import close_pool, init_pool
from repositories.catalog_store import CatalogStore
from services.run_coordinator import RunCoordinator
from utils.cancellation import CancelToken

LOGGER = logging.getLogger("run_sync")

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_BUSY = 2

NETWORK_COMMANDS = ("sync", "resync", "fetch", "torrent-sync", "torrent-import")


def _setup_logging(level: str) -> None:
    numeric = getattr(logging, (level or "INFO").upper(), logging.INFO)
    logging.basicConfig(
        level=numeric,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )


def _make_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Mirror gallery metadata and torrents into PostgreSQL.")
    parser.add_argument("--log-level", default=config.LOG_LEVEL, help="Logging level (DEBUG, INFO, WARNING, ERROR).")
    subparsers = parser.add_subparsers(dest="command", required=True)

    sync = subparsers.add_parser("sync", help="Sync galleries newer than the newest stored one.")
    sync.add_argument("--offset", type=int, default=None, help="Rewind the high-water mark by this many hours (forces updates).")
    sync.add_argument("--host", default=None, help="Listing host (defaults to EH_HOST).")

    resync = subparsers.add_parser("resync", help="Re-fetch galleries posted in the last N hours.")
    resync.add_argument("--hours", type=int, default=None, help="Trailing window in hours.")

    fetch = subparsers.add_parser("fetch", help="Force-import specific galleries.")
    fetch.add_argument("items", nargs="*", help="gid/token pairs: 123/abcdef0123, /g/123/abcdef0123/, gallery URLs.")
    fetch.add_argument("--file", default=None, help="Read one gallery reference per line from this file.")

    torrent_sync = subparsers.add_parser("torrent-sync", help="Sync new torrents from the torrent listing.")
    torrent_sync.add_argument("--pages", type=int, default=0, help="Fetch exactly this many pages (0 = until the last stored id).")
    torrent_sync.add_argument("--status", default=None, help="Torrent status filter passed as s=.")
    torrent_sync.add_argument("--search", default=None, help="Search keyword for the torrent listing.")
    torrent_sync.add_argument("--host", default=None, help="Listing host (defaults to EH_HOST).")

    torrent_import = subparsers.add_parser("torrent-import", help="Crawl torrent pages of every unresolved gallery.")
    torrent_import.add_argument("--host", default=None, help="Listing host (defaults to EH_HOST).")

    subparsers.add_parser("mark-replaced", help="Recompute the replaced flag for every version group.")
    return parser


def _read_fetch_items(args: argparse.Namespace) -> List[str]:
    items = list(args.items or [])
    if args.file:
        for line in Path(args.file).read_text(encoding="utf-8").splitlines():
            line = line.strip()
            if line and not line.startswith("#"):
                items.append(line)
    return items


def _build_crawler(args, *, store, client, settings, cancel_token):
    common = {"store": store, "settings": settings, "cancel_token": cancel_token}
    if args.command == "sync":
        return GallerySyncCrawler(client=client, offset_hours=args.offset, **common)
    if args.command == "resync":
        return ResyncCrawler(client=client, hours=args.hours, **common)
    if args.command == "fetch":
        return ManualFetchCrawler(_read_fetch_items(args), client=client, **common)
    if args.command == "torrent-sync":
        return TorrentSyncCrawler(
            client=client, max_pages=args.pages, status=args.status, search=args.search, **common
        )
    if args.command == "torrent-import":
        return TorrentBackfillCrawler(client=client, **common)
    if args.command == "mark-replaced":
        return MarkReplacedCrawler(**common)
    raise ValueError(f"Unsupported command={args.command}")


def _install_signal_handlers(cancel_token: CancelToken) -> None:
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, cancel_token.cancel, signal.Signals(signum).name)
        except (NotImplementedError, RuntimeError):
            LOGGER.debug("Signal handlers unavailable for %s", signum)


async def _run(args: argparse.Namespace, store: CatalogStore, coordinator: RunCoordinator) -> int:
    settings = CrawlerSettings.from_config(host=getattr(args, "host", None))
    cancel_token = CancelToken()
    _install_signal_handlers(cancel_token)

    with coordinator.try_acquire(args.command):
        if args.command in NETWORK_COMMANDS:
            async with EHClient(settings.host) as client:
                crawler = _build_crawler(args, store=store, client=client, settings=settings, cancel_token=cancel_token)
                report = await crawler.run()
        else:
            crawler = _build_crawler(args, store=store, client=None, settings=settings, cancel_token=cancel_token)
            report = await crawler.run()

    counts = " ".join(f"{key}={value}" for key, value in sorted(report.counts.items()))
    print(f"[{report.workflow}] status={report.status} duration={report.duration:.1f}s {counts}")
    if report.error_message:
        print(f"[{report.workflow}] error={report.error_message}", file=sys.stderr)
    return EXIT_OK if report.ok else EXIT_FAILED


async def _async_main(args: argparse.Namespace) -> int:
    if args.command == "fetch" and not parse_fetch_items(_read_fetch_items(args)):
        LOGGER.error("No valid gid/token pairs found")
        return EXIT_FAILED

    init_pool()
    store = CatalogStore()
    coordinator = RunCoordinator(store, config.RUN_LOCK_KEY)
    try:
        return await _run(args, store, coordinator)
    except RunInProgressError as exc:
        LOGGER.error("Another sync run is in progress: %s", exc)
        return EXIT_BUSY
    finally:
        close_pool()


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    parser = _make_arg_parser()
    args = parser.parse_args(argv)
    _setup_logging(args.log_level)
    return asyncio.run(_async_main(args))


if __name__ == "__main__":
    raise SystemExit(main())

import logging
from functools import partial

from services.torrent_page_parser import PAGE_NO_TORRENTS, PAGE_NOT_FOUND, PAGE_UNAVAILABLE

from .base_crawler import RunReport, SyncCrawler
from .errors import RetryExhaustedError, RunCancelled
from .list_pager import ListPager

LOGGER = logging.getLogger(__name__)


def _torrent_key(item):
    return item.gtid


def _next_torrent_page(cursor, items):
    return (cursor or 0) + 1


class TorrentSyncCrawler(SyncCrawler):
    """Follow ``torrents.php`` down to the newest stored torrent id.

    Galleries referenced by new torrents but missing from the store are
    imported first and flagged ``bytorrent``; then each gallery's torrent
    page is crawled, its torrents deduplicated into the root group and the
    touched groups re-marked.
    """

    DISPLAY_NAME = "torrent sync"

    def __init__(self, *, store, client, settings=None, cancel_token=None, max_pages=0, status=None, search=None):
        super().__init__("torrent_sync", store=store, client=client, settings=settings, cancel_token=cancel_token)
        self.max_pages = max_pages or 0
        self.status = status
        self.search = search

    async def collect_new_torrents(self, report: RunReport):
        last_id = self.store.get_last_torrent_id()
        if last_id is None:
            LOGGER.info("No stored torrents, fetching the full torrent listing")
        else:
            LOGGER.info("Last stored torrent id=%s", last_id)

        pager = ListPager(
            partial(self.client.fetch_torrent_listing, status=self.status, search=self.search),
            key=_torrent_key,
            next_cursor=_next_torrent_page,
            retry=self.make_retry(),
            cancel_token=self.cancel_token,
            page_delay=self.settings.page_delay_seconds,
            max_pages=self.max_pages,
            description="torrent listing",
        )
        result = await pager.collect(last_id, start_cursor=0)
        report.add("pages", result.pages)
        report.stopped_reason = result.stopped_reason

        known_ids = self.store.load_torrent_ids(item.gtid for item in result.items)
        return [item for item in result.items if item.gtid not in known_ids]

    async def import_missing_galleries(self, tokens, report: RunReport):
        existing = self.store.existing_gallery_ids(tokens.keys())
        missing = [gid for gid in tokens if gid not in existing]
        if not missing:
            return
        LOGGER.info("Importing galleries only known by torrent count=%s", len(missing))
        await self.fetch_and_import([(gid, tokens[gid]) for gid in missing], report, force=True)

        imported = self.store.existing_gallery_ids(missing)
        if imported:
            try:
                self.store.mark_galleries_by_torrent(imported)
            except Exception:
                LOGGER.warning("Failed to flag galleries as bytorrent count=%s", len(imported), exc_info=True)
            report.add("bytorrent", len(imported))

    async def process_gallery(self, retry, gid, token, touched_roots, report: RunReport):
        page = await retry.call(self.client.fetch_torrent_page, gid, token, description=f"torrent page gid={gid}")
        if page.status in (PAGE_UNAVAILABLE, PAGE_NOT_FOUND):
            LOGGER.info("Torrent page not available gid=%s status=%s", gid, page.status)
            report.add("unavailable")
            return
        if page.status == PAGE_NO_TORRENTS:
            LOGGER.debug("No torrents listed gid=%s", gid)
            return

        stored = self.consolidator.store_torrents(page.root_gid, page.torrents)
        if stored:
            LOGGER.info("Saved new torrents gid=%s root_gid=%s count=%s", gid, page.root_gid, stored)
        report.add("torrents_saved", stored)
        self.consolidator.resolve_root(gid, page.root_gid)
        touched_roots.add(page.root_gid)

    async def execute(self, report: RunReport) -> None:
        items = await self.collect_new_torrents(report)
        report.add("new_torrents", len(items))
        if not items:
            LOGGER.info("No new torrents available")
            return

        tokens = {}
        for item in items:
            tokens.setdefault(item.gid, item.token)
        LOGGER.info("Found new torrents count=%s galleries=%s", len(items), len(tokens))

        await self.import_missing_galleries(tokens, report)

        retry = self.make_retry()
        touched_roots = set()
        for index, (gid, token) in enumerate(tokens.items()):
            self.check_cancelled()
            try:
                await self.process_gallery(retry, gid, token, touched_roots, report)
                report.add("processed")
            except RunCancelled:
                raise
            except RetryExhaustedError as exc:
                report.add("failed_galleries")
                LOGGER.error("Failed to process gallery torrents gid=%s error=%s", gid, exc)
            except Exception:
                report.add("failed_galleries")
                LOGGER.error("Failed to process gallery torrents gid=%s", gid, exc_info=True)
            if index < len(tokens) - 1:
                await self.pause(self.settings.torrent_item_delay_seconds)

        for root_gid in sorted(touched_roots):
            try:
                self.consolidator.mark_group(root_gid)
            except Exception:
                LOGGER.warning("Failed to mark replaced galleries root_gid=%s", root_gid, exc_info=True)

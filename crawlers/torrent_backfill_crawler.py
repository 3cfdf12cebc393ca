import logging

from services.torrent_page_parser import PAGE_NO_TORRENTS, PAGE_NOT_FOUND, PAGE_UNAVAILABLE
from utils.time import now_epoch

from .base_crawler import RunReport, SyncCrawler
from .errors import RetryExhaustedError, RunCancelled

LOGGER = logging.getLogger(__name__)

PROGRESS_EVERY = 100

OUTCOME_REMOVED = "removed"
OUTCOME_PENDING = "pending"
OUTCOME_SELF_ROOT = "self_root"
OUTCOME_RESOLVED = "resolved"


class TorrentBackfillCrawler(SyncCrawler):
    """Crawl the torrent page of every gallery whose root is still unknown.

    Heavy: one request per gallery with a fixed delay between them. A
    gallery reported as not found that is younger than the grace window is
    left untouched so a later run can pick it up once the upstream cache
    catches up.
    """

    DISPLAY_NAME = "torrent import"

    def __init__(self, *, store, client, settings=None, cancel_token=None):
        super().__init__("torrent_import", store=store, client=client, settings=settings, cancel_token=cancel_token)

    def classify_missing(self, posted):
        grace_seconds = self.settings.pending_grace_days * 86400
        if posted >= now_epoch() - grace_seconds:
            return OUTCOME_PENDING
        return OUTCOME_REMOVED

    async def process_gallery(self, retry, gallery, report: RunReport):
        gid, token = gallery["gid"], gallery["token"]
        page = await retry.call(self.client.fetch_torrent_page, gid, token, description=f"torrent page gid={gid}")

        if page.status == PAGE_UNAVAILABLE:
            LOGGER.debug("Gallery unavailable, marking removed gid=%s", gid)
            self.store.mark_removed(gid)
            return OUTCOME_REMOVED

        if page.status == PAGE_NOT_FOUND:
            outcome = self.classify_missing(gallery["posted"])
            if outcome == OUTCOME_REMOVED:
                LOGGER.debug("Gallery not found and old, marking removed gid=%s", gid)
                self.store.mark_removed(gid)
            else:
                LOGGER.info("Gallery not found but recent, leaving pending gid=%s", gid)
            return outcome

        if page.status == PAGE_NO_TORRENTS:
            self.consolidator.resolve_root(gid, gid)
            return OUTCOME_SELF_ROOT

        stored = self.consolidator.store_torrents(page.root_gid, page.torrents)
        report.add("torrents_saved", stored)
        self.consolidator.resolve_root(gid, page.root_gid)
        try:
            self.consolidator.mark_group(page.root_gid)
        except Exception:
            LOGGER.warning("Failed to mark replaced galleries root_gid=%s", page.root_gid, exc_info=True)
        return OUTCOME_RESOLVED

    async def execute(self, report: RunReport) -> None:
        LOGGER.warning("Starting torrent import, this may take a long time")
        galleries = self.store.list_unresolved_galleries()
        total = len(galleries)
        report.add("listed", total)
        LOGGER.info("Found galleries to process count=%s", total)

        retry = self.make_retry()
        for index, gallery in enumerate(galleries, start=1):
            self.check_cancelled()
            try:
                outcome = await self.process_gallery(retry, gallery, report)
                report.add(outcome)
                if outcome != OUTCOME_PENDING:
                    report.add("succeeded")
            except RunCancelled:
                raise
            except RetryExhaustedError as exc:
                report.add("failed_galleries")
                LOGGER.error("Failed to process gallery gid=%s error=%s", gallery["gid"], exc)
            except Exception:
                report.add("failed_galleries")
                LOGGER.error("Failed to process gallery gid=%s", gallery["gid"], exc_info=True)

            if index % PROGRESS_EVERY == 0:
                LOGGER.info(
                    "Torrent import progress processed=%s/%s succeeded=%s pending=%s new_torrents=%s",
                    index,
                    total,
                    report.counts.get("succeeded", 0),
                    report.counts.get(OUTCOME_PENDING, 0),
                    report.counts.get("torrents_saved", 0),
                )
            if index < total:
                await self.pause(self.settings.backfill_delay_seconds)

import logging

from utils.time import now_epoch

from .base_crawler import RunReport, SyncCrawler

LOGGER = logging.getLogger(__name__)


class ResyncCrawler(SyncCrawler):
    """Re-fetch metadata for galleries posted within the trailing window."""

    DISPLAY_NAME = "resync"

    def __init__(self, *, store, client, settings=None, cancel_token=None, hours=None):
        super().__init__("resync", store=store, client=client, settings=settings, cancel_token=cancel_token)
        self.hours = self.settings.resync_hours if hours is None else int(hours)

    async def execute(self, report: RunReport) -> None:
        since = now_epoch() - self.hours * 3600
        pairs = self.store.list_galleries_posted_since(since)
        report.add("listed", len(pairs))
        LOGGER.info("Resyncing galleries posted in the last %s hours count=%s", self.hours, len(pairs))
        await self.fetch_and_import(pairs, report, force=True)

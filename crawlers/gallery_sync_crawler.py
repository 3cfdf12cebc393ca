import logging
from functools import partial

from utils.time import parse_listing_time

from .base_crawler import RunReport, SyncCrawler
from .list_pager import ListPager

LOGGER = logging.getLogger(__name__)

SWEEPS = (("listing", False), ("expunged listing", True))


def _listing_key(item):
    return parse_listing_time(item.posted)


def _next_listing_cursor(cursor, items):
    return items[-1].gid


class GallerySyncCrawler(SyncCrawler):
    """Pull galleries posted since the newest stored one.

    Two sweeps run against the front page listing, the second with expunged
    galleries included. A listing page that exhausts its retries fails the
    run before anything is imported, so the high-water mark never moves past
    a gap.
    """

    DISPLAY_NAME = "gallery sync"

    def __init__(self, *, store, client, settings=None, cancel_token=None, offset_hours=None):
        super().__init__("gallery_sync", store=store, client=client, settings=settings, cancel_token=cancel_token)
        self.offset_hours = self.settings.offset_hours if offset_hours is None else int(offset_hours)

    def high_water_mark(self):
        last_posted = self.store.get_last_posted()
        if last_posted is None:
            LOGGER.info("No stored galleries, crawling the full listing")
            return 0
        return last_posted - self.offset_hours * 3600

    async def execute(self, report: RunReport) -> None:
        mark = self.high_water_mark()
        LOGGER.info("Gallery sync high-water mark=%s offset_hours=%s", mark, self.offset_hours)

        seen = set()
        pairs = []
        reasons = []
        for description, expunged in SWEEPS:
            pager = ListPager(
                partial(self.client.fetch_gallery_listing, expunged=expunged),
                key=_listing_key,
                next_cursor=_next_listing_cursor,
                retry=self.make_retry(),
                cancel_token=self.cancel_token,
                page_delay=self.settings.page_delay_seconds,
                description=description,
            )
            result = await pager.collect(mark)
            report.add("pages", result.pages)
            reasons.append(result.stopped_reason)
            for item in result.items:
                if item.gid in seen:
                    continue
                seen.add(item.gid)
                pairs.append((item.gid, item.token))

        report.stopped_reason = ",".join(reason for reason in reasons if reason)
        report.add("listed", len(pairs))
        LOGGER.info("Gallery sync found new galleries count=%s", len(pairs))
        await self.fetch_and_import(pairs, report, force=self.offset_hours != 0)

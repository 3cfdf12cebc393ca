import logging

from services.listing_parser import parse_gid_token

from .base_crawler import RunReport, SyncCrawler

LOGGER = logging.getLogger(__name__)


def parse_fetch_items(items):
    """Turn user-supplied gallery references into unique ``(gid, token)`` pairs."""
    pairs = []
    seen = set()
    for item in items:
        parsed = parse_gid_token(item)
        if parsed is None:
            LOGGER.warning("Invalid gid/token format item=%r", item)
            continue
        if parsed[0] in seen:
            continue
        seen.add(parsed[0])
        pairs.append(parsed)
    return pairs


class ManualFetchCrawler(SyncCrawler):
    """Force-import an explicit list of galleries."""

    DISPLAY_NAME = "manual fetch"

    def __init__(self, items, *, store, client, settings=None, cancel_token=None):
        super().__init__("manual_fetch", store=store, client=client, settings=settings, cancel_token=cancel_token)
        self.pairs = parse_fetch_items(items)
        if not self.pairs:
            raise ValueError("no valid gid/token pairs found")

    async def execute(self, report: RunReport) -> None:
        report.add("listed", len(self.pairs))
        LOGGER.info("Fetching galleries count=%s", len(self.pairs))
        await self.fetch_and_import(self.pairs, report, force=True)

import logging

from .base_crawler import RunReport, SyncCrawler

LOGGER = logging.getLogger(__name__)


class MarkReplacedCrawler(SyncCrawler):
    """Recompute ``replaced`` across every version group without any fetch."""

    DISPLAY_NAME = "mark replaced"

    def __init__(self, *, store, settings=None, cancel_token=None):
        super().__init__("mark_replaced", store=store, settings=settings, cancel_token=cancel_token)

    async def execute(self, report: RunReport) -> None:
        report.add("changed", self.consolidator.mark_all())

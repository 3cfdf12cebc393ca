#crawlers/base_crawler.py
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from services.importer import Importer
from services.version_consolidator import VersionConsolidator
from utils.cancellation import CancelToken
from utils.time import now_utc

from .errors import RunCancelled
from .metadata_batcher import MetadataBatcher
from .retry import RetryExecutor
from .settings import CrawlerSettings

LOGGER = logging.getLogger(__name__)

STATUS_SUCCESS = "success"
STATUS_FAILED = "failed"
STATUS_CANCELLED = "cancelled"


@dataclass
class RunReport:
    workflow: str
    status: str = STATUS_SUCCESS
    started_at: Optional[str] = None
    duration: float = 0.0
    counts: Dict[str, int] = field(default_factory=dict)
    stopped_reason: Optional[str] = None
    error_message: Optional[str] = None

    def add(self, key, amount=1):
        self.counts[key] = self.counts.get(key, 0) + amount

    @property
    def ok(self):
        return self.status == STATUS_SUCCESS


class SyncCrawler(ABC):
    """
    Base class for every sync workflow.

    Subclasses implement ``execute(report)``; ``run()`` wraps it with timing,
    status classification and the final summary log (template method).
    Partial progress is kept: a failed run still reports what it stored.
    """

    DISPLAY_NAME = "sync"

    def __init__(self, source_name, *, store, client=None, settings=None, cancel_token=None):
        self.source_name = source_name
        self.store = store
        self.client = client
        self.settings = settings or CrawlerSettings.from_config()
        self.cancel_token = cancel_token or CancelToken()
        self.consolidator = VersionConsolidator(store)

    @abstractmethod
    async def execute(self, report: RunReport) -> None:
        raise NotImplementedError

    def make_retry(self) -> RetryExecutor:
        return RetryExecutor(
            self.settings.retry_times,
            ban_aware=self.settings.wait_for_ip_unban,
            cancel_token=self.cancel_token,
        )

    async def pause(self, seconds: float) -> None:
        await self.cancel_token.sleep(seconds)

    def check_cancelled(self) -> None:
        self.cancel_token.raise_if_cancelled()

    async def fetch_and_import(self, pairs, report: RunReport, *, force: bool) -> Any:
        """Batched metadata fetch followed by import; counts land in ``report``."""
        pairs = list(pairs)
        if not pairs:
            LOGGER.info("[%s] nothing to fetch", self.source_name)
            return None
        batcher = MetadataBatcher(
            self.client,
            self.make_retry(),
            cancel_token=self.cancel_token,
            delay_seconds=self.settings.api_delay_seconds,
        )
        batch = await batcher.fetch(pairs)
        report.add("metadata_fetched", len(batch.records))
        report.add("failed_batches", batch.failed_batches)
        report.add("errored_entries", batch.errored_entries)

        self.check_cancelled()
        result = Importer(self.store).run(batch.records, force=force)
        report.add("inserted", result.inserted)
        report.add("updated", result.updated)
        report.add("skipped", result.skipped)
        report.add("failed", result.failed)
        return result

    async def run(self) -> RunReport:
        report = RunReport(workflow=self.source_name, started_at=now_utc().isoformat())
        start_time = time.monotonic()
        LOGGER.info("[%s] %s started", self.source_name, self.DISPLAY_NAME)
        try:
            await self.execute(report)
        except RunCancelled as exc:
            report.status = STATUS_CANCELLED
            report.error_message = str(exc)
            LOGGER.warning("[%s] run cancelled: %s", self.source_name, exc)
        except Exception as exc:
            report.status = STATUS_FAILED
            report.error_message = str(exc)
            LOGGER.error("[%s] run failed", self.source_name, exc_info=True)
        finally:
            report.duration = time.monotonic() - start_time

        LOGGER.info(
            "[%s] %s finished status=%s duration=%.1fs stopped_reason=%s counts=%s",
            self.source_name,
            self.DISPLAY_NAME,
            report.status,
            report.duration,
            report.stopped_reason,
            report.counts,
        )
        return report

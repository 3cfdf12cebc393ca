"""Explicit run configuration handed to every sync workflow."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import config


@dataclass
class CrawlerSettings:
    host: str = "e-hentai.org"
    retry_times: int = 3
    wait_for_ip_unban: bool = False
    page_delay_seconds: float = 1.0
    api_delay_seconds: float = 1.0
    torrent_item_delay_seconds: float = 1.0
    backfill_delay_seconds: float = 2.0
    offset_hours: int = 0
    resync_hours: int = 24
    pending_grace_days: int = 7

    @classmethod
    def from_config(cls, host: Optional[str] = None) -> "CrawlerSettings":
        return cls(
            host=host or config.EH_HOST,
            retry_times=config.CRAWLER_RETRY_TIMES,
            wait_for_ip_unban=config.CRAWLER_WAIT_FOR_IP_UNBAN,
            page_delay_seconds=config.CRAWLER_PAGE_DELAY_SECONDS,
            api_delay_seconds=config.CRAWLER_API_DELAY_SECONDS,
            torrent_item_delay_seconds=config.TORRENT_ITEM_DELAY_SECONDS,
            backfill_delay_seconds=config.TORRENT_BACKFILL_DELAY_SECONDS,
            offset_hours=config.GALLERY_SYNC_OFFSET_HOURS,
            resync_hours=config.RESYNC_HOURS,
            pending_grace_days=config.PENDING_GALLERY_GRACE_DAYS,
        )

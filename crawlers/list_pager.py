"""Newest-first pagination bounded by a high-water mark."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional

LOGGER = logging.getLogger(__name__)

STOP_HIGH_WATER_MARK = "high_water_mark"
STOP_EXHAUSTED = "exhausted"
STOP_PAGE_LIMIT = "page_limit"


@dataclass
class PageResult:
    items: List[Any] = field(default_factory=list)
    pages: int = 0
    stopped_reason: Optional[str] = None


class ListPager:
    """Walk a reverse-chronological listing until an already-seen key shows up.

    ``fetch_page(cursor)`` returns the items of one page, ``key(item)`` the
    ordering key (raising ``ValueError`` for unparsable items, which are
    skipped) and ``next_cursor(cursor, items)`` the cursor of the following
    page. Every fetch goes through ``retry``; its exhaustion propagates.

    With ``max_pages`` set the threshold is ignored and exactly that many
    pages (or fewer, if the listing runs dry) are collected.
    """

    def __init__(
        self,
        fetch_page: Callable[[Any], Awaitable[List[Any]]],
        *,
        key: Callable[[Any], Any],
        next_cursor: Callable[[Any, List[Any]], Any],
        retry,
        cancel_token=None,
        page_delay: float = 0.0,
        max_pages: int = 0,
        description: str = "listing",
    ) -> None:
        self.fetch_page = fetch_page
        self.key = key
        self.next_cursor = next_cursor
        self.retry = retry
        self.cancel_token = cancel_token
        self.page_delay = page_delay
        self.max_pages = max_pages if max_pages and max_pages > 0 else 0
        self.description = description

    async def _sleep(self, seconds: float) -> None:
        if self.cancel_token is not None:
            await self.cancel_token.sleep(seconds)
        elif seconds > 0:
            await asyncio.sleep(seconds)

    def _check_cancelled(self) -> None:
        if self.cancel_token is not None:
            self.cancel_token.raise_if_cancelled()

    async def collect(self, high_water_mark: Any = None, start_cursor: Any = None) -> PageResult:
        result = PageResult()
        cursor = start_cursor
        while True:
            self._check_cancelled()
            page_items = await self.retry.call(
                self.fetch_page, cursor, description=f"{self.description} cursor={cursor}"
            )
            result.pages += 1

            if not page_items:
                result.stopped_reason = STOP_EXHAUSTED
                LOGGER.info("%s exhausted pages=%s items=%s", self.description, result.pages, len(result.items))
                return result

            for item in page_items:
                try:
                    item_key = self.key(item)
                except (TypeError, ValueError) as exc:
                    LOGGER.warning("%s skipping item with unparsable key item=%r error=%s", self.description, item, exc)
                    continue
                if not self.max_pages and high_water_mark is not None and item_key <= high_water_mark:
                    result.stopped_reason = STOP_HIGH_WATER_MARK
                    LOGGER.info(
                        "%s reached high-water mark pages=%s items=%s mark=%s",
                        self.description,
                        result.pages,
                        len(result.items),
                        high_water_mark,
                    )
                    return result
                result.items.append(item)

            LOGGER.debug("%s page=%s collected=%s", self.description, result.pages, len(result.items))

            if self.max_pages and result.pages >= self.max_pages:
                result.stopped_reason = STOP_PAGE_LIMIT
                LOGGER.info("%s reached page limit pages=%s items=%s", self.description, result.pages, len(result.items))
                return result

            cursor = self.next_cursor(cursor, page_items)
            await self._sleep(self.page_delay)

"""Bulk metadata acquisition in fixed-size batches."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Sequence, Tuple

from crawlers.errors import RetryExhaustedError

LOGGER = logging.getLogger(__name__)

METADATA_BATCH_SIZE = 25


def chunked(values: Sequence[Any], size: int) -> Iterator[Sequence[Any]]:
    if size <= 0:
        raise ValueError("chunk size must be positive")
    for start in range(0, len(values), size):
        yield values[start:start + size]


@dataclass
class BatchResult:
    records: List[Dict[str, Any]] = field(default_factory=list)
    batches: int = 0
    failed_batches: int = 0
    errored_entries: int = 0


class MetadataBatcher:
    def __init__(self, client, retry, *, cancel_token=None, delay_seconds: float = 0.0, batch_size: int = METADATA_BATCH_SIZE):
        self.client = client
        self.retry = retry
        self.cancel_token = cancel_token
        self.delay_seconds = delay_seconds
        self.batch_size = batch_size

    async def _sleep(self, seconds: float) -> None:
        if self.cancel_token is not None:
            await self.cancel_token.sleep(seconds)
        elif seconds > 0:
            await asyncio.sleep(seconds)

    async def fetch(self, pairs: Sequence[Tuple[int, str]]) -> BatchResult:
        """Fetch metadata for every ``(gid, token)`` pair.

        A batch that exhausts its retries is dropped and counted; the
        remaining batches still run.
        """
        result = BatchResult()
        batches = list(chunked(list(pairs), self.batch_size))
        for index, batch in enumerate(batches):
            if self.cancel_token is not None:
                self.cancel_token.raise_if_cancelled()
            result.batches += 1
            first_gid = batch[0][0]
            try:
                entries = await self.retry.call(
                    self.client.fetch_metadata, batch, description=f"metadata batch from_gid={first_gid}"
                )
            except RetryExhaustedError as exc:
                result.failed_batches += 1
                LOGGER.error(
                    "Metadata batch failed, dropping batch=%s/%s size=%s first_gid=%s error=%s",
                    index + 1,
                    len(batches),
                    len(batch),
                    first_gid,
                    exc,
                )
            else:
                for entry in entries:
                    if entry.get("error"):
                        result.errored_entries += 1
                        LOGGER.warning("Metadata entry returned error gid=%s error=%s", entry.get("gid"), entry.get("error"))
                        continue
                    result.records.append(entry)

            if index < len(batches) - 1:
                await self._sleep(self.delay_seconds)

        LOGGER.info(
            "Fetched metadata records=%s batches=%s failed_batches=%s errored_entries=%s",
            len(result.records),
            result.batches,
            result.failed_batches,
            result.errored_entries,
        )
        return result

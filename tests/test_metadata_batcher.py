import asyncio

import pytest

from crawlers.errors import FetchError
from crawlers.metadata_batcher import MetadataBatcher, chunked
from crawlers.retry import RetryExecutor
from fakes import FakeClient, metadata_entry


async def _no_sleep(_seconds):
    return None


def test_chunked_splits_into_fixed_size_batches():
    assert [list(chunk) for chunk in chunked(list(range(7)), 3)] == [[0, 1, 2], [3, 4, 5], [6]]
    assert list(chunked([], 25)) == []


def test_chunked_rejects_non_positive_size():
    with pytest.raises(ValueError):
        list(chunked([1], 0))


def test_fetch_uses_batches_of_25():
    metadata = {gid: metadata_entry(gid) for gid in range(1, 61)}
    client = FakeClient(metadata=metadata)
    batcher = MetadataBatcher(client, RetryExecutor(3, sleep=_no_sleep))

    result = asyncio.run(batcher.fetch([(gid, "0123456789") for gid in range(1, 61)]))

    assert [len(call) for call in client.metadata_calls] == [25, 25, 10]
    assert len(result.records) == 60
    assert result.batches == 3
    assert result.failed_batches == 0


def test_failed_batch_is_dropped_and_others_continue():
    metadata = {gid: metadata_entry(gid) for gid in range(1, 31)}
    metadata[3] = FetchError("unexpected status code: 502")
    client = FakeClient(metadata=metadata)
    batcher = MetadataBatcher(client, RetryExecutor(2, sleep=_no_sleep))

    result = asyncio.run(batcher.fetch([(gid, "0123456789") for gid in range(1, 31)]))

    assert result.failed_batches == 1
    assert [record["gid"] for record in result.records] == list(range(26, 31))
    assert len(client.metadata_calls) == 3


def test_entries_with_error_are_excluded():
    metadata = {1: metadata_entry(1), 2: {"gid": 2, "error": "Key missing, or incorrect key provided."}}
    client = FakeClient(metadata=metadata)
    batcher = MetadataBatcher(client, RetryExecutor(3, sleep=_no_sleep))

    result = asyncio.run(batcher.fetch([(1, "0123456789"), (2, "0123456789")]))

    assert [record["gid"] for record in result.records] == [1]
    assert result.errored_entries == 1

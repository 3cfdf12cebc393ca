import asyncio

import pytest

from crawlers.errors import FetchError, RetryExhaustedError, RunCancelled, TemporarilyBannedError
from crawlers.retry import RetryExecutor, parse_ban_duration
from utils.cancellation import CancelToken

BAN_PAGE = (
    "Your IP address has been temporarily banned for excessive pageloads which indicates "
    "that you are using automated mirroring/harvesting software. "
    "(The ban expires in 1 hour and 30 minutes)"
)


class SleepRecorder:
    def __init__(self):
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)


class ScriptedOperation:
    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = 0

    async def __call__(self, *args, **kwargs):
        self.calls += 1
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def test_parse_ban_duration_hours_and_minutes():
    assert parse_ban_duration(BAN_PAGE) == 5400


def test_parse_ban_duration_minutes_and_seconds():
    message = "temporarily banned ... (The ban expires in 59 minutes and 10 seconds)"

    assert parse_ban_duration(message) == 3550


def test_parse_ban_duration_requires_ban_phrase():
    assert parse_ban_duration("The ban expires in 1 hour") is None
    assert parse_ban_duration("unexpected status code: 503") is None
    assert parse_ban_duration("") is None


def test_parse_ban_duration_zero_is_not_a_ban():
    assert parse_ban_duration("temporarily banned (The ban expires in 0 seconds)") is None


def test_call_returns_first_success_without_sleeping():
    sleeps = SleepRecorder()
    operation = ScriptedOperation("ok")

    result = asyncio.run(RetryExecutor(3, sleep=sleeps).call(operation))

    assert result == "ok"
    assert operation.calls == 1
    assert sleeps.calls == []


def test_call_backs_off_linearly_between_failures():
    sleeps = SleepRecorder()
    operation = ScriptedOperation(FetchError("boom"), FetchError("boom"), "ok")

    result = asyncio.run(RetryExecutor(3, sleep=sleeps).call(operation))

    assert result == "ok"
    assert operation.calls == 3
    assert sleeps.calls == [5, 10]


def test_call_raises_retry_exhausted_without_final_sleep():
    sleeps = SleepRecorder()
    last = FetchError("third")
    operation = ScriptedOperation(FetchError("first"), FetchError("second"), last)

    with pytest.raises(RetryExhaustedError) as excinfo:
        asyncio.run(RetryExecutor(3, sleep=sleeps).call(operation, description="listing"))

    assert operation.calls == 3
    assert sleeps.calls == [5, 10]
    assert excinfo.value.attempts == 3
    assert excinfo.value.last_error is last
    assert excinfo.value.__cause__ is last
    assert "exceeded max retries (3)" in str(excinfo.value)


def test_ban_waits_out_duration_and_does_not_consume_budget():
    sleeps = SleepRecorder()
    operation = ScriptedOperation(
        FetchError("a"),
        TemporarilyBannedError(BAN_PAGE),
        FetchError("b"),
        FetchError("c"),
        "ok",
    )

    result = asyncio.run(RetryExecutor(3, ban_aware=True, sleep=sleeps).call(operation))

    assert result == "ok"
    assert operation.calls == 5
    assert sleeps.calls == [5, 5410, 5, 10]


def test_consecutive_bans_reset_the_budget_every_time():
    sleeps = SleepRecorder()
    operation = ScriptedOperation(
        FetchError("a"),
        FetchError("b"),
        TemporarilyBannedError(BAN_PAGE),
        TemporarilyBannedError(BAN_PAGE),
        FetchError("c"),
        FetchError("d"),
        TemporarilyBannedError(BAN_PAGE),
        FetchError("e"),
        "ok",
    )

    result = asyncio.run(RetryExecutor(3, ban_aware=True, sleep=sleeps).call(operation))

    assert result == "ok"
    assert operation.calls == 9
    assert sleeps.calls == [5, 10, 5410, 5410, 5, 10, 5410, 5]


def test_ban_without_ban_awareness_is_an_ordinary_failure():
    sleeps = SleepRecorder()
    operation = ScriptedOperation(TemporarilyBannedError(BAN_PAGE), "ok")

    result = asyncio.run(RetryExecutor(3, sleep=sleeps).call(operation))

    assert result == "ok"
    assert sleeps.calls == [5]


def test_cancellation_is_never_retried():
    sleeps = SleepRecorder()
    operation = ScriptedOperation(RunCancelled("stop"), "ok")

    with pytest.raises(RunCancelled):
        asyncio.run(RetryExecutor(3, sleep=sleeps).call(operation))

    assert operation.calls == 1
    assert sleeps.calls == []


def test_cancel_token_interrupts_ban_wait():
    async def scenario():
        token = CancelToken()
        operation = ScriptedOperation(TemporarilyBannedError(BAN_PAGE), "ok")
        executor = RetryExecutor(3, ban_aware=True, cancel_token=token)
        task = asyncio.ensure_future(executor.call(operation))
        await asyncio.sleep(0.05)
        token.cancel("shutdown")
        with pytest.raises(RunCancelled):
            await asyncio.wait_for(task, timeout=2)
        return operation.calls

    assert asyncio.run(scenario()) == 1


def test_run_is_void_variant():
    operation = ScriptedOperation("ignored")

    assert asyncio.run(RetryExecutor(1, sleep=SleepRecorder()).run(operation)) is None
    assert operation.calls == 1

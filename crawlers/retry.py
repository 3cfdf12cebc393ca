"""Bounded retry with budget-exempt waiting on upstream IP bans."""

from __future__ import annotations

import asyncio
import logging
import re
from datetime import timedelta
from typing import Any, Awaitable, Callable, Optional

from tenacity import AsyncRetrying, RetryError, retry_if_not_exception_type

from crawlers.errors import RetryExhaustedError, RunCancelled
from utils.time import now_utc

LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3
BACKOFF_STEP_SECONDS = 5
BAN_MARGIN_SECONDS = 10

_BAN_PHRASE = "temporarily banned"
_BAN_EXPIRES_RE = re.compile(r"ban expires in ([^)<\n]+)", re.IGNORECASE)
_HOURS_RE = re.compile(r"(\d+)\s+hour", re.IGNORECASE)
_MINUTES_RE = re.compile(r"(\d+)\s+minute", re.IGNORECASE)
_SECONDS_RE = re.compile(r"(\d+)\s+second", re.IGNORECASE)


def parse_ban_duration(message: str) -> Optional[int]:
    """Return the remaining ban in seconds, or ``None`` if this is not a ban.

    Understands any combination of hour/minute/second parts, e.g.
    ``"(The ban expires in 1 hour and 30 minutes)"`` -> ``5400``.
    """
    if not message or _BAN_PHRASE not in message:
        return None
    match = _BAN_EXPIRES_RE.search(message)
    if not match:
        return None
    remaining = match.group(1)
    total = 0
    for pattern, scale in ((_HOURS_RE, 3600), (_MINUTES_RE, 60), (_SECONDS_RE, 1)):
        part = pattern.search(remaining)
        if part:
            total += int(part.group(1)) * scale
    return total or None


class _AttemptBudget:
    """Stop/wait pair for tenacity that keeps bans out of the attempt count.

    Each failed attempt is classified once, whichever of ``stop`` or
    ``wait`` tenacity consults first.
    """

    def __init__(self, max_attempts, ban_aware, description):
        self.max_attempts = max_attempts
        self.ban_aware = ban_aware
        self.description = description
        self.failures = 0
        self._ban_seconds = None
        self._observed_attempt = None

    def _observe(self, retry_state):
        if self._observed_attempt == retry_state.attempt_number:
            return
        self._observed_attempt = retry_state.attempt_number
        error = retry_state.outcome.exception()
        self._ban_seconds = parse_ban_duration(str(error)) if self.ban_aware else None
        if self._ban_seconds is None:
            self.failures += 1
        else:
            self.failures = 0

    def stop(self, retry_state) -> bool:
        self._observe(retry_state)
        if self._ban_seconds is not None:
            return False
        if self.failures >= self.max_attempts:
            LOGGER.warning(
                "Operation failed, giving up op=%s attempt=%s/%s error=%s",
                self.description,
                self.failures,
                self.max_attempts,
                retry_state.outcome.exception(),
            )
            return True
        return False

    def wait(self, retry_state) -> float:
        self._observe(retry_state)
        if self._ban_seconds is not None:
            delay = self._ban_seconds + BAN_MARGIN_SECONDS
            unban_at = now_utc() + timedelta(seconds=self._ban_seconds)
            LOGGER.warning(
                "IP temporarily banned, waiting for unban op=%s wait_seconds=%s unban_time=%s",
                self.description,
                delay,
                unban_at.strftime("%Y-%m-%d %H:%M:%S"),
            )
            return delay
        if self.failures >= self.max_attempts:
            return 0
        LOGGER.warning(
            "Operation failed, retrying op=%s attempt=%s/%s error=%s",
            self.description,
            self.failures,
            self.max_attempts,
            retry_state.outcome.exception(),
        )
        return self.failures * BACKOFF_STEP_SECONDS


class RetryExecutor:
    """Run an async operation up to ``max_attempts`` times.

    Ordinary failures back off 5s, 10s, 15s ... with no sleep after the last
    attempt. When ``ban_aware`` is set, a ban message suspends for the
    remaining ban plus a 10s margin and resets the attempt counter, so
    consecutive bans can keep the loop alive until the cancel token fires.
    """

    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        *,
        ban_aware: bool = False,
        cancel_token=None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ) -> None:
        self.max_attempts = max_attempts if max_attempts and max_attempts > 0 else DEFAULT_MAX_ATTEMPTS
        self.ban_aware = bool(ban_aware)
        self.cancel_token = cancel_token
        self._sleep = sleep

    async def _pause(self, seconds: float) -> None:
        if self._sleep is not None:
            if self.cancel_token is not None:
                self.cancel_token.raise_if_cancelled()
            await self._sleep(seconds)
        elif self.cancel_token is not None:
            await self.cancel_token.sleep(seconds)
        else:
            await asyncio.sleep(seconds)
        if self.cancel_token is not None:
            self.cancel_token.raise_if_cancelled()

    async def call(self, operation: Callable[..., Awaitable[Any]], *args: Any, description: str = "", **kwargs: Any) -> Any:
        if self.cancel_token is not None:
            self.cancel_token.raise_if_cancelled()
        budget = _AttemptBudget(self.max_attempts, self.ban_aware, description or getattr(operation, "__name__", "operation"))
        retrying = AsyncRetrying(
            stop=budget.stop,
            wait=budget.wait,
            retry=retry_if_not_exception_type((RunCancelled, asyncio.CancelledError)),
            sleep=self._pause,
        )
        try:
            return await retrying(operation, *args, **kwargs)
        except RetryError as exc:
            last_error = exc.last_attempt.exception()
            raise RetryExhaustedError(self.max_attempts, last_error) from last_error

    async def run(self, operation: Callable[..., Awaitable[Any]], *args: Any, description: str = "", **kwargs: Any) -> None:
        """Void variant for side-effecting operations."""
        await self.call(operation, *args, description=description, **kwargs)

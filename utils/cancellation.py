"""Cooperative cancellation for long-running sync runs."""

import asyncio

from crawlers.errors import RunCancelled


class CancelToken:
    """External stop signal observed at every sleep and loop boundary.

    ``cancel()`` may be called from a signal handler or another task; every
    pending ``sleep()`` wakes up immediately and raises ``RunCancelled``.
    """

    def __init__(self):
        self._event = asyncio.Event()
        self.reason = None

    def cancel(self, reason="cancelled"):
        self.reason = reason
        self._event.set()

    @property
    def cancelled(self):
        return self._event.is_set()

    def raise_if_cancelled(self):
        if self._event.is_set():
            raise RunCancelled(self.reason or "cancelled")

    async def sleep(self, seconds):
        self.raise_if_cancelled()
        if not seconds or seconds <= 0:
            return
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return
        raise RunCancelled(self.reason or "cancelled")

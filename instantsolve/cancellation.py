"""
Cancellation token for in-flight pipeline calls.

One token per invocation. The caller keeps a reference and calls
cancel(); the transport races each request against wait() and aborts the
request when the token fires.
"""

import asyncio


class CancellationToken:
    """Caller-owned signal that aborts a pipeline invocation."""

    def __init__(self):
        self._event = asyncio.Event()
        self.reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancelled by caller") -> None:
        """Trigger cancellation. Idempotent; the first reason wins."""
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    async def wait(self) -> None:
        """Block until the token is cancelled."""
        await self._event.wait()

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self.cancelled})"

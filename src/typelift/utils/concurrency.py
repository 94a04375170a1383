"""Async concurrency primitives used by the control plane."""

from __future__ import annotations

import asyncio


class CancellationToken:
    """Cooperative cancellation token backed by ``asyncio.Event``.

    The first cancel reason is kept so a worker pool can re-raise the error that stopped it.
    Cancelling never interrupts work already in flight; holders poll ``is_cancelled`` before
    starting new work.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: BaseException | None = None

    def cancel(self, reason: BaseException | None = None) -> None:
        if self._reason is None and reason is not None:
            self._reason = reason
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> BaseException | None:
        return self._reason

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if not self._event.is_set():
            return
        if self._reason is not None:
            raise self._reason
        raise asyncio.CancelledError("operation cancelled")


__all__ = ["CancellationToken"]

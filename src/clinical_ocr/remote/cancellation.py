"""Cooperative cancellation for in-flight remote calls."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
import contextlib
from typing import TypeVar

from clinical_ocr.core.exceptions import ExtractionCancelledError

T = TypeVar("T")


class CancellationToken:
    """Signal that aborts the remote call it is passed to.

    Must be used from the event loop that awaits the guarded call.
    """

    __slots__ = ("_event", "reason")

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: str | None = None

    @property
    def cancelled(self) -> bool:
        """True once `cancel()` has been called."""
        return self._event.is_set()

    def cancel(self, reason: str | None = None) -> None:
        """Request cancellation; later calls are no-ops."""
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    def raise_if_cancelled(self) -> None:
        """Raise `ExtractionCancelledError` if cancellation was requested."""
        if self.cancelled:
            raise ExtractionCancelledError(self.reason or "Extraction cancelled")

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """Await `awaitable` unless the token fires first.

        Returns:
            The awaitable's result.

        Raises:
            ExtractionCancelledError: If the token fired before completion;
                the underlying task is cancelled and any error it raises
                while unwinding is discarded.
        """
        task = asyncio.ensure_future(awaitable)
        if self.cancelled:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError, Exception):
                await task
            self.raise_if_cancelled()

        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait(
                {task, waiter}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            for pending in (task, waiter):
                if not pending.done():
                    pending.cancel()

        if waiter in done:
            with contextlib.suppress(asyncio.CancelledError, Exception):
                await task
            self.raise_if_cancelled()
        return task.result()

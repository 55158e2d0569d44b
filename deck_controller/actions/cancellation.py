"""Cooperative cancellation token shared between an action and its work."""

from __future__ import annotations

import asyncio
from collections.abc import Callable

from utils.log_utils import tprint


class CancelSignal:
    """One-shot abort flag.

    Work checks ``aborted`` (or awaits ``wait()``) at its suspension points;
    callbacks registered with ``add_callback`` run once, synchronously, on
    the first ``abort``.
    """

    def __init__(self) -> None:
        self._aborted = False
        self.reason: str | None = None
        self._callbacks: list[Callable[[], object]] = []

    @property
    def aborted(self) -> bool:
        return self._aborted

    def abort(self, reason: str | None = None) -> bool:
        if self._aborted:
            return False
        self._aborted = True
        self.reason = reason
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception as exc:
                tprint(f"[ACTION][ERROR] Abort callback failed: {exc!r}")
        return True

    def add_callback(self, callback: Callable[[], object]) -> None:
        """Run callback on abort; immediately if already aborted."""
        if self._aborted:
            callback()
            return
        self._callbacks.append(callback)

    def remove_callback(self, callback: Callable[[], object]) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def check(self) -> None:
        if self._aborted:
            raise AbortedError(self.reason or "aborted")

    async def wait(self) -> None:
        """Block until abort is called."""
        if self._aborted:
            return
        waiter = asyncio.get_running_loop().create_future()

        def _wake() -> None:
            if not waiter.done():
                waiter.set_result(None)

        self.add_callback(_wake)
        try:
            await waiter
        finally:
            self.remove_callback(_wake)

    async def sleep(self, seconds: float) -> None:
        """Sleep that ends early, raising AbortedError, once the signal trips."""
        self.check()
        try:
            await asyncio.wait_for(self.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return
        self.check()


class AbortedError(Exception):
    """Raised by check helpers when the signal has been tripped."""

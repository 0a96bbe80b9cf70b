"""Signal-driven cancellation for long-running imports.

``GracefulShutdown`` turns SIGINT/SIGTERM/SIGQUIT into cancellation of the
task running the import, then runs the registered cleanup callbacks (audit
log finalization) before control returns to the caller. Rows in flight may
be lost; everything already logged is flushed.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import signal
from collections.abc import Awaitable, Callable
from typing import Optional, Union

logger = logging.getLogger(__name__)

Cleanup = Callable[[], Union[None, Awaitable[None]]]

DEFAULT_SIGNALS: tuple[signal.Signals, ...] = tuple(
    sig
    for sig in (
        getattr(signal, "SIGINT", None),
        getattr(signal, "SIGTERM", None),
        getattr(signal, "SIGQUIT", None),
    )
    if sig is not None
)


class GracefulShutdown:
    """Async context manager that cancels the current task on a signal.

    Usage:
        >>> async with GracefulShutdown() as shutdown:
        ...     shutdown.add_cleanup(lambda: audit.finalize(importer.stats))
        ...     await importer.run(organizations)
        >>> shutdown.interrupted
    """

    def __init__(self, signals: tuple[signal.Signals, ...] = DEFAULT_SIGNALS):
        self.signals = signals
        self.received: Optional[str] = None
        self._task: Optional[asyncio.Task] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._installed: list[signal.Signals] = []
        self._cleanups: list[Cleanup] = []
        self._cleaning = False

    @property
    def interrupted(self) -> bool:
        return self.received is not None

    def add_cleanup(self, callback: Cleanup) -> None:
        self._cleanups.append(callback)

    def trigger(self, name: str = "manual") -> None:
        """Cancel the guarded task as if a signal had arrived."""
        if self._cleaning or self.received is not None:
            return
        self.received = name
        logger.warning("Received %s, stopping import and saving logs", name)
        if self._task is not None:
            self._task.cancel()

    def _on_signal(self, sig: signal.Signals) -> None:
        self.trigger(sig.name)

    async def __aenter__(self) -> GracefulShutdown:
        self._loop = asyncio.get_running_loop()
        self._task = asyncio.current_task()
        for sig in self.signals:
            try:
                self._loop.add_signal_handler(sig, self._on_signal, sig)
            except (NotImplementedError, RuntimeError, ValueError):
                # Windows event loops and non-main threads cannot install handlers.
                continue
            self._installed.append(sig)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        self._cleaning = True
        try:
            if self.interrupted and self._task is not None and hasattr(self._task, "uncancel"):
                self._task.uncancel()
            await self._run_cleanups()
        finally:
            for sig in self._installed:
                self._loop.remove_signal_handler(sig)
            self._installed.clear()

        # Swallow only the cancellation we caused ourselves.
        return exc_type is asyncio.CancelledError and self.interrupted

    async def _run_cleanups(self) -> None:
        for callback in self._cleanups:
            try:
                outcome = callback()
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception:
                logger.exception("Shutdown cleanup failed")

"""Signal handling and ordered cleanup for the alert service.

Usage:
    ```python
    async with ServiceShutdown() as shutdown:
        await server.start()
        shutdown.register_cleanup(server.stop)
        shutdown.register_cleanup(close_gateway)
        await shutdown.wait()
    ```

Cleanup callbacks run in reverse registration order, so resources are
released in the opposite order they were acquired.
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from collections.abc import Callable
from contextlib import suppress
from types import FrameType
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_CLEANUP_TIMEOUT = 10.0

SHUTDOWN_SIGNALS = (signal.SIGTERM, signal.SIGINT)


class ServiceShutdown:
    """Traps SIGTERM/SIGINT and runs cleanup callbacks on exit.

    A second signal while shutdown is already in progress exits the
    process immediately.
    """

    def __init__(self, cleanup_timeout: float = DEFAULT_CLEANUP_TIMEOUT) -> None:
        """Initialize the handler.

        Args:
            cleanup_timeout: Seconds each cleanup callback may take.
        """
        self._cleanup_timeout = cleanup_timeout
        self._event: asyncio.Event | None = None
        self._requested = False
        self._loop: asyncio.AbstractEventLoop | None = None
        self._original_handlers: dict[signal.Signals, Any] = {}
        self._cleanups: list[Callable[[], Any]] = []

    @property
    def is_shutdown_requested(self) -> bool:
        """Check if shutdown has been requested."""
        return self._requested

    def register_cleanup(self, callback: Callable[[], Any]) -> None:
        """Register a sync or async callable to run during shutdown."""
        self._cleanups.append(callback)

    def request_shutdown(self) -> None:
        """Request shutdown from application code."""
        if self._requested:
            return
        self._requested = True
        logger.info("Shutdown requested")
        if self._event is not None:
            self._event.set()

    async def wait(self) -> None:
        """Block until a signal arrives or shutdown is requested."""
        if self._event is None:
            self._event = asyncio.Event()
            if self._requested:
                self._event.set()
        await self._event.wait()

    def install_signal_handlers(self) -> None:
        """Trap shutdown signals on the running loop."""
        self._loop = asyncio.get_running_loop()
        if self._event is None:
            self._event = asyncio.Event()

        for sig in SHUTDOWN_SIGNALS:
            try:
                if sys.platform == "win32":
                    self._original_handlers[sig] = signal.signal(sig, self._on_signal_sync)
                else:
                    self._loop.add_signal_handler(sig, self._on_signal, sig)
            except (ValueError, OSError, RuntimeError) as e:
                logger.warning("Could not install handler for %s: %s", sig.name, e)

    def remove_signal_handlers(self) -> None:
        """Restore default signal handling."""
        for sig in SHUTDOWN_SIGNALS:
            with suppress(ValueError, OSError, RuntimeError):
                if sys.platform == "win32":
                    if sig in self._original_handlers:
                        signal.signal(sig, self._original_handlers.pop(sig))
                elif self._loop is not None:
                    self._loop.remove_signal_handler(sig)

    def _on_signal(self, sig: signal.Signals) -> None:
        if self._requested:
            logger.warning("Received %s again - exiting immediately", sig.name)
            sys.exit(128 + sig.value)
        logger.info("Received %s - shutting down", sig.name)
        self.request_shutdown()

    def _on_signal_sync(self, sig: int, _frame: FrameType | None) -> None:
        self._on_signal(signal.Signals(sig))

    async def run_cleanups(self) -> None:
        """Run cleanup callbacks, newest first. Failures are logged."""
        while self._cleanups:
            callback = self._cleanups.pop()
            try:
                result = callback()
                if asyncio.iscoroutine(result):
                    await asyncio.wait_for(result, timeout=self._cleanup_timeout)
            except TimeoutError:
                logger.error("Cleanup %r timed out", callback)
            except Exception as e:
                logger.error("Cleanup %r failed: %s", callback, e)

    async def __aenter__(self) -> ServiceShutdown:
        self.install_signal_handlers()
        return self

    async def __aexit__(self, *_args: Any) -> None:
        self.remove_signal_handlers()
        await self.run_cleanups()

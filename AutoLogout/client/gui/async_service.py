"""
Background asyncio loop for the tkinter client.

Tk owns the main thread; the session controller, its timers and its HTTP
calls live on this loop. Tk code hands work over with `run_async` and
`call_soon`; loop code hands work back with `root.after(0, ...)`.
"""
import asyncio
import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class AsyncService:
    """Runs an asyncio event loop in a background thread."""

    def __init__(self):
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._running = False
        self._ready = threading.Event()

    @property
    def loop(self) -> Optional[asyncio.AbstractEventLoop]:
        return self._loop

    def start(self) -> None:
        """Start the loop thread and wait until the loop is usable."""
        if self._running:
            return

        self._ready.clear()

        def run_loop():
            self._loop = asyncio.new_event_loop()
            asyncio.set_event_loop(self._loop)
            self._ready.set()
            self._loop.run_forever()
            self._loop.close()

        self._thread = threading.Thread(target=run_loop, name="autologout-loop", daemon=True)
        self._thread.start()
        self._running = True
        self._ready.wait()

    def stop(self, timeout: float = 2.0) -> None:
        """Cancel outstanding tasks, stop the loop and join the thread."""
        if not self._running:
            return

        if self._loop and self._loop.is_running():
            fut = asyncio.run_coroutine_threadsafe(self._shutdown_loop(), self._loop)
            try:
                fut.result(timeout=timeout)
            except Exception as e:
                logger.warning("Loop shutdown did not complete cleanly: %s", e)
                self._loop.call_soon_threadsafe(self._loop.stop)

        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=timeout)

        self._running = False
        self._loop = None
        self._thread = None
        self._ready.clear()

    async def _shutdown_loop(self) -> None:
        try:
            current = asyncio.current_task()
            tasks = [t for t in asyncio.all_tasks() if t is not current]
            for t in tasks:
                t.cancel()
            if tasks:
                await asyncio.gather(*tasks, return_exceptions=True)
        finally:
            self._loop.stop()

    def run_async(self, coro) -> Optional[asyncio.Future]:
        """Schedule a coroutine on the loop from any thread."""
        if not self.is_running():
            coro.close()
            return None
        return asyncio.run_coroutine_threadsafe(coro, self._loop)

    def call_soon(self, fn: Callable[[], None]) -> None:
        """Run a plain callable on the loop thread."""
        if self.is_running():
            self._loop.call_soon_threadsafe(fn)
        else:
            logger.debug("Async service stopped, dropping %r", fn)

    def is_running(self) -> bool:
        return self._running and self._loop is not None

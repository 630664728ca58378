"""Background event loop hosting one BookmarkView per browser session."""

import asyncio
import logging
import threading
import time

logger = logging.getLogger(__name__)


class ViewRuntime:
    """Run every view on a single asyncio loop in a daemon thread.

    Request threads hand coroutines to the loop with ``call`` and block until
    they finish, so each view's state is only ever touched from the loop
    thread.
    """

    def __init__(self, view_factory, idle_timeout=1800):
        self._view_factory = view_factory
        self.idle_timeout = idle_timeout
        self.loop = asyncio.new_event_loop()
        self._thread = None
        self._views = {}
        self._lock = threading.RLock()
        self._stopped = False

    def start(self):
        if self._thread is not None:
            return self
        self._thread = threading.Thread(target=self._run, name='bookmark-views', daemon=True)
        self._thread.start()
        return self

    def _run(self):
        asyncio.set_event_loop(self.loop)
        self.loop.run_forever()

    def submit(self, coro):
        """Schedule ``coro`` on the loop and return a concurrent future."""
        if self._thread is None:
            self.start()
        return asyncio.run_coroutine_threadsafe(coro, self.loop)

    def call(self, coro):
        """Run ``coro`` on the loop and return its result."""
        return self.submit(coro).result()

    async def _open(self):
        view = await self._view_factory()
        await view.start()
        return view

    def view_for(self, key):
        """Return the live view for ``key``, starting a new one if needed.

        Entries hold the future of the view's start, so a slow start only
        blocks the requests for its own key.
        """
        self.sweep()
        with self._lock:
            entry = self._views.get(key)
            if entry is None:
                logger.info(f"Starting view {key[:8]}")
                entry = [self.submit(self._open()), time.monotonic()]
                self._views[key] = entry
            else:
                entry[1] = time.monotonic()
            opening = entry[0]

        if opening.exception() is not None:
            with self._lock:
                if self._views.get(key) is entry:
                    del self._views[key]
        return opening.result()

    def touch(self, key):
        """Mark ``key`` as used now."""
        with self._lock:
            entry = self._views.get(key)
            if entry is not None:
                entry[1] = time.monotonic()

    def has_view(self, key):
        with self._lock:
            return key in self._views

    def discard(self, key):
        with self._lock:
            entry = self._views.pop(key, None)
        if entry is None:
            return
        opening = entry[0]
        # A view that failed to start has nothing to release.
        if opening.exception() is not None:
            return
        logger.info(f"Closing view {key[:8]}")
        self.call(opening.result().close())

    def _idle(self, entry, now):
        opening, seen = entry
        if now - seen <= self.idle_timeout or not opening.done():
            return False
        if opening.exception() is not None:
            return True
        return not opening.result().watched

    def sweep(self, now=None):
        """Close views unused for ``idle_timeout`` seconds and not being watched."""
        now = time.monotonic() if now is None else now
        with self._lock:
            expired = [key for key, entry in self._views.items() if self._idle(entry, now)]
        for key in expired:
            self.discard(key)
        return expired

    def shutdown(self):
        if self._stopped:
            return
        self._stopped = True

        with self._lock:
            keys = list(self._views)
        if self._thread is not None:
            for key in keys:
                try:
                    self.discard(key)
                except Exception as e:
                    logger.error(f"Failed to close view {key[:8]}: {str(e)}")

            self.loop.call_soon_threadsafe(self.loop.stop)
            self._thread.join()
            self._thread = None
        self.loop.close()

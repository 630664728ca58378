"""The bookmark screen: one signed-in session's state and the actions on it."""

import asyncio
import logging
import queue
from contextlib import AsyncExitStack

from smart_bookmarks import state as transitions
from smart_bookmarks.errors import BookmarkAppError, SESSION_FALLBACK_MESSAGE
from smart_bookmarks.state import ViewState
from smart_bookmarks.utils import clean_fields

logger = logging.getLogger(__name__)


class BookmarkView:
    """Compose the session, repository and change feed into one screen.

    All methods must run on the same event loop. Every state change goes
    through ``_apply`` with one of the transitions from ``state``; watchers
    receive the new revision number afterwards.
    """

    def __init__(self, sessions, repository, feed):
        self.sessions = sessions
        self.repository = repository
        self.feed = feed

        self.state = ViewState()
        self.revision = 0

        self._watchers = set()
        self._tasks = set()
        self._resources = AsyncExitStack()
        self._identity_scope = None
        self._identity_lock = asyncio.Lock()
        self._closed = False

    # State plumbing

    def _apply(self, transition, *args):
        self.state = transition(self.state, *args)
        self.revision += 1
        for watcher in list(self._watchers):
            watcher.put_nowait(self.revision)
        return self.state

    def _fail(self, error):
        self._apply(transitions.error_raised, error.message)

    def _spawn(self, coro):
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task):
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Background view task failed: {task.exception()!r}")

    def watch(self):
        """Return a queue that receives the revision after every change."""
        watcher = queue.Queue()
        self._watchers.add(watcher)
        return watcher

    def unwatch(self, watcher):
        self._watchers.discard(watcher)

    @property
    def watched(self):
        """True while a browser is streaming this view's changes."""
        return bool(self._watchers)

    async def wait_idle(self):
        """Wait for listener and feed triggered work to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # Lifecycle

    async def start(self):
        """Listen for identity changes, then resolve the current identity."""
        subscription = self.sessions.on_identity_change(self._identity_changed)
        self._resources.callback(subscription.unsubscribe)

        try:
            identity = await self.sessions.resolve_current_identity()
        except Exception as e:
            message = getattr(e, 'message', None) or str(e) or SESSION_FALLBACK_MESSAGE
            logger.warning(f"Session resolution failed: {message}")
            async with self._identity_lock:
                self._apply(transitions.session_failed, message)
                await self._enter_identity(None)
            return

        async with self._identity_lock:
            self._apply(transitions.session_resolved, identity)
            await self._enter_identity(self.state.user_id)

    async def close(self):
        """Release the feed subscription and identity listener."""
        if self._closed:
            return
        self._closed = True

        await self.wait_idle()
        async with self._identity_lock:
            await self._leave_identity()
        await self._resources.aclose()
        self._watchers.clear()

    def _identity_changed(self, identity):
        if self._closed:
            return
        self._spawn(self._switch_identity(identity))

    async def _switch_identity(self, identity):
        # Events are applied one at a time, in the order they arrived.
        async with self._identity_lock:
            self._apply(transitions.identity_changed, identity)
            await self._enter_identity(self.state.user_id)

    async def _enter_identity(self, user_id):
        """Pair the change feed subscription with the identity in scope.

        Callers hold ``_identity_lock``.
        """
        if user_id and self.feed.active and self.feed.user_id == user_id:
            await self.reload()
            return

        await self._leave_identity()
        if not user_id or self._closed:
            return

        scope = AsyncExitStack()
        feed_error = None
        try:
            await self.feed.subscribe(user_id, self._feed_changed)
            scope.push_async_callback(self.feed.unsubscribe)
        except Exception as e:
            logger.error(f"Failed to subscribe to changes for {user_id}: {str(e)}")
            feed_error = str(e) or 'Live updates are unavailable.'
        self._identity_scope = scope

        await self.reload()
        # A successful load clears the error slot, so report the feed last.
        if feed_error:
            self._apply(transitions.error_raised, feed_error)

    async def _leave_identity(self):
        scope, self._identity_scope = self._identity_scope, None
        if scope is not None:
            await scope.aclose()

    def _feed_changed(self):
        if self._closed:
            return
        self._spawn(self.reload())

    async def reload(self):
        """Replace the list with what storage currently holds."""
        user_id = self.state.user_id
        if not user_id:
            return

        try:
            bookmarks = await self.repository.list(user_id)
        except BookmarkAppError as e:
            self._fail(e)
            return

        # The identity may have changed while the list was in flight.
        if self.state.user_id != user_id:
            return
        self._apply(transitions.bookmarks_loaded, bookmarks)

    # Bookmarks

    async def add_bookmark(self, title, url):
        self._apply(transitions.draft_changed, title, url)
        self._apply(transitions.error_cleared)

        try:
            clean_fields(title, url)
            bookmark = await self.repository.insert(title, url)
        except BookmarkAppError as e:
            self._fail(e)
            return None

        if bookmark is None:
            self._apply(transitions.draft_changed, '', '')
            await self.reload()
            return None

        logger.info(f"Bookmark {bookmark.id} added")
        self._apply(transitions.bookmark_added, bookmark)
        return bookmark

    async def delete_bookmark(self, bookmark_id):
        self._apply(transitions.error_cleared)
        snapshot = self.state.bookmarks
        self._apply(transitions.bookmark_removed, bookmark_id)

        try:
            await self.repository.delete(bookmark_id)
        except BookmarkAppError as e:
            self._apply(transitions.bookmarks_restored, snapshot, e.message)
            return False

        logger.info(f"Bookmark {bookmark_id} deleted")
        return True

    async def start_edit(self, bookmark_id):
        bookmark = self.state.find(bookmark_id)
        if bookmark is None:
            return
        self._apply(transitions.edit_started, bookmark)

    async def cancel_edit(self):
        self._apply(transitions.edit_cancelled)

    async def save_edit(self, bookmark_id, title, url):
        self._apply(transitions.edit_changed, title, url)
        self._apply(transitions.error_cleared)

        try:
            clean_fields(title, url)
            bookmark = await self.repository.update(bookmark_id, title, url)
        except BookmarkAppError as e:
            self._fail(e)
            return None

        logger.info(f"Bookmark {bookmark_id} updated")
        self._apply(transitions.bookmark_updated, bookmark)
        return bookmark

    # Session actions

    async def sign_in(self, provider=None):
        """Return the URL to send the browser to, or ``None`` on failure."""
        self._apply(transitions.error_cleared)
        try:
            return await self.sessions.sign_in(provider)
        except BookmarkAppError as e:
            self._fail(e)
            return None

    async def complete_sign_in(self, auth_code):
        """Finish the redirect flow; the auth listener moves the view to signed-in."""
        self._apply(transitions.error_cleared)
        try:
            identity = await self.sessions.complete_sign_in(auth_code)
        except BookmarkAppError as e:
            self._fail(e)
            return None

        await self.wait_idle()
        return identity

    async def sign_out(self):
        signed_out = True
        try:
            await self.sessions.sign_out()
        except BookmarkAppError as e:
            self._fail(e)
            signed_out = False
        finally:
            self._apply(transitions.profile_menu_closed)
        await self.wait_idle()
        return signed_out

    async def toggle_profile_menu(self):
        self._apply(transitions.profile_menu_toggled)

    async def raise_error(self, message):
        self._apply(transitions.error_raised, message)


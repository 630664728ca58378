"""Scoped reads and writes against the hosted ``bookmarks`` table."""

import logging

import httpx
from supabase import PostgrestAPIError

from smart_bookmarks.errors import StorageError
from smart_bookmarks.models import Bookmark
from smart_bookmarks.utils import clean_fields

logger = logging.getLogger(__name__)

TABLE = 'bookmarks'


class BookmarkRepository:
    """Bookmark CRUD for the signed-in identity.

    Writes never send ``user_id``: the storage policy fills it in from the
    session and rejects rows owned by anyone else. Reads still filter by the
    identity explicitly.
    """

    def __init__(self, supabase):
        self._client = supabase

    def _table(self):
        return self._client.table(TABLE)

    async def _execute(self, query, action):
        try:
            return await query.execute()
        except PostgrestAPIError as e:
            logger.warning(f"Failed to {action}: {e.message}")
            raise StorageError(e.message or f'Failed to {action}') from e
        except httpx.HTTPError as e:
            logger.warning(f"Failed to {action}: {str(e)}")
            raise StorageError(str(e) or f'Failed to {action}') from e

    async def list(self, user_id):
        """Fetch every bookmark of ``user_id``, newest first."""
        query = (
            self._table()
            .select('*')
            .eq('user_id', user_id)
            .order('created_at', desc=True)
        )
        response = await self._execute(query, 'load bookmarks')
        return [Bookmark.from_row(row) for row in response.data or []]

    async def insert(self, title, url):
        """Insert a bookmark and return the stored row.

        Returns ``None`` when the service accepted the row but did not send it
        back.
        """
        title, url = clean_fields(title, url)
        query = self._table().insert({'title': title, 'url': url})
        response = await self._execute(query, 'save bookmark')

        if not response.data:
            return None
        return Bookmark.from_row(response.data[0])

    async def update(self, bookmark_id, title, url):
        title, url = clean_fields(title, url)
        query = self._table().update({'title': title, 'url': url}).eq('id', bookmark_id)
        response = await self._execute(query, 'update bookmark')

        if not response.data:
            raise StorageError('Bookmark not found.')
        return Bookmark.from_row(response.data[0])

    async def delete(self, bookmark_id):
        query = self._table().delete().eq('id', bookmark_id)
        await self._execute(query, 'delete bookmark')

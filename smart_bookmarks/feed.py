"""Realtime change notifications for one identity's bookmarks."""

import logging

logger = logging.getLogger(__name__)


class ChangeFeed:
    """Holds at most one realtime channel at a time.

    The callback is a bare trigger: it receives no payload, whatever the
    event type was.
    """

    def __init__(self, supabase, schema='public', table='bookmarks'):
        self._client = supabase
        self.schema = schema
        self.table = table
        self._channel = None
        self.user_id = None

    @property
    def active(self):
        return self._channel is not None

    async def subscribe(self, user_id, on_change):
        await self.unsubscribe()

        realtime = self._client.realtime
        if not realtime.is_connected:
            await realtime.connect()

        channel = self._client.channel(f'{self.table}-{user_id}')
        channel.on_postgres_changes(
            '*',
            schema=self.schema,
            table=self.table,
            filter=f'user_id=eq.{user_id}',
            callback=lambda payload: on_change(),
        )
        # Track the channel before the join so a failed join is still removed.
        self._channel = channel
        self.user_id = user_id
        try:
            await channel.subscribe()
        except Exception:
            await self.unsubscribe()
            raise

        logger.info(f"Subscribed to {self.table} changes for {user_id}")

    async def unsubscribe(self):
        if self._channel is None:
            return

        channel, user_id = self._channel, self.user_id
        self._channel = None
        self.user_id = None

        await self._client.remove_channel(channel)
        logger.info(f"Unsubscribed from {self.table} changes for {user_id}")

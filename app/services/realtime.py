"""
Process-wide realtime subscription manager.

Channels are keyed by (table, filter) and reference counted: the first
subscriber opens the channel, later subscribers share it, and closing the
last handle removes it. Every change event is fanned out to all live
callbacks of that channel.
"""
import asyncio
import itertools
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol

from database.supabase_client import get_async_supabase_client

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[dict], Any]


@dataclass(frozen=True)
class ChannelKey:
    table: str
    filter: str | None = None

    @property
    def name(self) -> str:
        return f"{self.table}:{self.filter}" if self.filter else self.table


class RealtimeTransport(Protocol):
    async def open(self, key: ChannelKey, on_event: Callable[[dict], None]) -> Any: ...

    async def close(self, channel: Any) -> None: ...


class SupabaseRealtimeTransport:
    """Postgres change feeds over the Supabase realtime socket."""

    async def open(self, key: ChannelKey, on_event: Callable[[dict], None]) -> Any:
        client = await get_async_supabase_client()
        channel = client.channel(key.name)
        channel.on_postgres_changes(
            "*",
            callback=on_event,
            table=key.table,
            schema="public",
            filter=key.filter,
        )
        await channel.subscribe()
        logger.info(f"Realtime channel {key.name} subscribed")
        return channel

    async def close(self, channel: Any) -> None:
        client = await get_async_supabase_client()
        await client.remove_channel(channel)


@dataclass
class _Channel:
    handle: Any = None
    callbacks: dict[int, ChangeCallback] = field(default_factory=dict)


class SubscriptionHandle:
    """Owned by whoever subscribed; ``close()`` releases its reference."""

    def __init__(self, manager: "RealtimeManager", key: ChannelKey, callback_id: int):
        self._manager = manager
        self.key = key
        self._callback_id = callback_id
        self.closed = False

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        await self._manager._release(self.key, self._callback_id)


class RealtimeManager:

    def __init__(self, transport: RealtimeTransport):
        self.transport = transport
        self._channels: dict[ChannelKey, _Channel] = {}
        self._ids = itertools.count(1)
        self._lock = asyncio.Lock()

    async def subscribe(self, table: str, filter: str | None, callback: ChangeCallback) -> SubscriptionHandle:
        key = ChannelKey(table, filter)
        callback_id = next(self._ids)
        async with self._lock:
            channel = self._channels.get(key)
            if channel is None:
                channel = _Channel()
                channel.handle = await self.transport.open(key, lambda payload: self._dispatch(key, payload))
                self._channels[key] = channel
            channel.callbacks[callback_id] = callback
        return SubscriptionHandle(self, key, callback_id)

    async def _release(self, key: ChannelKey, callback_id: int) -> None:
        async with self._lock:
            channel = self._channels.get(key)
            if channel is None:
                return
            channel.callbacks.pop(callback_id, None)
            if channel.callbacks:
                return
            del self._channels[key]
        await self.transport.close(channel.handle)
        logger.info(f"Realtime channel {key.name} removed")

    def _dispatch(self, key: ChannelKey, payload: dict) -> None:
        channel = self._channels.get(key)
        if channel is None:
            return
        for callback in list(channel.callbacks.values()):
            try:
                callback(payload)
            except Exception as e:
                logger.error(f"Realtime callback for {key.name} failed: {e}")

    def subscriber_count(self, table: str, filter: str | None = None) -> int:
        channel = self._channels.get(ChannelKey(table, filter))
        return len(channel.callbacks) if channel else 0

    @property
    def channel_count(self) -> int:
        return len(self._channels)

    async def close(self) -> None:
        """Remove every channel (application shutdown)."""
        async with self._lock:
            channels = list(self._channels.items())
            self._channels.clear()
        for key, channel in channels:
            try:
                await self.transport.close(channel.handle)
            except Exception as e:
                logger.error(f"Failed to close realtime channel {key.name}: {e}")


def changed_record(payload: dict) -> dict:
    """Extract the new (or, for deletes, old) row from a change payload."""
    data = payload.get("data", payload)
    return data.get("record") or data.get("new") or data.get("old_record") or data.get("old") or {}


async def watch_usage_changes(manager: RealtimeManager, invalidate: Callable[[str], None]) -> list[SubscriptionHandle]:
    """Invalidate cached usage snapshots when a profile or summary row changes."""

    def on_summary(payload: dict) -> None:
        user_id = changed_record(payload).get("user_id")
        if user_id:
            invalidate(user_id)

    def on_profile(payload: dict) -> None:
        user_id = changed_record(payload).get("id")
        if user_id:
            invalidate(user_id)

    return [
        await manager.subscribe("user_usage_summary", None, on_summary),
        await manager.subscribe("profiles", None, on_profile),
    ]

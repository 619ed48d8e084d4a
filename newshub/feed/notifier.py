import asyncio
import json
import time
from typing import Any, Literal, Optional, Set, Union

from pydantic import BaseModel, Field

from newshub.config import CONFIG
from newshub.feed.cache import AggregationCache
from newshub.feed.model import CacheEntry
from newshub.logging_config import create_logger


HEARTBEAT_FRAME = ":heartbeat\n\n"
SUBSCRIPTION_QUEUE_SIZE = 16


class SourceStats(BaseModel):
    rss: int = Field(default=0, description="Articles from feed sources")
    tabular: int = Field(default=0, description="Articles from the bitable")


class MessageStats(BaseModel):
    total: int = Field(description="Total articles in the cache")
    sources: SourceStats


class StatsMessage(BaseModel):
    """Summary pushed to connected clients."""
    type: Literal["init", "update"]
    timestamp: int = Field(description="Unix time in milliseconds")
    stats: MessageStats


def build_message(message_type: Literal["init", "update"], entry: CacheEntry) -> StatsMessage:
    return StatsMessage(
        type=message_type,
        timestamp=int(time.time() * 1000),
        stats=MessageStats(
            total=entry.total,
            sources=SourceStats(rss=entry.sources.rss, tabular=entry.sources.tabular),
        ),
    )


def format_sse(data: Union[StatsMessage, Any]) -> str:
    """Frame one event-stream message."""
    payload = data.model_dump_json() if isinstance(data, BaseModel) else json.dumps(data, ensure_ascii=False)
    return f"data: {payload}\n\n"


class Subscription:
    """One connected listener. Messages beyond the queue size are dropped."""

    def __init__(self, maxsize: int = SUBSCRIPTION_QUEUE_SIZE):
        self.queue: "asyncio.Queue[StatsMessage]" = asyncio.Queue(maxsize=maxsize)
        self.dropped = 0

    def offer(self, message: StatsMessage) -> bool:
        try:
            self.queue.put_nowait(message)
            return True
        except asyncio.QueueFull:
            self.dropped += 1
            return False

    async def next_message(self, timeout: Optional[float] = None) -> Optional[StatsMessage]:
        """Wait for the next message; None when timeout passes first."""
        try:
            return await asyncio.wait_for(self.queue.get(), timeout=timeout)
        except asyncio.TimeoutError:
            return None


class ChangeNotifier:
    """
    Polls the cache and pushes a summary to every subscriber whenever a refresh
    replaces the cached entry.
    """

    def __init__(
        self,
        cache: AggregationCache,
        poll_interval: Optional[float] = None,
        stale_after: Optional[float] = None,
    ):
        self.cache = cache
        self.poll_interval = CONFIG.NOTIFIER_POLL_INTERVAL if poll_interval is None else poll_interval
        self.stale_after = CONFIG.NOTIFIER_STALE_AFTER if stale_after is None else stale_after
        self.logger = create_logger("ChangeNotifier")

        self._subscriptions: Set[Subscription] = set()
        self._task: Optional["asyncio.Task[None]"] = None

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def subscribe(self) -> Subscription:
        subscription = Subscription()
        self._subscriptions.add(subscription)
        self.logger.info(f"Client subscribed, {self.subscriber_count} connected")
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        self._subscriptions.discard(subscription)
        self.logger.info(f"Client unsubscribed, {self.subscriber_count} connected")

    def broadcast(self, message: StatsMessage) -> int:
        """Queue message for every subscriber; returns how many accepted it."""
        delivered = sum(1 for subscription in list(self._subscriptions) if subscription.offer(message))
        if delivered < self.subscriber_count:
            self.logger.warning(f"Dropped {message.type} message for {self.subscriber_count - delivered} slow clients")
        return delivered

    async def check_and_broadcast(self) -> bool:
        """Refresh a stale cache and announce the new entry. Returns True when a message was sent."""
        try:
            status = self.cache.status()
            if status.age <= self.stale_after or status.is_fetching:
                return False

            self.logger.info(f"Cache is {status.age:.0f}s old, refreshing")
            previous = self.cache.current
            entry = await self.cache.refresh()
            if entry is previous:
                self.logger.info("Refresh kept the previous entry, nothing to announce")
                return False

            self.broadcast(build_message("update", entry))
            return True
        except Exception as e:
            self.logger.error(f"Automatic refresh failed: {e}")
            return False

    async def run(self) -> None:
        while True:
            await asyncio.sleep(self.poll_interval)
            await self.check_and_broadcast()

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.ensure_future(self.run())
            self.logger.info(f"Change notifier started, polling every {self.poll_interval}s")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        self.logger.info("Change notifier stopped")

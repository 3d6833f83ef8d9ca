"""
In-process fan-out of batch progress events.

Each event gets a sequence number so a stream consumer can tell where it resumed.
A slow subscriber loses its oldest pending events rather than blocking the batch loop.
"""
import asyncio
import itertools
from collections import deque
from datetime import datetime, timezone


class EventBus:
    def __init__(self, history_size: int = 200, queue_size: int = 500):
        self._subscribers: set[asyncio.Queue] = set()
        self._history: deque[dict] = deque(maxlen=history_size)
        self._queue_size = queue_size
        self._seq = itertools.count(1)

    def publish_nowait(self, event_type: str, source: str, data: dict) -> dict:
        event = {
            "seq": next(self._seq),
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "type": event_type,
            "source": source,
            "data": data,
        }
        self._history.append(event)
        for queue in list(self._subscribers):
            if queue.full():
                queue.get_nowait()
            queue.put_nowait(event)
        return event

    async def publish(self, event_type: str, source: str, data: dict) -> dict:
        return self.publish_nowait(event_type, source, data)

    async def subscribe(self, replay_last: int = 10) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._queue_size)
        if replay_last > 0:
            for event in list(self._history)[-replay_last:]:
                queue.put_nowait(event)
        self._subscribers.add(queue)
        return queue

    async def unsubscribe(self, queue: asyncio.Queue) -> None:
        self._subscribers.discard(queue)

    def history(self, source: str | None = None, limit: int | None = None) -> list[dict]:
        events = [e for e in self._history if source is None or e["source"] == source]
        return events[-limit:] if limit else events

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

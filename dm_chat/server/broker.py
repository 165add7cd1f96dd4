"""Fan-out of newly stored chat messages to live subscribers.

Each subscriber is an ``asyncio.Queue`` owned by the event loop serving its
stream. :meth:`MessageBroker.publish` may be called from any thread (the sync
route handlers run in a thread pool), so delivery is scheduled onto the
owning loop.
"""
import asyncio
import json
import threading
from typing import Any, Dict, List, Tuple

from .auth import logger

QUEUE_SIZE = 100


def format_sse(event: Dict[str, Any], name: str = "message") -> str:
    return f"event: {name}\ndata: {json.dumps(event)}\n\n"


KEEP_ALIVE = ": keep-alive\n\n"


def _offer(queue: asyncio.Queue, event: Dict[str, Any]) -> None:
    try:
        queue.put_nowait(event)
    except asyncio.QueueFull:
        logger.warning("LIVE_DROP room_id=%s message_id=%s", event.get("room_id"), event.get("id"))


class MessageBroker:
    def __init__(self):
        self._subscribers: List[Tuple[asyncio.AbstractEventLoop, asyncio.Queue]] = []
        self._lock = threading.Lock()

    def subscribe(self) -> asyncio.Queue:
        """Register a queue on the running loop. Must be called from a coroutine."""
        queue: asyncio.Queue = asyncio.Queue(maxsize=QUEUE_SIZE)
        with self._lock:
            self._subscribers.append((asyncio.get_running_loop(), queue))
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        with self._lock:
            self._subscribers = [(loop, q) for loop, q in self._subscribers if q is not queue]

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def publish(self, event: Dict[str, Any]) -> int:
        """Schedule ``event`` on every subscriber queue; returns how many were reached."""
        with self._lock:
            targets = list(self._subscribers)
        delivered = 0
        for loop, queue in targets:
            try:
                loop.call_soon_threadsafe(_offer, queue, event)
            except RuntimeError:
                # Loop already closed; its stream is gone.
                self.unsubscribe(queue)
                continue
            delivered += 1
        return delivered


broker = MessageBroker()

"""Server-sent-events subscriber delivering live messages for one room."""
import json
import threading
from typing import Callable, Iterable, Iterator, Optional, Union

import requests

from .api import APIClient, logger
from .config import RECONNECT_INITIAL_DELAY, RECONNECT_MAX_DELAY, STREAM_CONNECT_TIMEOUT
from .models import Message

MessageCallback = Callable[[Message], None]


def iter_sse_data(lines: Iterable[Union[str, bytes, None]]) -> Iterator[str]:
    """Yield the data payload of each complete event in an SSE line stream."""
    buffer = []
    broken = False
    for line in lines:
        if line is None:
            continue
        if isinstance(line, bytes):
            try:
                line = line.decode("utf-8")
            except UnicodeDecodeError:
                # The whole event is dropped at its terminating blank line.
                broken = True
                continue
        if line == "":
            if buffer and not broken:
                yield "\n".join(buffer)
            buffer = []
            broken = False
            continue
        if line.startswith(":"):
            continue
        name, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if name == "data":
            buffer.append(value)


def parse_event(data: str) -> Optional[Message]:
    try:
        return Message.from_dict(json.loads(data))
    except (ValueError, KeyError, TypeError):
        return None


class LiveSubscription:
    """One streaming connection to ``/chat/subscribe`` for a single room.

    Runs on a background thread once started. On a dropped connection it
    reconnects with exponential backoff until closed, unless ``reconnect`` is
    False or ``max_retries`` consecutive attempts have failed.
    """

    def __init__(
        self,
        api: APIClient,
        room_id: int,
        on_message: MessageCallback,
        http: Optional[requests.Session] = None,
        reconnect: bool = True,
        max_retries: Optional[int] = None,
        initial_delay: float = RECONNECT_INITIAL_DELAY,
        max_delay: float = RECONNECT_MAX_DELAY,
        connect_timeout: float = STREAM_CONNECT_TIMEOUT,
    ):
        self.room_id = int(room_id)
        self.on_message = on_message
        self.url = api.url("/chat/subscribe")
        self.headers = {"Accept": "text/event-stream", **api.auth_headers()}
        self.reconnect = reconnect
        self.max_retries = max_retries
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.connect_timeout = connect_timeout
        self._http = http or requests.Session()
        self._stop = threading.Event()
        self._lock = threading.Lock()
        self._response: Optional[requests.Response] = None
        self._thread: Optional[threading.Thread] = None
        self._connected = False

    @property
    def closed(self) -> bool:
        return self._stop.is_set()

    def start(self) -> "LiveSubscription":
        self._thread = threading.Thread(target=self.run, name=f"live-room-{self.room_id}", daemon=True)
        self._thread.start()
        return self

    def close(self) -> None:
        with self._lock:
            if self._stop.is_set():
                return
            self._stop.set()
            response = self._response
        if response is not None:
            response.close()
        logger.info("LIVE_CLOSED room_id=%s", self.room_id)

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def __enter__(self) -> "LiveSubscription":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def run(self) -> None:
        failures = 0
        delay = self.initial_delay
        try:
            while not self._stop.is_set():
                self._connected = False
                try:
                    self._stream()
                except (requests.RequestException, OSError, ValueError) as exc:
                    if self._stop.is_set():
                        break
                    logger.warning("LIVE_DISCONNECT room_id=%s error=%s", self.room_id, exc)
                if self._stop.is_set() or not self.reconnect:
                    break
                if self._connected:
                    failures = 0
                    delay = self.initial_delay
                failures += 1
                if self.max_retries is not None and failures > self.max_retries:
                    logger.error("LIVE_GIVE_UP room_id=%s attempts=%s", self.room_id, failures)
                    break
                logger.info("LIVE_RECONNECT room_id=%s delay=%.1fs", self.room_id, delay)
                self._stop.wait(delay)
                delay = min(delay * 2, self.max_delay)
        finally:
            self._http.close()

    def _stream(self) -> None:
        with self._http.get(
            self.url,
            params={"room_id": self.room_id},
            headers=self.headers,
            stream=True,
            timeout=(self.connect_timeout, None),
        ) as resp:
            resp.raise_for_status()
            with self._lock:
                if self._stop.is_set():
                    return
                self._response = resp
            self._connected = True
            logger.info("LIVE_CONNECTED room_id=%s", self.room_id)
            try:
                # Bytes, not text: SSE is always UTF-8 and only CR or LF end a line.
                for data in iter_sse_data(resp.iter_lines()):
                    if self._stop.is_set():
                        break
                    self.handle_event(data)
            finally:
                with self._lock:
                    self._response = None

    def handle_event(self, data: str) -> Optional[Message]:
        """Deliver one event payload if it is a well-formed message for this room."""
        message = parse_event(data)
        if message is None:
            logger.debug("LIVE_DROP_MALFORMED room_id=%s data=%r", self.room_id, data[:200])
            return None
        if message.room_id != self.room_id or self._stop.is_set():
            return None
        self.on_message(message)
        return message


def subscribe(api: APIClient, room_id: int, on_message: MessageCallback, **options) -> LiveSubscription:
    """Open a live subscription for ``room_id`` and start streaming in the background."""
    return LiveSubscription(api, room_id, on_message, **options).start()

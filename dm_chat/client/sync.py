"""Room/message synchronization for one conversation view.

A view moves through ``RESOLVING -> LOADING -> LIVE``: find the room, load its
history once, then append messages delivered by the live subscriber. Every
message seen advances the read cursor and queues a read receipt.
"""
from dataclasses import dataclass
from enum import Enum
from functools import partial
from threading import Lock
from typing import Callable, List, Optional, Protocol, Set

from .api import APIClient, logger
from .config import MARK_OWN_MESSAGES_READ
from .live import MessageCallback, subscribe
from .models import ME, OTHER, Bubble, Message, ReadCursor, Room
from .receipts import ReadReceiptQueue
from .rooms import find_or_create_dm_room
from .session import Session


class SyncState(str, Enum):
    IDLE = "idle"
    RESOLVING = "resolving"
    LOADING = "loading"
    LIVE = "live"
    EMPTY = "empty"
    CLOSED = "closed"


class Handle(Protocol):
    def close(self) -> None:
        ...


Resolver = Callable[[str, str], Optional[int]]
Subscriber = Callable[[int, MessageCallback], Handle]


@dataclass
class SendOutcome:
    sent: bool
    draft: str
    error: Optional[str] = None


class ConversationSync:
    def __init__(
        self,
        api: APIClient,
        session: Session,
        resolver: Optional[Resolver] = None,
        subscriber: Optional[Subscriber] = None,
        receipts: Optional[ReadReceiptQueue] = None,
        mark_own_messages_read: bool = MARK_OWN_MESSAGES_READ,
        on_change: Optional[Callable[[], None]] = None,
    ):
        self.api = api
        self.session = session
        self.resolver = resolver or partial(find_or_create_dm_room, api)
        self.subscriber = subscriber or partial(subscribe, api)
        self.receipts = receipts or ReadReceiptQueue(api)
        self.mark_own_messages_read = mark_own_messages_read
        self.on_change = on_change

        self.state = SyncState.IDLE
        self.room: Optional[Room] = None
        self.peer: Optional[str] = None
        self.cursor = ReadCursor()
        self._bubbles: List[Bubble] = []
        self._seen_ids: Set[int] = set()
        self._handle: Optional[Handle] = None
        self._view_token = 0
        self._lock = Lock()

    @property
    def room_id(self) -> Optional[int]:
        return self.room.id if self.room else None

    @property
    def messages(self) -> List[Bubble]:
        with self._lock:
            return list(self._bubbles)

    def tag(self, message: Message) -> Bubble:
        return Bubble(message=message, origin=ME if message.sender == self.session.username else OTHER)

    def open(self, room_id: Optional[int] = None, peer: Optional[str] = None) -> SyncState:
        """Bind this view to a room, either a known ``room_id`` or the DM with ``peer``."""
        self.close()
        with self._lock:
            self._view_token += 1
            token = self._view_token
            self._bubbles = []
            self._seen_ids = set()
            self.cursor = ReadCursor()
            self.room = None
            self.peer = None

        self._set_state(SyncState.RESOLVING)
        room = self._resolve(room_id, peer)
        if token != self._view_token:
            return self.state
        if room is None:
            logger.info("CONVERSATION_EMPTY room_id=%s peer=%s", room_id, peer)
            self._set_state(SyncState.EMPTY)
            return self.state
        self.room = room
        self.peer = peer or room.other_participant(self.session.username)

        self._set_state(SyncState.LOADING)
        history = self.api.get_history(room.id)
        if token != self._view_token:
            return self.state
        if history is None:
            logger.warning("HISTORY_FAIL room_id=%s", room.id)
            history = []
        with self._lock:
            for message in history:
                self._append(message)
            last_id = self.cursor.value
        if last_id is not None:
            self.receipts.submit(room.id, self.session.username, last_id)
        self._notify()

        handle = self.subscriber(room.id, partial(self._on_live, token))
        with self._lock:
            if token == self._view_token:
                self._handle = handle
                handle = None
        if handle is not None:
            handle.close()
            return self.state
        self._set_state(SyncState.LIVE)
        return self.state

    def _resolve(self, room_id: Optional[int], peer: Optional[str]) -> Optional[Room]:
        me = self.session.username
        if room_id is not None:
            rooms = self.api.get_room(room_id)
            if rooms:
                return rooms[0]
        if not peer:
            return None
        resolved = self.resolver(me, peer)
        if resolved is None:
            return None
        return Room(id=resolved, participants=[me, peer])

    def _append(self, message: Message) -> bool:
        if message.id in self._seen_ids:
            return False
        self._seen_ids.add(message.id)
        self._bubbles.append(self.tag(message))
        self.cursor.advance(message.id)
        return True

    def _on_live(self, token: int, message: Message) -> None:
        with self._lock:
            if token != self._view_token or self.room is None:
                return
            if not self._append(message):
                return
            room_id = self.room.id
            last_id = self.cursor.value
        if message.sender != self.session.username or self.mark_own_messages_read:
            self.receipts.submit(room_id, self.session.username, last_id)
        self._notify()

    def send(self, draft: str) -> SendOutcome:
        text = draft.strip()
        if not text or self.room is None or self.state is SyncState.CLOSED:
            return SendOutcome(sent=False, draft=draft)
        res = self.api.send_message(self.session.username, text, self.room.id)
        if not res.succeeded:
            error = res.error_message("Failed to send message")
            logger.warning("SEND_FAIL room_id=%s error=%s", self.room.id, error)
            return SendOutcome(sent=False, draft=draft, error=error)
        return SendOutcome(sent=True, draft="")

    def close(self) -> None:
        """Release the live subscriber; safe to call on every exit path."""
        with self._lock:
            self._view_token += 1
            handle = self._handle
            self._handle = None
        if handle is not None:
            handle.close()
        if self.state not in (SyncState.IDLE, SyncState.CLOSED):
            self._set_state(SyncState.CLOSED)

    def __enter__(self) -> "ConversationSync":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _set_state(self, state: SyncState) -> None:
        self.state = state
        self._notify()

    def _notify(self) -> None:
        if self.on_change is not None:
            self.on_change()

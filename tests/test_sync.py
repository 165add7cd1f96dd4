"""Unit tests for the room/message synchronizer."""
import pytest

from dm_chat.client.models import ME, OTHER, Message
from dm_chat.client.sync import ConversationSync, SyncState

from conftest import FakeResponse


class FakeHandle:
    def __init__(self):
        self.closes = 0

    def close(self):
        self.closes += 1


class FakeSubscriber:
    """Records subscriptions and lets tests push live messages."""

    def __init__(self):
        self.subscriptions = []

    def __call__(self, room_id, on_message):
        handle = FakeHandle()
        self.subscriptions.append((room_id, on_message, handle))
        return handle

    def push(self, message, index=-1):
        self.subscriptions[index][1](message)


class RecordingReceipts:
    def __init__(self):
        self.submitted = []

    def submit(self, room_id, username, last_read_id):
        self.submitted.append((room_id, username, last_read_id))


def msg(message_id, sender="bob", text="hi", room_id=42):
    return Message(id=message_id, room_id=room_id, sender=sender, message=text)


def wire(message_id, sender="bob", text="hi", room_id=42):
    return {"id": message_id, "room_id": room_id, "sender": sender, "message": text}


@pytest.fixture
def subscriber():
    return FakeSubscriber()


@pytest.fixture
def receipts():
    return RecordingReceipts()


@pytest.fixture
def resolved():
    return []


@pytest.fixture
def make_sync(api, session, subscriber, receipts, resolved):
    def _make(room_id=42, **options):
        def resolver(me, other):
            resolved.append((me, other))
            return room_id

        return ConversationSync(api, session, resolver=resolver, subscriber=subscriber, receipts=receipts, **options)

    return _make


class TestOpen:
    """Tests for opening a conversation."""

    def test_new_dm_goes_live_and_shows_pushed_message(self, make_sync, fake_http, subscriber, receipts, resolved):
        fake_http.add("GET", "/chat", FakeResponse([]))
        sync = make_sync()

        assert sync.open(peer="bob") == SyncState.LIVE
        assert resolved == [("alice", "bob")]
        assert sync.room_id == 42
        assert sync.peer == "bob"
        assert receipts.submitted == []

        subscriber.push(msg(1, text="hi"))
        [bubble] = sync.messages
        assert bubble.text == "hi"
        assert bubble.origin == OTHER
        assert receipts.submitted == [(42, "alice", 1)]

    def test_history_cursor_is_max_id(self, make_sync, fake_http, receipts):
        fake_http.add("GET", "/chat", FakeResponse([wire(3), wire(7), wire(5)]))
        sync = make_sync()
        sync.open(peer="bob")

        assert [b.message.id for b in sync.messages] == [3, 7, 5]
        assert sync.cursor.value == 7
        assert receipts.submitted == [(42, "alice", 7)]

    def test_tags_origin(self, make_sync, fake_http):
        fake_http.add("GET", "/chat", FakeResponse([wire(1, sender="alice"), wire(2, sender="bob")]))
        sync = make_sync()
        sync.open(peer="bob")
        assert [b.origin for b in sync.messages] == [ME, OTHER]

    def test_states_in_order(self, make_sync, fake_http):
        fake_http.add("GET", "/chat", FakeResponse([]))
        seen = []
        sync = make_sync()
        sync.on_change = lambda: seen.append(sync.state)
        sync.open(peer="bob")
        assert [s for i, s in enumerate(seen) if i == 0 or seen[i - 1] != s] == [
            SyncState.RESOLVING,
            SyncState.LOADING,
            SyncState.LIVE,
        ]

    def test_unresolved_room_is_empty(self, make_sync, subscriber, fake_http):
        sync = make_sync(room_id=None)
        assert sync.open(peer="bob") == SyncState.EMPTY
        assert subscriber.subscriptions == []
        assert fake_http.calls == []

    def test_no_peer_and_no_room_is_empty(self, make_sync, resolved):
        sync = make_sync()
        assert sync.open() == SyncState.EMPTY
        assert resolved == []

    def test_open_by_room_id(self, make_sync, fake_http, resolved):
        fake_http.add("GET", "/room", FakeResponse([{"id": 9, "participants": '["alice", "carol"]'}]))
        fake_http.add("GET", "/chat", FakeResponse([]))
        sync = make_sync()
        sync.open(room_id=9)
        assert sync.room_id == 9
        assert sync.peer == "carol"
        assert resolved == []

    def test_history_failure_still_goes_live(self, make_sync, subscriber):
        sync = make_sync()
        assert sync.open(peer="bob") == SyncState.LIVE
        assert sync.messages == []
        assert len(subscriber.subscriptions) == 1


class TestLiveMessages:
    """Tests for live delivery into an open view."""

    def test_duplicate_of_history_ignored(self, make_sync, fake_http, subscriber, receipts):
        fake_http.add("GET", "/chat", FakeResponse([wire(1), wire(2)]))
        sync = make_sync()
        sync.open(peer="bob")
        subscriber.push(msg(2))
        subscriber.push(msg(3))
        subscriber.push(msg(3))
        assert [b.message.id for b in sync.messages] == [1, 2, 3]
        assert receipts.submitted == [(42, "alice", 2), (42, "alice", 3)]

    def test_own_echo_marks_read_by_default(self, make_sync, fake_http, subscriber, receipts):
        fake_http.add("GET", "/chat", FakeResponse([]))
        sync = make_sync()
        sync.open(peer="bob")
        subscriber.push(msg(4, sender="alice"))
        assert sync.messages[0].is_mine
        assert receipts.submitted == [(42, "alice", 4)]

    def test_own_echo_not_marked_when_disabled(self, make_sync, fake_http, subscriber, receipts):
        fake_http.add("GET", "/chat", FakeResponse([]))
        sync = make_sync(mark_own_messages_read=False)
        sync.open(peer="bob")
        subscriber.push(msg(4, sender="alice"))
        assert len(sync.messages) == 1
        assert receipts.submitted == []

    def test_stale_callback_after_switch_ignored(self, make_sync, fake_http, subscriber):
        fake_http.add("GET", "/chat", FakeResponse([]))
        sync = make_sync()
        sync.open(peer="bob")
        sync.open(peer="carol")
        subscriber.push(msg(1), index=0)
        assert sync.messages == []

    def test_no_delivery_after_close(self, make_sync, fake_http, subscriber):
        fake_http.add("GET", "/chat", FakeResponse([]))
        sync = make_sync()
        sync.open(peer="bob")
        sync.close()
        subscriber.push(msg(1))
        assert sync.messages == []


class TestClose:
    """Tests for subscriber release."""

    def test_close_releases_subscriber_exactly_once(self, make_sync, fake_http, subscriber):
        fake_http.add("GET", "/chat", FakeResponse([]))
        sync = make_sync()
        sync.open(peer="bob")
        sync.close()
        sync.close()
        handle = subscriber.subscriptions[0][2]
        assert handle.closes == 1
        assert sync.state == SyncState.CLOSED

    def test_switching_rooms_closes_previous(self, make_sync, fake_http, subscriber):
        fake_http.add("GET", "/chat", FakeResponse([]))
        sync = make_sync()
        sync.open(peer="bob")
        sync.open(peer="carol")
        first, second = (s[2] for s in subscriber.subscriptions)
        assert first.closes == 1
        assert second.closes == 0

    def test_context_manager_closes(self, make_sync, fake_http, subscriber):
        fake_http.add("GET", "/chat", FakeResponse([]))
        with make_sync() as sync:
            sync.open(peer="bob")
        assert subscriber.subscriptions[0][2].closes == 1

    def test_close_before_open_is_noop(self, make_sync):
        sync = make_sync()
        sync.close()
        assert sync.state == SyncState.IDLE


class TestSend:
    """Tests for sending from the view."""

    def test_blank_draft_makes_no_request(self, make_sync, fake_http):
        fake_http.add("GET", "/chat", FakeResponse([]))
        sync = make_sync()
        sync.open(peer="bob")
        calls = len(fake_http.calls)
        outcome = sync.send("   ")
        assert not outcome.sent
        assert outcome.error is None
        assert len(fake_http.calls) == calls

    def test_no_room_makes_no_request(self, make_sync, fake_http):
        outcome = make_sync().send("hello")
        assert not outcome.sent
        assert outcome.draft == "hello"
        assert fake_http.calls == []

    def test_success_clears_draft(self, make_sync, fake_http):
        fake_http.add("GET", "/chat", FakeResponse([]))
        fake_http.add("POST", "/chat/send", FakeResponse({"success": 1}))
        sync = make_sync()
        sync.open(peer="bob")
        outcome = sync.send(" hello ")
        assert outcome.sent
        assert outcome.draft == ""
        assert fake_http.calls[-1][2]["json"] == {"sender": "alice", "message": "hello", "room_id": 42}

    def test_failure_keeps_draft(self, make_sync, fake_http):
        fake_http.add("GET", "/chat", FakeResponse([]))
        fake_http.add("POST", "/chat/send", FakeResponse({"success": 0, "error": "too long"}))
        sync = make_sync()
        sync.open(peer="bob")
        outcome = sync.send("hello")
        assert not outcome.sent
        assert outcome.draft == "hello"
        assert outcome.error == "too long"

    def test_closed_view_makes_no_request(self, make_sync, fake_http):
        fake_http.add("GET", "/chat", FakeResponse([]))
        fake_http.add("POST", "/chat/send", FakeResponse({"success": 1}))
        sync = make_sync()
        sync.open(peer="bob")
        sync.close()
        outcome = sync.send("hello")
        assert not outcome.sent
        assert outcome.draft == "hello"
        assert fake_http.paths("POST") == []

"""Unit tests for the live SSE subscriber."""
import io
import json

import pytest
import requests

from dm_chat.client.live import LiveSubscription, iter_sse_data, parse_event, subscribe
from dm_chat.client.models import Message

from conftest import FakeResponse


def frame(**fields):
    return ["event: message", f"data: {json.dumps(fields)}", ""]


def stream_response(body: bytes, content_type="text/event-stream") -> requests.Response:
    """A real response reading ``body`` from its raw stream, decoded the way requests guesses from headers."""
    resp = requests.Response()
    resp.status_code = 200
    resp.headers["Content-Type"] = content_type
    resp.encoding = requests.utils.get_encoding_from_headers(resp.headers)
    resp.raw = io.BytesIO(body)
    return resp


def sse_bytes(*messages, room_id=42):
    body = b": keep-alive\n\n"
    for message_id, text in enumerate(messages, start=1):
        payload = {"id": message_id, "room_id": room_id, "sender": "bob", "message": text}
        body += b"event: message\ndata: " + json.dumps(payload, ensure_ascii=False).encode("utf-8") + b"\n\n"
    return body


def message_lines(*ids, room_id=42):
    lines = [": keep-alive", ""]
    for message_id in ids:
        lines += frame(id=message_id, room_id=room_id, sender="bob", message=f"m{message_id}", timestamp=None)
    return lines


class TestIterSseData:
    """Tests for SSE line parsing."""

    def test_single_event(self):
        assert list(iter_sse_data(["event: message", 'data: {"a": 1}', ""])) == ['{"a": 1}']

    def test_multi_line_data_is_joined(self):
        assert list(iter_sse_data(["data: one", "data: two", ""])) == ["one\ntwo"]

    def test_comments_and_unknown_fields_ignored(self):
        lines = [": keep-alive", "", "id: 3", "retry: 10", "data:x", ""]
        assert list(iter_sse_data(lines)) == ["x"]

    def test_incomplete_trailing_event_dropped(self):
        assert list(iter_sse_data(["data: done", "", "data: partial"])) == ["done"]

    def test_bytes_and_none_lines(self):
        assert list(iter_sse_data([b"data: hi", None, b""])) == ["hi"]


class TestParseEvent:
    """Tests for event payload decoding."""

    def test_valid_payload(self):
        message = parse_event(json.dumps({"id": 1, "room_id": 42, "sender": "bob", "message": "hi"}))
        assert message == Message(id=1, room_id=42, sender="bob", message="hi")

    @pytest.mark.parametrize("data", ["not json", "[]", '{"id": 1}', '{"id": "x", "room_id": 1, "sender": "a", "message": "b"}'])
    def test_malformed_payload(self, data):
        assert parse_event(data) is None


class TestLiveSubscription:
    """Tests for LiveSubscription."""

    def test_delivers_messages_in_order(self, api, fake_http):
        fake_http.add("GET", "/chat/subscribe", FakeResponse(lines=message_lines(1, 2, 3)))
        received = []
        sub = LiveSubscription(api, 42, received.append, http=fake_http, reconnect=False)
        sub.run()

        assert [m.id for m in received] == [1, 2, 3]
        _, _, kwargs = fake_http.calls[0]
        assert kwargs["params"] == {"room_id": 42}
        assert kwargs["stream"] is True
        assert kwargs["headers"]["Authorization"] == "Bearer tok-alice"
        assert fake_http.closed

    def test_filters_other_rooms_and_malformed(self, api, fake_http):
        lines = message_lines(1) + message_lines(2, room_id=99) + ["data: garbage", ""] + message_lines(3)
        fake_http.add("GET", "/chat/subscribe", FakeResponse(lines=lines))
        received = []
        LiveSubscription(api, 42, received.append, http=fake_http, reconnect=False).run()
        assert [m.id for m in received] == [1, 3]

    def test_no_delivery_after_close(self, api, fake_http):
        received = []
        sub = LiveSubscription(api, 42, received.append, http=fake_http)
        sub.close()
        payload = json.dumps({"id": 1, "room_id": 42, "sender": "bob", "message": "hi"})
        assert sub.handle_event(payload) is None
        assert received == []

    def test_close_is_idempotent(self, api, fake_http, caplog):
        sub = LiveSubscription(api, 42, lambda m: None, http=fake_http)
        with caplog.at_level("INFO", logger="dm_chat.client"):
            sub.close()
            sub.close()
        assert sub.closed
        assert sum("LIVE_CLOSED" in r.getMessage() for r in caplog.records) == 1

    def test_closed_before_run_makes_no_request(self, api, fake_http):
        sub = LiveSubscription(api, 42, lambda m: None, http=fake_http)
        sub.close()
        sub.run()
        assert fake_http.calls == []

    def test_gives_up_after_max_retries(self, api, fake_http):
        sub = LiveSubscription(api, 42, lambda m: None, http=fake_http, max_retries=2, initial_delay=0)
        sub.run()
        assert len(fake_http.calls) == 3

    def test_backoff_doubles_up_to_cap(self, api, fake_http):
        sub = LiveSubscription(api, 42, lambda m: None, http=fake_http, max_retries=4, initial_delay=1, max_delay=4)
        waits = []
        sub._stop.wait = waits.append
        sub.run()
        assert waits == [1, 2, 4, 4]

    def test_backoff_resets_after_successful_connect(self, api, fake_http):
        fake_http.add(
            "GET",
            "/chat/subscribe",
            requests.ConnectionError("refused"),
            FakeResponse(lines=message_lines(1)),
            requests.ConnectionError("refused"),
        )
        received = []
        sub = LiveSubscription(api, 42, received.append, http=fake_http, max_retries=1, initial_delay=1, max_delay=8)
        waits = []
        sub._stop.wait = waits.append
        sub.run()
        assert [m.id for m in received] == [1]
        assert waits == [1, 1]

    def test_http_error_status_reconnects(self, api, fake_http):
        fake_http.add("GET", "/chat/subscribe", FakeResponse(status_code=503))
        sub = LiveSubscription(api, 42, lambda m: None, http=fake_http, max_retries=1, initial_delay=0)
        sub.run()
        assert len(fake_http.calls) == 2

    def test_subscribe_starts_background_thread(self, api, fake_http):
        fake_http.add("GET", "/chat/subscribe", FakeResponse(lines=message_lines(5)))
        received = []
        sub = subscribe(api, 42, received.append, http=fake_http, reconnect=False)
        sub.join(timeout=5)
        sub.close()
        assert [m.id for m in received] == [5]


class TestStreamDecoding:
    """Tests for decoding a raw byte stream into messages."""

    @pytest.mark.parametrize("content_type", ["text/event-stream", "text/event-stream; charset=utf-8"])
    def test_non_ascii_text_delivered_unchanged(self, api, fake_http, content_type):
        texts = ["안녕", "a\u2028b", "c\u2029d", "e\x85f", "plain"]
        fake_http.add("GET", "/chat/subscribe", stream_response(sse_bytes(*texts), content_type))
        received = []
        LiveSubscription(api, 42, received.append, http=fake_http, reconnect=False).run()
        assert [m.message for m in received] == texts

    def test_crlf_line_endings(self, api, fake_http):
        body = sse_bytes("안녕", "hi").replace(b"\n", b"\r\n")
        fake_http.add("GET", "/chat/subscribe", stream_response(body))
        received = []
        LiveSubscription(api, 42, received.append, http=fake_http, reconnect=False).run()
        assert [m.message for m in received] == ["안녕", "hi"]

    def test_invalid_utf8_drops_only_that_event(self):
        lines = [b"data: \xff\xfe", b"", "data: ok".encode("utf-8"), b""]
        assert list(iter_sse_data(lines)) == ["ok"]

    def test_invalid_utf8_stream_keeps_going(self, api, fake_http):
        body = b"data: {\"broken\": \"\xff\"}\n\n" + sse_bytes("after")
        fake_http.add("GET", "/chat/subscribe", stream_response(body))
        received = []
        LiveSubscription(api, 42, received.append, http=fake_http, reconnect=False).run()
        assert [m.message for m in received] == ["after"]

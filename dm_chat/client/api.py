"""HTTP API client for the chat server.

Every call goes through :meth:`APIClient.call`, which never raises for
network trouble: failures come back as a :class:`Result` value.
"""
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, TypeVar

import requests

from ..shared.logging_config import configure_logging
from .config import LOG_FILE, REQUEST_TIMEOUT, SERVER_URL
from .models import Friend, Message, Profile, Room, RoomSummary, User
from .session import Session

logger = configure_logging("dm_chat.client", LOG_FILE)

T = TypeVar("T")


@dataclass
class Result:
    """Outcome of one request: a success flag plus either data or an error message."""

    ok: bool
    data: Any = None
    error: Optional[str] = None
    status: Optional[int] = None

    @property
    def succeeded(self) -> bool:
        """True when the transport succeeded and the body reports ``success == 1``."""
        return self.ok and isinstance(self.data, dict) and self.data.get("success") == 1

    def error_message(self, default: str) -> str:
        if isinstance(self.data, dict) and self.data.get("error"):
            return str(self.data["error"])
        return self.error or default


def sanitize(value: Any) -> Any:
    """Trim string leaves of a payload, recursing through dicts, lists and tuples."""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (list, tuple)):
        return [sanitize(v) for v in value]
    if isinstance(value, dict):
        return {k: sanitize(v) for k, v in value.items()}
    return value


def _error_from_body(body: Any, status: int) -> str:
    if isinstance(body, dict):
        for key in ("error", "detail"):
            if body.get(key):
                return str(body[key])
    return f"HTTP {status}"


class APIClient:
    def __init__(
        self,
        base_url: str = SERVER_URL,
        session: Optional[Session] = None,
        http: Optional[requests.Session] = None,
        timeout: float = REQUEST_TIMEOUT,
    ):
        self.base_url = base_url.rstrip("/")
        self.session = session
        self.http = http or requests.Session()
        self.timeout = timeout

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        headers.update(self.auth_headers())
        return headers

    def auth_headers(self) -> Dict[str, str]:
        if self.session and self.session.token:
            return {"Authorization": f"Bearer {self.session.token}"}
        return {}

    def url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def call(
        self,
        method: str,
        path: str,
        body: Any = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Result:
        try:
            resp = self.http.request(
                method,
                self.url(path),
                json=sanitize(body) if body is not None else None,
                params=params,
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.warning("REQUEST_FAIL method=%s path=%s error=%s", method, path, exc)
            return Result(ok=False, error=str(exc) or "network error")

        data: Any = None
        if resp.content:
            try:
                data = resp.json()
            except ValueError:
                data = None
        if 200 <= resp.status_code < 300:
            return Result(ok=True, data=data, status=resp.status_code)
        logger.warning("REQUEST_FAIL method=%s path=%s status=%s", method, path, resp.status_code)
        return Result(ok=False, data=data, error=_error_from_body(data, resp.status_code), status=resp.status_code)

    # auth

    def login(self, userid: str, password: str) -> Result:
        return self.call("POST", "/login", {"userid": userid, "password": password})

    def signup(self, userid: str, password: str) -> Result:
        return self.call("POST", "/signup", {"userid": userid, "password": password})

    # users and profiles

    def find_users(self, username: str) -> List[User]:
        res = self.call("GET", "/user", params={"username": username})
        if not res.ok or not isinstance(res.data, list):
            return []
        return _parse_all(res.data, User.from_dict)

    def find_user_by_name(self, username: str) -> Optional[User]:
        """The server matches substrings; only an exact username match counts here."""
        return next((u for u in self.find_users(username) if u.username == username), None)

    def get_profile(self, username: str) -> Optional[Profile]:
        res = self.call("GET", "/profile", params={"username": username})
        if not res.succeeded or not res.data.get("data"):
            return None
        profiles = _parse_all([res.data["data"]], Profile.from_dict)
        return profiles[0] if profiles else None

    def update_profile(self, profile: Profile) -> Result:
        return self.call("PUT", "/profile", profile.to_payload())

    # rooms

    def get_room(self, room_id: int) -> List[Room]:
        res = self.call("GET", "/room", params={"id": room_id})
        if not res.ok or not isinstance(res.data, list):
            return []
        return _parse_all(res.data, Room.from_dict)

    def list_rooms(self, username: str) -> List[RoomSummary]:
        res = self.call("GET", "/room/list", params={"username": username})
        if not res.ok or not isinstance(res.data, list):
            return []
        return _parse_all(res.data, RoomSummary.from_dict)

    def create_room(self, participants: List[str]) -> Optional[int]:
        res = self.call("POST", "/room", {"participants": participants})
        return room_id_from(res)

    def find_room(self, participants: List[str]) -> Result:
        return self.call("POST", "/room/find", {"participants": participants})

    def mark_read(self, room_id: int, username: str, last_read_id: int) -> Result:
        return self.call("POST", f"/room/read/{room_id}", {"username": username, "last_read_id": last_read_id})

    # messages

    def get_history(self, room_id: int) -> Optional[List[Message]]:
        """Full history of a room, ascending by id; None if the fetch failed."""
        res = self.call("GET", "/chat", params={"room_id": room_id})
        if not res.ok or not isinstance(res.data, list):
            return None
        return _parse_all(res.data, Message.from_dict)

    def send_message(self, sender: str, message: str, room_id: int) -> Result:
        return self.call("POST", "/chat/send", {"sender": sender, "message": message, "room_id": room_id})

    # friends

    def get_friends(self, user_id: int) -> Optional[List[Friend]]:
        res = self.call("GET", "/friend", params={"user_id": user_id})
        if not res.succeeded or not isinstance(res.data.get("data"), list):
            return None
        return _parse_all(res.data["data"], Friend.from_dict)

    def add_friend(self, payload: Dict[str, Any]) -> Result:
        return self.call("POST", "/friend", payload)

    def delete_friend(self, friend_row_id: int) -> Result:
        return self.call("DELETE", "/friend", params={"id": friend_row_id})


def room_id_from(res: Result) -> Optional[int]:
    """Pull a room id out of either ``{"data": {"id": ..}}`` or ``{"id": ..}``."""
    if not res.ok or not isinstance(res.data, dict):
        return None
    nested = res.data.get("data")
    if isinstance(nested, dict) and nested.get("id"):
        return int(nested["id"])
    if res.data.get("id"):
        return int(res.data["id"])
    return None


def _parse_all(items: List[Any], factory: Callable[[Dict[str, Any]], T]) -> List[T]:
    parsed: List[T] = []
    for item in items:
        try:
            parsed.append(factory(item))
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("MALFORMED_RECORD type=%s error=%s", factory.__qualname__, exc)
    return parsed

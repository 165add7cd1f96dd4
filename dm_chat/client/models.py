"""Client-side models for rooms, messages and profiles."""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..shared.utils import parse_participants

ME = "me"
OTHER = "other"


@dataclass
class User:
    id: int
    username: str

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "User":
        return User(id=int(data["id"]), username=str(data["username"]))


@dataclass
class Message:
    id: int
    room_id: int
    sender: str
    message: str
    timestamp: Optional[str] = None

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "Message":
        """Build a message from a wire record; raises on missing or mistyped fields."""
        if not isinstance(data, dict):
            raise TypeError("message record must be an object")
        return Message(
            id=int(data["id"]),
            room_id=int(data["room_id"]),
            sender=str(data["sender"]),
            message=str(data["message"]),
            timestamp=data.get("timestamp"),
        )


@dataclass
class Bubble:
    """A message tagged with who sent it, relative to the session user."""

    message: Message
    origin: str

    @property
    def text(self) -> str:
        return self.message.message

    @property
    def is_mine(self) -> bool:
        return self.origin == ME


@dataclass
class Room:
    id: int
    participants: List[str] = field(default_factory=list)

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "Room":
        return Room(id=int(data["id"]), participants=parse_participants(data.get("participants")))

    def other_participant(self, me: str) -> str:
        others = [p for p in self.participants if p != me]
        if others:
            return others[0]
        return self.participants[0] if self.participants else ""


@dataclass
class RoomSummary(Room):
    unread_count: int = 0
    last_message: Optional[str] = None

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "RoomSummary":
        return RoomSummary(
            id=int(data["id"]),
            participants=parse_participants(data.get("participants")),
            unread_count=int(data.get("unread_count") or 0),
            last_message=data.get("last_message"),
        )


@dataclass
class Profile:
    username: str
    display_name: str = ""
    status: str = ""
    avatar: str = ""
    id: Optional[int] = None

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "Profile":
        return Profile(
            username=data["username"],
            display_name=data.get("display_name") or data["username"],
            status=data.get("status") or "",
            avatar=data.get("avatar") or "",
            id=data.get("id"),
        )

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "username": self.username,
            "display_name": self.display_name,
            "status": self.status,
            "avatar": self.avatar,
        }
        if self.id is not None:
            payload["id"] = self.id
        return payload


@dataclass
class Friend:
    id: int
    user_id: int
    friend_id: int
    friend_name: str
    friend_avatar: str = ""
    friend_status: str = ""

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "Friend":
        return Friend(
            id=int(data["id"]),
            user_id=int(data["user_id"]),
            friend_id=int(data["friend_id"]),
            friend_name=data["friend_name"],
            friend_avatar=data.get("friend_avatar") or "",
            friend_status=data.get("friend_status") or "",
        )


class ReadCursor:
    """Highest message id acknowledged in one room; never moves backwards."""

    def __init__(self, value: Optional[int] = None):
        self.value = value

    def advance(self, message_id: int) -> bool:
        """Move the cursor to ``message_id`` if it is newer. Returns True if it moved."""
        if self.value is None or message_id > self.value:
            self.value = message_id
            return True
        return False

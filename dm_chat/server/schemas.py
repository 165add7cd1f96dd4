"""Pydantic schemas for request and response bodies."""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class Credentials(BaseModel):
    userid: str
    password: str


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str


class Profile(BaseModel):
    id: Optional[int] = None
    username: str
    display_name: str = ""
    status: str = ""
    avatar: str = ""


class RoomIn(BaseModel):
    id: Optional[int] = None
    participants: List[str]


class RoomOut(BaseModel):
    id: int
    participants: List[str]


class RoomWithUnread(RoomOut):
    unread_count: int
    last_message: Optional[str] = None


class ReadUpdate(BaseModel):
    username: str
    last_read_id: Optional[int] = None


class NewMessage(BaseModel):
    sender: str
    message: str
    room_id: int


class ChatOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    room_id: int
    sender: str
    message: str
    timestamp: Optional[datetime] = None


class FriendIn(BaseModel):
    user_id: int
    friend_id: int
    friend_name: str
    friend_avatar: str = ""
    friend_status: str = ""


class FriendOut(FriendIn):
    model_config = ConfigDict(from_attributes=True)

    id: int

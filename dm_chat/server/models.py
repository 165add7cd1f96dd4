"""Database models for the chat server."""
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from .database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)
    display_name = Column(String, nullable=True)
    status = Column(String, nullable=True)
    avatar = Column(String, nullable=True)


class Room(Base):
    __tablename__ = "rooms"

    id = Column(Integer, primary_key=True, index=True)
    # JSON text of the sorted, de-duplicated participant list; doubles as the lookup key.
    participants = Column(Text, index=True, nullable=False)

    chats = relationship("Chat", back_populates="room", order_by="Chat.id")


class Chat(Base):
    __tablename__ = "chats"

    id = Column(Integer, primary_key=True, index=True)
    room_id = Column(Integer, ForeignKey("rooms.id"), index=True, nullable=False)
    sender = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    timestamp = Column(DateTime, default=utcnow)

    room = relationship("Room", back_populates="chats")


class RoomRead(Base):
    __tablename__ = "room_reads"
    __table_args__ = (UniqueConstraint("room_id", "username"),)

    id = Column(Integer, primary_key=True, index=True)
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=False)
    username = Column(String, nullable=False)
    last_read_id = Column(Integer, nullable=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class Friend(Base):
    __tablename__ = "friends"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    friend_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    friend_name = Column(String, nullable=False)
    friend_avatar = Column(String, default="")
    friend_status = Column(String, default="")

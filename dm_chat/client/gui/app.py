"""Application controller logic for the PyQt GUI client."""
from __future__ import annotations

from dataclasses import asdict
from typing import Callable, List, Optional

import requests

from .. import api
from ..config import DEFAULT_AVATAR, PEER_AVATAR, SERVER_URL
from ..models import Friend, Profile, RoomSummary
from ..receipts import ReadReceiptQueue
from ..session import Session
from ..storage import LocalStore
from ..sync import ConversationSync, Subscriber
from ...shared.utils import validate_signup

AVATAR_POOL = "https://mdbcdn.b-cdn.net/img/Photos/Avatars/avatar-{}.webp"


class ChatError(Exception):
    """An operation failed in a way the user should be told about."""


class ChatController:
    """Owns the session and wires the API client, receipts and conversations for the GUI."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        store: Optional[LocalStore] = None,
        http: Optional[requests.Session] = None,
        subscriber: Optional[Subscriber] = None,
    ):
        self.store = store or LocalStore()
        self.base_url = (base_url or self.store.get_server_url() or SERVER_URL).rstrip("/")
        self.session: Optional[Session] = Session.restore(self.store)
        self.api = api.APIClient(self.base_url, session=self.session, http=http)
        self.receipts = ReadReceiptQueue(self.api)
        self.subscriber = subscriber
        self.conversation: Optional[ConversationSync] = None

    def set_base_url(self, url: str) -> None:
        self.base_url = url.rstrip("/")
        self.store.store_server_url(self.base_url)
        self.api.base_url = self.base_url

    @property
    def username(self) -> str:
        return self.session.username if self.session else ""

    def ensure_logged_in(self) -> Session:
        if not self.session or not self.session.authenticated:
            raise ChatError("Not logged in")
        return self.session

    def signup(self, userid: str, password: str, confirm: str) -> None:
        problem = validate_signup(userid, password, confirm)
        if problem:
            raise ChatError(problem)
        res = self.api.signup(userid, password)
        if not res.succeeded:
            raise ChatError(res.error_message("Signup failed, please try again"))

    def login(self, userid: str, password: str) -> Session:
        if not userid.strip() or not password.strip():
            raise ChatError("Enter both user id and password")
        res = self.api.login(userid, password)
        if not res.succeeded or not res.data.get("token"):
            raise ChatError(res.error_message("Login failed"))
        self.close_conversation()
        session = Session(username=userid.strip(), token=res.data["token"])
        self.api.session = session
        me = self.api.find_user_by_name(session.username)
        session.user_id = me.id if me else None
        session.save(self.store)
        self.session = session
        return session

    def logout(self) -> None:
        self.close_conversation()
        Session.reset(self.store)
        self.session = None
        self.api.session = None

    def _user_id(self) -> int:
        session = self.ensure_logged_in()
        if session.user_id is None:
            me = self.api.find_user_by_name(session.username)
            if not me:
                raise ChatError("Could not look up your account")
            session.user_id = me.id
            self.store.store_user_id(me.id)
        return session.user_id

    # friends

    def cached_friends(self) -> List[Friend]:
        session = self.ensure_logged_in()
        return [Friend.from_dict(f) for f in session.friends]

    def load_friends(self) -> List[Friend]:
        """Fetch the friend list, falling back to the cached copy if the server is unreachable."""
        self.ensure_logged_in()
        friends = self.api.get_friends(self._user_id())
        if friends is None:
            return self.cached_friends()
        self._cache_friends(friends)
        return friends

    def add_friend(self, name: str, status: str = "") -> Friend:
        self.ensure_logged_in()
        name = name.strip()
        if not name:
            raise ChatError("Enter a user name")
        target = self.api.find_user_by_name(name)
        if not target:
            raise ChatError("No user with that name")
        current = self.cached_friends()
        payload = {
            "user_id": self._user_id(),
            "friend_id": target.id,
            "friend_name": target.username,
            "friend_avatar": AVATAR_POOL.format(len(current) % 6 + 1),
            "friend_status": status or "",
        }
        res = self.api.add_friend(payload)
        if not res.succeeded or not res.data.get("data"):
            raise ChatError(res.error_message("Could not add friend"))
        friend = Friend.from_dict(res.data["data"])
        self._cache_friends(current + [friend])
        return friend

    def delete_friend(self, friend_row_id: int) -> None:
        self.ensure_logged_in()
        res = self.api.delete_friend(friend_row_id)
        if not res.succeeded:
            raise ChatError(res.error_message("Could not delete friend"))
        self._cache_friends([f for f in self.cached_friends() if f.id != friend_row_id])

    def _cache_friends(self, friends: List[Friend]) -> None:
        session = self.ensure_logged_in()
        session.friends = [asdict(f) for f in friends]
        self.store.store_friends(session.friends)

    # rooms and profiles

    def list_rooms(self) -> List[RoomSummary]:
        session = self.ensure_logged_in()
        return self.api.list_rooms(session.username)

    def profile_for(self, username: str) -> Profile:
        """Profile of ``username`` with display fallbacks filled in."""
        profile = self.api.get_profile(username) if username else None
        if profile is None:
            fallback = DEFAULT_AVATAR if username == self.username else PEER_AVATAR
            return Profile(username=username, display_name=username, avatar=fallback)
        if not profile.avatar:
            profile.avatar = DEFAULT_AVATAR if username == self.username else PEER_AVATAR
        return profile

    def my_profile(self) -> Profile:
        return self.profile_for(self.ensure_logged_in().username)

    def update_profile(self, display_name: str, status: str, avatar: str) -> Profile:
        current = self.my_profile()
        profile = Profile(
            username=current.username,
            display_name=display_name or current.username,
            status=status,
            avatar=avatar or DEFAULT_AVATAR,
            id=current.id,
        )
        res = self.api.update_profile(profile)
        if not res.succeeded:
            raise ChatError(res.error_message("Could not save profile"))
        return profile

    # conversations

    def open_conversation(
        self,
        room_id: Optional[int] = None,
        peer: Optional[str] = None,
        on_change: Optional[Callable[[], None]] = None,
    ) -> ConversationSync:
        """Switch the active conversation, releasing the previous live subscription first."""
        session = self.ensure_logged_in()
        self.close_conversation()
        self.conversation = ConversationSync(
            self.api,
            session,
            subscriber=self.subscriber,
            receipts=self.receipts,
            on_change=on_change,
        )
        self.conversation.open(room_id=room_id, peer=peer)
        return self.conversation

    def send(self, draft: str) -> str:
        """Send ``draft`` in the active conversation; returns the draft text to keep."""
        if self.conversation is None:
            raise ChatError("Select a chat first")
        outcome = self.conversation.send(draft)
        if outcome.error:
            raise ChatError(outcome.error)
        return outcome.draft

    def close_conversation(self) -> None:
        if self.conversation is not None:
            self.conversation.close()
            self.conversation = None

    def shutdown(self) -> None:
        self.close_conversation()
        self.receipts.stop()


__all__ = ["ChatController", "ChatError", "validate_signup"]

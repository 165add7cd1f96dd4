"""Explicit session object for the logged-in user."""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .storage import LocalStore


@dataclass
class Session:
    """Identity and bearer credential of the locally authenticated user."""

    username: str
    token: Optional[str] = None
    user_id: Optional[int] = None
    friends: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def authenticated(self) -> bool:
        return bool(self.username and self.token)

    def save(self, store: LocalStore) -> None:
        store.store_auth(self.token or "", self.username, self.user_id)
        store.store_friends(self.friends)

    @staticmethod
    def restore(store: LocalStore) -> Optional["Session"]:
        """Rebuild the session persisted by a previous login, if any."""
        token = store.get_token()
        username = store.get_username()
        if not token or not username:
            return None
        return Session(
            username=username,
            token=token,
            user_id=store.get_user_id(),
            friends=store.get_friends(),
        )

    @staticmethod
    def reset(store: LocalStore) -> None:
        store.clear_auth()

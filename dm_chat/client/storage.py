"""Local client storage for the session and cached friend list."""
import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config import STORAGE_FILE

SESSION_KEYS = ("token", "username", "user_id", "friends")


class LocalStore:
    """JSON file holding persisted client state under fixed keys."""

    def __init__(self, path: Path = STORAGE_FILE):
        self.path = path

    def load_state(self) -> Dict[str, Any]:
        if self.path.exists():
            with self.path.open("r", encoding="utf-8") as f:
                return json.load(f)
        return {}

    def save_state(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)

    def store_auth(self, token: str, username: str, user_id: Optional[int] = None) -> None:
        state = self.load_state()
        state["token"] = token
        state["username"] = username
        if user_id is None:
            state.pop("user_id", None)
        else:
            state["user_id"] = user_id
        self.save_state(state)

    def store_user_id(self, user_id: int) -> None:
        state = self.load_state()
        state["user_id"] = user_id
        self.save_state(state)

    def store_friends(self, friends: List[Dict[str, Any]]) -> None:
        state = self.load_state()
        state["friends"] = friends
        self.save_state(state)

    def clear_auth(self) -> None:
        state = self.load_state()
        for key in SESSION_KEYS:
            state.pop(key, None)
        self.save_state(state)

    def get_token(self) -> Optional[str]:
        return self.load_state().get("token")

    def get_username(self) -> Optional[str]:
        return self.load_state().get("username")

    def get_user_id(self) -> Optional[int]:
        return self.load_state().get("user_id")

    def get_friends(self) -> List[Dict[str, Any]]:
        return self.load_state().get("friends") or []

    def store_server_url(self, url: str) -> None:
        state = self.load_state()
        state["server_url"] = url
        self.save_state(state)

    def get_server_url(self) -> Optional[str]:
        return self.load_state().get("server_url")

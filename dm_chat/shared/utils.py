"""Shared utility functions."""
import json
from typing import Any, Iterable, List, Optional

MIN_USERID_LENGTH = 3
MIN_PASSWORD_LENGTH = 4


def validate_signup(userid: str, password: str, confirm: str) -> Optional[str]:
    """Return an error message if signup input fails the local checks, else None."""
    if len(userid.strip()) < MIN_USERID_LENGTH:
        return f"User id must be at least {MIN_USERID_LENGTH} characters"
    if len(password.strip()) < MIN_PASSWORD_LENGTH:
        return f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
    if password.strip() != confirm.strip():
        return "Passwords do not match"
    return None


def parse_participants(value: Any) -> List[str]:
    """Normalize a participants value to a list of names.

    The backend stores participants as JSON text and some responses pass that
    text through unparsed, so both shapes are accepted here.
    """
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            return []
    if not isinstance(value, (list, tuple)):
        return []
    return [str(p) for p in value if p is not None and str(p) != ""]


def room_key(participants: Iterable[str]) -> str:
    """Canonical storage key for a participant set: sorted, de-duplicated JSON."""
    return json.dumps(sorted(set(participants)))

"""Direct-message room lookup."""
from typing import Optional

from .api import APIClient, logger, room_id_from


def find_or_create_dm_room(api: APIClient, me: str, other: str) -> Optional[int]:
    """Return the id of the DM room for ``{me, other}``, creating it server-side if needed.

    The server deduplicates on the participant set, so repeated calls with the
    same pair yield the same id. Returns None when either name is missing or
    the request fails.
    """
    if not me or not other:
        return None
    res = api.find_room([me, other])
    room_id = room_id_from(res)
    if room_id is None:
        logger.warning("ROOM_RESOLVE_FAIL me=%s other=%s error=%s", me, other, res.error_message("no room id"))
    return room_id

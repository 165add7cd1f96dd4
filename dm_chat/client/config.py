"""Client configuration values."""
import os
from pathlib import Path

BASE_DIR = Path.home() / ".dm_chat"
SERVER_URL = os.getenv("DM_CHAT_SERVER_URL", "http://localhost:3100/api")
STORAGE_FILE = Path(os.getenv("DM_CHAT_STORAGE", str(BASE_DIR / "client.json")))
LOG_FILE = Path(os.getenv("DM_CHAT_LOG_DIR", str(BASE_DIR))) / "client.log"

REQUEST_TIMEOUT = 10
STREAM_CONNECT_TIMEOUT = 10

# Live subscriber reconnect backoff, in seconds.
RECONNECT_INITIAL_DELAY = 1.0
RECONNECT_MAX_DELAY = 30.0

# Self-sent messages echoed back over the live channel still advance the read cursor.
MARK_OWN_MESSAGES_READ = True

DEFAULT_AVATAR = "https://mdbcdn.b-cdn.net/img/Photos/Avatars/avatar-6.webp"
PEER_AVATAR = "https://mdbcdn.b-cdn.net/img/Photos/Avatars/avatar-1.webp"

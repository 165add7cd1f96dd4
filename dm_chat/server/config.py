"""Server configuration values."""
import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent
DATABASE_URL = os.getenv("DM_CHAT_DATABASE_URL", f"sqlite:///{BASE_DIR / 'dm_chat.db'}")
LOG_FILE = Path(os.getenv("DM_CHAT_LOG_DIR", str(BASE_DIR))) / "server.log"
HOST = os.getenv("DM_CHAT_HOST", "127.0.0.1")
PORT = int(os.getenv("DM_CHAT_PORT", "3100"))
TOKEN_EXPIRY_MINUTES = 60
MAX_MESSAGE_LENGTH = 500
SSE_KEEPALIVE_SECONDS = 15
DEFAULT_AVATAR = "https://mdbcdn.b-cdn.net/img/Photos/Avatars/avatar-6.webp"

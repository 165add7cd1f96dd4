"""Authentication routes and bearer-token utilities."""
from datetime import datetime, timedelta
from typing import Dict, Optional

import bcrypt
import secrets
from fastapi import APIRouter, Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from . import schemas
from ..shared.logging_config import configure_logging
from ..shared.utils import validate_signup
from .config import LOG_FILE, TOKEN_EXPIRY_MINUTES
from .database import get_db
from .models import User, utcnow

router = APIRouter(tags=["auth"])
logger = configure_logging("dm_chat.server", LOG_FILE)

# In-memory token store: token -> {"username": str, "expires": datetime}
TOKEN_STORE: Dict[str, Dict[str, datetime | str]] = {}


def hash_password(password: str) -> str:
    # bcrypt only looks at the first 72 bytes.
    return bcrypt.hashpw(password.encode()[:72], bcrypt.gensalt()).decode()


def check_password(password: str, password_hash: str) -> bool:
    return bcrypt.checkpw(password.encode()[:72], password_hash.encode())


@router.post("/signup")
def signup(payload: schemas.Credentials, db: Session = Depends(get_db)):
    userid = payload.userid.strip()
    problem = validate_signup(userid, payload.password, payload.password)
    if problem:
        logger.info("SIGNUP_FAIL userid=%s reason=invalid", userid)
        return {"success": 0, "error": problem}
    if db.query(User).filter(User.username == userid).first():
        logger.info("SIGNUP_FAIL userid=%s reason=exists", userid)
        return {"success": 0, "error": "User id already exists"}

    user = User(username=userid, password_hash=hash_password(payload.password), display_name=userid)
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("SIGNUP_SUCCESS userid=%s user_id=%s", userid, user.id)
    return {"success": 1}


@router.post("/login")
def login(payload: schemas.Credentials, db: Session = Depends(get_db)):
    userid = payload.userid.strip()
    user: Optional[User] = db.query(User).filter(User.username == userid).first()
    if not user:
        logger.info("LOGIN_FAIL userid=%s reason=not_found", userid)
        return {"success": 0, "error": "Invalid user id or password"}
    if not check_password(payload.password, user.password_hash):
        logger.info("LOGIN_FAIL userid=%s reason=bad_password", userid)
        return {"success": 0, "error": "Invalid user id or password"}

    token = secrets.token_urlsafe(32)
    TOKEN_STORE[token] = {"username": user.username, "expires": utcnow() + timedelta(minutes=TOKEN_EXPIRY_MINUTES)}
    logger.info("LOGIN_SUCCESS userid=%s user_id=%s", user.username, user.id)
    return {"success": 1, "token": token}


def _validate_token(header: str | None) -> str:
    if not header or not header.startswith("Bearer "):
        logger.warning("UNAUTHORIZED_ACCESS reason=missing_token")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing token")
    token = header.split(" ", 1)[1]
    token_data = TOKEN_STORE.get(token)
    if not token_data:
        logger.warning("UNAUTHORIZED_ACCESS reason=unknown_token")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    if token_data["expires"] < utcnow():
        logger.warning("UNAUTHORIZED_ACCESS reason=expired_token")
        TOKEN_STORE.pop(token, None)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token expired")
    return str(token_data["username"])


def get_current_username(authorization: str | None = Header(default=None)) -> str:
    """FastAPI dependency returning the authenticated user's name."""
    return _validate_token(authorization)


def require_same_user(username: str, current: str) -> None:
    if username != current:
        logger.warning("FORBIDDEN username=%s token_user=%s", username, current)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed for this user")

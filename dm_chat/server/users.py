"""User lookup and profile routes."""
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from . import schemas
from .auth import get_current_username, logger, require_same_user
from .config import DEFAULT_AVATAR
from .database import get_db
from .models import User

router = APIRouter(tags=["users"])


def _profile_of(user: User) -> schemas.Profile:
    return schemas.Profile(
        id=user.id,
        username=user.username,
        display_name=user.display_name or user.username,
        status=user.status or "",
        avatar=user.avatar or DEFAULT_AVATAR,
    )


@router.get("/user", response_model=List[schemas.UserOut])
def find_users(username: str = "", db: Session = Depends(get_db)):
    """Users whose name contains ``username``."""
    query = db.query(User)
    if username:
        query = query.filter(User.username.contains(username))
    return query.order_by(User.id).all()


@router.get("/profile")
def get_profile(username: str, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.username == username).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return {"success": 1, "data": _profile_of(user).model_dump()}


@router.put("/profile")
def update_profile(
    payload: schemas.Profile,
    db: Session = Depends(get_db),
    current_username: str = Depends(get_current_username),
):
    require_same_user(payload.username, current_username)
    user = db.query(User).filter(User.username == payload.username).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    user.display_name = payload.display_name or user.username
    user.status = payload.status
    user.avatar = payload.avatar or DEFAULT_AVATAR
    db.commit()
    logger.info("PROFILE_UPDATED username=%s", user.username)
    return {"success": 1}

"""Friend list routes."""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from . import schemas
from .auth import get_current_username, logger, require_same_user
from .database import get_db
from .models import Friend, User

router = APIRouter(prefix="/friend", tags=["friends"])


def _out(friend: Friend) -> dict:
    return schemas.FriendOut.model_validate(friend).model_dump()


@router.get("")
def list_friends(user_id: Optional[int] = None, db: Session = Depends(get_db)):
    if not user_id:
        return {"success": 0, "error": "user_id is required"}
    friends = db.query(Friend).filter(Friend.user_id == user_id).order_by(Friend.id).all()
    return {"success": 1, "data": [_out(f) for f in friends]}


@router.post("")
def add_friend(
    payload: schemas.FriendIn,
    db: Session = Depends(get_db),
    current_username: str = Depends(get_current_username),
):
    owner = db.query(User).filter(User.id == payload.user_id).first()
    if not owner:
        raise HTTPException(status_code=404, detail="User not found")
    require_same_user(owner.username, current_username)
    if not payload.friend_name.strip():
        return {"success": 0, "error": "friend_name is required"}
    if payload.friend_id == payload.user_id:
        return {"success": 0, "error": "You cannot add yourself"}
    if not db.query(User).filter(User.id == payload.friend_id).first():
        return {"success": 0, "error": "No user with that id"}
    exists = (
        db.query(Friend)
        .filter(Friend.user_id == payload.user_id, Friend.friend_id == payload.friend_id)
        .first()
    )
    if exists:
        return {"success": 0, "error": "Already in your friend list"}

    friend = Friend(**payload.model_dump())
    db.add(friend)
    db.commit()
    db.refresh(friend)
    logger.info("FRIEND_ADDED user_id=%s friend_id=%s", friend.user_id, friend.friend_id)
    return {"success": 1, "data": _out(friend)}


@router.delete("")
def delete_friend(
    id: int,
    db: Session = Depends(get_db),
    current_username: str = Depends(get_current_username),
):
    friend = db.query(Friend).filter(Friend.id == id).first()
    if not friend:
        raise HTTPException(status_code=404, detail="Friend not found")
    owner = db.query(User).filter(User.id == friend.user_id).first()
    require_same_user(owner.username if owner else "", current_username)
    db.delete(friend)
    db.commit()
    logger.info("FRIEND_DELETED id=%s user_id=%s", id, friend.user_id)
    return {"success": 1}

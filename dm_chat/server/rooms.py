"""Room routes: lookup, creation, DM resolution, listing and read cursors."""
import json
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session

from . import schemas
from ..shared.utils import parse_participants, room_key
from .auth import get_current_username, logger, require_same_user
from .database import get_db
from .models import Chat, Room, RoomRead

router = APIRouter(prefix="/room", tags=["rooms"])


def _room_out(room: Room) -> schemas.RoomOut:
    return schemas.RoomOut(id=room.id, participants=parse_participants(room.participants))


def _find_or_create(db: Session, participants: List[str]) -> Room:
    key = room_key(participants)
    room = db.query(Room).filter(Room.participants == key).first()
    if room:
        return room
    room = Room(participants=key)
    db.add(room)
    db.commit()
    db.refresh(room)
    logger.info("ROOM_CREATED room_id=%s participants=%s", room.id, key)
    return room


def _clean(participants: List[str]) -> List[str]:
    return sorted({p.strip() for p in participants if p and p.strip()})


@router.get("", response_model=List[schemas.RoomOut])
def get_rooms(id: Optional[int] = None, db: Session = Depends(get_db)):
    query = db.query(Room)
    if id is not None:
        query = query.filter(Room.id == id)
    return [_room_out(room) for room in query.order_by(Room.id).all()]


@router.post("")
def create_room(payload: schemas.RoomIn, db: Session = Depends(get_db)):
    participants = _clean(payload.participants)
    if not participants:
        raise HTTPException(status_code=400, detail="participants required")
    room = _find_or_create(db, participants)
    return {"success": 1, "data": _room_out(room).model_dump()}


@router.post("/find")
def find_room(payload: schemas.RoomIn, db: Session = Depends(get_db)):
    """Return the DM room for exactly two distinct users, creating it on first use."""
    participants = _clean(payload.participants)
    if len(participants) != 2:
        raise HTTPException(status_code=400, detail="exactly two distinct participants required")
    room = _find_or_create(db, participants)
    return {"success": 1, "data": _room_out(room).model_dump()}


@router.get("/list", response_model=List[schemas.RoomWithUnread])
def list_rooms(username: str, db: Session = Depends(get_db)):
    """Rooms that include ``username``, each with its unread count and latest message."""
    # Coarse text filter first, exact membership check on the parsed list after.
    candidates = db.query(Room).filter(Room.participants.contains(json.dumps(username))).order_by(Room.id).all()
    results: List[schemas.RoomWithUnread] = []
    for room in candidates:
        participants = parse_participants(room.participants)
        if username not in participants:
            continue
        cursor = (
            db.query(RoomRead.last_read_id)
            .filter(RoomRead.room_id == room.id, RoomRead.username == username)
            .scalar()
        )
        unread = db.query(func.count(Chat.id)).filter(Chat.room_id == room.id)
        if cursor is not None:
            unread = unread.filter(Chat.id > cursor)
        last = db.query(Chat).filter(Chat.room_id == room.id).order_by(Chat.id.desc()).first()
        results.append(
            schemas.RoomWithUnread(
                id=room.id,
                participants=participants,
                unread_count=unread.scalar() or 0,
                last_message=last.message if last else None,
            )
        )
    return results


@router.post("/read/{room_id}")
def mark_read(
    room_id: int,
    payload: schemas.ReadUpdate,
    db: Session = Depends(get_db),
    current_username: str = Depends(get_current_username),
):
    require_same_user(payload.username, current_username)
    if not db.query(Room).filter(Room.id == room_id).first():
        raise HTTPException(status_code=404, detail="Room not found")

    record = db.query(RoomRead).filter(RoomRead.room_id == room_id, RoomRead.username == payload.username).first()
    if record is None:
        record = RoomRead(room_id=room_id, username=payload.username, last_read_id=payload.last_read_id)
        db.add(record)
    elif payload.last_read_id is not None and (record.last_read_id is None or payload.last_read_id > record.last_read_id):
        record.last_read_id = payload.last_read_id
    db.commit()
    logger.info("ROOM_READ room_id=%s username=%s last_read_id=%s", room_id, payload.username, record.last_read_id)
    return {"success": 1, "last_read_id": record.last_read_id}

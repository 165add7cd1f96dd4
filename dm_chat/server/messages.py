"""Chat message routes: history, sending and the live event stream."""
import asyncio
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from . import schemas
from .auth import get_current_username, logger, require_same_user
from .broker import KEEP_ALIVE, broker, format_sse
from .config import MAX_MESSAGE_LENGTH, SSE_KEEPALIVE_SECONDS
from .database import get_db
from .models import Chat, Room

router = APIRouter(prefix="/chat", tags=["chat"])


def _event_of(chat: Chat) -> Dict[str, Any]:
    return schemas.ChatOut.model_validate(chat).model_dump(mode="json")


@router.get("", response_model=List[schemas.ChatOut])
def get_history(room_id: int, db: Session = Depends(get_db)):
    """All messages of a room, oldest first."""
    return db.query(Chat).filter(Chat.room_id == room_id).order_by(Chat.id).all()


@router.post("/send")
def send_message(
    payload: schemas.NewMessage,
    db: Session = Depends(get_db),
    current_username: str = Depends(get_current_username),
):
    sender = payload.sender.strip()
    text = payload.message.strip()
    if not sender or not text:
        return {"success": 0, "error": "sender and message are required"}
    require_same_user(sender, current_username)
    if len(text) > MAX_MESSAGE_LENGTH:
        logger.info("MESSAGE_REJECTED sender=%s room_id=%s reason=too_long", sender, payload.room_id)
        return {"success": 0, "error": f"Message is longer than {MAX_MESSAGE_LENGTH} characters"}
    if not db.query(Room).filter(Room.id == payload.room_id).first():
        logger.info("MESSAGE_REJECTED sender=%s room_id=%s reason=no_room", sender, payload.room_id)
        return {"success": 0, "error": "Room not found"}

    chat = Chat(room_id=payload.room_id, sender=sender, message=text)
    db.add(chat)
    db.commit()
    db.refresh(chat)
    event = _event_of(chat)
    reached = broker.publish(event)
    logger.info("MESSAGE_SENT sender=%s room_id=%s message_id=%s subscribers=%s", sender, chat.room_id, chat.id, reached)
    return {"success": 1, "data": event}


@router.get("/subscribe")
async def subscribe(request: Request, room_id: Optional[int] = None):
    """Server-sent event stream of new messages, optionally limited to one room."""
    queue = broker.subscribe()
    logger.info("LIVE_SUBSCRIBE room_id=%s", room_id)

    async def stream():
        try:
            while True:
                if await request.is_disconnected():
                    break
                try:
                    event = await asyncio.wait_for(queue.get(), timeout=SSE_KEEPALIVE_SECONDS)
                except asyncio.TimeoutError:
                    yield KEEP_ALIVE
                    continue
                if room_id is None or event.get("room_id") == room_id:
                    yield format_sse(event)
        finally:
            broker.unsubscribe(queue)
            logger.info("LIVE_UNSUBSCRIBE room_id=%s", room_id)

    return StreamingResponse(
        stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )

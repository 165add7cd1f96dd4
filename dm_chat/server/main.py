"""FastAPI application entrypoint for the chat server."""
import uvicorn
from fastapi import Depends, FastAPI
from sqlalchemy import text
from sqlalchemy.orm import Session

from . import auth, friends, messages, rooms, users
from .broker import broker
from .config import HOST, PORT
from .database import Base, engine, get_db

logger = auth.logger

# Create tables
Base.metadata.create_all(bind=engine)

app = FastAPI(title="DM Chat Server", version="1.0.0")
for module in (auth, users, rooms, messages, friends):
    app.include_router(module.router, prefix="/api")


@app.get("/api/health")
def health(db: Session = Depends(get_db)):
    db.execute(text("SELECT 1"))
    return {"status": "ok", "subscribers": broker.subscriber_count}


def main():
    logger.info("SERVER_START host=%s port=%s", HOST, PORT)
    uvicorn.run("dm_chat.server.main:app", host=HOST, port=PORT, reload=False)


if __name__ == "__main__":
    main()

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import socketio

from draftio.api import health, messages
from draftio.core.config import settings, logger
from draftio.core.middleware import RequestContextMiddleware
from draftio.db.database import create_tables
from draftio.realtime import sio


@asynccontextmanager
async def lifespan(app: FastAPI):
    await create_tables()
    logger.info(f"{settings.APP_NAME} started ({settings.APP_ENV})")
    yield


app = FastAPI(
    title="Draft.IO Chat API",
    description="Direct messages, presence and typing relay for Draft.IO",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestContextMiddleware)

app.include_router(health.router, prefix="", tags=["Health"])
app.include_router(messages.conversations_router, prefix="/conversations", tags=["Conversations"])
app.include_router(messages.router, prefix="/messages", tags=["Messages"])

# Socket.IO handles /socket.io/*, everything else falls through to FastAPI
asgi_app = socketio.ASGIApp(sio, other_asgi_app=app, socketio_path=settings.SOCKETIO_PATH)

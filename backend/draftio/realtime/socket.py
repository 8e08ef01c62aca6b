"""
Socket.IO server implementation for one-to-one chat.

Rooms:
- user:{user_id} - Every socket of a user (direct messages, typing, receipts)
- conversation:{conversation_id} - Optional per-conversation room

Events received:
- send_message { receiverId, content }
- typing_start / typing_stop { receiverId }
- mark_read { senderId }
- join_conversation { userId }
- check_online { userId }

Events emitted:
- receive_message - New message for the receiver
- message_sent - Sender's own confirmation
- user_online / user_offline - Presence { userId }
- typing_indicator - { senderId, isTyping }
- messages_read - { readBy, count }
- online_status - { userId, isOnline }
- error - { message }
"""
import socketio
from typing import Dict, Optional
from sqlalchemy.exc import SQLAlchemyError
import logging

from draftio.db.database import async_session
from draftio.realtime.auth import authenticate_socket
from draftio.realtime.presence import presence_manager
from draftio.services.messages import MessageService, generate_conversation_id

logger = logging.getLogger(__name__)

# Let FastAPI's CORS middleware handle CORS to avoid duplicate headers
sio = socketio.AsyncServer(
    async_mode="asgi",
    cors_allowed_origins=[],
    logger=False,
    engineio_logger=False,
)

# Track authenticated users: sid -> user_data
authenticated_users: Dict[str, dict] = {}


def user_room(user_id: str) -> str:
    return f"user:{user_id}"


async def _require_user(sid: str) -> Optional[dict]:
    user_data = authenticated_users.get(sid)
    if not user_data:
        await sio.emit("error", {"message": "Not authenticated"}, room=sid)
    return user_data


def _payload(data) -> dict:
    return data if isinstance(data, dict) else {}


@sio.event
async def connect(sid: str, environ: dict, auth: dict = None):
    """
    Handle new socket connection.
    Authenticates user, joins their personal room and announces presence.
    """
    logger.info(f"Socket connect attempt: {sid}")

    is_authenticated, user_data = await authenticate_socket(auth, environ)
    if not is_authenticated:
        logger.warning(f"Socket connection rejected: {sid}")
        return False

    authenticated_users[sid] = user_data
    user_id = user_data["user_id"]

    await sio.enter_room(sid, user_room(user_id))

    came_online = presence_manager.user_connected(user_id, sid)
    if came_online:
        await sio.emit("user_online", {"userId": user_id}, skip_sid=sid)

    logger.info(f"Socket connected: {sid} (user: {user_id})")
    return True


@sio.event
async def disconnect(sid: str, *args):
    """
    Handle socket disconnection.
    Rooms are left automatically; presence is announced only when
    the user's last socket goes away.
    """
    user_data = authenticated_users.pop(sid, None)

    disconnect_info = presence_manager.user_disconnected(sid)
    if disconnect_info and disconnect_info["went_offline"]:
        await sio.emit("user_offline", {"userId": disconnect_info["user_id"]})

    if user_data:
        logger.info(f"Socket disconnected: {sid} (user: {user_data['user_id']})")
    else:
        logger.info(f"Socket disconnected: {sid} (unauthenticated)")


@sio.event
async def send_message(sid: str, data: dict):
    """
    Persist a message and relay it.

    Expected data: { "receiverId": str, "content": str }
    """
    user_data = await _require_user(sid)
    if not user_data:
        return

    data = _payload(data)
    receiver_id = data.get("receiverId")
    content = data.get("content")
    if not content or not receiver_id:
        await sio.emit("error", {"message": "Missing required fields"}, room=sid)
        return

    receiver_id = str(receiver_id)
    try:
        async with async_session() as db:
            message = await MessageService(db).send_message(user_data["user_id"], receiver_id, content)
    except SQLAlchemyError:
        logger.exception(f"Error sending message from {user_data['user_id']} to {receiver_id}")
        await sio.emit("error", {"message": "Failed to send message"}, room=sid)
        return

    payload = message.to_payload()
    await sio.emit("receive_message", payload, room=user_room(receiver_id))
    await sio.emit("message_sent", payload, room=sid)

    logger.debug(f"Message from {user_data['user_id']} to {receiver_id}")


async def _relay_typing(sid: str, data: dict, is_typing: bool):
    user_data = await _require_user(sid)
    if not user_data:
        return

    receiver_id = _payload(data).get("receiverId")
    if not receiver_id:
        await sio.emit("error", {"message": "receiverId is required"}, room=sid)
        return

    await sio.emit("typing_indicator", {
        "senderId": user_data["user_id"],
        "isTyping": is_typing,
    }, room=user_room(str(receiver_id)))


@sio.event
async def typing_start(sid: str, data: dict):
    """Expected data: { "receiverId": str }"""
    await _relay_typing(sid, data, True)


@sio.event
async def typing_stop(sid: str, data: dict):
    """Expected data: { "receiverId": str }"""
    await _relay_typing(sid, data, False)


@sio.event
async def mark_read(sid: str, data: dict):
    """
    Mark everything the given sender sent us as read and tell the sender.

    Expected data: { "senderId": str }
    """
    user_data = await _require_user(sid)
    if not user_data:
        return

    sender_id = _payload(data).get("senderId")
    if not sender_id:
        await sio.emit("error", {"message": "senderId is required"}, room=sid)
        return

    sender_id = str(sender_id)
    try:
        async with async_session() as db:
            count = await MessageService(db).mark_as_read(user_data["user_id"], sender_id)
    except SQLAlchemyError:
        logger.exception(f"Error marking messages as read for {user_data['user_id']}")
        await sio.emit("error", {"message": "Failed to mark messages as read"}, room=sid)
        return

    await sio.emit("messages_read", {
        "readBy": user_data["user_id"],
        "count": count,
    }, room=user_room(sender_id))

    logger.info(f"{count} messages marked as read by {user_data['user_id']}")


@sio.event
async def join_conversation(sid: str, data: dict):
    """Expected data: { "userId": str }"""
    user_data = await _require_user(sid)
    if not user_data:
        return

    other_user_id = _payload(data).get("userId")
    if not other_user_id:
        await sio.emit("error", {"message": "userId is required"}, room=sid)
        return

    conversation_id = generate_conversation_id(user_data["user_id"], str(other_user_id))
    await sio.enter_room(sid, f"conversation:{conversation_id}")
    logger.info(f"User {user_data['user_id']} joined conversation {conversation_id}")


@sio.event
async def check_online(sid: str, data: dict):
    """Expected data: { "userId": str }"""
    user_data = await _require_user(sid)
    if not user_data:
        return

    user_id = _payload(data).get("userId")
    if not user_id:
        await sio.emit("error", {"message": "userId is required"}, room=sid)
        return

    await sio.emit("online_status", {
        "userId": str(user_id),
        "isOnline": presence_manager.is_user_online(str(user_id)),
    }, room=sid)

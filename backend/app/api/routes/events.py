import asyncio

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from sqlalchemy.orm import Session

from app.api.deps import get_db, resolve_token_user
from app.core.config import get_settings
from app.services.event_distributor import WebSocketChannel, event_distributor

router = APIRouter()


def _extract_ws_token(websocket: WebSocket) -> str | None:
    token = websocket.query_params.get("token")
    if token:
        return token

    auth_header = websocket.headers.get("authorization")
    if not auth_header:
        return None
    scheme, _, value = auth_header.partition(" ")
    if scheme.lower() != "bearer":
        return None
    return value.strip() or None


@router.websocket("/events/ws")
async def events_websocket(
    websocket: WebSocket,
    db: Session = Depends(get_db),
) -> None:
    token = _extract_ws_token(websocket)
    user = resolve_token_user(db, token) if token else None
    if user is None:
        await websocket.close(code=1008)
        return
    user_id = user.id
    roles = user.roles
    department = user.department
    # The connection stays open for a long time; do not pin a pooled database connection to it.
    db.close()

    await websocket.accept()
    channel = WebSocketChannel(websocket, queue_size=get_settings().channel_queue_size)
    # All outgoing frames go through the channel so there is a single writer per socket.
    pump = asyncio.create_task(channel.pump())
    try:
        channel.push({"event": "connected", "user_id": user_id})
        keys = event_distributor.register(user_id, roles, channel, department=department)
        channel.push({"event": "subscribed", "channels": keys})
        while True:
            message = await websocket.receive_text()
            if message.strip().lower() == "ping":
                channel.push({"event": "pong"})
    except WebSocketDisconnect:
        pass
    finally:
        event_distributor.unregister(channel)
        channel.close()
        pump.cancel()
        await asyncio.gather(pump, return_exceptions=True)

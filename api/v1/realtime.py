import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from core.security import InvalidTokenError, decode_access_token, extract_bearer
from services.realtime import Client, RealtimeGateway, parse_frame

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """Authenticated real-time channel. Token from ``?token=`` or the Authorization header."""
    token = websocket.query_params.get("token") or extract_bearer(websocket.headers.get("authorization"))
    try:
        user = decode_access_token(token) if token else None
    except InvalidTokenError as e:
        logger.info(f"Rejected socket with invalid token: {str(e)}")
        user = None
    if user is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    gateway: RealtimeGateway = websocket.app.state.gateway
    client = Client(websocket, user)
    gateway.connect(client)
    try:
        await pump_frames(websocket, gateway, client)
    except WebSocketDisconnect:
        pass
    finally:
        gateway.disconnect(client)


async def pump_frames(websocket: WebSocket, gateway: RealtimeGateway, client: Client) -> None:
    """Dispatch text frames until the peer disconnects. Binary frames are dropped."""
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return
        raw = message.get("text")
        if raw is None:
            logger.debug(f"Dropped non-text frame from user {client.user.user_id}")
            continue
        frame = parse_frame(raw)
        if frame is None:
            continue
        event, data = frame
        await gateway.handle(client, event, data)

import logging
from typing import Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from . import errors
from .auth import decode_token

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Events"])


@router.websocket("/ws")
async def event_stream(websocket: WebSocket, token: Optional[str] = None):
    """
    Push-only stream of the caller's clinic events, authenticated with `?token=<jwt>`.
    Anything the client sends is ignored.
    """
    try:
        principal = decode_token(token or "")
    except errors.Unauthorized as e:
        logger.info("EVENTS: Rejected listener: %s", e.message)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    notifier = websocket.app.state.notifier
    await notifier.register(websocket, principal.tenant_id)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        notifier.unregister(websocket, principal.tenant_id)

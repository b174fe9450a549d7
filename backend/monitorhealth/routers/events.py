"""Real-time check events over WebSocket."""
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/events", tags=["events"])


@router.websocket("/{owner_id}")
async def owner_events(websocket: WebSocket, owner_id: int):
    """Stream an owner's check results and stats while the socket is open.

    An open socket counts as an active session for the owner.
    """
    manager = websocket.app.state.events
    sessions = websocket.app.state.sessions

    await manager.connect(owner_id, websocket)
    sessions.login(owner_id)
    try:
        while True:
            # Clients only listen; incoming messages are keepalives
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        sessions.logout(owner_id)
        await manager.disconnect(owner_id, websocket)

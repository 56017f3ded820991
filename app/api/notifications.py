from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect, status

from app.core.notifications import NotificationHub
from app.core.security import get_player_id_from_token

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.websocket("/ws")
async def notifications_ws(websocket: WebSocket, token: str) -> None:
    """Per-player event channel, authenticated with an access token in the query string."""
    try:
        player_id = get_player_id_from_token(token)
    except HTTPException as e:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=str(e.detail))
        return

    hub: NotificationHub = websocket.app.state.notifications
    await hub.connect(websocket, player_id)
    try:
        # Inbound messages carry nothing, the loop only waits for the disconnect
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        hub.disconnect(websocket, player_id)

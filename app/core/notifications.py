from collections.abc import Mapping
from typing import Any

from fastapi import Request, WebSocket
from loguru import logger

from app.utils.misc import get_utc_iso_now


class NotificationHub:
    """Per-player WebSocket channels for state-change events.

    Delivery is fire-and-forget: a socket that fails to receive an event is
    dropped and the failure is logged, it never reaches the emitter.
    """

    def __init__(self) -> None:
        self._connections: dict[int, set[WebSocket]] = {}

    async def connect(self, websocket: WebSocket, player_id: int) -> None:
        await websocket.accept()
        self._connections.setdefault(player_id, set()).add(websocket)
        logger.info(f"Player {player_id} joined notification channel")

    def disconnect(self, websocket: WebSocket, player_id: int) -> None:
        sockets = self._connections.get(player_id)
        if sockets is None:
            return

        sockets.discard(websocket)
        if not sockets:
            del self._connections[player_id]

    async def emit_to_user(self, player_id: int, event: str, payload: Mapping[str, Any]) -> None:
        sockets = self._connections.get(player_id)
        if not sockets:
            return

        message = {"event": event, "data": dict(payload), "timestamp": get_utc_iso_now()}
        disconnected: list[WebSocket] = []
        for websocket in list(sockets):
            try:
                await websocket.send_json(message)
            except Exception as e:  # noqa: BLE001
                logger.warning(f"Dropping notification socket for player {player_id}: {e}")
                disconnected.append(websocket)

        for websocket in disconnected:
            self.disconnect(websocket, player_id)

        logger.debug(f"Emitted {event} to player {player_id}")

    @property
    def online_players(self) -> list[int]:
        return list(self._connections)


def get_notification_hub(request: Request) -> NotificationHub:
    return request.app.state.notifications

from __future__ import annotations

from fastapi import APIRouter, WebSocket

from folio.core.redis import get_redis
from folio.notifications.gateway import NotificationGateway

router = APIRouter()


@router.websocket("/ws")
async def notifications_socket(websocket: WebSocket) -> None:
  """Authenticate with the first frame, then receive job outcomes for the caller."""
  await NotificationGateway(get_redis()).serve(websocket)

"""
Flux temps réel des notifications de sécurité (WebSocket)
"""
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status
from typing import Optional
import asyncio
import logging

from voting_guard.models.user import UserRole
from voting_guard.services.auth_service import decode_access_token
from voting_guard.services.notification_service import NotificationBroadcaster, get_ws_broadcaster

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["Notifications"])


async def _relay(websocket: WebSocket, broadcaster: NotificationBroadcaster, queue: asyncio.Queue):
    async for notification in broadcaster.listen(queue):
        await websocket.send_json(notification.to_wire())


@router.websocket("/ws")
async def notifications_ws(
    websocket: WebSocket,
    token: Optional[str] = None,
    broadcaster: NotificationBroadcaster = Depends(get_ws_broadcaster)
):
    """Relayer chaque notification publiée à l'administrateur connecté (?token=<JWT>)"""
    token_data = decode_access_token(token) if token else None
    if token_data is None or token_data.role != UserRole.ADMIN.value:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    # Abonnement avant l'acceptation: rien n'est perdu entre les deux
    queue = broadcaster.subscribe()
    await websocket.accept()
    logger.info(f"Notification listener connected ({broadcaster.subscriber_count})")

    relay = asyncio.create_task(_relay(websocket, broadcaster, queue))
    try:
        while True:
            # Keep-alive: le contenu envoyé par le client est ignoré
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info("Notification listener disconnected")
    finally:
        relay.cancel()
        await asyncio.gather(relay, return_exceptions=True)
        broadcaster.unsubscribe(queue)

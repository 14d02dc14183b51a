"""
Realtime WebSocket endpoint
"""

from typing import Optional

from fastapi import APIRouter, Query, WebSocket

from app.core.logging import get_logger
from app.core.security import extract_bearer

logger = get_logger(__name__)

router = APIRouter()


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket, token: Optional[str] = Query(None)):
    """
    WebSocket endpoint for real-time chat.
    Credential comes from the ``token`` query parameter or an
    ``Authorization: Bearer`` header.
    """
    credential = token or extract_bearer(websocket.headers.get("authorization"))
    if not credential:
        logger.warning("WebSocket connection without token")
        await websocket.close(code=1008, reason="Authentication token required")
        return

    gateway = websocket.app.state.gateway
    user = await gateway.authenticate(credential)
    if user is None:
        await websocket.close(code=1008, reason="Invalid token")
        return

    await gateway.serve(websocket, user)

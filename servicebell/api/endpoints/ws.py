# servicebell/api/endpoints/ws.py
import json
import logging
from typing import Optional

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status

from servicebell.schemas.events import EventEnvelope, EventType
from servicebell.services.broadcast import BroadcastHub, ClientType

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws")
async def websocket_endpoint(
    websocket: WebSocket,
    session_id: Optional[str] = Query(None, alias="sessionId"),
    client_type: str = Query(ClientType.CUSTOMER.value, alias="clientType"),
    restaurant_id: Optional[int] = Query(None, alias="restaurantId"),
) -> None:
    """
    Canal de avisos em tempo real.

    O token da sessão não é conferido aqui: o socket só empurra avisos e toda
    mudança de estado passa pelo HTTP, onde a sessão é validada.
    """
    try:
        kind = ClientType(client_type)
    except ValueError:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    hub: BroadcastHub = websocket.app.state.hub
    await websocket.accept()
    connection = hub.register(websocket, client_type=kind, session_id=session_id, restaurant_id=restaurant_id)
    try:
        await hub.send(connection, EventEnvelope(type=EventType.CONNECTION_STATUS, status="connected"))
        while True:
            raw = await websocket.receive_text()
            try:
                message = json.loads(raw)
            except json.JSONDecodeError:
                logger.debug("Mensagem inválida ignorada no socket %s", connection.id[:8])
                continue
            if not isinstance(message, dict):
                continue
            if message.get("type") == "ping":
                continue
            if message.get("type") == "sync":
                # O cliente pediu para reler tudo; basta um aviso
                await hub.send(connection, EventEnvelope(type=EventType.CONNECTION_STATUS, status="sync"))
    except WebSocketDisconnect:
        pass
    finally:
        hub.unregister(connection.id)

# servicebell/services/broadcast.py
"""
Hub de notificações em tempo real.

Mantém o registro das conexões WebSocket abertas no processo e repassa cada
evento para todas elas. O socket é só um barramento de avisos: as mudanças de
estado acontecem pelo HTTP e o cliente sempre relê os dados depois de um aviso.
"""
import enum
import json
import logging
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol

from servicebell.core.logging import mask_token
from servicebell.schemas.events import EventEnvelope
from servicebell.services.redis_service import RedisClient

logger = logging.getLogger(__name__)


class ClientType(str, enum.Enum):
    CUSTOMER = "customer"
    ADMIN = "admin"


class SocketLike(Protocol):
    async def send_text(self, data: str) -> None: ...


@dataclass
class Connection:
    websocket: SocketLike
    client_type: ClientType
    session_id: Optional[str] = None
    restaurant_id: Optional[int] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def accepts(self, restaurant_id: Optional[int]) -> bool:
        # Conexões sem restaurante declarado recebem tudo
        if self.restaurant_id is None or restaurant_id is None:
            return True
        return self.restaurant_id == restaurant_id


class BroadcastHub:
    def __init__(self, mirror: Optional[RedisClient] = None, mirror_channel: Optional[str] = None):
        self._connections: Dict[str, Connection] = {}
        self._mirror = mirror
        self._mirror_channel = mirror_channel

    def __len__(self) -> int:
        return len(self._connections)

    @property
    def connections(self) -> List[Connection]:
        return list(self._connections.values())

    def register(
        self,
        websocket: SocketLike,
        *,
        client_type: ClientType,
        session_id: Optional[str] = None,
        restaurant_id: Optional[int] = None,
    ) -> Connection:
        connection = Connection(
            websocket=websocket,
            client_type=client_type,
            session_id=session_id,
            restaurant_id=restaurant_id,
        )
        self._connections[connection.id] = connection
        logger.info(
            "Socket %s conectado (%s, sessão %s, restaurante %s); %d abertos",
            connection.id[:8],
            client_type.value,
            mask_token(session_id),
            restaurant_id,
            len(self._connections),
        )
        return connection

    def unregister(self, connection_id: str) -> None:
        if self._connections.pop(connection_id, None) is not None:
            logger.info("Socket %s removido; %d abertos", connection_id[:8], len(self._connections))

    async def send(self, connection: Connection, event: EventEnvelope) -> bool:
        return await self._deliver(connection, json.dumps(event.to_wire()))

    async def broadcast(self, event: EventEnvelope, *, exclude: Optional[str] = None) -> int:
        """Envia o evento para todas as conexões. Retorna quantas receberam."""
        text = json.dumps(event.to_wire())
        delivered = 0
        for connection in self.connections:
            if connection.id == exclude or not connection.accepts(event.restaurant_id):
                continue
            if await self._deliver(connection, text):
                delivered += 1
        logger.debug("Evento %s entregue a %d socket(s)", event.type.value, delivered)
        await self._publish_mirror(text)
        return delivered

    async def _deliver(self, connection: Connection, text: str) -> bool:
        try:
            await connection.websocket.send_text(text)
        except Exception as exc:  # socket já fechado do outro lado
            logger.warning("Falha ao enviar para o socket %s: %s", connection.id[:8], exc)
            self.unregister(connection.id)
            return False
        return True

    async def _publish_mirror(self, text: str) -> None:
        if self._mirror is None or not self._mirror_channel:
            return
        await self._mirror.publish_message(channel=self._mirror_channel, message=text)


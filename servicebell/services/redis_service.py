# servicebell/services/redis_service.py
import logging
from typing import Optional

import redis.asyncio as redis  # Using asyncio version for FastAPI
from redis.exceptions import RedisError

from servicebell.core.config import settings

logger = logging.getLogger(__name__)


class RedisClient:
    """Cliente Redis usado como espelho dos eventos do hub (somente publish)."""

    def __init__(self, host: str = settings.REDIS_HOST, port: int = settings.REDIS_PORT):
        self.host = host
        self.port = port
        self._client: Optional[redis.Redis] = None

    async def connect(self) -> None:
        if not self._client:
            try:
                self._client = redis.Redis(host=self.host, port=self.port, decode_responses=True)
                # Test connection
                await self._client.ping()
                logger.info("Conectado ao Redis em %s:%s", self.host, self.port)
            except RedisError as exc:
                logger.warning("Falha ao conectar ao Redis: %s", exc)
                self._client = None  # Ensure client is None if connection failed

    async def disconnect(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("Desconectado do Redis.")

    async def client(self) -> Optional[redis.Redis]:
        if not self._client:
            await self.connect()  # Attempt to connect if not already connected
        return self._client

    async def publish_message(self, channel: str, message: str) -> bool:
        r = await self.client()
        if r is None:
            logger.warning("Não foi possível publicar no canal %s: cliente Redis não conectado.", channel)
            return False
        try:
            await r.publish(channel, message)
        except RedisError as exc:
            logger.warning("Falha ao publicar no canal %s: %s", channel, exc)
            return False
        return True

"""
Agente de sincronização do cliente.

Mantém um socket com o hub, reconecta com backoff exponencial e, a cada aviso
que diz respeito ao seu contexto (mesa ou restaurante), invalida o cache e
relê os dados pelo HTTP. O conteúdo dos avisos nunca é aplicado direto.
"""
import asyncio
import enum
import json
import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional
from urllib.parse import urlencode

import httpx
import websockets
from websockets.exceptions import WebSocketException

from servicebell.client.api_client import ApiError, ServiceBellClient, SessionInvalidError
from servicebell.core.config import settings
from servicebell.core.logging import mask_token

logger = logging.getLogger(__name__)


class SyncState(str, enum.Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    DISCONNECTED = "disconnected"
    SESSION_ENDED = "session_ended"


# Chaves de cache afetadas por cada tipo de aviso
EVENT_CACHE_KEYS: Dict[str, tuple] = {
    "new_request": ("requests",),
    "update_request": ("requests",),
    "new_session": ("requests", "tables"),
    "end_session": ("requests", "tables"),
    "update_table": ("tables",),
    "delete_table": ("tables", "requests"),
    "new_feedback": ("feedback",),
}


def backoff_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    return min(base_delay * 2 ** attempt, max_delay)


class ClientSyncAgent:
    def __init__(
        self,
        api: ServiceBellClient,
        ws_url: str,
        *,
        restaurant_id: int,
        table_id: Optional[int] = None,
        session_id: Optional[str] = None,
        client_type: str = "customer",
        on_update: Optional[Callable[[str, Any], Awaitable[None]]] = None,
        on_session_ended: Optional[Callable[[str], Awaitable[None]]] = None,
        on_state_change: Optional[Callable[[SyncState], None]] = None,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        max_attempts: int = 10,
        ping_interval: float = 30.0,
        revalidate_interval: float = settings.SESSION_REVALIDATE_SECONDS,
        connect: Callable[..., Any] = websockets.connect,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if client_type == "customer" and (table_id is None or not session_id):
            raise ValueError("customer agents need table_id and session_id")
        self.api = api
        self.ws_url = ws_url.rstrip("/")
        self.restaurant_id = restaurant_id
        self.table_id = table_id
        self.session_id = session_id
        self.client_type = client_type
        self.on_update = on_update
        self.on_session_ended = on_session_ended
        self.on_state_change = on_state_change
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.max_attempts = max_attempts
        self.ping_interval = ping_interval
        self.revalidate_interval = revalidate_interval
        self._connect = connect
        self._sleep = sleep

        self.state = SyncState.IDLE
        self.cache: Dict[str, Any] = {}
        self._socket: Any = None
        self._stopped = False

    @property
    def is_customer(self) -> bool:
        return self.client_type == "customer"

    @property
    def uri(self) -> str:
        params: Dict[str, Any] = {"clientType": self.client_type, "restaurantId": self.restaurant_id}
        if self.session_id:
            params["sessionId"] = self.session_id
        return f"{self.ws_url}?{urlencode(params)}"

    def _set_state(self, state: SyncState) -> None:
        if state == self.state:
            return
        logger.debug("Agente %s: %s -> %s", self.client_type, self.state.value, state.value)
        self.state = state
        if self.on_state_change is not None:
            self.on_state_change(state)

    # --- Ciclo de conexão ---

    async def run(self) -> None:
        """Conecta e reconecta até a sessão acabar, stop() ou esgotar as tentativas."""
        revalidator = asyncio.create_task(self._revalidate_loop()) if self.is_customer else None
        attempt = 0
        try:
            while not self._stopped:
                self._set_state(SyncState.CONNECTING if attempt == 0 else SyncState.RECONNECTING)
                try:
                    async with self._connect(self.uri) as socket:
                        self._socket = socket
                        attempt = 0
                        self._set_state(SyncState.CONNECTED)
                        await self.refresh(self._cache_keys())
                        await self._listen(socket)
                except (OSError, WebSocketException) as exc:
                    logger.warning("Agente %s: conexão falhou: %s", self.client_type, exc)
                finally:
                    self._socket = None

                if self._stopped:
                    break
                if attempt >= self.max_attempts:
                    logger.error("Agente %s: desistindo após %d tentativas", self.client_type, attempt)
                    self._set_state(SyncState.DISCONNECTED)
                    break
                delay = backoff_delay(attempt, self.base_delay, self.max_delay)
                attempt += 1
                self._set_state(SyncState.RECONNECTING)
                await self._sleep(delay)
        finally:
            if revalidator is not None:
                revalidator.cancel()
                await asyncio.gather(revalidator, return_exceptions=True)

    async def stop(self) -> None:
        self._stopped = True
        if self.state != SyncState.SESSION_ENDED:
            self._set_state(SyncState.DISCONNECTED)
        if self._socket is not None:
            await self._socket.close()

    async def _listen(self, socket: Any) -> None:
        pinger = asyncio.create_task(self._ping_loop(socket))
        try:
            async for raw in socket:
                await self.handle_message(raw)
                if self._stopped:
                    break
        finally:
            pinger.cancel()
            await asyncio.gather(pinger, return_exceptions=True)

    async def _ping_loop(self, socket: Any) -> None:
        while True:
            await asyncio.sleep(self.ping_interval)
            await socket.send(json.dumps({"type": "ping"}))

    async def _revalidate_loop(self) -> None:
        while not self._stopped:
            await asyncio.sleep(self.revalidate_interval)
            await self.revalidate()

    # --- Avisos ---

    def _cache_keys(self) -> tuple:
        return ("requests",) if self.is_customer else ("requests", "tables", "feedback")

    def _matches(self, event: Dict[str, Any]) -> bool:
        restaurant_id = event.get("restaurantId")
        if restaurant_id is not None and restaurant_id != self.restaurant_id:
            return False
        if self.is_customer:
            return event.get("tableId") == self.table_id
        return True

    async def handle_message(self, raw: str) -> None:
        try:
            event = json.loads(raw)
        except (TypeError, ValueError):
            logger.debug("Aviso inválido ignorado")
            return
        if not isinstance(event, dict):
            return

        event_type = event.get("type")
        if event_type not in EVENT_CACHE_KEYS or not self._matches(event):
            return

        if self.is_customer:
            if event_type == "end_session" and event.get("sessionId") in (None, self.session_id):
                await self.end_session(event.get("reason") or "ended")
                return
            if event_type == "new_session" and event.get("sessionId") != self.session_id:
                await self.end_session("replaced")
                return

        keys = [key for key in EVENT_CACHE_KEYS[event_type] if key in self._cache_keys()]
        await self.refresh(keys)

    async def refresh(self, keys: Iterable[str]) -> None:
        """Invalida as chaves e relê cada uma pelo HTTP."""
        for key in keys:
            self.cache.pop(key, None)
            try:
                data = await self._fetch(key)
            except SessionInvalidError:
                await self.end_session("invalid")
                return
            except (ApiError, httpx.HTTPError) as exc:
                # Sem rede o cache fica vazio até o próximo aviso ou reconexão
                logger.warning("Agente %s: falha ao reler %s: %s", self.client_type, key, exc)
                continue
            self.cache[key] = data
            if self.on_update is not None:
                await self.on_update(key, data)

    async def _fetch(self, key: str) -> Any:
        if key == "requests":
            if self.is_customer:
                return await self.api.list_requests(table_id=self.table_id, session_id=self.session_id)
            return await self.api.list_requests(restaurant_id=self.restaurant_id)
        if key == "tables":
            return await self.api.list_tables(self.restaurant_id)
        if key == "feedback":
            return await self.api.list_feedback(self.restaurant_id)
        raise KeyError(key)

    # --- Sessão ---

    async def revalidate(self) -> bool:
        """Confere no servidor se a sessão local ainda é a sessão aberta da mesa."""
        if self._stopped or not self.session_id:
            return False
        try:
            verification = await self.api.verify_table(self.restaurant_id, self.table_id)
        except (ApiError, httpx.HTTPError) as exc:
            logger.warning("Agente: falha ao revalidar a sessão: %s", exc)
            return True
        active = verification.get("activeSession")
        if not active or active.get("id") != self.session_id:
            await self.end_session("expired" if not active else "replaced")
            return False
        return True

    async def end_session(self, reason: str) -> None:
        """Descarta o estado local e para de vez; só um novo scan abre outra sessão."""
        if self.state == SyncState.SESSION_ENDED:
            return
        logger.info("Mesa %s: sessão %s terminou (%s)", self.table_id, mask_token(self.session_id), reason)
        self._stopped = True
        self.session_id = None
        self.cache.clear()
        self._set_state(SyncState.SESSION_ENDED)
        if self.on_session_ended is not None:
            await self.on_session_ended(reason)
        if self._socket is not None:
            await self._socket.close()

    # --- Mutações (sempre pelo HTTP) ---

    async def create_request(self, type: str, notes: Optional[str] = None) -> Dict[str, Any]:
        return await self._mutate(self.api.create_request(self.table_id, self._require_session(), type, notes))

    async def cancel_request(self, request_id: int) -> Dict[str, Any]:
        return await self._mutate(self.api.cancel_request(request_id, self._require_session()))

    def _require_session(self) -> str:
        if not self.session_id:
            raise SessionInvalidError(403, "Session ended", {"shouldClearSession": True})
        return self.session_id

    async def _mutate(self, call: Awaitable[Dict[str, Any]]) -> Dict[str, Any]:
        try:
            return await call
        except SessionInvalidError:
            await self.end_session("invalid")
            raise

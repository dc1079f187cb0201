"""
ServiceBell API Client

Cliente HTTP assíncrono para as rotas públicas da mesa e o painel da equipe.
Toda mutação passa por aqui, com ou sem socket conectado.
"""
import logging
from typing import Any, Dict, List, Optional

import httpx

from servicebell.core.logging import mask_token

logger = logging.getLogger(__name__)


class ApiError(Exception):
    def __init__(self, status_code: int, message: str, body: Optional[Dict[str, Any]] = None):
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message
        self.body = body or {}


class SessionInvalidError(ApiError):
    """O servidor pediu para descartar a sessão da mesa (403 + shouldClearSession)."""


class ApiUnavailableError(ApiError):
    """Falha de transporte (servidor fora do ar, timeout); status_code é 0."""


class ServiceBellClient:
    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        *,
        api_prefix: str = "/api",
        token: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_prefix = api_prefix
        self.token = token
        self._client = httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=transport)

    async def __aenter__(self) -> "ServiceBellClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        if params:
            params = {key: value for key, value in params.items() if value is not None}
        try:
            response = await self._client.request(
                method, f"{self.api_prefix}{path}", json=json, params=params, headers=headers
            )
        except httpx.HTTPError as exc:
            logger.warning("Falha de rede em %s %s: %s", method, path, exc)
            raise ApiUnavailableError(0, str(exc) or type(exc).__name__) from exc
        if response.is_success:
            return response.json()

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        message = body.get("message") or body.get("detail") or response.reason_phrase
        if response.status_code == 403 and body.get("shouldClearSession"):
            raise SessionInvalidError(response.status_code, str(message), body)
        raise ApiError(response.status_code, str(message), body)

    # --- Autenticação ---

    async def login(self, username: str, password: str) -> Dict[str, Any]:
        data = await self._request("POST", "/login", json={"username": username, "password": password})
        self.token = data["accessToken"]
        return data

    async def logout(self) -> None:
        await self._request("POST", "/logout")
        self.token = None

    # --- Mesa e sessão ---

    async def verify_table(self, restaurant_id: int, table_id: int) -> Dict[str, Any]:
        return await self._request("GET", f"/restaurants/{restaurant_id}/tables/{table_id}/verify")

    async def create_session(
        self, restaurant_id: int, table_id: int, *, reuse_active: bool = False
    ) -> Dict[str, Any]:
        return await self._request(
            "POST",
            f"/restaurants/{restaurant_id}/tables/{table_id}/sessions",
            json={"reuseActive": reuse_active},
        )

    async def end_session(self, restaurant_id: int, table_id: int, session_id: Optional[str] = None) -> int:
        """Encerra a sessão; sem session_id só funciona com token da equipe."""
        data = await self._request(
            "POST",
            f"/restaurants/{restaurant_id}/tables/{table_id}/sessions/end",
            json={"sessionId": session_id} if session_id else None,
        )
        return data["updatedRequestsCount"]

    async def ensure_session(self, restaurant_id: int, table_id: int) -> str:
        """Token da sessão aberta na mesa, criando uma se preciso."""
        verification = await self.verify_table(restaurant_id, table_id)
        active = verification.get("activeSession")
        if active:
            return active["id"]
        session = await self.create_session(restaurant_id, table_id, reuse_active=True)
        logger.info("Mesa %s: sessão %s aberta", table_id, mask_token(session["sessionId"]))
        return session["sessionId"]

    async def list_tables(self, restaurant_id: int) -> List[Dict[str, Any]]:
        return await self._request("GET", f"/restaurants/{restaurant_id}/tables")

    # --- Chamados ---

    async def list_requests(
        self,
        *,
        table_id: Optional[int] = None,
        session_id: Optional[str] = None,
        restaurant_id: Optional[int] = None,
        status: Optional[List[str]] = None,
    ) -> List[Dict[str, Any]]:
        params = {"tableId": table_id, "sessionId": session_id, "restaurantId": restaurant_id, "status": status}
        return await self._request("GET", "/requests", params=params)

    async def create_request(
        self, table_id: int, session_id: str, type: str, notes: Optional[str] = None
    ) -> Dict[str, Any]:
        payload = {"tableId": table_id, "sessionId": session_id, "type": type}
        if notes:
            payload["notes"] = notes
        return await self._request("POST", "/requests", json=payload)

    async def update_request_status(self, request_id: int, status: str) -> Dict[str, Any]:
        return await self._request("PATCH", f"/requests/{request_id}", json={"status": status})

    async def cancel_request(self, request_id: int, session_id: str) -> Dict[str, Any]:
        return await self._request(
            "PATCH", f"/requests/{request_id}", json={"status": "cleared", "sessionId": session_id}
        )

    # --- Avaliações ---

    async def submit_feedback(self, request_id: int, rating: int, comment: Optional[str] = None) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"requestId": request_id, "rating": rating}
        if comment:
            payload["comment"] = comment
        return await self._request("POST", "/feedback", json=payload)

    async def list_feedback(self, restaurant_id: int, request_id: Optional[int] = None) -> List[Dict[str, Any]]:
        return await self._request(
            "GET", "/feedback", params={"restaurantId": restaurant_id, "requestId": request_id}
        )

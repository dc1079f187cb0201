# servicebell/services/session_manager.py
"""
Sessões de mesa.

Uma sessão liga um celular anônimo a uma mesa por tempo limitado. É a única
fonte de verdade para "este navegador pode agir nesta mesa agora?".
Cada mesa tem no máximo uma sessão aberta (ended_at IS NULL) por vez.
"""
import asyncio
import logging
import secrets
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from servicebell import crud
from servicebell.core.config import settings
from servicebell.core.exceptions import NotFoundError, SessionInvalidError
from servicebell.core.logging import mask_token
from servicebell.core.timeutils import as_utc, utcnow
from servicebell.db.models.service_request import RequestStatus, ServiceRequest
from servicebell.db.models.table_session import SessionEndReason, TableSession
from servicebell.schemas.events import EventEnvelope, EventType, as_payload
from servicebell.schemas.service_request import ServiceRequestRead
from servicebell.schemas.table import TableRead
from servicebell.schemas.table_session import ActiveSessionInfo, TableVerification
from servicebell.services.broadcast import BroadcastHub

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValidatedSession:
    """Par (mesa, token) já conferido, válido pelo resto da requisição."""

    table_id: int
    session_id: str
    table_session: TableSession


class SessionManager:
    def __init__(
        self,
        hub: BroadcastHub,
        *,
        duration_seconds: int = settings.TABLE_SESSION_DURATION_SECONDS,
        token_length: int = settings.SESSION_TOKEN_LENGTH,
        token_alphabet: str = settings.SESSION_TOKEN_ALPHABET,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.hub = hub
        self.duration = timedelta(seconds=duration_seconds)
        self.token_length = token_length
        self.token_alphabet = token_alphabet
        self.clock = clock
        # Serializa abrir/fechar sessão por mesa dentro do processo
        self._locks: Dict[int, asyncio.Lock] = defaultdict(asyncio.Lock)

    def generate_token(self) -> str:
        return "".join(secrets.choice(self.token_alphabet) for _ in range(self.token_length))

    def remaining_seconds(self, session: TableSession, now: Optional[datetime] = None) -> float:
        now = now or self.clock()
        elapsed = now - as_utc(session.started_at)
        return (self.duration - elapsed).total_seconds()

    def is_expired(self, session: TableSession, now: Optional[datetime] = None) -> bool:
        return self.remaining_seconds(session, now) < 0

    async def verify_table(self, db: AsyncSession, restaurant_id: int, table_id: int) -> TableVerification:
        """
        Confere a mesa e o estado da sessão.

        Se a sessão aberta já passou da janela de validade ela é encerrada aqui
        mesmo e o cliente recebe requiresNewSession.
        """
        table = await crud.table.get_in_restaurant(db, restaurant_id=restaurant_id, table_id=table_id)
        if not table:
            raise NotFoundError("Table not found")

        table_read = TableRead.model_validate(table)
        active = await crud.table_session.get_active_for_table(db, table_id=table.id)
        if active is None:
            return TableVerification(table=table_read, requires_new_session=True)

        now = self.clock()
        if self.is_expired(active, now):
            await self._expire(db, active, restaurant_id=table.restaurant_id, now=now)
            return TableVerification(table=table_read, requires_new_session=True)

        return TableVerification(
            table=table_read,
            active_session=ActiveSessionInfo(
                id=active.session_id,
                started_at=as_utc(active.started_at),
                expires_in=self.remaining_seconds(active, now),
            ),
        )

    async def create_session(self, db: AsyncSession, table_id: int, *, reuse_active: bool = False) -> TableSession:
        """
        Fecha qualquer sessão aberta da mesa e abre uma nova.

        Com reuse_active=True, uma sessão aberta e ainda válida é devolvida em
        vez de substituída: é o caso de dois celulares escaneando o mesmo QR
        ao mesmo tempo, em que o segundo deve cair na sessão do primeiro.
        """
        async with self._locks[table_id]:
            table = await crud.table.lock(db, table_id=table_id)
            if not table:
                raise NotFoundError("Table not found")

            now = self.clock()
            if reuse_active:
                current = await crud.table_session.get_active_for_table(db, table_id=table_id)
                if current is not None and not self.is_expired(current, now):
                    await db.commit()
                    logger.info("Mesa %s: reaproveitando sessão %s", table_id, mask_token(current.session_id))
                    return current

            closed = await crud.table_session.close_active_for_table(
                db, table_id=table_id, ended_at=now, reason=SessionEndReason.REPLACED.value
            )
            session = await crud.table_session.create(
                db, table_id=table_id, session_id=self.generate_token(), started_at=now
            )
            restaurant_id = table.restaurant_id
            await db.commit()

        logger.info(
            "Mesa %s: nova sessão %s (%d sessão(ões) anterior(es) fechada(s))",
            table_id,
            mask_token(session.session_id),
            closed,
        )
        await self.hub.broadcast(
            EventEnvelope(
                type=EventType.NEW_SESSION,
                table_id=table_id,
                restaurant_id=restaurant_id,
                session_id=session.session_id,
            )
        )
        return session

    async def end_session(self, db: AsyncSession, table_id: int, session_id: str) -> int:
        """
        Encerra a sessão e limpa os chamados dela ainda em aberto.

        Retorna quantos chamados foram limpos. Encerrar uma sessão que já
        terminou não faz nada e retorna zero.
        """
        async with self._locks[table_id]:
            table = await crud.table.get(db, id=table_id)
            if not table:
                raise NotFoundError("Table not found")

            session = await crud.table_session.get_active_by_token(db, table_id=table_id, session_id=session_id)
            if session is None:
                return 0

            now = self.clock()
            await crud.table_session.close(db, db_obj=session, ended_at=now, reason=SessionEndReason.ADMIN_ENDED.value)
            cleared = await self._clear_requests(db, table_id=table_id, session_id=session_id, now=now)
            restaurant_id = table.restaurant_id
            await db.commit()

        logger.info("Mesa %s: sessão %s encerrada, %d chamado(s) limpo(s)", table_id, mask_token(session_id), len(cleared))
        await self.hub.broadcast(
            EventEnvelope(
                type=EventType.END_SESSION,
                table_id=table_id,
                restaurant_id=restaurant_id,
                session_id=session_id,
                reason=SessionEndReason.ADMIN_ENDED.value,
            )
        )
        for request in cleared:
            await self.hub.broadcast(
                EventEnvelope(
                    type=EventType.UPDATE_REQUEST,
                    table_id=table_id,
                    restaurant_id=restaurant_id,
                    status=request.status.value,
                    request=as_payload(ServiceRequestRead, request),
                )
            )
        return len(cleared)

    async def end_active_session(self, db: AsyncSession, table_id: int) -> int:
        """Encerra a sessão aberta da mesa, qualquer que seja o token."""
        active = await crud.table_session.get_active_for_table(db, table_id=table_id)
        if active is None:
            return 0
        return await self.end_session(db, table_id, active.session_id)

    async def validate_session_for_request(
        self, db: AsyncSession, table_id: int, session_id: Optional[str]
    ) -> ValidatedSession:
        """Portão de toda criação/alteração de chamado feita pelo cliente."""
        if not session_id:
            raise SessionInvalidError("Session ID is required")

        session = await crud.table_session.get_active_by_token(db, table_id=table_id, session_id=session_id)
        if session is None:
            raise SessionInvalidError("Invalid or expired session")

        now = self.clock()
        if self.is_expired(session, now):
            table = await crud.table.get(db, id=table_id)
            await self._expire(db, session, restaurant_id=table.restaurant_id if table else None, now=now)
            raise SessionInvalidError("Session expired")

        return ValidatedSession(table_id=table_id, session_id=session.session_id, table_session=session)

    async def _expire(
        self, db: AsyncSession, session: TableSession, *, restaurant_id: Optional[int], now: datetime
    ) -> None:
        await crud.table_session.close(db, db_obj=session, ended_at=now, reason=SessionEndReason.EXPIRED.value)
        await db.commit()
        logger.info("Mesa %s: sessão %s expirou", session.table_id, mask_token(session.session_id))
        await self.hub.broadcast(
            EventEnvelope(
                type=EventType.END_SESSION,
                table_id=session.table_id,
                restaurant_id=restaurant_id,
                session_id=session.session_id,
                reason=SessionEndReason.EXPIRED.value,
            )
        )

    async def _clear_requests(
        self, db: AsyncSession, *, table_id: int, session_id: str, now: datetime
    ) -> List[ServiceRequest]:
        requests = await crud.service_request.get_active_for_session(db, table_id=table_id, session_id=session_id)
        for request in requests:
            await crud.service_request.set_status(db, db_obj=request, status=RequestStatus.CLEARED, completed_at=now)
        return requests

# servicebell/services/request_service.py
import asyncio
import logging
from collections import defaultdict
from datetime import datetime
from typing import Callable, Dict, FrozenSet, List, Optional, Sequence, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from servicebell import crud
from servicebell.core.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    InvalidTransitionError,
    NotFoundError,
)
from servicebell.core.timeutils import utcnow
from servicebell.db.models.feedback import Feedback
from servicebell.db.models.service_request import RequestStatus, RequestType, ServiceRequest
from servicebell.schemas.events import EventEnvelope, EventType, as_payload
from servicebell.schemas.feedback import FeedbackRead
from servicebell.schemas.service_request import ServiceRequestRead
from servicebell.services.broadcast import BroadcastHub
from servicebell.services.session_manager import ValidatedSession

logger = logging.getLogger(__name__)

# Status só avançam: pending < in_progress < completed; "cleared" é a saída lateral
ALLOWED_TRANSITIONS: Dict[RequestStatus, FrozenSet[RequestStatus]] = {
    RequestStatus.PENDING: frozenset(
        {RequestStatus.IN_PROGRESS, RequestStatus.COMPLETED, RequestStatus.CLEARED}
    ),
    RequestStatus.IN_PROGRESS: frozenset({RequestStatus.COMPLETED, RequestStatus.CLEARED}),
    RequestStatus.COMPLETED: frozenset(),
    RequestStatus.CLEARED: frozenset(),
}

# Texto livre nunca conta como chamado repetido
DEDUPLICATED_TYPES = frozenset({RequestType.WAITER, RequestType.WATER, RequestType.CHECK})


def can_transition(current: RequestStatus, requested: RequestStatus) -> bool:
    return requested in ALLOWED_TRANSITIONS[current]


class RequestService:
    def __init__(self, hub: BroadcastHub, *, clock: Callable[[], datetime] = utcnow):
        self.hub = hub
        self.clock = clock
        self._locks: Dict[Tuple[int, str], asyncio.Lock] = defaultdict(asyncio.Lock)

    async def list_requests(
        self,
        db: AsyncSession,
        *,
        table_id: Optional[int] = None,
        session_id: Optional[str] = None,
        restaurant_id: Optional[int] = None,
        statuses: Optional[Sequence[RequestStatus]] = None,
    ) -> List[ServiceRequest]:
        return await crud.service_request.get_multi(
            db, table_id=table_id, session_id=session_id, restaurant_id=restaurant_id, statuses=statuses
        )

    async def create_request(
        self,
        db: AsyncSession,
        validated: ValidatedSession,
        type: RequestType,
        notes: Optional[str] = None,
    ) -> ServiceRequest:
        """Cria um chamado pendente para a sessão já validada."""
        # Uma criação por vez por sessão; entre processos vale o índice único parcial
        async with self._locks[(validated.table_id, validated.session_id)]:
            if type in DEDUPLICATED_TYPES:
                duplicate = await crud.service_request.get_active_duplicate(
                    db, table_id=validated.table_id, session_id=validated.session_id, type=type
                )
                if duplicate is not None:
                    raise ConflictError(f"A '{type.value}' request is already active for this table")

            try:
                request = await crud.service_request.create(
                    db,
                    table_id=validated.table_id,
                    session_id=validated.session_id,
                    table_session_id=validated.table_session.id,
                    type=type,
                    notes=notes,
                )
                await db.commit()
            except IntegrityError:
                await db.rollback()
                raise ConflictError(f"A '{type.value}' request is already active for this table")

        logger.info("Mesa %s: novo chamado %s (%s)", request.table_id, request.id, type.value)
        await self._announce(db, EventType.NEW_REQUEST, request)
        return request

    async def advance_request(self, db: AsyncSession, request_id: int, status: RequestStatus) -> ServiceRequest:
        """Muda o status de um chamado pela equipe, respeitando a tabela de transições."""
        request = await crud.service_request.get(db, id=request_id)
        if not request:
            raise NotFoundError("Request not found")
        if not can_transition(request.status, status):
            raise InvalidTransitionError(request.status.value, status.value)

        completed_at = self.clock() if status in (RequestStatus.COMPLETED, RequestStatus.CLEARED) else None
        await crud.service_request.set_status(db, db_obj=request, status=status, completed_at=completed_at)
        await db.commit()
        logger.info("Chamado %s agora está %s", request.id, status.value)
        await self._announce(db, EventType.UPDATE_REQUEST, request)
        return request

    async def cancel_request(self, db: AsyncSession, request_id: int, validated: ValidatedSession) -> ServiceRequest:
        """Cancelamento pelo próprio cliente, só enquanto o chamado está pendente."""
        request = await crud.service_request.get(db, id=request_id)
        if not request:
            raise NotFoundError("Request not found")
        if request.table_id != validated.table_id or request.session_id != validated.session_id:
            raise ForbiddenError("Request does not belong to this session")
        if request.status != RequestStatus.PENDING:
            raise InvalidStateError("Only pending requests can be cancelled")

        await crud.service_request.set_status(
            db, db_obj=request, status=RequestStatus.CLEARED, completed_at=self.clock()
        )
        await db.commit()
        logger.info("Chamado %s cancelado pelo cliente", request.id)
        await self._announce(db, EventType.UPDATE_REQUEST, request)
        return request

    async def submit_feedback(
        self, db: AsyncSession, request_id: int, rating: int, comment: Optional[str] = None
    ) -> Feedback:
        request = await crud.service_request.get(db, id=request_id)
        if not request:
            raise NotFoundError("Request not found")
        if request.status != RequestStatus.COMPLETED:
            raise InvalidStateError("Can only provide feedback for completed requests")
        if await crud.feedback.get_by_request(db, request_id=request_id):
            raise ConflictError("Feedback already submitted for this request")

        try:
            feedback = await crud.feedback.create(db, request_id=request_id, rating=rating, comment=comment)
            await db.commit()
        except IntegrityError:
            # Outro envio ganhou a corrida pela mesma linha única
            await db.rollback()
            raise ConflictError("Feedback already submitted for this request")

        table = await crud.table.get(db, id=request.table_id)
        await self.hub.broadcast(
            EventEnvelope(
                type=EventType.NEW_FEEDBACK,
                table_id=request.table_id,
                restaurant_id=table.restaurant_id if table else None,
                feedback=as_payload(FeedbackRead, feedback),
            )
        )
        return feedback

    async def _announce(self, db: AsyncSession, event_type: EventType, request: ServiceRequest) -> None:
        table = await crud.table.get(db, id=request.table_id)
        await self.hub.broadcast(
            EventEnvelope(
                type=event_type,
                table_id=request.table_id,
                restaurant_id=table.restaurant_id if table else None,
                status=request.status.value,
                request=as_payload(ServiceRequestRead, request),
            )
        )

# servicebell/crud/crud_request.py
from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from servicebell.db.models.service_request import (
    ACTIVE_STATUSES,
    RequestStatus,
    RequestType,
    ServiceRequest,
)
from servicebell.db.models.table import RestaurantTable


class CRUDServiceRequest:
    async def get(self, db: AsyncSession, id: int) -> Optional[ServiceRequest]:
        return await db.get(ServiceRequest, id)

    async def get_multi(
        self,
        db: AsyncSession,
        *,
        table_id: Optional[int] = None,
        session_id: Optional[str] = None,
        restaurant_id: Optional[int] = None,
        statuses: Optional[Sequence[RequestStatus]] = None,
        skip: int = 0,
        limit: int = 200,
    ) -> List[ServiceRequest]:
        query = select(ServiceRequest)
        if restaurant_id is not None:
            query = query.join(RestaurantTable, RestaurantTable.id == ServiceRequest.table_id).where(
                RestaurantTable.restaurant_id == restaurant_id
            )
        if table_id is not None:
            query = query.where(ServiceRequest.table_id == table_id)
        if session_id is not None:
            query = query.where(ServiceRequest.session_id == session_id)
        if statuses:
            query = query.where(ServiceRequest.status.in_(list(statuses)))
        query = query.order_by(ServiceRequest.created_at.desc(), ServiceRequest.id.desc())
        result = await db.execute(query.offset(skip).limit(limit))
        return list(result.scalars().all())

    async def get_active_duplicate(
        self, db: AsyncSession, *, table_id: int, session_id: str, type: RequestType
    ) -> Optional[ServiceRequest]:
        result = await db.execute(
            select(ServiceRequest).where(
                ServiceRequest.table_id == table_id,
                ServiceRequest.session_id == session_id,
                ServiceRequest.type == type,
                ServiceRequest.status.in_(ACTIVE_STATUSES),
            )
        )
        return result.scalars().first()

    async def get_active_for_session(
        self, db: AsyncSession, *, table_id: int, session_id: str
    ) -> List[ServiceRequest]:
        result = await db.execute(
            select(ServiceRequest)
            .where(
                ServiceRequest.table_id == table_id,
                ServiceRequest.session_id == session_id,
                ServiceRequest.status.in_(ACTIVE_STATUSES),
            )
            .order_by(ServiceRequest.id)
        )
        return list(result.scalars().all())

    async def create(
        self,
        db: AsyncSession,
        *,
        table_id: int,
        session_id: str,
        table_session_id: Optional[int],
        type: RequestType,
        notes: Optional[str] = None,
    ) -> ServiceRequest:
        db_obj = ServiceRequest(
            table_id=table_id,
            session_id=session_id,
            table_session_id=table_session_id,
            type=type,
            status=RequestStatus.PENDING,
            notes=notes,
        )
        db.add(db_obj)
        await db.flush()
        return db_obj

    async def set_status(
        self,
        db: AsyncSession,
        *,
        db_obj: ServiceRequest,
        status: RequestStatus,
        completed_at: Optional[datetime] = None,
    ) -> ServiceRequest:
        db_obj.status = status
        if completed_at is not None:
            db_obj.completed_at = completed_at
        db.add(db_obj)
        await db.flush()
        return db_obj


service_request = CRUDServiceRequest()

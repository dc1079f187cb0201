# servicebell/crud/crud_feedback.py
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from servicebell.db.models.feedback import Feedback
from servicebell.db.models.service_request import ServiceRequest
from servicebell.db.models.table import RestaurantTable


class CRUDFeedback:
    async def get_by_request(self, db: AsyncSession, *, request_id: int) -> Optional[Feedback]:
        result = await db.execute(select(Feedback).where(Feedback.request_id == request_id))
        return result.scalars().first()

    async def get_multi_by_restaurant(
        self, db: AsyncSession, *, restaurant_id: int, request_id: Optional[int] = None
    ) -> List[Feedback]:
        query = (
            select(Feedback)
            .join(ServiceRequest, ServiceRequest.id == Feedback.request_id)
            .join(RestaurantTable, RestaurantTable.id == ServiceRequest.table_id)
            .where(RestaurantTable.restaurant_id == restaurant_id)
        )
        if request_id is not None:
            query = query.where(Feedback.request_id == request_id)
        result = await db.execute(query.order_by(Feedback.id.desc()))
        return list(result.scalars().all())

    async def create(
        self, db: AsyncSession, *, request_id: int, rating: int, comment: Optional[str] = None
    ) -> Feedback:
        db_obj = Feedback(request_id=request_id, rating=rating, comment=comment)
        db.add(db_obj)
        await db.flush()
        return db_obj


feedback = CRUDFeedback()

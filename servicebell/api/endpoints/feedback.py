# servicebell/api/endpoints/feedback.py
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from servicebell import crud
from servicebell.api import deps
from servicebell.core.exceptions import NotFoundError
from servicebell.db.models.user import User
from servicebell.schemas.feedback import FeedbackCreate, FeedbackRead
from servicebell.services.request_service import RequestService

router = APIRouter()


@router.post("", response_model=FeedbackRead)
async def submit_feedback(
    feedback_in: FeedbackCreate,
    db: AsyncSession = Depends(deps.get_db),
    service: RequestService = Depends(deps.get_request_service),
) -> Any:
    """
    Avaliação (1 a 5) de um chamado concluído. Uma por chamado.
    """
    return await service.submit_feedback(db, feedback_in.request_id, feedback_in.rating, feedback_in.comment)


@router.get("", response_model=List[FeedbackRead])
async def list_feedback(
    restaurant_id: int = Query(..., alias="restaurantId"),
    request_id: Optional[int] = Query(None, alias="requestId"),
    db: AsyncSession = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    if await crud.restaurant.get_accessible(db, id=restaurant_id, user=current_user) is None:
        raise NotFoundError("Restaurant not found")
    return await crud.feedback.get_multi_by_restaurant(db, restaurant_id=restaurant_id, request_id=request_id)

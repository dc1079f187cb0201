# servicebell/api/endpoints/requests.py
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from servicebell import crud
from servicebell.api import deps
from servicebell.core.exceptions import NotFoundError, UnauthorizedError, ValidationFailedError
from servicebell.db.models.service_request import RequestStatus
from servicebell.db.models.user import User
from servicebell.schemas.service_request import ServiceRequestCreate, ServiceRequestRead, ServiceRequestUpdate
from servicebell.services.request_service import RequestService
from servicebell.services.session_manager import SessionManager

router = APIRouter()


@router.get("", response_model=List[ServiceRequestRead])
async def list_requests(
    table_id: Optional[int] = Query(None, alias="tableId"),
    session_id: Optional[str] = Query(None, alias="sessionId"),
    restaurant_id: Optional[int] = Query(None, alias="restaurantId"),
    status: Optional[List[RequestStatus]] = Query(None),
    db: AsyncSession = Depends(deps.get_db),
    current_user: Optional[User] = Depends(deps.get_optional_user),
    service: RequestService = Depends(deps.get_request_service),
) -> Any:
    """
    Com tableId + sessionId: chamados da sessão (público, usado pela mesa).
    Sem sessionId: painel da equipe, restrito ao restaurante do usuário.
    """
    if table_id is not None and session_id:
        return await service.list_requests(db, table_id=table_id, session_id=session_id, statuses=status)

    if current_user is None:
        raise UnauthorizedError("Not authenticated")
    if restaurant_id is None:
        if table_id is None:
            raise ValidationFailedError("restaurantId or tableId is required")
        table = await crud.table.get(db, id=table_id)
        if table is None:
            raise NotFoundError("Table not found")
        restaurant_id = table.restaurant_id
    if await crud.restaurant.get_accessible(db, id=restaurant_id, user=current_user) is None:
        raise NotFoundError("Restaurant not found")
    return await service.list_requests(db, restaurant_id=restaurant_id, table_id=table_id, statuses=status)


@router.post("", response_model=ServiceRequestRead)
async def create_request(
    request: Request,
    request_in: ServiceRequestCreate,
    db: AsyncSession = Depends(deps.get_db),
    sessions: SessionManager = Depends(deps.get_session_manager),
    service: RequestService = Depends(deps.get_request_service),
) -> Any:
    """
    Cria um chamado. A sessão da mesa é revalidada aqui a cada chamada,
    nunca confiando na validade que o cliente tem em cache.
    """
    validated = await sessions.validate_session_for_request(db, request_in.table_id, request_in.session_id)
    request.state.table_session = validated
    return await service.create_request(db, validated, request_in.type, request_in.notes)


@router.patch("/{request_id}", response_model=ServiceRequestRead)
async def update_request(
    request_id: int,
    update_in: ServiceRequestUpdate,
    db: AsyncSession = Depends(deps.get_db),
    current_user: Optional[User] = Depends(deps.get_optional_user),
    sessions: SessionManager = Depends(deps.get_session_manager),
    service: RequestService = Depends(deps.get_request_service),
) -> Any:
    """
    A equipe avança o status; o cliente, sem login, só pode cancelar
    (status "cleared") um chamado pendente da própria sessão.
    """
    service_request = await crud.service_request.get(db, id=request_id)
    if not service_request:
        raise NotFoundError("Request not found")

    if current_user is not None:
        table = await crud.table.get(db, id=service_request.table_id)
        if table is None or await crud.restaurant.get_accessible(db, id=table.restaurant_id, user=current_user) is None:
            raise NotFoundError("Request not found")
        return await service.advance_request(db, request_id, update_in.status)

    if update_in.session_id is None:
        raise UnauthorizedError("Not authenticated")
    if update_in.status != RequestStatus.CLEARED:
        raise ValidationFailedError("Customers can only cancel requests")
    validated = await sessions.validate_session_for_request(db, service_request.table_id, update_in.session_id)
    return await service.cancel_request(db, request_id, validated)

# servicebell/api/endpoints/tables.py
import logging
from typing import Any, List, Optional

from fastapi import APIRouter, Body, Depends, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from servicebell import crud
from servicebell.api import deps
from servicebell.core.config import settings
from servicebell.core.exceptions import NotFoundError, UnauthorizedError
from servicebell.db.models.restaurant import Restaurant
from servicebell.db.models.table import RestaurantTable
from servicebell.db.models.user import User
from servicebell.schemas.events import EventEnvelope, EventType, as_payload
from servicebell.schemas.table import TableCreate, TableRead, TableUpdate
from servicebell.schemas.table_session import (
    SessionEndRequest,
    SessionEndResult,
    TableSessionRead,
    TableVerification,
)
from servicebell.services import qrcode_service
from servicebell.services.broadcast import BroadcastHub
from servicebell.services.session_manager import SessionManager

logger = logging.getLogger(__name__)

router = APIRouter()


def _public_base_url(request: Request) -> str:
    return settings.PUBLIC_BASE_URL or str(request.base_url)


@router.get("", response_model=List[TableRead])
async def list_tables(
    db: AsyncSession = Depends(deps.get_db),
    restaurant: Restaurant = Depends(deps.get_accessible_restaurant),
) -> Any:
    return await crud.table.get_multi_by_restaurant(db, restaurant_id=restaurant.id)


@router.post("", response_model=TableRead, status_code=status.HTTP_201_CREATED)
async def create_table(
    *,
    request: Request,
    db: AsyncSession = Depends(deps.get_db),
    table_in: TableCreate,
    restaurant: Restaurant = Depends(deps.get_accessible_restaurant),
) -> Any:
    """
    Cria uma mesa e gera o QR Code que aponta para a página de chamados dela.
    """
    position = table_in.position.model_dump(mode="json") if table_in.position else None
    table = await crud.table.create(db, restaurant_id=restaurant.id, name=table_in.name, position=position)

    # O QR Code depende do ID, então vem depois do primeiro flush
    url = qrcode_service.table_url(_public_base_url(request), restaurant.id, table.id)
    table = await crud.table.update(db, db_obj=table, update_data={"qr_code": qrcode_service.render_svg(url)})
    await db.commit()
    logger.info("Mesa %s criada no restaurante %s (QR para %s)", table.id, restaurant.id, url)
    return table


@router.patch("/{table_id}", response_model=TableRead)
async def update_table(
    *,
    db: AsyncSession = Depends(deps.get_db),
    table_in: TableUpdate,
    table: RestaurantTable = Depends(deps.get_restaurant_table),
    hub: BroadcastHub = Depends(deps.get_hub),
) -> Any:
    """
    Atualiza nome e/ou posição da mesa na planta do salão.
    """
    update_data = table_in.model_dump(mode="json", exclude_unset=True, exclude_none=True)
    table = await crud.table.update(db, db_obj=table, update_data=update_data)
    await db.commit()
    await hub.broadcast(
        EventEnvelope(
            type=EventType.UPDATE_TABLE,
            table_id=table.id,
            restaurant_id=table.restaurant_id,
            table=as_payload(TableRead, table),
        )
    )
    return table


@router.delete("/{table_id}", response_model=TableRead)
async def delete_table(
    db: AsyncSession = Depends(deps.get_db),
    table: RestaurantTable = Depends(deps.get_restaurant_table),
    hub: BroadcastHub = Depends(deps.get_hub),
) -> Any:
    """
    Remove a mesa junto com as sessões e os chamados dela.
    """
    removed = TableRead.model_validate(table)
    await crud.table.remove(db, db_obj=table)
    await db.commit()
    logger.info("Mesa %s removida do restaurante %s", removed.id, removed.restaurant_id)
    await hub.broadcast(
        EventEnvelope(type=EventType.DELETE_TABLE, table_id=removed.id, restaurant_id=removed.restaurant_id)
    )
    return removed


@router.get(
    "/{table_id}/qrcode",
    responses={200: {"content": {"image/svg+xml": {}}}},
    response_class=Response,
)
async def get_table_qrcode(table: RestaurantTable = Depends(deps.get_restaurant_table)) -> Response:
    if not table.qr_code:
        raise NotFoundError("QR code not found")
    return Response(content=table.qr_code, media_type="image/svg+xml")


@router.get("/{table_id}/sessions", response_model=List[TableSessionRead])
async def list_table_sessions(
    db: AsyncSession = Depends(deps.get_db),
    table: RestaurantTable = Depends(deps.get_restaurant_table),
) -> Any:
    """
    Histórico de sessões da mesa, com motivo de encerramento.
    """
    return await crud.table_session.get_multi_by_table(db, table_id=table.id)


# --- Rotas públicas usadas pelo celular do cliente ---


@router.get("/{table_id}/verify", response_model=TableVerification, response_model_exclude_none=True)
async def verify_table(
    restaurant_id: int,
    table_id: int,
    db: AsyncSession = Depends(deps.get_db),
    sessions: SessionManager = Depends(deps.get_session_manager),
) -> Any:
    return await sessions.verify_table(db, restaurant_id, table_id)


@router.post("/{table_id}/sessions", response_model=TableSessionRead)
async def create_session(
    restaurant_id: int,
    table_id: int,
    reuse_active: bool = Body(False, alias="reuseActive", embed=True),
    db: AsyncSession = Depends(deps.get_db),
    sessions: SessionManager = Depends(deps.get_session_manager),
) -> Any:
    """
    Abre uma nova sessão na mesa, fechando a anterior.

    Com reuseActive=true uma sessão ainda válida é devolvida sem ser trocada.
    """
    await _get_public_table(db, restaurant_id, table_id)
    return await sessions.create_session(db, table_id, reuse_active=reuse_active)


@router.post("/{table_id}/sessions/end", response_model=SessionEndResult)
async def end_session(
    restaurant_id: int,
    table_id: int,
    body: Optional[SessionEndRequest] = None,
    db: AsyncSession = Depends(deps.get_db),
    current_user: Optional[User] = Depends(deps.get_optional_user),
    sessions: SessionManager = Depends(deps.get_session_manager),
) -> Any:
    """
    Encerra a sessão da mesa e limpa os chamados dela que ainda estavam abertos.

    O cliente informa o próprio sessionId; a equipe pode encerrar a sessão
    aberta sem conhecer o token.
    """
    session_id = body.session_id if body else None
    if session_id:
        await _get_public_table(db, restaurant_id, table_id)
        count = await sessions.end_session(db, table_id, session_id)
    else:
        if current_user is None:
            raise UnauthorizedError("Not authenticated")
        restaurant = await crud.restaurant.get_accessible(db, id=restaurant_id, user=current_user)
        if restaurant is None:
            raise NotFoundError("Restaurant not found")
        await _get_public_table(db, restaurant_id, table_id)
        count = await sessions.end_active_session(db, table_id)
    return SessionEndResult(updated_requests_count=count)


async def _get_public_table(db: AsyncSession, restaurant_id: int, table_id: int) -> RestaurantTable:
    table = await crud.table.get_in_restaurant(db, restaurant_id=restaurant_id, table_id=table_id)
    if table is None:
        raise NotFoundError("Table not found")
    return table

# servicebell/api/deps.py
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from servicebell import crud
from servicebell.core.config import settings
from servicebell.core.exceptions import ForbiddenError, NotFoundError, UnauthorizedError
from servicebell.core.security import decode_token
from servicebell.database import get_db
from servicebell.db.models.restaurant import Restaurant
from servicebell.db.models.table import RestaurantTable
from servicebell.db.models.user import User, UserRole
from servicebell.services.broadcast import BroadcastHub
from servicebell.services.request_service import RequestService
from servicebell.services.session_manager import SessionManager

# auto_error=False: várias rotas são públicas para o cliente da mesa
reusable_oauth2 = OAuth2PasswordBearer(tokenUrl=f"{settings.API_STR}/login", auto_error=False)


def get_hub(request: Request) -> BroadcastHub:
    return request.app.state.hub


def get_session_manager(request: Request) -> SessionManager:
    return request.app.state.session_manager


def get_request_service(request: Request) -> RequestService:
    return request.app.state.request_service


async def get_optional_user(
    db: AsyncSession = Depends(get_db),
    token: Optional[str] = Depends(reusable_oauth2),
) -> Optional[User]:
    if not token:
        return None
    payload = decode_token(token)
    if payload is None or payload.get("type") != "access":
        raise UnauthorizedError("Could not validate credentials")
    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise UnauthorizedError("Could not validate credentials")
    user = await crud.user.get(db, id=user_id)
    if user is None:
        raise UnauthorizedError("Could not validate credentials")
    return user


async def get_current_user(current_user: Optional[User] = Depends(get_optional_user)) -> User:
    if current_user is None:
        raise UnauthorizedError("Not authenticated")
    return current_user


async def get_current_owner(current_user: User = Depends(get_current_user)) -> User:
    if current_user.role != UserRole.OWNER:
        raise ForbiddenError("Owner access required")
    return current_user


async def get_accessible_restaurant(
    restaurant_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Restaurant:
    """Restaurante do caminho, se o usuário logado for dono ou equipe dele."""
    restaurant = await crud.restaurant.get_accessible(db, id=restaurant_id, user=current_user)
    if restaurant is None:
        raise NotFoundError("Restaurant not found")
    return restaurant


async def get_restaurant_table(
    table_id: int,
    restaurant: Restaurant = Depends(get_accessible_restaurant),
    db: AsyncSession = Depends(get_db),
) -> RestaurantTable:
    table = await crud.table.get_in_restaurant(db, restaurant_id=restaurant.id, table_id=table_id)
    if table is None:
        raise NotFoundError("Table not found")
    return table

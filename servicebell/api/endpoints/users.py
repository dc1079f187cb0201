# servicebell/api/endpoints/users.py
import logging
from typing import Any, List

from fastapi import APIRouter, Depends, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from servicebell import crud
from servicebell.api import deps
from servicebell.core.exceptions import ConflictError, NotFoundError, ValidationFailedError
from servicebell.db.models.user import User, UserRole
from servicebell.schemas.user import StaffCreate, UserRead

logger = logging.getLogger(__name__)

router = APIRouter()


async def _owned_restaurant_id(db: AsyncSession, owner: User) -> int:
    # A interface atual assume um restaurante por dono
    restaurants = await crud.restaurant.get_for_user(db, user=owner)
    if not restaurants:
        raise ValidationFailedError("Create a restaurant first")
    return restaurants[0].id


@router.get("", response_model=List[UserRead])
async def list_staff(
    db: AsyncSession = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_owner),
) -> Any:
    """
    Lista a equipe do restaurante do dono logado.
    """
    restaurant_id = await _owned_restaurant_id(db, current_user)
    return await crud.user.get_staff(db, restaurant_id=restaurant_id)


@router.post("", response_model=UserRead, status_code=status.HTTP_201_CREATED)
async def create_staff(
    *,
    db: AsyncSession = Depends(deps.get_db),
    user_in: StaffCreate,
    current_user: User = Depends(deps.get_current_owner),
) -> Any:
    if await crud.user.get_by_username(db, username=user_in.username):
        raise ConflictError("Username already exists")
    restaurant_id = await _owned_restaurant_id(db, current_user)
    try:
        staff = await crud.user.create(
            db,
            username=user_in.username,
            password=user_in.password,
            email=user_in.email,
            role=UserRole.STAFF,
            restaurant_id=restaurant_id,
        )
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Username already exists")
    logger.info("Dono %s criou o usuário de equipe %s", current_user.username, staff.username)
    return staff


@router.delete("/{user_id}", response_model=UserRead)
async def delete_staff(
    user_id: int,
    db: AsyncSession = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_owner),
) -> Any:
    restaurant_id = await _owned_restaurant_id(db, current_user)
    staff = await crud.user.get(db, id=user_id)
    if not staff or staff.role != UserRole.STAFF or staff.restaurant_id != restaurant_id:
        raise NotFoundError("User not found")
    await crud.user.remove(db, db_obj=staff)
    await db.commit()
    logger.info("Dono %s removeu o usuário %s", current_user.username, staff.username)
    return staff

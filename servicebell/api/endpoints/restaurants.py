# servicebell/api/endpoints/restaurants.py
from typing import Any, List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from servicebell import crud
from servicebell.api import deps
from servicebell.db.models.restaurant import Restaurant
from servicebell.db.models.user import User
from servicebell.schemas.restaurant import RestaurantCreate, RestaurantRead, RestaurantUpdate

router = APIRouter()


@router.get("", response_model=List[RestaurantRead])
async def list_restaurants(
    db: AsyncSession = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    return await crud.restaurant.get_for_user(db, user=current_user)


@router.post("", response_model=RestaurantRead, status_code=status.HTTP_201_CREATED)
async def create_restaurant(
    *,
    db: AsyncSession = Depends(deps.get_db),
    restaurant_in: RestaurantCreate,
    current_user: User = Depends(deps.get_current_owner),
) -> Any:
    restaurant = await crud.restaurant.create(db, obj_in=restaurant_in, owner_id=current_user.id)
    await db.commit()
    return restaurant


@router.get("/{restaurant_id}", response_model=RestaurantRead)
async def read_restaurant(restaurant: Restaurant = Depends(deps.get_accessible_restaurant)) -> Any:
    return restaurant


@router.patch("/{restaurant_id}", response_model=RestaurantRead)
async def update_restaurant(
    *,
    db: AsyncSession = Depends(deps.get_db),
    restaurant_in: RestaurantUpdate,
    restaurant: Restaurant = Depends(deps.get_accessible_restaurant),
    current_user: User = Depends(deps.get_current_owner),
) -> Any:
    """
    Atualiza nome e dados de contato do restaurante.
    """
    restaurant = await crud.restaurant.update(db, db_obj=restaurant, obj_in=restaurant_in)
    await db.commit()
    return restaurant

# servicebell/crud/crud_restaurant.py
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from servicebell.db.models.restaurant import Restaurant
from servicebell.db.models.user import User, UserRole
from servicebell.schemas.restaurant import RestaurantCreate, RestaurantUpdate


class CRUDRestaurant:
    async def get(self, db: AsyncSession, id: int) -> Optional[Restaurant]:
        return await db.get(Restaurant, id)

    async def get_for_user(self, db: AsyncSession, *, user: User) -> List[Restaurant]:
        """Restaurantes que o usuário pode ver: os próprios ou o do seu emprego."""
        if user.role == UserRole.STAFF:
            query = select(Restaurant).where(Restaurant.id == user.restaurant_id)
        else:
            query = select(Restaurant).where(Restaurant.owner_id == user.id)
        result = await db.execute(query.order_by(Restaurant.id))
        return list(result.scalars().all())

    async def get_accessible(self, db: AsyncSession, *, id: int, user: User) -> Optional[Restaurant]:
        restaurant = await self.get(db, id=id)
        if restaurant is None:
            return None
        if restaurant.owner_id == user.id:
            return restaurant
        if user.role == UserRole.STAFF and user.restaurant_id == restaurant.id:
            return restaurant
        return None

    async def create(self, db: AsyncSession, *, obj_in: RestaurantCreate, owner_id: int) -> Restaurant:
        db_obj = Restaurant(
            name=obj_in.name,
            address=obj_in.address,
            phone=obj_in.phone,
            owner_id=owner_id,
        )
        db.add(db_obj)
        await db.flush()
        return db_obj

    async def update(
        self, db: AsyncSession, *, db_obj: Restaurant, obj_in: Union[RestaurantUpdate, Dict[str, Any]]
    ) -> Restaurant:
        update_data = obj_in if isinstance(obj_in, dict) else obj_in.model_dump(exclude_unset=True)
        for field in update_data:
            if hasattr(db_obj, field):
                setattr(db_obj, field, update_data[field])
        db.add(db_obj)
        await db.flush()
        return db_obj


restaurant = CRUDRestaurant()

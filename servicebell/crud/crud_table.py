# servicebell/crud/crud_table.py
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from servicebell.db.models.table import DEFAULT_POSITION, RestaurantTable


class CRUDTable:
    async def get(self, db: AsyncSession, id: int) -> Optional[RestaurantTable]:
        return await db.get(RestaurantTable, id)

    async def get_in_restaurant(
        self, db: AsyncSession, *, restaurant_id: int, table_id: int
    ) -> Optional[RestaurantTable]:
        result = await db.execute(
            select(RestaurantTable).where(
                RestaurantTable.id == table_id, RestaurantTable.restaurant_id == restaurant_id
            )
        )
        return result.scalars().first()

    async def get_multi_by_restaurant(self, db: AsyncSession, *, restaurant_id: int) -> List[RestaurantTable]:
        result = await db.execute(
            select(RestaurantTable)
            .where(RestaurantTable.restaurant_id == restaurant_id)
            .order_by(RestaurantTable.id)
        )
        return list(result.scalars().all())

    async def lock(self, db: AsyncSession, *, table_id: int) -> Optional[RestaurantTable]:
        """SELECT ... FOR UPDATE na mesa; no SQLite o FOR UPDATE é ignorado."""
        result = await db.execute(
            select(RestaurantTable).where(RestaurantTable.id == table_id).with_for_update()
        )
        return result.scalars().first()

    async def create(
        self, db: AsyncSession, *, restaurant_id: int, name: str, position: Optional[Dict[str, Any]] = None
    ) -> RestaurantTable:
        db_obj = RestaurantTable(
            restaurant_id=restaurant_id,
            name=name,
            qr_code="",  # preenchido depois que a mesa tem ID
            position=position or dict(DEFAULT_POSITION),
        )
        db.add(db_obj)
        await db.flush()
        return db_obj

    async def update(self, db: AsyncSession, *, db_obj: RestaurantTable, update_data: Dict[str, Any]) -> RestaurantTable:
        for field, value in update_data.items():
            if hasattr(db_obj, field):
                setattr(db_obj, field, value)
        db.add(db_obj)
        await db.flush()
        return db_obj

    async def remove(self, db: AsyncSession, *, db_obj: RestaurantTable) -> RestaurantTable:
        # Sessões e chamados da mesa saem junto (cascade)
        await db.delete(db_obj)
        await db.flush()
        return db_obj


table = CRUDTable()

# servicebell/crud/crud_table_session.py
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from servicebell.db.models.table_session import TableSession


class CRUDTableSession:
    async def get(self, db: AsyncSession, id: int) -> Optional[TableSession]:
        return await db.get(TableSession, id)

    async def get_by_token(self, db: AsyncSession, *, session_id: str) -> Optional[TableSession]:
        result = await db.execute(select(TableSession).where(TableSession.session_id == session_id))
        return result.scalars().first()

    async def get_active_for_table(self, db: AsyncSession, *, table_id: int) -> Optional[TableSession]:
        """Sessão aberta (ended_at IS NULL) mais recente da mesa."""
        result = await db.execute(
            select(TableSession)
            .where(TableSession.table_id == table_id, TableSession.ended_at.is_(None))
            .order_by(TableSession.started_at.desc(), TableSession.id.desc())
        )
        return result.scalars().first()

    async def get_active_by_token(
        self, db: AsyncSession, *, table_id: int, session_id: str
    ) -> Optional[TableSession]:
        result = await db.execute(
            select(TableSession)
            .where(
                TableSession.table_id == table_id,
                TableSession.session_id == session_id,
                TableSession.ended_at.is_(None),
            )
            .order_by(TableSession.started_at.desc(), TableSession.id.desc())
        )
        return result.scalars().first()

    async def get_multi_by_table(self, db: AsyncSession, *, table_id: int) -> List[TableSession]:
        result = await db.execute(
            select(TableSession).where(TableSession.table_id == table_id).order_by(TableSession.id)
        )
        return list(result.scalars().all())

    async def create(self, db: AsyncSession, *, table_id: int, session_id: str, started_at: datetime) -> TableSession:
        db_obj = TableSession(table_id=table_id, session_id=session_id, started_at=started_at)
        db.add(db_obj)
        await db.flush()
        return db_obj

    async def close(self, db: AsyncSession, *, db_obj: TableSession, ended_at: datetime, reason: str) -> TableSession:
        db_obj.ended_at = ended_at
        db_obj.end_reason = reason
        db.add(db_obj)
        await db.flush()
        return db_obj

    async def close_active_for_table(
        self, db: AsyncSession, *, table_id: int, ended_at: datetime, reason: str
    ) -> int:
        """Fecha todas as sessões abertas da mesa. Retorna quantas foram fechadas."""
        result = await db.execute(
            update(TableSession)
            .where(TableSession.table_id == table_id, TableSession.ended_at.is_(None))
            .values(ended_at=ended_at, end_reason=reason)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount or 0


table_session = CRUDTableSession()

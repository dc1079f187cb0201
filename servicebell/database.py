# servicebell/database.py
from typing import AsyncIterator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from servicebell.core.config import settings


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    # ON DELETE CASCADE só vale no SQLite com a pragma ligada
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(url: str = settings.DATABASE_URL):
    # SQLite não compartilha conexões entre event loops; sem pool cada uso abre a sua
    options = {"poolclass": NullPool} if url.startswith("sqlite") else {"pool_pre_ping": True}
    engine = create_async_engine(url, echo=settings.ENVIRONMENT == "development" and settings.LOG_LEVEL == "DEBUG", **options)
    if url.startswith("sqlite"):
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
    return engine


# Define o motor de banco de dados assíncrono
engine = build_engine()

# Cria uma fábrica de sessões assíncronas
AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    autoflush=False,
    expire_on_commit=False,
)


# Dependência para obter uma sessão de banco de dados
async def get_db() -> AsyncIterator[AsyncSession]:
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise

import re

from sqlalchemy import Column, DateTime, Integer
from sqlalchemy.orm import declarative_base, declared_attr

from servicebell.core.timeutils import utcnow


class _Base:
    """
    Base class which provides automated table name
    and surrogate primary key column.
    """

    @declared_attr
    def __tablename__(cls) -> str:
        # Ex: TableSession -> table_sessions
        return re.sub(r"(?<!^)(?=[A-Z])", "_", cls.__name__).lower() + "s"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    # Preenchidos no Python para não expirarem após o flush na sessão assíncrona
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=utcnow)


Base = declarative_base(cls=_Base)

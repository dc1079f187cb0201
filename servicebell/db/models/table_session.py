import enum

from sqlalchemy import Column, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship

from servicebell.core.timeutils import utcnow
from servicebell.db.base_class import Base


class SessionEndReason(str, enum.Enum):
    EXPIRED = "expired"
    REPLACED = "replaced"
    ADMIN_ENDED = "admin_ended"


class TableSession(Base):
    table_id = Column(ForeignKey("tables.id", ondelete="CASCADE"), nullable=False, index=True)
    session_id = Column(String, nullable=False, unique=True, index=True)  # Token público da sessão
    started_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    ended_at = Column(DateTime(timezone=True), nullable=True)  # NULL = sessão ativa
    end_reason = Column(String, nullable=True)

    table = relationship("RestaurantTable", back_populates="sessions")

import enum

from sqlalchemy import Column, DateTime, Enum as SAEnum, ForeignKey, Index, String, Text, text
from sqlalchemy.orm import relationship

from servicebell.db.base_class import Base


class RequestType(str, enum.Enum):
    WAITER = "waiter"
    WATER = "water"
    CHECK = "check"
    OTHER = "other"


class RequestStatus(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CLEARED = "cleared"


ACTIVE_STATUSES = (RequestStatus.PENDING, RequestStatus.IN_PROGRESS)

# Chamado ativo repetido na mesma sessão (texto livre "other" fica de fora)
ACTIVE_DUPLICATE_CLAUSE = "status IN ('pending', 'in_progress') AND type <> 'other'"


class ServiceRequest(Base):
    __tablename__ = "requests"
    __table_args__ = (
        Index(
            "uq_requests_active_type",
            "table_id",
            "session_id",
            "type",
            unique=True,
            sqlite_where=text(ACTIVE_DUPLICATE_CLAUSE),
            postgresql_where=text(ACTIVE_DUPLICATE_CLAUSE),
        ),
    )

    table_id = Column(ForeignKey("tables.id", ondelete="CASCADE"), nullable=False, index=True)
    # Token da sessão ativa no momento da criação (cópia por valor)
    session_id = Column(String, nullable=False, index=True)
    # Vínculo durável com a linha de TableSession
    table_session_id = Column(ForeignKey("table_sessions.id", ondelete="SET NULL"), nullable=True, index=True)
    type = Column(
        SAEnum(RequestType, values_callable=lambda e: [m.value for m in e], native_enum=False), nullable=False
    )
    status = Column(
        SAEnum(RequestStatus, values_callable=lambda e: [m.value for m in e], native_enum=False),
        default=RequestStatus.PENDING,
        nullable=False,
        index=True,
    )
    notes = Column(Text, nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    table = relationship("RestaurantTable", back_populates="requests")
    feedback = relationship(
        "Feedback", back_populates="request", uselist=False, cascade="all, delete-orphan", passive_deletes=True
    )

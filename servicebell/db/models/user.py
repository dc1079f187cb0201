import enum

from sqlalchemy import Column, Enum as SAEnum, Integer, String
from sqlalchemy.orm import relationship

from servicebell.db.base_class import Base


class UserRole(str, enum.Enum):
    OWNER = "owner"
    STAFF = "staff"


class User(Base):
    username = Column(String, nullable=False, unique=True, index=True)
    hashed_password = Column(String, nullable=False)
    email = Column(String, nullable=True)
    role = Column(
        SAEnum(UserRole, values_callable=lambda e: [m.value for m in e], native_enum=False),
        default=UserRole.OWNER,
        nullable=False,
    )
    # Restaurante onde um membro da equipe trabalha (donos usam Restaurant.owner_id).
    # Sem FK para não criar um ciclo users <-> restaurants.
    restaurant_id = Column(Integer, nullable=True, index=True)

    restaurants = relationship("Restaurant", back_populates="owner", cascade="all, delete-orphan")

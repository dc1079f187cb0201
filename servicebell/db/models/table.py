import enum

from sqlalchemy import JSON, Column, ForeignKey, String, Text
from sqlalchemy.orm import relationship

from servicebell.db.base_class import Base


class TableShape(str, enum.Enum):
    SQUARE = "square"
    ROUND = "round"


DEFAULT_POSITION = {"x": 0, "y": 0, "width": 100, "height": 100, "shape": TableShape.SQUARE.value}


class RestaurantTable(Base):
    __tablename__ = "tables"

    restaurant_id = Column(ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)  # Ex: "Mesa 1", "Varanda 3"
    qr_code = Column(Text, nullable=False, default="")  # Marcação SVG do QR Code
    position = Column(JSON, nullable=False, default=lambda: dict(DEFAULT_POSITION))

    restaurant = relationship("Restaurant", back_populates="tables")
    sessions = relationship(
        "TableSession", back_populates="table", cascade="all, delete-orphan", passive_deletes=True
    )
    requests = relationship(
        "ServiceRequest", back_populates="table", cascade="all, delete-orphan", passive_deletes=True
    )

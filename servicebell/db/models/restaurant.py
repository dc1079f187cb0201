from sqlalchemy import Column, ForeignKey, String
from sqlalchemy.orm import relationship

from servicebell.db.base_class import Base


class Restaurant(Base):
    name = Column(String, nullable=False)
    owner_id = Column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    address = Column(String, nullable=True)
    phone = Column(String, nullable=True)

    owner = relationship("User", back_populates="restaurants")
    tables = relationship(
        "RestaurantTable", back_populates="restaurant", cascade="all, delete-orphan", passive_deletes=True
    )

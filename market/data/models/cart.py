# market/data/models/cart.py
from sqlalchemy import Column, DateTime, Integer
from sqlalchemy.orm import relationship

from market.data.database import Base, utcnow


class CartModel(Base):
    __tablename__ = "carts"

    id = Column(Integer, primary_key=True)
    # one cart per user, the unique index makes get-or-create race free
    user_id = Column(Integer, nullable=False, unique=True, index=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    items = relationship(
        "CartItemModel",
        back_populates="cart",
        cascade="all, delete-orphan",
    )

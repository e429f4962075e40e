# market/data/models/cart_item.py
from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from market.data.database import Base, utcnow


class CartItemModel(Base):
    __tablename__ = "cart_items"

    id = Column(Integer, primary_key=True)
    cart_id = Column(Integer, ForeignKey("carts.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)

    quantity = Column(Integer, nullable=False)

    # variant; "" means "not chosen". NOT NULL so the unique constraint
    # below also catches lines without a size/color (NULLs never conflict)
    size = Column(String(50), nullable=False, default="", server_default="")
    color = Column(String(50), nullable=False, default="", server_default="")

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    cart = relationship("CartModel", back_populates="items")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_cart_items_quantity"),
        UniqueConstraint("cart_id", "product_id", "size", "color", name="uq_cart_items_line"),
    )

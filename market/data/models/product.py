# market/data/models/product.py
from sqlalchemy import CheckConstraint, Column, DateTime, Integer, Numeric, String, Text

from market.data.database import Base, utcnow


class ProductModel(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    image_url = Column(String(500), nullable=True)

    # only ever decremented by the checkout transaction
    stock = Column(Integer, nullable=False, default=0)
    status = Column(String(50), nullable=False, default="active")

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_products_price"),
        CheckConstraint("stock >= 0", name="ck_products_stock"),
    )

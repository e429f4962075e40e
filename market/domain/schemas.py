# market/domain/schemas.py
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from market.data.models.order import OrderStatus, PaymentStatus


class AddToCartIn(BaseModel):
    """Adding a product (optionally a size/color variant) to the cart."""

    product_id: int = Field(..., gt=0, description="product id (> 0)")
    quantity: int = Field(..., gt=0, description="units to add (> 0)")
    size: str = Field("", max_length=50)
    color: str = Field("", max_length=50)


class UpdateCartItemIn(BaseModel):
    quantity: int = Field(..., gt=0)
    size: Optional[str] = Field(None, max_length=50)


class CartItemOut(BaseModel):
    id: int
    user_id: int
    product_id: int
    quantity: int
    size: str
    color: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CartLineOut(CartItemOut):
    """Cart line joined with the product's current title, price and image."""

    product_title: Optional[str] = None
    product_price: Optional[Decimal] = None
    product_image: Optional[str] = None


class CartOut(BaseModel):
    items: List[CartLineOut]
    total: Decimal


class OrderCreate(BaseModel):
    payment_method: str = Field(..., min_length=1, max_length=50)
    delivery_address: str = Field(..., min_length=1)


class OrderItemOut(BaseModel):
    id: int
    order_id: int
    product_id: int
    quantity: int
    size: str
    color: str
    unit_price: Decimal
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class OrderOut(BaseModel):
    id: int
    user_id: int
    total_amount: Decimal
    status: OrderStatus
    payment_method: str
    payment_status: PaymentStatus
    delivery_address: str
    created_at: datetime
    updated_at: datetime
    items: List[OrderItemOut]

    model_config = ConfigDict(from_attributes=True)


class PaginationMeta(BaseModel):
    page: int
    page_size: int
    total_items: int
    total_pages: int

    @classmethod
    def build(cls, page: int, page_size: int, total_items: int) -> "PaginationMeta":
        total_pages = total_items // page_size
        if total_items % page_size:
            total_pages += 1
        return cls(
            page=page,
            page_size=page_size,
            total_items=total_items,
            total_pages=total_pages,
        )


class OrdersPage(BaseModel):
    data: List[OrderOut]
    pagination: PaginationMeta


class ErrorOut(BaseModel):
    code: str
    message: str
    details: Optional[dict] = None

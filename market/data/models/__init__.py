# all models imported here so SQLAlchemy registers them in Base.metadata

from market.data.models.product import ProductModel
from market.data.models.cart import CartModel
from market.data.models.cart_item import CartItemModel
from market.data.models.order import OrderModel, OrderStatus, PaymentStatus
from market.data.models.order_item import OrderItemModel

__all__ = [
    "ProductModel",
    "CartModel",
    "CartItemModel",
    "OrderModel",
    "OrderItemModel",
    "OrderStatus",
    "PaymentStatus",
]

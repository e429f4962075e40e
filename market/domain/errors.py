# market/domain/errors.py
"""
Typed application errors.

Every error carries a stable ``code`` and the HTTP status the API layer
answers with. The four checkout failures additionally expose ``kind``.
"""
import enum


class ErrorKind(str, enum.Enum):
    EMPTY_CART = "EmptyCart"
    INSUFFICIENT_STOCK = "InsufficientStock"
    PRODUCT_NOT_FOUND = "ProductNotFound"
    INTERNAL = "Internal"


class AppError(Exception):
    code = "INTERNAL_ERROR"
    http_status = 500
    kind: ErrorKind | None = None

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def details(self) -> dict:
        return {}


class EmptyCartError(AppError):
    code = "EMPTY_CART"
    http_status = 400
    kind = ErrorKind.EMPTY_CART

    def __init__(self):
        super().__init__("cart is empty")


class InsufficientStockError(AppError):
    code = "INSUFFICIENT_STOCK"
    http_status = 409
    kind = ErrorKind.INSUFFICIENT_STOCK

    def __init__(self, product_id: int, requested: int, available: int):
        super().__init__(
            f"insufficient stock for product {product_id}: "
            f"requested {requested}, available {available}"
        )
        self.product_id = product_id
        self.requested = requested
        self.available = available

    @property
    def details(self) -> dict:
        return {
            "product_id": self.product_id,
            "requested": self.requested,
            "available": self.available,
        }


class ProductNotFoundError(AppError):
    code = "PRODUCT_NOT_FOUND"
    http_status = 400
    kind = ErrorKind.PRODUCT_NOT_FOUND

    def __init__(self, product_id: int):
        super().__init__(f"product with id {product_id} not found")
        self.product_id = product_id

    @property
    def details(self) -> dict:
        return {"product_id": self.product_id}


class InternalError(AppError):
    """Infrastructure failure. ``message`` is safe to show, the cause is chained."""

    code = "INTERNAL_ERROR"
    http_status = 500
    kind = ErrorKind.INTERNAL

    def __init__(self, message: str = "internal server error"):
        super().__init__(message)


class CartItemNotFoundError(AppError):
    code = "NOT_FOUND"
    http_status = 404

    def __init__(self, item_id: int):
        super().__init__(f"cart item with id {item_id} not found")
        self.item_id = item_id


class OrderNotFoundError(AppError):
    code = "NOT_FOUND"
    http_status = 404

    def __init__(self, order_id: int):
        super().__init__(f"order with id {order_id} not found")
        self.order_id = order_id


class ValidationError(AppError):
    code = "VALIDATION_ERROR"
    http_status = 400

    def __init__(self, field: str, message: str):
        super().__init__(f"validation error: {field} - {message}")
        self.field = field


class ConflictError(AppError):
    code = "CONFLICT"
    http_status = 409

# market/services/cart_service.py
from decimal import Decimal
from typing import Any, Dict

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from market.domain.errors import (
    CartItemNotFoundError,
    ConflictError,
    ProductNotFoundError,
    ValidationError,
)
from market.repos.cart_repo import CartRepo
from market.repos.product_repo import ProductRepo
from market.utils.logging import get_logger

logger = get_logger(__name__)


class CartService:
    """
    Use cases of the cart.
    commands (add, update, remove) modify state and commit,
    query (get) is read only
    """

    def __init__(self, db: Session):
        self.repo = CartRepo(db)
        self.products = ProductRepo(db)

    # query
    def get_cart(self, user_id: int) -> Dict[str, Any]:
        lines = self.repo.get_lines_with_pricing(user_id)
        # lines whose product is gone have no price and add nothing
        total = sum(
            (line.product_price * line.quantity for line in lines if line.product_price is not None),
            Decimal("0.00"),
        )
        self.repo.rollback()

        return {
            "items": [line._asdict() for line in lines],
            "total": total,
        }

    # commands
    def add_item(
        self,
        user_id: int,
        product_id: int,
        quantity: int,
        size: str = "",
        color: str = "",
    ) -> Dict[str, Any]:
        if quantity <= 0:
            raise ValidationError("quantity", "must be greater than 0")

        try:
            if self.products.get_product(product_id) is None:
                raise ProductNotFoundError(product_id)

            cart_id = self.repo.get_or_create_cart_id(user_id)
            item = self.repo.upsert_item(cart_id, product_id, quantity, size, color)
            out = self._item_to_dict(item, user_id)
            self.repo.commit()
        except Exception:
            self.repo.rollback()
            raise

        logger.info(
            "Cart line upserted",
            user_id=user_id,
            product_id=product_id,
            size=size,
            color=color,
            quantity=out["quantity"],
        )
        return out

    def update_item(
        self,
        user_id: int,
        item_id: int,
        quantity: int,
        size: str | None = None,
    ) -> Dict[str, Any]:
        if quantity <= 0:
            raise ValidationError("quantity", "must be greater than 0")

        try:
            item = self.repo.update_item(item_id, user_id, quantity, size)
            if item is None:
                raise CartItemNotFoundError(item_id)
            out = self._item_to_dict(item, user_id)
            self.repo.commit()
        except IntegrityError as e:
            self.repo.rollback()
            raise ConflictError(
                f"cart already has this product with size {size!r}"
            ) from e
        except Exception:
            self.repo.rollback()
            raise

        logger.info("Cart item updated", user_id=user_id, item_id=item_id, quantity=quantity)
        return out

    def remove_item(self, user_id: int, item_id: int) -> None:
        try:
            deleted = self.repo.delete_item(item_id, user_id)
            if deleted == 0:
                raise CartItemNotFoundError(item_id)
            self.repo.commit()
        except Exception:
            self.repo.rollback()
            raise

        logger.info("Cart item removed", user_id=user_id, item_id=item_id)

    @staticmethod
    def _item_to_dict(item, user_id: int) -> Dict[str, Any]:
        return {
            "id": item.id,
            "user_id": user_id,
            "product_id": item.product_id,
            "quantity": item.quantity,
            "size": item.size,
            "color": item.color,
            "created_at": item.created_at,
            "updated_at": item.updated_at,
        }

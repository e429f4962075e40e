# market/services/order_service.py
from decimal import Decimal
from typing import Dict, Iterable

from sqlalchemy.engine import Row
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from market.data.models.order import OrderModel, OrderStatus, PaymentStatus
from market.data.models.order_item import OrderItemModel
from market.domain.errors import (
    AppError,
    EmptyCartError,
    InsufficientStockError,
    InternalError,
    OrderNotFoundError,
    ProductNotFoundError,
)
from market.domain.schemas import OrderOut, OrdersPage, PaginationMeta
from market.repos.cart_repo import CartRepo
from market.repos.order_repo import OrderRepo
from market.repos.product_repo import ProductRepo
from market.utils.logging import get_logger
from market.utils.settings import ORDER_LOCK_TIMEOUT_MS

logger = get_logger(__name__)

CENT = Decimal("0.01")


class OrderService:
    """
    Order placement and order queries.

    place_order is the only writer of orders, order items and product stock.
    Correctness under concurrent checkouts comes from the database row locks
    taken in ascending product id order, never from process-local state.
    """

    def __init__(self, db: Session, lock_timeout_ms: int = ORDER_LOCK_TIMEOUT_MS):
        self.db = db
        self.carts = CartRepo(db)
        self.products = ProductRepo(db)
        self.repo = OrderRepo(db)
        self.lock_timeout_ms = lock_timeout_ms

    def place_order(self, user_id: int, payment_method: str, delivery_address: str) -> OrderOut:
        """
        Turn the user's cart into a pending order, all or nothing.

        1. read cart lines with current prices (empty -> EmptyCart, no locks)
        2. lock every product row, ascending id
        3. validate stock read under the lock
        4. insert order + items (price snapshot), decrement stock with a
           conditional UPDATE, clear the cart
        5. commit

        Any error rolls the whole transaction back and is re-raised as a
        typed AppError. Nothing is retried here.
        """
        log = logger.bind(user_id=user_id)
        log.info("Placing order")

        try:
            lines = self.carts.get_lines_with_pricing(user_id)
            if not lines:
                raise EmptyCartError()

            self.products.set_lock_timeout(self.lock_timeout_ms)
            locked = self._lock_products(lines)
            requested = self._validate_stock(lines, locked)

            total = sum(
                (locked[line.product_id].price * line.quantity for line in lines),
                Decimal("0.00"),
            ).quantize(CENT)

            order = OrderModel(
                user_id=user_id,
                total_amount=total,
                status=OrderStatus.PENDING.value,
                payment_method=payment_method,
                payment_status=PaymentStatus.PENDING.value,
                delivery_address=delivery_address,
                items=[
                    OrderItemModel(
                        product_id=line.product_id,
                        quantity=line.quantity,
                        size=line.size,
                        color=line.color,
                        unit_price=locked[line.product_id].price,
                    )
                    for line in lines
                ],
            )
            self.repo.add_order(order)

            self._deduct_stock(requested, log)
            self.carts.clear_cart(user_id)

            out = OrderOut.model_validate(order)
            self.db.commit()

        except AppError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            log.error("Order failed", error=str(e))
            raise InternalError("failed to place order") from e
        except BaseException:
            # cancellation / interpreter shutdown: leave nothing behind
            self.db.rollback()
            raise

        log.info("Order placed", order_id=out.id, total_amount=str(out.total_amount))
        return out

    def _lock_products(self, lines: Iterable[Row]) -> Dict[int, Row]:
        # ascending id for every caller, whatever order the cart has:
        # two checkouts over overlapping products can't wait on each other
        locked = {}
        for product_id in sorted({line.product_id for line in lines}):
            row = self.products.lock_for_update(product_id)
            if row is None:
                logger.warning("Product in cart no longer exists", product_id=product_id)
                raise ProductNotFoundError(product_id)
            locked[product_id] = row

        logger.debug("Locked products", product_ids=sorted(locked))
        return locked

    def _validate_stock(self, lines: Iterable[Row], locked: Dict[int, Row]) -> Dict[int, int]:
        # variants of one product share its stock
        requested: Dict[int, int] = {}
        for line in lines:
            requested[line.product_id] = requested.get(line.product_id, 0) + line.quantity

        for product_id in sorted(requested):
            available = locked[product_id].stock
            if requested[product_id] > available:
                logger.warning(
                    "Insufficient stock",
                    product_id=product_id,
                    requested=requested[product_id],
                    available=available,
                )
                raise InsufficientStockError(product_id, requested[product_id], available)

        return requested

    def _deduct_stock(self, requested: Dict[int, int], log) -> None:
        for product_id in sorted(requested):
            affected = self.products.decrement_stock(product_id, requested[product_id])
            # the row is locked and was just validated, anything but 1 is a bug
            if affected != 1:
                log.error("Stock update missed", product_id=product_id, affected_rows=affected)
                raise InternalError(f"failed to deduct stock for product {product_id}")

    # queries, read only: the transaction is ended before returning
    def get_order(self, order_id: int, user_id: int) -> OrderOut:
        try:
            order = self.repo.get_order(order_id)
            # someone else's order is reported the same way as a missing one
            if order is None or order.user_id != user_id:
                raise OrderNotFoundError(order_id)
            return OrderOut.model_validate(order)
        finally:
            self.db.rollback()

    def list_user_orders(self, user_id: int, page: int, page_size: int) -> OrdersPage:
        try:
            orders, total = self.repo.list_user_orders(user_id, page_size, (page - 1) * page_size)
            return self._page(orders, page, page_size, total)
        finally:
            self.db.rollback()

    def list_all_orders(self, page: int, page_size: int, status: OrderStatus | None = None) -> OrdersPage:
        try:
            orders, total = self.repo.list_all_orders(
                page_size,
                (page - 1) * page_size,
                status.value if status else None,
            )
            return self._page(orders, page, page_size, total)
        finally:
            self.db.rollback()

    @staticmethod
    def _page(orders, page: int, page_size: int, total: int) -> OrdersPage:
        return OrdersPage(
            data=[OrderOut.model_validate(o) for o in orders],
            pagination=PaginationMeta.build(page, page_size, total),
        )

# market/repos/order_repo.py
from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from market.data.models.order import OrderModel


class OrderRepo:
    def __init__(self, db: Session):
        self.db = db

    def add_order(self, order: OrderModel) -> OrderModel:
        # flush only: the order is written inside the checkout transaction
        # and committed together with the stock and cart changes
        self.db.add(order)
        self.db.flush()
        return order

    def get_order(self, order_id: int) -> OrderModel | None:
        return self.db.execute(
            select(OrderModel)
            .options(selectinload(OrderModel.items))
            .where(OrderModel.id == order_id)
        ).scalar_one_or_none()

    def list_user_orders(self, user_id: int, limit: int, offset: int) -> tuple[list[OrderModel], int]:
        return self._page(OrderModel.user_id == user_id, limit, offset)

    def list_all_orders(self, limit: int, offset: int, status: str | None = None) -> tuple[list[OrderModel], int]:
        criteria = OrderModel.status == status if status else None
        return self._page(criteria, limit, offset)

    def _page(self, criteria, limit: int, offset: int) -> tuple[list[OrderModel], int]:
        count_q = select(func.count()).select_from(OrderModel)
        rows_q = (
            select(OrderModel)
            .options(selectinload(OrderModel.items))
            .order_by(OrderModel.created_at.desc(), OrderModel.id.desc())
            .limit(limit)
            .offset(offset)
        )
        if criteria is not None:
            count_q = count_q.where(criteria)
            rows_q = rows_q.where(criteria)

        total = self.db.execute(count_q).scalar_one()
        if total == 0:
            return [], 0

        return list(self.db.execute(rows_q).scalars().all()), total

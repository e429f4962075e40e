# market/repos/cart_repo.py
from sqlalchemy import delete, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Row
from sqlalchemy.orm import Session

from market.data.database import utcnow
from market.data.models.cart import CartModel
from market.data.models.cart_item import CartItemModel
from market.data.models.product import ProductModel

_UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class CartRepo:
    """
    Cart Store. Nothing here commits: the calling service owns the
    transaction, so the checkout can read and clear a cart inside its own.
    """

    def __init__(self, db: Session):
        self.db = db

    def _insert(self):
        dialect = self.db.get_bind().dialect.name
        try:
            return _UPSERT_INSERTS[dialect]
        except KeyError:
            raise RuntimeError(f"ON CONFLICT upserts are not supported on {dialect}") from None

    def _user_cart_id(self, user_id: int):
        return select(CartModel.id).where(CartModel.user_id == user_id).scalar_subquery()

    def get_or_create_cart_id(self, user_id: int) -> int:
        insert = self._insert()
        self.db.execute(
            insert(CartModel)
            .values(user_id=user_id, created_at=utcnow(), updated_at=utcnow())
            .on_conflict_do_nothing(index_elements=["user_id"])
        )
        return self.db.execute(
            select(CartModel.id).where(CartModel.user_id == user_id)
        ).scalar_one()

    def upsert_item(
        self,
        cart_id: int,
        product_id: int,
        quantity: int,
        size: str = "",
        color: str = "",
    ) -> CartItemModel:
        """
        INSERT ... ON CONFLICT (cart_id, product_id, size, color)
        DO UPDATE SET quantity = cart_items.quantity + excluded.quantity

        One statement, so two racing adds of the same variant both land.
        """
        insert = self._insert()
        now = utcnow()
        stmt = insert(CartItemModel).values(
            cart_id=cart_id,
            product_id=product_id,
            quantity=quantity,
            size=size,
            color=color,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["cart_id", "product_id", "size", "color"],
            set_={
                "quantity": CartItemModel.quantity + stmt.excluded.quantity,
                "updated_at": now,
            },
        ).returning(CartItemModel)

        return self.db.scalars(stmt, execution_options={"populate_existing": True}).one()

    def get_lines_with_pricing(self, user_id: int) -> list[Row]:
        # outer join: a line whose product vanished still shows up, with
        # NULL pricing, and the checkout reports it as ProductNotFound
        stmt = (
            select(
                CartItemModel.id,
                CartModel.user_id,
                CartItemModel.product_id,
                CartItemModel.quantity,
                CartItemModel.size,
                CartItemModel.color,
                CartItemModel.created_at,
                CartItemModel.updated_at,
                ProductModel.title.label("product_title"),
                ProductModel.price.label("product_price"),
                ProductModel.image_url.label("product_image"),
            )
            .join(CartModel, CartItemModel.cart_id == CartModel.id)
            .outerjoin(ProductModel, CartItemModel.product_id == ProductModel.id)
            .where(CartModel.user_id == user_id)
            .order_by(CartItemModel.created_at.desc(), CartItemModel.id.desc())
        )
        return list(self.db.execute(stmt).all())

    def update_item(
        self,
        item_id: int,
        user_id: int,
        quantity: int,
        size: str | None = None,
    ) -> CartItemModel | None:
        values = {"quantity": quantity, "updated_at": utcnow()}
        if size is not None:
            values["size"] = size

        stmt = (
            update(CartItemModel)
            .where(
                CartItemModel.id == item_id,
                CartItemModel.cart_id == self._user_cart_id(user_id),
            )
            .values(**values)
            .returning(CartItemModel)
        )
        return self.db.scalars(stmt, execution_options={"populate_existing": True}).one_or_none()

    def delete_item(self, item_id: int, user_id: int) -> int:
        result = self.db.execute(
            delete(CartItemModel)
            .where(
                CartItemModel.id == item_id,
                CartItemModel.cart_id == self._user_cart_id(user_id),
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def clear_cart(self, user_id: int) -> int:
        result = self.db.execute(
            delete(CartItemModel)
            .where(CartItemModel.cart_id == self._user_cart_id(user_id))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()

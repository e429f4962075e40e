# market/repos/product_repo.py
from sqlalchemy import func, select, text, update
from sqlalchemy.engine import Row
from sqlalchemy.orm import Session

from market.data.database import utcnow
from market.data.models.product import ProductModel


class ProductRepo:
    """Read access to the catalog and the inventory ledger (products.stock)."""

    def __init__(self, db: Session):
        self.db = db

    def get_product(self, product_id: int) -> ProductModel | None:
        return self.db.get(ProductModel, product_id)

    def create_product(self, product: ProductModel) -> ProductModel:
        self.db.add(product)
        self.db.commit()
        self.db.refresh(product)
        return product

    def count(self) -> int:
        return self.db.execute(select(func.count()).select_from(ProductModel)).scalar_one()

    def lock_for_update(self, product_id: int) -> Row | None:
        # SELECT id, price, stock FROM products WHERE id = :id FOR UPDATE
        # columns instead of the entity so the identity map can't hand back
        # a stock value read before the lock was taken
        return self.db.execute(
            select(ProductModel.id, ProductModel.price, ProductModel.stock)
            .where(ProductModel.id == product_id)
            .with_for_update()
        ).one_or_none()

    def decrement_stock(self, product_id: int, quantity: int) -> int:
        # UPDATE products SET stock = stock - :qty WHERE id = :id AND stock >= :qty
        result = self.db.execute(
            update(ProductModel)
            .where(ProductModel.id == product_id, ProductModel.stock >= quantity)
            .values(stock=ProductModel.stock - quantity, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def set_lock_timeout(self, timeout_ms: int) -> None:
        # SET LOCAL only lives until the end of the current transaction
        if timeout_ms <= 0 or self.db.get_bind().dialect.name != "postgresql":
            return
        self.db.execute(text(f"SET LOCAL lock_timeout = {int(timeout_ms)}"))

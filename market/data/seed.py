# market/data/seed.py
from decimal import Decimal

from market.data.database import SessionLocal, init_db
from market.data.models.product import ProductModel
from market.repos.product_repo import ProductRepo
from market.utils.logging import get_logger

logger = get_logger(__name__)

DEMO_PRODUCTS = [
    {"title": "Classic T-Shirt", "price": Decimal("25.00"), "stock": 100},
    {"title": "Denim Jacket", "price": Decimal("50.00"), "stock": 20},
    {"title": "Running Sneakers", "price": Decimal("89.90"), "stock": 2},
    {"title": "Wool Scarf", "price": Decimal("19.99"), "stock": 1},
]


def seed(session_factory=SessionLocal) -> int:
    """Insert demo products into an empty catalog. Returns how many were added."""
    db = session_factory()
    try:
        repo = ProductRepo(db)
        # not forcing: only seed if empty
        if repo.count():
            return 0
        for data in DEMO_PRODUCTS:
            repo.create_product(ProductModel(status="active", **data))
        logger.info("Seeded demo products", count=len(DEMO_PRODUCTS))
        return len(DEMO_PRODUCTS)
    finally:
        db.close()


if __name__ == "__main__":
    init_db()
    seed()

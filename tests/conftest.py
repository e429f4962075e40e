from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import func, select
from sqlalchemy.orm import sessionmaker

from market.api import create_app
from market.data.database import get_db, init_db, make_engine
from market.data.models import CartItemModel, CartModel, OrderModel, ProductModel


@pytest.fixture()
def engine(tmp_path):
    """File backed SQLite, so several threads can share it like a real database."""
    engine = make_engine(f"sqlite:///{tmp_path / 'market.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture()
def make_product(session_factory):
    """Factory: insert a product and return its id."""

    def _make(title="Product", price="10.00", stock=10):
        with session_factory() as session:
            product = ProductModel(title=title, price=Decimal(price), stock=stock)
            session.add(product)
            session.commit()
            return product.id

    return _make


@pytest.fixture()
def stock_of(session_factory):
    def _stock(product_id):
        with session_factory() as session:
            return session.execute(
                select(ProductModel.stock).where(ProductModel.id == product_id)
            ).scalar_one()

    return _stock


@pytest.fixture()
def count_rows(session_factory):
    """count_rows(OrderModel) / count_rows(CartItemModel, user_id=1)"""

    def _count(model, user_id=None):
        with session_factory() as session:
            q = select(func.count()).select_from(model)
            if user_id is not None:
                if model is CartItemModel:
                    q = q.join(CartModel, CartItemModel.cart_id == CartModel.id).where(
                        CartModel.user_id == user_id
                    )
                else:
                    q = q.where(model.user_id == user_id)
            return session.execute(q).scalar_one()

    return _count


@pytest.fixture()
def client(session_factory):
    app = create_app()

    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    return TestClient(app)


@pytest.fixture()
def orders_count(count_rows):
    return lambda user_id=None: count_rows(OrderModel, user_id)

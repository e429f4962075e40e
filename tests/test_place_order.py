from decimal import Decimal
from types import SimpleNamespace

import pytest
from sqlalchemy.exc import OperationalError

from market.data.models import CartItemModel, OrderItemModel, OrderStatus, PaymentStatus, ProductModel
from market.domain.errors import (
    EmptyCartError,
    ErrorKind,
    InsufficientStockError,
    InternalError,
    OrderNotFoundError,
    ProductNotFoundError,
)
from market.repos.cart_repo import CartRepo
from market.repos.product_repo import ProductRepo
from market.services.cart_service import CartService
from market.services.order_service import OrderService


def _fill_cart(db, user_id, *lines):
    svc = CartService(db)
    for product_id, quantity in lines:
        svc.add_item(user_id=user_id, product_id=product_id, quantity=quantity)


@pytest.fixture()
def lock_calls(monkeypatch):
    """Records the product ids in the order their rows get locked."""
    calls = []
    original = ProductRepo.lock_for_update

    def _recording(self, product_id):
        calls.append(product_id)
        return original(self, product_id)

    monkeypatch.setattr(ProductRepo, "lock_for_update", _recording)
    return calls


class TestSuccessfulCheckout:
    def test_scenario_two_products(self, db, make_product, stock_of, count_rows):
        a = make_product(title="A", price="25.00", stock=10)
        b = make_product(title="B", price="50.00", stock=5)
        _fill_cart(db, 1, (a, 2), (b, 1))

        order = OrderService(db).place_order(1, "card", "Main St 1")

        assert order.total_amount == Decimal("100.00")
        assert order.status == OrderStatus.PENDING
        assert order.payment_status == PaymentStatus.PENDING
        assert order.payment_method == "card"
        assert order.delivery_address == "Main St 1"
        assert sorted((i.product_id, i.quantity) for i in order.items) == sorted([(a, 2), (b, 1)])
        assert stock_of(a) == 8
        assert stock_of(b) == 4
        assert count_rows(CartItemModel, user_id=1) == 0

    def test_total_is_exact_sum_of_lines(self, db, make_product):
        a = make_product(price="19.99", stock=50)
        b = make_product(price="0.10", stock=50)
        c = make_product(price="1234.56", stock=50)
        _fill_cart(db, 1, (a, 3), (b, 7), (c, 2))

        order = OrderService(db).place_order(1, "card", "addr")

        expected = sum((i.unit_price * i.quantity for i in order.items), Decimal("0"))
        assert order.total_amount == expected == Decimal("2529.79")

    def test_order_is_persisted_with_items(self, db, make_product):
        a = make_product(price="25.00")
        _fill_cart(db, 1, (a, 2))
        svc = OrderService(db)

        placed = svc.place_order(1, "cash", "addr")
        loaded = svc.get_order(placed.id, user_id=1)

        assert loaded.id == placed.id
        assert loaded.total_amount == Decimal("50.00")
        assert [(i.product_id, i.quantity, i.unit_price) for i in loaded.items] == [
            (a, 2, Decimal("25.00"))
        ]

    def test_unit_price_is_a_snapshot(self, db, make_product):
        a = make_product(price="25.00")
        _fill_cart(db, 1, (a, 1))
        svc = OrderService(db)
        placed = svc.place_order(1, "card", "addr")

        product = db.get(ProductModel, a)
        product.price = Decimal("99.00")
        db.commit()

        loaded = svc.get_order(placed.id, user_id=1)
        assert loaded.items[0].unit_price == Decimal("25.00")
        assert loaded.total_amount == Decimal("25.00")

    def test_variants_of_one_product_share_stock(self, db, make_product, stock_of):
        a = make_product(price="10.00", stock=5)
        cart = CartService(db)
        cart.add_item(user_id=1, product_id=a, quantity=2, size="M")
        cart.add_item(user_id=1, product_id=a, quantity=3, size="L")

        order = OrderService(db).place_order(1, "card", "addr")

        assert sorted((i.size, i.quantity) for i in order.items) == [("L", 3), ("M", 2)]
        assert order.total_amount == Decimal("50.00")
        assert stock_of(a) == 0

    def test_exact_stock_can_be_sold(self, db, make_product, stock_of):
        a = make_product(stock=3)
        _fill_cart(db, 1, (a, 3))

        OrderService(db).place_order(1, "card", "addr")

        assert stock_of(a) == 0

    def test_other_users_cart_untouched(self, db, make_product, count_rows):
        a = make_product(stock=10)
        _fill_cart(db, 1, (a, 1))
        _fill_cart(db, 2, (a, 1))

        OrderService(db).place_order(1, "card", "addr")

        assert count_rows(CartItemModel, user_id=1) == 0
        assert count_rows(CartItemModel, user_id=2) == 1


class TestLockOrder:
    def test_products_locked_in_ascending_id_order(self, db, make_product, lock_calls):
        p1 = make_product(stock=5)
        p2 = make_product(stock=5)
        p3 = make_product(stock=5)
        _fill_cart(db, 1, (p3, 1), (p1, 1), (p2, 1))

        OrderService(db).place_order(1, "card", "addr")

        assert lock_calls == [p1, p2, p3]

    def test_each_product_locked_once(self, db, make_product, lock_calls):
        a = make_product(stock=5)
        cart = CartService(db)
        cart.add_item(user_id=1, product_id=a, quantity=1, size="S")
        cart.add_item(user_id=1, product_id=a, quantity=1, size="M")

        OrderService(db).place_order(1, "card", "addr")

        assert lock_calls == [a]

    def test_empty_cart_takes_no_locks(self, db, lock_calls):
        with pytest.raises(EmptyCartError):
            OrderService(db).place_order(1, "card", "addr")

        assert lock_calls == []


class TestFailedCheckout:
    def test_empty_cart(self, db, orders_count):
        with pytest.raises(EmptyCartError) as exc:
            OrderService(db).place_order(1, "card", "addr")

        assert exc.value.kind is ErrorKind.EMPTY_CART
        assert orders_count() == 0

    def test_insufficient_stock(self, db, make_product, stock_of, orders_count, count_rows):
        c = make_product(stock=2)
        _fill_cart(db, 1, (c, 5))

        with pytest.raises(InsufficientStockError) as exc:
            OrderService(db).place_order(1, "card", "addr")

        assert exc.value.kind is ErrorKind.INSUFFICIENT_STOCK
        assert (exc.value.product_id, exc.value.requested, exc.value.available) == (c, 5, 2)
        assert stock_of(c) == 2
        assert orders_count() == 0
        assert count_rows(CartItemModel, user_id=1) == 1

    def test_one_short_line_blocks_the_whole_order(self, db, make_product, stock_of, orders_count):
        plenty = make_product(stock=100)
        short = make_product(stock=1)
        _fill_cart(db, 1, (plenty, 10), (short, 2))

        with pytest.raises(InsufficientStockError) as exc:
            OrderService(db).place_order(1, "card", "addr")

        assert exc.value.product_id == short
        assert stock_of(plenty) == 100
        assert stock_of(short) == 1
        assert orders_count() == 0

    def test_variants_summed_before_stock_check(self, db, make_product, stock_of):
        a = make_product(stock=4)
        cart = CartService(db)
        cart.add_item(user_id=1, product_id=a, quantity=3, size="S")
        cart.add_item(user_id=1, product_id=a, quantity=3, size="M")

        with pytest.raises(InsufficientStockError) as exc:
            OrderService(db).place_order(1, "card", "addr")

        assert (exc.value.requested, exc.value.available) == (6, 4)
        assert stock_of(a) == 4

    def test_product_removed_from_catalog(self, db, make_product, monkeypatch, stock_of, orders_count):
        a = make_product(stock=5)
        _fill_cart(db, 1, (a, 1))
        original = CartRepo.get_lines_with_pricing

        # line read before the product row disappeared
        def _with_ghost(self, user_id):
            ghost = SimpleNamespace(
                product_id=9999, quantity=1, size="", color="", product_price=Decimal("1.00")
            )
            return original(self, user_id) + [ghost]

        monkeypatch.setattr(CartRepo, "get_lines_with_pricing", _with_ghost)

        with pytest.raises(ProductNotFoundError) as exc:
            OrderService(db).place_order(1, "card", "addr")

        assert exc.value.kind is ErrorKind.PRODUCT_NOT_FOUND
        assert exc.value.product_id == 9999
        assert stock_of(a) == 5
        assert orders_count() == 0

    def test_conditional_update_miss_is_internal(
        self, db, make_product, monkeypatch, stock_of, orders_count, count_rows
    ):
        a = make_product(stock=5)
        b = make_product(stock=5)
        _fill_cart(db, 1, (a, 1), (b, 1))
        original = ProductRepo.decrement_stock

        # first product goes through, second reports 0 rows
        def _second_misses(self, product_id, quantity):
            if product_id == b:
                return 0
            return original(self, product_id, quantity)

        monkeypatch.setattr(ProductRepo, "decrement_stock", _second_misses)

        with pytest.raises(InternalError) as exc:
            OrderService(db).place_order(1, "card", "addr")

        assert exc.value.kind is ErrorKind.INTERNAL
        assert stock_of(a) == 5
        assert stock_of(b) == 5
        assert orders_count() == 0
        assert count_rows(OrderItemModel) == 0
        assert count_rows(CartItemModel, user_id=1) == 2

    def test_database_error_rolls_back_everything(
        self, db, make_product, monkeypatch, stock_of, orders_count, count_rows
    ):
        a = make_product(stock=5)
        _fill_cart(db, 1, (a, 2))

        def _broken_clear(self, user_id):
            raise OperationalError("DELETE FROM cart_items", {}, Exception("connection lost"))

        monkeypatch.setattr(CartRepo, "clear_cart", _broken_clear)

        with pytest.raises(InternalError) as exc:
            OrderService(db).place_order(1, "card", "addr")

        assert isinstance(exc.value.__cause__, OperationalError)
        assert "connection lost" not in exc.value.message
        assert stock_of(a) == 5
        assert orders_count() == 0
        assert count_rows(CartItemModel, user_id=1) == 1

    def test_interrupted_checkout_leaves_nothing(self, db, make_product, monkeypatch, stock_of, orders_count):
        a = make_product(stock=5)
        _fill_cart(db, 1, (a, 1))

        def _interrupted(self, user_id):
            raise KeyboardInterrupt

        monkeypatch.setattr(CartRepo, "clear_cart", _interrupted)

        with pytest.raises(KeyboardInterrupt):
            OrderService(db).place_order(1, "card", "addr")

        assert stock_of(a) == 5
        assert orders_count() == 0

    def test_failed_checkout_can_be_retried_by_caller(self, db, make_product, stock_of):
        a = make_product(stock=1)
        _fill_cart(db, 1, (a, 2))
        svc = OrderService(db)

        with pytest.raises(InsufficientStockError):
            svc.place_order(1, "card", "addr")

        cart_line = CartService(db).get_cart(1)["items"][0]
        CartService(db).update_item(user_id=1, item_id=cart_line["id"], quantity=1)

        order = svc.place_order(1, "card", "addr")
        assert order.total_amount == Decimal("10.00")
        assert stock_of(a) == 0


class TestOrderQueries:
    def test_foreign_order_is_not_found(self, db, make_product):
        a = make_product()
        _fill_cart(db, 1, (a, 1))
        svc = OrderService(db)
        placed = svc.place_order(1, "card", "addr")

        with pytest.raises(OrderNotFoundError):
            svc.get_order(placed.id, user_id=2)
        with pytest.raises(OrderNotFoundError):
            svc.get_order(12345, user_id=1)

    def test_list_user_orders_paginates(self, db, make_product):
        a = make_product(stock=100)
        svc = OrderService(db)
        placed = []
        for _ in range(5):
            _fill_cart(db, 1, (a, 1))
            placed.append(svc.place_order(1, "card", "addr").id)
        _fill_cart(db, 2, (a, 1))
        svc.place_order(2, "card", "addr")

        first = svc.list_user_orders(1, page=1, page_size=2)
        last = svc.list_user_orders(1, page=3, page_size=2)

        assert first.pagination.total_items == 5
        assert first.pagination.total_pages == 3
        assert [o.id for o in first.data] == placed[::-1][:2]
        assert [o.id for o in last.data] == [placed[0]]
        assert all(o.user_id == 1 for o in first.data)

    def test_list_user_orders_empty(self, db):
        page = OrderService(db).list_user_orders(1, page=1, page_size=20)

        assert page.data == []
        assert page.pagination.total_items == 0
        assert page.pagination.total_pages == 0

    def test_list_all_orders_by_status(self, db, make_product):
        a = make_product(stock=10)
        svc = OrderService(db)
        for user_id in (1, 2):
            _fill_cart(db, user_id, (a, 1))
            svc.place_order(user_id, "card", "addr")

        pending = svc.list_all_orders(1, 20, OrderStatus.PENDING)
        shipped = svc.list_all_orders(1, 20, OrderStatus.SHIPPED)
        everything = svc.list_all_orders(1, 20)

        assert pending.pagination.total_items == 2
        assert shipped.data == []
        assert {o.user_id for o in everything.data} == {1, 2}


class _RecordingSession:
    """Stands in for a session bound to the given dialect, records statements."""

    def __init__(self, dialect):
        self.dialect = dialect
        self.statements = []

    def get_bind(self):
        return SimpleNamespace(dialect=SimpleNamespace(name=self.dialect))

    def execute(self, statement):
        self.statements.append(str(statement))


class TestLockTimeout:
    def test_set_local_lock_timeout_on_postgresql(self):
        session = _RecordingSession("postgresql")

        ProductRepo(session).set_lock_timeout(2500)

        assert session.statements == ["SET LOCAL lock_timeout = 2500"]

    @pytest.mark.parametrize("dialect, timeout_ms", [("postgresql", 0), ("postgresql", -1), ("sqlite", 2500)])
    def test_skipped(self, dialect, timeout_ms):
        session = _RecordingSession(dialect)

        ProductRepo(session).set_lock_timeout(timeout_ms)

        assert session.statements == []

    def test_checkout_applies_configured_timeout_before_locking(self, db, make_product, monkeypatch, lock_calls):
        a = make_product()
        _fill_cart(db, 1, (a, 1))
        calls = []
        monkeypatch.setattr(
            ProductRepo,
            "set_lock_timeout",
            lambda self, timeout_ms: calls.append((timeout_ms, list(lock_calls))),
        )

        OrderService(db, lock_timeout_ms=1234).place_order(1, "card", "addr")

        assert calls == [(1234, [])]

    def test_lock_wait_timeout_is_internal_and_changes_nothing(
        self, db, make_product, monkeypatch, stock_of, orders_count, count_rows
    ):
        a = make_product(stock=5)
        b = make_product(stock=5)
        _fill_cart(db, 1, (a, 2), (b, 1))
        original = ProductRepo.lock_for_update

        def _times_out_on_b(self, product_id):
            if product_id == b:
                raise OperationalError(
                    "SELECT ... FOR UPDATE", {}, Exception("canceling statement due to lock timeout")
                )
            return original(self, product_id)

        monkeypatch.setattr(ProductRepo, "lock_for_update", _times_out_on_b)

        with pytest.raises(InternalError) as exc:
            OrderService(db).place_order(1, "card", "addr")

        assert exc.value.kind is ErrorKind.INTERNAL
        assert isinstance(exc.value.__cause__, OperationalError)
        assert "lock timeout" not in exc.value.message
        assert stock_of(a) == 5
        assert stock_of(b) == 5
        assert orders_count() == 0
        assert count_rows(CartItemModel, user_id=1) == 2

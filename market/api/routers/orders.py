# market/api/routers/orders.py
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from market.data.database import get_db
from market.data.models.order import OrderStatus
from market.domain.schemas import ErrorOut, OrderCreate, OrderOut, OrdersPage
from market.services.order_service import OrderService
from market.utils.settings import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE

router = APIRouter(prefix="/orders", tags=["orders"])
admin_router = APIRouter(prefix="/admin/orders", tags=["admin"])


def get_service(db: Session):
    return OrderService(db)


@router.post(
    "",
    response_model=OrderOut,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorOut}, 409: {"model": ErrorOut}, 500: {"model": ErrorOut}},
)
def create_order(
    payload: OrderCreate,
    user_id: int = Query(..., gt=0),
    db: Session = Depends(get_db),
):
    """
    Places an order from the user's cart.

    Stock of every product is checked and reduced in the same transaction
    that writes the order and empties the cart.
    """
    return get_service(db).place_order(user_id, payload.payment_method, payload.delivery_address)


@router.get("", response_model=OrdersPage)
def list_my_orders(
    user_id: int = Query(..., gt=0),
    page: int = Query(1, ge=1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
):
    return get_service(db).list_user_orders(user_id, page, page_size)


@router.get("/{order_id}", response_model=OrderOut, responses={404: {"model": ErrorOut}})
def get_order(
    order_id: int,
    user_id: int = Query(..., gt=0),
    db: Session = Depends(get_db),
):
    return get_service(db).get_order(order_id, user_id)


@admin_router.get("", response_model=OrdersPage)
def list_all_orders(
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
):
    return get_service(db).list_all_orders(page, page_size, status_filter)

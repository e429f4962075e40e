# market/api/routers/carts.py
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from market.data.database import get_db
from market.domain.schemas import AddToCartIn, CartItemOut, CartOut, UpdateCartItemIn
from market.services.cart_service import CartService

router = APIRouter(prefix="/cart", tags=["cart"])


def get_service(db: Session):
    return CartService(db)


@router.get("", response_model=CartOut)
def get_cart(user_id: int = Query(..., gt=0), db: Session = Depends(get_db)):
    return get_service(db).get_cart(user_id)


@router.post("/items", response_model=CartItemOut, status_code=status.HTTP_201_CREATED)
def add_item(
    payload: AddToCartIn,
    user_id: int = Query(..., gt=0),
    db: Session = Depends(get_db),
):
    """
    Adds a product to the cart. Adding the same product and variant again
    increases the quantity of the existing line.
    """
    return get_service(db).add_item(
        user_id=user_id,
        product_id=payload.product_id,
        quantity=payload.quantity,
        size=payload.size,
        color=payload.color,
    )


@router.put("/items/{item_id}", response_model=CartItemOut)
def update_item(
    item_id: int,
    payload: UpdateCartItemIn,
    user_id: int = Query(..., gt=0),
    db: Session = Depends(get_db),
):
    return get_service(db).update_item(
        user_id=user_id,
        item_id=item_id,
        quantity=payload.quantity,
        size=payload.size,
    )


@router.delete("/items/{item_id}")
def remove_item(
    item_id: int,
    user_id: int = Query(..., gt=0),
    db: Session = Depends(get_db),
):
    get_service(db).remove_item(user_id, item_id)
    return {"message": "item removed from cart"}

from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.security import get_current_user
from app.models.user import User
from app.schemas.checkout import (
    CartItemAdd,
    CartLine,
    CartResponse,
    CheckoutRequest,
    CheckoutResponse,
)
from app.services.cart_service import add_to_cart, get_cart, get_cart_items
from app.services.checkout_service import OrderRejected, place_cod_order

router = APIRouter()


def _cart_response(db: Session, user: User) -> CartResponse:
    cart = get_cart(db, user.id)
    lines = get_cart_items(db, cart.id) if cart else []

    items = [
        CartLine(
            product_id=product.id,
            name=product.name,
            price=float(product.price),
            quantity=item.quantity,
        )
        for item, product in lines
    ]
    subtotal = sum((Decimal(product.price) * item.quantity for item, product in lines), Decimal("0"))
    return CartResponse(
        cart_id=cart.id if cart else None,
        items=items,
        subtotal=float(subtotal),
    )


@router.get("/cart", response_model=CartResponse)
async def view_cart(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return _cart_response(db, user)


@router.post("/cart/items", response_model=CartResponse)
async def add_cart_item(
    payload: CartItemAdd,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        add_to_cart(db, user, payload.product_id, payload.quantity)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _cart_response(db, user)


@router.post("/checkout", response_model=CheckoutResponse)
async def checkout(
    payload: CheckoutRequest,
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ip_address = request.client.host if request.client else None
    try:
        result = place_cod_order(db, user, payload, ip_address=ip_address)
    except OrderRejected as e:
        raise HTTPException(status_code=403, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    # flagged orders look like any other order to the customer
    return CheckoutResponse(order_id=result.order_id)

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.security import get_current_user
from app.models.order import Order
from app.models.product import Product
from app.models.user import User
from app.schemas.order import CustomerOrderItem, CustomerOrderResponse
from app.services.order_service import get_order_items, get_user_order, list_user_orders
from app.utils.enums import OrderStatus

router = APIRouter()

# Flagged orders read as ordinary pending orders to the customer
CUSTOMER_STATUS = {
    OrderStatus.PENDING_CONFIRMATION: OrderStatus.PENDING,
}


def _customer_view(db: Session, order: Order) -> CustomerOrderResponse:
    items = get_order_items(db, order.id)
    product_ids = [item.product_id for item in items if item.product_id]
    names = {
        product.id: product.name
        for product in db.query(Product).filter(Product.id.in_(product_ids)).all()
    } if product_ids else {}

    status = OrderStatus(order.status)
    return CustomerOrderResponse(
        id=order.id,
        total_amount=float(order.total_amount),
        delivery_fee=float(order.delivery_fee) if order.delivery_fee is not None else None,
        status=CUSTOMER_STATUS.get(status, status),
        phone_number=order.phone_number,
        recipient_name=order.recipient_name,
        shipping_address=order.shipping_address,
        created_at=order.created_at,
        items=[
            CustomerOrderItem(
                product_id=item.product_id,
                name=names.get(item.product_id),
                quantity=item.quantity,
                price_at_purchase=float(item.price_at_purchase),
            )
            for item in items
        ],
    )


@router.get("/orders", response_model=list[CustomerOrderResponse])
async def my_orders(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return [_customer_view(db, order) for order in list_user_orders(db, user.id)]


@router.get("/orders/{order_id}", response_model=CustomerOrderResponse)
async def my_order(
    order_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        order = get_user_order(db, user.id, order_id)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _customer_view(db, order)

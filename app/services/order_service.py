from decimal import Decimal

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models.order import Order, OrderItem, OrderStatusHistory
from app.models.product import Product
from app.models.user import User
from app.services.checkout_service import record_status
from app.utils.enums import OrderStatus

# Terminal outcomes tracked on the customer's profile
STATUS_COUNTERS = {
    OrderStatus.DELIVERED: User.delivered_orders,
    OrderStatus.REFUSED: User.refused_orders,
    OrderStatus.RETURNED: User.returned_orders,
}


def get_order(db: Session, order_id: str) -> Order:
    order = db.query(Order).filter(Order.id == order_id).first()
    if not order:
        raise ValueError("Order not found")
    return order


def list_user_orders(db: Session, user_id: str) -> list[Order]:
    return (
        db.query(Order)
        .filter(Order.user_id == user_id)
        .order_by(Order.created_at.desc())
        .all()
    )


def get_user_order(db: Session, user_id: str, order_id: str) -> Order:
    order = (
        db.query(Order)
        .filter(Order.id == order_id, Order.user_id == user_id)
        .first()
    )
    # someone else's order looks the same as a missing one
    if not order:
        raise ValueError("Order not found")
    return order


def get_order_items(db: Session, order_id: str) -> list[OrderItem]:
    return db.query(OrderItem).filter(OrderItem.order_id == order_id).all()


def get_status_history(db: Session, order_id: str) -> list[OrderStatusHistory]:
    return (
        db.query(OrderStatusHistory)
        .filter(OrderStatusHistory.order_id == order_id)
        .order_by(OrderStatusHistory.created_at.asc())
        .all()
    )


def list_orders(
    db: Session,
    status: OrderStatus | None = None,
    flagged_only: bool = False,
    page: int = 1,
    per_page: int = 20,
) -> tuple[list[Order], int]:
    query = db.query(Order)

    if status is not None:
        query = query.filter(Order.status == status.value)
    if flagged_only:
        query = query.filter(Order.status == OrderStatus.PENDING_CONFIRMATION.value)

    total = query.count()
    orders = (
        query.order_by(Order.created_at.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )
    return orders, total


def update_order_status(
    db: Session,
    order_id: str,
    new_status: OrderStatus,
    changed_by: str | None = None,
    notes: str | None = None,
) -> Order:
    order = get_order(db, order_id)
    previous = OrderStatus(order.status)

    order.status = new_status.value
    order.admin_notes = notes

    counter = STATUS_COUNTERS.get(new_status)
    if counter is not None and previous != new_status and order.user_id:
        db.query(User).filter(User.id == order.user_id).update(
            {counter: counter + 1},
            synchronize_session=False,
        )

    db.commit()

    record_status(
        db,
        order_id,
        new_status,
        notes=notes or f"Status updated to {new_status.value}",
        changed_by=changed_by,
    )
    db.refresh(order)
    return order


def confirm_order(db: Session, order_id: str, changed_by: str | None = None) -> Order:
    return update_order_status(
        db, order_id, OrderStatus.CONFIRMED, changed_by, "Order confirmed by admin"
    )


def cancel_order(
    db: Session,
    order_id: str,
    changed_by: str | None = None,
    reason: str | None = None,
) -> Order:
    return update_order_status(
        db, order_id, OrderStatus.CANCELLED, changed_by, reason or "Cancelled by admin"
    )


def get_dashboard_stats(db: Session) -> dict:
    def count_status(status: OrderStatus) -> int:
        return db.query(Order).filter(Order.status == status.value).count()

    revenue = (
        db.query(func.coalesce(func.sum(Order.total_amount), 0))
        .filter(Order.status == OrderStatus.DELIVERED.value)
        .scalar()
    )

    return {
        "total_orders": db.query(Order).count(),
        "pending_orders": count_status(OrderStatus.PENDING),
        "flagged_orders": count_status(OrderStatus.PENDING_CONFIRMATION),
        "total_products": db.query(Product).filter(Product.is_active.is_(True)).count(),
        "total_revenue": float(Decimal(str(revenue or 0))),
    }

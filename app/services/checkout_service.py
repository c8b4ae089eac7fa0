"""
Cash-on-delivery checkout.

Runs the fast-fail checks, scores the order, and persists it. Persistence is
a sequence of independent commits: only a failure to save the order items
undoes the order; later steps (risk assessment, inventory, statistics,
history, cart) are logged and left as they are.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.order import Order, OrderItem, OrderStatusHistory
from app.models.product import Product
from app.models.user import User
from app.schemas.checkout import CheckoutRequest
from app.services.cart_service import clear_cart, get_cart, get_cart_items
from app.services.risk_config import load_risk_config
from app.services.risk_engine import RiskAssessment, assess_order
from app.services.risk_persistence import save_risk_assessment
from app.services.risk_sources import count_orders_since, find_active_blocklist_entries
from app.utils.clock import local_midnight_utc, utcnow
from app.utils.enums import BlocklistKind, BlocklistSeverity, OrderStatus

logger = logging.getLogger(__name__)

RESTRICTED_MESSAGE = "You are restricted from placing orders. Please contact support."
REJECTED_MESSAGE = "This order could not be processed. Please contact support."


class CheckoutError(ValueError):
    pass


class OrderRejected(CheckoutError):
    """Refused on risk grounds. The message never carries scoring detail."""


@dataclass
class CheckoutResult:
    order_id: str
    status: OrderStatus
    total_amount: Decimal
    assessment: RiskAssessment


def place_cod_order(
    db: Session,
    user: User,
    request: CheckoutRequest,
    ip_address: str | None = None,
    now: datetime | None = None,
) -> CheckoutResult:
    now = now or utcnow()
    phone = request.phone_number

    cart = get_cart(db, user.id)
    lines = get_cart_items(db, cart.id) if cart else []
    if not lines:
        raise CheckoutError("Cart is empty")

    config = load_risk_config(db)

    # 1. Hard blocklist, fail closed: read errors propagate
    hard_blocks = find_active_blocklist_entries(
        db,
        [(BlocklistKind.PHONE, phone), (BlocklistKind.USER_ID, user.id)],
        severity=BlocklistSeverity.HARD_BLOCK,
        now=now,
    )
    if hard_blocks:
        logger.warning(
            "Checkout refused for user %s: %s on blocklist",
            user.id, hard_blocks[0].kind.value,
        )
        raise OrderRejected(RESTRICTED_MESSAGE)

    # 2. Daily order limit
    todays_orders = count_orders_since(db, user.id, local_midnight_utc(now))
    if todays_orders >= config.max_daily_orders:
        raise CheckoutError(
            f"Daily order limit reached ({config.max_daily_orders}). Please try again tomorrow."
        )

    # 3. Inventory and totals
    subtotal = Decimal("0")
    for item, product in lines:
        if product.inventory < item.quantity:
            raise CheckoutError(
                f'"{product.name}" only has {product.inventory} units in stock.'
            )
        subtotal += Decimal(product.price) * item.quantity

    delivery_fee = Decimal(settings.DELIVERY_FEE)
    total_amount = subtotal + delivery_fee
    shipping_address = request.shipping_address.model_dump()

    # 4. Risk assessment
    assessment = assess_order(
        db,
        user.id,
        phone,
        total_amount,
        shipping_address,
        config,
        ip_address=ip_address,
        now=now,
    )
    if assessment.degraded_sources:
        logger.warning(
            "Risk for user %s scored without: %s",
            user.id, ", ".join(assessment.degraded_sources),
        )

    if assessment.blocked:
        logger.warning("Order blocked for user %s. %s", user.id, assessment.admin_note())
        raise OrderRejected(REJECTED_MESSAGE)

    status = OrderStatus.PENDING_CONFIRMATION if assessment.flagged else OrderStatus.PENDING

    # 5. Persist
    order = Order(
        id=str(uuid4()),
        user_id=user.id,
        total_amount=total_amount,
        delivery_fee=delivery_fee,
        status=status.value,
        phone_number=phone,
        recipient_name=request.recipient_name,
        shipping_address=shipping_address,
        admin_notes=assessment.admin_note() if assessment.flagged else None,
        created_at=now,
    )
    try:
        db.add(order)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Order creation failed for user %s", user.id)
        raise CheckoutError("Failed to create order")
    order_id = order.id

    try:
        insert_order_items(db, order_id, lines)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Order items failed for order %s, removing order", order_id)
        _delete_order(db, order_id)
        raise CheckoutError("Failed to save order items")

    if assessment.score > 0:
        _best_effort(db, "risk assessment", order_id, save_risk_assessment, db, order_id, assessment)

    decrement_inventory(db, lines)

    _best_effort(db, "customer statistics", order_id, _increment_total_orders, db, user.id)

    notes = "Auto-flagged by risk engine" if assessment.flagged else "Order placed via COD"
    _best_effort(db, "status history", order_id, record_status, db, order_id, status, notes, user.id)

    _best_effort(db, "cart cleanup", order_id, clear_cart, db, cart.id)

    if assessment.flagged:
        logger.info("Order %s flagged for review. %s", order_id, assessment.admin_note())

    return CheckoutResult(
        order_id=order_id,
        status=status,
        total_amount=total_amount,
        assessment=assessment,
    )


def insert_order_items(db: Session, order_id: str, lines) -> None:
    for item, product in lines:
        db.add(OrderItem(
            id=str(uuid4()),
            order_id=order_id,
            product_id=product.id,
            quantity=item.quantity,
            price_at_purchase=product.price,
        ))
    db.commit()


def decrement_inventory(db: Session, lines) -> None:
    """Decrement stock per item. Failures are logged, never rolled back."""
    for item, product in lines:
        product_id = product.id
        try:
            updated = (
                db.query(Product)
                .filter(Product.id == product_id, Product.inventory >= item.quantity)
                .update(
                    {Product.inventory: Product.inventory - item.quantity},
                    synchronize_session=False,
                )
            )
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Inventory decrement failed for %s", product_id)
            continue

        if not updated:
            logger.error("Inventory decrement failed for %s: insufficient stock", product_id)


def record_status(
    db: Session,
    order_id: str,
    status: OrderStatus,
    notes: str | None = None,
    changed_by: str | None = None,
) -> OrderStatusHistory:
    entry = OrderStatusHistory(
        id=str(uuid4()),
        order_id=order_id,
        status=status.value,
        changed_by=changed_by,
        notes=notes,
    )
    db.add(entry)
    db.commit()
    return entry


def _increment_total_orders(db: Session, user_id: str) -> None:
    db.query(User).filter(User.id == user_id).update(
        {User.total_orders: User.total_orders + 1},
        synchronize_session=False,
    )
    db.commit()


def _delete_order(db: Session, order_id: str) -> None:
    try:
        db.query(Order).filter(Order.id == order_id).delete(synchronize_session=False)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Could not remove order %s after failed items", order_id)


def _best_effort(db: Session, step: str, order_id: str, func, *args) -> None:
    try:
        func(*args)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Checkout step '%s' failed for order %s", step, order_id)

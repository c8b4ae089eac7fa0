from sqlalchemy.orm import Session
from uuid import uuid4

from app.models.cart import Cart, CartItem
from app.models.product import Product
from app.models.user import User


def get_cart(db: Session, user_id: str) -> Cart | None:
    return db.query(Cart).filter(Cart.user_id == user_id).first()


def get_or_create_cart(db: Session, user: User) -> Cart:
    cart = get_cart(db, user.id)
    if cart:
        return cart

    cart = Cart(id=str(uuid4()), user_id=user.id)
    db.add(cart)
    db.commit()
    db.refresh(cart)
    return cart


def add_to_cart(db: Session, user: User, product_id: str, quantity: int = 1) -> CartItem:
    if quantity < 1:
        raise ValueError("Quantity must be at least 1")

    product = db.query(Product).filter(Product.id == product_id).first()
    if not product or not product.is_active:
        raise ValueError("Product not found")

    cart = get_or_create_cart(db, user)
    item = (
        db.query(CartItem)
        .filter(CartItem.cart_id == cart.id, CartItem.product_id == product_id)
        .first()
    )

    if item:
        item.quantity += quantity
    else:
        item = CartItem(
            id=str(uuid4()),
            cart_id=cart.id,
            product_id=product_id,
            quantity=quantity,
        )
        db.add(item)

    db.commit()
    db.refresh(item)
    return item


def get_cart_items(db: Session, cart_id: str) -> list[tuple[CartItem, Product]]:
    return (
        db.query(CartItem, Product)
        .join(Product, Product.id == CartItem.product_id)
        .filter(CartItem.cart_id == cart_id)
        .order_by(CartItem.created_at.asc())
        .all()
    )


def clear_cart(db: Session, cart_id: str) -> None:
    db.query(CartItem).filter(CartItem.cart_id == cart_id).delete()
    db.commit()

"""Shared pytest fixtures: an in-memory database and row factories."""

import os

os.environ["DATABASE_URL"] = "sqlite://"

from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from app.core.database import Base, SessionLocal, engine
from app.main import app
from app.models.cart import Cart, CartItem
from app.models.order import Order
from app.models.product import Product
from app.models.user import User
from app.services.risk_config import seed_default_rules
from app.utils.clock import utcnow


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    seed_default_rules(session)
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    return TestClient(app)


@pytest.fixture
def make_user(db):
    def _make_user(role="customer", age=timedelta(days=30), **fields):
        user = User(
            id=str(uuid4()),
            email=f"{uuid4().hex[:8]}@example.com",
            role=role,
            created_at=utcnow() - age,
            **fields,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def customer(make_user):
    return make_user()


@pytest.fixture
def admin(make_user):
    return make_user(role="admin")


@pytest.fixture
def make_product(db):
    def _make_product(price="500.00", inventory=10, name=None):
        name = name or f"Product {uuid4().hex[:6]}"
        product = Product(
            id=str(uuid4()),
            name=name,
            slug=name.lower().replace(" ", "-"),
            price=Decimal(price),
            inventory=inventory,
            is_active=True,
        )
        db.add(product)
        db.commit()
        db.refresh(product)
        return product

    return _make_product


@pytest.fixture
def fill_cart(db):
    def _fill_cart(user, *lines):
        cart = Cart(id=str(uuid4()), user_id=user.id)
        db.add(cart)
        for product, quantity in lines:
            db.add(CartItem(
                id=str(uuid4()),
                cart_id=cart.id,
                product_id=product.id,
                quantity=quantity,
            ))
        db.commit()
        return cart

    return _fill_cart


@pytest.fixture
def make_order(db):
    def _make_order(phone="01712345678", status="pending", age=timedelta(hours=1),
                    user_id=None, total="580.00"):
        order = Order(
            id=str(uuid4()),
            user_id=user_id,
            total_amount=Decimal(total),
            delivery_fee=Decimal("80"),
            status=status,
            phone_number=phone,
            created_at=utcnow() - age,
        )
        db.add(order)
        db.commit()
        return order

    return _make_order


@pytest.fixture
def checkout_payload():
    return {
        "phone_number": "01712345678",
        "recipient_name": "Rahim Uddin",
        "shipping_address": {
            "address": "House 12, Road 5",
            "area": "Dhanmondi",
            "city": "Dhaka",
            "district": "Dhaka",
        },
    }

from sqlalchemy import Column, String, Integer, DateTime, Numeric, Boolean
from app.core.database import Base
from app.utils.clock import utcnow


class Product(Base):
    __tablename__ = "products"

    id = Column(String, primary_key=True, index=True)
    name = Column(String, nullable=False)
    slug = Column(String, unique=True, index=True, nullable=False)

    price = Column(Numeric(10, 2), nullable=False)
    inventory = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

from sqlalchemy import Column, String, Integer, DateTime
from app.core.database import Base
from app.utils.clock import utcnow


class User(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True, index=True)
    # id from the external auth provider
    auth_id = Column(String, unique=True, nullable=True)
    email = Column(String, nullable=False)
    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)
    role = Column(String, default="customer")  # admin | customer

    # order statistics, maintained by checkout and the admin lifecycle
    total_orders = Column(Integer, default=0, nullable=False)
    delivered_orders = Column(Integer, default=0, nullable=False)
    refused_orders = Column(Integer, default=0, nullable=False)
    returned_orders = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, JSON, Text
from app.core.database import Base
from app.utils.clock import utcnow


class RiskRule(Base):
    __tablename__ = "risk_rules"

    key = Column(String, primary_key=True)
    value = Column(JSON, nullable=False)
    description = Column(Text, nullable=True)

    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class BlockedEntry(Base):
    __tablename__ = "blocked_entries"

    id = Column(String, primary_key=True, index=True)
    kind = Column(String, index=True, nullable=False)  # phone | user_id | address_keyword | ip
    value = Column(String, index=True, nullable=False)
    reason = Column(Text, nullable=True)
    severity = Column(String, default="hard_block", nullable=False)  # hard_block | flag_only

    expires_at = Column(DateTime, nullable=True)
    created_by = Column(String, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=utcnow)


class OrderRiskAssessment(Base):
    __tablename__ = "order_risk_assessments"

    order_id = Column(String, ForeignKey("orders.id", ondelete="CASCADE"), primary_key=True)

    risk_score = Column(Integer, default=0, nullable=False)
    decision = Column(String, nullable=False)
    # ordered list of {"factor": str, "points": int}
    factors = Column(JSON, nullable=False, default=list)

    assessed_at = Column(DateTime, default=utcnow)

import logging
from decimal import Decimal

from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.risk import RiskRule

logger = logging.getLogger(__name__)


# Seed rows for the risk_rules table. Values are stored as JSON.
DEFAULT_RISK_RULES = {
    "high_value_threshold": {
        "value": 5000,
        "description": "Order amount that triggers high value flag",
    },
    "max_daily_orders": {
        "value": 3,
        "description": "Max orders allowed per customer per day",
    },
    "risk_threshold_flag": {
        "value": 30,
        "description": "Score at or above which an order is flagged for review",
    },
    "risk_threshold_block": {
        "value": 70,
        "description": "Score at or above which an order is blocked",
    },
    "new_user_penalty": {
        "value": 10,
        "description": "Risk points for accounts < 24h old",
    },
    "cancellation_rate_threshold": {
        "value": 0.2,
        "description": "Ratio of refused/returned orders to trigger penalty",
    },
    "cancellation_penalty": {
        "value": 20,
        "description": "Risk points when the refusal rate threshold is reached",
    },
    "cancellation_min_orders": {
        "value": 3,
        "description": "Orders a customer needs before the refusal rate is scored",
    },
    "blocklist_flag_points": {
        "value": 30,
        "description": "Risk points for a flag_only blocklist match",
    },
}

# Fixed signal weights
HIGH_VALUE_POINTS = 20
HARD_BLOCK_POINTS = 100
NEW_ACCOUNT_HOURS = 24
VELOCITY_WINDOW_HOURS = 24
# (minimum live orders, points), highest tier first
VELOCITY_TIERS = (
    (3, 40),
    (2, 10),
)


class RiskRuleConfig(BaseModel):
    """Typed snapshot of the risk_rules table, resolved once per checkout."""

    high_value_threshold: Decimal = Field(default=Decimal("5000"), ge=0)
    max_daily_orders: int = Field(default=3, ge=0)
    risk_threshold_flag: int = Field(default=30, ge=0)
    risk_threshold_block: int = Field(default=70, ge=0)
    new_user_penalty: int = Field(default=10, ge=0)
    cancellation_rate_threshold: float = Field(default=0.2, ge=0)
    cancellation_penalty: int = Field(default=20, ge=0)
    cancellation_min_orders: int = Field(default=3, ge=1)
    blocklist_flag_points: int = Field(default=30, ge=0)

    class Config:
        frozen = True


def parse_rule_value(key: str, value):
    """Coerce a raw JSON rule value to the type of its config field.

    Raises ValueError for unknown keys or values that do not fit.
    """
    if key not in RiskRuleConfig.model_fields:
        raise ValueError(f"Unknown risk rule: {key}")
    # pydantic's ValidationError is a ValueError
    return getattr(RiskRuleConfig.model_validate({key: value}), key)


def load_risk_config(db: Session) -> RiskRuleConfig:
    try:
        rows = db.query(RiskRule).all()
    except SQLAlchemyError:
        logger.warning("Risk rules unavailable, falling back to defaults", exc_info=True)
        db.rollback()
        return RiskRuleConfig()

    values = {}
    for row in rows:
        if row.key not in RiskRuleConfig.model_fields:
            continue
        try:
            values[row.key] = parse_rule_value(row.key, row.value)
        except ValueError:
            logger.warning("Ignoring invalid risk rule %s=%r", row.key, row.value)

    return RiskRuleConfig(**values)


def seed_default_rules(db: Session) -> int:
    existing = {key for (key,) in db.query(RiskRule.key).all()}

    added = 0
    for key, rule in DEFAULT_RISK_RULES.items():
        if key in existing:
            continue
        db.add(RiskRule(key=key, value=rule["value"], description=rule["description"]))
        added += 1

    if added:
        db.commit()
        logger.info("Seeded %d default risk rules", added)
    return added

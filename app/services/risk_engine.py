"""
Order risk engine.

Scores a checkout attempt additively: every triggered signal contributes a
fixed number of points, the score is their sum, and the score is mapped to
approve / flag / block with the configured thresholds.

`evaluate` is pure: it is handed everything it needs, including the clock.
`assess_order` gathers those inputs from the database and degrades any
unreadable source to zero points instead of failing checkout.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.services.risk_config import (
    HARD_BLOCK_POINTS,
    HIGH_VALUE_POINTS,
    NEW_ACCOUNT_HOURS,
    VELOCITY_TIERS,
    VELOCITY_WINDOW_HOURS,
    RiskRuleConfig,
)
from app.services.risk_sources import (
    BlocklistMatch,
    CustomerProfile,
    count_recent_live_orders,
    find_active_blocklist_entries,
    find_address_keyword_entries,
    get_customer_profile,
)
from app.utils.clock import hours_ago, utcnow
from app.utils.enums import BlocklistKind, BlocklistSeverity, RiskDecision

logger = logging.getLogger(__name__)

# Free-text address fields searched for blocked keywords
ADDRESS_FIELDS = ("address", "area", "city", "district")

BLOCKLIST_LABELS = {
    BlocklistKind.PHONE: "Phone Number",
    BlocklistKind.USER_ID: "Account",
    BlocklistKind.ADDRESS_KEYWORD: "Address",
    BlocklistKind.IP: "IP Address",
}


@dataclass(frozen=True)
class RiskSignal:
    name: str
    points: int


@dataclass(frozen=True)
class RiskAssessment:
    score: int
    decision: RiskDecision
    signals: tuple[RiskSignal, ...]
    evaluated_at: datetime
    # sources that could not be read and were scored as zero
    degraded_sources: tuple[str, ...] = field(default=())

    @property
    def flagged(self) -> bool:
        return self.decision != RiskDecision.APPROVE

    @property
    def blocked(self) -> bool:
        return self.decision == RiskDecision.BLOCK

    def factors(self) -> list[dict]:
        return [{"factor": s.name, "points": s.points} for s in self.signals]

    def admin_note(self) -> str:
        label = "Blocked" if self.blocked else "Flagged"
        names = ", ".join(s.name for s in self.signals)
        return f"{label} (score: {self.score}): {names}"


def decide(score: int, config: RiskRuleConfig) -> RiskDecision:
    if score >= config.risk_threshold_block:
        return RiskDecision.BLOCK
    elif score >= config.risk_threshold_flag:
        return RiskDecision.FLAG
    return RiskDecision.APPROVE


# ---- signals ----

def new_account_signal(customer, now, config) -> RiskSignal | None:
    if customer is None or customer.created_at is None:
        return None
    if now - customer.created_at < timedelta(hours=NEW_ACCOUNT_HOURS):
        return RiskSignal("New Account (<24h)", config.new_user_penalty)
    return None


def high_value_signal(amount: Decimal, config) -> RiskSignal | None:
    if amount > config.high_value_threshold:
        return RiskSignal("High Value Order", HIGH_VALUE_POINTS)
    return None


def velocity_signal(recent_order_count: int | None) -> RiskSignal | None:
    count = max(recent_order_count or 0, 0)
    for minimum, points in VELOCITY_TIERS:
        if count >= minimum:
            return RiskSignal(f"High Order Velocity ({count} active)", points)
    return None


def _address_text(shipping_address) -> str:
    if not shipping_address:
        return ""
    parts = [str(shipping_address.get(name) or "") for name in ADDRESS_FIELDS]
    return " ".join(parts).casefold()


def _matches(entry: BlocklistMatch, phone, customer_id, address_text, ip_address) -> bool:
    if entry.kind == BlocklistKind.PHONE:
        return entry.value == phone
    if entry.kind == BlocklistKind.USER_ID:
        return customer_id is not None and entry.value == customer_id
    if entry.kind == BlocklistKind.IP:
        return ip_address is not None and entry.value == ip_address
    if entry.kind == BlocklistKind.ADDRESS_KEYWORD:
        keyword = entry.value.strip().casefold()
        return bool(keyword) and keyword in address_text
    return False


def blocklist_signal(
    blocklist, phone, customer_id, shipping_address, ip_address, now, config
) -> RiskSignal | None:
    address_text = _address_text(shipping_address)
    matched = [
        entry for entry in blocklist
        if entry.is_active(now) and _matches(entry, phone, customer_id, address_text, ip_address)
    ]

    for entry in matched:
        if entry.severity == BlocklistSeverity.HARD_BLOCK:
            return RiskSignal(_blocklist_factor(entry, "Blocked"), HARD_BLOCK_POINTS)
    for entry in matched:
        if entry.severity == BlocklistSeverity.FLAG_ONLY:
            return RiskSignal(_blocklist_factor(entry, "Flagged"), config.blocklist_flag_points)
    return None


def _blocklist_factor(entry: BlocklistMatch, verb: str) -> str:
    label = f"{BLOCKLIST_LABELS[entry.kind]} {verb}"
    return f"{label}: {entry.reason}" if entry.reason else label


def refusal_rate_signal(customer, config) -> RiskSignal | None:
    if customer is None or customer.total_orders < config.cancellation_min_orders:
        return None
    rate = (customer.refused_orders + customer.returned_orders) / customer.total_orders
    if rate >= config.cancellation_rate_threshold:
        return RiskSignal(f"High Refusal Rate ({rate:.0%})", config.cancellation_penalty)
    return None


# ---- evaluation ----

def evaluate(
    customer: CustomerProfile | None,
    phone: str,
    total_amount,
    shipping_address: dict | None,
    *,
    config: RiskRuleConfig,
    blocklist: list[BlocklistMatch],
    recent_order_count: int | None,
    ip_address: str | None = None,
    now: datetime | None = None,
    degraded_sources: tuple[str, ...] = (),
) -> RiskAssessment:
    now = now or utcnow()
    amount = max(Decimal(str(total_amount)), Decimal("0"))
    customer_id = customer.id if customer else None

    candidates = (
        new_account_signal(customer, now, config),
        high_value_signal(amount, config),
        velocity_signal(recent_order_count),
        blocklist_signal(blocklist, phone, customer_id, shipping_address, ip_address, now, config),
        refusal_rate_signal(customer, config),
    )
    signals = tuple(s for s in candidates if s is not None)
    score = sum(s.points for s in signals)

    return RiskAssessment(
        score=score,
        decision=decide(score, config),
        signals=signals,
        evaluated_at=now,
        degraded_sources=tuple(degraded_sources),
    )


def assess_order(
    db: Session,
    customer_id: str | None,
    phone: str,
    total_amount,
    shipping_address: dict | None,
    config: RiskRuleConfig,
    ip_address: str | None = None,
    now: datetime | None = None,
) -> RiskAssessment:
    now = now or utcnow()
    degraded = []

    def read(source, fetch, fallback):
        try:
            return fetch()
        except SQLAlchemyError:
            logger.warning("Risk source %s unavailable, scoring it as zero", source, exc_info=True)
            db.rollback()
            degraded.append(source)
            return fallback

    customer = read("customer_profile", lambda: get_customer_profile(db, customer_id), None)

    recent_orders = read(
        "order_history",
        lambda: count_recent_live_orders(db, phone, hours_ago(VELOCITY_WINDOW_HOURS, now)),
        None,
    )

    identifiers = [
        (BlocklistKind.PHONE, phone),
        (BlocklistKind.USER_ID, customer_id),
        (BlocklistKind.IP, ip_address),
    ]
    blocklist = read(
        "blocklist",
        lambda: (
            find_active_blocklist_entries(db, identifiers, now=now)
            + find_address_keyword_entries(db, now=now)
        ),
        [],
    )

    return evaluate(
        customer,
        phone,
        total_amount,
        shipping_address,
        config=config,
        blocklist=blocklist,
        recent_order_count=recent_orders,
        ip_address=ip_address,
        now=now,
        degraded_sources=tuple(degraded),
    )

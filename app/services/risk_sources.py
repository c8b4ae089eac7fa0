"""
Read-only queries the risk engine needs from the order, user and blocklist
tables. Nothing here writes.
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import or_, and_
from sqlalchemy.orm import Session

from app.models.order import Order
from app.models.risk import BlockedEntry
from app.models.user import User
from app.utils.clock import utcnow
from app.utils.enums import BlocklistKind, BlocklistSeverity, CLOSED_ORDER_STATUSES

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CustomerProfile:
    id: str
    created_at: datetime
    total_orders: int = 0
    delivered_orders: int = 0
    refused_orders: int = 0
    returned_orders: int = 0


@dataclass(frozen=True)
class BlocklistMatch:
    kind: BlocklistKind
    value: str
    severity: BlocklistSeverity
    reason: str = ""
    expires_at: datetime | None = None

    def is_active(self, now: datetime) -> bool:
        return self.expires_at is None or self.expires_at > now

    @classmethod
    def from_row(cls, row: BlockedEntry) -> "BlocklistMatch":
        return cls(
            kind=BlocklistKind(row.kind),
            value=row.value,
            severity=BlocklistSeverity(row.severity),
            reason=row.reason or "",
            expires_at=row.expires_at,
        )


def _to_matches(rows) -> list[BlocklistMatch]:
    matches = []
    for row in rows:
        try:
            matches.append(BlocklistMatch.from_row(row))
        except ValueError:
            logger.warning(
                "Skipping blocklist entry %s with unknown kind/severity %r/%r",
                row.id, row.kind, row.severity,
            )
    return matches


def _active_filter(now: datetime):
    return or_(BlockedEntry.expires_at.is_(None), BlockedEntry.expires_at > now)


def find_active_blocklist_entries(
    db: Session,
    identifiers: list[tuple[BlocklistKind, str]],
    severity: BlocklistSeverity | None = None,
    now: datetime | None = None,
) -> list[BlocklistMatch]:
    """Active entries matching any of the given (kind, value) pairs."""
    pairs = [(kind, value) for kind, value in identifiers if value]
    if not pairs:
        return []

    query = db.query(BlockedEntry).filter(
        _active_filter(now or utcnow()),
        or_(*[
            and_(BlockedEntry.kind == kind.value, BlockedEntry.value == value)
            for kind, value in pairs
        ]),
    )
    if severity is not None:
        query = query.filter(BlockedEntry.severity == severity.value)

    rows = query.order_by(BlockedEntry.created_at.asc(), BlockedEntry.id.asc()).all()
    return _to_matches(rows)


def find_address_keyword_entries(db: Session, now: datetime | None = None) -> list[BlocklistMatch]:
    rows = (
        db.query(BlockedEntry)
        .filter(
            BlockedEntry.kind == BlocklistKind.ADDRESS_KEYWORD.value,
            _active_filter(now or utcnow()),
        )
        .order_by(BlockedEntry.created_at.asc(), BlockedEntry.id.asc())
        .all()
    )
    return _to_matches(rows)


def count_recent_live_orders(
    db: Session,
    phone: str,
    since: datetime,
    excluded_statuses=CLOSED_ORDER_STATUSES,
) -> int:
    """Orders for a phone created since `since` that are not yet closed."""
    return (
        db.query(Order)
        .filter(
            Order.phone_number == phone,
            Order.created_at >= since,
            Order.status.notin_([s.value for s in excluded_statuses]),
        )
        .count()
    )


def count_orders_since(db: Session, user_id: str, since: datetime) -> int:
    return (
        db.query(Order)
        .filter(Order.user_id == user_id, Order.created_at >= since)
        .count()
    )


def get_customer_profile(db: Session, user_id: str | None) -> CustomerProfile | None:
    if not user_id:
        return None

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        return None

    return CustomerProfile(
        id=user.id,
        created_at=user.created_at,
        total_orders=user.total_orders or 0,
        delivered_orders=user.delivered_orders or 0,
        refused_orders=user.refused_orders or 0,
        returned_orders=user.returned_orders or 0,
    )

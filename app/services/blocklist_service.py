import logging
from datetime import datetime
from uuid import uuid4

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.models.risk import BlockedEntry, RiskRule
from app.services.risk_config import DEFAULT_RISK_RULES, load_risk_config, parse_rule_value
from app.utils.clock import to_naive_utc, utcnow
from app.utils.enums import BlocklistKind, BlocklistSeverity
from app.utils.phone import normalize_phone

logger = logging.getLogger(__name__)


def add_blocklist_entry(
    db: Session,
    kind: BlocklistKind,
    value: str,
    severity: BlocklistSeverity = BlocklistSeverity.HARD_BLOCK,
    reason: str | None = None,
    expires_at: datetime | None = None,
    created_by: str | None = None,
) -> BlockedEntry:
    value = value.strip()
    if not value:
        raise ValueError("Blocklist value is required")
    if kind == BlocklistKind.PHONE:
        value = normalize_phone(value)

    entry = BlockedEntry(
        id=str(uuid4()),
        kind=kind.value,
        value=value,
        severity=severity.value,
        reason=reason,
        expires_at=to_naive_utc(expires_at),
        created_by=created_by,
    )
    db.add(entry)
    db.commit()
    db.refresh(entry)

    logger.info("Blocklist entry added: %s=%s (%s)", kind.value, value, severity.value)
    return entry


def remove_blocklist_entry(db: Session, entry_id: str) -> None:
    entry = db.query(BlockedEntry).filter(BlockedEntry.id == entry_id).first()
    if not entry:
        raise ValueError("Blocklist entry not found")

    kind, value = entry.kind, entry.value
    db.delete(entry)
    db.commit()
    logger.info("Blocklist entry removed: %s=%s", kind, value)


def list_blocklist_entries(
    db: Session,
    kind: BlocklistKind | None = None,
    include_expired: bool = False,
) -> list[BlockedEntry]:
    query = db.query(BlockedEntry)

    if kind is not None:
        query = query.filter(BlockedEntry.kind == kind.value)
    if not include_expired:
        query = query.filter(
            or_(BlockedEntry.expires_at.is_(None), BlockedEntry.expires_at > utcnow())
        )

    return query.order_by(BlockedEntry.created_at.desc()).all()


def list_risk_rules(db: Session) -> list[RiskRule]:
    return db.query(RiskRule).order_by(RiskRule.key.asc()).all()


def set_risk_rule(db: Session, key: str, value, description: str | None = None) -> RiskRule:
    # raises ValueError for unknown keys and values of the wrong shape
    parsed = parse_rule_value(key, value)

    merged = load_risk_config(db).model_dump()
    merged[key] = parsed
    if merged["risk_threshold_flag"] >= merged["risk_threshold_block"]:
        raise ValueError("risk_threshold_flag must be lower than risk_threshold_block")

    rule = db.query(RiskRule).filter(RiskRule.key == key).first()
    if rule:
        rule.value = value
        if description is not None:
            rule.description = description
    else:
        rule = RiskRule(
            key=key,
            value=value,
            description=description or DEFAULT_RISK_RULES.get(key, {}).get("description"),
        )
        db.add(rule)

    db.commit()
    db.refresh(rule)
    logger.info("Risk rule %s set to %r", key, value)
    return rule

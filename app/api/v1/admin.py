import math

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.security import require_admin
from app.models.user import User
from app.schemas.order import (
    DashboardStats,
    OrderCancel,
    OrderListResponse,
    OrderResponse,
    OrderStatusUpdate,
)
from app.schemas.risk import (
    BlocklistEntryCreate,
    BlocklistEntryResponse,
    RiskRuleResponse,
    RiskRuleUpdate,
    StoredRiskAssessmentResponse,
)
from app.services import blocklist_service, order_service
from app.services.risk_persistence import get_risk_assessment
from app.utils.enums import BlocklistKind, OrderStatus

router = APIRouter(prefix="/admin")


# Orders
@router.get("/orders", response_model=OrderListResponse)
async def list_orders(
    status: OrderStatus | None = None,
    flagged_only: bool = False,
    page: int = Query(default=1, ge=1),
    per_page: int = Query(default=20, ge=1, le=100),
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    orders, total = order_service.list_orders(db, status, flagged_only, page, per_page)
    return {
        "orders": orders,
        "total": total,
        "page": page,
        "per_page": per_page,
        "total_pages": math.ceil(total / per_page),
    }


@router.post("/orders/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    order_id: str,
    payload: OrderStatusUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        return order_service.update_order_status(
            db, order_id, payload.status, admin.id, payload.notes
        )
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/orders/{order_id}/confirm", response_model=OrderResponse)
async def confirm_order(
    order_id: str,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        return order_service.confirm_order(db, order_id, admin.id)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/orders/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order(
    order_id: str,
    payload: OrderCancel | None = None,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    reason = payload.reason if payload else None
    try:
        return order_service.cancel_order(db, order_id, admin.id, reason)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/orders/{order_id}/risk-assessment", response_model=StoredRiskAssessmentResponse)
async def get_order_risk(
    order_id: str,
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    assessment = get_risk_assessment(db, order_id)
    if not assessment:
        raise HTTPException(status_code=404, detail="No risk assessment found")
    return assessment


# Blocklist
@router.get("/blocklist", response_model=list[BlocklistEntryResponse])
async def list_blocklist(
    kind: BlocklistKind | None = None,
    include_expired: bool = False,
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return blocklist_service.list_blocklist_entries(db, kind, include_expired)


@router.post("/blocklist", response_model=BlocklistEntryResponse, status_code=201)
async def add_blocklist_entry(
    payload: BlocklistEntryCreate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        return blocklist_service.add_blocklist_entry(
            db,
            payload.kind,
            payload.value,
            payload.severity,
            payload.reason,
            payload.expires_at,
            created_by=admin.id,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/blocklist/{entry_id}", status_code=204)
async def remove_blocklist_entry(
    entry_id: str,
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        blocklist_service.remove_blocklist_entry(db, entry_id)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))


# Risk rules
@router.get("/risk-rules", response_model=list[RiskRuleResponse])
async def list_risk_rules(
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return blocklist_service.list_risk_rules(db)


@router.put("/risk-rules/{key}", response_model=RiskRuleResponse)
async def set_risk_rule(
    key: str,
    payload: RiskRuleUpdate,
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        return blocklist_service.set_risk_rule(db, key, payload.value, payload.description)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/dashboard", response_model=DashboardStats)
async def dashboard(
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return order_service.get_dashboard_stats(db)

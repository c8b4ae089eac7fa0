from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.security import require_admin
from app.schemas.risk import RiskAssessmentResponse, RiskEvaluationRequest
from app.services.risk_config import load_risk_config
from app.services.risk_engine import assess_order

router = APIRouter()


@router.post("/risk/evaluate", response_model=RiskAssessmentResponse)
async def evaluate_risk(
    payload: RiskEvaluationRequest,
    _admin=Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Dry-run scoring. Nothing is persisted."""
    address = payload.shipping_address.model_dump() if payload.shipping_address else None
    assessment = assess_order(
        db,
        payload.customer_id,
        payload.phone_number,
        payload.total_amount,
        address,
        load_risk_config(db),
        ip_address=payload.ip_address,
    )
    return RiskAssessmentResponse(
        score=assessment.score,
        decision=assessment.decision,
        factors=assessment.factors(),
        evaluated_at=assessment.evaluated_at,
        degraded_sources=list(assessment.degraded_sources),
    )

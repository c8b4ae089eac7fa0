from sqlalchemy.orm import Session
from app.models.risk import OrderRiskAssessment
from app.services.risk_engine import RiskAssessment


def save_risk_assessment(
    db: Session,
    order_id: str,
    assessment: RiskAssessment,
) -> OrderRiskAssessment:
    risk = OrderRiskAssessment(
        order_id=order_id,
        risk_score=assessment.score,
        decision=assessment.decision.value,
        factors=assessment.factors(),
        assessed_at=assessment.evaluated_at,
    )

    db.add(risk)
    db.commit()
    return risk


def get_risk_assessment(db: Session, order_id: str) -> OrderRiskAssessment | None:
    return (
        db.query(OrderRiskAssessment)
        .filter(OrderRiskAssessment.order_id == order_id)
        .first()
    )

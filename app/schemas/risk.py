from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import Any

from app.schemas.checkout import ShippingAddress
from app.utils.enums import BlocklistKind, BlocklistSeverity, RiskDecision
from app.utils.phone import PHONE_PATTERN, normalize_phone


class RiskFactor(BaseModel):
    factor: str
    points: int


class RiskEvaluationRequest(BaseModel):
    phone_number: str = Field(pattern=PHONE_PATTERN)
    total_amount: float = Field(ge=0)
    customer_id: str | None = None
    ip_address: str | None = None
    shipping_address: ShippingAddress | None = None

    @field_validator("phone_number")
    @classmethod
    def national_phone(cls, value: str) -> str:
        return normalize_phone(value)


class RiskAssessmentResponse(BaseModel):
    score: int
    decision: RiskDecision
    factors: list[RiskFactor]
    evaluated_at: datetime
    degraded_sources: list[str] = []


class StoredRiskAssessmentResponse(BaseModel):
    order_id: str
    risk_score: int
    decision: RiskDecision
    factors: list[RiskFactor]
    assessed_at: datetime

    class Config:
        from_attributes = True


class BlocklistEntryCreate(BaseModel):
    kind: BlocklistKind
    value: str = Field(min_length=1)
    severity: BlocklistSeverity = BlocklistSeverity.HARD_BLOCK
    reason: str | None = None
    expires_at: datetime | None = None


class BlocklistEntryResponse(BaseModel):
    id: str
    kind: BlocklistKind
    value: str
    severity: BlocklistSeverity
    reason: str | None
    expires_at: datetime | None
    created_by: str | None
    created_at: datetime

    class Config:
        from_attributes = True


class RiskRuleUpdate(BaseModel):
    value: Any
    description: str | None = None


class RiskRuleResponse(BaseModel):
    key: str
    value: Any
    description: str | None
    updated_at: datetime | None

    class Config:
        from_attributes = True

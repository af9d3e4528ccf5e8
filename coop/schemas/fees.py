import datetime
from decimal import Decimal
from typing import Optional, List, Dict

from pydantic import BaseModel, Field, ConfigDict

from coop.models.fee import (
    ApplicableTo,
    FeeApplicationStatus,
    FeeFrequency,
    FeeRuleStatus,
    FeeType,
    PaymentMethod,
)


class FeeRuleCreateRequest(BaseModel):
    name: str = Field(..., max_length=255, examples=["Land use fee"])
    description: Optional[str] = None
    type: FeeType = Field(..., examples=["recurring"])
    frequency: Optional[FeeFrequency] = Field(default=None, examples=["monthly"])
    # 0 이하 금액은 service 에서 400으로 거절
    amount: Decimal = Field(..., examples=["5000.00"])
    applicable_to: ApplicableTo = Field(..., examples=["unit"])
    target_value: Optional[str] = Field(default=None, max_length=50, examples=["7"])
    effective_date: datetime.date = Field(..., examples=["2026-11-01"])
    status: FeeRuleStatus = FeeRuleStatus.DRAFT


class FeeRuleUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = None
    type: Optional[FeeType] = None
    frequency: Optional[FeeFrequency] = None
    amount: Optional[Decimal] = None
    applicable_to: Optional[ApplicableTo] = None
    target_value: Optional[str] = Field(default=None, max_length=50)
    effective_date: Optional[datetime.date] = None


class FeeRuleScheduleRequest(BaseModel):
    effective_date: datetime.date = Field(..., examples=["2026-11-01"])


class FeeRuleResponse(BaseModel):
    id: int
    name: str
    description: Optional[str]
    type: FeeType
    frequency: Optional[FeeFrequency]
    amount: Decimal
    applicable_to: ApplicableTo
    target_value: Optional[str]
    effective_date: datetime.date
    status: FeeRuleStatus
    last_generated_on: Optional[datetime.date]
    last_period: Optional[str]
    created_by: Optional[int]
    created_at: datetime.datetime
    is_deleted: bool

    model_config = ConfigDict(from_attributes=True)


class UnitAssignmentItem(BaseModel):
    unit_id: int = Field(..., examples=[7])
    # 비우면 규칙 금액으로 청구
    custom_amount: Optional[Decimal] = Field(default=None, examples=["3500.00"])


class UnitAssignmentRequest(BaseModel):
    units: List[UnitAssignmentItem]


class UnitAssignmentResponse(BaseModel):
    id: int
    fee_rule_id: int
    unit_id: int
    custom_amount: Optional[Decimal]
    is_active: bool
    created_at: datetime.datetime
    updated_at: datetime.datetime

    model_config = ConfigDict(from_attributes=True)


class FeeApplicationResponse(BaseModel):
    id: int
    fee_rule_id: int
    member_id: int
    period: str
    amount: Decimal
    due_date: datetime.date
    status: FeeApplicationStatus
    paid_date: Optional[datetime.datetime]
    payment_method: Optional[PaymentMethod]
    payment_reference: Optional[str]
    notes: Optional[str]
    created_at: datetime.datetime

    model_config = ConfigDict(from_attributes=True)


class PaymentCreateRequest(BaseModel):
    method: PaymentMethod = PaymentMethod.MOBILE_MONEY
    reference: Optional[str] = Field(default=None, max_length=100)
    notes: Optional[str] = None
    paid_at: Optional[datetime.datetime] = None


class CancelRequest(BaseModel):
    reason: Optional[str] = None


class GenerationResultResponse(BaseModel):
    rule_id: int
    period: Optional[str]
    created: int = 0
    skipped: int = 0


class ActivationResultResponse(BaseModel):
    activated_count: int = 0
    rule_ids: List[int] = []
    dry_run: bool = False
    errors: List[str] = []


class SweepResultResponse(BaseModel):
    as_of: datetime.date
    activated_count: int = 0
    rules_processed: int = 0
    created: int = 0
    skipped: int = 0
    overdue_marked: int = 0
    details: List[GenerationResultResponse] = []
    errors: List[str] = []


class StatusTotals(BaseModel):
    count: int = 0
    amount: Decimal = Decimal("0.00")


class FeeRuleSummaryResponse(BaseModel):
    rule_id: int
    total_count: int = 0
    by_status: Dict[FeeApplicationStatus, StatusTotals]


class MyFeeSummaryResponse(BaseModel):
    member_id: int
    outstanding_total: Decimal = Decimal("0.00")  # 누적 미납 (pending + overdue)
    counts: Dict[FeeApplicationStatus, int]

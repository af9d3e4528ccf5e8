import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from coop.db.base import Base
from coop.models.user import enum_values


class FeeType(str, Enum):
    ONE_TIME = "one_time"
    RECURRING = "recurring"


class FeeFrequency(str, Enum):
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    ANNUAL = "annual"


class ApplicableTo(str, Enum):
    ALL = "all"
    ROLE = "role"
    UNIT = "unit"
    ZONE = "zone"
    ASSIGNED_UNITS = "assigned_units"


class FeeRuleStatus(str, Enum):
    DRAFT = "draft"
    SCHEDULED = "scheduled"
    ACTIVE = "active"
    INACTIVE = "inactive"


class FeeApplicationStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class PaymentMethod(str, Enum):
    CASH = "cash"
    MOBILE_MONEY = "mobile_money"
    BANK_TRANSFER = "bank_transfer"
    OTHER = "other"


# 일회성 규칙은 규칙 수명 전체가 하나의 청구 기간
ONE_TIME_PERIOD = "ONCE"


class FeeRule(Base):
    """관리자가 정의하는 회비 정책.

    applicable_to + target_value:
      - all  : target_value 없음
      - role : 'member' / 'unit_leader' / 'zone_leader'
      - unit : units.id (문자열)
      - zone : zones.id (문자열)
      - assigned_units : target_value 없음, fee_rule_unit_assignments 의 활성 단위
    대상 참조에 FK를 두지 않는다. 단위/구역이 사라지면 적용 대상이 빈 집합이 될 뿐이다.

    last_generated_on / last_period 는 마지막 청구 생성 실행의 기준일과 기간.
    """

    __tablename__ = "fee_rules"
    __table_args__ = (
        Index("ix_fee_rules_status_effective_date", "status", "effective_date"),
        Index("ix_fee_rules_is_deleted", "is_deleted"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    type: Mapped[FeeType] = mapped_column(
        SAEnum(FeeType, name="fee_type", values_callable=enum_values), nullable=False
    )
    frequency: Mapped[FeeFrequency | None] = mapped_column(
        SAEnum(FeeFrequency, name="fee_frequency", values_callable=enum_values), nullable=True
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    applicable_to: Mapped[ApplicableTo] = mapped_column(
        SAEnum(ApplicableTo, name="fee_applicable_to", values_callable=enum_values), nullable=False
    )
    target_value: Mapped[str | None] = mapped_column(String(50), nullable=True)

    effective_date: Mapped[datetime.date] = mapped_column(Date, nullable=False)
    status: Mapped[FeeRuleStatus] = mapped_column(
        SAEnum(FeeRuleStatus, name="fee_rule_status", values_callable=enum_values),
        nullable=False,
        default=FeeRuleStatus.DRAFT,
    )

    last_generated_on: Mapped[datetime.date | None] = mapped_column(Date, nullable=True)
    last_period: Mapped[str | None] = mapped_column(String(7), nullable=True)

    created_by: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), default=datetime.datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        default=datetime.datetime.utcnow,
        onupdate=datetime.datetime.utcnow,
        nullable=False,
    )

    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    deleted_at: Mapped[datetime.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class FeeApplication(Base):
    """회원 1명 x 규칙 1개 x 청구 기간 1개에 대한 실제 청구 레코드.

    period: 'YYYY-MM' / 'YYYY-Qn' / 'YYYY' / 'ONCE'
    (fee_rule_id, member_id, period) 유니크 제약이 중복 청구를 막는다.
    삭제하지 않고 cancelled 로만 종료한다.
    """

    __tablename__ = "fee_applications"
    __table_args__ = (
        UniqueConstraint("fee_rule_id", "member_id", "period", name="uq_fee_applications_rule_member_period"),
        Index("ix_fee_applications_member_id_status", "member_id", "status"),
        Index("ix_fee_applications_fee_rule_id_status", "fee_rule_id", "status"),
        Index("ix_fee_applications_due_date", "due_date"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    fee_rule_id: Mapped[int] = mapped_column(ForeignKey("fee_rules.id"), nullable=False)
    member_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    period: Mapped[str] = mapped_column(String(7), nullable=False)

    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    due_date: Mapped[datetime.date] = mapped_column(Date, nullable=False)

    status: Mapped[FeeApplicationStatus] = mapped_column(
        SAEnum(FeeApplicationStatus, name="fee_application_status", values_callable=enum_values),
        nullable=False,
        default=FeeApplicationStatus.PENDING,
    )

    paid_date: Mapped[datetime.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    payment_method: Mapped[PaymentMethod | None] = mapped_column(
        SAEnum(PaymentMethod, name="payment_method", values_callable=enum_values), nullable=True
    )
    payment_reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), default=datetime.datetime.utcnow, nullable=False
    )


class FeeRuleUnitAssignment(Base):
    """규칙 1개를 여러 단위에 배정하고 단위별 금액(custom_amount)을 덮어쓰는 레코드.

    - applicable_to = assigned_units 규칙은 활성 배정 단위의 조합원이 대상
    - custom_amount 가 있으면 대상 방식과 무관하게 해당 단위 조합원의 청구 금액으로 사용
    - 배정 해제는 삭제 대신 is_active = False
    """

    __tablename__ = "fee_rule_unit_assignments"
    __table_args__ = (
        UniqueConstraint("fee_rule_id", "unit_id", name="uq_fee_rule_unit_assignments_rule_unit"),
        Index("ix_fee_rule_unit_assignments_unit_id_is_active", "unit_id", "is_active"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    fee_rule_id: Mapped[int] = mapped_column(ForeignKey("fee_rules.id", ondelete="CASCADE"), nullable=False)
    unit_id: Mapped[int] = mapped_column(ForeignKey("units.id", ondelete="CASCADE"), nullable=False)
    custom_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), default=datetime.datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        default=datetime.datetime.utcnow,
        onupdate=datetime.datetime.utcnow,
        nullable=False,
    )

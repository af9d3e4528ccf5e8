"""
services/fee_rules.py

회비 규칙(FeeRule) 관리 비즈니스 로직 모음.

관리자 API가 호출하는 규칙 생성 / 수정 / 삭제 / 조회와
상태 전이(예약, 활성화, 비활성화), 규칙별 청구 현황 집계를 담당한다.

상태 전이:
- draft     → scheduled (schedule)
- inactive  → scheduled (schedule)
- scheduled → scheduled (일자 재예약)
- scheduled → active    (스케줄러 또는 관리자 activate)
- active    → inactive  (deactivate)
- scheduled → inactive  (deactivate)

설계 원칙:
- HTTP / FastAPI 의존성 없음
- 트랜잭션 제어는 라우터에서 수행
- 입력 검증 실패는 ValidationError, 없는 규칙은 NotFoundError,
  허용되지 않는 전이는 InvalidStateError

관련 파일:
- coop.models.fee           : FeeRule 모델
- coop.services.fee_targets : 적용 대상 형식 검증
- coop.routers.admin_fees   : 관리자 API

"""

import datetime
import logging
from decimal import Decimal, InvalidOperation

from sqlalchemy import func, select, desc
from sqlalchemy.orm import Session

from coop.core.errors import InvalidStateError, NotFoundError, ValidationError
from coop.models.audit_log import AuditAction
from coop.models.fee import (
    ApplicableTo,
    FeeApplication,
    FeeApplicationStatus,
    FeeFrequency,
    FeeRule,
    FeeRuleStatus,
    FeeType,
)
from coop.services.audit_log import write_audit_log
from coop.services.fee_targets import parse_target, target_exists

logger = logging.getLogger(__name__)

CREATABLE_STATUSES = (FeeRuleStatus.DRAFT, FeeRuleStatus.SCHEDULED)
# amount 컬럼이 Numeric(10, 2) 이므로 정수부 8자리까지
MAX_AMOUNT = Decimal("100000000")
UPDATABLE_FIELDS = (
    "name",
    "description",
    "type",
    "frequency",
    "amount",
    "applicable_to",
    "target_value",
    "effective_date",
)


def utc_today() -> datetime.date:
    return datetime.datetime.now(datetime.timezone.utc).date()


def validate_amount(amount) -> Decimal:
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError):
        raise ValidationError("amount must be a number")
    if not value.is_finite() or value <= 0:
        raise ValidationError("amount must be greater than 0")
    value = value.quantize(Decimal("0.01"))
    if value >= MAX_AMOUNT:
        raise ValidationError(f"amount must be less than {MAX_AMOUNT}")
    return value


def _validate_schedule(fee_type: FeeType, frequency: FeeFrequency | None) -> FeeFrequency | None:
    if fee_type == FeeType.RECURRING:
        if frequency is None:
            raise ValidationError("frequency is required for recurring fee rules")
        return FeeFrequency(frequency)
    # 일회성 규칙에는 주기가 없음
    return None


def _validate_target(db: Session, applicable_to: ApplicableTo, target_value) -> str | None:
    if target_value is not None:
        target_value = str(target_value).strip() or None
    try:
        target = parse_target(applicable_to, target_value)
    except ValueError as e:
        raise ValidationError(str(e))
    if not target_exists(db, target):
        raise ValidationError(f"{ApplicableTo(applicable_to).value} '{target_value}' does not exist")
    return target_value


def _validate_scheduled_date(effective_date: datetime.date, today: datetime.date) -> None:
    if effective_date < today:
        raise ValidationError("effective_date must be today or later for a scheduled fee rule")


"""
회비 규칙 단건 조회

- 삭제(soft delete)된 규칙은 include_deleted=True 일 때만 조회
- 없으면 NotFoundError

"""

def get_fee_rule(db: Session, rule_id: int, *, include_deleted: bool = False) -> FeeRule:
    rule = db.get(FeeRule, rule_id)
    if not rule or (rule.is_deleted and not include_deleted):
        raise NotFoundError("fee rule not found")
    return rule


def list_fee_rules(
    db: Session,
    *,
    status: FeeRuleStatus | None = None,
    include_deleted: bool = False,
) -> list[FeeRule]:
    stmt = select(FeeRule)
    if status is not None:
        stmt = stmt.where(FeeRule.status == status)
    if not include_deleted:
        stmt = stmt.where(FeeRule.is_deleted.is_(False))
    return list(db.scalars(stmt.order_by(desc(FeeRule.created_at), desc(FeeRule.id))).all())


"""
회비 규칙 생성

- 생성 시 상태는 draft 또는 scheduled 만 허용
- scheduled 는 오늘 이후(오늘 포함) 시행일 필요
- 대상(role / unit / zone) 존재 여부 검증

"""

def create_fee_rule(
    db: Session,
    *,
    name: str,
    type: FeeType,
    amount,
    applicable_to: ApplicableTo,
    effective_date: datetime.date,
    frequency: FeeFrequency | None = None,
    target_value=None,
    description: str | None = None,
    status: FeeRuleStatus = FeeRuleStatus.DRAFT,
    created_by: int | None = None,
    today: datetime.date | None = None,
) -> FeeRule:
    today = today or utc_today()

    if not name or not name.strip():
        raise ValidationError("name is required")

    status = FeeRuleStatus(status)
    if status not in CREATABLE_STATUSES:
        raise ValidationError("a new fee rule must be created as 'draft' or 'scheduled'")
    if status == FeeRuleStatus.SCHEDULED:
        _validate_scheduled_date(effective_date, today)

    fee_type = FeeType(type)
    rule = FeeRule(
        name=name.strip(),
        description=description,
        type=fee_type,
        frequency=_validate_schedule(fee_type, frequency),
        amount=validate_amount(amount),
        applicable_to=ApplicableTo(applicable_to),
        target_value=_validate_target(db, applicable_to, target_value),
        effective_date=effective_date,
        status=status,
        created_by=created_by,
    )
    db.add(rule)
    db.flush()

    write_audit_log(
        db,
        action=AuditAction.CREATE_RULE,
        actor_id=created_by,
        fee_rule_id=rule.id,
        after_status=rule.status,
    )
    logger.info("Fee rule %s created (%s, status=%s)", rule.id, rule.name, rule.status.value)
    return rule


"""
회비 규칙 수정

- 상태(status)는 수정 불가 → schedule / activate / deactivate 사용
- 변경된 금액은 이후 생성되는 청구에만 반영 (기존 청구 불변)
- 모든 필드를 합친 결과로 재검증

"""

def update_fee_rule(
    db: Session,
    *,
    rule_id: int,
    changes: dict,
    actor_id: int | None = None,
    today: datetime.date | None = None,
) -> FeeRule:
    today = today or utc_today()
    rule = get_fee_rule(db, rule_id)

    unknown = set(changes) - set(UPDATABLE_FIELDS)
    if unknown:
        raise ValidationError(f"fields cannot be updated: {', '.join(sorted(unknown))}")

    merged = {field: getattr(rule, field) for field in UPDATABLE_FIELDS}
    merged.update(changes)

    if not merged["name"] or not str(merged["name"]).strip():
        raise ValidationError("name is required")

    fee_type = FeeType(merged["type"])
    frequency = _validate_schedule(fee_type, merged["frequency"])
    amount = validate_amount(merged["amount"])
    applicable_to = ApplicableTo(merged["applicable_to"])

    # 대상이 바뀌지 않았다면 생성 이후 사라진 참조도 그대로 허용
    target_changed = "applicable_to" in changes or "target_value" in changes
    if target_changed:
        target_value = _validate_target(db, applicable_to, merged["target_value"])
    else:
        target_value = rule.target_value

    if rule.status == FeeRuleStatus.SCHEDULED and "effective_date" in changes:
        _validate_scheduled_date(merged["effective_date"], today)

    rule.name = str(merged["name"]).strip()
    rule.description = merged["description"]
    rule.type = fee_type
    rule.frequency = frequency
    rule.amount = amount
    rule.applicable_to = applicable_to
    rule.target_value = target_value
    rule.effective_date = merged["effective_date"]
    db.flush()

    write_audit_log(
        db,
        action=AuditAction.UPDATE_RULE,
        actor_id=actor_id,
        fee_rule_id=rule.id,
        before_status=rule.status,
        after_status=rule.status,
    )
    return rule


"""
회비 규칙 삭제 (Soft Delete)

- is_deleted / deleted_at 설정, 스케줄러 대상에서 제외
- 이미 생성된 청구는 그대로 유지

"""

def delete_fee_rule(db: Session, *, rule_id: int, actor_id: int | None = None) -> FeeRule:
    rule = get_fee_rule(db, rule_id)
    rule.is_deleted = True
    rule.deleted_at = datetime.datetime.now(datetime.timezone.utc)
    db.flush()

    write_audit_log(
        db,
        action=AuditAction.DELETE_RULE,
        actor_id=actor_id,
        fee_rule_id=rule.id,
        before_status=rule.status,
        after_status=rule.status,
    )
    logger.info("Fee rule %s deleted", rule.id)
    return rule


"""
회비 규칙 시행 예약

- draft / inactive / scheduled → scheduled
- active 규칙은 이미 시행 중이므로 InvalidStateError
- 시행일은 오늘 이후(오늘 포함)

"""

def schedule_fee_rule(
    db: Session,
    *,
    rule_id: int,
    effective_date: datetime.date,
    actor_id: int | None = None,
    today: datetime.date | None = None,
) -> FeeRule:
    today = today or utc_today()
    rule = get_fee_rule(db, rule_id)

    if rule.status == FeeRuleStatus.ACTIVE:
        raise InvalidStateError("an active fee rule cannot be scheduled; deactivate it first")
    _validate_scheduled_date(effective_date, today)

    before = rule.status
    rule.status = FeeRuleStatus.SCHEDULED
    rule.effective_date = effective_date
    db.flush()

    write_audit_log(
        db,
        action=AuditAction.SCHEDULE_RULE,
        actor_id=actor_id,
        fee_rule_id=rule.id,
        before_status=before,
        after_status=rule.status,
    )
    logger.info("Fee rule %s scheduled for %s", rule.id, effective_date)
    return rule


"""
관리자에 의한 즉시 활성화

- scheduled 규칙만 활성화 가능 (그 외 InvalidStateError)
- 시행일이 미래라면 오늘로 당겨서 즉시 청구 대상이 되도록 함

"""

def activate_fee_rule(
    db: Session,
    *,
    rule_id: int,
    actor_id: int | None = None,
    today: datetime.date | None = None,
) -> FeeRule:
    today = today or utc_today()
    rule = get_fee_rule(db, rule_id)

    if rule.status != FeeRuleStatus.SCHEDULED:
        raise InvalidStateError(f"only scheduled fee rules can be activated (status is '{rule.status.value}')")

    before = rule.status
    rule.status = FeeRuleStatus.ACTIVE
    if rule.effective_date > today:
        rule.effective_date = today
    db.flush()

    write_audit_log(
        db,
        action=AuditAction.ACTIVATE_RULE,
        actor_id=actor_id,
        fee_rule_id=rule.id,
        before_status=before,
        after_status=rule.status,
    )
    logger.info("Fee rule %s activated by admin %s", rule.id, actor_id)
    return rule


"""
회비 규칙 비활성화

- active / scheduled → inactive
- 이후 청구 생성만 중단, 기존 청구는 영향 없음

"""

def deactivate_fee_rule(db: Session, *, rule_id: int, actor_id: int | None = None) -> FeeRule:
    rule = get_fee_rule(db, rule_id)

    if rule.status not in (FeeRuleStatus.ACTIVE, FeeRuleStatus.SCHEDULED):
        raise InvalidStateError(f"fee rule is not active or scheduled (status is '{rule.status.value}')")

    before = rule.status
    rule.status = FeeRuleStatus.INACTIVE
    db.flush()

    write_audit_log(
        db,
        action=AuditAction.DEACTIVATE_RULE,
        actor_id=actor_id,
        fee_rule_id=rule.id,
        before_status=before,
        after_status=rule.status,
    )
    logger.info("Fee rule %s deactivated", rule.id)
    return rule


"""
규칙별 청구 현황 집계 (관리자 대시보드)

- 상태별 건수 / 금액 합계
- 청구가 없는 상태도 0으로 채워서 반환

"""

def rule_summary(db: Session, *, rule_id: int) -> dict:
    rule = get_fee_rule(db, rule_id, include_deleted=True)

    rows = db.execute(
        select(
            FeeApplication.status,
            func.count(FeeApplication.id),
            func.coalesce(func.sum(FeeApplication.amount), 0),
        )
        .where(FeeApplication.fee_rule_id == rule.id)
        .group_by(FeeApplication.status)
    ).all()

    by_status = {s.value: {"count": 0, "amount": Decimal("0.00")} for s in FeeApplicationStatus}
    for status, count, amount in rows:
        by_status[FeeApplicationStatus(status).value] = {
            "count": int(count),
            "amount": Decimal(str(amount)).quantize(Decimal("0.01")),
        }

    return {
        "rule_id": rule.id,
        "total_count": sum(v["count"] for v in by_status.values()),
        "by_status": by_status,
    }

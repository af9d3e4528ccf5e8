"""
services/fee_assignments.py

회비 규칙 ↔ 단위 배정(FeeRuleUnitAssignment) 관리.

하나의 규칙을 여러 단위에 배정하고, 단위마다 청구 금액(custom_amount)을
따로 지정할 수 있다.

- applicable_to = assigned_units 규칙은 활성 배정 단위의 조합원에게 청구
- custom_amount 가 있는 활성 배정은 규칙 대상 방식과 무관하게
  해당 단위 조합원의 청구 금액을 덮어씀 (없으면 규칙 금액)
- 이미 생성된 청구 금액은 바뀌지 않음

설계 원칙:
- 같은 (규칙, 단위) 배정은 1건 → 재배정은 금액 갱신 + 재활성화
- 해제는 삭제 대신 is_active = False
- 트랜잭션 제어는 라우터에서 수행

관련 파일:
- coop.services.fee_targets    : assigned_units 대상 계산
- coop.services.fee_generation : 단위별 금액 적용

"""

import logging
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from coop.core.errors import NotFoundError, ValidationError
from coop.models.audit_log import AuditAction
from coop.models.fee import FeeRuleUnitAssignment
from coop.models.unit import Unit
from coop.services.audit_log import write_audit_log
from coop.services.fee_rules import get_fee_rule, validate_amount

logger = logging.getLogger(__name__)


def list_unit_assignments(
    db: Session,
    *,
    rule_id: int,
    include_inactive: bool = False,
) -> list[FeeRuleUnitAssignment]:
    get_fee_rule(db, rule_id)
    stmt = select(FeeRuleUnitAssignment).where(FeeRuleUnitAssignment.fee_rule_id == rule_id)
    if not include_inactive:
        stmt = stmt.where(FeeRuleUnitAssignment.is_active.is_(True))
    return list(db.scalars(stmt.order_by(FeeRuleUnitAssignment.unit_id)).all())


"""
규칙을 단위들에 배정

- units : (unit_id, custom_amount) 목록, custom_amount 는 None 가능
- 없는 단위나 잘못된 금액이 하나라도 있으면 아무것도 저장하지 않고 ValidationError
- 기존 배정은 금액을 덮어쓰고 다시 활성화

"""

def assign_fee_rule_to_units(
    db: Session,
    *,
    rule_id: int,
    units: list[tuple[int, Decimal | None]],
    actor_id: int | None = None,
) -> list[FeeRuleUnitAssignment]:
    rule = get_fee_rule(db, rule_id)

    if not units:
        raise ValidationError("at least one unit is required")

    requested: dict[int, Decimal | None] = {}
    for unit_id, custom_amount in units:
        if unit_id in requested:
            raise ValidationError(f"unit {unit_id} is listed more than once")
        requested[unit_id] = None if custom_amount is None else validate_amount(custom_amount)

    found = set(db.scalars(select(Unit.id).where(Unit.id.in_(list(requested)))).all())
    missing = sorted(set(requested) - found)
    if missing:
        raise ValidationError(f"unit {missing[0]} does not exist")

    existing = {
        a.unit_id: a
        for a in db.scalars(
            select(FeeRuleUnitAssignment)
            .where(FeeRuleUnitAssignment.fee_rule_id == rule.id)
            .where(FeeRuleUnitAssignment.unit_id.in_(list(requested)))
        ).all()
    }

    assignments = []
    for unit_id, custom_amount in requested.items():
        assignment = existing.get(unit_id)
        if assignment is None:
            assignment = FeeRuleUnitAssignment(fee_rule_id=rule.id, unit_id=unit_id)
            db.add(assignment)
        assignment.custom_amount = custom_amount
        assignment.is_active = True
        assignments.append(assignment)
    db.flush()

    write_audit_log(db, action=AuditAction.ASSIGN_UNITS, actor_id=actor_id, fee_rule_id=rule.id)
    logger.info("Fee rule %s assigned to units %s", rule.id, sorted(requested))
    return assignments


def unassign_fee_rule_from_unit(
    db: Session,
    *,
    rule_id: int,
    unit_id: int,
    actor_id: int | None = None,
) -> FeeRuleUnitAssignment:
    rule = get_fee_rule(db, rule_id)
    assignment = db.scalars(
        select(FeeRuleUnitAssignment)
        .where(FeeRuleUnitAssignment.fee_rule_id == rule.id)
        .where(FeeRuleUnitAssignment.unit_id == unit_id)
        .where(FeeRuleUnitAssignment.is_active.is_(True))
    ).first()
    if assignment is None:
        raise NotFoundError("unit assignment not found")

    assignment.is_active = False
    db.flush()

    write_audit_log(db, action=AuditAction.UNASSIGN_UNIT, actor_id=actor_id, fee_rule_id=rule.id)
    logger.info("Fee rule %s unassigned from unit %s", rule.id, unit_id)
    return assignment


# 청구 생성용: 활성 배정 중 custom_amount 가 있는 단위 → 금액
def unit_amount_overrides(db: Session, rule_id: int) -> dict[int, Decimal]:
    rows = db.execute(
        select(FeeRuleUnitAssignment.unit_id, FeeRuleUnitAssignment.custom_amount)
        .where(FeeRuleUnitAssignment.fee_rule_id == rule_id)
        .where(FeeRuleUnitAssignment.is_active.is_(True))
        .where(FeeRuleUnitAssignment.custom_amount.is_not(None))
    ).all()
    return {unit_id: amount for unit_id, amount in rows}

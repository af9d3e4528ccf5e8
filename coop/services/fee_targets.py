"""
services/fee_targets.py

회비 규칙 적용 대상(Applicability) 계산.

FeeRule 의 (applicable_to, target_value) 문자열 쌍을
AllMembers / ByRole / ByUnit / ByZone / AssignedUnits 중 하나의 타입으로 변환한 뒤,
현재 시점에 그 규칙이 적용되는 활성 조합원 ID 집합을 계산한다.

설계 원칙:
- 읽기 전용 (DB 변경 없음)
- 비활성 / 정지 계정과 관리자(admin) 계정은 항상 제외
- 규칙 생성 이후 단위/구역이 사라졌거나 target_value가 깨져 있으면
  에러가 아니라 빈 집합을 반환 (해당 회차는 청구 없음)

관련 파일:
- coop.models.fee             : FeeRule / ApplicableTo
- coop.models.user            : User / Role / MemberStatus
- coop.services.fee_generation: 계산된 대상에게 청구 생성

"""

import logging
from dataclasses import dataclass
from typing import Union

from sqlalchemy import select
from sqlalchemy.orm import Session

from coop.models.fee import ApplicableTo, FeeRule, FeeRuleUnitAssignment
from coop.models.unit import Unit, Zone
from coop.models.user import MemberStatus, Role, User

logger = logging.getLogger(__name__)

# 회비 규칙 대상으로 지정 가능한 역할 (admin 제외)
TARGETABLE_ROLES = (Role.MEMBER, Role.UNIT_LEADER, Role.ZONE_LEADER)


@dataclass(frozen=True)
class AllMembers:
    pass


@dataclass(frozen=True)
class ByRole:
    role: Role


@dataclass(frozen=True)
class ByUnit:
    unit_id: int


@dataclass(frozen=True)
class ByZone:
    zone_id: int


# 대상 단위는 규칙에 배정된 fee_rule_unit_assignments 에서 조회
@dataclass(frozen=True)
class AssignedUnits:
    pass


Target = Union[AllMembers, ByRole, ByUnit, ByZone, AssignedUnits]


"""
(applicable_to, target_value) → Target 변환

- 형식이 잘못된 값은 ValueError 발생
- 존재 여부(DB)는 확인하지 않음

"""

def parse_target(applicable_to: ApplicableTo, target_value: str | None) -> Target:
    applicable_to = ApplicableTo(applicable_to)

    if applicable_to in (ApplicableTo.ALL, ApplicableTo.ASSIGNED_UNITS):
        if target_value not in (None, ""):
            raise ValueError(f"target_value must be empty when applicable_to is '{applicable_to.value}'")
        return AllMembers() if applicable_to == ApplicableTo.ALL else AssignedUnits()

    if target_value in (None, ""):
        raise ValueError(f"target_value is required when applicable_to is '{applicable_to.value}'")

    if applicable_to == ApplicableTo.ROLE:
        try:
            role = Role(target_value)
        except ValueError:
            raise ValueError(f"unknown role '{target_value}'")
        if role not in TARGETABLE_ROLES:
            raise ValueError(f"role '{target_value}' cannot be targeted by a fee rule")
        return ByRole(role)

    try:
        ref_id = int(target_value)
    except (TypeError, ValueError):
        raise ValueError(f"target_value must be a numeric {applicable_to.value} id")

    if applicable_to == ApplicableTo.UNIT:
        return ByUnit(ref_id)
    return ByZone(ref_id)


def target_of(rule: FeeRule) -> Target:
    return parse_target(rule.applicable_to, rule.target_value)


def target_exists(db: Session, target: Target) -> bool:
    if isinstance(target, ByUnit):
        return db.get(Unit, target.unit_id) is not None
    if isinstance(target, ByZone):
        return db.get(Zone, target.zone_id) is not None
    return True


def _member_ids_query(target: Target, rule_id: int | None = None):
    stmt = select(User.id).where(User.status == MemberStatus.ACTIVE).where(User.role.in_(TARGETABLE_ROLES))

    if isinstance(target, AllMembers):
        return stmt
    if isinstance(target, ByRole):
        return stmt.where(User.role == target.role)
    if isinstance(target, ByUnit):
        return stmt.where(User.unit_id == target.unit_id)
    if isinstance(target, ByZone):
        return stmt.join(Unit, Unit.id == User.unit_id).where(Unit.zone_id == target.zone_id)
    if isinstance(target, AssignedUnits):
        return stmt.join(FeeRuleUnitAssignment, FeeRuleUnitAssignment.unit_id == User.unit_id).where(
            FeeRuleUnitAssignment.fee_rule_id == rule_id,
            FeeRuleUnitAssignment.is_active.is_(True),
        )

    raise TypeError(f"unsupported fee rule target: {target!r}")


"""
규칙 적용 대상 조합원 ID 집합 계산

- all  : 모든 활성 조합원 계정 (member / unit_leader / zone_leader)
- role : 역할이 일치하는 활성 계정
- unit : 해당 단위 소속 활성 계정
- zone : 해당 구역 소속 단위의 활성 계정 (users → units 조인)
- assigned_units : 규칙에 활성 배정된 단위 소속 활성 계정

"""

def resolve_targets(db: Session, rule: FeeRule) -> set[int]:
    try:
        target = target_of(rule)
    except ValueError as e:
        logger.warning("Fee rule %s has an unusable target: %s", rule.id, e)
        return set()

    if not target_exists(db, target):
        logger.warning("Fee rule %s targets a missing reference %r, no members resolved", rule.id, target)
        return set()

    member_ids = set(db.scalars(_member_ids_query(target, rule.id)).all())
    logger.debug("Fee rule %s resolved %d members for %r", rule.id, len(member_ids), target)
    return member_ids

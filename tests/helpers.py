# tests/helpers.py
import datetime
import uuid
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from coop.core.security import create_access_token
from coop.models.fee import (
    ApplicableTo,
    FeeApplication,
    FeeFrequency,
    FeeRule,
    FeeRuleStatus,
    FeeRuleUnitAssignment,
    FeeType,
)
from coop.models.unit import Unit, Zone
from coop.models.user import MemberStatus, Role, User


def auth_header(user: User) -> dict:
    token = create_access_token(str(user.id))
    return {"Authorization": f"Bearer {token}"}


def create_zone(db: Session, *, zone_id: int | None = None, name: str = "North") -> Zone:
    zone = Zone(id=zone_id, name=name, code=f"Z{uuid.uuid4().hex[:6].upper()}")
    db.add(zone)
    db.commit()
    db.refresh(zone)
    return zone


def create_unit(db: Session, *, zone: Zone | None = None, unit_id: int | None = None, name: str = "Unit") -> Unit:
    unit = Unit(
        id=unit_id,
        name=name,
        code=f"U{uuid.uuid4().hex[:6].upper()}",
        zone_id=zone.id if zone else None,
    )
    db.add(unit)
    db.commit()
    db.refresh(unit)
    return unit


def create_member(
    db: Session,
    *,
    unit: Unit | None = None,
    role: Role = Role.MEMBER,
    status: MemberStatus = MemberStatus.ACTIVE,
    name: str | None = None,
) -> User:
    user = User(
        name=name or f"member-{uuid.uuid4().hex[:6]}",
        role=role,
        status=status,
        unit_id=unit.id if unit else None,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def create_admin(db: Session) -> User:
    return create_member(db, role=Role.ADMIN, name="ADMIN")


def create_rule(
    db: Session,
    *,
    name: str = "Land use fee",
    type: FeeType = FeeType.RECURRING,
    frequency: FeeFrequency | None = FeeFrequency.MONTHLY,
    amount: str = "5000.00",
    applicable_to: ApplicableTo = ApplicableTo.ALL,
    target_value: str | None = None,
    effective_date: datetime.date = datetime.date(2026, 1, 1),
    status: FeeRuleStatus = FeeRuleStatus.ACTIVE,
) -> FeeRule:
    """서비스 검증을 거치지 않고 규칙을 바로 저장 (생성 / 스케줄링 테스트용)"""
    rule = FeeRule(
        name=name,
        type=type,
        frequency=frequency if type == FeeType.RECURRING else None,
        amount=Decimal(amount),
        applicable_to=applicable_to,
        target_value=target_value,
        effective_date=effective_date,
        status=status,
        is_deleted=False,
    )
    db.add(rule)
    db.commit()
    db.refresh(rule)
    return rule


def count_applications(db: Session, rule: FeeRule | None = None) -> int:
    stmt = select(func.count()).select_from(FeeApplication)
    if rule is not None:
        stmt = stmt.where(FeeApplication.fee_rule_id == rule.id)
    return db.scalar(stmt) or 0


def applications_for(db: Session, rule: FeeRule) -> list[FeeApplication]:
    return list(
        db.scalars(
            select(FeeApplication)
            .where(FeeApplication.fee_rule_id == rule.id)
            .order_by(FeeApplication.period, FeeApplication.member_id)
        ).all()
    )


def assign_unit(db: Session, rule: FeeRule, unit: Unit, *, custom_amount: str | None = None) -> FeeRuleUnitAssignment:
    assignment = FeeRuleUnitAssignment(
        fee_rule_id=rule.id,
        unit_id=unit.id,
        custom_amount=Decimal(custom_amount) if custom_amount is not None else None,
        is_active=True,
    )
    db.add(assignment)
    db.commit()
    db.refresh(assignment)
    return assignment

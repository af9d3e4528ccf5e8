"""
services/fee_generation.py

회비 청구(FeeApplication) 생성 로직.

하나의 활성 회비 규칙과 기준일(as_of)이 주어지면
적용 대상 조합원마다 해당 청구 기간의 청구를 "최대 1건" 생성한다.

청구 기간(period) 정책 (달력 기준):
- 일회성(one_time) : 'ONCE'      → (규칙, 회원) 당 평생 1건
- 월(monthly)      : 'YYYY-MM'
- 분기(quarterly)  : 'YYYY-Qn'
- 연(annual)       : 'YYYY'

설계 원칙:
- 중복 방지는 (fee_rule_id, member_id, period) 유니크 제약이 담당
  → 애플리케이션 레벨 락 없이 동시 실행 / 재실행에 안전
- 유니크 제약 충돌은 에러가 아니라 skip으로 집계
- 청구 금액은 생성 시점의 규칙 금액을 복사 (이후 규칙 금액이 바뀌어도 불변)
  단, 회원 소속 단위에 배정 금액(custom_amount)이 있으면 그 금액을 복사
- 트랜잭션 제어(commit)는 호출 측(라우터/스케줄러)에서 수행

관련 파일:
- coop.services.fee_targets     : 적용 대상 계산
- coop.services.fee_assignments : 단위별 배정 금액
- coop.services.fee_scheduler   : 정기 실행
- coop.routers.admin_fees       : 관리자 수동 실행(apply)

"""

import datetime
import logging
from dataclasses import dataclass, asdict
from decimal import Decimal

from sqlalchemy import insert, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from coop.core.config import settings
from coop.core.errors import ConcurrencyConflict, NotFoundError
from coop.models.fee import (
    ONE_TIME_PERIOD,
    FeeApplication,
    FeeApplicationStatus,
    FeeFrequency,
    FeeRule,
    FeeRuleStatus,
    FeeType,
)
from coop.models.user import User
from coop.services.fee_assignments import unit_amount_overrides
from coop.services.fee_targets import resolve_targets

logger = logging.getLogger(__name__)

_UNIQUE_KEY = ["fee_rule_id", "member_id", "period"]


@dataclass
class GenerationResult:
    rule_id: int
    period: str | None = None
    created: int = 0
    skipped: int = 0

    def as_dict(self) -> dict:
        return asdict(self)


"""
청구 기간(period) 계산

- 일회성 규칙은 항상 'ONCE'
- 반복 규칙은 frequency와 기준일로 달력 기간 계산

"""

def period_for(rule: FeeRule, as_of: datetime.date) -> str:
    if rule.type == FeeType.ONE_TIME:
        return ONE_TIME_PERIOD

    if rule.frequency == FeeFrequency.MONTHLY:
        return f"{as_of.year:04d}-{as_of.month:02d}"
    if rule.frequency == FeeFrequency.QUARTERLY:
        return f"{as_of.year:04d}-Q{(as_of.month - 1) // 3 + 1}"
    if rule.frequency == FeeFrequency.ANNUAL:
        return f"{as_of.year:04d}"

    raise ValueError(f"recurring fee rule {rule.id} has no valid frequency")


def due_date_for(as_of: datetime.date) -> datetime.date:
    return as_of + datetime.timedelta(days=settings.FEE_GRACE_PERIOD_DAYS)


def is_generating(rule: FeeRule, as_of: datetime.date) -> bool:
    return (
        rule.status == FeeRuleStatus.ACTIVE
        and not rule.is_deleted
        and rule.effective_date <= as_of
    )


def _insert_if_absent(db: Session, values: dict) -> None:
    dialect = db.get_bind().dialect.name
    table = FeeApplication.__table__

    if dialect in ("postgresql", "sqlite"):
        dialect_insert = postgresql.insert if dialect == "postgresql" else sqlite.insert
        stmt = dialect_insert(table).values(**values).on_conflict_do_nothing(index_elements=_UNIQUE_KEY)
        result = db.execute(stmt)
        if result.rowcount == 0:
            raise ConcurrencyConflict("fee application already exists for that period")
        return

    try:
        with db.begin_nested():
            db.execute(insert(table).values(**values))
    except IntegrityError as e:
        raise ConcurrencyConflict("fee application already exists for that period") from e


# 소속 단위에 배정 금액이 있는 회원 → 금액 (나머지는 규칙 금액)
def _member_amounts(db: Session, rule: FeeRule, member_ids: set[int]) -> dict[int, Decimal]:
    overrides = unit_amount_overrides(db, rule.id)
    if not overrides:
        return {}
    rows = db.execute(select(User.id, User.unit_id).where(User.id.in_(member_ids))).all()
    return {member_id: overrides[unit_id] for member_id, unit_id in rows if unit_id in overrides}


"""
청구 1건 원자적 생성 (insert if not exists)

- amount 를 생략하면 규칙 금액
- 생성되면 True
- 같은 (규칙, 회원, 기간) 청구가 이미 있으면 False
  (다른 워커가 먼저 생성한 경합 포함)

"""

def create_application_if_absent(
    db: Session,
    *,
    rule: FeeRule,
    member_id: int,
    period: str,
    due_date: datetime.date,
    amount: Decimal | None = None,
) -> bool:
    values = {
        "fee_rule_id": rule.id,
        "member_id": member_id,
        "period": period,
        "amount": rule.amount if amount is None else amount,
        "due_date": due_date,
        "status": FeeApplicationStatus.PENDING,
        "created_at": datetime.datetime.now(datetime.timezone.utc),
    }
    try:
        _insert_if_absent(db, values)
    except ConcurrencyConflict:
        logger.info(
            "Fee application for rule %s member %s period %s created concurrently, skipping",
            rule.id, member_id, period,
        )
        return False
    return True


"""
회비 규칙 1개에 대한 청구 생성

- 활성(active) + 미삭제 + 시행일 도래 규칙만 생성
  (그 외 규칙은 created=0, skipped=0)
- 이미 해당 기간 청구가 있는 회원은 skip
- 규칙의 last_generated_on / last_period 갱신 (앞으로만 진행)

"""

def generate(db: Session, rule: FeeRule, as_of: datetime.date) -> GenerationResult:
    result = GenerationResult(rule_id=rule.id)

    if not is_generating(rule, as_of):
        logger.info(
            "Fee rule %s not generating (status=%s, effective_date=%s, as_of=%s)",
            rule.id, rule.status.value, rule.effective_date, as_of,
        )
        return result

    period = period_for(rule, as_of)
    result.period = period

    member_ids = resolve_targets(db, rule)
    if member_ids:
        existing = set(
            db.scalars(
                select(FeeApplication.member_id)
                .where(FeeApplication.fee_rule_id == rule.id)
                .where(FeeApplication.period == period)
            ).all()
        )
        due_date = due_date_for(as_of)
        amounts = _member_amounts(db, rule, member_ids)

        for member_id in sorted(member_ids):
            if member_id in existing:
                result.skipped += 1
                continue
            if create_application_if_absent(
                db, rule=rule, member_id=member_id, period=period, due_date=due_date, amount=amounts.get(member_id)
            ):
                result.created += 1
            else:
                result.skipped += 1

    # 과거 기준일 재실행(수동 apply)은 마지막 실행 기록을 되돌리지 않음
    if rule.last_generated_on is None or as_of >= rule.last_generated_on:
        rule.last_generated_on = as_of
        rule.last_period = period
    db.flush()

    logger.info(
        "Fee rule %s generated for period %s: created=%d skipped=%d",
        rule.id, period, result.created, result.skipped,
    )
    return result


# 관리자 수동 실행: 규칙 1개에 대해 즉시 청구 생성
def apply_fee_rule(db: Session, *, rule_id: int, as_of: datetime.date) -> GenerationResult:
    rule = db.get(FeeRule, rule_id)
    if not rule or rule.is_deleted:
        raise NotFoundError("fee rule not found")
    return generate(db, rule, as_of)

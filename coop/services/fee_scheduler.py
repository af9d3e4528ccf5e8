"""
services/fee_scheduler.py

회비 규칙 정기 실행(Sweep) 로직.

하루 1회 cron(scripts/run_fee_sweep.py) 또는 관리자 API에서 호출되며,
한 번의 실행(run_sweep)은 아래 순서를 항상 지킨다.

1. 활성화 sweep  : 시행일이 도래한 scheduled 규칙 → active
2. 생성 sweep    : active 규칙마다 기준일(as_of) 기간의 청구 생성
3. 연체 sweep    : 납부 기한이 지난 pending 청구 → overdue

1 → 2 순서이므로 이번 실행에서 활성화된 규칙은 같은 실행에서 바로 청구된다.

설계 원칙:
- 기준일(as_of)은 항상 인자로 주입 (테스트에서 임의 날짜 재현 가능)
- 규칙 단위로 commit / rollback → 한 규칙의 실패가 다른 규칙을 막지 않음
- 중간에 중단되어도 이미 생성된 청구는 각각 유효하며,
  재실행 시 유니크 제약 덕분에 이어서 처리됨

관련 파일:
- coop.services.fee_generation   : 규칙별 청구 생성
- coop.services.fee_applications : 연체 처리
- scripts.run_fee_sweep          : cron 진입점

"""

import datetime
import logging
from dataclasses import dataclass, field, asdict

from sqlalchemy import select
from sqlalchemy.orm import Session

from coop.models.audit_log import AuditAction
from coop.models.fee import FeeRule, FeeRuleStatus
from coop.services.audit_log import write_audit_log
from coop.services.fee_applications import mark_overdue_applications
from coop.services.fee_generation import GenerationResult, generate

logger = logging.getLogger(__name__)


@dataclass
class ActivationResult:
    activated_count: int = 0
    rule_ids: list[int] = field(default_factory=list)
    dry_run: bool = False
    errors: list[str] = field(default_factory=list)

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass
class SweepResult:
    as_of: datetime.date
    activated_count: int = 0
    rules_processed: int = 0
    created: int = 0
    skipped: int = 0
    overdue_marked: int = 0
    details: list[GenerationResult] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    def as_dict(self) -> dict:
        return asdict(self)


def _due_scheduled_rule_ids(db: Session, as_of: datetime.date) -> list[int]:
    return list(
        db.scalars(
            select(FeeRule.id)
            .where(FeeRule.status == FeeRuleStatus.SCHEDULED)
            .where(FeeRule.effective_date <= as_of)
            .where(FeeRule.is_deleted.is_(False))
            .order_by(FeeRule.id)
        ).all()
    )


def _active_rule_ids(db: Session) -> list[int]:
    return list(
        db.scalars(
            select(FeeRule.id)
            .where(FeeRule.status == FeeRuleStatus.ACTIVE)
            .where(FeeRule.is_deleted.is_(False))
            .order_by(FeeRule.id)
        ).all()
    )


"""
예약된 규칙 활성화

- scheduled + 시행일 <= as_of + 미삭제 규칙 → active (단방향)
- dry_run=True 이면 대상만 반환하고 변경하지 않음
- 규칙마다 commit, 실패한 규칙은 rollback 후 errors 에 기록

"""

def activate_scheduled_rules(db: Session, *, as_of: datetime.date, dry_run: bool = False) -> ActivationResult:
    result = ActivationResult(dry_run=dry_run)

    for rule_id in _due_scheduled_rule_ids(db, as_of):
        if dry_run:
            result.rule_ids.append(rule_id)
            continue
        try:
            rule = db.get(FeeRule, rule_id)
            # 다른 실행이 먼저 활성화했을 수 있음
            if rule.status != FeeRuleStatus.SCHEDULED:
                continue
            rule.status = FeeRuleStatus.ACTIVE
            write_audit_log(
                db,
                action=AuditAction.ACTIVATE_RULE,
                fee_rule_id=rule.id,
                before_status=FeeRuleStatus.SCHEDULED,
                after_status=FeeRuleStatus.ACTIVE,
            )
            db.commit()
        except Exception as e:
            db.rollback()
            logger.exception("Failed to activate fee rule %s", rule_id)
            result.errors.append(f"Error activating rule {rule_id}: {e}")
            continue

        result.activated_count += 1
        result.rule_ids.append(rule_id)
        logger.info("Scheduled fee rule %s activated (effective as of %s)", rule_id, as_of)

    if dry_run:
        result.activated_count = len(result.rule_ids)
    return result


"""
활성 규칙 청구 생성 sweep

- 규칙마다 generate() 후 commit
- 실패한 규칙은 rollback, errors 기록 후 다음 규칙 진행

"""

def generate_for_active_rules(db: Session, *, as_of: datetime.date, result: SweepResult) -> None:
    for rule_id in _active_rule_ids(db):
        try:
            rule = db.get(FeeRule, rule_id)
            outcome = generate(db, rule, as_of)
            db.commit()
        except Exception as e:
            db.rollback()
            logger.exception("Fee generation failed for rule %s", rule_id)
            result.errors.append(f"Error applying rule {rule_id}: {e}")
            continue

        result.rules_processed += 1
        result.created += outcome.created
        result.skipped += outcome.skipped
        result.details.append(outcome)


"""
전체 정기 실행

- 활성화 → 생성 → 연체 순서 고정
- 연체 처리 실패도 로그 + errors 기록 후 결과 반환

"""

def run_sweep(db: Session, *, as_of: datetime.date) -> SweepResult:
    logger.info("Fee sweep started (as_of=%s)", as_of)
    result = SweepResult(as_of=as_of)

    activation = activate_scheduled_rules(db, as_of=as_of)
    result.activated_count = activation.activated_count
    result.errors.extend(activation.errors)

    generate_for_active_rules(db, as_of=as_of, result=result)

    try:
        result.overdue_marked = mark_overdue_applications(db, as_of=as_of)
        db.commit()
    except Exception as e:
        db.rollback()
        logger.exception("Marking overdue fee applications failed")
        result.errors.append(f"Error marking overdue fees: {e}")

    logger.info(
        "Fee sweep finished (as_of=%s): activated=%d rules=%d created=%d skipped=%d overdue=%d errors=%d",
        as_of,
        result.activated_count,
        result.rules_processed,
        result.created,
        result.skipped,
        result.overdue_marked,
        len(result.errors),
    )
    return result

"""
services/fee_applications.py

회비 청구(FeeApplication) 조회 / 납부 / 취소 / 연체 처리 로직.

상태 전이:
- pending → paid       (납부 기록)
- overdue → paid       (연체 후 납부)
- pending → overdue    (납부 기한 경과, 스케줄러)
- pending/overdue → cancelled (관리자 취소)
- paid / cancelled 는 종료 상태

설계 원칙:
- member_id 를 넘기면 본인 청구만 접근 가능
  (타인 청구는 존재 여부를 숨기기 위해 NotFoundError)
- 청구는 삭제하지 않고 cancelled 로만 종료
- 트랜잭션 제어는 호출 측에서 수행

관련 파일:
- coop.models.fee         : FeeApplication 모델
- coop.routers.fees       : 회원 본인 청구 API
- coop.routers.admin_fees : 관리자 납부/취소 API

"""

import datetime
import logging
from decimal import Decimal

from sqlalchemy import desc, func, select, update
from sqlalchemy.orm import Session

from coop.core.errors import InvalidStateError, NotFoundError
from coop.models.audit_log import AuditAction
from coop.models.fee import FeeApplication, FeeApplicationStatus, PaymentMethod
from coop.services.audit_log import write_audit_log

logger = logging.getLogger(__name__)

PAYABLE_STATUSES = (FeeApplicationStatus.PENDING, FeeApplicationStatus.OVERDUE)
OUTSTANDING_STATUSES = PAYABLE_STATUSES


def list_fee_applications(
    db: Session,
    *,
    member_id: int,
    status: FeeApplicationStatus | None = None,
) -> list[FeeApplication]:
    stmt = select(FeeApplication).where(FeeApplication.member_id == member_id)
    if status is not None:
        stmt = stmt.where(FeeApplication.status == status)
    return list(db.scalars(stmt.order_by(desc(FeeApplication.due_date), desc(FeeApplication.id))).all())


def list_rule_applications(
    db: Session,
    *,
    rule_id: int,
    status: FeeApplicationStatus | None = None,
    period: str | None = None,
) -> list[FeeApplication]:
    stmt = select(FeeApplication).where(FeeApplication.fee_rule_id == rule_id)
    if status is not None:
        stmt = stmt.where(FeeApplication.status == status)
    if period is not None:
        stmt = stmt.where(FeeApplication.period == period)
    return list(db.scalars(stmt.order_by(desc(FeeApplication.period), FeeApplication.member_id)).all())


"""
청구 단건 조회

- member_id 지정 시 본인 청구가 아니면 NotFoundError

"""

def get_fee_application(db: Session, application_id: int, *, member_id: int | None = None) -> FeeApplication:
    application = db.get(FeeApplication, application_id)
    if not application:
        raise NotFoundError("fee application not found")
    if member_id is not None and application.member_id != member_id:
        raise NotFoundError("fee application not found")
    return application


"""
납부 / 취소 상태 전이 (조건부 UPDATE)

- 현재 상태가 pending / overdue 인 행만 변경
- 조회 이후 다른 요청이 먼저 paid / cancelled 로 바꿨다면
  변경 건수가 0 → InvalidStateError (종료 상태 덮어쓰기 방지)

"""

def _transition(db: Session, application: FeeApplication, **values) -> None:
    result = db.execute(
        update(FeeApplication)
        .where(FeeApplication.id == application.id)
        .where(FeeApplication.status.in_(PAYABLE_STATUSES))
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        db.refresh(application)
        raise InvalidStateError(f"fee application is already {application.status.value}")
    db.refresh(application)


"""
납부 기록

- pending / overdue 청구만 납부 가능
- paid_date 에 납부 시각 기록
- 이미 납부(paid) 또는 취소(cancelled)된 청구는 InvalidStateError

"""

def record_payment(
    db: Session,
    *,
    application_id: int,
    method: PaymentMethod = PaymentMethod.CASH,
    reference: str | None = None,
    notes: str | None = None,
    paid_at: datetime.datetime | None = None,
    member_id: int | None = None,
    actor_id: int | None = None,
) -> FeeApplication:
    application = get_fee_application(db, application_id, member_id=member_id)

    if application.status not in PAYABLE_STATUSES:
        raise InvalidStateError(f"fee application is already {application.status.value}")

    before = application.status
    values = {
        "status": FeeApplicationStatus.PAID,
        "paid_date": paid_at or datetime.datetime.now(datetime.timezone.utc),
        "payment_method": PaymentMethod(method),
        "payment_reference": reference,
    }
    if notes:
        values["notes"] = notes
    _transition(db, application, **values)

    write_audit_log(
        db,
        action=AuditAction.RECORD_PAYMENT,
        actor_id=actor_id if actor_id is not None else member_id,
        fee_rule_id=application.fee_rule_id,
        fee_application_id=application.id,
        before_status=before,
        after_status=application.status,
    )
    logger.info("Payment recorded for fee application %s (member %s)", application.id, application.member_id)
    return application


"""
청구 취소 (관리자)

- pending / overdue → cancelled
- 취소 사유는 notes 에 기록

"""

def cancel_fee_application(
    db: Session,
    *,
    application_id: int,
    reason: str | None = None,
    actor_id: int | None = None,
) -> FeeApplication:
    application = get_fee_application(db, application_id)

    if application.status not in PAYABLE_STATUSES:
        raise InvalidStateError(f"fee application is already {application.status.value}")

    before = application.status
    values = {"status": FeeApplicationStatus.CANCELLED}
    if reason:
        values["notes"] = f"{application.notes}\n{reason}" if application.notes else reason
    _transition(db, application, **values)

    write_audit_log(
        db,
        action=AuditAction.CANCEL_APPLICATION,
        actor_id=actor_id,
        fee_rule_id=application.fee_rule_id,
        fee_application_id=application.id,
        before_status=before,
        after_status=application.status,
    )
    logger.info("Fee application %s cancelled", application.id)
    return application


"""
연체 처리

- 납부 기한(due_date)이 기준일(as_of)보다 이전인 pending 청구 → overdue
- 변경된 건수 반환

"""

def mark_overdue_applications(db: Session, *, as_of: datetime.date) -> int:
    result = db.execute(
        update(FeeApplication)
        .where(FeeApplication.status == FeeApplicationStatus.PENDING)
        .where(FeeApplication.due_date < as_of)
        .values(status=FeeApplicationStatus.OVERDUE)
        .execution_options(synchronize_session=False)
    )
    db.expire_all()
    marked = result.rowcount or 0
    if marked:
        logger.info("Marked %d fee applications overdue as of %s", marked, as_of)
    return marked


"""
회원 본인 회비 요약

- outstanding_total: pending + overdue 금액 합계 (누적 미납)
- 상태별 건수

"""

def member_fee_summary(db: Session, *, member_id: int) -> dict:
    rows = db.execute(
        select(
            FeeApplication.status,
            func.count(FeeApplication.id),
            func.coalesce(func.sum(FeeApplication.amount), 0),
        )
        .where(FeeApplication.member_id == member_id)
        .group_by(FeeApplication.status)
    ).all()

    counts = {s.value: 0 for s in FeeApplicationStatus}
    outstanding = Decimal("0.00")
    for status, count, amount in rows:
        status = FeeApplicationStatus(status)
        counts[status.value] = int(count)
        if status in OUTSTANDING_STATUSES:
            outstanding += Decimal(str(amount))

    return {
        "member_id": member_id,
        "outstanding_total": outstanding.quantize(Decimal("0.01")),
        "counts": counts,
    }

"""
admin_fees.py

관리자 전용 회비 규칙 / 청구 관리 API 모음.

이 파일은 협동조합 회비 규칙에 대한 "관리자 권한" 기능만을 담당한다.
회원 본인 청구 조회/납부 API(fees.py)와 역할을 분리하여,
권한 관리와 비즈니스 책임을 명확히 하기 위한 구조이다.

주요 기능:
- 회비 규칙 생성 / 조회 / 수정 / 삭제
- 규칙 예약(schedule), 즉시 활성화(activate), 비활성화(deactivate)
- 규칙 1개 수동 청구 생성(apply), 예약 규칙 일괄 활성화, 전체 sweep 실행
- 규칙의 단위 배정(단위별 금액) 관리
- 규칙별 청구 목록 / 상태별 현황
- 청구 납부 처리 / 취소

설계 원칙:
- 모든 엔드포인트는 관리자 권한(get_current_admin)을 요구
- 비즈니스 로직은 service 계층(coop.services.fee_*)에 위임
- 이 라우터는 요청/응답 처리, 트랜잭션(commit/rollback), 권한 검증에만 집중
- service 예외(FeeError)는 status_code 그대로 HTTPException 으로 변환

관련 파일:
- coop.services.fee_rules        : 규칙 검증 / 상태 전이
- coop.services.fee_assignments  : 단위 배정
- coop.services.fee_generation   : 청구 생성
- coop.services.fee_scheduler    : 정기 실행
- coop.services.fee_applications : 납부 / 취소
- coop.schemas.fees              : 요청/응답 스키마 정의
"""

import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from coop.core.deps import get_db, get_current_admin
from coop.core.errors import FeeError
from coop.models.fee import FeeApplicationStatus, FeeRuleStatus
from coop.models.user import User
from coop.services import fee_rules
from coop.services.fee_assignments import (
    assign_fee_rule_to_units,
    list_unit_assignments,
    unassign_fee_rule_from_unit,
)
from coop.services.fee_applications import cancel_fee_application, list_rule_applications, record_payment
from coop.services.fee_generation import apply_fee_rule
from coop.services.fee_scheduler import activate_scheduled_rules, run_sweep
from coop.schemas.fees import (
    ActivationResultResponse,
    CancelRequest,
    FeeApplicationResponse,
    FeeRuleCreateRequest,
    FeeRuleResponse,
    FeeRuleScheduleRequest,
    FeeRuleSummaryResponse,
    FeeRuleUpdateRequest,
    GenerationResultResponse,
    PaymentCreateRequest,
    SweepResultResponse,
    UnitAssignmentRequest,
    UnitAssignmentResponse,
)

router = APIRouter(prefix="/admin/fees", tags=["admin-fees"])


def _http_error(db: Session, e: FeeError) -> HTTPException:
    db.rollback()
    return HTTPException(status_code=e.status_code, detail=str(e))


"""
회비 규칙 생성 API

- draft 또는 scheduled 상태로만 생성
- 금액 / 주기 / 대상 검증은 service(create_fee_rule)에서 처리

"""
@router.post("/rules", response_model=FeeRuleResponse)
def create_rule(
    body: FeeRuleCreateRequest,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    try:
        rule = fee_rules.create_fee_rule(
            db,
            name=body.name,
            description=body.description,
            type=body.type,
            frequency=body.frequency,
            amount=body.amount,
            applicable_to=body.applicable_to,
            target_value=body.target_value,
            effective_date=body.effective_date,
            status=body.status,
            created_by=admin.id,
        )
        db.commit()
        db.refresh(rule)
        return rule
    except FeeError as e:
        raise _http_error(db, e)
    except Exception:
        db.rollback()
        raise


"""
회비 규칙 목록 조회 API

- status 로 필터링 가능
- 삭제된 규칙은 include_deleted=true 일 때만 포함

"""
@router.get("/rules", response_model=list[FeeRuleResponse])
def list_rules(
    status: FeeRuleStatus | None = Query(default=None),
    include_deleted: bool = Query(default=False),
    db: Session = Depends(get_db),
    _: User = Depends(get_current_admin),
):
    return fee_rules.list_fee_rules(db, status=status, include_deleted=include_deleted)


@router.get("/rules/{rule_id}", response_model=FeeRuleResponse)
def get_rule(
    rule_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(get_current_admin),
):
    try:
        return fee_rules.get_fee_rule(db, rule_id)
    except FeeError as e:
        raise _http_error(db, e)


"""
회비 규칙 수정 API

- 보낸 필드만 수정 (status 는 별도 API 사용)

"""
@router.patch("/rules/{rule_id}", response_model=FeeRuleResponse)
def update_rule(
    rule_id: int,
    body: FeeRuleUpdateRequest,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    try:
        rule = fee_rules.update_fee_rule(
            db,
            rule_id=rule_id,
            changes=body.model_dump(exclude_unset=True),
            actor_id=admin.id,
        )
        db.commit()
        db.refresh(rule)
        return rule
    except FeeError as e:
        raise _http_error(db, e)
    except Exception:
        db.rollback()
        raise


@router.delete("/rules/{rule_id}", response_model=FeeRuleResponse)
def delete_rule(
    rule_id: int,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    try:
        rule = fee_rules.delete_fee_rule(db, rule_id=rule_id, actor_id=admin.id)
        db.commit()
        db.refresh(rule)
        return rule
    except FeeError as e:
        raise _http_error(db, e)
    except Exception:
        db.rollback()
        raise


"""
회비 규칙 시행 예약 API

- 시행일(effective_date)은 오늘 이후(오늘 포함)
- 시행일이 되면 스케줄러가 자동으로 active 전환

"""
@router.post("/rules/{rule_id}/schedule", response_model=FeeRuleResponse)
def schedule_rule(
    rule_id: int,
    body: FeeRuleScheduleRequest,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    try:
        rule = fee_rules.schedule_fee_rule(
            db, rule_id=rule_id, effective_date=body.effective_date, actor_id=admin.id
        )
        db.commit()
        db.refresh(rule)
        return rule
    except FeeError as e:
        raise _http_error(db, e)
    except Exception:
        db.rollback()
        raise


@router.post("/rules/{rule_id}/activate", response_model=FeeRuleResponse)
def activate_rule(
    rule_id: int,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    try:
        rule = fee_rules.activate_fee_rule(db, rule_id=rule_id, actor_id=admin.id)
        db.commit()
        db.refresh(rule)
        return rule
    except FeeError as e:
        raise _http_error(db, e)
    except Exception:
        db.rollback()
        raise


@router.post("/rules/{rule_id}/deactivate", response_model=FeeRuleResponse)
def deactivate_rule(
    rule_id: int,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    try:
        rule = fee_rules.deactivate_fee_rule(db, rule_id=rule_id, actor_id=admin.id)
        db.commit()
        db.refresh(rule)
        return rule
    except FeeError as e:
        raise _http_error(db, e)
    except Exception:
        db.rollback()
        raise


"""
규칙 1개 수동 청구 생성 API

- 오늘(as_of 미지정 시) 기준 기간의 청구를 생성
- 이미 청구된 회원은 skip, 재실행해도 중복 청구 없음
- active 가 아닌 규칙은 created=0, skipped=0

"""
@router.post("/rules/{rule_id}/apply", response_model=GenerationResultResponse)
def apply_rule(
    rule_id: int,
    as_of: datetime.date | None = Query(default=None, description="예: 2026-11-01"),
    db: Session = Depends(get_db),
    _: User = Depends(get_current_admin),
):
    try:
        result = apply_fee_rule(db, rule_id=rule_id, as_of=as_of or fee_rules.utc_today())
        db.commit()
        return result.as_dict()
    except FeeError as e:
        raise _http_error(db, e)
    except Exception:
        db.rollback()
        raise


@router.get("/rules/{rule_id}/applications", response_model=list[FeeApplicationResponse])
def rule_applications(
    rule_id: int,
    status: FeeApplicationStatus | None = Query(default=None),
    period: str | None = Query(default=None, description="예: 2026-11, 2026-Q4, 2026, ONCE"),
    db: Session = Depends(get_db),
    _: User = Depends(get_current_admin),
):
    try:
        rule = fee_rules.get_fee_rule(db, rule_id, include_deleted=True)
    except FeeError as e:
        raise _http_error(db, e)
    return list_rule_applications(db, rule_id=rule.id, status=status, period=period)


"""
규칙 단위 배정 API

- (unit_id, custom_amount) 목록을 한 번에 배정, 기존 배정은 금액 갱신 + 재활성화
- custom_amount 가 있으면 해당 단위 조합원은 규칙 금액 대신 그 금액으로 청구
- applicable_to = assigned_units 규칙은 배정 단위 조합원만 청구 대상

"""
@router.post("/rules/{rule_id}/units", response_model=list[UnitAssignmentResponse])
def assign_units(
    rule_id: int,
    body: UnitAssignmentRequest,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    try:
        assignments = assign_fee_rule_to_units(
            db,
            rule_id=rule_id,
            units=[(item.unit_id, item.custom_amount) for item in body.units],
            actor_id=admin.id,
        )
        db.commit()
        for assignment in assignments:
            db.refresh(assignment)
        return assignments
    except FeeError as e:
        raise _http_error(db, e)
    except Exception:
        db.rollback()
        raise


@router.get("/rules/{rule_id}/units", response_model=list[UnitAssignmentResponse])
def rule_units(
    rule_id: int,
    include_inactive: bool = Query(default=False),
    db: Session = Depends(get_db),
    _: User = Depends(get_current_admin),
):
    try:
        return list_unit_assignments(db, rule_id=rule_id, include_inactive=include_inactive)
    except FeeError as e:
        raise _http_error(db, e)


@router.delete("/rules/{rule_id}/units/{unit_id}", response_model=UnitAssignmentResponse)
def unassign_unit(
    rule_id: int,
    unit_id: int,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    try:
        assignment = unassign_fee_rule_from_unit(db, rule_id=rule_id, unit_id=unit_id, actor_id=admin.id)
        db.commit()
        db.refresh(assignment)
        return assignment
    except FeeError as e:
        raise _http_error(db, e)
    except Exception:
        db.rollback()
        raise

"""
규칙별 청구 현황 API

- pending / paid / overdue / cancelled 상태별 건수, 금액 합계

"""
@router.get("/rules/{rule_id}/summary", response_model=FeeRuleSummaryResponse)
def rule_summary(
    rule_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(get_current_admin),
):
    try:
        return fee_rules.rule_summary(db, rule_id=rule_id)
    except FeeError as e:
        raise _http_error(db, e)


"""
예약 규칙 일괄 활성화 API

- 시행일이 도래한 scheduled 규칙 → active
- dry_run=true 이면 대상 목록만 반환

"""
@router.post("/activate-scheduled", response_model=ActivationResultResponse)
def activate_scheduled(
    dry_run: bool = Query(default=False),
    db: Session = Depends(get_db),
    _: User = Depends(get_current_admin),
):
    result = activate_scheduled_rules(db, as_of=fee_rules.utc_today(), dry_run=dry_run)
    return result.as_dict()


"""
전체 sweep 수동 실행 API

- cron 과 동일한 활성화 → 생성 → 연체 처리

"""
@router.post("/sweep", response_model=SweepResultResponse)
def sweep(
    as_of: datetime.date | None = Query(default=None, description="예: 2026-11-01"),
    db: Session = Depends(get_db),
    _: User = Depends(get_current_admin),
):
    result = run_sweep(db, as_of=as_of or fee_rules.utc_today())
    return result.as_dict()


@router.post("/applications/{application_id}/payments", response_model=FeeApplicationResponse)
def admin_record_payment(
    application_id: int,
    body: PaymentCreateRequest,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    try:
        application = record_payment(
            db,
            application_id=application_id,
            method=body.method,
            reference=body.reference,
            notes=body.notes,
            paid_at=body.paid_at,
            actor_id=admin.id,
        )
        db.commit()
        db.refresh(application)
        return application
    except FeeError as e:
        raise _http_error(db, e)
    except Exception:
        db.rollback()
        raise


@router.post("/applications/{application_id}/cancel", response_model=FeeApplicationResponse)
def admin_cancel_application(
    application_id: int,
    body: CancelRequest,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    try:
        application = cancel_fee_application(
            db, application_id=application_id, reason=body.reason, actor_id=admin.id
        )
        db.commit()
        db.refresh(application)
        return application
    except FeeError as e:
        raise _http_error(db, e)
    except Exception:
        db.rollback()
        raise

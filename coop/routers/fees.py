"""
fees.py

회원(Member) 전용 회비 청구 조회 / 납부 API 모음.

이 파일은 로그인한 조합원이
본인의 회비 청구를 조회하고 납부를 기록하기 위한 기능을 담당한다.
관리자용 회비 관리 기능과 분리하여,
권한 경계와 책임을 명확히 하기 위한 구조이다.

주요 기능:
- 본인 청구 목록 / 단건 조회
- 본인 청구 납부 기록
- 본인 누적 미납 요약

설계 원칙:
- 활성 계정이면 역할과 무관하게 접근 가능 (get_current_member)
- 모든 데이터는 "본인 기준"으로만 조회
- 타인 청구 id 로 접근하면 404 (존재 여부 노출 방지)

관련 파일:
- coop.services.fee_applications : 조회 / 납부 / 요약 로직
- coop.schemas.fees              : 응답 스키마

"""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from coop.core.deps import get_db, get_current_member
from coop.core.errors import FeeError
from coop.models.fee import FeeApplicationStatus
from coop.models.user import User
from coop.services.fee_applications import (
    get_fee_application,
    list_fee_applications,
    member_fee_summary,
    record_payment,
)
from coop.schemas.fees import FeeApplicationResponse, MyFeeSummaryResponse, PaymentCreateRequest

router = APIRouter(prefix="/fees", tags=["fees"])


"""
회원 본인 청구 목록 조회 API

- status 지정 시 해당 상태만 반환
- 납부 기한 최신순

"""
@router.get("/me/applications", response_model=list[FeeApplicationResponse])
def my_applications(
    status: FeeApplicationStatus | None = Query(default=None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_member),
):
    return list_fee_applications(db, member_id=current_user.id, status=status)


@router.get("/me/applications/{application_id}", response_model=FeeApplicationResponse)
def my_application(
    application_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_member),
):
    try:
        return get_fee_application(db, application_id, member_id=current_user.id)
    except FeeError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


"""
회원 본인 청구 납부 API

- pending / overdue 청구만 납부 가능
- 이미 납부 / 취소된 청구는 409

"""
@router.post("/me/applications/{application_id}/payments", response_model=FeeApplicationResponse)
def pay_my_application(
    application_id: int,
    body: PaymentCreateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_member),
):
    try:
        application = record_payment(
            db,
            application_id=application_id,
            method=body.method,
            reference=body.reference,
            notes=body.notes,
            paid_at=body.paid_at,
            member_id=current_user.id,
        )
        db.commit()
        db.refresh(application)
        return application
    except FeeError as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=str(e))
    except Exception:
        db.rollback()
        raise


"""
회원 본인 회비 요약 API

- 누적 미납 금액(pending + overdue)과 상태별 건수

"""
@router.get("/me/summary", response_model=MyFeeSummaryResponse)
def my_summary(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_member),
):
    return member_fee_summary(db, member_id=current_user.id)

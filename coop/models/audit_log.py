"""
audit_log.py

회비 규칙 / 청구에 대한 행위 기록(Audit Log) 모델 정의 파일.

관리자 행위(규칙 생성, 예약, 활성화, 납부 처리, 청구 취소 등)와
스케줄러의 자동 활성화를 DB에 영구적으로 기록한다.

설계 원칙:
- 실제 데이터 변경과 로그 기록을 분리
- 로그 데이터는 수정/삭제하지 않는 것을 전제로 설계
- actor(행위자)가 없으면 스케줄러에 의한 자동 처리

"""

import datetime
from enum import Enum

from sqlalchemy import DateTime, Enum as SAEnum, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from coop.db.base import Base
from coop.models.user import enum_values



#  회비 행위 유형 Enum

class AuditAction(str, Enum):
    CREATE_RULE = "create_rule"
    UPDATE_RULE = "update_rule"
    DELETE_RULE = "delete_rule"
    SCHEDULE_RULE = "schedule_rule"
    ACTIVATE_RULE = "activate_rule"
    DEACTIVATE_RULE = "deactivate_rule"
    RECORD_PAYMENT = "record_payment"
    CANCEL_APPLICATION = "cancel_application"
    ASSIGN_UNITS = "assign_units"
    UNASSIGN_UNIT = "unassign_unit"


"""
회비 행위 로그 모델

- actor_id           : 행위를 수행한 사용자 ID (스케줄러면 None)
- action             : 수행된 행위 유형
- fee_rule_id        : 대상 규칙 ID (선택)
- fee_application_id : 대상 청구 ID (선택)
- before_status      : 변경 전 상태
- after_status       : 변경 후 상태
- created_at         : 행위 발생 시각 (UTC)

"""

class FeeAuditLog(Base):
    __tablename__ = "fee_audit_logs"

    id: Mapped[int] = mapped_column(primary_key=True)

    actor_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    action: Mapped[AuditAction] = mapped_column(
        SAEnum(AuditAction, name="fee_audit_action", values_callable=enum_values), nullable=False
    )

    fee_rule_id: Mapped[int | None] = mapped_column(ForeignKey("fee_rules.id"), nullable=True, index=True)
    fee_application_id: Mapped[int | None] = mapped_column(ForeignKey("fee_applications.id"), nullable=True)

    before_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    after_status: Mapped[str | None] = mapped_column(String(20), nullable=True)

    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), default=datetime.datetime.utcnow, nullable=False
    )

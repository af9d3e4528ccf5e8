"""
services/audit_log.py

회비 행위 로그 기록 서비스.

라우터 또는 서비스 계층에서 호출되며,
로그 기록 자체는 DB에만 영향을 주고
비즈니스 흐름에는 개입하지 않는다.

NOTE:
- db.commit()은 호출 측(라우터/스케줄러)에서 수행

"""

from sqlalchemy.orm import Session
from coop.models.audit_log import FeeAuditLog, AuditAction


def _status_str(value):
    if value is None:
        return None
    return getattr(value, "value", value)


def write_audit_log(
    db: Session,
    *,
    action: AuditAction,
    actor_id=None,
    fee_rule_id=None,
    fee_application_id=None,
    before_status=None,
    after_status=None,
):
    log = FeeAuditLog(
        actor_id=actor_id,
        action=action,
        fee_rule_id=fee_rule_id,
        fee_application_id=fee_application_id,
        before_status=_status_str(before_status),
        after_status=_status_str(after_status),
    )
    db.add(log)

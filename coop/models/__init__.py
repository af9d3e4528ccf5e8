# Base.metadata에 모든 테이블을 등록하기 위한 import
from coop.models.user import User, Role, MemberStatus  # noqa: F401
from coop.models.unit import Zone, Unit, OrgStatus  # noqa: F401
from coop.models.fee import (  # noqa: F401
    FeeRule,
    FeeApplication,
    FeeRuleUnitAssignment,
    FeeType,
    FeeFrequency,
    ApplicableTo,
    FeeRuleStatus,
    FeeApplicationStatus,
    PaymentMethod,
)
from coop.models.audit_log import FeeAuditLog, AuditAction  # noqa: F401

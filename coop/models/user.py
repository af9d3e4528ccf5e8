"""
user.py

조합원 계정(User) 및 권한(Role) 모델 정의 파일.

이 파일은 협동조합 회원의 기본 정보와
권한(Role), 계정 상태(Status), 소속 단위(Unit)를 관리한다.

회비 규칙의 적용 대상 계산(역할 / 단위 / 구역 기준)과
회원 본인 회비 조회의 기준이 되는 핵심 모델이다.
회원 가입 / 수정 화면은 포털의 다른 부분이 담당한다.

"""

import datetime
from enum import Enum

from sqlalchemy import DateTime, Enum as SAEnum, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from coop.db.base import Base



"""
조합원 권한(Role) 정의

- MEMBER       : 일반 조합원
- UNIT_LEADER  : 단위(Unit) 리더
- ZONE_LEADER  : 구역(Zone) 리더
- ADMIN        : 관리자

"""

class Role(str, Enum):
    MEMBER = "member"
    UNIT_LEADER = "unit_leader"
    ZONE_LEADER = "zone_leader"
    ADMIN = "admin"


"""
계정 상태 정의

- ACTIVE     : 정상
- INACTIVE   : 비활성 (회비 적용 대상에서 제외)
- SUSPENDED  : 정지 (회비 적용 대상에서 제외)

"""

class MemberStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


def enum_values(enum_cls):
    # DB에는 Enum 이름이 아닌 value(소문자)를 저장
    return [m.value for m in enum_cls]


class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        Index("ix_users_role_status", "role", "status"),
        Index("ix_users_unit_id_status", "unit_id", "status"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(30), unique=True, nullable=True)

    role: Mapped[Role] = mapped_column(
        SAEnum(Role, name="user_role", values_callable=enum_values),
        nullable=False,
        default=Role.MEMBER,
    )
    status: Mapped[MemberStatus] = mapped_column(
        SAEnum(MemberStatus, name="member_status", values_callable=enum_values),
        nullable=False,
        default=MemberStatus.ACTIVE,
    )

    unit_id: Mapped[int | None] = mapped_column(ForeignKey("units.id", ondelete="SET NULL"), nullable=True)

    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), default=datetime.datetime.utcnow, nullable=False
    )

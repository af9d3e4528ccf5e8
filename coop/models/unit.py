"""
unit.py

조합 조직 구조 모델: 구역(Zone) → 단위(Unit) → 조합원(User).

구역 기준 회비 규칙은 users.unit_id → units.zone_id 조인으로 대상을 계산한다.
단위/구역 관리 화면은 포털의 다른 부분이 담당하며,
이 서비스는 읽기 전용으로만 사용한다.

"""

from enum import Enum

from sqlalchemy import Enum as SAEnum, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from coop.db.base import Base
from coop.models.user import enum_values


class OrgStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class Zone(Base):
    __tablename__ = "zones"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    code: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    status: Mapped[OrgStatus] = mapped_column(
        SAEnum(OrgStatus, name="org_status", values_callable=enum_values),
        nullable=False,
        default=OrgStatus.ACTIVE,
    )


class Unit(Base):
    __tablename__ = "units"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    code: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)  # 예: 'NO01'
    zone_id: Mapped[int | None] = mapped_column(
        ForeignKey("zones.id", ondelete="SET NULL"), nullable=True, index=True
    )
    status: Mapped[OrgStatus] = mapped_column(
        SAEnum(OrgStatus, name="org_status", values_callable=enum_values),
        nullable=False,
        default=OrgStatus.ACTIVE,
    )

"""

회비 규칙 단위 배정 테스트.
- assigned_units 규칙은 활성 배정 단위 조합원에게만 청구,
  단위 배정 금액(custom_amount)이 있으면 그 금액으로 청구,
  재배정 / 해제 / 잘못된 입력 처리를 확인한다.

"""

import datetime
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from coop.core.errors import NotFoundError, ValidationError
from coop.models.audit_log import AuditAction, FeeAuditLog
from coop.models.fee import ApplicableTo, FeeRuleUnitAssignment
from coop.services.fee_assignments import (
    assign_fee_rule_to_units,
    list_unit_assignments,
    unassign_fee_rule_from_unit,
    unit_amount_overrides,
)
from coop.services.fee_generation import generate
from coop.services.fee_targets import resolve_targets
from tests.helpers import applications_for, assign_unit, create_admin, create_member, create_rule, create_unit

JAN = datetime.date(2026, 1, 5)
FEB = datetime.date(2026, 2, 5)


def test_assign_rule_to_several_units(db):
    admin = create_admin(db)
    north = create_unit(db, name="North")
    south = create_unit(db, name="South")
    rule = create_rule(db, applicable_to=ApplicableTo.ASSIGNED_UNITS)

    assign_fee_rule_to_units(
        db, rule_id=rule.id, units=[(north.id, "3500"), (south.id, None)], actor_id=admin.id
    )
    db.commit()

    assignments = list_unit_assignments(db, rule_id=rule.id)
    assert [(a.unit_id, a.custom_amount, a.is_active) for a in assignments] == [
        (north.id, Decimal("3500.00"), True),
        (south.id, None, True),
    ]

    log = db.scalars(select(FeeAuditLog).where(FeeAuditLog.fee_rule_id == rule.id)).one()
    assert log.action == AuditAction.ASSIGN_UNITS
    assert log.actor_id == admin.id


def test_assigned_units_rule_targets_only_assigned_units(db):
    north = create_unit(db)
    south = create_unit(db)
    outside = create_unit(db)
    a = create_member(db, unit=north)
    b = create_member(db, unit=south)
    create_member(db, unit=outside)
    create_member(db)
    rule = create_rule(db, applicable_to=ApplicableTo.ASSIGNED_UNITS)
    assign_unit(db, rule, north)
    assign_unit(db, rule, south)

    assert resolve_targets(db, rule) == {a.id, b.id}


def test_assigned_units_rule_without_assignments_charges_nobody(db):
    create_member(db, unit=create_unit(db))
    rule = create_rule(db, applicable_to=ApplicableTo.ASSIGNED_UNITS)

    result = generate(db, rule, JAN)

    assert (result.created, result.skipped) == (0, 0)


def test_generation_copies_unit_amount_when_assigned(db):
    discounted = create_unit(db)
    regular = create_unit(db)
    cheap = create_member(db, unit=discounted)
    full = create_member(db, unit=regular)
    loose = create_member(db)
    rule = create_rule(db, amount="5000.00")
    assign_unit(db, rule, discounted, custom_amount="3500.00")

    result = generate(db, rule, JAN)
    db.commit()

    assert result.created == 3
    amounts = {a.member_id: a.amount for a in applications_for(db, rule)}
    assert amounts == {
        cheap.id: Decimal("3500.00"),
        full.id: Decimal("5000.00"),
        loose.id: Decimal("5000.00"),
    }


def test_assignment_without_custom_amount_uses_rule_amount(db):
    unit = create_unit(db)
    member = create_member(db, unit=unit)
    rule = create_rule(db, applicable_to=ApplicableTo.ASSIGNED_UNITS, amount="5000.00")
    assign_unit(db, rule, unit)

    generate(db, rule, JAN)
    db.commit()

    assert unit_amount_overrides(db, rule.id) == {}
    assert [(a.member_id, a.amount) for a in applications_for(db, rule)] == [(member.id, Decimal("5000.00"))]


def test_reassign_updates_amount_for_later_periods_only(db):
    unit = create_unit(db)
    create_member(db, unit=unit)
    rule = create_rule(db, applicable_to=ApplicableTo.ASSIGNED_UNITS, amount="5000.00")
    assign_fee_rule_to_units(db, rule_id=rule.id, units=[(unit.id, "3500")])
    db.commit()
    generate(db, rule, JAN)
    db.commit()

    assign_fee_rule_to_units(db, rule_id=rule.id, units=[(unit.id, "4000")])
    db.commit()
    generate(db, rule, FEB)
    db.commit()

    amounts = {a.period: a.amount for a in applications_for(db, rule)}
    assert amounts == {"2026-01": Decimal("3500.00"), "2026-02": Decimal("4000.00")}
    # 같은 (규칙, 단위) 배정은 1건만 유지
    count = db.scalar(
        select(func.count()).select_from(FeeRuleUnitAssignment).where(FeeRuleUnitAssignment.fee_rule_id == rule.id)
    )
    assert count == 1


def test_unassign_stops_targeting_and_reassign_reactivates(db):
    unit = create_unit(db)
    member = create_member(db, unit=unit)
    rule = create_rule(db, applicable_to=ApplicableTo.ASSIGNED_UNITS)
    assign_unit(db, rule, unit, custom_amount="3500.00")

    unassign_fee_rule_from_unit(db, rule_id=rule.id, unit_id=unit.id)
    db.commit()

    assert resolve_targets(db, rule) == set()
    assert unit_amount_overrides(db, rule.id) == {}
    assert list_unit_assignments(db, rule_id=rule.id) == []
    assert len(list_unit_assignments(db, rule_id=rule.id, include_inactive=True)) == 1

    assign_fee_rule_to_units(db, rule_id=rule.id, units=[(unit.id, None)])
    db.commit()

    assert resolve_targets(db, rule) == {member.id}


def test_unassign_unknown_assignment_raises(db):
    unit = create_unit(db)
    rule = create_rule(db)

    with pytest.raises(NotFoundError):
        unassign_fee_rule_from_unit(db, rule_id=rule.id, unit_id=unit.id)


@pytest.mark.parametrize(
    "units",
    [
        [],
        [(404, None)],
        [("unit", "0")],
        [("unit", "-1")],
        [("unit", "100000000")],
        [("unit", None), ("unit", "10")],
    ],
)
def test_assign_rejects_bad_input_and_saves_nothing(db, units):
    unit = create_unit(db)
    rule = create_rule(db)
    units = [(unit.id if unit_id == "unit" else unit_id, amount) for unit_id, amount in units]

    with pytest.raises(ValidationError):
        assign_fee_rule_to_units(db, rule_id=rule.id, units=units)
    db.rollback()

    assert list_unit_assignments(db, rule_id=rule.id, include_inactive=True) == []


def test_assign_to_unknown_rule_raises(db):
    unit = create_unit(db)

    with pytest.raises(NotFoundError):
        assign_fee_rule_to_units(db, rule_id=4242, units=[(unit.id, None)])

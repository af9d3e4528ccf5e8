"""

회비 API 통합 테스트 (관리자 / 회원).

- 인증 / 권한 (401, 403)
- 규칙 생성 → 예약 → sweep → 회원 조회 → 납부 흐름
- 타인 청구 404, 중복 납부 409

"""

import datetime
from decimal import Decimal

from coop.models.fee import ApplicableTo, FeeRuleStatus
from coop.models.user import MemberStatus
from coop.services.fee_rules import utc_today
from tests.helpers import auth_header, create_admin, create_member, create_rule, create_unit


def _rule_payload(**overrides):
    payload = {
        "name": "Land use fee",
        "type": "recurring",
        "frequency": "monthly",
        "amount": "5000.00",
        "applicable_to": "unit",
        "target_value": "7",
        "effective_date": utc_today().isoformat(),
        "status": "scheduled",
    }
    payload.update(overrides)
    return payload


def test_admin_routes_require_token(client):
    r = client.get("/admin/fees/rules")
    assert r.status_code == 401


def test_member_cannot_use_admin_routes(client, db):
    member = create_member(db)

    r = client.post("/admin/fees/sweep", headers=auth_header(member))
    assert r.status_code == 403


def test_suspended_member_is_blocked(client, db):
    member = create_member(db, status=MemberStatus.SUSPENDED)

    r = client.get("/fees/me/applications", headers=auth_header(member))
    assert r.status_code == 403


def test_create_rule_rejects_zero_amount(client, db):
    admin = create_admin(db)
    create_unit(db, unit_id=7)

    r = client.post("/admin/fees/rules", json=_rule_payload(amount="0"), headers=auth_header(admin))
    assert r.status_code == 400


def test_create_rule_rejects_amount_too_large_for_column(client, db):
    admin = create_admin(db)
    create_unit(db, unit_id=7)

    r = client.post("/admin/fees/rules", json=_rule_payload(amount="100000000"), headers=auth_header(admin))
    assert r.status_code == 400


def test_create_rule_rejects_missing_unit(client, db):
    admin = create_admin(db)

    r = client.post("/admin/fees/rules", json=_rule_payload(target_value="404"), headers=auth_header(admin))
    assert r.status_code == 400


def test_scheduled_rule_flow_from_sweep_to_payment(client, db):
    admin = create_admin(db)
    unit = create_unit(db, unit_id=7)
    members = [create_member(db, unit=unit) for _ in range(3)]
    today = utc_today()

    r = client.post("/admin/fees/rules", json=_rule_payload(), headers=auth_header(admin))
    assert r.status_code == 200, r.text
    rule = r.json()
    assert rule["status"] == "scheduled"
    assert rule["created_by"] == admin.id

    r = client.post("/admin/fees/sweep", params={"as_of": today.isoformat()}, headers=auth_header(admin))
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["activated_count"] == 1
    assert body["created"] == 3
    assert body["errors"] == []

    # 같은 날 재실행해도 중복 청구 없음
    r = client.post("/admin/fees/sweep", params={"as_of": today.isoformat()}, headers=auth_header(admin))
    assert (r.json()["created"], r.json()["skipped"]) == (0, 3)

    r = client.get(f"/admin/fees/rules/{rule['id']}", headers=auth_header(admin))
    assert r.json()["status"] == "active"
    assert r.json()["last_generated_on"] == today.isoformat()

    payer = members[0]
    r = client.get("/fees/me/applications", headers=auth_header(payer))
    assert r.status_code == 200
    apps = r.json()
    assert len(apps) == 1
    app = apps[0]
    assert app["status"] == "pending"
    assert Decimal(app["amount"]) == Decimal("5000.00")
    assert app["due_date"] == (today + datetime.timedelta(days=15)).isoformat()

    r = client.post(
        f"/fees/me/applications/{app['id']}/payments",
        json={"method": "mobile_money", "reference": "MM-1001"},
        headers=auth_header(payer),
    )
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "paid"
    assert r.json()["paid_date"] is not None

    r = client.post(
        f"/fees/me/applications/{app['id']}/payments",
        json={"method": "cash"},
        headers=auth_header(payer),
    )
    assert r.status_code == 409

    r = client.get("/fees/me/summary", headers=auth_header(payer))
    summary = r.json()
    assert Decimal(summary["outstanding_total"]) == Decimal("0.00")
    assert summary["counts"]["paid"] == 1

    r = client.get(f"/admin/fees/rules/{rule['id']}/summary", headers=auth_header(admin))
    assert r.status_code == 200
    by_status = r.json()["by_status"]
    assert by_status["paid"]["count"] == 1
    assert by_status["pending"]["count"] == 2
    assert Decimal(by_status["pending"]["amount"]) == Decimal("10000.00")


def test_member_gets_404_for_someone_elses_application(client, db):
    admin = create_admin(db)
    owner = create_member(db)
    stranger = create_member(db)
    rule = create_rule(db)

    r = client.post(
        f"/admin/fees/rules/{rule.id}/apply", params={"as_of": "2026-01-05"}, headers=auth_header(admin)
    )
    assert r.status_code == 200
    assert r.json() == {"rule_id": rule.id, "period": "2026-01", "created": 2, "skipped": 0}

    r = client.get(f"/admin/fees/rules/{rule.id}/applications", headers=auth_header(admin))
    owner_app = next(a for a in r.json() if a["member_id"] == owner.id)

    r = client.get(f"/fees/me/applications/{owner_app['id']}", headers=auth_header(stranger))
    assert r.status_code == 404
    r = client.post(
        f"/fees/me/applications/{owner_app['id']}/payments", json={}, headers=auth_header(stranger)
    )
    assert r.status_code == 404

    r = client.get(f"/fees/me/applications/{owner_app['id']}", headers=auth_header(owner))
    assert r.status_code == 200
    assert r.json()["status"] == "pending"


def test_apply_on_draft_rule_creates_nothing(client, db):
    admin = create_admin(db)
    create_member(db)
    rule = create_rule(db, status=FeeRuleStatus.DRAFT)

    r = client.post(f"/admin/fees/rules/{rule.id}/apply", headers=auth_header(admin))
    assert r.status_code == 200
    assert (r.json()["created"], r.json()["skipped"]) == (0, 0)


def test_apply_unknown_rule_is_404(client, db):
    admin = create_admin(db)

    r = client.post("/admin/fees/rules/999/apply", headers=auth_header(admin))
    assert r.status_code == 404


def test_activate_scheduled_dry_run(client, db):
    admin = create_admin(db)
    rule = create_rule(db, status=FeeRuleStatus.SCHEDULED, effective_date=utc_today())

    r = client.post("/admin/fees/activate-scheduled", params={"dry_run": "true"}, headers=auth_header(admin))
    assert r.status_code == 200
    assert r.json()["rule_ids"] == [rule.id]
    assert r.json()["dry_run"] is True

    r = client.get(f"/admin/fees/rules/{rule.id}", headers=auth_header(admin))
    assert r.json()["status"] == "scheduled"

    r = client.post("/admin/fees/activate-scheduled", headers=auth_header(admin))
    assert r.json()["activated_count"] == 1

    r = client.get(f"/admin/fees/rules/{rule.id}", headers=auth_header(admin))
    assert r.json()["status"] == "active"


def test_rule_state_transitions_over_api(client, db):
    admin = create_admin(db)
    rule = create_rule(db, status=FeeRuleStatus.DRAFT)
    later = (utc_today() + datetime.timedelta(days=10)).isoformat()

    r = client.post(f"/admin/fees/rules/{rule.id}/activate", headers=auth_header(admin))
    assert r.status_code == 409

    r = client.post(
        f"/admin/fees/rules/{rule.id}/schedule", json={"effective_date": later}, headers=auth_header(admin)
    )
    assert r.status_code == 200
    assert r.json()["status"] == "scheduled"

    r = client.post(f"/admin/fees/rules/{rule.id}/activate", headers=auth_header(admin))
    assert r.status_code == 200
    assert r.json()["effective_date"] == utc_today().isoformat()

    r = client.post(
        f"/admin/fees/rules/{rule.id}/schedule", json={"effective_date": later}, headers=auth_header(admin)
    )
    assert r.status_code == 409

    r = client.post(f"/admin/fees/rules/{rule.id}/deactivate", headers=auth_header(admin))
    assert r.status_code == 200
    assert r.json()["status"] == "inactive"


def test_update_and_delete_rule(client, db):
    admin = create_admin(db)
    rule = create_rule(db, status=FeeRuleStatus.DRAFT)

    r = client.patch(
        f"/admin/fees/rules/{rule.id}", json={"amount": "7500", "name": "Water fee"}, headers=auth_header(admin)
    )
    assert r.status_code == 200, r.text
    assert Decimal(r.json()["amount"]) == Decimal("7500.00")
    assert r.json()["name"] == "Water fee"

    r = client.patch(f"/admin/fees/rules/{rule.id}", json={"amount": "-1"}, headers=auth_header(admin))
    assert r.status_code == 400

    r = client.delete(f"/admin/fees/rules/{rule.id}", headers=auth_header(admin))
    assert r.status_code == 200
    assert r.json()["is_deleted"] is True

    r = client.get(f"/admin/fees/rules/{rule.id}", headers=auth_header(admin))
    assert r.status_code == 404

    r = client.get("/admin/fees/rules", headers=auth_header(admin))
    assert r.json() == []


def test_admin_cancels_application(client, db):
    admin = create_admin(db)
    member = create_member(db)
    rule = create_rule(db)
    client.post(f"/admin/fees/rules/{rule.id}/apply", params={"as_of": "2026-01-05"}, headers=auth_header(admin))

    r = client.get("/fees/me/applications", headers=auth_header(member))
    app_id = r.json()[0]["id"]

    r = client.post(
        f"/admin/fees/applications/{app_id}/cancel", json={"reason": "waived"}, headers=auth_header(admin)
    )
    assert r.status_code == 200
    assert r.json()["status"] == "cancelled"
    assert r.json()["notes"] == "waived"

    r = client.post(f"/admin/fees/applications/{app_id}/payments", json={}, headers=auth_header(admin))
    assert r.status_code == 409


def test_assign_units_and_apply_with_unit_amounts(client, db):
    admin = create_admin(db)
    north = create_unit(db)
    south = create_unit(db)
    create_member(db, unit=north)
    create_member(db, unit=south)
    create_member(db, unit=create_unit(db))
    rule = create_rule(db, applicable_to=ApplicableTo.ASSIGNED_UNITS, amount="5000.00")

    r = client.post(
        f"/admin/fees/rules/{rule.id}/units",
        json={"units": [{"unit_id": north.id, "custom_amount": "3500.00"}, {"unit_id": south.id}]},
        headers=auth_header(admin),
    )
    assert r.status_code == 200
    assert [(a["unit_id"], a["is_active"]) for a in r.json()] == [(north.id, True), (south.id, True)]

    r = client.post(f"/admin/fees/rules/{rule.id}/apply", params={"as_of": "2026-01-05"}, headers=auth_header(admin))
    assert r.json()["created"] == 2

    r = client.get(f"/admin/fees/rules/{rule.id}/applications", headers=auth_header(admin))
    assert sorted(Decimal(a["amount"]) for a in r.json()) == [Decimal("3500.00"), Decimal("5000.00")]

    r = client.delete(f"/admin/fees/rules/{rule.id}/units/{south.id}", headers=auth_header(admin))
    assert r.status_code == 200
    assert r.json()["is_active"] is False

    r = client.get(f"/admin/fees/rules/{rule.id}/units", headers=auth_header(admin))
    assert [a["unit_id"] for a in r.json()] == [north.id]

    r = client.delete(f"/admin/fees/rules/{rule.id}/units/{south.id}", headers=auth_header(admin))
    assert r.status_code == 404


def test_assign_units_rejects_unknown_unit(client, db):
    admin = create_admin(db)
    rule = create_rule(db)

    r = client.post(
        f"/admin/fees/rules/{rule.id}/units", json={"units": [{"unit_id": 404}]}, headers=auth_header(admin)
    )
    assert r.status_code == 400

    r = client.get(f"/admin/fees/rules/{rule.id}/units", headers=auth_header(admin))
    assert r.json() == []

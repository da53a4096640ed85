import os
from datetime import date, datetime

import pytest
from flask_jwt_extended import create_access_token

from payleave_api import create_app
from payleave_api.extensions import db
from payleave_api.models.employee import Employee
from payleave_api.models.attendance_punch import AttendancePunch
from payleave_api.models.weekly_off import WeeklyOffSetting
from payleave_api.models.leave import LeaveType, LeaveRule
from payleave_api.services import leave_ledger


@pytest.fixture(scope="function")
def app():
    os.environ["DATABASE_URL"] = "sqlite:///:memory:"
    app = create_app()
    with app.app_context():
        db.create_all()
        db.session.add_all([
            Employee(code="E1", first_name="Asha", last_name="Kulkarni", department="Engineering",
                     doj=date(2023, 1, 1)),
            WeeklyOffSetting(employee_code="E1", days=["Sunday"]),
            LeaveType(code="CL", name="Casual Leave"),
        ])
        db.session.flush()
        db.session.add(LeaveRule(leave_type_code="CL", allocated_count=2))
        for day in (4, 6):
            db.session.add(AttendancePunch(employee_code="E1", ts=datetime(2024, 3, day, 9, 0), direction="in"))
        db.session.commit()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def _auth(*roles, identity="u-1"):
    token = create_access_token(identity=identity, additional_claims={"roles": list(roles)})
    return {"Authorization": f"Bearer {token}"}


def _give_cl(amount=2):
    with leave_ledger.unit_of_work():
        leave_ledger.set_opening("E1", "CL", amount)


def test_routes_require_a_token(client):
    assert client.get("/api/v1/leave/balances").status_code == 401


def test_admin_routes_require_a_role(client):
    r = client.post("/api/v1/leave/balances/sync", json={}, headers=_auth("employee"))
    assert r.status_code == 403
    assert r.get_json()["success"] is False


def test_sync_then_list_balances(client):
    r = client.post("/api/v1/leave/balances/sync", headers=_auth("hr"),
                    json={"period_start": "2024-03-01", "period_end": "2024-03-31"})
    assert r.status_code == 200
    assert r.get_json()["data"]["employees_processed"] == 1

    r = client.get("/api/v1/leave/balances?employee_code=E1", headers=_auth())
    items = r.get_json()["data"]["items"]
    assert [(b["leave_type"], b["remaining"]) for b in items] == [("CL", 2.0)]


def test_absence_audit_and_regularize(client):
    _give_cl(2)
    r = client.get("/api/v1/leave/absentees?start=2024-03-04&end=2024-03-06", headers=_auth("hr"))
    assert r.status_code == 200
    items = r.get_json()["data"]["items"]
    assert [(i["employee_code"], i["date"], i["day_name"]) for i in items] == [("E1", "2024-03-05", "Tuesday")]

    r = client.post("/api/v1/leave/absentees/regularize", headers=_auth("hr"),
                    json={"employee_code": "E1", "date": "2024-03-05", "leave_type": "CL"})
    assert r.status_code == 200
    assert r.get_json()["data"]["balance"]["remaining"] == 1.0

    r = client.get("/api/v1/leave/absentees?start=2024-03-04&end=2024-03-06", headers=_auth("hr"))
    assert r.get_json()["data"]["items"] == []


def test_absentees_needs_a_range(client):
    r = client.get("/api/v1/leave/absentees?start=2024-03-04", headers=_auth("hr"))
    assert r.status_code == 422
    assert r.get_json()["error"]["code"] == "VALIDATION_ERROR"


def test_request_lifecycle(client):
    _give_cl(2)
    r = client.post("/api/v1/leave/requests", headers=_auth(identity="emp-7"), json={
        "employee_code": "E1", "leave_type": "CL",
        "start_date": "2024-03-07", "end_date": "2024-03-08", "reason": "family",
    })
    assert r.status_code == 201
    req = r.get_json()["data"]
    assert req["status"] == "Pending"
    assert req["total_days"] == 2.0

    # employees cannot approve
    r = client.post(f"/api/v1/leave/requests/{req['id']}/approve", headers=_auth("employee"))
    assert r.status_code == 403

    r = client.post(f"/api/v1/leave/requests/{req['id']}/approve", headers=_auth("hr", identity="hr-1"))
    assert r.status_code == 200
    body = r.get_json()["data"]
    assert body["request"]["status"] == "Approved"
    assert body["balance"]["remaining"] == 0.0

    r = client.post(f"/api/v1/leave/requests/{req['id']}/approve", headers=_auth("hr"))
    assert r.status_code == 409
    assert r.get_json()["error"]["code"] == "INVALID_TRANSITION"

    r = client.get(f"/api/v1/leave/requests/{req['id']}/actions", headers=_auth())
    trail = r.get_json()["data"]["items"]
    assert [(a["action"], a["acted_by"]) for a in trail] == [("applied", "emp-7"), ("approved", "hr-1")]

    r = client.get("/api/v1/leave/applications?employee_code=E1", headers=_auth())
    assert [a["date"] for a in r.get_json()["data"]["items"]] == ["2024-03-07", "2024-03-08"]


def test_insufficient_balance_is_explained(client):
    _give_cl(1)
    r = client.post("/api/v1/leave/requests", headers=_auth(), json={
        "employee_code": "E1", "leave_type": "CL",
        "start_date": "2024-03-07", "end_date": "2024-03-08",
    })
    assert r.status_code == 409
    err = r.get_json()["error"]
    assert err["code"] == "INSUFFICIENT_BALANCE"
    assert err["message"].startswith("insufficient balance: remaining 1 < requested 2")
    assert err["detail"]["remaining"] == 1.0


def test_reject_and_filter_requests(client):
    _give_cl(2)
    r = client.post("/api/v1/leave/requests", headers=_auth(), json={
        "employee_code": "E1", "leave_type": "CL", "start_date": "2024-03-07", "end_date": "2024-03-07",
    })
    rid = r.get_json()["data"]["id"]
    r = client.post(f"/api/v1/leave/requests/{rid}/reject", headers=_auth("hr"), json={"reason": "cover"})
    assert r.get_json()["data"]["status"] == "Rejected"

    r = client.get("/api/v1/leave/requests?status=Rejected", headers=_auth())
    assert [x["id"] for x in r.get_json()["data"]["items"]] == [rid]
    r = client.get("/api/v1/leave/requests?status=Maybe", headers=_auth())
    assert r.status_code == 422


def test_unknown_request_is_404(client):
    r = client.post("/api/v1/leave/requests/404/reject", headers=_auth("admin"), json={})
    assert r.status_code == 404


def test_comp_off_preview_and_rules(client):
    r = client.get("/api/v1/leave/comp-off?employee_code=E1&start=2024-03-01&end=2024-03-31", headers=_auth("payroll"))
    assert r.status_code == 200
    assert r.get_json()["data"]["earned_count"] == 0

    r = client.get("/api/v1/leave/rules", headers=_auth())
    rules = r.get_json()["data"]["items"]
    assert [(x["leave_type_code"], x["allocated_count"]) for x in rules] == [("CL", 2.0)]

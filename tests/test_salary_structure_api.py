import os
from datetime import date

import pytest
from flask_jwt_extended import create_access_token

from payleave_api import create_app
from payleave_api.extensions import db
from payleave_api.models.employee import Employee
from payleave_api.models.payroll import EarningComponent, DeductionComponent, EmployerAdditionalComponent


@pytest.fixture(scope="function")
def app():
    os.environ["DATABASE_URL"] = "sqlite:///:memory:"
    app = create_app()
    with app.app_context():
        db.create_all()
        db.session.add_all([
            Employee(code="E1", first_name="Asha", doj=date(2023, 1, 1)),
            Employee(code="E2", first_name="Rohan", doj=date(2023, 1, 1)),
            EarningComponent(name="Basic Salary", calculation_percentage=50, based_on="Gross", sort_order=10),
            EarningComponent(name="HRA", calculation_percentage=40, based_on="Basic",
                             max_calculated_value=9000, sort_order=20),
            EarningComponent(name="Old Allowance", calculation_percentage=10, based_on="Gross", status="inactive"),
            DeductionComponent(name="PF", based_on="Basic", sort_order=10),
            DeductionComponent(name="ESI", based_on="Gross", sort_order=20),
            EmployerAdditionalComponent(name="Employer PF", based_on="Basic", sort_order=10),
        ])
        db.session.commit()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def _auth(*roles):
    token = create_access_token(identity="u-1", additional_claims={"roles": list(roles)})
    return {"Authorization": f"Bearer {token}"}


def _names(lines):
    return {l["name"]: l["amount"] for l in lines}


def test_assign_derives_full_structure(client):
    r = client.put("/api/v1/salary-structures/E1", json={"monthly_gross": 50000}, headers=_auth("payroll"))
    assert r.status_code == 200
    s = r.get_json()["data"]
    assert s["basic_salary"] == 25000
    assert _names(s["earnings_breakdown"]) == {"Basic Salary": 25000, "HRA": 9000}
    assert _names(s["deductions_breakdown"]) == {"PF": 3000}
    assert _names(s["employer_additional_breakdown"]) == {"Employer PF": 3250}
    assert s["net_salary"] == 31000
    assert s["ctc"] == 53250
    assert s["is_overridden"] is False

    r = client.get("/api/v1/salary-structures/E1", headers=_auth("hr"))
    assert r.get_json()["data"]["net_salary"] == 31000


def test_override_then_rederive(client, app):
    client.put("/api/v1/salary-structures/E1", json={"monthly_gross": 50000}, headers=_auth("payroll"))
    hra = EarningComponent.query.filter_by(name="HRA").first()

    r = client.patch("/api/v1/salary-structures/E1/components", headers=_auth("payroll"),
                     json={"kind": "earnings", "component_id": hra.id, "amount": 5000})
    assert r.status_code == 200
    s = r.get_json()["data"]
    assert s["is_overridden"] is True
    assert _names(s["earnings_breakdown"])["HRA"] == 5000
    assert s["total_earnings"] == 30000
    assert s["net_salary"] == 27000

    # a fresh derivation discards the override
    r = client.put("/api/v1/salary-structures/E1", json={"monthly_gross": 50000}, headers=_auth("payroll"))
    s = r.get_json()["data"]
    assert s["is_overridden"] is False
    assert _names(s["earnings_breakdown"])["HRA"] == 9000


def test_override_validation(client):
    client.put("/api/v1/salary-structures/E1", json={"monthly_gross": 50000}, headers=_auth("payroll"))
    r = client.patch("/api/v1/salary-structures/E1/components", headers=_auth("payroll"),
                     json={"kind": "earnings", "component_id": 9999, "amount": 10})
    assert r.status_code == 404
    r = client.patch("/api/v1/salary-structures/E1/components", headers=_auth("payroll"),
                     json={"kind": "earnings", "component_id": 1, "amount": -10})
    assert r.status_code == 422
    r = client.patch("/api/v1/salary-structures/E2/components", headers=_auth("payroll"),
                     json={"kind": "earnings", "component_id": 1, "amount": 10})
    assert r.status_code == 404


def test_preview_does_not_save(client):
    r = client.post("/api/v1/salary-structures/preview", json={"monthly_gross": 20000}, headers=_auth("hr"))
    assert r.status_code == 200
    s = r.get_json()["data"]
    assert _names(s["deductions_breakdown"]) == {"PF": 1200, "ESI": 150}

    assert client.get("/api/v1/salary-structures/E1", headers=_auth("hr")).status_code == 404


def test_negative_gross_is_rejected(client):
    r = client.put("/api/v1/salary-structures/E1", json={"monthly_gross": -100}, headers=_auth("payroll"))
    assert r.status_code == 422
    assert "negative" in r.get_json()["error"]["message"]


def test_bulk_assign_reports_bad_rows(client):
    r = client.post("/api/v1/salary-structures/bulk", headers=_auth("payroll"), json={"rows": [
        {"employee_code": "E1", "monthly_gross": 50000},
        {"employee_code": "E404", "monthly_gross": 30000},
        {"employee_code": "E2", "monthly_gross": "abc"},
    ]})
    assert r.status_code == 200
    res = r.get_json()["data"]
    assert [x["employee_code"] for x in res["saved"]] == ["E1"]
    assert [(e["employee_code"], e["code"]) for e in res["errors"]] == [
        ("E404", "NOT_FOUND"), ("E2", "VALIDATION_ERROR"),
    ]


def test_hr_can_read_but_not_write(client):
    r = client.put("/api/v1/salary-structures/E1", json={"monthly_gross": 50000}, headers=_auth("hr"))
    assert r.status_code == 403


def test_component_catalog_lists_active_only(client):
    r = client.get("/api/v1/salary-structures/components", headers=_auth("payroll"))
    names = [c["name"] for c in r.get_json()["data"]["earnings"]]
    assert names == ["Basic Salary", "HRA"]


def test_oversized_gross_is_a_validation_error(client):
    r = client.put("/api/v1/salary-structures/E1", json={"monthly_gross": 1e12}, headers=_auth("payroll"))
    assert r.status_code == 422
    assert r.get_json()["error"]["code"] == "VALIDATION_ERROR"

# tests/test_api.py
from decimal import Decimal
from unittest.mock import patch

import pytest

from premium_engine.insurance_database import Claim, Member, Premium

CLAIM_PAYLOAD = {
    "service_date": "2026-09-30",
    "amount": 1800,
    "description": "Outpatient consultation",
    "diagnosis": "Acute bronchitis",
    "diagnosis_code": "J20.9",
    "diagnosis_code_type": "ICD-10",
}


def claim_payload(seeded, **overrides):
    payload = dict(
        CLAIM_PAYLOAD,
        member_id=seeded.principal.id,
        institution_id=seeded.institution.id,
        personnel_id=seeded.personnel.id,
        benefit_id=seeded.outpatient.id,
    )
    payload.update(overrides)
    return payload


@pytest.mark.anyio
async def test_calculate_premium(client, seeded):
    response = await client.post("/api/premiums/calculate", json={"company_id": seeded.company.id})

    assert response.status_code == 200
    data = response.json()
    assert data["principal_count"] == 2
    assert data["spouse_count"] == 1
    assert data["child_count"] == 3
    assert data["special_needs_count"] == 1
    assert Decimal(str(data["subtotal"])) == Decimal("4000")
    assert Decimal(str(data["tax"])) == Decimal("640")
    assert Decimal(str(data["total"])) == Decimal("4640")
    assert Decimal(str(data["rates"]["tax_rate"])) == Decimal("0.16")
    assert data["premium_id"] != seeded.premium.id


@pytest.mark.anyio
async def test_calculate_premium_unknown_company(client, seeded):
    response = await client.post("/api/premiums/calculate", json={"company_id": 9999})

    assert response.status_code == 404
    assert response.json() == {"error": {"code": "NOT_FOUND", "message": "Company not found",
                                         "details": {"company_id": 9999}}}


@pytest.mark.anyio
async def test_premium_history(client, seeded):
    first = (await client.post("/api/premiums/calculate", json={"company_id": seeded.company.id})).json()

    latest = await client.get(f"/api/premiums/company/{seeded.company.id}/latest")
    history = await client.get(f"/api/premiums/{first['premium_id']}/history")

    assert latest.json()["id"] == first["premium_id"]
    assert [p["id"] for p in history.json()] == [first["premium_id"], seeded.premium.id]


@pytest.mark.anyio
async def test_missing_api_key(client, seeded):
    del client.headers["X-API-Key"]
    response = await client.get("/api/companies")
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


@pytest.mark.anyio
async def test_invalid_api_key(client, seeded):
    response = await client.get("/api/companies", headers={"X-API-Key": "wrong-key"})

    assert response.status_code == 403
    assert response.json()["error"] == {"code": "FORBIDDEN", "message": "Invalid API key", "details": None}


@pytest.mark.anyio
async def test_request_validation_error_shape(client, seeded):
    response = await client.post("/api/premiums/calculate", json={})

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    assert error["details"]["errors"][0]["field"] == "company_id"


@pytest.mark.anyio
async def test_delete_principal_without_dependents(client, seeded, db_session):
    member_id = seeded.other_principal.id

    response = await client.delete(f"/api/members/{member_id}")

    assert response.status_code == 200
    data = response.json()
    assert data["member"]["id"] == member_id
    adjustment = db_session.get(Premium, data["premium_adjustment_id"])
    assert adjustment.principal_count == 1
    assert adjustment.is_adjustment is True
    assert adjustment.previous_premium_id == seeded.premium.id
    assert db_session.get(Member, member_id) is None


@pytest.mark.anyio
async def test_delete_principal_with_dependents_is_refused(client, seeded, db_session):
    members_before = db_session.query(Member).count()
    premiums_before = db_session.query(Premium).count()

    response = await client.delete(f"/api/members/{seeded.principal.id}")

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    assert error["details"] == {"dependent_count": 5}
    assert db_session.query(Member).count() == members_before
    assert db_session.query(Premium).count() == premiums_before


@pytest.mark.anyio
async def test_delete_unknown_member(client, seeded):
    response = await client.delete("/api/members/9999")
    assert response.status_code == 404


@pytest.mark.anyio
async def test_add_dependent_adjusts_premium(client, seeded, db_session):
    response = await client.post("/api/members/dependent", json={
        "principal_id": seeded.other_principal.id,
        "first_name": "Ivy",
        "last_name": "Otieno",
        "date_of_birth": "2019-04-12",
        "dependent_type": "Child",
    })

    assert response.status_code == 201
    data = response.json()
    assert data["member"]["company_id"] == seeded.company.id
    assert data["member"]["dependent_type"] == "child"
    assert db_session.get(Premium, data["premium_adjustment_id"]).child_count == 4


@pytest.mark.anyio
async def test_add_underage_spouse_is_rejected(client, seeded, db_session):
    members_before = db_session.query(Member).count()

    response = await client.post("/api/members/dependent", json={
        "principal_id": seeded.other_principal.id,
        "first_name": "Jo",
        "last_name": "Otieno",
        "date_of_birth": "2015-01-01",
        "dependent_type": "spouse",
    })

    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Spouse must be at least 18 years old"
    assert db_session.query(Member).count() == members_before


@pytest.mark.anyio
async def test_member_is_created_when_premium_adjustment_fails(client, seeded, db_session):
    premiums_before = db_session.query(Premium).count()

    with patch(
        "premium_engine.services.members.recalculate_on_member_change",
        side_effect=RuntimeError("database unavailable"),
    ):
        response = await client.post("/api/members/principal", json={
            "company_id": seeded.company.id,
            "first_name": "Kofi",
            "last_name": "Mensah",
            "date_of_birth": "1990-02-02",
        })

    assert response.status_code == 201
    data = response.json()
    assert data["premium_adjustment_id"] is None
    assert db_session.get(Member, data["member"]["id"]) is not None
    assert db_session.query(Premium).count() == premiums_before


@pytest.mark.anyio
async def test_submit_claim(client, seeded, db_session):
    response = await client.post("/api/claims", json=claim_payload(seeded))

    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "submitted"
    assert data["requires_higher_approval"] is False
    assert db_session.query(Claim).count() == 1


@pytest.mark.anyio
async def test_claim_for_benefit_outside_package(client, seeded, db_session):
    response = await client.post("/api/claims", json=claim_payload(seeded, benefit_id=seeded.dental.id))

    assert response.status_code == 403
    assert response.json()["error"]["message"] == (
        "The requested benefit is not included in the member's insurance package"
    )
    assert db_session.query(Claim).count() == 0


@pytest.mark.anyio
async def test_claim_from_unapproved_institution(client, seeded, db_session, monkeypatch):
    seeded.institution.approval_status = "pending"
    db_session.commit()

    refused = await client.post("/api/claims", json=claim_payload(seeded))
    assert refused.status_code == 403
    assert refused.json()["error"]["message"] == "Medical institution is not approved to submit claims"

    monkeypatch.setenv("ALLOW_UNVERIFIED_PROVIDERS", "true")
    accepted = await client.post("/api/claims", json=claim_payload(seeded))
    assert accepted.status_code == 201
    assert accepted.json()["requires_higher_approval"] is True

    pending = await client.get("/api/claims/approval/higher")
    assert [c["id"] for c in pending.json()] == [accepted.json()["id"]]


@pytest.mark.anyio
async def test_claim_lifecycle(client, seeded):
    claim_id = (await client.post("/api/claims", json=claim_payload(seeded))).json()["id"]

    early_payment = await client.patch(f"/api/claims/{claim_id}/payment", json={"payment_reference": "PAY-9"})
    assert early_payment.status_code == 400

    approved = await client.patch(f"/api/claims/{claim_id}/admin-approve", json={"admin_notes": "Checked"})
    assert approved.json()["status"] == "approved"

    paid = await client.patch(f"/api/claims/{claim_id}/payment", json={"payment_reference": "PAY-9"})
    assert paid.status_code == 200
    assert paid.json()["status"] == "paid"


@pytest.mark.anyio
async def test_single_active_period(client, seeded):
    response = await client.post("/api/periods", json={
        "name": "FY2026-B",
        "start_date": "2026-06-01",
        "end_date": "2027-06-01",
        "status": "active",
    })

    assert response.status_code == 400
    assert response.json()["error"]["details"] == {"active_period_id": seeded.period.id}


@pytest.mark.anyio
async def test_add_parent_writes_adjustment_with_unchanged_counts(client, seeded, db_session):
    premiums_before = db_session.query(Premium).count()

    response = await client.post("/api/members/dependent", json={
        "principal_id": seeded.principal.id,
        "first_name": "Wanjiru",
        "last_name": "Otieno",
        "date_of_birth": "1958-08-08",
        "dependent_type": "parent",
    })

    assert response.status_code == 201
    data = response.json()
    assert data["premium_adjustment_id"] is not None
    assert db_session.query(Premium).count() == premiums_before + 1
    adjustment = db_session.get(Premium, data["premium_adjustment_id"])
    assert adjustment.previous_premium_id == seeded.premium.id
    assert (adjustment.principal_count, adjustment.spouse_count,
            adjustment.child_count, adjustment.special_needs_count) == (2, 1, 3, 1)


@pytest.mark.anyio
async def test_unknown_reference_rows_share_not_found_shape(client, seeded):
    company = await client.get("/api/companies/9999")
    institution = await client.patch("/api/medical-institutions/9999/approval", json={"approval_status": "approved"})

    assert company.status_code == 404
    assert company.json()["error"] == {"code": "NOT_FOUND", "message": "Company not found", "details": {"id": 9999}}
    assert institution.status_code == 404
    assert institution.json()["error"]["message"] == "Medical institution not found"

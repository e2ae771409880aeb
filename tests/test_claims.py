# tests/test_claims.py
from datetime import date
from decimal import Decimal

import pytest

from premium_engine.insurance_database import Claim, ClaimProcedureItem, MedicalProcedure
from premium_engine.model import ClaimBase, ClaimInput, ProcedureItemInput
from premium_engine.result import ErrorKind
from premium_engine.services import claims


def claim_input(seeded, **overrides):
    values = dict(
        member_id=seeded.spouse.id,
        institution_id=seeded.institution.id,
        personnel_id=seeded.personnel.id,
        benefit_id=seeded.outpatient.id,
        service_date=date(2026, 9, 30),
        amount=Decimal("2500"),
        description="Outpatient consultation",
        diagnosis="Acute bronchitis",
        diagnosis_code="j20.9",
        diagnosis_code_type="ICD-10",
    )
    values.update(overrides)
    return ClaimInput(**values)


@pytest.fixture
def submitted(seeded, db_session):
    return claims.submit_claim(db_session, claim_input(seeded)).value


def test_submit_claim_persists_submitted_claim(seeded, db_session):
    result = claims.submit_claim(db_session, claim_input(seeded))

    claim = result.value
    assert claim.id is not None
    assert claim.status == "submitted"
    assert claim.diagnosis_code == "J20.9"
    assert claim.provider_verified is True
    assert claim.requires_higher_approval is False


def test_rejected_claim_is_not_persisted(seeded, db_session):
    result = claims.submit_claim(db_session, claim_input(seeded, benefit_id=seeded.dental.id))

    assert result.kind is ErrorKind.FORBIDDEN
    assert db_session.query(Claim).count() == 0


def test_unverified_claim_needs_higher_approval(seeded, db_session):
    seeded.personnel.approval_status = "pending"
    db_session.commit()

    claim = claims.submit_claim(db_session, claim_input(seeded), allow_unverified_providers=True).value

    assert claim.provider_verified is False
    assert claim.requires_higher_approval is True


def test_claim_with_procedures_is_priced(seeded, db_session):
    procedure = MedicalProcedure(name="Spirometry", code="PF01", category="diagnostics", standard_rate=Decimal("120"))
    db_session.add(procedure)
    db_session.commit()
    data = ClaimBase(**claim_input(seeded).model_dump(exclude={"amount"}))

    result = claims.submit_claim_with_procedures(
        db_session, data, [ProcedureItemInput(procedure_id=procedure.id, quantity=3)], today=date(2026, 10, 1)
    )

    claim = result.value
    assert Decimal(str(claim.amount)) == Decimal("360")
    assert len(claim.procedure_items) == 1
    assert claim.procedure_items[0].unit_rate == Decimal("120")


def test_claim_with_unknown_procedure_writes_nothing(seeded, db_session):
    data = ClaimBase(**claim_input(seeded).model_dump(exclude={"amount"}))

    result = claims.submit_claim_with_procedures(db_session, data, [ProcedureItemInput(procedure_id=55, quantity=1)])

    assert result.kind is ErrorKind.NOT_FOUND
    assert db_session.query(Claim).count() == 0
    assert db_session.query(ClaimProcedureItem).count() == 0


def test_claim_with_no_procedures(seeded, db_session):
    data = ClaimBase(**claim_input(seeded).model_dump(exclude={"amount"}))

    result = claims.submit_claim_with_procedures(db_session, data, [])
    assert result.message == "At least one procedure item is required"


def test_payment_requires_approval(db_session, submitted):
    result = claims.process_claim_payment(db_session, submitted.id, "PAY-001")

    assert result.kind is ErrorKind.VALIDATION_ERROR
    assert db_session.get(Claim, submitted.id).status == "submitted"


def test_admin_approval_then_payment(db_session, submitted):
    approved = claims.admin_approve_claim(db_session, submitted.id, "Reviewed invoices").value
    assert approved.status == "approved"
    assert approved.approved_by_admin is True
    assert approved.admin_review_notes == "Reviewed invoices"

    paid = claims.process_claim_payment(db_session, submitted.id, "PAY-001").value
    assert paid.status == "paid"
    assert paid.payment_reference == "PAY-001"
    assert paid.payment_date is not None


def test_paid_claim_status_is_final(db_session, submitted):
    claims.admin_approve_claim(db_session, submitted.id, "ok")
    claims.process_claim_payment(db_session, submitted.id, "PAY-002")

    result = claims.update_claim_status(db_session, submitted.id, "under_review")
    assert result.kind is ErrorKind.VALIDATION_ERROR


def test_status_update_cannot_mark_paid(db_session, submitted):
    result = claims.update_claim_status(db_session, submitted.id, "paid")
    assert result.kind is ErrorKind.VALIDATION_ERROR


def test_status_update(db_session, submitted):
    claim = claims.update_claim_status(db_session, submitted.id, "under_review", "Awaiting lab report").value
    assert claim.status == "under_review"
    assert claim.reviewer_notes == "Awaiting lab report"
    assert claim.review_date is not None


def test_reject_claim(db_session, submitted):
    claim = claims.reject_claim(db_session, submitted.id, "Duplicate submission").value
    assert claim.status == "rejected"
    assert claim.reviewer_notes == "Duplicate submission"

    assert claims.admin_approve_claim(db_session, submitted.id, "late").kind is ErrorKind.VALIDATION_ERROR


def test_mark_fraudulent(db_session, submitted):
    claim = claims.mark_claim_fraudulent(db_session, submitted.id, "high", ["duplicate invoice", "altered date"], 7).value

    assert claim.status == "fraud_confirmed"
    assert claim.fraud_risk_level == "high"
    assert claim.fraud_risk_factors == "duplicate invoice, altered date"
    assert claim.fraud_reviewer_id == 7


def test_lifecycle_on_missing_claim(seeded, db_session):
    result = claims.reject_claim(db_session, 404, "n/a")
    assert result.kind is ErrorKind.NOT_FOUND
    assert result.message == "Claim not found"

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from premium_engine.insurance_database import Claim, ClaimProcedureItem
from premium_engine.model import ClaimBase, ClaimInput, ProcedureItemInput
from premium_engine.result import Ok, Result, invalid, not_found
from premium_engine.services.claim_validator import ClaimContext, price_procedure_items, validate_claim

logger = logging.getLogger(__name__)

# statuses reviewers may set directly; paid and fraud_confirmed have their own operations
REVIEWABLE_STATUSES = {"submitted", "under_review", "approved", "rejected", "fraud_review"}
OPEN_STATUSES = {"submitted", "under_review", "fraud_review"}


def _new_claim(data: ClaimBase, context: ClaimContext, amount) -> Claim:
    return Claim(
        member_id=data.member_id,
        institution_id=data.institution_id,
        personnel_id=data.personnel_id,
        benefit_id=data.benefit_id,
        service_date=data.service_date,
        amount=amount,
        description=data.description,
        diagnosis=data.diagnosis,
        diagnosis_code=data.diagnosis_code,
        diagnosis_code_type=data.diagnosis_code_type.value,
        status="submitted",
        provider_verified=context.provider_verified,
        requires_higher_approval=context.requires_higher_approval,
    )


def submit_claim(db: Session, data: ClaimInput, allow_unverified_providers: bool = False) -> Result[Claim]:
    context = validate_claim(
        db,
        member_id=data.member_id,
        institution_id=data.institution_id,
        personnel_id=data.personnel_id,
        benefit_id=data.benefit_id,
        amount=data.amount,
        allow_unverified_providers=allow_unverified_providers,
    )
    if not context.ok:
        logger.info("Claim for member %s rejected: %s", data.member_id, context.message)
        return context

    claim = _new_claim(data, context.value, data.amount)
    db.add(claim)
    db.commit()
    db.refresh(claim)
    logger.info("Claim %s submitted for member %s (higher approval: %s)", claim.id, claim.member_id, claim.requires_higher_approval)
    return Ok(claim)


def submit_claim_with_procedures(
    db: Session,
    data: ClaimBase,
    procedure_items: List[ProcedureItemInput],
    allow_unverified_providers: bool = False,
    today: Optional[date] = None,
) -> Result[Claim]:
    if not procedure_items:
        return invalid("At least one procedure item is required")

    # coverage first, then pricing; the limit check needs the priced total
    context = validate_claim(
        db,
        member_id=data.member_id,
        institution_id=data.institution_id,
        personnel_id=data.personnel_id,
        benefit_id=data.benefit_id,
        allow_unverified_providers=allow_unverified_providers,
    )
    if not context.ok:
        logger.info("Claim for member %s rejected: %s", data.member_id, context.message)
        return context

    priced = price_procedure_items(db, data.institution_id, procedure_items, today=today)
    if not priced.ok:
        return priced
    total = sum((item.total_amount for item in priced.value), Decimal("0"))

    context = validate_claim(
        db,
        member_id=data.member_id,
        institution_id=data.institution_id,
        personnel_id=data.personnel_id,
        benefit_id=data.benefit_id,
        amount=total,
        allow_unverified_providers=allow_unverified_providers,
    )
    if not context.ok:
        return context

    claim = _new_claim(data, context.value, total)
    claim.procedure_items = [
        ClaimProcedureItem(
            procedure_id=item.procedure_id,
            quantity=item.quantity,
            unit_rate=item.unit_rate,
            total_amount=item.total_amount,
            notes=item.notes,
        )
        for item in priced.value
    ]
    try:
        db.add(claim)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(claim)
    logger.info("Claim %s submitted with %d procedure item(s), amount %s", claim.id, len(claim.procedure_items), claim.amount)
    return Ok(claim)


def get_claim(db: Session, claim_id: int) -> Result[Claim]:
    claim = db.get(Claim, claim_id)
    if not claim:
        return not_found("Claim not found", claim_id=claim_id)
    return Ok(claim)


def _save(db: Session, claim: Claim) -> Claim:
    db.commit()
    db.refresh(claim)
    return claim


def update_claim_status(db: Session, claim_id: int, status: str, reviewer_notes: Optional[str] = None) -> Result[Claim]:
    found = get_claim(db, claim_id)
    if not found.ok:
        return found
    claim = found.value

    if status not in REVIEWABLE_STATUSES:
        return invalid(f"Status '{status}' cannot be set directly", status=status)
    if claim.status in ("paid", "fraud_confirmed"):
        return invalid(f"Claim with ID {claim_id} is {claim.status} and can no longer change status")

    claim.status = status
    claim.review_date = datetime.utcnow()
    claim.reviewer_notes = reviewer_notes
    logger.info("Claim %s moved to %s", claim_id, status)
    return Ok(_save(db, claim))


def admin_approve_claim(db: Session, claim_id: int, admin_notes: str) -> Result[Claim]:
    found = get_claim(db, claim_id)
    if not found.ok:
        return found
    claim = found.value

    if claim.status not in OPEN_STATUSES:
        return invalid(f"Claim with ID {claim_id} is {claim.status} and cannot be approved")

    claim.status = "approved"
    claim.approved_by_admin = True
    claim.admin_approval_date = datetime.utcnow()
    claim.admin_review_notes = admin_notes
    logger.info("Claim %s approved by admin", claim_id)
    return Ok(_save(db, claim))


def reject_claim(db: Session, claim_id: int, reason: str) -> Result[Claim]:
    found = get_claim(db, claim_id)
    if not found.ok:
        return found
    claim = found.value

    if claim.status not in OPEN_STATUSES:
        return invalid(f"Claim with ID {claim_id} is {claim.status} and cannot be rejected")

    claim.status = "rejected"
    claim.review_date = datetime.utcnow()
    claim.reviewer_notes = reason
    logger.info("Claim %s rejected: %s", claim_id, reason)
    return Ok(_save(db, claim))


def mark_claim_fraudulent(
    db: Session,
    claim_id: int,
    risk_level: str,
    risk_factors: List[str],
    reviewer_id: int,
) -> Result[Claim]:
    found = get_claim(db, claim_id)
    if not found.ok:
        return found
    claim = found.value

    if claim.status == "paid":
        return invalid(f"Claim with ID {claim_id} has already been paid")

    claim.status = "fraud_confirmed"
    claim.fraud_risk_level = risk_level
    claim.fraud_risk_factors = ", ".join(risk_factors)
    claim.fraud_review_date = datetime.utcnow()
    claim.fraud_reviewer_id = reviewer_id
    logger.warning("Claim %s marked fraudulent (%s) by reviewer %s", claim_id, risk_level, reviewer_id)
    return Ok(_save(db, claim))


def process_claim_payment(db: Session, claim_id: int, payment_reference: str) -> Result[Claim]:
    found = get_claim(db, claim_id)
    if not found.ok:
        return found
    claim = found.value

    if claim.status != "approved":
        return invalid(f"Claim with ID {claim_id} must be approved before payment can be processed")

    claim.status = "paid"
    claim.payment_date = datetime.utcnow()
    claim.payment_reference = payment_reference
    logger.info("Claim %s paid, reference %s", claim_id, payment_reference)
    return Ok(_save(db, claim))

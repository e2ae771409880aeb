from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from premium_engine.insurance_database import (
    Benefit, Claim, CompanyBenefit, MedicalInstitution, MedicalPersonnel, MedicalProcedure,
    Member, Period, Premium, ProviderProcedureRate,
)
from premium_engine.result import Ok, Result, forbidden, invalid, not_found
from premium_engine.services.premium_calculator import latest_premium_for, premium_chain
from premium_engine.services.rates import get_active_period

APPROVED = "approved"
CENTS = Decimal("0.01")
# claim statuses that no longer draw on a benefit limit
RELEASED_STATUSES = ("rejected", "fraud_confirmed")

NOT_IN_PACKAGE = "The requested benefit is not included in the member's insurance package"


@dataclass
class ClaimContext:
    member: Member
    institution: MedicalInstitution
    personnel: MedicalPersonnel
    benefit: Benefit
    period: Period
    premium: Premium
    company_benefit: CompanyBenefit
    provider_verified: bool
    requires_higher_approval: bool


@dataclass
class PricedProcedureItem:
    procedure_id: int
    quantity: int
    unit_rate: Decimal
    total_amount: Decimal
    notes: str = ""


def requires_higher_approval(institution: MedicalInstitution, personnel: MedicalPersonnel) -> bool:
    return institution.approval_status != APPROVED or personnel.approval_status != APPROVED


def _covering_company_benefit(db: Session, premium: Premium, benefit_id: int) -> Optional[CompanyBenefit]:
    premium_ids = [p.id for p in premium_chain(db, premium)]
    return (
        db.query(CompanyBenefit)
        .filter(CompanyBenefit.premium_id.in_(premium_ids))
        .filter(CompanyBenefit.benefit_id == benefit_id)
        .filter(CompanyBenefit.is_active.is_(True))
        .order_by(CompanyBenefit.id.desc())
        .first()
    )


def _used_amount(db: Session, member_id: int, benefit_id: int) -> Decimal:
    claims = (
        db.query(Claim)
        .filter(Claim.member_id == member_id, Claim.benefit_id == benefit_id)
        .filter(Claim.status.notin_(RELEASED_STATUSES))
        .all()
    )
    return sum((Decimal(str(c.amount)) for c in claims), Decimal("0"))


def validate_claim(
    db: Session,
    member_id: int,
    institution_id: int,
    personnel_id: int,
    benefit_id: int,
    amount: Optional[Decimal] = None,
    allow_unverified_providers: bool = False,
) -> Result[ClaimContext]:
    """Check a claim against provider status and the member's coverage.

    Stops at the first failing check. With ``allow_unverified_providers`` the
    institution and personnel approval checks pass through and the claim is
    flagged for higher approval instead.
    """
    member = db.get(Member, member_id)
    if not member:
        return not_found("Member not found", member_id=member_id)

    institution = db.get(MedicalInstitution, institution_id)
    if not institution:
        return not_found("Medical institution not found", institution_id=institution_id)
    if institution.approval_status != APPROVED and not allow_unverified_providers:
        return forbidden(
            "Medical institution is not approved to submit claims",
            status=institution.approval_status,
        )

    personnel = db.get(MedicalPersonnel, personnel_id)
    if not personnel:
        return not_found("Medical personnel not found", personnel_id=personnel_id)
    if personnel.institution_id != institution_id:
        return forbidden("Medical personnel does not belong to the specified institution")
    if personnel.approval_status != APPROVED and not allow_unverified_providers:
        return forbidden(
            "Medical personnel is not approved to submit claims",
            status=personnel.approval_status,
        )

    benefit = db.get(Benefit, benefit_id)
    if not benefit:
        return not_found("Benefit not found", benefit_id=benefit_id)

    period = get_active_period(db)
    if not period:
        return not_found("No active period found")

    premium = latest_premium_for(db, member.company_id, period.id)
    if not premium:
        return forbidden("Member's company does not have an active premium for the current period")

    company_benefit = _covering_company_benefit(db, premium, benefit_id)
    if not company_benefit:
        return forbidden(NOT_IN_PACKAGE)

    limit = company_benefit.limit_amount if company_benefit.limit_amount is not None else benefit.limit_amount
    if limit is not None:
        limit = Decimal(str(limit)).quantize(CENTS)
        remaining = limit - _used_amount(db, member.id, benefit.id)
        requested = amount if amount is not None else Decimal("0")
        if remaining <= 0 or requested > remaining:
            return forbidden(
                f"Benefit limit of {limit} exhausted",
                limit_amount=str(limit),
                remaining_amount=str(max(remaining, Decimal("0"))),
                requested_amount=str(requested),
            )

    higher = requires_higher_approval(institution, personnel)
    return Ok(ClaimContext(
        member=member,
        institution=institution,
        personnel=personnel,
        benefit=benefit,
        period=period,
        premium=premium,
        company_benefit=company_benefit,
        provider_verified=not higher,
        requires_higher_approval=higher,
    ))


def _provider_rate(db: Session, institution_id: int, procedure_id: int, today: date) -> Optional[ProviderProcedureRate]:
    rates = (
        db.query(ProviderProcedureRate)
        .filter(ProviderProcedureRate.institution_id == institution_id)
        .filter(ProviderProcedureRate.procedure_id == procedure_id)
        .filter(ProviderProcedureRate.active.is_(True))
        .order_by(ProviderProcedureRate.effective_date.desc(), ProviderProcedureRate.id.desc())
        .all()
    )
    for rate in rates:
        if rate.expiry_date is None or rate.expiry_date > today:
            return rate
    return None


def price_procedure_items(
    db: Session,
    institution_id: int,
    items: Iterable,
    today: Optional[date] = None,
) -> Result[List[PricedProcedureItem]]:
    """Unit rate is the institution's agreed rate when one is active and unexpired, else the standard rate."""
    today = today or date.today()
    items = list(items)
    if not items:
        return invalid("At least one procedure item is required")

    priced = []
    for item in items:
        if not item.procedure_id or not item.quantity or item.quantity < 1:
            return invalid("Each procedure item must include procedure_id and quantity")

        procedure = db.get(MedicalProcedure, item.procedure_id)
        if not procedure:
            return not_found(
                f"Medical procedure with ID {item.procedure_id} not found",
                procedure_id=item.procedure_id,
            )

        provider_rate = _provider_rate(db, institution_id, procedure.id, today)
        unit_rate = Decimal(str(provider_rate.agreed_rate if provider_rate else procedure.standard_rate))
        priced.append(PricedProcedureItem(
            procedure_id=procedure.id,
            quantity=item.quantity,
            unit_rate=unit_rate,
            total_amount=unit_rate * item.quantity,
            notes=item.notes or "",
        ))
    return Ok(priced)

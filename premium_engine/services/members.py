"""Member onboarding and removal.

The member row is the system of record. The premium adjustment that follows
each mutation is best effort: a failure is logged and rolled back, and the
member change still stands.
"""
import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional, Union

from sqlalchemy.orm import Session

from premium_engine.insurance_database import Claim, Company, Member
from premium_engine.model import DependentMemberInput, MemberOut, PrincipalMemberInput
from premium_engine.result import Ok, Result, invalid, not_found
from premium_engine.services.classifier import MemberCategory, check_dependent_eligibility, classify_member
from premium_engine.services.premium_calculator import recalculate_on_member_change

logger = logging.getLogger(__name__)


@dataclass
class MemberMutation:
    member: Union[Member, MemberOut]
    premium_adjustment_id: Optional[int] = None


def adjust_premium_best_effort(
    db: Session,
    company_id: int,
    member_id: int,
    category: Optional[MemberCategory],
    is_addition: bool,
    today: Optional[date] = None,
) -> Optional[int]:
    try:
        result = recalculate_on_member_change(db, company_id, is_addition, category, today=today)
    except Exception:
        db.rollback()
        logger.exception("Failed to recalculate premium for company %s after member %s change", company_id, member_id)
        return None

    if not result.ok:
        logger.error(
            "Premium not recalculated for company %s after member %s change: %s",
            company_id, member_id, result.message,
        )
        return None
    return result.value.id


def create_principal(db: Session, data: PrincipalMemberInput, today: Optional[date] = None) -> Result[MemberMutation]:
    if not db.get(Company, data.company_id):
        return not_found("Company not found", company_id=data.company_id)

    member = Member(
        company_id=data.company_id,
        first_name=data.first_name,
        last_name=data.last_name,
        email=data.email,
        phone=data.phone,
        date_of_birth=data.date_of_birth,
        employee_id=data.employee_id,
        member_type="principal",
        has_disability=False,
    )
    db.add(member)
    db.commit()
    db.refresh(member)
    logger.info("Principal member %s created for company %s", member.id, member.company_id)

    premium_id = adjust_premium_best_effort(
        db, member.company_id, member.id, classify_member(member), is_addition=True, today=today
    )
    return Ok(MemberMutation(member=member, premium_adjustment_id=premium_id))


def create_dependent(db: Session, data: DependentMemberInput, today: Optional[date] = None) -> Result[MemberMutation]:
    today = today or date.today()
    dependent_type = data.dependent_type.value

    eligible = check_dependent_eligibility(dependent_type, data.date_of_birth, data.has_disability, today)
    if not eligible.ok:
        return eligible

    principal = db.get(Member, data.principal_id)
    if not principal or principal.member_type != "principal":
        return not_found("Principal member not found", principal_id=data.principal_id)

    member = Member(
        company_id=principal.company_id,
        principal_id=principal.id,
        first_name=data.first_name,
        last_name=data.last_name,
        email=data.email,
        phone=data.phone,
        date_of_birth=data.date_of_birth,
        employee_id=principal.employee_id,
        member_type="dependent",
        dependent_type=dependent_type,
        has_disability=data.has_disability,
        disability_details=data.disability_details,
    )
    db.add(member)
    db.commit()
    db.refresh(member)
    logger.info("Dependent member %s (%s) created under principal %s", member.id, dependent_type, principal.id)

    premium_id = adjust_premium_best_effort(
        db, member.company_id, member.id, classify_member(member), is_addition=True, today=today
    )
    return Ok(MemberMutation(member=member, premium_adjustment_id=premium_id))


def delete_member(db: Session, member_id: int, today: Optional[date] = None) -> Result[MemberMutation]:
    member = db.get(Member, member_id)
    if not member:
        return not_found("Member not found", member_id=member_id)

    claim_count = db.query(Claim).filter(Claim.member_id == member_id).count()
    if claim_count:
        return invalid(
            f"Cannot delete member with ID {member_id} as they have {claim_count} active claim(s)",
            claim_count=claim_count,
        )

    if member.member_type == "principal":
        dependent_count = db.query(Member).filter(Member.principal_id == member_id).count()
        if dependent_count:
            return invalid(
                f"Cannot delete principal member with ID {member_id} as they have "
                f"{dependent_count} dependent(s). Delete dependents first.",
                dependent_count=dependent_count,
            )

    snapshot = MemberOut.model_validate(member)
    category = classify_member(member)

    db.delete(member)
    db.commit()
    logger.info("Member %s deleted from company %s", member_id, snapshot.company_id)

    premium_id = adjust_premium_best_effort(
        db, snapshot.company_id, member_id, category, is_addition=False, today=today
    )
    return Ok(MemberMutation(member=snapshot, premium_adjustment_id=premium_id))

"""Billing categories for a company's roster and the dependent age rules.

Parents and guardians are dependents but fall outside all four billing
categories; ``classify_member`` returns ``None`` for them.
"""
from dataclasses import dataclass, replace
from datetime import date, timedelta
from enum import Enum
from typing import Optional

from sqlalchemy.orm import Session

from premium_engine.insurance_database import Member
from premium_engine.result import Ok, Result, invalid
from premium_engine.rule_loader import get_dependent_age_rule


class MemberCategory(str, Enum):
    PRINCIPAL = "principal"
    SPOUSE = "spouse"
    CHILD = "child"
    SPECIAL_NEEDS = "special_needs"


@dataclass(frozen=True)
class MemberCounts:
    principal: int = 0
    spouse: int = 0
    child: int = 0
    special_needs: int = 0

    def adjusted(self, category: Optional[MemberCategory], delta: int) -> "MemberCounts":
        if category is None:
            return self
        field_name = category.value
        return replace(self, **{field_name: max(0, getattr(self, field_name) + delta)})

    @classmethod
    def from_premium(cls, premium) -> "MemberCounts":
        return cls(
            principal=premium.principal_count,
            spouse=premium.spouse_count,
            child=premium.child_count,
            special_needs=premium.special_needs_count,
        )


def category_for(member_type: str, dependent_type: Optional[str], has_disability: bool) -> Optional[MemberCategory]:
    if member_type == "principal":
        return MemberCategory.PRINCIPAL
    if member_type != "dependent":
        return None
    if dependent_type == "spouse":
        return MemberCategory.SPOUSE
    if dependent_type == "child":
        return MemberCategory.SPECIAL_NEEDS if has_disability else MemberCategory.CHILD
    return None


def classify_member(member: Member) -> Optional[MemberCategory]:
    return category_for(member.member_type, member.dependent_type, bool(member.has_disability))


def count_members_by_category(db: Session, company_id: int) -> MemberCounts:
    tally = {category: 0 for category in MemberCategory}
    for member in db.query(Member).filter(Member.company_id == company_id).all():
        category = classify_member(member)
        if category is not None:
            tally[category] += 1
    return MemberCounts(
        principal=tally[MemberCategory.PRINCIPAL],
        spouse=tally[MemberCategory.SPOUSE],
        child=tally[MemberCategory.CHILD],
        special_needs=tally[MemberCategory.SPECIAL_NEEDS],
    )


def age_in_years(date_of_birth: date, today: date) -> int:
    years = today.year - date_of_birth.year
    if (today.month, today.day) < (date_of_birth.month, date_of_birth.day):
        years -= 1
    return years


def check_dependent_eligibility(
    dependent_type: str,
    date_of_birth: date,
    has_disability: bool,
    today: Optional[date] = None,
) -> Result[None]:
    today = today or date.today()
    if date_of_birth > today:
        return invalid("Date of birth cannot be in the future")

    rule = get_dependent_age_rule(dependent_type)
    age = age_in_years(date_of_birth, today)

    min_age = rule.get("min_age")
    if min_age is not None and age < min_age:
        return invalid(f"{dependent_type.capitalize()} must be at least {min_age} years old", age=age)

    max_age = rule.get("max_age")
    waived = has_disability and rule.get("max_age_waived_for_disability", False)
    if max_age is not None and age > max_age and not waived:
        return invalid(
            f"{dependent_type.capitalize()} must be {max_age} years or younger unless they have a disability",
            age=age,
        )

    min_age_days = rule.get("min_age_days")
    if min_age_days and date_of_birth > today - timedelta(days=min_age_days):
        return invalid(f"{dependent_type.capitalize()} must be at least {min_age_days} day old")

    return Ok(None)

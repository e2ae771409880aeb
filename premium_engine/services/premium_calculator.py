"""Premium calculation over the append-only premium ledger.

Premium rows are never updated. A recalculation writes a new row whose
``previous_premium_id`` points at the row it supersedes, so the newest row of
a company/period is the one nobody else points at.
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from premium_engine.insurance_database import Company, Period, Premium, PremiumRate
from premium_engine.result import Ok, Result, not_found
from premium_engine.rule_loader import get_pro_rata_basis_days
from premium_engine.services.classifier import MemberCategory, MemberCounts, count_members_by_category
from premium_engine.services.rates import get_active_period, get_rate_card_for_period, resolve_period

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
ONE = Decimal("1")


@dataclass(frozen=True)
class PremiumBreakdown:
    counts: MemberCounts
    subtotal: Decimal
    tax: Decimal
    total: Decimal


def _dec(value) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def compute_breakdown(counts: MemberCounts, rate: PremiumRate) -> PremiumBreakdown:
    subtotal = (
        counts.principal * _dec(rate.principal_rate)
        + counts.spouse * _dec(rate.spouse_rate)
        + counts.child * _dec(rate.child_rate)
        + counts.special_needs * _dec(rate.special_needs_rate)
    )
    tax = subtotal * _dec(rate.tax_rate)
    return PremiumBreakdown(counts=counts, subtotal=subtotal, tax=tax, total=subtotal + tax)


def pro_rata_factor(period_end: date, today: date, basis_days: Optional[int] = None) -> Decimal:
    """Share of the premium year still to run, clamped to [0, 1]."""
    basis_days = basis_days or get_pro_rata_basis_days()
    remaining = Decimal((period_end - today).days) / Decimal(basis_days)
    return min(ONE, max(ZERO, remaining))


def latest_premium_for(db: Session, company_id: int, period_id: int) -> Optional[Premium]:
    premiums = (
        db.query(Premium)
        .filter(Premium.company_id == company_id, Premium.period_id == period_id)
        .order_by(Premium.id.desc())
        .all()
    )
    superseded = {p.previous_premium_id for p in premiums if p.previous_premium_id is not None}
    for premium in premiums:
        if premium.id not in superseded and premium.status == "active":
            return premium
    return None


def premium_chain(db: Session, premium: Premium) -> List[Premium]:
    """The premium followed by every row it supersedes, newest first."""
    chain = [premium]
    seen = {premium.id}
    current = premium
    while current.previous_premium_id is not None and current.previous_premium_id not in seen:
        current = db.get(Premium, current.previous_premium_id)
        if current is None:
            break
        chain.append(current)
        seen.add(current.id)
    return chain


def _write_premium(db: Session, premium: Premium) -> Premium:
    db.add(premium)
    db.commit()
    db.refresh(premium)
    logger.info(
        "Premium %s written for company %s period %s: total=%s adjustment=%s",
        premium.id, premium.company_id, premium.period_id, premium.total, premium.is_adjustment,
    )
    return premium


def calculate_premium(
    db: Session,
    company_id: int,
    period_id: Optional[int] = None,
    now: Optional[datetime] = None,
) -> Result[Premium]:
    """Full calculation from the current roster; persists and returns the new premium."""
    if not db.get(Company, company_id):
        return not_found("Company not found", company_id=company_id)

    period = resolve_period(db, period_id)
    if not period.ok:
        return period
    period = period.value

    rate = get_rate_card_for_period(db, period)
    if not rate.ok:
        return rate

    breakdown = compute_breakdown(count_members_by_category(db, company_id), rate.value)
    previous = latest_premium_for(db, company_id, period.id)

    premium = _build_premium(
        company_id,
        period,
        breakdown,
        now=now,
        previous_premium_id=previous.id if previous else None,
        notes="Calculated using standard methodology.",
    )
    return Ok(_write_premium(db, premium))


def recalculate_on_member_change(
    db: Session,
    company_id: int,
    is_addition: bool,
    category: Optional[MemberCategory],
    today: Optional[date] = None,
) -> Result[Premium]:
    """Adjust the latest premium by one member and pro-rate over the rest of the period.

    Falls back to a full calculation when the company has no premium for the
    active period yet. Members outside the billing categories still write an
    adjustment row, with the counts carried over unchanged.
    """
    today = today or date.today()
    period = get_active_period(db)
    if not period:
        return not_found("No active period found")

    prior = latest_premium_for(db, company_id, period.id)
    if prior is None:
        return calculate_premium(db, company_id, period.id)

    rate = get_rate_card_for_period(db, period)
    if not rate.ok:
        return rate

    prior_counts = MemberCounts.from_premium(prior)
    delta = 1 if is_addition else -1
    if category is None:
        logger.info("Member change for company %s does not affect any billing category", company_id)
    elif not is_addition and getattr(prior_counts, category.value) == 0:
        logger.warning("Removing %s from company %s whose premium already counts none", category.value, company_id)
    breakdown = compute_breakdown(prior_counts.adjusted(category, delta), rate.value)

    factor = pro_rata_factor(period.end_date, today)
    pro_rated_total = breakdown.total * factor

    premium = _build_premium(
        company_id,
        period,
        breakdown,
        previous_premium_id=prior.id,
        notes="Premium adjustment due to member addition" if is_addition else "Premium adjustment due to member removal",
    )
    premium.is_adjustment = True
    premium.pro_rated_total = pro_rated_total
    premium.pro_rata_amount = pro_rated_total - breakdown.total
    premium.adjustment_factor = factor
    premium.effective_start_date = today
    premium.pro_rata_start_date = today
    premium.pro_rata_end_date = period.end_date
    return Ok(_write_premium(db, premium))


def _build_premium(
    company_id: int,
    period: Period,
    breakdown: PremiumBreakdown,
    now: Optional[datetime] = None,
    previous_premium_id: Optional[int] = None,
    notes: Optional[str] = None,
) -> Premium:
    return Premium(
        company_id=company_id,
        period_id=period.id,
        principal_count=breakdown.counts.principal,
        spouse_count=breakdown.counts.spouse,
        child_count=breakdown.counts.child,
        special_needs_count=breakdown.counts.special_needs,
        subtotal=breakdown.subtotal,
        tax=breakdown.tax,
        total=breakdown.total,
        status="active",
        issued_date=now or datetime.utcnow(),
        effective_start_date=period.start_date,
        effective_end_date=period.end_date,
        adjustment_factor=ONE,
        is_adjustment=False,
        previous_premium_id=previous_premium_id,
        notes=notes,
    )

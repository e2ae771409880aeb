from typing import Optional
from sqlalchemy.orm import Session

from premium_engine.insurance_database import Period, PremiumRate
from premium_engine.result import Ok, Result, not_found


def get_active_period(db: Session) -> Optional[Period]:
    return (
        db.query(Period)
        .filter(Period.status == "active")
        .order_by(Period.start_date.desc(), Period.id.desc())
        .first()
    )


def resolve_period(db: Session, period_id: Optional[int] = None) -> Result[Period]:
    """Requested period, or the active one when no id is given."""
    if period_id is None:
        period = get_active_period(db)
        if not period:
            return not_found("No active period found")
        return Ok(period)

    period = db.get(Period, period_id)
    if not period:
        return not_found(f"Period with ID {period_id} not found", period_id=period_id)
    return Ok(period)


def get_rate_card_for_period(db: Session, period: Period) -> Result[PremiumRate]:
    rate = (
        db.query(PremiumRate)
        .filter(PremiumRate.period_id == period.id)
        .order_by(PremiumRate.id.desc())
        .first()
    )
    if not rate:
        return not_found(f"Premium rates not found for period ID {period.id}", period_id=period.id)
    return Ok(rate)


def get_rate_card(db: Session, period_id: Optional[int] = None) -> Result[PremiumRate]:
    period = resolve_period(db, period_id)
    if not period.ok:
        return period
    return get_rate_card_for_period(db, period.value)

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from premium_engine.dependencies import get_api_key
from premium_engine.insurance_database import Premium, get_db
from premium_engine.model import PremiumCalculationRequest, PremiumCalculationResponse, PremiumOut, RateCardOut
from premium_engine.result import ServiceError, not_found, unwrap
from premium_engine.services.premium_calculator import calculate_premium, latest_premium_for, premium_chain
from premium_engine.services.rates import get_rate_card_for_period, resolve_period

router = APIRouter(tags=["Premiums"])


@router.post("/premiums/calculate", response_model=PremiumCalculationResponse)
async def calculate_premium_endpoint(
    request: PremiumCalculationRequest,
    db: Session = Depends(get_db),
    api_key: str = Depends(get_api_key)
):
    premium = unwrap(calculate_premium(db, request.company_id, request.period_id))
    period = unwrap(resolve_period(db, premium.period_id))
    rate = unwrap(get_rate_card_for_period(db, period))

    return PremiumCalculationResponse(
        premium_id=premium.id,
        company_id=premium.company_id,
        period_id=premium.period_id,
        principal_count=premium.principal_count,
        spouse_count=premium.spouse_count,
        child_count=premium.child_count,
        special_needs_count=premium.special_needs_count,
        subtotal=premium.subtotal,
        tax=premium.tax,
        total=premium.total,
        rates=RateCardOut(
            principal_rate=rate.principal_rate,
            spouse_rate=rate.spouse_rate,
            child_rate=rate.child_rate,
            special_needs_rate=rate.special_needs_rate,
            tax_rate=rate.tax_rate,
        ),
    )


@router.get("/premiums", response_model=List[PremiumOut])
async def list_premiums(
    company_id: Optional[int] = Query(None),
    period_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    api_key: str = Depends(get_api_key)
):
    query = db.query(Premium)
    if company_id is not None:
        query = query.filter(Premium.company_id == company_id)
    if period_id is not None:
        query = query.filter(Premium.period_id == period_id)
    return query.order_by(Premium.id.desc()).all()


@router.get("/premiums/company/{company_id}/latest", response_model=PremiumOut)
async def get_latest_premium(
    company_id: int,
    period_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    api_key: str = Depends(get_api_key)
):
    period = unwrap(resolve_period(db, period_id))
    premium = latest_premium_for(db, company_id, period.id)
    if not premium:
        raise ServiceError(not_found(f"No premium found for company {company_id} in period {period.id}"))
    return premium


@router.get("/premiums/{premium_id}", response_model=PremiumOut)
async def get_premium(
    premium_id: int,
    db: Session = Depends(get_db),
    api_key: str = Depends(get_api_key)
):
    premium = db.get(Premium, premium_id)
    if not premium:
        raise ServiceError(not_found("Premium not found", premium_id=premium_id))
    return premium


@router.get("/premiums/{premium_id}/history", response_model=List[PremiumOut])
async def get_premium_history(
    premium_id: int,
    db: Session = Depends(get_db),
    api_key: str = Depends(get_api_key)
):
    premium = db.get(Premium, premium_id)
    if not premium:
        raise ServiceError(not_found("Premium not found", premium_id=premium_id))
    return premium_chain(db, premium)

"""Reference data the premium and claim flows read: companies, periods, rate
cards, benefits and the benefits attached to a company's premium."""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from premium_engine.dependencies import get_api_key
from premium_engine.insurance_database import Benefit, Company, CompanyBenefit, Period, Premium, PremiumRate, get_db
from premium_engine.model import (
    BenefitInput, BenefitOut, CompanyBenefitInput, CompanyBenefitOut, CompanyInput, CompanyOut,
    PeriodInput, PeriodOut, PremiumRateInput, PremiumRateOut,
)
from premium_engine.result import ServiceError, get_or_404, invalid, not_found, unwrap
from premium_engine.services.rates import get_active_period, get_rate_card

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Reference data"])


def _save(db: Session, row):
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


# companies

@router.post("/companies", response_model=CompanyOut, status_code=201)
async def create_company(
    data: CompanyInput,
    db: Session = Depends(get_db),
    api_key: str = Depends(get_api_key)
):
    if db.query(Company).filter(Company.registration_number == data.registration_number).first():
        raise ServiceError(invalid(
            f"Company with registration number {data.registration_number} already exists"
        ))
    company = _save(db, Company(**data.model_dump()))
    logger.info("Company %s created", company.id)
    return company


@router.get("/companies", response_model=List[CompanyOut])
async def list_companies(db: Session = Depends(get_db), api_key: str = Depends(get_api_key)):
    return db.query(Company).order_by(Company.id).all()


@router.get("/companies/{company_id}", response_model=CompanyOut)
async def get_company(company_id: int, db: Session = Depends(get_db), api_key: str = Depends(get_api_key)):
    return get_or_404(db, Company, company_id, "Company")


# periods

@router.post("/periods", response_model=PeriodOut, status_code=201)
async def create_period(
    data: PeriodInput,
    db: Session = Depends(get_db),
    api_key: str = Depends(get_api_key)
):
    if db.query(Period).filter(Period.name == data.name).first():
        raise ServiceError(invalid(f"Period named {data.name} already exists"))

    # premium and claim lookups assume a single active period
    if data.status.value == "active":
        current = get_active_period(db)
        if current:
            raise ServiceError(invalid(
                f"Period with ID {current.id} is already active",
                active_period_id=current.id,
            ))

    values = data.model_dump()
    values["status"] = data.status.value
    period = _save(db, Period(**values))
    logger.info("Period %s (%s) created with status %s", period.id, period.name, period.status)
    return period


@router.get("/periods", response_model=List[PeriodOut])
async def list_periods(db: Session = Depends(get_db), api_key: str = Depends(get_api_key)):
    return db.query(Period).order_by(Period.start_date.desc()).all()


@router.get("/periods/active", response_model=PeriodOut)
async def get_current_period(db: Session = Depends(get_db), api_key: str = Depends(get_api_key)):
    period = get_active_period(db)
    if not period:
        raise ServiceError(not_found("No active period found"))
    return period


@router.get("/periods/{period_id}", response_model=PeriodOut)
async def get_period(period_id: int, db: Session = Depends(get_db), api_key: str = Depends(get_api_key)):
    return get_or_404(db, Period, period_id, "Period")


# premium rates

@router.post("/premium-rates", response_model=PremiumRateOut, status_code=201)
async def create_premium_rate(
    data: PremiumRateInput,
    db: Session = Depends(get_db),
    api_key: str = Depends(get_api_key)
):
    get_or_404(db, Period, data.period_id, "Period")
    rate = _save(db, PremiumRate(**data.model_dump()))
    logger.info("Rate card %s created for period %s", rate.id, rate.period_id)
    return rate


@router.get("/premium-rates", response_model=List[PremiumRateOut])
async def list_premium_rates(db: Session = Depends(get_db), api_key: str = Depends(get_api_key)):
    return db.query(PremiumRate).order_by(PremiumRate.id.desc()).all()


@router.get("/premium-rates/period/{period_id}", response_model=PremiumRateOut)
async def get_premium_rate_for_period(
    period_id: int,
    db: Session = Depends(get_db),
    api_key: str = Depends(get_api_key)
):
    return unwrap(get_rate_card(db, period_id))


# benefits

@router.post("/benefits", response_model=BenefitOut, status_code=201)
async def create_benefit(
    data: BenefitInput,
    db: Session = Depends(get_db),
    api_key: str = Depends(get_api_key)
):
    values = data.model_dump()
    values["category"] = data.category.value
    return _save(db, Benefit(**values))


@router.get("/benefits", response_model=List[BenefitOut])
async def list_benefits(
    category: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    api_key: str = Depends(get_api_key)
):
    query = db.query(Benefit)
    if category:
        query = query.filter(Benefit.category == category.lower())
    return query.order_by(Benefit.id).all()


@router.get("/benefits/{benefit_id}", response_model=BenefitOut)
async def get_benefit(benefit_id: int, db: Session = Depends(get_db), api_key: str = Depends(get_api_key)):
    return get_or_404(db, Benefit, benefit_id, "Benefit")


# company benefits

@router.post("/company-benefits", response_model=CompanyBenefitOut, status_code=201)
async def attach_company_benefit(
    data: CompanyBenefitInput,
    db: Session = Depends(get_db),
    api_key: str = Depends(get_api_key)
):
    get_or_404(db, Company, data.company_id, "Company")
    get_or_404(db, Benefit, data.benefit_id, "Benefit")
    premium = get_or_404(db, Premium, data.premium_id, "Premium")
    if premium.company_id != data.company_id:
        raise ServiceError(invalid(
            f"Premium with ID {premium.id} does not belong to company {data.company_id}"
        ))

    company_benefit = _save(db, CompanyBenefit(**data.model_dump()))
    logger.info(
        "Benefit %s attached to company %s under premium %s",
        company_benefit.benefit_id, company_benefit.company_id, company_benefit.premium_id,
    )
    return company_benefit


@router.get("/company-benefits/company/{company_id}", response_model=List[CompanyBenefitOut])
async def list_company_benefits(
    company_id: int,
    db: Session = Depends(get_db),
    api_key: str = Depends(get_api_key)
):
    return (
        db.query(CompanyBenefit)
        .filter(CompanyBenefit.company_id == company_id)
        .order_by(CompanyBenefit.id)
        .all()
    )

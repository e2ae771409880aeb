# conftest.py
import os

os.environ["PREMIUM_API_KEYS"] = "test-key"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"

from datetime import date
from decimal import Decimal
from types import SimpleNamespace

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from premium_engine.main import app
from premium_engine.insurance_database import (
    Base, Benefit, Company, CompanyBenefit, MedicalInstitution, MedicalPersonnel, Member,
    Period, PremiumRate, get_db,
)
from premium_engine.services.premium_calculator import calculate_premium

SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"
engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

API_HEADERS = {"X-API-Key": "test-key"}


@pytest.fixture(autouse=True)
def tables():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session(tables):
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="module")
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def client(anyio_backend, db_session):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test", headers=API_HEADERS) as ac:
        yield ac
    app.dependency_overrides.clear()


def add_member(db, company, first_name, member_type="principal", principal=None,
               dependent_type=None, has_disability=False, date_of_birth=date(1985, 3, 14)):
    member = Member(
        company_id=company.id,
        first_name=first_name,
        last_name="Otieno",
        date_of_birth=date_of_birth,
        member_type=member_type,
        principal_id=principal.id if principal else None,
        dependent_type=dependent_type,
        has_disability=has_disability,
    )
    db.add(member)
    db.commit()
    db.refresh(member)
    return member


@pytest.fixture
def seeded(db_session):
    """A company with 2 principals, 1 spouse, 3 children and 1 special needs child
    whose first premium comes to 4640.00 at the standard rate card."""
    db = db_session
    company = Company(name="Acme Logistics", registration_number="REG-001")
    period = Period(name="FY2026", start_date=date(2026, 1, 1), end_date=date(2027, 1, 1), status="active")
    db.add_all([company, period])
    db.commit()

    rate = PremiumRate(
        period_id=period.id,
        principal_rate=Decimal("1000"),
        spouse_rate=Decimal("500"),
        child_rate=Decimal("300"),
        special_needs_rate=Decimal("600"),
        tax_rate=Decimal("0.16"),
    )
    db.add(rate)
    db.commit()

    principal = add_member(db, company, "Amina")
    other_principal = add_member(db, company, "Brian")
    spouse = add_member(db, company, "Chao", "dependent", principal, "spouse", date_of_birth=date(1987, 6, 2))
    children = [
        add_member(db, company, name, "dependent", principal, "child", date_of_birth=date(2015, 9, 1))
        for name in ("Dee", "Eli", "Faith")
    ]
    special_needs_child = add_member(
        db, company, "Gus", "dependent", principal, "child", has_disability=True, date_of_birth=date(2003, 1, 20)
    )

    premium = calculate_premium(db, company.id).value

    institution = MedicalInstitution(name="Mercy Hospital", type="hospital", registration_number="HOSP-1",
                                     approval_status="approved")
    db.add(institution)
    db.commit()
    personnel = MedicalPersonnel(first_name="Ruth", last_name="Kim", type="doctor", license_number="LIC-1",
                                 institution_id=institution.id, approval_status="approved")
    outpatient = Benefit(name="Outpatient", category="medical", limit_amount=Decimal("50000"))
    dental = Benefit(name="Dental", category="dental")
    db.add_all([personnel, outpatient, dental])
    db.commit()

    db.add(CompanyBenefit(company_id=company.id, benefit_id=outpatient.id, premium_id=premium.id, is_active=True))
    db.commit()

    return SimpleNamespace(
        company=company,
        period=period,
        rate=rate,
        principal=principal,
        other_principal=other_principal,
        spouse=spouse,
        children=children,
        special_needs_child=special_needs_child,
        premium=premium,
        institution=institution,
        personnel=personnel,
        outpatient=outpatient,
        dental=dental,
    )

from sqlalchemy import (create_engine, Column, Integer, String, Boolean, Date, ForeignKey, Numeric, Text)
from sqlalchemy.types import DateTime, TypeDecorator
from decimal import Decimal
from datetime import datetime
from sqlalchemy.orm import declarative_base, relationship, sessionmaker

from premium_engine.config import get_database_url, sql_echo_enabled

Base = declarative_base()


class ExactDecimal(TypeDecorator):
    """Decimal column that round-trips without rounding.

    Unconstrained NUMERIC where the backend has an exact decimal type; SQLite
    only has REAL, so the value is stored as its decimal string there.
    """
    impl = Numeric
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "sqlite":
            return dialect.type_descriptor(String(64))
        return dialect.type_descriptor(Numeric(asdecimal=True))

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        value = value if isinstance(value, Decimal) else Decimal(str(value))
        return str(value) if dialect.name == "sqlite" else value

    def process_result_value(self, value, dialect):
        if value is None or isinstance(value, Decimal):
            return value
        return Decimal(str(value))


MONEY = ExactDecimal()
RATE = ExactDecimal()


class Company(Base):
    __tablename__ = "companies"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    registration_number = Column(String(100), unique=True, nullable=False)
    contact_person = Column(String(200))
    contact_email = Column(String(200))
    contact_phone = Column(String(50))
    address = Column(String(300))
    created_at = Column(DateTime, default=datetime.utcnow)

    members = relationship("Member", back_populates="company")


class Period(Base):
    __tablename__ = "periods"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), unique=True, nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    status = Column(String(20), nullable=False, index=True)    # active, inactive, upcoming, expired
    description = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)

    rates = relationship("PremiumRate", back_populates="period")


class PremiumRate(Base):
    __tablename__ = "premium_rates"

    id = Column(Integer, primary_key=True, autoincrement=True)
    period_id = Column(Integer, ForeignKey("periods.id"), nullable=False, index=True)
    principal_rate = Column(MONEY, nullable=False)
    spouse_rate = Column(MONEY, nullable=False)
    child_rate = Column(MONEY, nullable=False)
    special_needs_rate = Column(MONEY, nullable=False)
    tax_rate = Column(RATE, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    period = relationship("Period", back_populates="rates")


class Member(Base):
    __tablename__ = "members"

    id = Column(Integer, primary_key=True, autoincrement=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(200))
    phone = Column(String(50))
    date_of_birth = Column(Date, nullable=False)
    employee_id = Column(String(50))
    member_type = Column(String(20), nullable=False)      # principal, dependent
    principal_id = Column(Integer, ForeignKey("members.id"))
    dependent_type = Column(String(20))                   # spouse, child, parent, guardian
    has_disability = Column(Boolean, default=False, nullable=False)
    disability_details = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)

    company = relationship("Company", back_populates="members")
    principal = relationship("Member", remote_side=[id], back_populates="dependents")
    dependents = relationship("Member", back_populates="principal")


class Premium(Base):
    """Append-only premium ledger row; a newer row supersedes it via previous_premium_id."""
    __tablename__ = "premiums"

    id = Column(Integer, primary_key=True, autoincrement=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    period_id = Column(Integer, ForeignKey("periods.id"), nullable=False, index=True)
    principal_count = Column(Integer, nullable=False, default=0)
    spouse_count = Column(Integer, nullable=False, default=0)
    child_count = Column(Integer, nullable=False, default=0)
    special_needs_count = Column(Integer, nullable=False, default=0)
    subtotal = Column(MONEY, nullable=False)
    tax = Column(MONEY, nullable=False)
    total = Column(MONEY, nullable=False)
    pro_rated_total = Column(MONEY)
    pro_rata_amount = Column(MONEY)
    adjustment_factor = Column(RATE, default=1)
    status = Column(String(20), nullable=False, default="active")
    issued_date = Column(DateTime, nullable=False)
    effective_start_date = Column(Date)
    effective_end_date = Column(Date)
    pro_rata_start_date = Column(Date)
    pro_rata_end_date = Column(Date)
    previous_premium_id = Column(Integer, ForeignKey("premiums.id"))
    is_adjustment = Column(Boolean, default=False, nullable=False)
    notes = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)

    company_benefits = relationship("CompanyBenefit", back_populates="premium")


class Benefit(Base):
    __tablename__ = "benefits"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    description = Column(Text)
    category = Column(String(30), nullable=False)
    coverage_details = Column(Text)
    limit_amount = Column(MONEY)
    has_waiting_period = Column(Boolean, default=False)
    waiting_period_days = Column(Integer)
    is_standard = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class CompanyBenefit(Base):
    __tablename__ = "company_benefits"

    id = Column(Integer, primary_key=True, autoincrement=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    benefit_id = Column(Integer, ForeignKey("benefits.id"), nullable=False)
    premium_id = Column(Integer, ForeignKey("premiums.id"), nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    limit_amount = Column(MONEY)
    coverage_rate = Column(Numeric(6, 2), default=100)
    created_at = Column(DateTime, default=datetime.utcnow)

    premium = relationship("Premium", back_populates="company_benefits")
    benefit = relationship("Benefit")


class MedicalInstitution(Base):
    __tablename__ = "medical_institutions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    type = Column(String(30), nullable=False)
    registration_number = Column(String(100), unique=True, nullable=False)
    approval_status = Column(String(20), nullable=False, default="pending")
    approval_date = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)


class MedicalPersonnel(Base):
    __tablename__ = "medical_personnel"

    id = Column(Integer, primary_key=True, autoincrement=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    type = Column(String(30), nullable=False)
    license_number = Column(String(100), unique=True, nullable=False)
    institution_id = Column(Integer, ForeignKey("medical_institutions.id"), nullable=False)
    approval_status = Column(String(20), nullable=False, default="pending")
    approval_date = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)


class MedicalProcedure(Base):
    __tablename__ = "medical_procedures"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    code = Column(String(50), unique=True, nullable=False)
    category = Column(String(50), nullable=False)
    standard_rate = Column(MONEY, nullable=False)
    active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class ProviderProcedureRate(Base):
    __tablename__ = "provider_procedure_rates"

    id = Column(Integer, primary_key=True, autoincrement=True)
    institution_id = Column(Integer, ForeignKey("medical_institutions.id"), nullable=False, index=True)
    procedure_id = Column(Integer, ForeignKey("medical_procedures.id"), nullable=False)
    agreed_rate = Column(MONEY, nullable=False)
    effective_date = Column(Date, nullable=False)
    expiry_date = Column(Date)
    active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class Claim(Base):
    __tablename__ = "claims"

    id = Column(Integer, primary_key=True, autoincrement=True)
    member_id = Column(Integer, ForeignKey("members.id"), nullable=False, index=True)
    institution_id = Column(Integer, ForeignKey("medical_institutions.id"), nullable=False)
    personnel_id = Column(Integer, ForeignKey("medical_personnel.id"))
    benefit_id = Column(Integer, ForeignKey("benefits.id"), nullable=False)
    claim_date = Column(DateTime, default=datetime.utcnow, nullable=False)
    service_date = Column(Date, nullable=False)
    amount = Column(MONEY, nullable=False)
    description = Column(Text, nullable=False)
    diagnosis = Column(Text, nullable=False)
    diagnosis_code = Column(String(50), nullable=False)
    diagnosis_code_type = Column(String(10), nullable=False)
    status = Column(String(20), nullable=False, default="submitted", index=True)
    review_date = Column(DateTime)
    reviewer_notes = Column(Text)
    payment_date = Column(DateTime)
    payment_reference = Column(String(100))
    provider_verified = Column(Boolean, default=False, nullable=False)
    requires_higher_approval = Column(Boolean, default=False, nullable=False)
    approved_by_admin = Column(Boolean, default=False, nullable=False)
    admin_approval_date = Column(DateTime)
    admin_review_notes = Column(Text)
    fraud_risk_level = Column(String(20), default="none", nullable=False)
    fraud_risk_factors = Column(Text)
    fraud_review_date = Column(DateTime)
    fraud_reviewer_id = Column(Integer)
    created_at = Column(DateTime, default=datetime.utcnow)

    procedure_items = relationship("ClaimProcedureItem", cascade="all, delete-orphan", back_populates="claim")


class ClaimProcedureItem(Base):
    __tablename__ = "claim_procedure_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    claim_id = Column(Integer, ForeignKey("claims.id", ondelete="CASCADE"), nullable=False)
    procedure_id = Column(Integer, ForeignKey("medical_procedures.id"), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    unit_rate = Column(MONEY, nullable=False)
    total_amount = Column(MONEY, nullable=False)
    notes = Column(Text)

    claim = relationship("Claim", back_populates="procedure_items")


#engine and sessions
engine = create_engine(get_database_url(), echo=sql_echo_enabled())
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables(bind=None):
    Base.metadata.create_all(bind or engine)

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import List, Optional
from datetime import date, datetime
from decimal import Decimal
from enum import Enum


class MemberType(str, Enum):
    principal = "principal"
    dependent = "dependent"


class DependentType(str, Enum):
    spouse = "spouse"
    child = "child"
    parent = "parent"
    guardian = "guardian"


class PeriodStatus(str, Enum):
    active = "active"
    inactive = "inactive"
    upcoming = "upcoming"
    expired = "expired"


class ApprovalStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    suspended = "suspended"


class ClaimStatus(str, Enum):
    submitted = "submitted"
    under_review = "under_review"
    approved = "approved"
    rejected = "rejected"
    paid = "paid"
    fraud_review = "fraud_review"
    fraud_confirmed = "fraud_confirmed"


class FraudRiskLevel(str, Enum):
    none = "none"
    low = "low"
    medium = "medium"
    high = "high"
    critical = "critical"


class BenefitCategory(str, Enum):
    medical = "medical"
    dental = "dental"
    vision = "vision"
    wellness = "wellness"
    hospital = "hospital"
    prescription = "prescription"
    emergency = "emergency"
    maternity = "maternity"
    specialist = "specialist"
    other = "other"


# ---------------------------------------------------------------- reference data

class CompanyInput(BaseModel):
    name: str = Field(..., min_length=1)
    registration_number: str = Field(..., min_length=1)
    contact_person: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    address: Optional[str] = None


class CompanyOut(CompanyInput):
    model_config = ConfigDict(from_attributes=True)
    id: int


class PeriodInput(BaseModel):
    name: str = Field(..., min_length=1)
    start_date: date
    end_date: date
    status: PeriodStatus
    description: Optional[str] = None

    @model_validator(mode="after")
    def check_dates(self):
        if self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


class PeriodOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    name: str
    start_date: date
    end_date: date
    status: str
    description: Optional[str] = None


class PremiumRateInput(BaseModel):
    period_id: int
    principal_rate: Decimal = Field(..., ge=0)
    spouse_rate: Decimal = Field(..., ge=0)
    child_rate: Decimal = Field(..., ge=0)
    special_needs_rate: Decimal = Field(..., ge=0)
    tax_rate: Decimal = Field(..., ge=0)


class PremiumRateOut(PremiumRateInput):
    model_config = ConfigDict(from_attributes=True)
    id: int


class BenefitInput(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    category: BenefitCategory
    coverage_details: Optional[str] = None
    limit_amount: Optional[Decimal] = Field(None, ge=0)
    has_waiting_period: bool = False
    waiting_period_days: Optional[int] = Field(None, ge=0)
    is_standard: bool = False

    @field_validator("category", mode="before")
    def normalize_category(cls, v):
        if isinstance(v, str):
            return v.lower().strip()
        return v


class BenefitOut(BenefitInput):
    model_config = ConfigDict(from_attributes=True)
    id: int


class CompanyBenefitInput(BaseModel):
    company_id: int
    benefit_id: int
    premium_id: int
    is_active: bool = True
    limit_amount: Optional[Decimal] = Field(None, ge=0)
    coverage_rate: Decimal = Field(Decimal("100"), ge=0, le=100)


class CompanyBenefitOut(CompanyBenefitInput):
    model_config = ConfigDict(from_attributes=True)
    id: int


class InstitutionInput(BaseModel):
    name: str = Field(..., min_length=1)
    type: str = Field(..., min_length=1)
    registration_number: str = Field(..., min_length=1)
    approval_status: ApprovalStatus = ApprovalStatus.pending


class InstitutionOut(InstitutionInput):
    model_config = ConfigDict(from_attributes=True)
    id: int
    approval_status: str
    approval_date: Optional[datetime] = None


class PersonnelInput(BaseModel):
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    type: str = Field(..., min_length=1)
    license_number: str = Field(..., min_length=1)
    institution_id: int
    approval_status: ApprovalStatus = ApprovalStatus.pending


class PersonnelOut(PersonnelInput):
    model_config = ConfigDict(from_attributes=True)
    id: int
    approval_status: str
    approval_date: Optional[datetime] = None


class ApprovalUpdate(BaseModel):
    approval_status: ApprovalStatus


class ProcedureInput(BaseModel):
    name: str = Field(..., min_length=1)
    code: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1)
    standard_rate: Decimal = Field(..., ge=0)
    active: bool = True

    @field_validator("code")
    def normalize_code(cls, v):
        return v.upper().strip()


class ProcedureOut(ProcedureInput):
    model_config = ConfigDict(from_attributes=True)
    id: int


class ProviderRateInput(BaseModel):
    institution_id: int
    procedure_id: int
    agreed_rate: Decimal = Field(..., ge=0)
    effective_date: date
    expiry_date: Optional[date] = None
    active: bool = True


class ProviderRateOut(ProviderRateInput):
    model_config = ConfigDict(from_attributes=True)
    id: int


# ---------------------------------------------------------------- members

class PrincipalMemberInput(BaseModel):
    company_id: int
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    date_of_birth: date
    employee_id: Optional[str] = None


class DependentMemberInput(BaseModel):
    principal_id: int
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    date_of_birth: date
    dependent_type: DependentType
    has_disability: bool = False
    disability_details: Optional[str] = None

    @field_validator("dependent_type", mode="before")
    def normalize_dependent_type(cls, v):
        if isinstance(v, str):
            return v.lower().strip()
        return v


class MemberOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    company_id: int
    first_name: str
    last_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    date_of_birth: date
    employee_id: Optional[str] = None
    member_type: str
    principal_id: Optional[int] = None
    dependent_type: Optional[str] = None
    has_disability: bool = False


class MemberMutationResponse(BaseModel):
    member: MemberOut
    premium_adjustment_id: Optional[int] = None
    message: Optional[str] = None


# ---------------------------------------------------------------- premiums

class PremiumCalculationRequest(BaseModel):
    company_id: int
    period_id: Optional[int] = None


class RateCardOut(BaseModel):
    principal_rate: Decimal
    spouse_rate: Decimal
    child_rate: Decimal
    special_needs_rate: Decimal
    tax_rate: Decimal


class PremiumOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    company_id: int
    period_id: int
    principal_count: int
    spouse_count: int
    child_count: int
    special_needs_count: int
    subtotal: Decimal
    tax: Decimal
    total: Decimal
    pro_rated_total: Optional[Decimal] = None
    pro_rata_amount: Optional[Decimal] = None
    adjustment_factor: Optional[Decimal] = None
    status: str
    issued_date: datetime
    effective_start_date: Optional[date] = None
    effective_end_date: Optional[date] = None
    pro_rata_start_date: Optional[date] = None
    pro_rata_end_date: Optional[date] = None
    previous_premium_id: Optional[int] = None
    is_adjustment: bool = False
    notes: Optional[str] = None


class PremiumCalculationResponse(BaseModel):
    premium_id: int
    company_id: int
    period_id: int
    principal_count: int
    spouse_count: int
    child_count: int
    special_needs_count: int
    subtotal: Decimal
    tax: Decimal
    total: Decimal
    rates: RateCardOut


# ---------------------------------------------------------------- claims

class DiagnosisCodeType(str, Enum):
    icd10 = "ICD-10"
    icd11 = "ICD-11"


class ClaimBase(BaseModel):
    member_id: int
    institution_id: int
    personnel_id: int
    benefit_id: int
    service_date: date
    description: str = Field(..., min_length=1)
    diagnosis: str = Field(..., min_length=1)
    diagnosis_code: str = Field(..., min_length=3, max_length=50)
    diagnosis_code_type: DiagnosisCodeType

    @field_validator("diagnosis_code")
    def normalize_diagnosis_code(cls, v):
        return v.upper().strip()


class ClaimInput(ClaimBase):
    amount: Decimal = Field(..., gt=0)


class ProcedureItemInput(BaseModel):
    procedure_id: Optional[int] = None
    quantity: Optional[int] = None
    notes: Optional[str] = None


class ClaimWithProceduresInput(BaseModel):
    claim: ClaimBase
    procedure_items: List[ProcedureItemInput] = Field(default_factory=list)


class ClaimProcedureItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    procedure_id: int
    quantity: int
    unit_rate: Decimal
    total_amount: Decimal
    notes: Optional[str] = None


class ClaimOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    member_id: int
    institution_id: int
    personnel_id: Optional[int] = None
    benefit_id: int
    claim_date: datetime
    service_date: date
    amount: Decimal
    description: str
    diagnosis: str
    diagnosis_code: str
    diagnosis_code_type: str
    status: str
    review_date: Optional[datetime] = None
    reviewer_notes: Optional[str] = None
    payment_date: Optional[datetime] = None
    payment_reference: Optional[str] = None
    provider_verified: bool
    requires_higher_approval: bool
    approved_by_admin: bool
    admin_review_notes: Optional[str] = None
    fraud_risk_level: str
    fraud_risk_factors: Optional[str] = None
    fraud_reviewer_id: Optional[int] = None
    procedure_items: List[ClaimProcedureItemOut] = Field(default_factory=list)


class ClaimStatusUpdate(BaseModel):
    status: ClaimStatus
    reviewer_notes: Optional[str] = None


class ClaimPaymentInput(BaseModel):
    payment_reference: str = Field(..., min_length=1)


class AdminApprovalInput(BaseModel):
    admin_notes: str = Field(..., min_length=1)


class ClaimRejectionInput(BaseModel):
    reason: str = Field(..., min_length=1)


class FraudFlagInput(BaseModel):
    risk_level: FraudRiskLevel
    risk_factors: List[str] = Field(..., min_length=1)
    reviewer_id: int

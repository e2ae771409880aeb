import logging
from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from premium_engine.dependencies import get_api_key
from premium_engine.insurance_database import (
    MedicalInstitution, MedicalPersonnel, MedicalProcedure, ProviderProcedureRate, get_db,
)
from premium_engine.model import (
    ApprovalUpdate, InstitutionInput, InstitutionOut, PersonnelInput, PersonnelOut,
    ProcedureInput, ProcedureOut, ProviderRateInput, ProviderRateOut,
)
from premium_engine.result import ServiceError, get_or_404, invalid

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Providers"])


def _apply_approval(row, status: str) -> None:
    row.approval_status = status
    row.approval_date = datetime.utcnow() if status == "approved" else None


@router.post("/medical-institutions", response_model=InstitutionOut, status_code=201)
async def register_institution(
    data: InstitutionInput,
    db: Session = Depends(get_db),
    api_key: str = Depends(get_api_key)
):
    if db.query(MedicalInstitution).filter(MedicalInstitution.registration_number == data.registration_number).first():
        raise ServiceError(invalid(
            f"Medical institution with registration number {data.registration_number} already exists"
        ))
    institution = MedicalInstitution(name=data.name, type=data.type, registration_number=data.registration_number)
    _apply_approval(institution, data.approval_status.value)
    db.add(institution)
    db.commit()
    db.refresh(institution)
    return institution


@router.get("/medical-institutions", response_model=List[InstitutionOut])
async def list_institutions(db: Session = Depends(get_db), api_key: str = Depends(get_api_key)):
    return db.query(MedicalInstitution).order_by(MedicalInstitution.id).all()


@router.patch("/medical-institutions/{institution_id}/approval", response_model=InstitutionOut)
async def update_institution_approval(
    institution_id: int,
    update: ApprovalUpdate,
    db: Session = Depends(get_db),
    api_key: str = Depends(get_api_key)
):
    institution = get_or_404(db, MedicalInstitution, institution_id, "Medical institution")
    _apply_approval(institution, update.approval_status.value)
    db.commit()
    db.refresh(institution)
    logger.info("Medical institution %s approval set to %s", institution_id, institution.approval_status)
    return institution


@router.post("/medical-personnel", response_model=PersonnelOut, status_code=201)
async def register_personnel(
    data: PersonnelInput,
    db: Session = Depends(get_db),
    api_key: str = Depends(get_api_key)
):
    get_or_404(db, MedicalInstitution, data.institution_id, "Medical institution")
    if db.query(MedicalPersonnel).filter(MedicalPersonnel.license_number == data.license_number).first():
        raise ServiceError(invalid(f"Medical personnel with license number {data.license_number} already exists"))

    personnel = MedicalPersonnel(
        first_name=data.first_name,
        last_name=data.last_name,
        type=data.type,
        license_number=data.license_number,
        institution_id=data.institution_id,
    )
    _apply_approval(personnel, data.approval_status.value)
    db.add(personnel)
    db.commit()
    db.refresh(personnel)
    return personnel


@router.get("/medical-personnel", response_model=List[PersonnelOut])
async def list_personnel(db: Session = Depends(get_db), api_key: str = Depends(get_api_key)):
    return db.query(MedicalPersonnel).order_by(MedicalPersonnel.id).all()


@router.patch("/medical-personnel/{personnel_id}/approval", response_model=PersonnelOut)
async def update_personnel_approval(
    personnel_id: int,
    update: ApprovalUpdate,
    db: Session = Depends(get_db),
    api_key: str = Depends(get_api_key)
):
    personnel = get_or_404(db, MedicalPersonnel, personnel_id, "Medical personnel")
    _apply_approval(personnel, update.approval_status.value)
    db.commit()
    db.refresh(personnel)
    logger.info("Medical personnel %s approval set to %s", personnel_id, personnel.approval_status)
    return personnel


@router.post("/medical-procedures", response_model=ProcedureOut, status_code=201)
async def create_procedure(
    data: ProcedureInput,
    db: Session = Depends(get_db),
    api_key: str = Depends(get_api_key)
):
    if db.query(MedicalProcedure).filter(MedicalProcedure.code == data.code).first():
        raise ServiceError(invalid(f"Medical procedure with code {data.code} already exists"))
    procedure = MedicalProcedure(**data.model_dump())
    db.add(procedure)
    db.commit()
    db.refresh(procedure)
    return procedure


@router.get("/medical-procedures", response_model=List[ProcedureOut])
async def list_procedures(db: Session = Depends(get_db), api_key: str = Depends(get_api_key)):
    return db.query(MedicalProcedure).order_by(MedicalProcedure.code).all()


@router.post("/provider-procedure-rates", response_model=ProviderRateOut, status_code=201)
async def create_provider_rate(
    data: ProviderRateInput,
    db: Session = Depends(get_db),
    api_key: str = Depends(get_api_key)
):
    get_or_404(db, MedicalInstitution, data.institution_id, "Medical institution")
    get_or_404(db, MedicalProcedure, data.procedure_id, "Medical procedure")
    if data.expiry_date is not None and data.expiry_date <= data.effective_date:
        raise ServiceError(invalid("expiry_date must be after effective_date"))

    rate = ProviderProcedureRate(**data.model_dump())
    db.add(rate)
    db.commit()
    db.refresh(rate)
    logger.info("Agreed rate %s for procedure %s at institution %s", rate.agreed_rate, rate.procedure_id, rate.institution_id)
    return rate


@router.get("/provider-procedure-rates/institution/{institution_id}", response_model=List[ProviderRateOut])
async def list_provider_rates(
    institution_id: int,
    db: Session = Depends(get_db),
    api_key: str = Depends(get_api_key)
):
    return (
        db.query(ProviderProcedureRate)
        .filter(ProviderProcedureRate.institution_id == institution_id)
        .order_by(ProviderProcedureRate.effective_date.desc())
        .all()
    )

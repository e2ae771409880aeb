from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from premium_engine.config import allow_unverified_providers
from premium_engine.dependencies import get_api_key
from premium_engine.insurance_database import Claim, get_db
from premium_engine.model import (
    AdminApprovalInput, ClaimInput, ClaimOut, ClaimPaymentInput, ClaimRejectionInput,
    ClaimStatus, ClaimStatusUpdate, ClaimWithProceduresInput, FraudFlagInput,
)
from premium_engine.result import unwrap
from premium_engine.services import claims

router = APIRouter(tags=["Claims"])


@router.post("/claims", response_model=ClaimOut, status_code=201)
async def submit_claim_endpoint(
    input: ClaimInput,
    db: Session = Depends(get_db),
    api_key: str = Depends(get_api_key)
):
    return unwrap(claims.submit_claim(db, input, allow_unverified_providers()))


@router.post("/claims-with-procedures", response_model=ClaimOut, status_code=201)
async def submit_claim_with_procedures_endpoint(
    input: ClaimWithProceduresInput,
    db: Session = Depends(get_db),
    api_key: str = Depends(get_api_key)
):
    return unwrap(claims.submit_claim_with_procedures(
        db, input.claim, input.procedure_items, allow_unverified_providers()
    ))


@router.get("/claims", response_model=List[ClaimOut])
async def list_claims(
    member_id: Optional[int] = Query(None),
    institution_id: Optional[int] = Query(None),
    status: Optional[ClaimStatus] = Query(None),
    db: Session = Depends(get_db),
    api_key: str = Depends(get_api_key)
):
    query = db.query(Claim)
    if member_id is not None:
        query = query.filter(Claim.member_id == member_id)
    if institution_id is not None:
        query = query.filter(Claim.institution_id == institution_id)
    if status is not None:
        query = query.filter(Claim.status == status.value)
    return query.order_by(Claim.id.desc()).all()


@router.get("/claims/approval/higher", response_model=List[ClaimOut])
async def list_claims_requiring_higher_approval(
    db: Session = Depends(get_db),
    api_key: str = Depends(get_api_key)
):
    return (
        db.query(Claim)
        .filter(Claim.requires_higher_approval.is_(True))
        .filter(Claim.approved_by_admin.is_(False))
        .order_by(Claim.id.desc())
        .all()
    )


@router.get("/claims/{claim_id}", response_model=ClaimOut)
async def get_claim_endpoint(
    claim_id: int,
    db: Session = Depends(get_db),
    api_key: str = Depends(get_api_key)
):
    return unwrap(claims.get_claim(db, claim_id))


@router.patch("/claims/{claim_id}/status", response_model=ClaimOut)
async def update_claim_status_endpoint(
    claim_id: int,
    update: ClaimStatusUpdate,
    db: Session = Depends(get_db),
    api_key: str = Depends(get_api_key)
):
    return unwrap(claims.update_claim_status(db, claim_id, update.status.value, update.reviewer_notes))


@router.patch("/claims/{claim_id}/admin-approve", response_model=ClaimOut)
async def admin_approve_claim_endpoint(
    claim_id: int,
    approval: AdminApprovalInput,
    db: Session = Depends(get_db),
    api_key: str = Depends(get_api_key)
):
    return unwrap(claims.admin_approve_claim(db, claim_id, approval.admin_notes))


@router.patch("/claims/{claim_id}/reject", response_model=ClaimOut)
async def reject_claim_endpoint(
    claim_id: int,
    rejection: ClaimRejectionInput,
    db: Session = Depends(get_db),
    api_key: str = Depends(get_api_key)
):
    return unwrap(claims.reject_claim(db, claim_id, rejection.reason))


@router.patch("/claims/{claim_id}/mark-fraudulent", response_model=ClaimOut)
async def mark_claim_fraudulent_endpoint(
    claim_id: int,
    flag: FraudFlagInput,
    db: Session = Depends(get_db),
    api_key: str = Depends(get_api_key)
):
    return unwrap(claims.mark_claim_fraudulent(
        db, claim_id, flag.risk_level.value, flag.risk_factors, flag.reviewer_id
    ))


@router.patch("/claims/{claim_id}/payment", response_model=ClaimOut)
async def process_claim_payment_endpoint(
    claim_id: int,
    payment: ClaimPaymentInput,
    db: Session = Depends(get_db),
    api_key: str = Depends(get_api_key)
):
    return unwrap(claims.process_claim_payment(db, claim_id, payment.payment_reference))

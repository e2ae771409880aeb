from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from premium_engine.dependencies import get_api_key
from premium_engine.insurance_database import Member, get_db
from premium_engine.model import DependentMemberInput, MemberMutationResponse, MemberOut, PrincipalMemberInput
from premium_engine.result import ServiceError, not_found, unwrap
from premium_engine.services.members import create_dependent, create_principal, delete_member

router = APIRouter(tags=["Members"])


def _mutation_response(outcome, message: str) -> MemberMutationResponse:
    if outcome.premium_adjustment_id is None:
        message = f"{message}; premium was not adjusted"
    return MemberMutationResponse(
        member=MemberOut.model_validate(outcome.member),
        premium_adjustment_id=outcome.premium_adjustment_id,
        message=message,
    )


@router.post("/members/principal", response_model=MemberMutationResponse, status_code=201)
async def add_principal_member(
    data: PrincipalMemberInput,
    db: Session = Depends(get_db),
    api_key: str = Depends(get_api_key)
):
    outcome = unwrap(create_principal(db, data))
    return _mutation_response(outcome, "Principal member created")


@router.post("/members/dependent", response_model=MemberMutationResponse, status_code=201)
async def add_dependent_member(
    data: DependentMemberInput,
    db: Session = Depends(get_db),
    api_key: str = Depends(get_api_key)
):
    outcome = unwrap(create_dependent(db, data))
    return _mutation_response(outcome, "Dependent member created")


@router.delete("/members/{member_id}", response_model=MemberMutationResponse)
async def remove_member(
    member_id: int,
    db: Session = Depends(get_db),
    api_key: str = Depends(get_api_key)
):
    outcome = unwrap(delete_member(db, member_id))
    return _mutation_response(outcome, "Member deleted")


@router.get("/members/company/{company_id}", response_model=List[MemberOut])
async def list_company_members(
    company_id: int,
    db: Session = Depends(get_db),
    api_key: str = Depends(get_api_key)
):
    return db.query(Member).filter(Member.company_id == company_id).order_by(Member.id).all()


@router.get("/members/{member_id}", response_model=MemberOut)
async def get_member(
    member_id: int,
    db: Session = Depends(get_db),
    api_key: str = Depends(get_api_key)
):
    member = db.get(Member, member_id)
    if not member:
        raise ServiceError(not_found("Member not found", member_id=member_id))
    return member

# This project was developed with assistance from AI tools.
"""Read-only loan type catalog for any authenticated user."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..dependencies import get_db
from ..middleware.auth import CurrentUser
from ..schemas.admin import LoanTypeResponse
from ..services import reference as reference_service

router = APIRouter()


@router.get("/", response_model=list[LoanTypeResponse])
async def list_loan_types(
    _user: CurrentUser,
    session: AsyncSession = Depends(get_db),
    bank_id: int | None = None,
) -> list[LoanTypeResponse]:
    """Loan types with their metadata schema and required document tags."""
    loan_types = await reference_service.list_loan_types(session, bank_id=bank_id)
    return [reference_service.loan_type_response(lt) for lt in loan_types]


@router.get("/{loan_type_id}", response_model=LoanTypeResponse)
async def get_loan_type(
    loan_type_id: int,
    _user: CurrentUser,
    session: AsyncSession = Depends(get_db),
) -> LoanTypeResponse:
    loan_type = await reference_service.get_loan_type(session, loan_type_id)
    return reference_service.loan_type_response(loan_type)

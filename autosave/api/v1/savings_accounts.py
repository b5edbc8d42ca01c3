# api/v1/savings_accounts.py

from typing import List

from fastapi import APIRouter, status

from ...schemas.savings import SavingsAccountCreate, SavingsAccountOut
from ..dependencies import ServiceDependency, UserDependency

router = APIRouter(
    prefix="/savings-accounts",
    tags=["Savings Accounts"],
)


@router.post(
    "",
    response_model=SavingsAccountOut,
    status_code=status.HTTP_201_CREATED,
    summary="Open a savings account that rules can route into",
)
async def create_savings_account(
    account_data: SavingsAccountCreate,
    service: ServiceDependency,
    user_id: UserDependency,
):
    return await service.create_savings_account(user_id, account_data)


@router.get("", response_model=List[SavingsAccountOut])
async def get_savings_accounts(service: ServiceDependency, user_id: UserDependency):
    return await service.get_savings_accounts(user_id)

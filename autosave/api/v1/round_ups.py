# api/v1/round_ups.py

from typing import List, Optional

from fastapi import APIRouter

from ...db.enums import RoundUpStatus
from ...schemas.round_up import RoundUpTransactionOut
from ..dependencies import ServiceDependency, UserDependency

router = APIRouter(
    prefix="/round-ups",
    tags=["Round-Ups"],
)


@router.get("", response_model=List[RoundUpTransactionOut], summary="Round-up history, newest first")
async def list_round_ups(
    service: ServiceDependency,
    user_id: UserDependency,
    status: Optional[RoundUpStatus] = None,
):
    return await service.list_round_ups(user_id, status)


@router.post(
    "/{round_up_id}/process",
    response_model=RoundUpTransactionOut,
    summary="Route a pending round-up now; settled round-ups are returned unchanged",
)
async def process_round_up(round_up_id: str, service: ServiceDependency, user_id: UserDependency):
    return await service.process_round_up(round_up_id, user_id=user_id)

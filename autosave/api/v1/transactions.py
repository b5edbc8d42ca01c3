# api/v1/transactions.py

from decimal import Decimal

from fastapi import APIRouter, status

from ...schemas.round_up import RoundUpTransactionOut
from ...schemas.transaction import CompletedTransactionIn, TransactionProcessedOut
from ..dependencies import ServiceDependency, UserDependency

router = APIRouter(
    prefix="/transactions",
    tags=["Transaction Events"],
)


@router.post(
    "/completed",
    response_model=TransactionProcessedOut,
    response_model_by_alias=True,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Transaction-completed hook; fires the user's auto-save rules.",
)
async def transaction_completed(
    payload: CompletedTransactionIn,
    service: ServiceDependency,
    user_id: UserDependency,
):
    """
    Called by the payment/trading subsystem once a transaction has settled.
    Returns the round-ups created for it; routing to their destinations
    continues in the background, so they are reported as pending.
    """
    round_ups = await service.process_transaction_for_auto_save(
        user_id,
        payload.transaction_id,
        payload.amount,
        payload.type,
        payload.metadata,
    )
    return TransactionProcessedOut(
        transaction_id=payload.transaction_id,
        triggered_count=len(round_ups),
        total_round_up=sum((round_up.round_up_amount for round_up in round_ups), Decimal("0")),
        round_ups=[RoundUpTransactionOut.model_validate(round_up) for round_up in round_ups],
    )

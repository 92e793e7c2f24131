"""
Balance endpoints
"""

from fastapi import APIRouter, Depends

from .auth import BrokerageSystem, get_brokerage_system, get_caller
from .schemas import DepositRequest, DepositResponse
from ..models import CallerIdentity


router = APIRouter()


@router.post("/deposit/{user_id}", response_model=DepositResponse)
def deposit(
    user_id: int,
    request: DepositRequest,
    caller: CallerIdentity = Depends(get_caller),
    system: BrokerageSystem = Depends(get_brokerage_system)
):
    """Deposit into a client's balance, up to 25% of their unpaid jobs total"""
    receipt = system.deposit_engine.deposit(caller.profile_id, user_id, request.amount)
    return DepositResponse.from_receipt(receipt)

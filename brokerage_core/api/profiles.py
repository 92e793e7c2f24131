"""
Profile endpoints
"""

from fastapi import APIRouter, Depends

from .auth import BrokerageSystem, get_brokerage_system, get_caller
from .schemas import ProfileResponse
from ..models import CallerIdentity


router = APIRouter()


@router.get("/me", response_model=ProfileResponse)
def get_own_profile(
    caller: CallerIdentity = Depends(get_caller),
    system: BrokerageSystem = Depends(get_brokerage_system)
):
    """Get the caller's profile with its current balance"""
    return ProfileResponse.from_profile(system.store.require_profile(caller.profile_id))

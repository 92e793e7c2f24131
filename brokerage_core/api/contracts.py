"""
Contract endpoints
"""

from typing import List
from fastapi import APIRouter, Depends

from .auth import BrokerageSystem, get_brokerage_system, get_caller
from .schemas import ContractResponse
from ..models import CallerIdentity


router = APIRouter()


@router.get("/{contract_id}", response_model=ContractResponse)
def get_contract(
    contract_id: int,
    caller: CallerIdentity = Depends(get_caller),
    system: BrokerageSystem = Depends(get_brokerage_system)
):
    """Get a contract, only if the caller is a party to it"""
    contract = system.access_filter.get_contract(caller.profile_id, contract_id)
    return ContractResponse.from_contract(contract)


@router.get("", response_model=List[ContractResponse])
def list_contracts(
    caller: CallerIdentity = Depends(get_caller),
    system: BrokerageSystem = Depends(get_brokerage_system)
):
    """List the caller's non-terminated contracts"""
    contracts = system.access_filter.list_active_contracts(caller.profile_id)
    return [ContractResponse.from_contract(c) for c in contracts]

"""
Job endpoints
"""

from typing import List
from fastapi import APIRouter, Depends

from .auth import BrokerageSystem, get_brokerage_system, get_caller
from .schemas import JobResponse, PaymentResponse
from ..models import CallerIdentity


router = APIRouter()


@router.get("/unpaid", response_model=List[JobResponse])
def list_unpaid_jobs(
    caller: CallerIdentity = Depends(get_caller),
    system: BrokerageSystem = Depends(get_brokerage_system)
):
    """Unpaid jobs on the caller's active contracts"""
    jobs = system.access_filter.list_unpaid_jobs(caller.profile_id)
    return [JobResponse.from_job(job) for job in jobs]


@router.get("/{job_id}", response_model=JobResponse)
def get_job(
    job_id: int,
    caller: CallerIdentity = Depends(get_caller),
    system: BrokerageSystem = Depends(get_brokerage_system)
):
    """Get a job under one of the caller's contracts"""
    return JobResponse.from_job(system.access_filter.get_job(caller.profile_id, job_id))


@router.post("/{job_id}/pay", response_model=PaymentResponse)
def pay_job(
    job_id: int,
    caller: CallerIdentity = Depends(get_caller),
    system: BrokerageSystem = Depends(get_brokerage_system)
):
    """Pay for a job from the caller's balance to the contractor's balance"""
    receipt = system.payment_engine.pay_job(caller.profile_id, job_id)
    return PaymentResponse.from_receipt(receipt)

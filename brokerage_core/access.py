"""
Access Filter Module

Scopes every contract and job query to the calling profile. Callers never
pass their own filters; results are always intersected with the caller's
identity here.
"""

from typing import List

from .ledger import LedgerStore
from .models import Contract, Job
from .exceptions import NotFound


def is_participant(profile_id: int, contract: Contract) -> bool:
    """True when the profile is the contract's client or contractor"""
    return contract.client_id == profile_id or contract.contractor_id == profile_id


def is_active(contract: Contract) -> bool:
    """Contracts in ``new`` or ``in_progress`` are active"""
    return contract.status.is_active


class AccessFilter:
    """
    Caller-scoped reads over the ledger
    """

    def __init__(self, store: LedgerStore):
        self.store = store

    def get_contract(self, caller_id: int, contract_id: int) -> Contract:
        """
        Get a contract the caller takes part in

        Raises:
            NotFound: contract is absent or belongs to other profiles
        """
        contract = self.store.get_contract(contract_id)
        if not contract or not is_participant(caller_id, contract):
            raise NotFound(f"Contract {contract_id} not found")
        return contract

    def get_job(self, caller_id: int, job_id: int) -> Job:
        """
        Get a job under one of the caller's contracts

        Raises:
            NotFound: job is absent or belongs to other profiles
        """
        job = self.store.get_job(job_id)
        if job:
            contract = self.store.get_contract(job.contract_id)
            if contract and is_participant(caller_id, contract):
                return job
        raise NotFound(f"Job {job_id} not found")

    def list_active_contracts(self, caller_id: int) -> List[Contract]:
        return [c for c in self.store.contracts_for_profile(caller_id) if is_active(c)]

    def list_unpaid_jobs(self, caller_id: int) -> List[Job]:
        """Unpaid jobs on the caller's active contracts, by id"""
        contract_ids = [c.id for c in self.list_active_contracts(caller_id)]
        return [job for job in self.store.jobs_for_contracts(contract_ids) if not job.paid]

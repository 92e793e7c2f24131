"""
Payment Engine Module

Pays a single job on behalf of the contract's client. The checks here give
the caller a precise failure; the ledger's transfer repeats them under lock,
so concurrent attempts to pay the same job resolve to exactly one success.
"""

from dataclasses import dataclass
from typing import Optional

from .money import Money
from .ledger import LedgerStore
from .audit import AuditTrail, AuditEventType
from .access import is_participant
from .models import Job
from .exceptions import BrokerageError, NotFound, Forbidden, AlreadyPaid, InsufficientFunds
from .logging_config import get_logger, log_action


@dataclass(frozen=True)
class PaymentReceipt:
    """Outcome of a successful job payment"""
    job: Job
    client_balance: Money
    contractor_balance: Money


class PaymentEngine:
    """
    Validates and executes job payments
    """

    def __init__(self, store: LedgerStore, audit_trail: Optional[AuditTrail] = None):
        self.store = store
        self.audit_trail = audit_trail
        self.logger = get_logger("brokerage.payments")

    def pay_job(self, caller_id: int, job_id: int) -> PaymentReceipt:
        """
        Pay a job from the caller's balance to the contractor's balance

        Args:
            caller_id: Resolved profile id of the caller
            job_id: Job to pay

        Returns:
            PaymentReceipt with the paid job and both new balances

        Raises:
            NotFound: job absent, or caller not a party to its contract
            Forbidden: caller is the contractor, only the client pays
            AlreadyPaid: job has been paid before
            InsufficientFunds: caller balance is below the job price
        """
        try:
            job = self.store.get_job(job_id)
            contract = self.store.get_contract(job.contract_id) if job else None
            if not job or not contract or not is_participant(caller_id, contract):
                raise NotFound(f"Job {job_id} not found")
            if contract.client_id != caller_id:
                raise Forbidden("Only the contract's client can pay a job")

            if job.paid:
                raise AlreadyPaid(f"Job {job_id} is already paid")

            client = self.store.require_profile(caller_id)
            if client.balance < job.price:
                raise InsufficientFunds(f"Balance {client.balance} is below job price {job.price}")

            result = self.store.transfer(
                debit_profile_id=contract.client_id,
                credit_profile_id=contract.contractor_id,
                amount=job.price,
                job_id=job_id,
                user_id=caller_id
            )
        except BrokerageError as e:
            self._record_rejection(caller_id, job_id, e)
            raise

        return PaymentReceipt(
            job=result.job,
            client_balance=result.debit_profile.balance,
            contractor_balance=result.credit_profile.balance
        )

    def _record_rejection(self, caller_id: int, job_id: int, error: BrokerageError) -> None:
        log_action(
            self.logger, "warning", f"Payment of job {job_id} rejected: {error.message}",
            user_id=caller_id, action="pay_job", resource=f"job:{job_id}",
            extra={"error": error.error_code}
        )
        if not self.audit_trail:
            return
        try:
            self.audit_trail.log_event(
                event_type=AuditEventType.PAYMENT_REJECTED,
                entity_type="job",
                entity_id=job_id,
                metadata={"error": error.error_code, "detail": error.message},
                user_id=caller_id
            )
        except Exception as e:
            self.logger.error(f"Error recording payment rejection for job {job_id}: {e}")

"""
Ledger Store Module

Holds profiles, contracts and jobs on top of a storage backend and provides
the two atomic money primitives of the system:

- ``transfer``: debit a client, credit a contractor and mark a job paid,
  all-or-nothing and at most once per job
- ``credit``: add funds to a single balance

Mutations are serialized per entity through a registry of re-entrant locks
acquired in a global order, so operations on disjoint profiles proceed in
parallel while two operations touching the same profile or job never
interleave.
"""

import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Any

from .money import Money, sum_money
from .storage import StorageInterface
from .audit import AuditTrail, AuditEventType
from .models import Profile, ProfileType, Contract, ContractStatus, Job
from .exceptions import (
    NotFound, AlreadyPaid, InsufficientFunds, InvalidAmount,
    InvalidArgument, InvalidStateTransition
)
from .logging_config import get_logger, log_action


PROFILES_TABLE = "profiles"
CONTRACTS_TABLE = "contracts"
JOBS_TABLE = "jobs"


class KeyedLocks:
    """
    Registry of re-entrant locks keyed by entity, e.g. ``profile:7``.

    An entry lives only while some thread holds or waits for it, so the
    registry stays as small as the number of entities in use.
    """

    def __init__(self):
        self._locks: Dict[str, List[Any]] = {}  # key -> [RLock, reference count]
        self._guard = threading.Lock()

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    def _reference(self, key: str) -> threading.RLock:
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = [threading.RLock(), 0]
                self._locks[key] = entry
            entry[1] += 1
            return entry[0]

    def _dereference(self, key: str) -> None:
        with self._guard:
            entry = self._locks[key]
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[key]

    @contextmanager
    def hold(self, keys: Iterable[str]):
        """Acquire the locks for ``keys`` in sorted order, release in reverse"""
        ordered = sorted(set(keys))
        acquired = []
        try:
            for key in ordered:
                lock = self._reference(key)
                try:
                    lock.acquire()
                except BaseException:
                    self._dereference(key)
                    raise
                acquired.append((key, lock))
            yield
        finally:
            for key, lock in reversed(acquired):
                lock.release()
                self._dereference(key)


@dataclass(frozen=True)
class TransferResult:
    """State of the three records touched by a completed transfer"""
    job: Job
    debit_profile: Profile
    credit_profile: Profile


@dataclass(frozen=True)
class LedgerSnapshot:
    """Committed state of the whole ledger read in one step"""
    profiles: Dict[int, Profile]
    contracts: Dict[int, Contract]
    jobs: List[Job]


class LedgerStore:
    """
    Durable holder of profiles, contracts and jobs
    """

    def __init__(self, storage: StorageInterface, audit_trail: Optional[AuditTrail] = None):
        self.storage = storage
        self.audit_trail = audit_trail
        self.logger = get_logger("brokerage.ledger")
        self._locks = KeyedLocks()
        self._id_lock = threading.Lock()
        self._last_ids: Dict[str, int] = {}

    # ------------------------------------------------------------------
    # Locking
    # ------------------------------------------------------------------

    @contextmanager
    def locked(self, profile_ids: Iterable[int] = (), job_ids: Iterable[int] = ()):
        """Hold the per-entity locks of the given profiles and jobs"""
        keys = [f"profile:{pid}" for pid in profile_ids] + [f"job:{jid}" for jid in job_ids]
        with self._locks.hold(keys):
            yield

    # ------------------------------------------------------------------
    # Provisioning
    # ------------------------------------------------------------------

    def _next_id(self, table: str) -> int:
        with self._id_lock:
            if table not in self._last_ids:
                existing = [int(record['id']) for record in self.storage.load_all(table)]
                self._last_ids[table] = max(existing, default=0)
            self._last_ids[table] += 1
            return self._last_ids[table]

    def _audit(self, event_type: AuditEventType, entity_type: str, entity_id: Any,
               metadata: Optional[Dict[str, Any]] = None, user_id: Optional[Any] = None) -> None:
        """Record an event for a change that has already been committed"""
        if not self.audit_trail:
            return
        try:
            self.audit_trail.log_event(
                event_type=event_type,
                entity_type=entity_type,
                entity_id=entity_id,
                metadata=metadata,
                user_id=user_id
            )
        except Exception as e:
            # The change itself stands; only its audit record is missing
            self.logger.error(
                f"Error recording audit event {event_type.value} for {entity_type}:{entity_id}: {e}",
                exc_info=True
            )

    def create_profile(
        self,
        first_name: str,
        last_name: str,
        profession: str,
        profile_type: ProfileType,
        balance: Optional[Money] = None
    ) -> Profile:
        """
        Provision a new client or contractor profile

        Args:
            first_name: Given name
            last_name: Family name
            profession: Profession, used to group contractor earnings
            profile_type: Client or contractor
            balance: Opening balance, zero if omitted

        Returns:
            Created Profile
        """
        balance = Money.of(balance) if balance is not None else Money.zero()
        if balance.is_negative():
            raise InvalidAmount("Opening balance cannot be negative")

        now = datetime.now(timezone.utc)
        profile = Profile(
            id=self._next_id(PROFILES_TABLE),
            created_at=now,
            updated_at=now,
            first_name=first_name,
            last_name=last_name,
            profession=profession,
            type=profile_type,
            balance=balance
        )
        self._save_profile(profile)

        self._audit(
            AuditEventType.PROFILE_CREATED, "profile", profile.id,
            metadata={"type": profile_type.value, "balance": str(balance)}
        )
        return profile

    def create_contract(
        self,
        client_id: int,
        contractor_id: int,
        terms: str,
        status: ContractStatus = ContractStatus.NEW
    ) -> Contract:
        """Provision a contract between an existing client and contractor"""
        if client_id == contractor_id:
            raise InvalidArgument("Contract client and contractor must be different profiles")

        client = self.require_profile(client_id)
        contractor = self.require_profile(contractor_id)
        if not client.is_client:
            raise InvalidArgument(f"Profile {client_id} is not a client")
        if not contractor.is_contractor:
            raise InvalidArgument(f"Profile {contractor_id} is not a contractor")

        now = datetime.now(timezone.utc)
        contract = Contract(
            id=self._next_id(CONTRACTS_TABLE),
            created_at=now,
            updated_at=now,
            client_id=client_id,
            contractor_id=contractor_id,
            terms=terms,
            status=status
        )
        self._save_contract(contract)

        self._audit(
            AuditEventType.CONTRACT_CREATED, "contract", contract.id,
            metadata={"client_id": client_id, "contractor_id": contractor_id, "status": status.value}
        )
        return contract

    def update_contract_status(self, contract_id: int, status: ContractStatus) -> Contract:
        """Move a contract forward through its lifecycle"""
        with self.storage.atomic():
            contract = self.require_contract(contract_id)
            if not contract.status.can_transition_to(status):
                raise InvalidStateTransition(
                    f"Contract {contract_id} cannot move from {contract.status.value} to {status.value}"
                )
            previous = contract.status
            contract.status = status
            contract.updated_at = datetime.now(timezone.utc)
            self._save_contract(contract)

        self._audit(
            AuditEventType.CONTRACT_STATUS_CHANGED, "contract", contract_id,
            metadata={"from": previous.value, "to": status.value}
        )
        return contract

    def create_job(
        self,
        contract_id: int,
        description: str,
        price: Money,
        payment_date: Optional[datetime] = None
    ) -> Job:
        """
        Provision a job under an existing contract.

        A ``payment_date`` imports a job that was already paid before it was
        recorded here; balances are not touched in that case.
        """
        price = Money.of(price)
        if not price.is_positive():
            raise InvalidAmount("Job price must be positive")
        self.require_contract(contract_id)
        if payment_date is not None and payment_date.tzinfo is None:
            payment_date = payment_date.replace(tzinfo=timezone.utc)

        now = datetime.now(timezone.utc)
        job = Job(
            id=self._next_id(JOBS_TABLE),
            created_at=now,
            updated_at=now,
            contract_id=contract_id,
            description=description,
            price=price,
            paid=payment_date is not None,
            payment_date=payment_date
        )
        self._save_job(job)

        self._audit(
            AuditEventType.JOB_CREATED, "job", job.id,
            metadata={"contract_id": contract_id, "price": str(price), "paid": job.paid}
        )
        return job

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_profile(self, profile_id: int) -> Optional[Profile]:
        data = self.storage.load(PROFILES_TABLE, str(profile_id))
        return Profile.from_dict(data) if data else None

    def get_contract(self, contract_id: int) -> Optional[Contract]:
        data = self.storage.load(CONTRACTS_TABLE, str(contract_id))
        return Contract.from_dict(data) if data else None

    def get_job(self, job_id: int) -> Optional[Job]:
        data = self.storage.load(JOBS_TABLE, str(job_id))
        return Job.from_dict(data) if data else None

    def require_profile(self, profile_id: int) -> Profile:
        profile = self.get_profile(profile_id)
        if not profile:
            raise NotFound(f"Profile {profile_id} not found")
        return profile

    def require_contract(self, contract_id: int) -> Contract:
        contract = self.get_contract(contract_id)
        if not contract:
            raise NotFound(f"Contract {contract_id} not found")
        return contract

    def require_job(self, job_id: int) -> Job:
        job = self.get_job(job_id)
        if not job:
            raise NotFound(f"Job {job_id} not found")
        return job

    def contracts_for_profile(self, profile_id: int) -> List[Contract]:
        """Contracts where the profile is the client or the contractor, by id"""
        rows = (
            self.storage.find(CONTRACTS_TABLE, {'client_id': profile_id}) +
            self.storage.find(CONTRACTS_TABLE, {'contractor_id': profile_id})
        )
        contracts = {row['id']: Contract.from_dict(row) for row in rows}
        return [contracts[cid] for cid in sorted(contracts)]

    def jobs_for_contracts(self, contract_ids: Iterable[int]) -> List[Job]:
        """All jobs under the given contracts, by id"""
        wanted = set(contract_ids)
        jobs = [
            Job.from_dict(row) for row in self.storage.load_all(JOBS_TABLE)
            if row['contract_id'] in wanted
        ]
        jobs.sort(key=lambda job: job.id)
        return jobs

    def unpaid_total_for_client(self, client_id: int) -> Money:
        """Sum of prices of unpaid jobs across all contracts where the profile is client"""
        contract_ids = [
            row['id'] for row in self.storage.find(CONTRACTS_TABLE, {'client_id': client_id})
        ]
        return sum_money(job.price for job in self.jobs_for_contracts(contract_ids) if not job.paid)

    def snapshot(self) -> LedgerSnapshot:
        """Read profiles, contracts and jobs as one committed view"""
        tables = self.storage.snapshot([PROFILES_TABLE, CONTRACTS_TABLE, JOBS_TABLE])
        profiles = {p.id: p for p in (Profile.from_dict(row) for row in tables[PROFILES_TABLE])}
        contracts = {c.id: c for c in (Contract.from_dict(row) for row in tables[CONTRACTS_TABLE])}
        jobs = sorted((Job.from_dict(row) for row in tables[JOBS_TABLE]), key=lambda job: job.id)
        return LedgerSnapshot(profiles=profiles, contracts=contracts, jobs=jobs)

    # ------------------------------------------------------------------
    # Atomic money primitives
    # ------------------------------------------------------------------

    def transfer(
        self,
        debit_profile_id: int,
        credit_profile_id: int,
        amount: Money,
        job_id: int,
        user_id: Optional[int] = None
    ) -> TransferResult:
        """
        Pay a job: move ``amount`` from the client to the contractor and mark
        the job paid, all-or-nothing.

        Args:
            debit_profile_id: Client of the job's contract
            credit_profile_id: Contractor of the job's contract
            amount: Amount to move, must equal the job price
            job_id: Job being paid
            user_id: Profile that initiated the payment

        Returns:
            TransferResult with the updated job and both profiles

        Raises:
            InvalidAmount: amount is not positive or differs from the job price
            NotFound: job, contract or profiles do not resolve together
            AlreadyPaid: job was paid before
            InsufficientFunds: debit balance is below amount
        """
        amount = Money.of(amount)
        if not amount.is_positive():
            raise InvalidAmount("Transfer amount must be positive")

        with self.locked(profile_ids=(debit_profile_id, credit_profile_id), job_ids=(job_id,)):
            with self.storage.atomic():
                job = self.require_job(job_id)
                contract = self.get_contract(job.contract_id)
                if (not contract or contract.client_id != debit_profile_id
                        or contract.contractor_id != credit_profile_id):
                    raise NotFound(f"Job {job_id} not found")

                debit_profile = self.require_profile(debit_profile_id)
                credit_profile = self.require_profile(credit_profile_id)

                if job.paid:
                    raise AlreadyPaid(f"Job {job_id} is already paid")
                if amount != job.price:
                    raise InvalidAmount(f"Transfer amount {amount} does not match job price {job.price}")
                if debit_profile.balance < amount:
                    raise InsufficientFunds(
                        f"Balance {debit_profile.balance} is below job price {amount}"
                    )

                now = datetime.now(timezone.utc)
                debit_profile.balance = debit_profile.balance - amount
                debit_profile.updated_at = now
                credit_profile.balance = credit_profile.balance + amount
                credit_profile.updated_at = now
                job.paid = True
                job.payment_date = now
                job.updated_at = now

                self._save_profile(debit_profile)
                self._save_profile(credit_profile)
                self._save_job(job)

        log_action(
            self.logger, "info", f"Job {job_id} paid",
            user_id=user_id, action="transfer", resource=f"job:{job_id}",
            extra={
                "amount": str(amount),
                "debit_profile_id": debit_profile_id,
                "credit_profile_id": credit_profile_id
            }
        )
        self._audit(
            AuditEventType.JOB_PAID, "job", job_id,
            metadata={
                "amount": str(amount),
                "debit_profile_id": debit_profile_id,
                "credit_profile_id": credit_profile_id,
                "payment_date": job.payment_date
            },
            user_id=user_id
        )
        return TransferResult(job=job, debit_profile=debit_profile, credit_profile=credit_profile)

    def credit(self, profile_id: int, amount: Money, user_id: Optional[int] = None) -> Profile:
        """
        Add ``amount`` to a profile balance

        Raises:
            InvalidAmount: amount is not positive
            NotFound: profile does not exist
        """
        amount = Money.of(amount)
        if not amount.is_positive():
            raise InvalidAmount("Credit amount must be positive")

        with self.locked(profile_ids=(profile_id,)):
            with self.storage.atomic():
                profile = self.require_profile(profile_id)
                profile.balance = profile.balance + amount
                profile.updated_at = datetime.now(timezone.utc)
                self._save_profile(profile)

        log_action(
            self.logger, "info", f"Profile {profile_id} credited",
            user_id=user_id, action="credit", resource=f"profile:{profile_id}",
            extra={"amount": str(amount), "balance": str(profile.balance)}
        )
        self._audit(
            AuditEventType.BALANCE_CREDITED, "profile", profile_id,
            metadata={"amount": str(amount), "balance": str(profile.balance)},
            user_id=user_id
        )
        return profile

    # ------------------------------------------------------------------
    # Persistence helpers
    # ------------------------------------------------------------------

    def _save_profile(self, profile: Profile) -> None:
        self.storage.save(PROFILES_TABLE, str(profile.id), profile.to_dict())

    def _save_contract(self, contract: Contract) -> None:
        self.storage.save(CONTRACTS_TABLE, str(contract.id), contract.to_dict())

    def _save_job(self, job: Job) -> None:
        self.storage.save(JOBS_TABLE, str(job.id), job.to_dict())

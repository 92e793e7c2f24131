"""
Reporting Engine Module

Read-only earnings aggregates over paid jobs in a closed date range:
the best-earning contractor profession and the best-paying clients.
Each report reads a single ledger snapshot, never a sequence of queries
that could interleave with a payment.
"""

from datetime import datetime, date, time, timezone
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple, Union

from .money import Money, sum_money
from .ledger import LedgerStore, LedgerSnapshot
from .models import Job
from .exceptions import InvalidDateRange, InvalidArgument
from .logging_config import get_logger

DEFAULT_BEST_CLIENTS_LIMIT = 2

DateLike = Union[date, datetime]


@dataclass(frozen=True)
class ProfessionEarnings:
    profession: str
    total_earned: Money


@dataclass(frozen=True)
class ClientSpending:
    client_id: int
    full_name: str
    total_paid: Money


def normalize_range(start: DateLike, end: DateLike) -> Tuple[datetime, datetime]:
    """
    Turn a closed date range into timezone-aware datetimes.

    Plain dates cover whole days: ``start`` from midnight, ``end`` through
    the last microsecond of the day. Naive datetimes are taken as UTC.
    """
    def as_datetime(value: DateLike, day_end: bool) -> datetime:
        if isinstance(value, datetime):
            return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
        return datetime.combine(value, time.max if day_end else time.min, tzinfo=timezone.utc)

    start_dt = as_datetime(start, day_end=False)
    end_dt = as_datetime(end, day_end=True)
    if start_dt > end_dt:
        raise InvalidDateRange(f"Range start {start_dt.isoformat()} is after end {end_dt.isoformat()}")
    return start_dt, end_dt


class ReportingEngine:
    """
    Earnings reports over the ledger
    """

    def __init__(self, store: LedgerStore, default_limit: int = DEFAULT_BEST_CLIENTS_LIMIT):
        self.store = store
        self.default_limit = default_limit
        self.logger = get_logger("brokerage.reporting")

    def _paid_jobs_in_range(self, snapshot: LedgerSnapshot, start: datetime, end: datetime) -> List[Job]:
        return [
            job for job in snapshot.jobs
            if job.paid and job.payment_date is not None and start <= job.payment_date <= end
        ]

    def best_profession(self, start: DateLike, end: DateLike) -> Optional[ProfessionEarnings]:
        """
        Profession whose contractors earned the most in ``[start, end]``

        Ties go to the alphabetically first profession. Returns None when no
        job was paid in the range.
        """
        start_dt, end_dt = normalize_range(start, end)
        snapshot = self.store.snapshot()

        earnings: Dict[str, List[Money]] = {}
        for job in self._paid_jobs_in_range(snapshot, start_dt, end_dt):
            contract = snapshot.contracts.get(job.contract_id)
            contractor = snapshot.profiles.get(contract.contractor_id) if contract else None
            if contractor is None:
                continue
            earnings.setdefault(contractor.profession, []).append(job.price)

        if not earnings:
            return None

        totals = [ProfessionEarnings(profession, sum_money(prices)) for profession, prices in earnings.items()]
        best = min(totals, key=lambda e: (-e.total_earned.amount, e.profession))

        self.logger.debug(f"best_profession {start_dt.isoformat()}..{end_dt.isoformat()}: {best.profession}")
        return best

    def best_clients(self, start: DateLike, end: DateLike, limit: Optional[int] = None) -> List[ClientSpending]:
        """
        Clients who paid the most in ``[start, end]``, highest first

        Ties are ordered by client id ascending.

        Raises:
            InvalidArgument: limit is not a positive integer
        """
        if limit is None:
            limit = self.default_limit
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
            raise InvalidArgument(f"limit must be a positive integer, got {limit!r}")

        start_dt, end_dt = normalize_range(start, end)
        snapshot = self.store.snapshot()

        spending: Dict[int, List[Money]] = {}
        for job in self._paid_jobs_in_range(snapshot, start_dt, end_dt):
            contract = snapshot.contracts.get(job.contract_id)
            if contract is None:
                continue
            spending.setdefault(contract.client_id, []).append(job.price)

        ranked = sorted(
            ((client_id, sum_money(prices)) for client_id, prices in spending.items()),
            key=lambda item: (-item[1].amount, item[0])
        )

        results = []
        for client_id, total in ranked[:limit]:
            client = snapshot.profiles.get(client_id)
            results.append(ClientSpending(
                client_id=client_id,
                full_name=client.full_name if client else "",
                total_paid=total
            ))
        return results
